"""Render service layer for the Page Press API.

This module turns validated request bodies into immutable CaptureRequests
and hands them to the capture engine. Everything here runs before a page is
allocated: target validation, selector normalization, file name
sanitization and per-request readiness settings.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

from app.api.schemas import RenderRequest
from app.render.capture.config import CaptureConfig
from app.render.capture.engine import CaptureEngine
from app.render.models import (
    CaptureFormat,
    CaptureOptions,
    CaptureRequest,
    CaptureResult,
    InlineTarget,
    MediaType,
    ReadinessSpec,
    ReadinessTimeouts,
    ReadyStrategy,
)
from app.render.utils import TargetResolver, normalize_selector, sanitize_file_name

logger = logging.getLogger(__name__)

SIMPLE_PAGE_HTML = (
    "<!doctype html><html><head><meta charset=utf-8>"
    "<style>@page{size:A4;margin:10mm}body{font-family:system-ui}</style>"
    "</head><body><h1>OK</h1></body></html>"
)
SIMPLE_PAGE_FILE_NAME = "test.pdf"


@dataclass
class RenderDefaults:
    """Operator defaults applied where a request leaves a setting out."""
    timeouts: ReadinessTimeouts = field(default_factory=ReadinessTimeouts)
    strategy: ReadyStrategy = ReadyStrategy.NORMAL
    settle_delay_ms: int = 300
    capture_timeout_ms: int = 60000
    page_format: Optional[str] = None

    @classmethod
    def from_config(cls, config: CaptureConfig) -> "RenderDefaults":
        return cls(
            timeouts=config.get_readiness_timeouts(),
            strategy=config.default_strategy,
            settle_delay_ms=config.default_settle_delay_ms,
            capture_timeout_ms=config.capture_timeout_ms,
            page_format=config.page_format,
        )


class RenderService:
    """Builds capture requests and runs them on the engine."""

    def __init__(
        self,
        engine: CaptureEngine,
        resolver: TargetResolver,
        defaults: Optional[RenderDefaults] = None
    ):
        """Initialize render service.

        Args:
            engine: Capture engine owning the shared browser
            resolver: Target resolver enforcing the allowlist
            defaults: Operator defaults for readiness and capture
        """
        self.engine = engine
        self.resolver = resolver
        self.defaults = defaults or RenderDefaults()

    def build_request(self, body: RenderRequest, capture_format: CaptureFormat) -> CaptureRequest:
        """Validate ``body`` and build the capture request.

        Raises:
            TargetValidationError: Target missing, malformed or not allowed
        """
        target = self.resolver.resolve(url=body.url, html=body.html, base_url=body.base_url)

        timeouts = self.defaults.timeouts
        if body.timeout_ms:
            timeouts = timeouts.model_copy(update={"navigation_ms": body.timeout_ms})

        readiness = ReadinessSpec(
            selector=normalize_selector(body.wait_for_selector, fallback=None),
            strategy=body.ready_strategy or self.defaults.strategy,
            settle_delay_ms=self.defaults.settle_delay_ms if body.delay is None else body.delay,
            timeouts=timeouts,
        )

        options = CaptureOptions(
            file_name=sanitize_file_name(body.file_name or "file.pdf"),
            extra_headers=body.extra_headers or {},
            capture_timeout_ms=self.defaults.capture_timeout_ms,
            page_format=self.defaults.page_format,
        )

        return CaptureRequest(
            target=target,
            format=capture_format,
            media=body.media,
            readiness=readiness,
            options=options,
        )

    def build_simple_request(self) -> CaptureRequest:
        """Capture request for the built-in one-page self-test document."""
        return CaptureRequest(
            target=InlineTarget(html=SIMPLE_PAGE_HTML),
            format=CaptureFormat.PDF,
            media=MediaType.SCREEN,
            readiness=ReadinessSpec(
                strategy=ReadyStrategy.EAGER,
                settle_delay_ms=self.defaults.settle_delay_ms,
                timeouts=self.defaults.timeouts,
            ),
            options=CaptureOptions(
                file_name=SIMPLE_PAGE_FILE_NAME,
                capture_timeout_ms=self.defaults.capture_timeout_ms,
                page_format=self.defaults.page_format,
            ),
        )

    async def render(self, capture_request: CaptureRequest) -> CaptureResult:
        """Run one capture request on the engine."""
        logger.debug(f"Rendering {capture_request.format.value} of {capture_request.target.label}")
        return await self.engine.capture(capture_request)
