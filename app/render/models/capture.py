"""Pydantic models for capture requests, readiness results and capture output.

This module defines the request-scoped data used by the render pipeline:
the validated capture request and its target, the readiness strategy
profiles, per-check results and the final capture result. Nothing here is
persisted.
"""

import html as html_lib
import re
from datetime import datetime
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field, field_validator


class CaptureFormat(str, Enum):
    """Output format produced by the capture executor."""
    PDF = "pdf"
    SCREENSHOT = "screenshot"
    HTML = "html"

    @property
    def content_type(self) -> str:
        """Declared content type of the captured bytes."""
        return _CONTENT_TYPES[self]


_CONTENT_TYPES = {
    CaptureFormat.PDF: "application/pdf",
    CaptureFormat.SCREENSHOT: "image/png",
    CaptureFormat.HTML: "text/html; charset=utf-8",
}


class MediaType(str, Enum):
    """CSS media type emulated during capture."""
    SCREEN = "screen"
    PRINT = "print"


class ReadyStrategy(str, Enum):
    """How hard the orchestrator waits before capturing."""
    STRICT = "strict"
    NORMAL = "normal"
    EAGER = "eager"


class SelectorWaitState(str, Enum):
    """Element state required by the selector check."""
    VISIBLE = "visible"
    ATTACHED = "attached"


class ReadinessState(str, Enum):
    """States of the readiness state machine, in traversal order."""
    NAVIGATING = "navigating"
    ELEMENT_ATTACHING = "element_attaching"
    DOCUMENT_LOADING = "document_loading"
    NETWORK_SETTLING = "network_settling"
    FONTS_READY = "fonts_ready"
    IMAGES_READY = "images_ready"
    SIZE_STABLE = "size_stable"
    SETTLING = "settling"
    READY = "ready"
    NAVIGATION_FAILED = "navigation_failed"
    AUTH_REDIRECT_DETECTED = "auth_redirect_detected"


class CheckStatus(str, Enum):
    """Result classification of a single readiness check."""
    OK = "ok"
    WARNING = "warning"
    FATAL = "fatal"
    SKIPPED = "skipped"


class OutcomeStatus(str, Enum):
    """Overall readiness outcome."""
    READY = "ready"
    READY_WITH_WARNINGS = "ready_with_warnings"
    FAILED = "failed"


class StrategyProfile(BaseModel):
    """Thresholds a readiness strategy applies to the individual checks."""

    image_wait_ms: int = Field(ge=0, description="Image completeness wait; 0 skips the check")
    min_height_px: int = Field(ge=0, description="Minimum rendered height of the selected element")
    selector_state: SelectorWaitState = Field(description="Element state awaited by the selector check")
    selector_timeout_ms: int = Field(gt=0, description="Selector wait timeout")


STRATEGY_PROFILES: Dict[ReadyStrategy, StrategyProfile] = {
    ReadyStrategy.STRICT: StrategyProfile(
        image_wait_ms=15000,
        min_height_px=150,
        selector_state=SelectorWaitState.VISIBLE,
        selector_timeout_ms=30000,
    ),
    ReadyStrategy.NORMAL: StrategyProfile(
        image_wait_ms=8000,
        min_height_px=50,
        selector_state=SelectorWaitState.VISIBLE,
        selector_timeout_ms=15000,
    ),
    ReadyStrategy.EAGER: StrategyProfile(
        image_wait_ms=0,
        min_height_px=50,
        selector_state=SelectorWaitState.ATTACHED,
        selector_timeout_ms=15000,
    ),
}


class RemoteTarget(BaseModel):
    """A remote page loaded by URL."""

    kind: Literal["remote"] = "remote"
    url: str = Field(min_length=1, description="Absolute http(s) URL to render")

    @property
    def label(self) -> str:
        return self.url


_HEAD_TAG = re.compile(r"<head(?:\s[^>]*)?>", re.IGNORECASE)


class InlineTarget(BaseModel):
    """Raw HTML rendered in place, optionally resolved against a base URL."""

    kind: Literal["inline"] = "inline"
    html: str = Field(description="HTML document or fragment")
    base_url: Optional[str] = Field(
        default=None,
        description="Base URL injected as <base href> so relative assets resolve"
    )

    @property
    def label(self) -> str:
        return f"inline html ({len(self.html)} chars)"

    def render_content(self) -> str:
        """Return the HTML with ``<base>`` placed right after the opening ``<head>``."""
        if not self.base_url:
            return self.html

        base_tag = f'<base href="{html_lib.escape(self.base_url, quote=True)}">'
        return _HEAD_TAG.sub(lambda m: m.group(0) + base_tag, self.html, count=1)


TargetSpec = Annotated[Union[RemoteTarget, InlineTarget], Field(discriminator="kind")]


class ReadinessTimeouts(BaseModel):
    """Per-step timeouts in milliseconds.

    ``selector_ms`` and ``images_ms`` default to the strategy profile when
    left unset.
    """

    navigation_ms: int = Field(default=45000, gt=0)
    selector_ms: Optional[int] = Field(default=None, gt=0)
    load_ms: int = Field(default=10000, gt=0)
    network_idle_ms: int = Field(default=10000, gt=0)
    fonts_ms: int = Field(default=5000, gt=0)
    images_ms: Optional[int] = Field(default=None, ge=0)
    size_ms: int = Field(default=8000, gt=0)
    evaluate_ms: int = Field(default=5000, gt=0)


class ReadinessSpec(BaseModel):
    """What the orchestrator waits for before capture."""

    model_config = {"frozen": True}

    selector: Optional[str] = Field(default=None, description="Canonical selector, None skips selector checks")
    strategy: ReadyStrategy = Field(default=ReadyStrategy.NORMAL)
    settle_delay_ms: int = Field(default=300, ge=0, description="Pause after the lazy-load scroll")
    timeouts: ReadinessTimeouts = Field(default_factory=ReadinessTimeouts)

    @property
    def profile(self) -> StrategyProfile:
        return STRATEGY_PROFILES[self.strategy]

    @property
    def selector_timeout_ms(self) -> int:
        return self.timeouts.selector_ms or self.profile.selector_timeout_ms

    @property
    def image_wait_ms(self) -> int:
        if self.timeouts.images_ms is not None:
            return self.timeouts.images_ms
        return self.profile.image_wait_ms


class PdfMargins(BaseModel):
    top: str = "5mm"
    right: str = "5mm"
    bottom: str = "5mm"
    left: str = "5mm"


class CaptureOptions(BaseModel):
    """Format-specific capture options."""

    model_config = {"frozen": True}

    file_name: str = Field(default="file.pdf", description="Sanitized download file name")
    extra_headers: Dict[str, str] = Field(default_factory=dict)
    print_background: bool = True
    prefer_css_page_size: bool = True
    page_format: Optional[str] = Field(
        default=None,
        description="Fixed paper format used when the page declares no @page size"
    )
    margin: PdfMargins = Field(default_factory=PdfMargins)
    full_page: bool = True
    capture_timeout_ms: int = Field(default=60000, gt=0)

    def pdf_options(self) -> Dict[str, Any]:
        """Keyword arguments for ``Page.pdf``."""
        options: Dict[str, Any] = {
            "print_background": self.print_background,
            "prefer_css_page_size": self.prefer_css_page_size,
            "margin": self.margin.model_dump(),
        }
        if self.page_format:
            options["format"] = self.page_format
        return options


class CaptureRequest(BaseModel):
    """A validated, immutable capture request."""

    model_config = {"frozen": True}

    target: TargetSpec
    format: CaptureFormat = CaptureFormat.PDF
    media: MediaType = MediaType.SCREEN
    readiness: ReadinessSpec = Field(default_factory=ReadinessSpec)
    options: CaptureOptions = Field(default_factory=CaptureOptions)

    @property
    def target_url(self) -> Optional[str]:
        return self.target.url if isinstance(self.target, RemoteTarget) else None


class CheckResult(BaseModel):
    """Result of one readiness step."""

    state: ReadinessState
    status: CheckStatus
    reason: Optional[str] = None
    duration_ms: float = 0.0
    details: Dict[str, Any] = Field(default_factory=dict)
    failure_state: Optional[ReadinessState] = Field(
        default=None,
        description="Terminal state entered when a fatal result aborts orchestration"
    )

    @classmethod
    def ok(cls, state: ReadinessState, **details: Any) -> "CheckResult":
        return cls(state=state, status=CheckStatus.OK, details=details)

    @classmethod
    def skipped(cls, state: ReadinessState, reason: str) -> "CheckResult":
        return cls(state=state, status=CheckStatus.SKIPPED, reason=reason)

    @classmethod
    def warning(cls, state: ReadinessState, reason: str, **details: Any) -> "CheckResult":
        return cls(state=state, status=CheckStatus.WARNING, reason=reason, details=details)

    @classmethod
    def fatal(
        cls,
        state: ReadinessState,
        reason: str,
        failure_state: ReadinessState = ReadinessState.NAVIGATION_FAILED,
        **details: Any
    ) -> "CheckResult":
        return cls(
            state=state,
            status=CheckStatus.FATAL,
            reason=reason,
            details=details,
            failure_state=failure_state,
        )


class CheckFailure(BaseModel):
    """A soft failure recorded while the orchestrator kept going."""

    state: ReadinessState
    reason: str


class ReadinessOutcome(BaseModel):
    """Ready, ReadyWithWarnings or Failed."""

    status: OutcomeStatus
    final_state: ReadinessState
    warnings: List[CheckFailure] = Field(default_factory=list)
    reason: Optional[str] = None
    details: Dict[str, Any] = Field(default_factory=dict)
    checks: List[CheckResult] = Field(default_factory=list)

    @classmethod
    def ready(cls, checks: List[CheckResult], warnings: List[CheckFailure]) -> "ReadinessOutcome":
        return cls(
            status=OutcomeStatus.READY_WITH_WARNINGS if warnings else OutcomeStatus.READY,
            final_state=ReadinessState.READY,
            warnings=warnings,
            checks=checks,
        )

    @classmethod
    def failed(cls, result: CheckResult, checks: List[CheckResult]) -> "ReadinessOutcome":
        return cls(
            status=OutcomeStatus.FAILED,
            final_state=result.failure_state or ReadinessState.NAVIGATION_FAILED,
            reason=result.reason,
            details=result.details,
            checks=checks,
        )

    @property
    def is_ready(self) -> bool:
        return self.status != OutcomeStatus.FAILED

    @property
    def is_failed(self) -> bool:
        return self.status == OutcomeStatus.FAILED


class DiagnosticsReport(BaseModel):
    """Post-mortem data gathered after a soft readiness failure."""

    state: ReadinessState
    reason: Optional[str] = None
    screenshot_path: Optional[str] = None
    html_length: Optional[int] = None
    error: Optional[str] = None
    collected_at: datetime = Field(default_factory=datetime.utcnow)


class CaptureResult(BaseModel):
    """Rendered bytes plus the metadata the API needs to answer."""

    content: bytes
    content_type: str
    format: CaptureFormat
    file_name: Optional[str] = None
    readiness: Optional[ReadinessOutcome] = None
    final_url: Optional[str] = None
    duration_ms: Optional[float] = None

    @field_validator("content")
    @classmethod
    def validate_content(cls, v):
        if not v:
            raise ValueError("Capture produced an empty buffer")
        return v

    @property
    def size(self) -> int:
        return len(self.content)
