"""Page session wrapping one request's browser page.

This module provides the PageSession class: the narrow page-driver
surface the readiness orchestrator, capture executor and diagnostics
collector work against. It installs header overrides, media emulation and
the event observer on the page, performs navigation or content injection,
and exposes bounded waits, in-page predicate polling and the render
operations.

A session never closes its page; the page belongs to the scoped
acquisition in ``BrowserFactory.page()``.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional

from playwright.async_api import Page, TimeoutError as PlaywrightTimeoutError

from .console_observer import PageObserver
from ..models.capture import InlineTarget, MediaType, RemoteTarget, TargetSpec

logger = logging.getLogger(__name__)


class WaitUntil:
    """Playwright lifecycle events a navigation can wait for."""
    COMMIT = "commit"
    DOMCONTENTLOADED = "domcontentloaded"
    LOAD = "load"
    NETWORKIDLE = "networkidle"


SCROLL_TO_BOTTOM_JS = "() => window.scrollTo(0, document.body ? document.body.scrollHeight : 0)"
SCROLL_TO_TOP_JS = "() => window.scrollTo(0, 0)"


@dataclass
class NavigationResult:
    """What the page driver reported after navigating or injecting content."""
    response_received: bool
    status: Optional[int] = None
    final_url: Optional[str] = None
    response_url: Optional[str] = None


class PageSessionConfig:
    """Configuration for a page session."""

    def __init__(
        self,
        media: MediaType = MediaType.SCREEN,
        extra_headers: Optional[Dict[str, str]] = None,
        wait_until: str = WaitUntil.DOMCONTENTLOADED,
        enable_observer: bool = True,
        polling_ms: int = 100,
    ):
        """Initialize page session configuration.

        Args:
            media: CSS media type to emulate
            extra_headers: HTTP headers sent with every page request
            wait_until: Lifecycle event navigation waits for
            enable_observer: Whether to log console and network events
            polling_ms: Default interval for in-page predicate polling
        """
        self.media = MediaType(media)
        self.extra_headers = dict(extra_headers or {})
        self.wait_until = wait_until
        self.enable_observer = enable_observer
        self.polling_ms = polling_ms


class PageSession:
    """A live handle on one request's page."""

    def __init__(self, page: Page, config: Optional[PageSessionConfig] = None):
        """Initialize page session.

        Args:
            page: Playwright page owned by the current request
            config: Page session configuration
        """
        self.page = page
        self.config = config or PageSessionConfig()
        self.observer: Optional[PageObserver] = None
        self.navigation: Optional[NavigationResult] = None

        self.session_start_time = datetime.utcnow()
        self._prepared = False

    async def prepare(self, label: str = "") -> None:
        """Install header overrides, media emulation and the event observer."""
        if self._prepared:
            return

        if self.config.enable_observer:
            self.observer = PageObserver(self.page, label=label)

        if self.config.extra_headers:
            await self.page.set_extra_http_headers(self.config.extra_headers)

        await self.page.emulate_media(media=self.config.media.value)

        self._prepared = True
        logger.debug(f"Page session prepared (media={self.config.media.value})")

    async def open(self, target: TargetSpec, timeout_ms: int) -> NavigationResult:
        """Navigate to a remote target or inject an inline document.

        Driver errors (including navigation timeouts) propagate to the caller.

        Args:
            target: Resolved capture target
            timeout_ms: Navigation timeout

        Returns:
            NavigationResult with final status and URL
        """
        if isinstance(target, RemoteTarget):
            response = await self.page.goto(
                target.url,
                wait_until=self.config.wait_until,
                timeout=timeout_ms
            )

            if response is None:
                self.navigation = NavigationResult(response_received=False, final_url=self.final_url)
            else:
                self.navigation = NavigationResult(
                    response_received=True,
                    status=response.status,
                    final_url=self.final_url or response.url,
                    response_url=response.url
                )

        elif isinstance(target, InlineTarget):
            await self.page.set_content(
                target.render_content(),
                wait_until=self.config.wait_until,
                timeout=timeout_ms
            )
            self.navigation = NavigationResult(response_received=True, final_url=self.final_url)

        else:
            raise TypeError(f"Unsupported target type: {type(target).__name__}")

        logger.debug(f"Opened {target.label} (status={self.navigation.status})")
        return self.navigation

    async def wait_for_selector(self, selector: str, state: str, timeout_ms: int) -> None:
        """Wait until ``selector`` reaches ``state`` ('attached' or 'visible')."""
        await self.page.wait_for_selector(selector, state=state, timeout=timeout_ms)

    async def wait_for_load_state(self, state: str, timeout_ms: int) -> None:
        """Wait for a page lifecycle event."""
        await self.page.wait_for_load_state(state, timeout=timeout_ms)

    async def poll_predicate(
        self,
        expression: str,
        timeout_ms: int,
        arg: Any = None,
        polling_ms: Optional[int] = None
    ) -> bool:
        """Poll an in-page boolean predicate until it holds or the timeout expires.

        Args:
            expression: JavaScript function source evaluated in the page
            timeout_ms: Polling deadline
            arg: Single serializable argument passed to the predicate
            polling_ms: Poll interval, defaults to the session setting

        Returns:
            True once the predicate held, False when the timeout expired
        """
        try:
            await self.page.wait_for_function(
                expression,
                arg=arg,
                timeout=timeout_ms,
                polling=polling_ms or self.config.polling_ms
            )
            return True
        except PlaywrightTimeoutError:
            return False

    async def evaluate(self, expression: str, arg: Any = None, timeout_ms: Optional[int] = None) -> Any:
        """Evaluate JavaScript in the page, optionally bounded by ``timeout_ms``.

        Raises:
            asyncio.TimeoutError: The evaluation did not settle in time
        """
        call = self.page.evaluate(expression, arg)
        if timeout_ms is None:
            return await call
        return await asyncio.wait_for(call, timeout=timeout_ms / 1000.0)

    async def scroll_to_bottom(self) -> None:
        await self.page.evaluate(SCROLL_TO_BOTTOM_JS)

    async def scroll_to_top(self) -> None:
        await self.page.evaluate(SCROLL_TO_TOP_JS)

    async def pause(self, delay_ms: int) -> None:
        """Sleep without touching the page."""
        if delay_ms > 0:
            await asyncio.sleep(delay_ms / 1000.0)

    async def screenshot(self, path: Optional[str] = None, full_page: bool = True) -> bytes:
        """Take a PNG screenshot, optionally also writing it to ``path``."""
        return await self.page.screenshot(path=path, full_page=full_page, type="png")

    async def content(self) -> str:
        """Serialize the current document markup."""
        return await self.page.content()

    async def pdf(self, **options: Any) -> bytes:
        """Render the page to PDF with Playwright ``Page.pdf`` options."""
        return await self.page.pdf(**options)

    @property
    def final_url(self) -> Optional[str]:
        """URL the page currently shows."""
        try:
            return self.page.url
        except Exception:
            return None

    def get_session_duration_ms(self) -> float:
        return (datetime.utcnow() - self.session_start_time).total_seconds() * 1000

    def get_stats(self) -> Dict[str, Any]:
        """Get session statistics."""
        stats: Dict[str, Any] = {
            'session_duration_ms': self.get_session_duration_ms(),
            'media': self.config.media.value,
            'status': self.navigation.status if self.navigation else None,
            'final_url': self.navigation.final_url if self.navigation else None,
        }

        if self.observer:
            stats['events'] = self.observer.get_stats()

        return stats

    def __repr__(self) -> str:
        """String representation of page session."""
        status = self.navigation.status if self.navigation else 'not_opened'
        return f"PageSession(status={status}, media={self.config.media.value})"
