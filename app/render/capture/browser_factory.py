"""Browser factory owning the single shared Playwright browser.

This module provides the BrowserFactory class that lazily launches one
long-lived browser, hands out one isolated page per request through a
scoped context manager, bounds the number of concurrent pages, and tears
the browser down on shutdown.

The launch is memoized as a single shared ``asyncio.Task``: the first
caller creates it and every concurrent caller awaits the same task, so a
burst of requests never launches more than one browser process.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Dict, List, Optional

from playwright.async_api import (
    Browser,
    Page,
    Playwright,
    async_playwright
)

from ..errors import BrowserLaunchError, CapacityExceededError

logger = logging.getLogger(__name__)


class BrowserEngineType:
    """Supported browser engine types."""
    CHROMIUM = "chromium"
    FIREFOX = "firefox"
    WEBKIT = "webkit"


DEFAULT_LAUNCH_ARGS = ["--no-sandbox", "--font-render-hinting=none"]


class BrowserConfig:
    """Configuration for browser launch and per-request pages."""

    def __init__(
        self,
        engine: str = BrowserEngineType.CHROMIUM,
        headless: bool = True,
        args: Optional[List[str]] = None,
        slow_mo: int = 0,
        viewport: Optional[Dict[str, int]] = None,
        device_scale_factor: float = 2,
        user_agent: Optional[str] = None,
        ignore_https_errors: bool = False,
        java_script_enabled: bool = True,
        locale: Optional[str] = None,
        timezone: Optional[str] = None,
        launch_retries: int = 2,
        launch_backoff_ms: int = 1000,
        max_concurrent_pages: int = 8,
        page_acquire_timeout_ms: int = 30000,
        **kwargs
    ):
        """Initialize browser configuration.

        Args:
            engine: Browser engine to use (chromium, firefox, webkit)
            headless: Run browser in headless mode
            args: Extra command line switches passed to the browser
            slow_mo: Slow down operations by specified milliseconds
            viewport: Viewport size dict with 'width' and 'height'
            device_scale_factor: Device pixel ratio of every page
            user_agent: Custom User-Agent string
            ignore_https_errors: Ignore SSL/TLS certificate errors
            java_script_enabled: Enable JavaScript execution
            locale: Locale for each page
            timezone: Timezone ID (e.g., 'America/New_York')
            launch_retries: Extra launch attempts after a failed launch
            launch_backoff_ms: Base delay between launch attempts, doubled each time
            max_concurrent_pages: Pages allowed open at once (admission control)
            page_acquire_timeout_ms: How long a request may wait for a free page slot
        """
        self.engine = engine
        self.headless = headless
        self.args = list(DEFAULT_LAUNCH_ARGS if args is None else args)
        self.slow_mo = slow_mo
        self.viewport = viewport or {'width': 1280, 'height': 900}
        self.device_scale_factor = device_scale_factor
        self.user_agent = user_agent
        self.ignore_https_errors = ignore_https_errors
        self.java_script_enabled = java_script_enabled
        self.locale = locale
        self.timezone = timezone
        self.launch_retries = max(0, launch_retries)
        self.launch_backoff_ms = launch_backoff_ms
        self.max_concurrent_pages = max(1, max_concurrent_pages)
        self.page_acquire_timeout_ms = page_acquire_timeout_ms
        self.extra_options = kwargs

    def to_browser_options(self) -> Dict[str, Any]:
        """Convert to Playwright browser launch options."""
        options = {
            'headless': self.headless,
            'slow_mo': self.slow_mo,
        }

        if self.args:
            options['args'] = list(self.args)

        options.update(self.extra_options)

        return options

    def to_page_options(self) -> Dict[str, Any]:
        """Convert to options for ``Browser.new_page``."""
        options: Dict[str, Any] = {
            'viewport': dict(self.viewport),
            'device_scale_factor': self.device_scale_factor,
        }

        if self.user_agent:
            options['user_agent'] = self.user_agent

        if self.ignore_https_errors:
            options['ignore_https_errors'] = True

        if not self.java_script_enabled:
            options['java_script_enabled'] = False

        if self.locale:
            options['locale'] = self.locale

        if self.timezone:
            options['timezone_id'] = self.timezone

        return options


class BrowserFactory:
    """Owns the shared browser process and hands out per-request pages.

    All methods must be called from the event loop that serves requests.
    """

    def __init__(self, config: Optional[BrowserConfig] = None):
        """Initialize browser factory with configuration.

        Args:
            config: Browser configuration object
        """
        self.config = config or BrowserConfig()
        self.playwright: Optional[Playwright] = None
        self.browser: Optional[Browser] = None

        self._launch_task: Optional[asyncio.Task] = None
        self._page_slots = asyncio.Semaphore(self.config.max_concurrent_pages)
        self._active_pages = 0
        self._pages_created = 0
        self._launch_count = 0
        self._is_shut_down = False

    def _ensure_launch(self) -> asyncio.Task:
        """Return the memoized launch task, starting a new launch when needed.

        A fresh launch starts when none was attempted yet, when the previous
        launch failed, or when the launched browser has disconnected.
        """
        task = self._launch_task

        if task is not None and task.done():
            if task.cancelled() or task.exception() is not None:
                logger.warning("Previous browser launch failed; relaunching")
                task = None
            elif not self._browser_connected(task.result()):
                logger.warning("Browser disconnected; relaunching")
                self.browser = None
                task = None

        if task is None:
            self._is_shut_down = False
            task = asyncio.ensure_future(self._launch())
            self._launch_task = task

        return task

    async def acquire_browser(self) -> Browser:
        """Get the shared browser, launching it on first use.

        Safe to call concurrently: all callers await the same launch.

        Raises:
            BrowserLaunchError: If every launch attempt failed
        """
        # Shielded so a cancelled request does not abort the shared launch.
        return await asyncio.shield(self._ensure_launch())

    def warm_up(self) -> asyncio.Task:
        """Start launching the browser in the background without waiting for it."""
        task = self._ensure_launch()
        task.add_done_callback(self._log_warm_up_result)
        return task

    @staticmethod
    def _log_warm_up_result(task: asyncio.Task) -> None:
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(f"Browser warm-up failed: {error}")
        else:
            logger.info("Browser warm-up complete")

    async def _launch(self) -> Browser:
        """Launch the browser, retrying with exponential backoff."""
        attempts = self.config.launch_retries + 1
        last_error: Optional[BaseException] = None

        for attempt in range(attempts):
            try:
                if self.playwright is None:
                    self.playwright = await async_playwright().start()

                if self.config.engine == BrowserEngineType.FIREFOX:
                    browser_type = self.playwright.firefox
                elif self.config.engine == BrowserEngineType.WEBKIT:
                    browser_type = self.playwright.webkit
                else:
                    browser_type = self.playwright.chromium

                logger.info(f"Launching {self.config.engine} (attempt {attempt + 1}/{attempts})")
                browser = await browser_type.launch(**self.config.to_browser_options())

                self.browser = browser
                self._launch_count += 1
                logger.info(f"Browser launched successfully (headless={self.config.headless})")
                return browser

            except Exception as e:
                last_error = e
                logger.warning(f"Browser launch attempt {attempt + 1} failed: {e}")

                if attempt < attempts - 1:
                    delay = self.config.launch_backoff_ms / 1000.0 * (2 ** attempt)
                    await asyncio.sleep(delay)

        logger.error(f"All {attempts} browser launch attempts failed: {last_error}")
        await self._stop_playwright()
        raise BrowserLaunchError(f"Browser launch failed: {last_error}", attempts=attempts)

    @staticmethod
    def _browser_connected(browser: Browser) -> bool:
        try:
            return browser.is_connected()
        except Exception:
            return False

    @asynccontextmanager
    async def page(self, **page_overrides) -> AsyncGenerator[Page, None]:
        """Context manager for a single request's page.

        Waits for a free page slot, opens a fresh page in its own context and
        closes it exactly once when the block exits, whatever the outcome.

        Args:
            **page_overrides: Override default page options

        Raises:
            CapacityExceededError: No page slot freed up in time
            BrowserLaunchError: The browser could not be launched
        """
        try:
            await asyncio.wait_for(
                self._page_slots.acquire(),
                timeout=self.config.page_acquire_timeout_ms / 1000.0
            )
        except asyncio.TimeoutError:
            logger.warning(f"No page slot free within {self.config.page_acquire_timeout_ms}ms")
            raise CapacityExceededError(max_pages=self.config.max_concurrent_pages)

        try:
            browser = await self.acquire_browser()

            page_options = self.config.to_page_options()
            page_options.update(page_overrides)

            page = await browser.new_page(**page_options)
            self._pages_created += 1
            self._active_pages += 1
            logger.debug(f"Opened page #{self._pages_created} ({self._active_pages} active)")

            try:
                yield page
            finally:
                self._active_pages -= 1
                try:
                    await page.close()
                except Exception as e:
                    logger.warning(f"Error closing page: {e}")
        finally:
            self._page_slots.release()

    async def shutdown(self) -> None:
        """Close the browser and stop Playwright.

        No-op when no launch was ever attempted; errors are logged, never raised.
        """
        if self._is_shut_down:
            return
        self._is_shut_down = True

        task = self._launch_task
        self._launch_task = None

        if task is None and self.playwright is None:
            return

        logger.info("Shutting down browser")

        if task is not None:
            try:
                browser = await task
                await browser.close()
            except Exception as e:
                logger.debug(f"Ignoring error while closing browser: {e}")

        self.browser = None
        await self._stop_playwright()
        logger.info("Browser shut down")

    async def _stop_playwright(self) -> None:
        if self.playwright is None:
            return
        try:
            await self.playwright.stop()
        except Exception as e:
            logger.debug(f"Ignoring error while stopping Playwright: {e}")
        self.playwright = None

    async def get_browser_version(self) -> Optional[str]:
        """Get browser version information, or None if not launched."""
        if not self.browser:
            return None

        try:
            return self.browser.version
        except Exception as e:
            logger.error(f"Failed to get browser version: {e}")
            return None

    @property
    def is_running(self) -> bool:
        """Check if a launched browser is connected."""
        if self.browser is None:
            return False
        return self._browser_connected(self.browser)

    @property
    def is_launching(self) -> bool:
        """Check if a launch is in flight."""
        return self._launch_task is not None and not self._launch_task.done()

    @property
    def active_pages(self) -> int:
        """Number of pages currently open."""
        return self._active_pages

    @property
    def pages_created(self) -> int:
        """Total pages opened since the factory was created."""
        return self._pages_created

    @property
    def launch_count(self) -> int:
        """Number of successful browser launches."""
        return self._launch_count

    def get_stats(self) -> Dict[str, Any]:
        """Get factory statistics."""
        return {
            'engine': self.config.engine,
            'running': self.is_running,
            'launching': self.is_launching,
            'launch_count': self._launch_count,
            'active_pages': self._active_pages,
            'pages_created': self._pages_created,
            'max_concurrent_pages': self.config.max_concurrent_pages,
        }

    def __repr__(self) -> str:
        """String representation of browser factory."""
        return (
            f"BrowserFactory(engine={self.config.engine}, "
            f"headless={self.config.headless}, "
            f"running={self.is_running}, "
            f"pages={self.active_pages})"
        )


def create_browser_factory(
    engine: str = BrowserEngineType.CHROMIUM,
    headless: bool = True,
    **kwargs
) -> BrowserFactory:
    """Create a browser factory with simple configuration.

    Args:
        engine: Browser engine to use
        headless: Run in headless mode
        **kwargs: Additional configuration options

    Returns:
        Configured BrowserFactory instance
    """
    config = BrowserConfig(engine=engine, headless=headless, **kwargs)
    return BrowserFactory(config)
