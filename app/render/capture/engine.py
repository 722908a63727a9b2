"""Capture engine tying the render pipeline together.

This module provides the CaptureEngine class: for each validated
CaptureRequest it takes a page from the shared browser inside a scoped
acquisition, runs readiness orchestration, renders the requested format
and converts every failure into the render error taxonomy. The whole
per-page pipeline runs under an outer request deadline; on expiry the
pipeline is cancelled, which closes the page.
"""

import asyncio
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from .browser_factory import BrowserConfig, BrowserFactory
from .diagnostics import DiagnosticsCollector
from .executor import CaptureExecutor
from .page_session import PageSession, PageSessionConfig, WaitUntil
from .readiness import DEFAULT_STEP_GRACE_MS, NavigationPolicy, ReadinessOrchestrator, StepKind
from ..errors import AuthRedirectError, DeadlineExceededError, NavigationError, RenderError
from ..models.capture import CaptureRequest, CaptureResult, ReadinessOutcome, ReadinessState
from ..utils.target_resolver import build_extra_headers

logger = logging.getLogger(__name__)


class CaptureEngineConfig:
    """Configuration for the capture engine."""

    def __init__(
        self,
        browser_config: Optional[BrowserConfig] = None,
        request_deadline_ms: Optional[int] = None,
        step_grace_ms: int = DEFAULT_STEP_GRACE_MS,
        wait_until: str = WaitUntil.DOMCONTENTLOADED,
        auth_markers: Tuple[str, ...] = ("login", "auth"),
        enable_page_observer: bool = True,
        diagnostics_enabled: bool = True,
        artifacts_dir: Optional[Path] = None,
        diagnostics_timeout_ms: int = 10000,
        warm_up: bool = True,
    ):
        """Initialize capture engine configuration.

        Args:
            browser_config: Browser factory configuration
            request_deadline_ms: Hard ceiling on one capture, from page acquisition to bytes.
                When None, each request gets its worst-case pipeline duration
                so soft readiness failures still end in a capture
            step_grace_ms: Slack added to each readiness step budget
            wait_until: Lifecycle event the navigating step waits for
            auth_markers: URL path segments that identify a login page
            enable_page_observer: Log page console and network events
            diagnostics_enabled: Collect screenshots after soft readiness failures
            artifacts_dir: Directory for diagnostic screenshots (system temp dir if None)
            diagnostics_timeout_ms: Upper bound on one diagnostics collection
            warm_up: Launch the browser in the background on start()
        """
        self.browser_config = browser_config or BrowserConfig()
        self.request_deadline_ms = request_deadline_ms
        self.step_grace_ms = step_grace_ms
        self.wait_until = wait_until
        self.auth_markers = tuple(auth_markers)
        self.enable_page_observer = enable_page_observer
        self.diagnostics_enabled = diagnostics_enabled
        self.artifacts_dir = Path(artifacts_dir) if artifacts_dir else None
        self.diagnostics_timeout_ms = diagnostics_timeout_ms
        self.warm_up = warm_up

    def create_page_session_config(self, request: CaptureRequest) -> PageSessionConfig:
        """Create the page session config for one request."""
        return PageSessionConfig(
            media=request.media,
            extra_headers=build_extra_headers(request.target, request.options.extra_headers),
            wait_until=self.wait_until,
            enable_observer=self.enable_page_observer,
        )


class CaptureEngine:
    """Runs capture requests against the shared browser."""

    def __init__(
        self,
        config: Optional[CaptureEngineConfig] = None,
        browser_factory: Optional[BrowserFactory] = None,
        executor: Optional[CaptureExecutor] = None,
        diagnostics: Optional[DiagnosticsCollector] = None,
    ):
        """Initialize capture engine.

        Args:
            config: Engine configuration (uses defaults if None)
            browser_factory: Shared browser owner (built from config if None)
            executor: Capture executor (default executor if None)
            diagnostics: Diagnostics collector (built from config if None)
        """
        self.config = config or CaptureEngineConfig()
        self.browser_factory = browser_factory or BrowserFactory(self.config.browser_config)
        self.executor = executor or CaptureExecutor()
        self.diagnostics = diagnostics or DiagnosticsCollector(
            artifacts_dir=self.config.artifacts_dir,
            enabled=self.config.diagnostics_enabled,
            timeout_ms=self.config.diagnostics_timeout_ms,
        )
        self.navigation_policy = NavigationPolicy(auth_markers=self.config.auth_markers)
        self._is_running = False

        self.stats = {
            'captures_attempted': 0,
            'captures_successful': 0,
            'captures_failed': 0,
            'captures_with_warnings': 0,
            'navigation_failures': 0,
            'deadlines_exceeded': 0,
            'total_duration_ms': 0.0,
            'start_time': None,
        }

    async def start(self) -> None:
        """Start the engine, warming up the browser without waiting for it."""
        if self._is_running:
            logger.warning("Capture engine already running")
            return

        logger.info("Starting capture engine")
        if self.config.warm_up:
            self.browser_factory.warm_up()

        self.stats['start_time'] = datetime.utcnow()
        self._is_running = True

    async def stop(self) -> None:
        """Stop the engine and shut down the browser."""
        logger.info("Stopping capture engine")
        await self.browser_factory.shutdown()
        self._is_running = False

    @property
    def is_running(self) -> bool:
        return self._is_running

    async def capture(self, request: CaptureRequest) -> CaptureResult:
        """Capture one request.

        Args:
            request: Validated capture request

        Returns:
            CaptureResult with rendered bytes and readiness outcome

        Raises:
            NavigationError: Target unreachable, non-OK or auth redirect
            CaptureError: Render failed
            CapacityExceededError: No page slot freed up in time
            DeadlineExceededError: Request deadline expired
            BrowserLaunchError: Browser unavailable
        """
        loop = asyncio.get_running_loop()
        started = loop.time()
        label = request.target.label
        deadline_ms = self.deadline_ms_for(request)
        self.stats['captures_attempted'] += 1

        try:
            result = await asyncio.wait_for(
                self._capture(request),
                timeout=deadline_ms / 1000.0
            )
        except asyncio.TimeoutError:
            self.stats['captures_failed'] += 1
            self.stats['deadlines_exceeded'] += 1
            logger.error(
                f"Capture deadline of {deadline_ms}ms exceeded: {label}",
                extra={"target": label}
            )
            raise DeadlineExceededError(deadline_ms=deadline_ms)
        except RenderError as e:
            self.stats['captures_failed'] += 1
            if isinstance(e, NavigationError):
                self.stats['navigation_failures'] += 1
            raise
        except Exception as e:
            self.stats['captures_failed'] += 1
            logger.exception(f"Unexpected capture failure for {label}: {e}")
            raise

        duration_ms = (loop.time() - started) * 1000
        result.duration_ms = duration_ms

        self.stats['captures_successful'] += 1
        self.stats['total_duration_ms'] += duration_ms
        if result.readiness and result.readiness.warnings:
            self.stats['captures_with_warnings'] += 1

        logger.info(
            f"Captured {request.format.value} of {label} in {duration_ms:.0f}ms "
            f"({result.size} bytes, {len(result.readiness.warnings) if result.readiness else 0} warnings)",
            extra={"target": label}
        )
        return result

    def deadline_ms_for(self, request: CaptureRequest) -> int:
        """Outer deadline for one request.

        A configured ``request_deadline_ms`` is used as is. Otherwise the
        deadline covers waiting for a page slot, every readiness step at its
        full budget, diagnostics after each soft step and the render itself.
        """
        if self.config.request_deadline_ms is not None:
            return self.config.request_deadline_ms

        planner = ReadinessOrchestrator(None, request.readiness, step_grace_ms=self.config.step_grace_ms)
        worst_case_ms = (
            self.browser_factory.config.page_acquire_timeout_ms
            + planner.max_duration_ms()
            + request.options.capture_timeout_ms
        )
        if self.diagnostics.enabled:
            soft_steps = sum(1 for step in planner.build_steps() if step.kind == StepKind.SOFT)
            worst_case_ms += soft_steps * self.diagnostics.timeout_ms
        return worst_case_ms

    async def _capture(self, request: CaptureRequest) -> CaptureResult:
        async with self.browser_factory.page() as page:
            session = PageSession(page, self.config.create_page_session_config(request))
            orchestrator = ReadinessOrchestrator(
                session,
                request.readiness,
                diagnostics=self.diagnostics,
                navigation=self.navigation_policy,
                step_grace_ms=self.config.step_grace_ms,
            )

            outcome = await orchestrator.run(request.target)
            if outcome.is_failed:
                raise self._navigation_error(outcome)

            return await self.executor.capture(session, request.format, request.options, readiness=outcome)

    @staticmethod
    def _navigation_error(outcome: ReadinessOutcome) -> NavigationError:
        """Convert a failed outcome into the error the API reports."""
        details = outcome.details
        context = {
            'target_url': details.get('target_url'),
            'status': details.get('status'),
            'final_url': details.get('final_url'),
        }

        if outcome.final_state == ReadinessState.AUTH_REDIRECT_DETECTED:
            return AuthRedirectError(**context)
        return NavigationError(message=outcome.reason or "Navigation failed", **context)

    def get_stats(self) -> Dict[str, Any]:
        """Get engine statistics."""
        stats = self.stats.copy()

        successful = stats['captures_successful']
        if successful > 0:
            stats['average_duration_ms'] = stats['total_duration_ms'] / successful

        if stats['start_time']:
            stats['uptime_seconds'] = (datetime.utcnow() - stats['start_time']).total_seconds()

        stats['browser'] = self.browser_factory.get_stats()
        return stats

    def __repr__(self) -> str:
        """String representation of capture engine."""
        return (
            f"CaptureEngine(running={self._is_running}, "
            f"captured={self.stats['captures_successful']}/{self.stats['captures_attempted']})"
        )
