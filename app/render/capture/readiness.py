"""Readiness orchestration for loaded pages.

This module decides when a dynamically hydrating page is ready to be
captured. ``ReadinessOrchestrator`` drives a ``PageSession`` through an
ordered list of ``ReadinessStep`` records:

    navigating -> element_attaching -> document_loading -> network_settling
    -> fonts_ready -> images_ready -> size_stable -> settling -> ready

Each step has a kind that fixes what its failure means:

* ``hard``: the request fails immediately (navigation only).
* ``soft``: the failure is recorded as a warning, diagnostics are
  collected, and orchestration continues.
* ``best_effort``: the failure is logged at debug level and ignored.

Every step is bounded twice: by the driver timeout it passes to
Playwright and by an outer ``asyncio.wait_for`` of its budget plus a small
grace, so no single step can stall the request.
"""

import asyncio
import logging
import posixpath
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple
from urllib.parse import urlsplit

from .diagnostics import DiagnosticsCollector
from .page_session import PageSession
from ..models.capture import (
    CheckFailure,
    CheckResult,
    CheckStatus,
    InlineTarget,
    ReadinessOutcome,
    ReadinessSpec,
    ReadinessState,
    RemoteTarget,
    TargetSpec,
)

logger = logging.getLogger(__name__)

FONTS_READY_JS = """async () => {
    if (document.fonts && document.fonts.ready) {
        await document.fonts.ready;
    }
    return true;
}"""

IMAGES_COMPLETE_JS = """() => Array.from(document.images).every(
    img => img.complete && img.naturalWidth > 0
)"""

ELEMENT_TALL_ENOUGH_JS = """({ selector, minHeight }) => {
    const el = document.querySelector(selector);
    if (!el) return false;
    return el.getBoundingClientRect().height > minHeight;
}"""

DEFAULT_STEP_GRACE_MS = 2000


class StepKind:
    """How a step's failure affects the request."""
    HARD = "hard"
    SOFT = "soft"
    BEST_EFFORT = "best_effort"


@dataclass
class ReadinessStep:
    """One state of the readiness state machine."""
    state: ReadinessState
    kind: str
    budget_ms: int
    run: Callable[[], Awaitable[CheckResult]] = field(repr=False)


class NavigationPolicy:
    """Rules that classify the result of the navigating step."""

    def __init__(
        self,
        auth_markers: Tuple[str, ...] = ("login", "auth"),
        auth_statuses: Tuple[int, ...] = (401,),
    ):
        """Initialize navigation policy.

        Args:
            auth_markers: Path segments that identify an authentication page
            auth_statuses: Final statuses treated as an auth redirect
        """
        self.auth_markers = tuple(m.lower() for m in auth_markers)
        self.auth_statuses = tuple(auth_statuses)

    def is_auth_url(self, url: Optional[str]) -> bool:
        """Check whether any path segment of ``url`` is an auth marker.

        Segments are compared case-insensitively with any extension stripped,
        so ``/Login``, ``/auth/`` and ``/login.php`` match but ``/author`` does not.
        """
        if not url:
            return False

        try:
            path = urlsplit(url).path
        except ValueError:
            return False

        for segment in path.split("/"):
            stem = posixpath.splitext(segment)[0].lower()
            if stem and stem in self.auth_markers:
                return True
        return False

    @staticmethod
    def is_ok_status(status: Optional[int]) -> bool:
        return status is not None and 200 <= status < 400


class ReadinessOrchestrator:
    """Drives one page session from navigation to ready."""

    def __init__(
        self,
        session: Optional[PageSession],
        spec: ReadinessSpec,
        diagnostics: Optional[DiagnosticsCollector] = None,
        navigation: Optional[NavigationPolicy] = None,
        step_grace_ms: int = DEFAULT_STEP_GRACE_MS,
    ):
        """Initialize readiness orchestrator.

        Args:
            session: Session on the request's page (None to plan step budgets only)
            spec: Selector, strategy, settle delay and timeouts
            diagnostics: Collector run after each soft failure (optional)
            navigation: Navigation classification rules
            step_grace_ms: Slack added to each step budget for the outer bound
        """
        self.session = session
        self.spec = spec
        self.diagnostics = diagnostics
        self.navigation = navigation or NavigationPolicy()
        self.step_grace_ms = step_grace_ms

        self.state = ReadinessState.NAVIGATING
        self._target: Optional[TargetSpec] = None

    def build_steps(self) -> List[ReadinessStep]:
        """Build the ordered step list."""
        spec = self.spec
        timeouts = spec.timeouts

        return [
            ReadinessStep(ReadinessState.NAVIGATING, StepKind.HARD,
                          timeouts.navigation_ms, self._navigate),
            ReadinessStep(ReadinessState.ELEMENT_ATTACHING, StepKind.SOFT,
                          spec.selector_timeout_ms, self._wait_for_element),
            ReadinessStep(ReadinessState.DOCUMENT_LOADING, StepKind.SOFT,
                          timeouts.load_ms, self._wait_for_load),
            ReadinessStep(ReadinessState.NETWORK_SETTLING, StepKind.BEST_EFFORT,
                          timeouts.network_idle_ms, self._wait_for_network_idle),
            ReadinessStep(ReadinessState.FONTS_READY, StepKind.BEST_EFFORT,
                          timeouts.fonts_ms, self._wait_for_fonts),
            ReadinessStep(ReadinessState.IMAGES_READY, StepKind.SOFT,
                          spec.image_wait_ms, self._wait_for_images),
            ReadinessStep(ReadinessState.SIZE_STABLE, StepKind.SOFT,
                          timeouts.size_ms, self._wait_for_size),
            ReadinessStep(ReadinessState.SETTLING, StepKind.SOFT,
                          spec.settle_delay_ms + 2 * timeouts.evaluate_ms, self._settle),
        ]

    def max_duration_ms(self) -> int:
        """Upper bound on the time ``run`` can take before capture."""
        return sum(step.budget_ms + self.step_grace_ms for step in self.build_steps())

    async def run(self, target: TargetSpec) -> ReadinessOutcome:
        """Drive the page through every readiness state.

        Returns:
            Ready or ReadyWithWarnings once the settling step finished, or
            Failed when the navigating step failed
        """
        checks: List[CheckResult] = []
        warnings: List[CheckFailure] = []

        self._target = target
        await self.session.prepare(label=target.label)

        for step in self.build_steps():
            self.state = step.state
            result = await self._execute(step)
            checks.append(result)

            if result.status == CheckStatus.FATAL:
                self.state = result.failure_state or ReadinessState.NAVIGATION_FAILED
                logger.error(
                    f"Readiness failed in {step.state.value}: {result.reason}",
                    extra={"target": target.label, "state": self.state.value, **result.details}
                )
                return ReadinessOutcome.failed(result, checks)

            if result.status == CheckStatus.WARNING:
                warnings.append(CheckFailure(state=step.state, reason=result.reason or "failed"))
                logger.warning(
                    f"{step.state.value} not satisfied; proceeding: {result.reason}",
                    extra={"target": target.label, "final_url": self.session.final_url}
                )
                await self._collect_diagnostics(step.state, result.reason)

        self.state = ReadinessState.READY
        logger.debug(f"Page ready with {len(warnings)} warning(s): {target.label}")
        return ReadinessOutcome.ready(checks, warnings)

    async def _execute(self, step: ReadinessStep) -> CheckResult:
        """Run one step under its outer bound and classify any failure by kind."""
        loop = asyncio.get_running_loop()
        started = loop.time()

        try:
            result = await asyncio.wait_for(
                step.run(),
                timeout=(step.budget_ms + self.step_grace_ms) / 1000.0
            )
        except asyncio.TimeoutError:
            result = self._failure(step, f"timed out after {step.budget_ms}ms")
        except Exception as e:
            result = self._failure(step, str(e) or type(e).__name__)

        result.duration_ms = (loop.time() - started) * 1000
        return result

    def _failure(self, step: ReadinessStep, reason: str) -> CheckResult:
        if step.kind == StepKind.HARD:
            return CheckResult.fatal(step.state, reason, **self._target_details())
        if step.kind == StepKind.BEST_EFFORT:
            logger.debug(f"{step.state.value} ignored: {reason}")
            return CheckResult.skipped(step.state, reason)
        return CheckResult.warning(step.state, reason)

    def _target_details(self) -> Dict[str, Any]:
        if isinstance(self._target, RemoteTarget):
            return {"target_url": self._target.url}
        return {}

    async def _collect_diagnostics(self, state: ReadinessState, reason: Optional[str]) -> None:
        if self.diagnostics is None:
            return
        report = await self.diagnostics.collect(self.session, state, reason)
        if report is not None and report.screenshot_path:
            logger.info(
                f"Diagnostics for {state.value}: {report.screenshot_path} (html {report.html_length} chars)"
            )

    async def _navigate(self) -> CheckResult:
        target = self._target
        state = ReadinessState.NAVIGATING
        details = self._target_details()

        try:
            result = await self.session.open(target, timeout_ms=self.spec.timeouts.navigation_ms)
        except Exception as e:
            return CheckResult.fatal(state, "Navigation failed", error=str(e) or type(e).__name__, **details)

        if isinstance(target, InlineTarget):
            return CheckResult.ok(state)

        details.update({"status": result.status, "final_url": result.final_url})

        if (result.status in self.navigation.auth_statuses
                or self.navigation.is_auth_url(result.final_url)
                or self.navigation.is_auth_url(result.response_url)):
            return CheckResult.fatal(
                state,
                "Auth redirect detected",
                failure_state=ReadinessState.AUTH_REDIRECT_DETECTED,
                **details
            )

        if not result.response_received:
            return CheckResult.fatal(state, "No response from target", **details)

        if not self.navigation.is_ok_status(result.status):
            return CheckResult.fatal(state, "Target returned non-OK status", **details)

        return CheckResult.ok(state, **details)

    async def _wait_for_element(self) -> CheckResult:
        state = ReadinessState.ELEMENT_ATTACHING
        if not self.spec.selector:
            return CheckResult.skipped(state, "no selector")

        await self.session.wait_for_selector(
            self.spec.selector,
            state=self.spec.profile.selector_state.value,
            timeout_ms=self.spec.selector_timeout_ms
        )
        return CheckResult.ok(state, selector=self.spec.selector)

    async def _wait_for_load(self) -> CheckResult:
        await self.session.wait_for_load_state("load", timeout_ms=self.spec.timeouts.load_ms)
        return CheckResult.ok(ReadinessState.DOCUMENT_LOADING)

    async def _wait_for_network_idle(self) -> CheckResult:
        await self.session.wait_for_load_state("networkidle", timeout_ms=self.spec.timeouts.network_idle_ms)
        return CheckResult.ok(ReadinessState.NETWORK_SETTLING)

    async def _wait_for_fonts(self) -> CheckResult:
        await self.session.evaluate(FONTS_READY_JS, timeout_ms=self.spec.timeouts.fonts_ms)
        return CheckResult.ok(ReadinessState.FONTS_READY)

    async def _wait_for_images(self) -> CheckResult:
        state = ReadinessState.IMAGES_READY
        wait_ms = self.spec.image_wait_ms
        if wait_ms <= 0:
            return CheckResult.skipped(state, "image wait disabled")

        if await self.session.poll_predicate(IMAGES_COMPLETE_JS, timeout_ms=wait_ms):
            return CheckResult.ok(state)
        return CheckResult.warning(state, "images still loading")

    async def _wait_for_size(self) -> CheckResult:
        state = ReadinessState.SIZE_STABLE
        if not self.spec.selector:
            return CheckResult.skipped(state, "no selector")

        min_height = self.spec.profile.min_height_px
        reached = await self.session.poll_predicate(
            ELEMENT_TALL_ENOUGH_JS,
            timeout_ms=self.spec.timeouts.size_ms,
            arg={"selector": self.spec.selector, "minHeight": min_height}
        )
        if reached:
            return CheckResult.ok(state, min_height_px=min_height)
        return CheckResult.warning(state, "container not tall enough", min_height_px=min_height)

    async def _settle(self) -> CheckResult:
        evaluate_s = self.spec.timeouts.evaluate_ms / 1000.0

        await asyncio.wait_for(self.session.scroll_to_bottom(), timeout=evaluate_s)
        await self.session.pause(self.spec.settle_delay_ms)
        await asyncio.wait_for(self.session.scroll_to_top(), timeout=evaluate_s)

        return CheckResult.ok(ReadinessState.SETTLING, settle_delay_ms=self.spec.settle_delay_ms)
