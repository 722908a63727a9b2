"""Post-mortem diagnostics for soft readiness failures.

When a readiness check gives up, the DiagnosticsCollector saves a
full-page screenshot to a scratch directory and records the serialized
document length, tagged with the state that failed. Collection is bounded
by its own timeout and never raises.
"""

import asyncio
import logging
import tempfile
import time
from pathlib import Path
from typing import Optional, Union

from .page_session import PageSession
from ..models.capture import DiagnosticsReport, ReadinessState

logger = logging.getLogger(__name__)


class DiagnosticsCollector:
    """Saves screenshots and document sizes when readiness degrades."""

    def __init__(
        self,
        artifacts_dir: Optional[Union[str, Path]] = None,
        enabled: bool = True,
        timeout_ms: int = 10000,
    ):
        """Initialize diagnostics collector.

        Args:
            artifacts_dir: Directory for screenshots, defaults to the system temp dir
            enabled: When False, collect() returns None without touching the page
            timeout_ms: Upper bound on one collection
        """
        self.artifacts_dir = Path(artifacts_dir) if artifacts_dir else Path(tempfile.gettempdir())
        self.enabled = enabled
        self.timeout_ms = timeout_ms
        self.reports_collected = 0

    async def collect(
        self,
        session: PageSession,
        state: ReadinessState,
        reason: Optional[str] = None
    ) -> Optional[DiagnosticsReport]:
        """Collect diagnostics for ``state``.

        Returns:
            DiagnosticsReport, with ``error`` set when collection partly failed,
            or None when disabled
        """
        if not self.enabled:
            return None

        report = DiagnosticsReport(state=state, reason=reason)

        try:
            await asyncio.wait_for(self._collect(session, report), timeout=self.timeout_ms / 1000.0)
        except asyncio.TimeoutError:
            report.error = f"diagnostics timed out after {self.timeout_ms}ms"
        except Exception as e:
            report.error = str(e) or type(e).__name__

        if report.error:
            logger.warning(f"Diagnostics for {state.value} incomplete: {report.error}")

        self.reports_collected += 1
        return report

    async def _collect(self, session: PageSession, report: DiagnosticsReport) -> None:
        self.artifacts_dir.mkdir(parents=True, exist_ok=True)

        path = self.artifacts_dir / f"{report.state.value}-failed-{int(time.time() * 1000)}.png"
        await session.screenshot(path=str(path), full_page=True)
        report.screenshot_path = str(path)

        html = await session.content()
        report.html_length = len(html)

        logger.debug(f"Diagnostics saved to {path}")
