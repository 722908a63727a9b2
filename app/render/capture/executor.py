"""Capture executor turning a ready page into output bytes.

Exactly one format is rendered per request. The render call is bounded by
the capture timeout, which is separate from the readiness timeouts because
printing a long page can legitimately take longer than any single wait.
"""

import asyncio
import logging
from typing import Optional

from .page_session import PageSession
from ..errors import CaptureError
from ..models.capture import CaptureFormat, CaptureOptions, CaptureResult, ReadinessOutcome

logger = logging.getLogger(__name__)


class CaptureExecutor:
    """Renders the session's page as PDF, PNG screenshot or HTML."""

    async def capture(
        self,
        session: PageSession,
        capture_format: CaptureFormat,
        options: Optional[CaptureOptions] = None,
        readiness: Optional[ReadinessOutcome] = None
    ) -> CaptureResult:
        """Render the page in ``capture_format``.

        Args:
            session: Session whose page passed readiness orchestration
            capture_format: Output format
            options: Capture options (PDF layout, screenshot mode, timeout)
            readiness: Outcome attached to the result for response headers

        Returns:
            CaptureResult with the rendered bytes

        Raises:
            CaptureError: Render failed, timed out or produced no bytes
        """
        options = options or CaptureOptions()
        capture_format = CaptureFormat(capture_format)
        timeout_s = options.capture_timeout_ms / 1000.0

        try:
            content = await asyncio.wait_for(
                self._render(session, capture_format, options),
                timeout=timeout_s
            )
        except asyncio.TimeoutError:
            logger.error(f"{capture_format.value} render timed out after {options.capture_timeout_ms}ms")
            raise CaptureError(
                f"{capture_format.value} render timed out",
                capture_format=capture_format.value
            )
        except CaptureError:
            raise
        except Exception as e:
            logger.error(
                f"{capture_format.value} render failed: {e}",
                extra={"final_url": session.final_url}
            )
            raise CaptureError(f"{capture_format.value} render failed", capture_format=capture_format.value)

        if not content:
            raise CaptureError(f"{capture_format.value} render produced no output", capture_format=capture_format.value)

        logger.debug(f"Rendered {capture_format.value}: {len(content)} bytes")

        return CaptureResult(
            content=content,
            content_type=capture_format.content_type,
            format=capture_format,
            file_name=options.file_name if capture_format == CaptureFormat.PDF else None,
            readiness=readiness,
            final_url=session.final_url,
        )

    async def _render(self, session: PageSession, capture_format: CaptureFormat, options: CaptureOptions) -> bytes:
        if capture_format == CaptureFormat.PDF:
            return await session.pdf(**options.pdf_options())

        if capture_format == CaptureFormat.SCREENSHOT:
            return await session.screenshot(full_page=options.full_page)

        html = await session.content()
        return html.encode("utf-8")
