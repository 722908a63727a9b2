"""Unit tests for the diagnostics collector."""

import pytest
import asyncio
from pathlib import Path

from app.render.capture.diagnostics import DiagnosticsCollector
from app.render.capture.page_session import PageSession
from app.render.models import ReadinessState


class TestDiagnosticsCollector:
    """Tests for DiagnosticsCollector class."""

    @pytest.mark.asyncio
    async def test_collect_saves_screenshot_and_html_length(self, mock_page, tmp_path):
        """Test a full collection."""
        collector = DiagnosticsCollector(artifacts_dir=tmp_path / "diag")
        session = PageSession(mock_page)

        report = await collector.collect(session, ReadinessState.IMAGES_READY, "images still loading")

        assert report.state == ReadinessState.IMAGES_READY
        assert report.reason == "images still loading"
        assert report.error is None
        assert report.html_length == len(mock_page.content.return_value)

        path = Path(report.screenshot_path)
        assert path.parent == tmp_path / "diag"
        assert path.name.startswith("images_ready-failed-")
        assert path.suffix == ".png"
        assert mock_page.screenshot.call_args.kwargs['full_page'] is True
        assert collector.reports_collected == 1

    @pytest.mark.asyncio
    async def test_disabled_collector_touches_nothing(self, mock_page, tmp_path):
        """Test that a disabled collector returns None."""
        collector = DiagnosticsCollector(artifacts_dir=tmp_path, enabled=False)

        report = await collector.collect(PageSession(mock_page), ReadinessState.SIZE_STABLE)

        assert report is None
        mock_page.screenshot.assert_not_awaited()
        assert collector.reports_collected == 0

    @pytest.mark.asyncio
    async def test_screenshot_failure_is_reported_not_raised(self, mock_page, tmp_path):
        """Test that a failing screenshot ends up in the report."""
        mock_page.screenshot.side_effect = Exception("Target page, context or browser has been closed")
        collector = DiagnosticsCollector(artifacts_dir=tmp_path)

        report = await collector.collect(PageSession(mock_page), ReadinessState.ELEMENT_ATTACHING)

        assert report.screenshot_path is None
        assert "has been closed" in report.error

    @pytest.mark.asyncio
    async def test_collection_is_bounded(self, mock_page, tmp_path):
        """Test that a hanging screenshot times out."""
        async def hang(*args, **kwargs):
            await asyncio.sleep(10)

        mock_page.screenshot.side_effect = hang
        collector = DiagnosticsCollector(artifacts_dir=tmp_path, timeout_ms=50)

        report = await collector.collect(PageSession(mock_page), ReadinessState.SETTLING)

        assert report.error == "diagnostics timed out after 50ms"

    def test_defaults_to_temp_dir(self):
        """Test that the artifacts directory defaults to the system temp dir."""
        import tempfile

        collector = DiagnosticsCollector()

        assert collector.artifacts_dir == Path(tempfile.gettempdir())
        assert collector.enabled is True
