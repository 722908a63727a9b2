"""Shared test fixtures and configuration for Page Press tests."""

import pytest
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock
import sys

# Add project root to Python path
sys.path.insert(0, str(Path(__file__).parent.parent))

from app.render.models import (
    CaptureFormat,
    CaptureRequest,
    CaptureResult,
    InlineTarget,
    ReadinessOutcome,
    ReadinessSpec,
    ReadinessTimeouts,
    RemoteTarget,
)


def make_response(status=200, url="https://app.example.com/doc"):
    """Fake Playwright response."""
    response = MagicMock()
    response.status = status
    response.url = url
    response.ok = 200 <= status < 300
    return response


def make_page(url="https://app.example.com/doc", status=200):
    """Fake Playwright page whose waits all succeed immediately."""
    page = AsyncMock()
    page.on = MagicMock()
    page.url = url
    page.goto.return_value = make_response(status, url)
    page.set_content.return_value = None
    page.wait_for_selector.return_value = None
    page.wait_for_load_state.return_value = None
    page.wait_for_function.return_value = None
    page.evaluate.return_value = True
    page.screenshot.return_value = b"\x89PNG fake"
    page.content.return_value = "<html><body><h1>OK</h1></body></html>"
    page.pdf.return_value = b"%PDF-1.7 fake"
    page.close.return_value = None
    return page


@pytest.fixture
def mock_page():
    """Fake page for a remote target that loads with 200."""
    return make_page()


@pytest.fixture
def page_factory():
    """Build fake pages with a chosen final URL and status."""
    return make_page


@pytest.fixture
def response_factory():
    """Build fake navigation responses."""
    return make_response


@pytest.fixture
def fast_timeouts():
    """Short per-step timeouts so failure paths finish quickly."""
    return ReadinessTimeouts(
        navigation_ms=1000,
        load_ms=200,
        network_idle_ms=200,
        fonts_ms=200,
        size_ms=200,
        evaluate_ms=200,
    )


@pytest.fixture
def remote_request(fast_timeouts):
    """PDF capture request for an allowlisted remote page."""
    return CaptureRequest(
        target=RemoteTarget(url="https://app.example.com/doc"),
        format=CaptureFormat.PDF,
        readiness=ReadinessSpec(selector="#root", settle_delay_ms=0, timeouts=fast_timeouts),
    )


@pytest.fixture
def inline_request(fast_timeouts):
    """PDF capture request for inline HTML."""
    return CaptureRequest(
        target=InlineTarget(html="<html><head></head><body><h1>OK</h1></body></html>"),
        format=CaptureFormat.PDF,
        readiness=ReadinessSpec(settle_delay_ms=0, timeouts=fast_timeouts),
    )


@pytest.fixture
def pdf_result():
    """Successful PDF capture result."""
    return CaptureResult(
        content=b"%PDF-1.7 fake",
        content_type="application/pdf",
        format=CaptureFormat.PDF,
        file_name="resume.pdf",
        readiness=ReadinessOutcome.ready([], []),
        final_url="https://app.example.com/doc",
    )
