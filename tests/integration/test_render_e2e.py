"""End-to-end render tests against a real headless Chromium.

Requires ``playwright install chromium``; the tests skip when the browser
cannot be launched.
"""

import pytest
import pytest_asyncio

from app.render.capture.browser_factory import BrowserConfig
from app.render.capture.engine import CaptureEngine, CaptureEngineConfig
from app.render.errors import BrowserLaunchError
from app.render.models import (
    CaptureFormat,
    CaptureRequest,
    InlineTarget,
    OutcomeStatus,
    ReadinessSpec,
    ReadinessTimeouts,
    ReadyStrategy,
)

pytestmark = pytest.mark.integration

PAGE = """<!doctype html>
<html>
<head><meta charset="utf-8"><title>e2e</title></head>
<body>
  <div id="root"></div>
  <script>
    setTimeout(() => {
      const root = document.getElementById('root');
      root.style.height = '400px';
      root.innerHTML = '<h1>OK</h1>';
    }, 200);
  </script>
</body>
</html>"""


@pytest_asyncio.fixture
async def engine(tmp_path):
    """Capture engine on a real browser."""
    config = CaptureEngineConfig(
        browser_config=BrowserConfig(headless=True, launch_retries=0, max_concurrent_pages=2),
        request_deadline_ms=60000,
        artifacts_dir=tmp_path,
        warm_up=False,
    )
    engine = CaptureEngine(config)

    try:
        await engine.browser_factory.acquire_browser()
    except BrowserLaunchError as e:
        await engine.stop()
        pytest.skip(f"Chromium not available: {e}")

    yield engine
    await engine.stop()


def make_request(capture_format, selector=None, strategy=ReadyStrategy.EAGER):
    return CaptureRequest(
        target=InlineTarget(html=PAGE),
        format=capture_format,
        readiness=ReadinessSpec(
            selector=selector,
            strategy=strategy,
            settle_delay_ms=50,
            timeouts=ReadinessTimeouts(network_idle_ms=2000, size_ms=5000),
        ),
    )


@pytest.mark.asyncio
async def test_inline_pdf(engine):
    """Test that an inline page renders to a PDF."""
    result = await engine.capture(make_request(CaptureFormat.PDF))

    assert result.content_type == "application/pdf"
    assert result.content.startswith(b"%PDF")
    assert engine.browser_factory.active_pages == 0


@pytest.mark.asyncio
async def test_hydrating_page_waits_for_container(engine):
    """Test that the size check waits for client-side rendering."""
    result = await engine.capture(make_request(CaptureFormat.HTML, selector="#root", strategy=ReadyStrategy.NORMAL))

    assert result.readiness.status == OutcomeStatus.READY
    assert b"<h1>OK</h1>" in result.content


@pytest.mark.asyncio
async def test_screenshot(engine):
    """Test PNG rendering."""
    result = await engine.capture(make_request(CaptureFormat.SCREENSHOT))

    assert result.content.startswith(b"\x89PNG")


@pytest.mark.asyncio
async def test_browser_is_reused(engine):
    """Test that consecutive captures share one browser launch."""
    await engine.capture(make_request(CaptureFormat.HTML))
    await engine.capture(make_request(CaptureFormat.HTML))

    assert engine.browser_factory.launch_count == 1
    assert engine.browser_factory.pages_created == 2
