"""Unit tests for capture engine."""

import pytest
import asyncio
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

from app.render.capture.engine import CaptureEngine, CaptureEngineConfig
from app.render.capture.browser_factory import BrowserConfig
from app.render.capture.readiness import ReadinessOrchestrator, StepKind
from app.render.errors import (
    AuthRedirectError, CaptureError, DeadlineExceededError, NavigationError
)
from app.render.models import (
    CaptureRequest, CheckResult, OutcomeStatus, ReadinessOutcome, ReadinessSpec, ReadinessState,
    ReadinessTimeouts, ReadyStrategy, RemoteTarget
)


class TestCaptureEngineConfig:
    """Tests for CaptureEngineConfig class."""

    def test_default_config(self):
        """Test default configuration values."""
        config = CaptureEngineConfig()

        assert config.request_deadline_ms is None
        assert config.auth_markers == ("login", "auth")
        assert config.diagnostics_enabled is True
        assert config.artifacts_dir is None
        assert config.warm_up is True

    def test_custom_config(self):
        """Test custom configuration."""
        browser_config = BrowserConfig(headless=False)

        config = CaptureEngineConfig(
            browser_config=browser_config,
            request_deadline_ms=5000,
            artifacts_dir="/tmp/diag",
            auth_markers=["signin"]
        )

        assert config.browser_config is browser_config
        assert config.request_deadline_ms == 5000
        assert config.artifacts_dir == Path("/tmp/diag")
        assert config.auth_markers == ("signin",)

    def test_create_page_session_config(self, remote_request):
        """Test page session config derived from a request."""
        config = CaptureEngineConfig(enable_page_observer=False)

        session_config = config.create_page_session_config(remote_request)

        assert session_config.media == remote_request.media
        assert session_config.enable_observer is False
        assert session_config.extra_headers == {}

    def test_page_session_config_for_ngrok(self, remote_request):
        """Test that ngrok targets get the interstitial skip header."""
        request = remote_request.model_copy(
            update={"target": RemoteTarget(url="https://abc123.ngrok-free.app/doc")}
        )

        session_config = CaptureEngineConfig().create_page_session_config(request)

        assert session_config.extra_headers == {"ngrok-skip-browser-warning": "1"}


class TestCaptureEngine:
    """Tests for CaptureEngine class."""

    @pytest.fixture
    def mock_playwright(self, mock_page):
        """Mock Playwright handing out ``mock_page``."""
        with patch('app.render.capture.browser_factory.async_playwright') as mock_pw:
            playwright_mock = AsyncMock()
            async_pw_instance = AsyncMock()
            async_pw_instance.start = AsyncMock(return_value=playwright_mock)
            mock_pw.return_value = async_pw_instance

            browser_mock = AsyncMock()
            browser_mock.is_connected = MagicMock(return_value=True)
            browser_mock.new_page.return_value = mock_page
            playwright_mock.chromium.launch.return_value = browser_mock

            yield {'playwright': playwright_mock, 'browser': browser_mock, 'page': mock_page}

    @pytest.fixture
    def engine_config(self):
        return CaptureEngineConfig(
            browser_config=BrowserConfig(headless=True),
            step_grace_ms=50,
            enable_page_observer=False,
            diagnostics_enabled=False,
            warm_up=False,
        )

    @pytest.fixture
    def engine(self, engine_config):
        return CaptureEngine(engine_config)

    @pytest.mark.asyncio
    async def test_successful_capture(self, engine, mock_playwright, remote_request):
        """Test a capture from page acquisition to bytes."""
        result = await engine.capture(remote_request)

        assert result.content == b"%PDF-1.7 fake"
        assert result.readiness.status == OutcomeStatus.READY
        assert result.duration_ms is not None
        mock_playwright['page'].close.assert_awaited_once()

        stats = engine.get_stats()
        assert stats['captures_attempted'] == 1
        assert stats['captures_successful'] == 1
        assert stats['captures_failed'] == 0
        assert 'average_duration_ms' in stats
        assert stats['browser']['pages_created'] == 1

    @pytest.mark.asyncio
    async def test_non_ok_status_raises_navigation_error(self, engine, mock_playwright, remote_request, response_factory):
        """Test that a failed navigation becomes a 502 and still closes the page."""
        mock_playwright['page'].goto.return_value = response_factory(503)

        with pytest.raises(NavigationError) as exc_info:
            await engine.capture(remote_request)

        error = exc_info.value
        assert not isinstance(error, AuthRedirectError)
        assert error.status_code == 502
        assert error.error_code == "navigation_failed"
        assert error.details['status'] == 503
        assert error.details['target_url'] == "https://app.example.com/doc"
        mock_playwright['page'].close.assert_awaited_once()
        mock_playwright['page'].pdf.assert_not_awaited()
        assert engine.stats['navigation_failures'] == 1

    @pytest.mark.asyncio
    async def test_auth_redirect(self, engine, mock_playwright, remote_request, response_factory):
        """Test that a login landing page raises the auth redirect error."""
        mock_playwright['page'].goto.return_value = response_factory(200, "https://app.example.com/login")
        mock_playwright['page'].url = "https://app.example.com/login"

        with pytest.raises(AuthRedirectError) as exc_info:
            await engine.capture(remote_request)

        assert exc_info.value.error_code == "auth_redirect_detected"
        assert exc_info.value.details['final_url'] == "https://app.example.com/login"
        mock_playwright['page'].close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_capture_failure_closes_page(self, engine, mock_playwright, remote_request):
        """Test that a render failure propagates and the page closes once."""
        mock_playwright['page'].pdf.side_effect = Exception("Printing failed")

        with pytest.raises(CaptureError):
            await engine.capture(remote_request)

        mock_playwright['page'].close.assert_awaited_once()
        assert engine.stats['captures_failed'] == 1

    @pytest.mark.asyncio
    async def test_deadline_cancels_and_closes_page(self, engine_config, mock_playwright, remote_request):
        """Test the outer request deadline."""
        async def hang(*args, **kwargs):
            await asyncio.sleep(10)

        mock_playwright['page'].goto.side_effect = hang
        engine_config.request_deadline_ms = 50
        engine = CaptureEngine(engine_config)

        with pytest.raises(DeadlineExceededError) as exc_info:
            await engine.capture(remote_request)

        assert exc_info.value.status_code == 504
        mock_playwright['page'].close.assert_awaited_once()
        assert engine.stats['deadlines_exceeded'] == 1
        assert engine.browser_factory.active_pages == 0

    def test_derived_deadline_covers_worst_case(self, remote_request):
        """Test that the default deadline outlasts every readiness budget plus the render."""
        engine = CaptureEngine(CaptureEngineConfig(
            browser_config=BrowserConfig(page_acquire_timeout_ms=1000),
            step_grace_ms=50,
            diagnostics_timeout_ms=500,
        ))
        planner = ReadinessOrchestrator(None, remote_request.readiness, step_grace_ms=50)
        soft_steps = [s for s in planner.build_steps() if s.kind == StepKind.SOFT]

        deadline_ms = engine.deadline_ms_for(remote_request)

        assert len(soft_steps) == 5
        assert deadline_ms == (
            1000 + planner.max_duration_ms() + remote_request.options.capture_timeout_ms + 5 * 500
        )

    def test_derived_deadline_for_shipped_strict_defaults(self):
        """Test the default deadline against default timeouts and the strictest strategy."""
        request = CaptureRequest(
            target=RemoteTarget(url="https://app.example.com/doc"),
            readiness=ReadinessSpec(selector="#root", strategy=ReadyStrategy.STRICT),
        )
        engine = CaptureEngine(CaptureEngineConfig(diagnostics_enabled=False))
        readiness_ms = ReadinessOrchestrator(None, request.readiness).max_duration_ms()

        assert engine.deadline_ms_for(request) > readiness_ms + request.options.capture_timeout_ms

    def test_configured_deadline_is_a_ceiling(self, remote_request):
        engine = CaptureEngine(CaptureEngineConfig(request_deadline_ms=5000))

        assert engine.deadline_ms_for(remote_request) == 5000

    @pytest.mark.asyncio
    async def test_hung_soft_steps_still_capture(self, engine, mock_playwright):
        """Test that a page whose soft checks all run out of time is captured, not timed out."""
        async def hang(*args, **kwargs):
            await asyncio.sleep(10)

        page = mock_playwright['page']
        page.wait_for_selector.side_effect = hang
        page.wait_for_load_state.side_effect = hang
        page.wait_for_function.side_effect = hang
        request = CaptureRequest(
            target=RemoteTarget(url="https://app.example.com/doc"),
            readiness=ReadinessSpec(
                selector="#root",
                settle_delay_ms=0,
                timeouts=ReadinessTimeouts(
                    navigation_ms=200, selector_ms=100, load_ms=100, network_idle_ms=100,
                    fonts_ms=100, images_ms=100, size_ms=100, evaluate_ms=100
                ),
            ),
        )

        result = await engine.capture(request)

        assert result.readiness.status == OutcomeStatus.READY_WITH_WARNINGS
        assert {w.state for w in result.readiness.warnings} == {
            ReadinessState.ELEMENT_ATTACHING,
            ReadinessState.DOCUMENT_LOADING,
            ReadinessState.IMAGES_READY,
            ReadinessState.SIZE_STABLE,
        }
        assert engine.stats['deadlines_exceeded'] == 0
        page.close.assert_awaited_once()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("method", [
        "goto",
        "wait_for_selector",
        "wait_for_load_state",
        "evaluate",
        "wait_for_function",
        "pdf",
    ])
    async def test_page_closed_once_for_failure_at_any_step(self, engine, mock_playwright, remote_request, method):
        """Test that a driver failure in any readiness step or the render closes the page once."""
        page = mock_playwright['page']
        getattr(page, method).side_effect = Exception(f"{method} failed")

        try:
            await engine.capture(remote_request)
        except (NavigationError, CaptureError):
            pass

        page.close.assert_awaited_once()
        assert engine.browser_factory.active_pages == 0

    @pytest.mark.asyncio
    async def test_warnings_are_counted(self, engine, mock_playwright, remote_request):
        """Test that a capture with soft failures still succeeds."""
        mock_playwright['page'].wait_for_selector.side_effect = Exception("Timeout 15000ms exceeded")

        result = await engine.capture(remote_request)

        assert result.readiness.status == OutcomeStatus.READY_WITH_WARNINGS
        assert engine.stats['captures_with_warnings'] == 1

    @pytest.mark.asyncio
    async def test_diagnostics_run_on_soft_failure(self, engine_config, mock_playwright, remote_request, tmp_path):
        """Test that the engine wires its diagnostics collector into readiness."""
        engine_config.diagnostics_enabled = True
        engine_config.artifacts_dir = tmp_path
        engine = CaptureEngine(engine_config)
        mock_playwright['page'].wait_for_function.side_effect = Exception("Timeout exceeded")

        await engine.capture(remote_request)

        assert engine.diagnostics.reports_collected == 2
        screenshot_paths = [
            c.kwargs['path'] for c in mock_playwright['page'].screenshot.await_args_list
        ]
        assert all(p.startswith(str(tmp_path)) for p in screenshot_paths)

    @pytest.mark.asyncio
    async def test_start_and_stop(self, engine_config, mock_playwright):
        """Test engine lifecycle with warm-up."""
        engine_config.warm_up = True
        engine = CaptureEngine(engine_config)

        await engine.start()
        assert engine.is_running is True
        await asyncio.sleep(0.01)
        assert engine.browser_factory.is_running is True

        await engine.stop()
        assert engine.is_running is False
        mock_playwright['browser'].close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_stop_without_start(self, engine, mock_playwright):
        """Test that stopping an idle engine is a no-op."""
        await engine.stop()

        mock_playwright['playwright'].chromium.launch.assert_not_awaited()


def test_navigation_error_mapping():
    """Test failed outcomes map to the right error type."""
    nav = CheckResult.fatal(ReadinessState.NAVIGATING, "No response from target", target_url="https://a.example.com/")
    auth = CheckResult.fatal(
        ReadinessState.NAVIGATING, "Auth redirect detected",
        failure_state=ReadinessState.AUTH_REDIRECT_DETECTED, status=401
    )

    nav_error = CaptureEngine._navigation_error(ReadinessOutcome.failed(nav, [nav]))
    auth_error = CaptureEngine._navigation_error(ReadinessOutcome.failed(auth, [auth]))

    assert type(nav_error) is NavigationError
    assert nav_error.message == "No response from target"
    assert nav_error.details == {'target_url': "https://a.example.com/"}
    assert isinstance(auth_error, AuthRedirectError)
    assert auth_error.details == {'status': 401}
