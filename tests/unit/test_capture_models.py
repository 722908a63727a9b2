"""Unit tests for capture models."""

import pytest
from pydantic import ValidationError

from app.render.models import (
    CaptureFormat,
    CaptureOptions,
    CaptureRequest,
    CaptureResult,
    CheckFailure,
    CheckResult,
    CheckStatus,
    InlineTarget,
    OutcomeStatus,
    ReadinessOutcome,
    ReadinessSpec,
    ReadinessState,
    ReadinessTimeouts,
    ReadyStrategy,
    RemoteTarget,
    SelectorWaitState,
    STRATEGY_PROFILES,
)


class TestStrategyProfiles:
    """Tests for readiness strategy thresholds."""

    def test_profiles(self):
        strict = STRATEGY_PROFILES[ReadyStrategy.STRICT]
        normal = STRATEGY_PROFILES[ReadyStrategy.NORMAL]
        eager = STRATEGY_PROFILES[ReadyStrategy.EAGER]

        assert (strict.image_wait_ms, strict.min_height_px, strict.selector_timeout_ms) == (15000, 150, 30000)
        assert (normal.image_wait_ms, normal.min_height_px, normal.selector_timeout_ms) == (8000, 50, 15000)
        assert (eager.image_wait_ms, eager.min_height_px) == (0, 50)
        assert eager.selector_state == SelectorWaitState.ATTACHED
        assert strict.selector_state == normal.selector_state == SelectorWaitState.VISIBLE

    def test_spec_uses_profile_defaults(self):
        spec = ReadinessSpec(strategy=ReadyStrategy.STRICT)

        assert spec.selector_timeout_ms == 30000
        assert spec.image_wait_ms == 15000

    def test_explicit_timeouts_override_profile(self):
        spec = ReadinessSpec(timeouts=ReadinessTimeouts(selector_ms=1234, images_ms=0))

        assert spec.selector_timeout_ms == 1234
        assert spec.image_wait_ms == 0

    def test_spec_is_immutable(self):
        spec = ReadinessSpec()

        with pytest.raises(ValidationError):
            spec.selector = "#root"


class TestTargets:
    """Tests for capture targets."""

    def test_base_tag_injected_after_head(self):
        target = InlineTarget(
            html='<!doctype html><html><HEAD lang="en"><title>x</title></head><body></body></html>',
            base_url="https://cdn.example.com/assets/"
        )

        assert target.render_content() == (
            '<!doctype html><html><HEAD lang="en"><base href="https://cdn.example.com/assets/">'
            '<title>x</title></head><body></body></html>'
        )

    def test_base_url_is_escaped(self):
        target = InlineTarget(html="<head></head>", base_url='https://x.test/"><script>')

        assert '"><script>' not in target.render_content()

    def test_no_head_means_no_injection(self):
        target = InlineTarget(html="<p>fragment</p>", base_url="https://cdn.example.com/")

        assert target.render_content() == "<p>fragment</p>"

    def test_header_tag_is_not_head(self):
        target = InlineTarget(html="<header>x</header>", base_url="https://cdn.example.com/")

        assert target.render_content() == "<header>x</header>"

    def test_labels(self):
        assert RemoteTarget(url="https://a.example.com/").label == "https://a.example.com/"
        assert InlineTarget(html="abc").label == "inline html (3 chars)"

    def test_request_discriminates_targets(self):
        request = CaptureRequest.model_validate({"target": {"kind": "inline", "html": "<p/>"}})

        assert isinstance(request.target, InlineTarget)
        assert request.target_url is None


class TestCaptureOptions:
    """Tests for capture options."""

    def test_pdf_options_defaults(self):
        options = CaptureOptions().pdf_options()

        assert options == {
            "print_background": True,
            "prefer_css_page_size": True,
            "margin": {"top": "5mm", "right": "5mm", "bottom": "5mm", "left": "5mm"},
        }

    def test_pdf_options_with_format(self):
        assert CaptureOptions(page_format="Letter").pdf_options()["format"] == "Letter"

    def test_content_types(self):
        assert CaptureFormat.PDF.content_type == "application/pdf"
        assert CaptureFormat.SCREENSHOT.content_type == "image/png"
        assert CaptureFormat.HTML.content_type == "text/html; charset=utf-8"


class TestResults:
    """Tests for check results and outcomes."""

    def test_check_result_constructors(self):
        ok = CheckResult.ok(ReadinessState.FONTS_READY, detail=1)
        fatal = CheckResult.fatal(ReadinessState.NAVIGATING, "boom", status=500)

        assert ok.status == CheckStatus.OK and ok.details == {"detail": 1}
        assert fatal.failure_state == ReadinessState.NAVIGATION_FAILED
        assert fatal.details == {"status": 500}

    def test_ready_outcomes(self):
        clean = ReadinessOutcome.ready([], [])
        warned = ReadinessOutcome.ready([], [CheckFailure(state=ReadinessState.IMAGES_READY, reason="slow")])

        assert clean.status == OutcomeStatus.READY
        assert warned.status == OutcomeStatus.READY_WITH_WARNINGS
        assert clean.is_ready and warned.is_ready
        assert warned.final_state == ReadinessState.READY

    def test_failed_outcome(self):
        fatal = CheckResult.fatal(
            ReadinessState.NAVIGATING, "Auth redirect detected",
            failure_state=ReadinessState.AUTH_REDIRECT_DETECTED
        )

        outcome = ReadinessOutcome.failed(fatal, [fatal])

        assert outcome.is_failed
        assert outcome.final_state == ReadinessState.AUTH_REDIRECT_DETECTED
        assert outcome.reason == "Auth redirect detected"

    def test_capture_result_rejects_empty_content(self):
        with pytest.raises(ValidationError):
            CaptureResult(content=b"", content_type="application/pdf", format=CaptureFormat.PDF)

    def test_capture_result_size(self):
        result = CaptureResult(content=b"abc", content_type="image/png", format=CaptureFormat.SCREENSHOT)

        assert result.size == 3
