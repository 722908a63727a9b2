"""Error taxonomy for the Page Press render pipeline.

Every error carries a machine-readable ``error_code``, a human-readable
``message``, a ``details`` dict of context that is safe to return to callers,
and the HTTP ``status_code`` the API layer should answer with.

Readiness warnings are not errors: post-navigation check
failures are recorded as ``CheckResult`` values and never raised.
"""

from typing import Any, Dict, Optional


class RenderError(Exception):
    """Base render pipeline error."""

    status_code: int = 500

    def __init__(
        self,
        message: str = "Render failed",
        error_code: str = "render_failed",
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)


class TargetValidationError(RenderError):
    """Raised when a request's capture target is missing or not acceptable."""

    status_code = 400

    def __init__(
        self,
        message: str = "Invalid capture target",
        error_code: str = "invalid_target",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message=message, error_code=error_code, details=details)


class MissingTargetError(TargetValidationError):
    """Raised when a request has neither ``url`` nor ``html``."""

    def __init__(self, message: str = "Provide url or html"):
        super().__init__(message=message, error_code="missing_target")


class InvalidTargetUrlError(TargetValidationError):
    """Raised when a target URL cannot be parsed as an http(s) URL."""

    def __init__(self, message: str = "Target URL is not a valid http(s) URL", target_url: Optional[str] = None):
        super().__init__(
            message=message,
            error_code="invalid_url",
            details={"target_url": target_url} if target_url else {}
        )


class TargetNotAllowedError(TargetValidationError):
    """Raised when a target URL does not match the operator allowlist."""

    def __init__(self, message: str = "URL not allowed", target_url: Optional[str] = None):
        super().__init__(
            message=message,
            error_code="url_not_allowed",
            details={"target_url": target_url} if target_url else {}
        )


class NavigationError(RenderError):
    """Raised when the target cannot be loaded (the only hard readiness failure)."""

    status_code = 502

    def __init__(
        self,
        message: str = "Navigation failed",
        error_code: str = "navigation_failed",
        target_url: Optional[str] = None,
        status: Optional[int] = None,
        final_url: Optional[str] = None
    ):
        details: Dict[str, Any] = {}
        if target_url:
            details["target_url"] = target_url
        if status is not None:
            details["status"] = status
        if final_url:
            details["final_url"] = final_url

        super().__init__(message=message, error_code=error_code, details=details)


class AuthRedirectError(NavigationError):
    """Raised when navigation lands on an authentication page."""

    def __init__(
        self,
        message: str = "Auth redirect detected",
        target_url: Optional[str] = None,
        status: Optional[int] = None,
        final_url: Optional[str] = None
    ):
        super().__init__(
            message=message,
            error_code="auth_redirect_detected",
            target_url=target_url,
            status=status,
            final_url=final_url
        )


class CaptureError(RenderError):
    """Raised when the render-to-output operation fails or times out."""

    status_code = 500

    def __init__(self, message: str = "Capture failed", capture_format: Optional[str] = None):
        super().__init__(
            message=message,
            error_code="capture_failed",
            details={"format": capture_format} if capture_format else {}
        )


class BrowserLaunchError(RenderError):
    """Raised when the shared browser process cannot be launched."""

    status_code = 500

    def __init__(self, message: str = "Browser launch failed", attempts: Optional[int] = None):
        super().__init__(
            message=message,
            error_code="browser_unavailable",
            details={"attempts": attempts} if attempts else {}
        )


class CapacityExceededError(RenderError):
    """Raised when no page slot frees up within the admission timeout."""

    status_code = 503

    def __init__(self, message: str = "Too many concurrent captures", max_pages: Optional[int] = None):
        super().__init__(
            message=message,
            error_code="capacity_exceeded",
            details={"max_concurrent_pages": max_pages} if max_pages else {}
        )


class DeadlineExceededError(RenderError):
    """Raised when a capture does not finish within the request deadline."""

    status_code = 504

    def __init__(self, message: str = "Capture deadline exceeded", deadline_ms: Optional[int] = None):
        super().__init__(
            message=message,
            error_code="deadline_exceeded",
            details={"deadline_ms": deadline_ms} if deadline_ms else {}
        )
