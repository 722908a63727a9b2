"""Render package for Page Press.

This package turns a capture request into PDF, screenshot or HTML bytes:
target resolution, readiness orchestration on a shared headless browser,
and rendering.
"""

from .errors import (
    RenderError,
    TargetValidationError,
    MissingTargetError,
    InvalidTargetUrlError,
    TargetNotAllowedError,
    NavigationError,
    AuthRedirectError,
    CaptureError,
    BrowserLaunchError,
    CapacityExceededError,
    DeadlineExceededError,
)

__all__ = [
    'RenderError',
    'TargetValidationError',
    'MissingTargetError',
    'InvalidTargetUrlError',
    'TargetNotAllowedError',
    'NavigationError',
    'AuthRedirectError',
    'CaptureError',
    'BrowserLaunchError',
    'CapacityExceededError',
    'DeadlineExceededError',
]

__version__ = "0.1.0"
