"""Authentication exceptions for the Page Press API.

This module defines the errors raised when a render request does not carry
the shared secret, with error codes and details in the same shape as the
render errors.
"""

from typing import Optional


class AuthenticationError(Exception):
    """Base authentication error."""

    status_code: int = 401

    def __init__(
        self,
        message: str = "Unauthorized",
        error_code: str = "unauthorized",
        details: Optional[dict] = None
    ):
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)


class MissingApiKeyError(AuthenticationError):
    """Raised when the request has no API key header."""

    def __init__(self, message: str = "Unauthorized", header_name: Optional[str] = None):
        super().__init__(
            message=message,
            error_code="unauthorized",
            details={"header": header_name} if header_name else {}
        )


class InvalidApiKeyError(AuthenticationError):
    """Raised when the API key does not match, or no key is configured."""

    def __init__(self, message: str = "Unauthorized"):
        super().__init__(message=message, error_code="unauthorized")
