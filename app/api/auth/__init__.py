"""Shared-secret authentication for the Page Press API."""

from .config import AuthConfig
from .dependencies import get_auth_config, require_api_key
from .exceptions import AuthenticationError, InvalidApiKeyError, MissingApiKeyError

__all__ = [
    "AuthConfig",
    "get_auth_config",
    "require_api_key",
    "AuthenticationError",
    "InvalidApiKeyError",
    "MissingApiKeyError",
]
