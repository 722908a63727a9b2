"""Authentication dependencies for the Page Press API.

This module provides the FastAPI dependency that checks the shared-secret
header before a render route touches the browser.
"""

import hmac
import logging

from fastapi import Request

from .config import AuthConfig
from .exceptions import InvalidApiKeyError, MissingApiKeyError

logger = logging.getLogger(__name__)


def get_auth_config(request: Request) -> AuthConfig:
    """Get the authentication config installed on the application."""
    auth_config = getattr(request.app.state, "auth_config", None)
    if auth_config is None:
        auth_config = AuthConfig.from_env()
        request.app.state.auth_config = auth_config
    return auth_config


async def require_api_key(request: Request) -> None:
    """Reject the request unless it carries the configured shared secret.

    The comparison runs in constant time. With no secret configured every
    request is rejected.

    Raises:
        MissingApiKeyError: Header absent
        InvalidApiKeyError: Header present but wrong, or no secret configured
    """
    auth_config = get_auth_config(request)
    provided = request.headers.get(auth_config.header_name)
    request_id = getattr(request.state, "request_id", None)

    if not provided:
        logger.info(f"Rejected request without {auth_config.header_name}", extra={"request_id": request_id})
        raise MissingApiKeyError(header_name=auth_config.header_name)

    if not auth_config.is_configured:
        logger.warning("Rejected request: no API key configured", extra={"request_id": request_id})
        raise InvalidApiKeyError()

    if not hmac.compare_digest(provided.encode("utf-8"), auth_config.api_key.encode("utf-8")):
        logger.info("Rejected request with invalid API key", extra={"request_id": request_id})
        raise InvalidApiKeyError()
