"""Authentication configuration for the Page Press API.

Render endpoints are protected by a single shared secret sent in a request
header. The secret comes from the environment; when it is not configured
every protected request is rejected.
"""

import logging
import os
from dataclasses import dataclass

logger = logging.getLogger(__name__)

DEFAULT_HEADER_NAME = "X-PDF-Key"


@dataclass
class AuthConfig:
    """Shared-secret authentication settings."""

    api_key: str = ""
    header_name: str = DEFAULT_HEADER_NAME

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    @classmethod
    def from_env(cls) -> "AuthConfig":
        """Create configuration from environment variables.

        Environment variables:
        - PAGEPRESS_PDF_KEY: Shared secret required on render requests
        - PAGEPRESS_AUTH_HEADER: Header carrying the secret (default X-PDF-Key)
        """
        api_key = os.getenv("PAGEPRESS_PDF_KEY", "")
        if not api_key:
            logger.warning("PAGEPRESS_PDF_KEY is not set; all render requests will be rejected")

        return cls(
            api_key=api_key,
            header_name=os.getenv("PAGEPRESS_AUTH_HEADER", DEFAULT_HEADER_NAME),
        )
