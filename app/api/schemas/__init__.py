"""API schemas for the Page Press REST API.

This module exports the Pydantic models used for request validation and
JSON responses.
"""

from .requests import RenderRequest
from .responses import ErrorResponse, HealthResponse

__all__ = [
    "RenderRequest",
    "ErrorResponse",
    "HealthResponse",
]
