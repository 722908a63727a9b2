"""API response schemas for the Page Press REST API.

Successful renders answer with raw bytes, so the only JSON bodies are
errors and the health report.
"""

from datetime import datetime
from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """Standard error response schema.

    This schema provides consistent error information across all API
    endpoints: an error code, a generic message and safe context fields.
    """

    error: str = Field(
        ...,
        description="Error code or type"
    )

    message: str = Field(
        ...,
        description="Human-readable error message"
    )

    details: Optional[Dict[str, Any]] = Field(
        default=None,
        description="Safe context such as target_url, status or final_url"
    )

    request_id: Optional[str] = Field(
        default=None,
        description="Unique request identifier for tracking"
    )

    timestamp: datetime = Field(
        default_factory=datetime.utcnow,
        description="When the error occurred"
    )

    model_config = {
        "json_schema_extra": {
            "example": {
                "error": "navigation_failed",
                "message": "Target returned non-OK status",
                "details": {
                    "target_url": "https://app.example.com/resume/42",
                    "status": 503,
                    "final_url": "https://app.example.com/resume/42"
                },
                "request_id": "req_123456789",
                "timestamp": "2024-01-15T10:30:00Z"
            }
        }
    }


class HealthResponse(BaseModel):
    """Health check response schema.

    Browser state is read from in-memory flags; producing this report never
    touches the browser.
    """

    status: Literal['healthy', 'degraded', 'unhealthy'] = Field(
        ...,
        description="Overall service health status"
    )

    version: str = Field(
        ...,
        description="API version"
    )

    timestamp: datetime = Field(
        default_factory=datetime.utcnow,
        description="Health check timestamp"
    )

    services: Dict[str, Literal['healthy', 'degraded', 'unhealthy']] = Field(
        ...,
        description="Health status of individual components"
    )

    uptime_seconds: float = Field(
        ...,
        ge=0,
        description="Application uptime in seconds"
    )

    browser: Dict[str, Any] = Field(
        default_factory=dict,
        description="Browser factory counters: running, active pages, pages created"
    )

    model_config = {
        "json_schema_extra": {
            "example": {
                "status": "healthy",
                "version": "0.1.0",
                "timestamp": "2024-01-15T11:00:00Z",
                "services": {"browser": "healthy"},
                "uptime_seconds": 3600.5,
                "browser": {"running": True, "active_pages": 1, "pages_created": 42}
            }
        }
    }
