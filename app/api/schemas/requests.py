"""API request schemas for the Page Press REST API.

This module defines the JSON body accepted by the render endpoints. Field
names are camelCase on the wire and snake_case in Python.
"""

from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field, field_validator

from app.render.models import MediaType, ReadyStrategy

SelectorField = Union[str, List[Any], Dict[str, Any], None]


class RenderRequest(BaseModel):
    """Request body for ``POST /pdf`` and ``POST /grab``.

    Exactly one target is used: ``url`` when present, otherwise ``html``
    (optionally resolved against ``baseUrl``). The selector may be a string,
    a list of candidate strings or an object with a ``selector`` or ``value``
    field; it is normalized once before readiness checks run.
    """

    url: Optional[str] = Field(
        default=None,
        max_length=4096,
        description="Absolute http(s) URL to render; must match the allowlist",
        examples=["https://app.example.com/resume/42"]
    )

    html: Optional[str] = Field(
        default=None,
        description="Raw HTML to render when no url is given"
    )

    base_url: Optional[str] = Field(
        default=None,
        alias="baseUrl",
        max_length=4096,
        description="Base URL for relative assets of inline html"
    )

    file_name: Optional[str] = Field(
        default=None,
        alias="fileName",
        description="Download file name; sanitized and forced to end in .pdf",
        examples=["resume.pdf"]
    )

    media: MediaType = Field(
        default=MediaType.SCREEN,
        description="CSS media type to emulate"
    )

    wait_for_selector: SelectorField = Field(
        default=None,
        alias="waitForSelector",
        description="Element that must render before capture",
        examples=["#resume-root", ["#app", "main"], {"selector": "#root"}]
    )

    extra_headers: Optional[Dict[str, str]] = Field(
        default=None,
        alias="extraHeaders",
        description="HTTP headers forwarded to the target page"
    )

    timeout_ms: Optional[int] = Field(
        default=None,
        alias="timeoutMs",
        gt=0,
        le=300000,
        description="Navigation timeout in milliseconds"
    )

    delay: Optional[int] = Field(
        default=None,
        ge=0,
        le=60000,
        description="Settle delay after the lazy-load scroll, in milliseconds"
    )

    ready_strategy: Optional[ReadyStrategy] = Field(
        default=None,
        alias="readyStrategy",
        description="How hard to wait before capture: strict, normal or eager"
    )

    debug: Optional[Literal["screenshot", "html"]] = Field(
        default=None,
        description="Return a screenshot or the HTML snapshot instead of the default format"
    )

    model_config = {
        "populate_by_name": True,
        "json_schema_extra": {
            "example": {
                "url": "https://app.example.com/resume/42",
                "fileName": "resume.pdf",
                "media": "print",
                "waitForSelector": "#resume-root",
                "readyStrategy": "strict",
                "delay": 500
            }
        }
    }

    @field_validator("extra_headers")
    @classmethod
    def validate_extra_headers(cls, v):
        """Reject header names that could not be sent on the wire."""
        if v is None:
            return v

        for name in v:
            if not name or any(ch in name for ch in " \t\r\n:"):
                raise ValueError(f"Invalid header name: {name!r}")
        return v
