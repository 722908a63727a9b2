"""Render endpoints for the Page Press REST API.

This module provides the endpoints that turn a page into PDF, screenshot or
HTML bytes. Authentication and target validation run before any browser
page is allocated. While a capture runs the route watches for the client
disconnecting; on disconnect the capture is cancelled, which closes its
page, and the route answers 499.
"""

import asyncio
import logging
from typing import Awaitable, Optional

from fastapi import APIRouter, Depends, Request, Response

from app.api.auth import require_api_key
from app.api.schemas import ErrorResponse, RenderRequest
from app.api.services import RenderService
from app.render.models import CaptureFormat, CaptureRequest, CaptureResult

logger = logging.getLogger(__name__)

CLIENT_CLOSED_REQUEST = 499
DISCONNECT_POLL_SECONDS = 0.5

router = APIRouter(
    tags=["Render"],
    dependencies=[Depends(require_api_key)],
    responses={
        400: {"model": ErrorResponse, "description": "Missing, malformed or disallowed target"},
        401: {"model": ErrorResponse, "description": "Missing or invalid API key"},
        422: {"model": ErrorResponse, "description": "Malformed request body"},
        500: {"model": ErrorResponse, "description": "Capture or internal failure"},
        502: {"model": ErrorResponse, "description": "Target unreachable, non-OK or auth redirect"},
        503: {"model": ErrorResponse, "description": "Too many concurrent captures"},
        504: {"model": ErrorResponse, "description": "Capture deadline exceeded"},
    }
)


def get_render_service(request: Request) -> RenderService:
    """Get the render service installed on the application."""
    return request.app.state.render_service


async def _wait_for_disconnect(request: Request) -> None:
    while not await request.is_disconnected():
        await asyncio.sleep(DISCONNECT_POLL_SECONDS)


async def run_until_disconnect(request: Request, capture: Awaitable[CaptureResult]) -> Optional[CaptureResult]:
    """Run ``capture`` unless the client goes away first.

    Returns:
        The capture result, or None when the client disconnected and the
        capture was cancelled
    """
    task = asyncio.ensure_future(capture)
    watcher = asyncio.ensure_future(_wait_for_disconnect(request))

    try:
        done, _ = await asyncio.wait({task, watcher}, return_when=asyncio.FIRST_COMPLETED)
    except asyncio.CancelledError:
        task.cancel()
        raise
    finally:
        watcher.cancel()

    if task in done:
        return task.result()

    task.cancel()
    # Wait for the page to close without re-raising the task's cancellation.
    await asyncio.wait({task})
    logger.info(
        "Client disconnected; capture cancelled",
        extra={"request_id": getattr(request.state, "request_id", None)}
    )
    return None


def build_capture_response(result: CaptureResult) -> Response:
    """Binary response with content type, cache and readiness headers."""
    headers = {"Cache-Control": "no-store"}

    outcome = result.readiness
    if outcome is not None:
        headers["X-Readiness-Status"] = outcome.status.value
        headers["X-Readiness-Warnings"] = ",".join(w.state.value for w in outcome.warnings) or "none"

    if result.format == CaptureFormat.PDF:
        headers["Content-Disposition"] = f'attachment; filename="{result.file_name or "file.pdf"}"'

    return Response(content=result.content, media_type=result.content_type, headers=headers)


async def _render(request: Request, service: RenderService, capture_request: CaptureRequest) -> Response:
    result = await run_until_disconnect(request, service.render(capture_request))
    if result is None:
        return Response(status_code=CLIENT_CLOSED_REQUEST)
    return build_capture_response(result)


@router.post(
    "/pdf",
    summary="Render a page to PDF",
    description=(
        "Renders `url` or inline `html` once the page is ready and returns the PDF. "
        "`debug` returns a PNG screenshot or the HTML snapshot instead."
    ),
    response_class=Response,
    responses={200: {"content": {"application/pdf": {}, "image/png": {}, "text/html": {}}}}
)
async def render_pdf(
    body: RenderRequest,
    request: Request,
    service: RenderService = Depends(get_render_service)
) -> Response:
    """Render the target to PDF, or to the debug format when requested."""
    capture_format = CaptureFormat(body.debug) if body.debug else CaptureFormat.PDF
    capture_request = service.build_request(body, capture_format)
    return await _render(request, service, capture_request)


@router.post(
    "/grab",
    summary="Grab a page as HTML or screenshot",
    description="Same body as /pdf; returns the rendered HTML, or a PNG when `debug` is `screenshot`.",
    response_class=Response,
    responses={200: {"content": {"text/html": {}, "image/png": {}}}}
)
async def grab(
    body: RenderRequest,
    request: Request,
    service: RenderService = Depends(get_render_service)
) -> Response:
    """Return the rendered HTML snapshot or a screenshot."""
    capture_format = CaptureFormat.SCREENSHOT if body.debug == "screenshot" else CaptureFormat.HTML
    capture_request = service.build_request(body, capture_format)
    return await _render(request, service, capture_request)


@router.get(
    "/pdf/simple",
    summary="Render the built-in self-test page",
    description="Renders a one-page document without any network access.",
    response_class=Response,
    responses={200: {"content": {"application/pdf": {}}}}
)
async def render_simple(
    request: Request,
    service: RenderService = Depends(get_render_service)
) -> Response:
    """Render a one-page PDF with no network access."""
    return await _render(request, service, service.build_simple_request())
