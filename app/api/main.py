"""FastAPI application for the Page Press REST API.

This module configures the FastAPI application with the render routes,
request tracking middleware, error handling, CORS and the browser
lifecycle: the shared browser is warmed up at startup and shut down when
uvicorn stops the application (SIGINT/SIGTERM).
"""

import logging
import os
import time
import uuid
from contextlib import asynccontextmanager
from datetime import datetime
from typing import List, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.api.auth import AuthConfig, AuthenticationError
from app.api.routes import render_router
from app.api.schemas import ErrorResponse, HealthResponse
from app.api.services import RenderDefaults, RenderService
from app.render.capture.config import CaptureConfigManager, get_config
from app.render.capture.engine import CaptureEngine
from app.render.errors import RenderError
from app.render.utils import TargetResolver


# Configure logging
logging.basicConfig(level=os.getenv("PAGEPRESS_LOG_LEVEL", "INFO").upper())
logger = logging.getLogger(__name__)

# Application metadata
APP_VERSION = "0.1.0"
APP_TITLE = "Page Press API"
APP_DESCRIPTION = """
Page Press renders web pages and HTML fragments in a headless browser and
returns them as PDF, PNG screenshot or HTML snapshot.

## Readiness

Before capture the page goes through a fixed series of readiness checks
(selector, load, network idle, fonts, images, element size, lazy-load
scroll). Navigation failures abort the request; every later check that
gives up only adds a warning, reported in the `X-Readiness-Warnings`
header.

## Authentication

Render endpoints require the shared secret in the `X-PDF-Key` header.
"""

MAX_BODY_BYTES = 3 * 1024 * 1024
CORS_ALLOWED_HEADERS = ["Content-Type", "X-PDF-Key"]
CORS_ALLOWED_METHODS = ["GET", "POST", "OPTIONS"]


def _error_response(
    request: Request,
    status_code: int,
    error: str,
    message: str,
    details: Optional[dict] = None
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(
            error=error,
            message=message,
            details=details or None,
            request_id=getattr(request.state, "request_id", None),
            timestamp=datetime.utcnow()
        ).model_dump(mode='json')
    )


def create_app(
    engine: Optional[CaptureEngine] = None,
    resolver: Optional[TargetResolver] = None,
    auth_config: Optional[AuthConfig] = None,
    config_manager: Optional[CaptureConfigManager] = None,
    cors_origins: Optional[List[str]] = None,
    defaults: Optional[RenderDefaults] = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Components not passed in are built from ``config/capture.yaml`` and the
    environment.

    Args:
        engine: Capture engine (owns the shared browser)
        resolver: Target resolver enforcing the allowlist
        auth_config: Shared-secret settings
        config_manager: Capture configuration source
        cors_origins: Origins allowed to call the API from a browser
        defaults: Readiness and capture defaults

    Returns:
        Configured FastAPI application instance
    """
    config_manager = config_manager or get_config()
    config = config_manager.config

    engine = engine or CaptureEngine(config.get_engine_config())
    resolver = resolver or config.get_target_resolver()
    auth_config = auth_config or AuthConfig.from_env()
    defaults = defaults or RenderDefaults.from_config(config)
    cors_origins = config.cors_origins if cors_origins is None else cors_origins

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(f"Starting {APP_TITLE} {APP_VERSION}", extra={"allowlist": resolver.allowlist.get_allowlist_info()})
        await engine.start()
        try:
            yield
        finally:
            await engine.stop()
            logger.info(f"{APP_TITLE} stopped")

    app = FastAPI(
        title=APP_TITLE,
        description=APP_DESCRIPTION,
        version=APP_VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    app.state.engine = engine
    app.state.auth_config = auth_config
    app.state.render_service = RenderService(engine, resolver, defaults)
    app.state.start_time = datetime.utcnow()

    if cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=list(cors_origins),
            allow_credentials=False,
            allow_methods=CORS_ALLOWED_METHODS,
            allow_headers=CORS_ALLOWED_HEADERS,
            expose_headers=["X-Request-ID", "X-Readiness-Status", "X-Readiness-Warnings", "Content-Disposition"],
        )

    # Add request tracking middleware
    @app.middleware("http")
    async def add_request_id_and_logging(request: Request, call_next):
        """Add request ID and logging middleware."""
        request_id = str(uuid.uuid4())
        request.state.request_id = request_id

        start_time = time.time()
        logger.info(
            f"Request started: {request.method} {request.url.path}",
            extra={
                "request_id": request_id,
                "method": request.method,
                "path": request.url.path,
                "client_host": request.client.host if request.client else None,
            }
        )

        content_length = request.headers.get("content-length")
        if content_length and content_length.isdigit() and int(content_length) > MAX_BODY_BYTES:
            response = _error_response(
                request, 413, "payload_too_large",
                "Request body too large",
                {"max_bytes": MAX_BODY_BYTES}
            )
        else:
            response = await call_next(request)

        response.headers["X-Request-ID"] = request_id

        duration = time.time() - start_time
        logger.info(
            f"Request completed: {request.method} {request.url.path} - {response.status_code}",
            extra={
                "request_id": request_id,
                "status_code": response.status_code,
                "duration_ms": round(duration * 1000, 2),
            }
        )

        return response

    # Global exception handlers
    @app.exception_handler(RenderError)
    async def render_exception_handler(request: Request, exc: RenderError):
        """Map render pipeline errors to their status codes."""
        log = logger.warning if exc.status_code < 500 else logger.error
        log(
            f"Render failed: {exc.error_code}: {exc.message}",
            extra={"request_id": getattr(request.state, "request_id", None), **exc.details}
        )
        return _error_response(request, exc.status_code, exc.error_code, exc.message, exc.details)

    @app.exception_handler(AuthenticationError)
    async def auth_exception_handler(request: Request, exc: AuthenticationError):
        """Handle authentication failures."""
        return _error_response(request, exc.status_code, exc.error_code, exc.message)

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        """Handle HTTP exceptions with consistent error format."""
        return _error_response(request, exc.status_code, f"http_{exc.status_code}", str(exc.detail))

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """Handle request validation errors with field information."""
        errors = []
        for error in exc.errors():
            field_path = " -> ".join(str(loc) for loc in error["loc"][1:])  # Skip 'body'
            errors.append({
                "field": field_path,
                "message": error["msg"],
                "type": error["type"],
            })

        return _error_response(
            request, 422, "validation_error",
            "Request validation failed",
            {"validation_errors": errors}
        )

    @app.exception_handler(StarletteHTTPException)
    async def starlette_exception_handler(request: Request, exc: StarletteHTTPException):
        """Handle Starlette HTTP exceptions."""
        return _error_response(request, exc.status_code, f"http_{exc.status_code}", str(exc.detail))

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        """Handle unexpected exceptions."""
        request_id = getattr(request.state, "request_id", None)
        logger.error(f"Unhandled exception in request {request_id}: {str(exc)}", exc_info=True)
        return _error_response(request, 500, "internal_server_error", "An unexpected error occurred")

    @app.get("/healthz", response_class=PlainTextResponse, tags=["System"], summary="Liveness probe")
    async def healthz():
        """Liveness probe; never touches the browser."""
        return "ok"

    @app.get(
        "/health",
        response_model=HealthResponse,
        tags=["System"],
        summary="Health check",
        description="Reports browser state from in-memory flags without touching the browser"
    )
    async def health_check():
        """Health check endpoint for monitoring and operational purposes."""
        uptime = (datetime.utcnow() - app.state.start_time).total_seconds()
        factory = engine.browser_factory

        browser_status = "healthy" if factory.is_running else "degraded"
        services = {"browser": browser_status}

        return HealthResponse(
            status=browser_status,
            version=APP_VERSION,
            timestamp=datetime.utcnow(),
            services=services,
            uptime_seconds=uptime,
            browser=factory.get_stats(),
        )

    app.include_router(render_router)

    return app


# Create the application instance
app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "app.api.main:app",
        host="0.0.0.0",
        port=int(os.getenv("PORT", "3001")),
        log_level="info",
        access_log=True,
    )
