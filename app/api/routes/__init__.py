"""API routes for the Page Press REST API."""

from .render import router as render_router

__all__ = [
    "render_router",
]
