"""API service layer for Page Press.

This module provides the service that builds capture requests from API
bodies and runs them on the capture engine.
"""

from .render_service import RenderDefaults, RenderService

__all__ = [
    "RenderDefaults",
    "RenderService",
]
