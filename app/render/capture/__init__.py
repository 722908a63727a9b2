"""Browser capture pipeline for Page Press.

This module renders pages with Playwright once they are ready to be
captured.

Main Components:
- Browser Factory: the single shared browser and per-request pages
- Page Session: the page-driver surface one request works against
- Page Observer: console and network event logging
- Readiness Orchestrator: the readiness state machine
- Capture Executor: PDF, screenshot and HTML rendering
- Diagnostics Collector: screenshots after soft readiness failures
- Capture Engine: per-request control flow under a deadline

Usage:
    from app.render.capture import CaptureEngine

    engine = CaptureEngine(config)
    await engine.start()
    result = await engine.capture(request)
"""

__all__ = [
    "CaptureEngine",
    "CaptureEngineConfig",
    "BrowserFactory",
    "BrowserConfig",
    "BrowserEngineType",
    "PageSession",
    "PageSessionConfig",
    "NavigationResult",
    "WaitUntil",
    "PageObserver",
    "ReadinessOrchestrator",
    "ReadinessStep",
    "NavigationPolicy",
    "StepKind",
    "CaptureExecutor",
    "DiagnosticsCollector",
    "CaptureConfig",
    "CaptureConfigManager",
    "get_config",
    "create_browser_factory",
]

from .engine import CaptureEngine, CaptureEngineConfig
from .browser_factory import BrowserFactory, BrowserConfig, BrowserEngineType, create_browser_factory
from .page_session import PageSession, PageSessionConfig, NavigationResult, WaitUntil
from .console_observer import PageObserver
from .readiness import ReadinessOrchestrator, ReadinessStep, NavigationPolicy, StepKind
from .executor import CaptureExecutor
from .diagnostics import DiagnosticsCollector
from .config import CaptureConfig, CaptureConfigManager, get_config
