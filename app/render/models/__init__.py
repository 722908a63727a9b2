"""Render data models package."""

from .capture import (
    CaptureFormat,
    MediaType,
    ReadyStrategy,
    SelectorWaitState,
    ReadinessState,
    CheckStatus,
    OutcomeStatus,
    StrategyProfile,
    STRATEGY_PROFILES,
    RemoteTarget,
    InlineTarget,
    TargetSpec,
    ReadinessTimeouts,
    ReadinessSpec,
    PdfMargins,
    CaptureOptions,
    CaptureRequest,
    CheckResult,
    CheckFailure,
    ReadinessOutcome,
    DiagnosticsReport,
    CaptureResult,
)

__all__ = [
    # Enums
    'CaptureFormat',
    'MediaType',
    'ReadyStrategy',
    'SelectorWaitState',
    'ReadinessState',
    'CheckStatus',
    'OutcomeStatus',

    # Strategy profiles
    'StrategyProfile',
    'STRATEGY_PROFILES',

    # Request models
    'RemoteTarget',
    'InlineTarget',
    'TargetSpec',
    'ReadinessTimeouts',
    'ReadinessSpec',
    'PdfMargins',
    'CaptureOptions',
    'CaptureRequest',

    # Result models
    'CheckResult',
    'CheckFailure',
    'ReadinessOutcome',
    'DiagnosticsReport',
    'CaptureResult',
]
