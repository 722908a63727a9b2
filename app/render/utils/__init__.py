"""Render utilities package."""

from .selectors import normalize_selector
from .filenames import sanitize_file_name
from .target_resolver import (
    MatchPolicy,
    UrlAllowlist,
    TargetResolver,
    parse_origin,
    rewrite_loopback,
    build_extra_headers,
)

__all__ = [
    'normalize_selector',
    'sanitize_file_name',
    'MatchPolicy',
    'UrlAllowlist',
    'TargetResolver',
    'parse_origin',
    'rewrite_loopback',
    'build_extra_headers',
]
