"""CLI module for Page Press.

This package provides the command-line interface for serving the API and
rendering single pages from the terminal.
"""

from .main import ExitCode, app

__all__ = [
    'ExitCode',
    'app',
]
