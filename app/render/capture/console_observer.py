"""Page event observer for render diagnostics.

This module provides the PageObserver class that listens to a page's
console messages, uncaught page errors, failed requests and bad responses.
Events are written to the service log as they happen, so a capture that
renders blank or partial can be explained from the logs alone, and are
counted for the session statistics.
"""

import logging
from typing import Any, Dict, List

from playwright.async_api import ConsoleMessage, Page, Request, Response

logger = logging.getLogger(__name__)

MAX_LOGGED_TEXT = 500


class PageObserver:
    """Observer for console output and network trouble on a rendered page."""

    def __init__(self, page: Page, label: str = "", keep_messages: int = 50):
        """Initialize page observer.

        Args:
            page: Playwright page to observe
            label: Target label included in every log record
            keep_messages: Number of recent console messages kept in memory
        """
        self.page = page
        self.label = label
        self.keep_messages = keep_messages

        self.console_messages: List[str] = []
        self.console_count = 0
        self.console_errors = 0
        self.page_errors = 0
        self.failed_requests = 0
        self.bad_responses = 0

        self._setup_listeners()

    def _setup_listeners(self) -> None:
        """Register Playwright page event listeners."""
        self.page.on("console", self._on_console)
        self.page.on("pageerror", self._on_page_error)
        self.page.on("requestfailed", self._on_request_failed)
        self.page.on("response", self._on_response)
        logger.debug("Page observer listeners setup complete")

    def _on_console(self, message: ConsoleMessage) -> None:
        try:
            level = message.type
            text = message.text[:MAX_LOGGED_TEXT]
        except Exception as e:
            logger.debug(f"Error reading console message: {e}")
            return

        self.console_count += 1
        if level == "error":
            self.console_errors += 1

        self.console_messages.append(f"[{level}] {text}")
        if len(self.console_messages) > self.keep_messages:
            del self.console_messages[0]

        logger.info(f"[page console] {level} {text}", extra={"target": self.label})

    def _on_page_error(self, error: Any) -> None:
        self.page_errors += 1
        logger.warning(f"[page error] {str(error)[:MAX_LOGGED_TEXT]}", extra={"target": self.label})

    def _on_request_failed(self, request: Request) -> None:
        self.failed_requests += 1
        try:
            url = request.url
            failure = request.failure
        except Exception as e:
            logger.debug(f"Error reading failed request: {e}")
            return

        logger.warning(f"[request failed] {url} {failure or ''}".rstrip(), extra={"target": self.label})

    def _on_response(self, response: Response) -> None:
        try:
            if response.ok:
                return
            status = response.status
            url = response.url
        except Exception as e:
            logger.debug(f"Error reading response: {e}")
            return

        self.bad_responses += 1
        logger.warning(f"[bad response] {status} {url}", extra={"target": self.label})

    def recent_console(self) -> List[str]:
        """Most recent console messages, oldest first."""
        return list(self.console_messages)

    def get_stats(self) -> Dict[str, int]:
        """Get observed event counts."""
        return {
            'console_messages': self.console_count,
            'console_errors': self.console_errors,
            'page_errors': self.page_errors,
            'failed_requests': self.failed_requests,
            'bad_responses': self.bad_responses,
        }

    def __repr__(self) -> str:
        return (
            f"PageObserver(console={self.console_count}, "
            f"failed_requests={self.failed_requests}, "
            f"bad_responses={self.bad_responses})"
        )
