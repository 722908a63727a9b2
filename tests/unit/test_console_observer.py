"""Unit tests for the page event observer."""

import logging
from unittest.mock import MagicMock

from app.render.capture.console_observer import PageObserver


def make_observer(keep_messages=50):
    page = MagicMock()
    observer = PageObserver(page, label="https://app.example.com/doc", keep_messages=keep_messages)
    handlers = {c.args[0]: c.args[1] for c in page.on.call_args_list}
    return observer, handlers


def console_message(level, text):
    message = MagicMock()
    message.type = level
    message.text = text
    return message


class TestPageObserver:
    """Tests for PageObserver class."""

    def test_registers_listeners(self):
        """Test that all page events are subscribed."""
        _, handlers = make_observer()

        assert set(handlers) == {"console", "pageerror", "requestfailed", "response"}

    def test_console_messages_are_logged_and_counted(self, caplog):
        """Test console message handling."""
        observer, handlers = make_observer()

        with caplog.at_level(logging.INFO, logger="app.render.capture.console_observer"):
            handlers["console"](console_message("log", "hydrated"))
            handlers["console"](console_message("error", "Uncaught TypeError"))

        assert observer.recent_console() == ["[log] hydrated", "[error] Uncaught TypeError"]
        assert observer.get_stats()['console_messages'] == 2
        assert observer.get_stats()['console_errors'] == 1
        assert "[page console] error Uncaught TypeError" in caplog.text
        assert caplog.records[0].target == "https://app.example.com/doc"

    def test_recent_console_is_bounded(self):
        """Test that only the most recent messages are kept."""
        observer, handlers = make_observer(keep_messages=2)

        for i in range(5):
            handlers["console"](console_message("log", f"m{i}"))

        assert observer.recent_console() == ["[log] m3", "[log] m4"]
        assert observer.console_count == 5

    def test_page_errors_and_failed_requests(self, caplog):
        """Test page error and failed request handling."""
        observer, handlers = make_observer()
        request = MagicMock()
        request.url = "https://cdn.example.com/app.js"
        request.failure = "net::ERR_CONNECTION_REFUSED"

        with caplog.at_level(logging.WARNING):
            handlers["pageerror"](Exception("ReferenceError: x is not defined"))
            handlers["requestfailed"](request)

        assert observer.page_errors == 1
        assert observer.failed_requests == 1
        assert "[page error] ReferenceError" in caplog.text
        assert "[request failed] https://cdn.example.com/app.js net::ERR_CONNECTION_REFUSED" in caplog.text

    def test_only_bad_responses_are_logged(self, caplog):
        """Test that successful responses are ignored."""
        observer, handlers = make_observer()
        good = MagicMock(ok=True, status=200, url="https://app.example.com/ok")
        bad = MagicMock(ok=False, status=404, url="https://app.example.com/missing.png")

        with caplog.at_level(logging.WARNING):
            handlers["response"](good)
            handlers["response"](bad)

        assert observer.bad_responses == 1
        assert "[bad response] 404 https://app.example.com/missing.png" in caplog.text
