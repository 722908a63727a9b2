"""Unit tests for selector normalization and file name sanitization."""

import pytest

from app.render.utils import normalize_selector, sanitize_file_name
from app.render.utils.filenames import MAX_FILE_NAME_LENGTH


class TestNormalizeSelector:
    """Tests for normalize_selector."""

    @pytest.mark.parametrize("value,expected", [
        ("#root", "#root"),
        ("  #root  ", "#root"),
        (["", "  ", ".app", "#later"], ".app"),
        (("main",), "main"),
        ({"selector": "  #foo  "}, "#foo"),
        ({"value": ".bar"}, ".bar"),
        ({"selector": "", "value": ".bar"}, ".bar"),
    ])
    def test_shapes(self, value, expected):
        assert normalize_selector(value) == expected

    @pytest.mark.parametrize("value", [None, "", "   ", [], ["", None, 3], {}, {"selector": 5}, 42])
    def test_unusable_input_returns_fallback(self, value):
        assert normalize_selector(value) is None
        assert normalize_selector(value, fallback="body") == "body"


class TestSanitizeFileName:
    """Tests for sanitize_file_name."""

    @pytest.mark.parametrize("name,expected", [
        ("resume.pdf", "resume.pdf"),
        ("resume", "resume.pdf"),
        ("Quarterly report (final).PDF", "Quarterly_report_final_.PDF"),
        ("../../etc/passwd", ".._.._etc_passwd.pdf"),
        ("résumé", "r_sum_.pdf"),
        ("", "file.pdf"),
        (None, "file.pdf"),
        ("..", "file.pdf"),
        (".pdf", "file.pdf"),
    ])
    def test_sanitize(self, name, expected):
        assert sanitize_file_name(name) == expected

    def test_output_is_safe(self):
        result = sanitize_file_name('a/b\\c:d*e?f"g<h>i|j k\n.pdf')

        assert "/" not in result and "\\" not in result
        assert result.endswith(".pdf")

    def test_length_is_bounded_and_suffix_kept(self):
        result = sanitize_file_name("x" * 500)

        assert len(result) == MAX_FILE_NAME_LENGTH
        assert result.endswith(".pdf")

    def test_custom_length(self):
        assert sanitize_file_name("abcdefghij.pdf", max_length=8) == "abcd.pdf"
