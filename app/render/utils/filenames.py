"""Download file name sanitization."""

import re

MAX_FILE_NAME_LENGTH = 128
PDF_SUFFIX = ".pdf"

_UNSAFE_RUN = re.compile(r"[^a-z0-9._-]+", re.IGNORECASE)


def sanitize_file_name(name: str = "file.pdf", max_length: int = MAX_FILE_NAME_LENGTH) -> str:
    """Map arbitrary text to a safe, length-bounded file name ending in ``.pdf``.

    Runs of characters outside ``[A-Za-z0-9._-]`` collapse to ``_``. The stem
    is truncated so the suffix always survives the length bound.

    Examples:
        >>> sanitize_file_name("Quarterly report (final).PDF")
        'Quarterly_report_final_.PDF'
        >>> sanitize_file_name("résumé")
        'r_sum_.pdf'
    """
    cleaned = _UNSAFE_RUN.sub("_", str(name or "")).strip()
    if not cleaned or cleaned in (".", ".."):
        cleaned = "file"

    if cleaned.lower().endswith(PDF_SUFFIX):
        stem, suffix = cleaned[:-len(PDF_SUFFIX)], cleaned[-len(PDF_SUFFIX):]
    else:
        stem, suffix = cleaned, PDF_SUFFIX

    stem = stem[:max(max_length - len(suffix), 1)] or "file"
    return stem + suffix
