"""Selector input normalization.

Callers send ``waitForSelector`` in several shapes: a plain string, a list
of candidate strings, or an object with a ``selector`` or ``value`` field.
``normalize_selector`` reduces all of them to one canonical selector string
(or the fallback) before the readiness state machine ever sees it.
"""

from typing import Any, Mapping, Optional, Sequence, Union

SelectorInput = Union[None, str, Sequence[Any], Mapping[str, Any]]


def _clean(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def normalize_selector(value: SelectorInput, fallback: Optional[str] = None) -> Optional[str]:
    """Normalize a selector input to a single selector string.

    Args:
        value: Raw selector input from the request body
        fallback: Returned when no usable selector is present. ``None`` means
            "skip the selector checks"; a string acts as a default selector.

    Returns:
        Stripped selector string, or ``fallback``

    Examples:
        >>> normalize_selector("  #root ")
        '#root'
        >>> normalize_selector(["", "  ", ".app"])
        '.app'
        >>> normalize_selector({"selector": "  #foo  "})
        '#foo'
        >>> normalize_selector({}, fallback="body") is not None
        True
    """
    if isinstance(value, str):
        return _clean(value) or fallback

    if isinstance(value, Mapping):
        return _clean(value.get("selector")) or _clean(value.get("value")) or fallback

    if isinstance(value, (list, tuple)):
        for candidate in value:
            selector = _clean(candidate)
            if selector:
                return selector

    return fallback
