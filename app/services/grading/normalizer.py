"""Canonical form of free-text answers before any comparison."""

import re
from typing import Any

_WHITESPACE_RUN = re.compile(r"\s+")
_NON_WORD = re.compile(r"[^\w\s]")


def normalize_text(
    value: Any,
    *,
    case_sensitive: bool = False,
    remove_whitespace: bool = False,
    remove_punctuation: bool = False,
) -> str:
    """Return the canonical form of ``value``.

    Steps run in a fixed order: trim, lowercase (unless ``case_sensitive``),
    collapse whitespace runs to a single space (``remove_whitespace``), then
    drop every character that is neither a word character nor whitespace
    (``remove_punctuation``). Non-string input yields ``""``.
    """
    if not isinstance(value, str):
        return ""

    normalized = value.strip()
    if not case_sensitive:
        normalized = normalized.lower()
    if remove_whitespace:
        normalized = _WHITESPACE_RUN.sub(" ", normalized)
    if remove_punctuation:
        normalized = _NON_WORD.sub("", normalized)
    return normalized
