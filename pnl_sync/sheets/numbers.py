from __future__ import annotations

import math
import re
from typing import Any

"""Locale-aware numeric cleanup for P&L cells.

The venue sheet is formatted in VND: periods are thousands separators
("1.250.000"), amounts may carry "đ", "₫", "VND" or "$", and exports sometimes
use commas as thousands separators too ("3,500"). There are no fractional
money amounts in this layout, so every period and comma is a separator.
"""

__all__ = [
    "CellParseError",
    "parse_number",
    "parse_number_strict",
]

_STRIP_RE = re.compile(r"(?:vnd|[đ₫$,\s])", re.IGNORECASE)
_LEADING_NUMBER_RE = re.compile(r"^[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?")
# Typographic minus signs seen in pasted values.
_MINUS_SIGNS = str.maketrans({"\u2212": "-", "\ufe63": "-", "\uff0d": "-"})
# Placeholders meaning "nothing here" rather than a broken value.
_ZERO_PLACEHOLDERS = frozenset({"-", "–", "—", "\u2212"})


class CellParseError(ValueError):
    """Raised by parse_number_strict when a non-empty cell holds no number."""


def parse_number_strict(value: Any) -> float:
    """Parse a cell into a float.

    Empty cells and dash placeholders are zero. Numbers pass through (NaN is
    zero). Text is stripped of currency markers, whitespace and separators; a
    leading numeric prefix is accepted ("24%" -> 24).

    Raises:
        CellParseError: non-empty text with no numeric prefix (e.g. "#REF!")
    """
    if value is None:
        return 0.0
    if isinstance(value, bool):
        return float(value)
    if isinstance(value, (int, float)):
        return 0.0 if math.isnan(value) else float(value)
    text = str(value).strip()
    if not text or text in _ZERO_PLACEHOLDERS:
        return 0.0
    cleaned = _STRIP_RE.sub("", text.translate(_MINUS_SIGNS)).replace(".", "")
    negative = cleaned.startswith("(") and cleaned.endswith(")")  # accounting negative
    if negative:
        cleaned = cleaned[1:-1]
    match = _LEADING_NUMBER_RE.match(cleaned)
    if match is None:
        raise CellParseError(f"not a number: {text!r}")
    number = float(match.group(0))
    return -number if negative else number


def parse_number(value: Any) -> float:
    """Lenient variant of parse_number_strict: unparseable cells are zero."""
    try:
        return parse_number_strict(value)
    except CellParseError:
        return 0.0
