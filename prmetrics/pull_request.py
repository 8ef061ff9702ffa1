"""Pull request title and description updates."""

from __future__ import annotations

import re

from prmetrics.code_metrics import TESTS_INSUFFICIENT_GLYPH, TESTS_SUFFICIENT_GLYPH

TITLE_SEPARATOR = " ◾ "
ADD_DESCRIPTION = "❌ **Add a description.**"

_APPLIED_INDICATOR_RE = re.compile(
    r"^(?:XS|S|M|L|\d*XL)"
    rf"(?:{re.escape(TESTS_SUFFICIENT_GLYPH)}|{re.escape(TESTS_INSUFFICIENT_GLYPH)})?"
    rf"{re.escape(TITLE_SEPARATOR)}(.*)$",
    re.DOTALL,
)


def apply_indicator(title: str, indicator: str) -> str:
    return f"{indicator}{TITLE_SEPARATOR}{title}"


def strip_applied_indicator(title: str) -> str:
    match = _APPLIED_INDICATOR_RE.match(title)
    if match is None:
        return title
    return match.group(1)


def get_updated_title(current_title: str, indicator: str) -> str | None:
    """Return the title to set, or None when the current indicator is already applied."""
    if current_title.startswith(apply_indicator("", indicator)):
        return None
    return apply_indicator(strip_applied_indicator(current_title), indicator)


def get_updated_description(current_description: str | None) -> str | None:
    if current_description is not None and current_description.strip():
        return None
    return ADD_DESCRIPTION
