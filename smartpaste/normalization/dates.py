"""Date normalization to ISO ``yyyy-mm-dd``."""

from __future__ import annotations

import logging
import re
from datetime import datetime

logger = logging.getLogger(__name__)

# Two-digit years below the pivot belong to this century
SHORT_YEAR_PIVOT = 50

NUMERIC_DMY_PATTERN = re.compile(
    r"^(\d{1,2})[/\-.](\d{1,2})[/\-.](\d{2}|\d{4})(?:\s+\d{1,2}:\d{2}(?::\d{2})?)?$"
)
NUMERIC_YMD_PATTERN = re.compile(
    r"^(\d{4})[/\-.](\d{1,2})[/\-.](\d{1,2})(?:[T\s]\d{1,2}:\d{2}(?::\d{2}(?:\.\d+)?)?(?:Z|[+\-]\d{2}:?\d{2})?)?$"
)
TRAILING_TIME_PATTERN = re.compile(r"\s+\d{1,2}:\d{2}(?::\d{2})?$")

# Month-name layouts, tried in order after time-of-day is stripped
NAMED_MONTH_FORMATS = [
    "%d %b %Y",
    "%d %B %Y",
    "%B %d %Y",
    "%b %d %Y",
    "%B %d, %Y",
    "%b %d, %Y",
    "%d-%b-%Y",
    "%d %b %y",
]


def expand_year(year: str) -> int:
    """Expand a two-digit year using the 50-year pivot."""
    value = int(year)
    if len(year) == 2:
        return 2000 + value if value < SHORT_YEAR_PIVOT else 1900 + value
    return value


def _iso(year: int, month: int, day: int) -> str | None:
    try:
        return datetime(year, month, day).strftime("%Y-%m-%d")
    except ValueError:
        return None


def normalize_date(text: str | None) -> str | None:
    """Normalize a date string found in a bank message.

    Numeric day-first forms (``dd/mm/yy``, ``d-m-yyyy``) are handled before the
    generic layouts so two-digit years are never read as year 00xx.

    Args:
        text: Raw date text, optionally followed by a time of day

    Returns:
        ISO date string, or None when unparseable
    """
    if not text:
        return None
    trimmed = text.strip()

    match = NUMERIC_DMY_PATTERN.match(trimmed)
    if match:
        day, month, year = match.groups()
        return _iso(expand_year(year), int(month), int(day))

    match = NUMERIC_YMD_PATTERN.match(trimmed)
    if match:
        year, month, day = match.groups()
        return _iso(int(year), int(month), int(day))

    candidate = TRAILING_TIME_PATTERN.sub("", trimmed)
    for fmt in NAMED_MONTH_FORMATS:
        try:
            parsed = datetime.strptime(candidate, fmt)
        except ValueError:
            continue
        if fmt.endswith("%y"):
            return _iso(expand_year(candidate[-2:]), parsed.month, parsed.day)
        return parsed.strftime("%Y-%m-%d")

    logger.debug(f"[DATES] Could not parse date: {text!r}")
    return None
