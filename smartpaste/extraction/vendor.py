"""Heuristic vendor name extraction for messages without a vendor placeholder."""

from __future__ import annotations

import logging
import re

from smartpaste.extraction.structure import is_valid_vendor
from smartpaste.normalization import normalize

logger = logging.getLogger(__name__)

VENDOR_PATTERN = re.compile(
    r"(?<!\w)(?:من عند|تم الدفع لـ|تم الشراء من|لدى|عند|من|في|purchased from|paid to|at|from)(?!\w)"
    r"[:\s]*([^\n,؛;:\-]+)",
    re.IGNORECASE,
)
TRAILING_DATE_PATTERN = re.compile(r"\s+on\s+\d{4}(?:-\d{2}(?:-\d{2})?)?.*$", re.IGNORECASE)
SALARY_KEYWORDS = ("راتب", "salary")


def extract_vendor_name(message: str) -> str:
    """Extract a vendor name after a localized preposition.

    Args:
        message: Raw message text

    Returns:
        The vendor, "Company" for salary messages, or "" when nothing fits
    """
    text = normalize(message)
    match = VENDOR_PATTERN.search(text)
    if match:
        candidate = TRAILING_DATE_PATTERN.sub("", match.group(1).strip()).strip()
        if len(candidate) > 2 and is_valid_vendor(candidate):
            return candidate

    lowered = text.lower()
    if any(keyword in lowered for keyword in SALARY_KEYWORDS):
        return "Company"

    logger.debug(f"[VENDOR] No vendor found in message: {message[:60]!r}")
    return ""
