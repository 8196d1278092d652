"""Rule-based pre-filter for pasted messages."""

from __future__ import annotations

import logging
import re
import unicodedata
from typing import Iterable

from smartpaste.extraction.models import FilterResult
from smartpaste.normalization import normalize

logger = logging.getLogger(__name__)

FALLBACK_KEYWORDS = ["مبلغ", "حوالة", "رصيد", "بطاقة", "شراء", "تحويل", "دفع", "إيداع"]

_CURRENCY = r"SAR|USD|EGP|AED|BHD|EUR|GBP|KWD|QAR|OMR|JOD|ر\.?\s?س|ريال|جنيه\s?مصري|جنيه"
_AMOUNT = r"(?:\d{1,3},)*\d{1,3}(?:,\d{3})*(?:[.,]\d{0,2})?|\d+(?:\.\d{1,2})?"

CURRENCY_AMOUNT_PATTERN = re.compile(
    rf"(?:{_CURRENCY})[\s:]?(?:{_AMOUNT})|(?:{_AMOUNT})[\s:]?(?:{_CURRENCY})",
    re.IGNORECASE,
)

_MONTHS = r"Jan|Feb|Mar|Apr|May|Jun|Jul|Aug|Sep|Oct|Nov|Dec"
DATE_PATTERN = re.compile(
    "|".join(
        [
            r"\d{1,2}[/\-.]\d{1,2}[/\-.]\d{1,4}",
            r"\d{4}[/\-.]\d{1,2}[/\-.]\d{1,2}",
            rf"\d{{1,2}}-(?:{_MONTHS})-\d{{2,4}}",
            rf"\d{{1,2}}\s+(?:{_MONTHS})[a-z]*\s+\d{{4}}",
            rf"(?:{_MONTHS})[a-z]*\s+\d{{1,2}},?\s+\d{{4}}",
        ]
    ),
    re.IGNORECASE,
)


def _fold(text: str) -> str:
    return re.sub(r"\s+", "", unicodedata.normalize("NFC", text)).lower()


class FinancialMessageFilter:
    """Decide whether a message looks like a bank transaction notification.

    A message passes only when it contains a financial keyword, a
    currency-anchored amount and a date.
    """

    def __init__(self, keywords: Iterable[str] | None = None):
        """Initialize filter.

        Args:
            keywords: Financial keywords; the built-in Arabic list when empty
        """
        keywords = [k for k in (keywords or []) if k and k.strip()]
        self.keywords = keywords or list(FALLBACK_KEYWORDS)

    def check(self, text: str) -> FilterResult:
        """Run all rules against a message.

        Args:
            text: Raw message text

        Returns:
            FilterResult with the first failing rule as the reason
        """
        normalized = normalize(text)
        folded = _fold(normalized)
        matched_keywords = [k for k in self.keywords if _fold(k) in folded]
        has_amount = CURRENCY_AMOUNT_PATTERN.search(normalized) is not None
        has_date = DATE_PATTERN.search(normalized) is not None

        reason = None
        if not matched_keywords:
            reason = "No financial keyword found"
        elif not has_amount:
            reason = "No currency-anchored amount found"
        elif not has_date:
            reason = "No date found"

        if reason:
            logger.debug(f"[FILTER] Message rejected: {reason}")

        return FilterResult(
            passed=reason is None,
            reason=reason,
            matched_keywords=matched_keywords,
            has_amount=has_amount,
            has_date=has_date,
        )


def is_financial_message(text: str, keywords: Iterable[str] | None = None) -> bool:
    """Shortcut for ``FinancialMessageFilter(keywords).check(text).passed``."""
    return FinancialMessageFilter(keywords).check(text).passed
