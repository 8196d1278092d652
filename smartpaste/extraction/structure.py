"""Structure extraction: replace field values with typed placeholders."""

from __future__ import annotations

import logging
import re
from decimal import Decimal, InvalidOperation
from typing import Callable, Optional

from smartpaste.extraction.models import (
    FIELD_ORDER,
    AccountValue,
    AmountValue,
    CurrencyValue,
    DateValue,
    DetectedField,
    ExtractionSource,
    FieldName,
    StructureExtractionResult,
    VendorValue,
)
from smartpaste.normalization import normalize, normalize_date

logger = logging.getLogger(__name__)


CURRENCY_CODES = ["SAR", "EGP", "USD", "BHD", "AED", "EUR", "GBP", "KWD", "QAR", "OMR", "JOD"]

CURRENCY_ALIASES = {
    "ريال": "SAR",
    "ر.س": "SAR",
    "جنيه": "EGP",
    "درهم": "AED",
    "$": "USD",
    "€": "EUR",
    "£": "GBP",
}

_CODES = "|".join(CURRENCY_CODES)
_ALIASES = "|".join(re.escape(alias) for alias in CURRENCY_ALIASES)
_CURRENCY = rf"(?<![A-Za-z])(?:{_CODES})(?![A-Za-z])|{_ALIASES}"
_NUMBER = r"\d{1,3}(?:,\d{3})+(?:\.\d{1,2})?|\d+(?:\.\d{1,2})?"
_MONTHS = r"jan|feb|mar|apr|may|jun|jul|aug|sep|oct|nov|dec"
_VENDOR_MARKERS = r"purchased from|paid to|لدى|عند|at|from|من|في"
_ACCOUNT_WORDS = r"card|account|acct|a/c|بطاقة|حساب"


def structure_hash(structure: str) -> str:
    """32-bit polynomial rolling hash of a structure, as 8 hex characters.

    Order-sensitive and stable across processes. Not collision-resistant;
    matching compares field sets so collisions degrade to a miss.
    """
    value = 0
    for char in structure:
        value = (value * 31 + ord(char)) & 0xFFFFFFFF
    return f"{value:08x}"


class StructureExtractor:
    """Regex-based structure extractor for bank SMS alerts.

    Fields are searched in a fixed priority order against a progressively
    substituted copy of the message. For each field the patterns are tried
    in order and the first match wins; only its ``value`` group is replaced
    by the placeholder so surrounding markers stay part of the structure.

    For amounts, currencies, dates and accounts, later matches of the winning
    pattern (e.g. a balance line) are replaced too, while the first one stays
    the recorded value. Only the first vendor candidate is replaced.
    """

    REPEATED_FIELDS = frozenset(
        {FieldName.AMOUNT, FieldName.CURRENCY, FieldName.DATE, FieldName.FROM_ACCOUNT}
    )

    AMOUNT_PATTERNS = [
        rf"(?:{_CURRENCY})\s?(?P<value>{_NUMBER})(?![\d,]|[/\-.:]\d)",  # SAR 100 / $100
        rf"(?<![\d.,*/:\-])(?P<value>{_NUMBER})\s?(?:{_CURRENCY})",  # 100 SAR
        rf"(?:amount|amt|بمبلغ|مبلغ)\s*:?\s*(?P<value>{_NUMBER})(?![\d,]|[/\-.:]\d)",  # Amount: 100
        # Bare number, never part of a date, time or masked account
        rf"(?<![\d.,*/:\-x])(?<!ending )(?<!ending in )(?<!card )(?<!account )(?<!acct )(?<!بطاقة )(?<!حساب )"
        rf"(?P<value>{_NUMBER})(?![\d/:\-]|[.,]\d|\s?(?:{_MONTHS})[a-z]*\s\d)",
    ]

    CURRENCY_PATTERNS = [
        rf"(?<![A-Za-z])(?P<value>{_CODES})(?![A-Za-z])",
        rf"(?P<value>{_ALIASES})",
    ]

    DATE_PATTERNS = [
        # 2024-05-01 / 2024-05-01T10:30:00Z
        r"(?<!\d)(?P<value>\d{4}-\d{2}-\d{2}(?:[T ]\d{2}:\d{2}(?::\d{2}(?:\.\d+)?)?(?:Z|[+\-]\d{2}:?\d{2})?)?)(?!\d)",
        # 01/05/2024, 1-5-24, 01.05.2024
        r"(?<![\d/\-.])(?P<value>\d{1,2}([/\-.])\d{1,2}\2(?:\d{4}|\d{2}))(?![\d/\-])",
        # 1 May 2024
        rf"(?<!\d)(?P<value>\d{{1,2}}\s(?:{_MONTHS})[a-z]*\s\d{{4}})(?!\d)",
    ]

    VENDOR_PATTERNS = [
        rf"(?<!\w)(?:{_VENDOR_MARKERS})\s*:?\s+"
        rf"(?P<value>(?!(?:{_ACCOUNT_WORDS})(?!\w))[^\W\d_][^\n,;:{{}}]{{0,40}}?)"
        r"(?=\s+(?:on|via|using|with|ref|card|بتاريخ|بطاقة)(?!\w)|\s*[,;:\n{]|\.(?:\s|$)|\s*$)",
    ]

    FROM_ACCOUNT_PATTERNS = [
        r"(?:\*{1,4}|[xX]{2,4})(?P<value>\d{3,4})(?!\d)",  # **1234 / xx1234
        r"(?:card|account|acct|a/c)\s*(?:ending(?:\s+in)?|no\.?|number)?\s*[:#]?\s*(?P<value>\d{3,4})(?!\d)",
        r"(?:بطاقة|حساب)\s*(?:رقم)?\s*(?P<value>\d{3,4})(?!\d)",
    ]

    def __init__(self) -> None:
        self._patterns: dict[FieldName, list[re.Pattern[str]]] = {
            FieldName.AMOUNT: self._compile(self.AMOUNT_PATTERNS),
            FieldName.CURRENCY: self._compile(self.CURRENCY_PATTERNS),
            FieldName.DATE: self._compile(self.DATE_PATTERNS),
            FieldName.VENDOR: self._compile(self.VENDOR_PATTERNS),
            FieldName.FROM_ACCOUNT: self._compile(self.FROM_ACCOUNT_PATTERNS),
        }
        self._builders: dict[FieldName, Callable[[str], Optional[object]]] = {
            FieldName.AMOUNT: self._build_amount,
            FieldName.CURRENCY: self._build_currency,
            FieldName.DATE: self._build_date,
            FieldName.VENDOR: self._build_vendor,
            FieldName.FROM_ACCOUNT: self._build_account,
        }

    @staticmethod
    def _compile(patterns: list[str]) -> list[re.Pattern[str]]:
        return [re.compile(p, re.IGNORECASE) for p in patterns]

    def extract(self, raw: str) -> StructureExtractionResult:
        """Extract the structure of a message.

        Args:
            raw: Message text (normalized internally)

        Returns:
            Frozen extraction result with structure, hash and detected fields
        """
        text = normalize(raw).strip()
        detected: dict[FieldName, DetectedField] = {}
        patterns_matched: dict[str, str] = {}

        for field in FIELD_ORDER:
            text = self._extract_field(field, text, detected, patterns_matched)

        if detected:
            logger.debug(
                f"[STRUCTURE] ✓ Detected {len(detected)} field(s): "
                f"{', '.join(f.value for f in detected)}"
            )
        else:
            logger.debug("[STRUCTURE] No fields detected")

        return StructureExtractionResult(
            structure=text,
            hash=structure_hash(text),
            detected_fields=detected,
            patterns_matched=patterns_matched,
        )

    def _extract_field(
        self,
        field: FieldName,
        text: str,
        detected: dict[FieldName, DetectedField],
        patterns_matched: dict[str, str],
    ) -> str:
        # A placeholder already in the text means the field was templated before
        if field.placeholder in text:
            return text

        build = self._builders[field]
        for pattern in self._patterns[field]:
            pieces: list[str] = []
            last = 0
            for match in pattern.finditer(text):
                raw_value = match.group("value")
                value = build(raw_value)
                if value is None:
                    continue
                start, end = match.span("value")
                if field not in detected:
                    detected[field] = DetectedField(
                        value=value, source=ExtractionSource.REGEX, raw=raw_value
                    )
                    patterns_matched[field.value] = pattern.pattern
                pieces.extend((text[last:start], field.placeholder))
                last = end
                if field not in self.REPEATED_FIELDS:
                    break
            if field in detected:
                return "".join(pieces) + text[last:]
        return text

    # ------------------------------------------------------------------
    # Value builders: return None to reject a candidate
    # ------------------------------------------------------------------

    @staticmethod
    def _build_amount(raw: str) -> Optional[AmountValue]:
        try:
            return AmountValue(amount=Decimal(raw.replace(",", "")))
        except InvalidOperation:
            return None

    @staticmethod
    def _build_currency(raw: str) -> Optional[CurrencyValue]:
        code = CURRENCY_ALIASES.get(raw, raw.upper())
        if code not in CURRENCY_CODES:
            return None
        return CurrencyValue(code=code)

    @staticmethod
    def _build_date(raw: str) -> DateValue:
        return DateValue(iso=normalize_date(raw) or raw)

    @staticmethod
    def _build_vendor(raw: str) -> Optional[VendorValue]:
        candidate = raw.strip().rstrip(".-'\" ")
        if not is_valid_vendor(candidate):
            return None
        return VendorValue(name=candidate)

    @staticmethod
    def _build_account(raw: str) -> AccountValue:
        return AccountValue(number=raw)


_NUMERIC_PATTERN = re.compile(r"^\d+(?:[.,]\d+)?$")
_CURRENCY_WORD_PATTERN = re.compile(rf"(?<![A-Za-z])(?:{_CODES})(?![A-Za-z])", re.IGNORECASE)
_ACCOUNT_WORD_PATTERN = re.compile(rf"(?:{_ACCOUNT_WORDS})(?!\w)", re.IGNORECASE)


def is_valid_vendor(candidate: str) -> bool:
    """Reject vendor candidates that are numbers, currencies or masked accounts."""
    if len(candidate) < 2:
        return False
    if _NUMERIC_PATTERN.match(candidate):
        return False
    if candidate.startswith("**") or candidate.startswith("{"):
        return False
    if _ACCOUNT_WORD_PATTERN.match(candidate):
        return False
    if _CURRENCY_WORD_PATTERN.search(candidate) or candidate in CURRENCY_ALIASES:
        return False
    return True


_default_extractor: StructureExtractor | None = None


def extract_structure(raw: str) -> StructureExtractionResult:
    """Extract structure with a shared extractor instance."""
    global _default_extractor
    if _default_extractor is None:
        _default_extractor = StructureExtractor()
    return _default_extractor.extract(raw)
