"""Text normalization for pasted bank messages."""

from __future__ import annotations

import re
import unicodedata


# ============================================================================
# Character Mappings
# ============================================================================

# Arabic-Indic (U+0660..U+0669) and Eastern Arabic-Indic (U+06F0..U+06F9)
NUMERAL_MAP = {
    **{chr(0x0660 + i): str(i) for i in range(10)},
    **{chr(0x06F0 + i): str(i) for i in range(10)},
}

PUNCTUATION_MAP = {
    "\u060C": ",",  # Arabic comma
    "\u061B": ";",  # Arabic semicolon
    "\u061F": "?",  # Arabic question mark
    "\u00AB": "\"",
    "\u00BB": "\"",
    "\u201C": "\"",
    "\u201D": "\"",
    "\u2018": "'",
    "\u2019": "'",
}

_NUMERAL_TABLE = str.maketrans(NUMERAL_MAP)
_PUNCTUATION_TABLE = str.maketrans(PUNCTUATION_MAP)

RTL_PATTERN = re.compile(r"[\u0591-\u07FF\uFB1D-\uFDFD\uFE70-\uFEFC]")

ZERO_WIDTH_PATTERN = re.compile(r"[\u200B-\u200F\u202A-\u202E\u2066-\u2069\uFEFF]")
WHITESPACE_PATTERN = re.compile(r"\s+")


# ============================================================================
# Normalization Functions
# ============================================================================


def normalize_numerals(text: str) -> str:
    """Map Arabic-Indic digits to ASCII digits."""
    return text.translate(_NUMERAL_TABLE)


def normalize_punctuation(text: str) -> str:
    """Map Arabic and typographic punctuation to ASCII equivalents."""
    return text.translate(_PUNCTUATION_TABLE)


def normalize(raw: str) -> str:
    """Normalize numerals and punctuation.

    Total and idempotent: characters without a mapping pass through unchanged
    and the output never contains a mappable character.

    Args:
        raw: Message text as pasted

    Returns:
        Normalized text
    """
    if not raw:
        return ""
    return normalize_punctuation(normalize_numerals(raw))


def is_rtl(text: str) -> bool:
    """Return True when the text contains Hebrew/Arabic script characters."""
    return bool(text) and RTL_PATTERN.search(text) is not None


def normalize_key(text: str | None) -> str:
    """Fold a vendor or sender name into a lookup key.

    NFC-composes, removes zero-width and bidi control characters, collapses
    whitespace, and lowercases. Two spellings that differ only in those
    respects map to the same key.
    """
    if not text:
        return ""
    folded = unicodedata.normalize("NFC", normalize(text))
    folded = ZERO_WIDTH_PATTERN.sub("", folded)
    folded = WHITESPACE_PATTERN.sub(" ", folded).strip()
    return folded.casefold()
