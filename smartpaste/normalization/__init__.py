"""Text and date normalization for pasted messages."""

from smartpaste.normalization.dates import expand_year, normalize_date
from smartpaste.normalization.normalizer import (
    is_rtl,
    normalize,
    normalize_key,
    normalize_numerals,
    normalize_punctuation,
)

__all__ = [
    "normalize",
    "normalize_numerals",
    "normalize_punctuation",
    "normalize_key",
    "is_rtl",
    "normalize_date",
    "expand_year",
]
