"""Keyword-based inference of indirect transaction fields."""

from smartpaste.inference.keyword_bank import DEFAULT_TYPE_KEYWORDS, KeywordBank
from smartpaste.inference.models import FieldMapping, InferenceResult, KeywordEntry

__all__ = [
    "KeywordBank",
    "DEFAULT_TYPE_KEYWORDS",
    "KeywordEntry",
    "FieldMapping",
    "InferenceResult",
]
