"""Vendor and sender suggestion memory."""

from smartpaste.suggestions.memory import SenderCategoryRules, SuggestionMemory
from smartpaste.suggestions.models import (
    SenderCategoryRule,
    Suggestion,
    VendorSuggestionEntry,
)

__all__ = [
    "SuggestionMemory",
    "SenderCategoryRules",
    "Suggestion",
    "VendorSuggestionEntry",
    "SenderCategoryRule",
]
