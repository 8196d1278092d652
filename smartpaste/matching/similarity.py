"""String similarity functions for fuzzy template matching."""

from __future__ import annotations

from typing import Callable

from rapidfuzz import fuzz

SimilarityFn = Callable[[str, str], float]
"""(a, b) -> similarity in [0, 1]."""


def ratio_similarity(a: str, b: str) -> float:
    """Normalized Levenshtein ratio (0-1)."""
    if not a or not b:
        return 0.0
    return fuzz.ratio(a, b) / 100.0


def token_sort_similarity(a: str, b: str) -> float:
    """Word-order-insensitive ratio (0-1)."""
    if not a or not b:
        return 0.0
    return fuzz.token_sort_ratio(a, b) / 100.0


SIMILARITY_FUNCTIONS: dict[str, SimilarityFn] = {
    "ratio": ratio_similarity,
    "token_sort": token_sort_similarity,
}
