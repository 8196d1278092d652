"""Template matching and confidence scoring."""

from smartpaste.matching.config import MatchingConfig, ScoringConfig, SourceWeights
from smartpaste.matching.matcher import TemplateMatcher
from smartpaste.matching.models import FieldSource, MatchResult, Origin, ParsingStatus
from smartpaste.matching.scorer import ConfidenceScorer
from smartpaste.matching.similarity import (
    SIMILARITY_FUNCTIONS,
    SimilarityFn,
    ratio_similarity,
    token_sort_similarity,
)

__all__ = [
    # Config
    "MatchingConfig",
    "ScoringConfig",
    "SourceWeights",
    # Models
    "Origin",
    "FieldSource",
    "ParsingStatus",
    "MatchResult",
    # Matching
    "TemplateMatcher",
    "SimilarityFn",
    "ratio_similarity",
    "token_sort_similarity",
    "SIMILARITY_FUNCTIONS",
    # Scoring
    "ConfidenceScorer",
]
