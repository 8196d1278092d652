"""Confidence scoring for parsed drafts."""

from __future__ import annotations

import logging
from typing import Mapping, Optional

from smartpaste.matching.config import ScoringConfig
from smartpaste.matching.models import FieldSource, Origin, ParsingStatus
from smartpaste.templates.models import Template

logger = logging.getLogger(__name__)


class ConfidenceScorer:
    """Pure, deterministic confidence scorer.

    score = clamp(origin_base * mean(field weights), 0, 1)
    """

    def __init__(self, config: Optional[ScoringConfig] = None):
        """Initialize scorer.

        Args:
            config: Scoring configuration
        """
        self.config = config or ScoringConfig()
        self.config.validate_thresholds()

    def origin_base(self, origin: Origin, template: Optional[Template] = None) -> float:
        if origin == Origin.TEMPLATE:
            # A never-used template counts as fully successful
            return template.meta.success_ratio if template is not None else 1.0
        if origin == Origin.STRUCTURE:
            return self.config.structure_base
        return self.config.fallback_base

    def field_weight(self, source: FieldSource) -> float:
        weights = self.config.weights
        if source == FieldSource.DIRECT:
            return weights.direct
        if source == FieldSource.INFERRED:
            return weights.inferred
        return weights.default

    def field_confidences(self, field_sources: Mapping[str, FieldSource]) -> dict[str, float]:
        return {name: self.field_weight(source) for name, source in field_sources.items()}

    def score(
        self,
        origin: Origin,
        field_sources: Mapping[str, FieldSource],
        template: Optional[Template] = None,
    ) -> float:
        """Compute the overall confidence of a draft.

        Args:
            origin: Origin of the parse
            field_sources: Source of every draft field
            template: Matched template (origin "template" only)

        Returns:
            Confidence in [0, 1]; 0.0 when there are no fields
        """
        if not field_sources:
            return 0.0
        weights = [self.field_weight(source) for source in field_sources.values()]
        mean_weight = sum(weights) / len(weights)
        base = self.origin_base(origin, template)
        score = round(max(0.0, min(1.0, base * mean_weight)), 4)
        logger.debug(
            f"[SCORER] {origin.value}: base {base:.2f} x mean weight {mean_weight:.2f} = {score:.4f}"
        )
        return score

    def parsing_status(self, score: float) -> ParsingStatus:
        if score >= self.config.success_threshold:
            return "success"
        if score >= self.config.partial_threshold:
            return "partial"
        return "failed"
