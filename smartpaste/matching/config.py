"""Configuration for template matching and confidence scoring.

Origin Flow:
------------
1. "template"  : Exact hash match (same field set) or fuzzy match above
                 ``similarity_threshold`` against a non-deprecated template
2. "structure" : No template matched but at least one field was extracted
3. "fallback"  : Nothing extracted; suggestion memory supplies what it can

Parsing Status:
---------------
- "success" : confidence >= success_threshold (0.80)
- "partial" : confidence >= partial_threshold (0.40)
- "failed"  : anything lower
"""

from __future__ import annotations

from pydantic import BaseModel, Field


class MatchingConfig(BaseModel):
    """Template matcher configuration."""

    similarity_threshold: float = Field(
        default=0.85,
        ge=0.0,
        le=1.0,
        description="Minimum structure similarity for a fuzzy template match",
    )
    require_same_fields_for_fuzzy: bool = Field(
        default=False,
        description="Also require identical placeholder sets on fuzzy matches",
    )


class SourceWeights(BaseModel):
    """Per-field multipliers by how the value was obtained."""

    direct: float = Field(default=1.0, ge=0.0, le=1.0, description="Extracted by regex")
    inferred: float = Field(
        default=0.6, ge=0.0, le=1.0, description="From keywords, memory or template defaults"
    )
    default: float = Field(default=0.25, ge=0.0, le=1.0, description="Placeholder value")


class ScoringConfig(BaseModel):
    """Confidence scorer configuration."""

    weights: SourceWeights = Field(default_factory=SourceWeights)
    structure_base: float = Field(
        default=1.0, ge=0.0, le=1.0, description="Origin base for regex-only parses"
    )
    fallback_base: float = Field(
        default=0.25, ge=0.0, le=1.0, description="Origin base for fallback parses"
    )
    success_threshold: float = Field(default=0.8, ge=0.0, le=1.0)
    partial_threshold: float = Field(default=0.4, ge=0.0, le=1.0)

    def validate_thresholds(self) -> bool:
        """Validate that the status thresholds are ordered.

        Raises:
            ValueError: If partial_threshold exceeds success_threshold
        """
        if self.partial_threshold > self.success_threshold:
            raise ValueError(
                f"partial_threshold ({self.partial_threshold}) must be <= "
                f"success_threshold ({self.success_threshold})"
            )
        if not (
            self.weights.direct >= self.weights.inferred >= self.weights.default
        ):
            raise ValueError("Source weights must satisfy direct >= inferred >= default")
        return True
