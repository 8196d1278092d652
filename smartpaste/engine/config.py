"""Aggregate engine configuration."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

from smartpaste.cloud.config import CloudConfig
from smartpaste.matching.config import MatchingConfig, ScoringConfig
from smartpaste.templates.config import LifecycleConfig


class DraftDefaults(BaseModel):
    """Values used for draft fields nothing else could supply."""

    currency: str = Field(default="SAR", min_length=3, max_length=3)
    type: str = "expense"
    category: str = "Uncategorized"
    subcategory: str = "none"
    income_category: str = Field(
        default="Earnings", description="Category for income with no other signal"
    )
    income_subcategory: str = "Benefits"


class EngineConfig(BaseModel):
    """Complete configuration for SmartPasteEngine."""

    matching: MatchingConfig = Field(default_factory=MatchingConfig)
    scoring: ScoringConfig = Field(default_factory=ScoringConfig)
    lifecycle: LifecycleConfig = Field(default_factory=LifecycleConfig)
    cloud: CloudConfig = Field(default_factory=CloudConfig)
    defaults: DraftDefaults = Field(default_factory=DraftDefaults)
    similarity: Literal["ratio", "token_sort"] = Field(
        default="ratio", description="Structure similarity used for fuzzy matching"
    )
    failure_log_max_entries: int = Field(default=100, ge=1, le=10_000)
    recent_match_cache_size: int = Field(
        default=100, ge=1, description="Parsed messages kept for confirmation"
    )

    def validate_all(self) -> bool:
        """Validate cross-field constraints of every section.

        Raises:
            ValueError: If any section is inconsistent
        """
        self.scoring.validate_thresholds()
        self.lifecycle.validate_thresholds()
        return True

    @classmethod
    def from_settings(cls, settings) -> EngineConfig:
        """Create EngineConfig from app settings."""
        return cls(
            matching=MatchingConfig(similarity_threshold=settings.FUZZY_MATCH_THRESHOLD),
            cloud=CloudConfig.from_settings(settings),
            defaults=DraftDefaults(currency=settings.DEFAULT_CURRENCY),
            failure_log_max_entries=settings.FAILURE_LOG_MAX_ENTRIES,
        )
