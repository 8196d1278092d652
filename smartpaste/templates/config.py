"""Configuration for the template lifecycle.

Status Flow:
------------
- "learning"   : Created from the first confirmed message of a new structure
- "active"     : usage >= promote_min_usage AND success ratio >= promote_min_success_ratio
- "deprecated" : usage >= deprecate_min_usage AND success ratio < deprecate_below_ratio,
                 or explicitly rejected by a reviewer

A deprecated template is excluded from matching until a reviewer approves
it again, which reinstates it as "active".
"""

from __future__ import annotations

from pydantic import BaseModel, Field


class LifecycleConfig(BaseModel):
    """Thresholds for promoting and deprecating templates."""

    promote_min_usage: int = Field(
        default=5, ge=1, description="Confirmed uses before a template can become active"
    )
    promote_min_success_ratio: float = Field(
        default=0.8, ge=0.0, le=1.0, description="Success ratio required for promotion"
    )
    deprecate_min_usage: int = Field(
        default=3, ge=1, description="Confirmed uses before a template can be deprecated"
    )
    deprecate_below_ratio: float = Field(
        default=0.5, ge=0.0, le=1.0, description="Success ratio below which it is deprecated"
    )
    reset_on_reinstate: bool = Field(
        default=True, description="Reset counters when a deprecated template is approved"
    )
    stale_after_days: int = Field(
        default=90, ge=1, description="Days without use before a template counts as stale"
    )

    def validate_thresholds(self) -> bool:
        """Promotion must never be easier than staying out of deprecation.

        Returns:
            True if valid

        Raises:
            ValueError: If the thresholds overlap
        """
        if self.promote_min_success_ratio < self.deprecate_below_ratio:
            raise ValueError(
                f"promote_min_success_ratio ({self.promote_min_success_ratio}) must be "
                f">= deprecate_below_ratio ({self.deprecate_below_ratio})"
            )
        return True
