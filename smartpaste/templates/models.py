"""Template bank records."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, model_validator


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TemplateStatus(str, Enum):
    """Lifecycle status of a template."""

    LEARNING = "learning"
    ACTIVE = "active"
    DEPRECATED = "deprecated"


class TemplateMeta(BaseModel):
    """Usage statistics and lifecycle state."""

    status: TemplateStatus = TemplateStatus.LEARNING
    confidence_score: float = Field(default=0.0, ge=0.0, le=1.0)
    usage_count: int = Field(default=0, ge=0)
    success_count: int = Field(default=0, ge=0)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    last_used_at: Optional[datetime] = None
    deprecated_reason: Optional[str] = None

    @model_validator(mode="after")
    def _success_within_usage(self) -> "TemplateMeta":
        if self.success_count > self.usage_count:
            raise ValueError(
                f"success_count ({self.success_count}) exceeds usage_count ({self.usage_count})"
            )
        return self

    @property
    def success_ratio(self) -> float:
        """Success ratio, 1.0 for a template that has never been used."""
        if self.usage_count == 0:
            return 1.0
        return self.success_count / self.usage_count


class Template(BaseModel):
    """A learned message structure.

    ``id`` equals ``hash``; ``fields`` lists the placeholders present in
    ``template`` and ``defaults`` carries the learned per-structure
    semantics (type, category, subcategory and field defaults).
    """

    id: str
    hash: str
    template: str
    fields: list[str] = Field(default_factory=list)
    defaults: dict[str, str] = Field(default_factory=dict)
    raw_sample: str = ""
    sender: Optional[str] = None
    meta: TemplateMeta = Field(default_factory=TemplateMeta)

    @model_validator(mode="after")
    def _id_is_hash(self) -> "Template":
        if self.id != self.hash:
            raise ValueError(f"Template id ({self.id}) must equal its hash ({self.hash})")
        return self

    @property
    def field_set(self) -> frozenset[str]:
        return frozenset(self.fields)

    @property
    def is_deprecated(self) -> bool:
        return self.meta.status == TemplateStatus.DEPRECATED

    def supplied_fields(self) -> set[str]:
        """Fields whose value this template provides on a match."""
        return set(self.fields) | set(self.defaults)


class TemplateStats(BaseModel):
    """Aggregate statistics over the template bank."""

    total_templates: int = 0
    by_status: dict[str, int] = Field(default_factory=dict)
    total_usage: int = 0
    total_success: int = 0
    average_confidence: float = 0.0
    average_usage: float = 0.0
    overall_success_ratio: float = 0.0
    stale_templates: int = 0
    most_used: list[dict] = Field(default_factory=list)
    top_fields: dict[str, int] = Field(default_factory=dict)
