"""Matching and scoring result models."""

from __future__ import annotations

from enum import Enum
from typing import Literal, Optional

from pydantic import BaseModel, Field

from smartpaste.extraction.models import StructureExtractionResult
from smartpaste.suggestions.models import Suggestion
from smartpaste.templates.models import Template


class Origin(str, Enum):
    """Which layer produced a parse."""

    TEMPLATE = "template"
    STRUCTURE = "structure"
    FALLBACK = "fallback"


class FieldSource(str, Enum):
    """How a draft field value was obtained."""

    DIRECT = "direct"
    INFERRED = "inferred"
    DEFAULT = "default"


ParsingStatus = Literal["success", "partial", "failed"]


class MatchResult(BaseModel):
    """Outcome of matching one message against the template bank."""

    origin: Origin
    extraction: StructureExtractionResult
    template: Optional[Template] = None
    match_kind: Optional[Literal["exact", "fuzzy"]] = None
    similarity: float = Field(default=0.0, ge=0.0, le=1.0)
    fields: dict[str, str] = Field(
        default_factory=dict, description="Directly extracted values"
    )
    defaults: dict[str, str] = Field(
        default_factory=dict, description="Values supplied by the matched template"
    )
    matched_count: int = Field(
        default=0, description="Templates that met the match criteria"
    )
    suggestion: Optional[Suggestion] = None
    vendor_hint: Optional[str] = None
    total_templates_considered: int = 0
    notes: list[str] = Field(default_factory=list)

    @property
    def matched_template_id(self) -> Optional[str]:
        return self.template.id if self.template else None

    def get_summary(self) -> str:
        if self.template:
            return (
                f"{self.match_kind} match {self.template.id} "
                f"(similarity: {self.similarity:.2f})"
            )
        return f"No template match ({self.origin.value})"
