"""Engine input and output models."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field, computed_field

from smartpaste.matching.models import FieldSource, Origin, ParsingStatus

DRAFT_FIELDS = (
    "amount",
    "currency",
    "date",
    "vendor",
    "fromAccount",
    "type",
    "category",
    "subcategory",
)


class RawMessage(BaseModel):
    """A pasted message."""

    text: str = Field(min_length=1)
    sender: Optional[str] = None
    message_id: Optional[str] = None


class TransactionDraft(BaseModel):
    """Best-effort structured transaction for the user to review."""

    amount: str = ""
    currency: str = ""
    date: str = ""
    vendor: str = ""
    fromAccount: str = ""
    type: str = ""
    category: str = ""
    subcategory: str = ""


class ParseResult(BaseModel):
    """Everything a UI needs to render a parse and later confirm it."""

    draft: TransactionDraft
    field_sources: dict[str, FieldSource] = Field(default_factory=dict)
    field_confidences: dict[str, float] = Field(default_factory=dict)
    confidence: float = Field(ge=0.0, le=1.0)
    origin: Origin
    parsing_status: ParsingStatus
    needs_review: bool
    matched_template_id: Optional[str] = None
    match_kind: Optional[str] = None
    matched_count: int = 0
    total_templates_considered: int = 0
    structure: str
    hash: str
    is_financial: bool = True
    cloud_used: bool = False
    notes: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def fields(self) -> dict[str, str]:
        """Non-empty draft values keyed by field name."""
        return {k: v for k, v in self.draft.model_dump().items() if v}

    def get_summary(self) -> str:
        template = self.matched_template_id or "none"
        return (
            f"{self.origin.value} parse, confidence {self.confidence:.2f} "
            f"({self.parsing_status}), template {template}, "
            f"{self.matched_count}/{self.total_templates_considered} templates matched"
        )
