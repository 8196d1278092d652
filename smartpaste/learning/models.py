"""Learning loop inputs and outputs."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field

from smartpaste.inference.models import TransactionType
from smartpaste.templates.models import TemplateStatus


class ConfirmedTransaction(BaseModel):
    """A transaction the user confirmed, possibly after corrections."""

    transaction_id: Optional[str] = Field(
        default=None, description="Stable id; learning is applied once per id"
    )
    raw_message: str
    sender: Optional[str] = None
    fields: dict[str, str] = Field(
        default_factory=dict, description="Final field values after user review"
    )
    edited_fields: dict[str, bool] = Field(
        default_factory=dict, description="Field -> whether the user changed it"
    )
    template_id: Optional[str] = Field(
        default=None, description="Template matched when the message was parsed"
    )
    structure_hash: Optional[str] = None
    confidence: Optional[float] = Field(default=None, ge=0.0, le=1.0)

    @property
    def edited(self) -> set[str]:
        return {name for name, changed in self.edited_fields.items() if changed}

    def value(self, name: str) -> Optional[str]:
        value = self.fields.get(name)
        return value.strip() if value and value.strip() else None


class LearningOutcome(BaseModel):
    """What a learning update changed."""

    transaction_id: Optional[str] = None
    template_id: Optional[str] = None
    template_created: bool = False
    template_status: Optional[TemplateStatus] = None
    status_changed: bool = False
    success: Optional[bool] = None
    skipped_reason: Optional[str] = None
    confidence_snapshot: Optional[float] = None
    warnings: list[str] = Field(default_factory=list)


class ImportedTransaction(BaseModel):
    """A categorized transaction from imported history (e.g. a CSV export)."""

    vendor: Optional[str] = None
    title: Optional[str] = Field(default=None, description="Used when vendor is missing")
    type: TransactionType
    category: str = Field(..., min_length=1)
    subcategory: Optional[str] = None

    @property
    def name(self) -> Optional[str]:
        return (self.vendor or "").strip() or (self.title or "").strip() or None


class BatchLearningResult(BaseModel):
    """What learning from imported history changed."""

    vendors_learned: int = 0
    keywords_learned: int = 0
    conflicts: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
