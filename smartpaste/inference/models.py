"""Keyword bank records."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Literal, Optional

from pydantic import BaseModel, Field

TransactionType = Literal["expense", "income", "transfer"]
MappableField = Literal["type", "category", "subcategory", "fromAccount", "vendor"]


class FieldMapping(BaseModel):
    """One field value implied by a keyword."""

    field: MappableField
    value: str


class KeywordEntry(BaseModel):
    """A keyword and the field values it implies when found in a message."""

    keyword: str
    mappings: list[FieldMapping] = Field(default_factory=list)
    sender_context: Optional[str] = Field(
        default=None, description="Only applies to messages from this sender"
    )
    mapping_count: int = Field(default=0, ge=0)
    last_updated: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def mapping_for(self, field: str) -> Optional[str]:
        for mapping in self.mappings:
            if mapping.field == field:
                return mapping.value
        return None


class InferenceResult(BaseModel):
    """Fields inferred from message keywords, with the keyword that supplied each."""

    fields: dict[str, str] = Field(default_factory=dict)
    matched_keywords: dict[str, str] = Field(default_factory=dict)
