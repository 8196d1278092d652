"""Suggestion memory records."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Literal, Optional

from pydantic import BaseModel, Field


def _now() -> datetime:
    return datetime.now(timezone.utc)


class Suggestion(BaseModel):
    """Type/category/subcategory remembered for a vendor or sender."""

    type: Optional[str] = None
    category: Optional[str] = None
    subcategory: Optional[str] = None
    source: Literal["vendor", "sender"] = "vendor"

    def as_fields(self) -> dict[str, str]:
        return {
            k: v
            for k, v in (
                ("type", self.type),
                ("category", self.category),
                ("subcategory", self.subcategory),
            )
            if v
        }


class VendorSuggestionEntry(BaseModel):
    vendor: str
    type: Optional[str] = None
    category: Optional[str] = None
    subcategory: Optional[str] = None
    source: Literal["user", "import"] = "user"
    confidence: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    sample_count: int = Field(default=0, ge=0)
    updated_at: datetime = Field(default_factory=_now)


class SenderCategoryRule(BaseModel):
    sender: str
    category: Optional[str] = None
    subcategory: Optional[str] = None
    updated_at: datetime = Field(default_factory=_now)
