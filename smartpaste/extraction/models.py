"""Typed field values and structure extraction results."""

from __future__ import annotations

from decimal import Decimal
from enum import Enum
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field


class FieldName(str, Enum):
    """Fields the structure extractor can replace with a placeholder."""

    AMOUNT = "amount"
    CURRENCY = "currency"
    DATE = "date"
    VENDOR = "vendor"
    FROM_ACCOUNT = "fromAccount"

    @property
    def placeholder(self) -> str:
        return "{" + self.value + "}"


# Priority order used during extraction
FIELD_ORDER: tuple[FieldName, ...] = (
    FieldName.AMOUNT,
    FieldName.CURRENCY,
    FieldName.DATE,
    FieldName.VENDOR,
    FieldName.FROM_ACCOUNT,
)


class ExtractionSource(str, Enum):
    """Where a detected value came from."""

    REGEX = "regex"
    TEMPLATE = "template"
    ML = "ml"
    FALLBACK = "fallback"


class AmountValue(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["amount"] = "amount"
    amount: Decimal

    def as_text(self) -> str:
        return format(self.amount, "f")


class CurrencyValue(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["currency"] = "currency"
    code: str

    def as_text(self) -> str:
        return self.code


class DateValue(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["date"] = "date"
    iso: str = Field(description="ISO yyyy-mm-dd, or the raw text when unparseable")

    def as_text(self) -> str:
        return self.iso


class VendorValue(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["vendor"] = "vendor"
    name: str

    def as_text(self) -> str:
        return self.name


class AccountValue(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["account"] = "account"
    number: str = Field(description="Visible digits of a masked account or card")

    def as_text(self) -> str:
        return self.number


FieldValue = Annotated[
    Union[AmountValue, CurrencyValue, DateValue, VendorValue, AccountValue],
    Field(discriminator="kind"),
]


class DetectedField(BaseModel):
    """One value found in a message, with provenance."""

    model_config = ConfigDict(frozen=True)

    value: FieldValue
    source: ExtractionSource = ExtractionSource.REGEX
    raw: str = Field(description="Exact text that was replaced by the placeholder")

    def as_text(self) -> str:
        return self.value.as_text()


class StructureExtractionResult(BaseModel):
    """Structure of a message with its values abstracted to placeholders."""

    model_config = ConfigDict(frozen=True)

    structure: str
    hash: str
    detected_fields: dict[FieldName, DetectedField] = Field(default_factory=dict)
    patterns_matched: dict[str, str] = Field(
        default_factory=dict, description="Field -> pattern that matched, for debugging"
    )

    @property
    def field_names(self) -> frozenset[str]:
        return frozenset(name.value for name in self.detected_fields)

    def values(self) -> dict[str, str]:
        """Detected values rendered as text, keyed by field name."""
        return {
            name.value: detected.as_text()
            for name, detected in self.detected_fields.items()
        }


class FilterResult(BaseModel):
    """Outcome of the financial-message pre-filter."""

    passed: bool
    reason: str | None = None
    matched_keywords: list[str] = Field(default_factory=list)
    has_amount: bool = False
    has_date: bool = False
