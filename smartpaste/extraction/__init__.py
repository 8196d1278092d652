"""Structure extraction: typed placeholders, structure hash and pre-filter."""

from smartpaste.extraction.filter import FinancialMessageFilter, is_financial_message
from smartpaste.extraction.models import (
    FIELD_ORDER,
    AccountValue,
    AmountValue,
    CurrencyValue,
    DateValue,
    DetectedField,
    ExtractionSource,
    FieldName,
    FieldValue,
    FilterResult,
    StructureExtractionResult,
    VendorValue,
)
from smartpaste.extraction.structure import (
    StructureExtractor,
    extract_structure,
    structure_hash,
)
from smartpaste.extraction.vendor import extract_vendor_name

__all__ = [
    # Models
    "FieldName",
    "FIELD_ORDER",
    "FieldValue",
    "AmountValue",
    "CurrencyValue",
    "DateValue",
    "VendorValue",
    "AccountValue",
    "ExtractionSource",
    "DetectedField",
    "StructureExtractionResult",
    "FilterResult",
    # Extraction
    "StructureExtractor",
    "extract_structure",
    "structure_hash",
    "extract_vendor_name",
    # Filter
    "FinancialMessageFilter",
    "is_financial_message",
]
