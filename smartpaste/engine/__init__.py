"""Smart-Paste engine facade."""

from smartpaste.engine.config import DraftDefaults, EngineConfig
from smartpaste.engine.draft import DraftBuilder
from smartpaste.engine.engine import SmartPasteEngine
from smartpaste.engine.models import DRAFT_FIELDS, ParseResult, RawMessage, TransactionDraft

__all__ = [
    "SmartPasteEngine",
    "EngineConfig",
    "DraftDefaults",
    "DraftBuilder",
    "ParseResult",
    "RawMessage",
    "TransactionDraft",
    "DRAFT_FIELDS",
]
