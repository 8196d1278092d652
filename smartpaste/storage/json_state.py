"""JSON document helpers on top of a KeyValueStore.

Reads never raise: a missing or corrupt document is treated as empty and
logged. Writes never raise either; a failed write is returned as a warning
string so callers can surface it while keeping their in-memory state.
"""

from __future__ import annotations

import json
from typing import Any, Optional

import structlog

from smartpaste.storage.base import KeyValueStore, StorageWriteError

logger = structlog.get_logger(__name__)

TEMPLATES_KEY = "smartpaste.templates"
VENDOR_SUGGESTIONS_KEY = "smartpaste.vendor_suggestions"
SENDER_RULES_KEY = "smartpaste.sender_rules"
KEYWORD_BANK_KEY = "smartpaste.keyword_bank"
TYPE_KEYWORDS_KEY = "smartpaste.type_keywords"
PARSING_FAILURES_KEY = "smartpaste.parsing_failures"
TEMPLATE_FAILURES_KEY = "smartpaste.template_failures"
PROCESSED_TRANSACTIONS_KEY = "smartpaste.processed_transactions"


def load_json(kv: KeyValueStore, key: str, default: Any) -> Any:
    """Load a JSON document, falling back to ``default`` when absent or corrupt.

    The fallback is also used when the stored document has the wrong
    top-level shape (e.g. a list where a dict is expected).
    """
    raw = kv.get(key)
    if raw is None:
        return default
    try:
        data = json.loads(raw)
    except (TypeError, ValueError) as e:
        logger.warning("state.corrupt", key=key, error=str(e))
        return default
    if not isinstance(data, type(default)):
        logger.warning(
            "state.corrupt",
            key=key,
            error=f"expected {type(default).__name__}, got {type(data).__name__}",
        )
        return default
    return data


def save_json(kv: KeyValueStore, key: str, data: Any) -> Optional[str]:
    """Persist ``data`` as JSON.

    Returns:
        None on success, otherwise a human-readable warning
    """
    try:
        kv.set(key, json.dumps(data, ensure_ascii=False, default=str))
    except StorageWriteError as e:
        logger.warning("state.write_failed", key=key, error=e.reason)
        return f"Could not persist {key}: {e.reason}"
    return None
