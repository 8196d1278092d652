"""Persisted keyword bank used to infer type, category and subcategory."""

from __future__ import annotations

import re
import threading
from datetime import datetime, timezone
from typing import Optional

import structlog

from smartpaste.inference.models import FieldMapping, InferenceResult, KeywordEntry
from smartpaste.normalization import normalize_key
from smartpaste.storage.base import KeyValueStore
from smartpaste.storage.json_state import (
    KEYWORD_BANK_KEY,
    TYPE_KEYWORDS_KEY,
    load_json,
    save_json,
)

logger = structlog.get_logger(__name__)

DEFAULT_TYPE_KEYWORDS: dict[str, list[str]] = {
    "expense": [
        "purchase", "pos", "mada", "spent", "paid", "atm withdrawal", "fuel",
        "food", "market", "شراء", "خصم", "بطاقة",
    ],
    "income": [
        "salary", "deposit", "credited", "received", "bonus", "commission",
        "incentive", "حوالة واردة", "دفعة",
    ],
    "transfer": [
        "transfer", "sent", "received from", "sent to", "تحويل", "نقل", "ارسال",
        "bank to bank", "wallet", "iban",
    ],
}


def _keyword_pattern(keyword: str) -> re.Pattern[str]:
    # ASCII keywords must stand alone ("pos" never matches "deposit");
    # Arabic keywords match inside words since prefixes attach to them.
    escaped = re.escape(keyword)
    if keyword.isascii():
        return re.compile(rf"(?<!\w){escaped}(?!\w)")
    return re.compile(escaped)


class KeywordBank:
    """Keyword -> field mappings and per-type keyword lists.

    Call ``init()`` once to load persisted state. Lookups are longest
    keyword first so phrases ("received from") beat their prefixes
    ("received").
    """

    def __init__(self, kv: KeyValueStore):
        self.kv = kv
        self.entries: dict[str, KeywordEntry] = {}
        self.type_keywords: dict[str, list[str]] = {}
        self._lock = threading.Lock()
        self._loaded = False

    def init(self) -> "KeywordBank":
        raw_entries = load_json(self.kv, KEYWORD_BANK_KEY, [])
        entries: dict[str, KeywordEntry] = {}
        for raw in raw_entries:
            try:
                entry = KeywordEntry.model_validate(raw)
            except ValueError as e:
                logger.warning("keyword_bank.entry_invalid", error=str(e))
                continue
            entries[normalize_key(entry.keyword)] = entry
        self.entries = entries

        stored_types = load_json(self.kv, TYPE_KEYWORDS_KEY, {})
        self.type_keywords = {
            str(t): [str(k) for k in words if k]
            for t, words in stored_types.items()
            if isinstance(words, list)
        } or {t: list(words) for t, words in DEFAULT_TYPE_KEYWORDS.items()}

        self._loaded = True
        logger.info(
            "keyword_bank.loaded",
            mappings=len(self.entries),
            type_keywords=sum(len(v) for v in self.type_keywords.values()),
        )
        return self

    # ------------------------------------------------------------------
    # Inference
    # ------------------------------------------------------------------

    def infer(
        self,
        text: str,
        knowns: Optional[dict[str, str]] = None,
        sender: Optional[str] = None,
    ) -> InferenceResult:
        """Infer indirect fields from message text.

        Keyword mappings are applied first, then the type keyword lists.
        A field already present in ``knowns`` is never overwritten.

        Args:
            text: Message text
            knowns: Fields already resolved elsewhere
            sender: Message sender, for sender-scoped keywords

        Returns:
            Inferred fields and the keyword responsible for each
        """
        knowns = knowns or {}
        haystack = normalize_key(f"{text} {knowns.get('vendor', '')}")
        sender_key = normalize_key(sender)
        result = InferenceResult()

        for key in sorted(self.entries, key=len, reverse=True):
            entry = self.entries[key]
            if entry.sender_context and normalize_key(entry.sender_context) != sender_key:
                continue
            if not _keyword_pattern(key).search(haystack):
                continue
            for mapping in entry.mappings:
                value = mapping.value.strip()
                if not value or mapping.field in knowns or mapping.field in result.fields:
                    continue
                result.fields[mapping.field] = value
                result.matched_keywords[mapping.field] = entry.keyword

        if "type" not in result.fields and "type" not in knowns:
            match = self.match_type(haystack)
            if match:
                result.fields["type"], result.matched_keywords["type"] = match

        return result

    def match_type(self, text: str) -> Optional[tuple[str, str]]:
        """Return (type, keyword) for the longest type keyword found in text."""
        haystack = normalize_key(text)
        candidates = [
            (keyword, txn_type)
            for txn_type, keywords in self.type_keywords.items()
            for keyword in keywords
        ]
        for keyword, txn_type in sorted(candidates, key=lambda c: len(c[0]), reverse=True):
            if _keyword_pattern(normalize_key(keyword)).search(haystack):
                return txn_type, keyword
        return None

    def entry(self, keyword: Optional[str]) -> Optional[KeywordEntry]:
        return self.entries.get(normalize_key(keyword))

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def learn(
        self,
        keyword: str,
        mappings: dict[str, str],
        sender_context: Optional[str] = None,
    ) -> Optional[str]:
        """Add or replace the mappings for a keyword.

        Returns:
            A warning if the bank could not be persisted
        """
        key = normalize_key(keyword)
        if not key:
            return None
        with self._lock:
            existing = self.entries.get(key)
            self.entries[key] = KeywordEntry(
                keyword=keyword.strip(),
                mappings=[FieldMapping(field=f, value=v) for f, v in mappings.items() if v],
                sender_context=sender_context,
                mapping_count=(existing.mapping_count if existing else 0) + 1,
                last_updated=datetime.now(timezone.utc),
            )
            return self._save_entries()

    def merge(
        self, keyword: str, mappings: dict[str, str], count: int = 1
    ) -> tuple[int, Optional[str]]:
        """Add mappings a keyword does not have yet, keeping existing ones.

        Args:
            keyword: Keyword to create or extend
            mappings: Field -> value to add where missing
            count: Number of observations behind the mappings

        Returns:
            (mappings added, persistence warning)
        """
        key = normalize_key(keyword)
        if not key:
            return 0, None
        with self._lock:
            entry = self.entries.get(key) or KeywordEntry(keyword=keyword.strip())
            known = {mapping.field for mapping in entry.mappings}
            added = [
                FieldMapping(field=f, value=v)
                for f, v in mappings.items()
                if v and f not in known
            ]
            self.entries[key] = entry.model_copy(
                update={
                    "mappings": [*entry.mappings, *added],
                    "mapping_count": entry.mapping_count + count,
                    "last_updated": datetime.now(timezone.utc),
                }
            )
            return len(added), self._save_entries()

    def remove(self, keyword: str) -> Optional[str]:
        with self._lock:
            if self.entries.pop(normalize_key(keyword), None) is None:
                return None
            return self._save_entries()

    def add_type_keyword(self, txn_type: str, keyword: str) -> Optional[str]:
        with self._lock:
            words = self.type_keywords.setdefault(txn_type, [])
            if keyword not in words:
                words.append(keyword)
            return save_json(self.kv, TYPE_KEYWORDS_KEY, self.type_keywords)

    def _save_entries(self) -> Optional[str]:
        payload = [entry.model_dump(mode="json") for entry in self.entries.values()]
        return save_json(self.kv, KEYWORD_BANK_KEY, payload)
