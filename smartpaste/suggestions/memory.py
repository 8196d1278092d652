"""Vendor and sender suggestion memory.

Both stores are plain last-write-wins maps keyed by a case-folded name.
There is no fuzzy lookup here; similarity is handled by template matching.
"""

from __future__ import annotations

from typing import Literal, Optional

import structlog
from pydantic import ValidationError

from smartpaste.normalization import normalize_key
from smartpaste.storage.base import KeyValueStore
from smartpaste.storage.json_state import (
    SENDER_RULES_KEY,
    VENDOR_SUGGESTIONS_KEY,
    load_json,
    save_json,
)
from smartpaste.suggestions.models import (
    SenderCategoryRule,
    Suggestion,
    VendorSuggestionEntry,
)

logger = structlog.get_logger(__name__)


class SenderCategoryRules:
    """sender -> (category, subcategory)."""

    def __init__(self, kv: KeyValueStore):
        self.kv = kv
        self._rules: dict[str, SenderCategoryRule] = {}

    def init(self) -> "SenderCategoryRules":
        self._rules = {}
        for key, data in load_json(self.kv, SENDER_RULES_KEY, {}).items():
            try:
                self._rules[key] = SenderCategoryRule.model_validate(data)
            except ValidationError:
                logger.warning("sender_rule.invalid", key=key)
        return self

    def rule(self, sender: Optional[str]) -> Optional[SenderCategoryRule]:
        return self._rules.get(normalize_key(sender))

    def learn(
        self, sender: Optional[str], category: Optional[str], subcategory: Optional[str]
    ) -> Optional[str]:
        """Record the category a sender's messages were confirmed with.

        Returns:
            A warning if the rules could not be persisted
        """
        key = normalize_key(sender)
        if not key or not category:
            return None
        self._rules[key] = SenderCategoryRule(
            sender=sender.strip(), category=category, subcategory=subcategory or None
        )
        logger.debug("sender_rule.learned", sender=key, category=category)
        return save_json(
            self.kv,
            SENDER_RULES_KEY,
            {k: v.model_dump(mode="json") for k, v in self._rules.items()},
        )

    def __len__(self) -> int:
        return len(self._rules)


class SuggestionMemory:
    """vendor -> (type, category, subcategory), falling back to sender rules."""

    def __init__(self, kv: KeyValueStore, sender_rules: Optional[SenderCategoryRules] = None):
        self.kv = kv
        self.sender_rules = sender_rules
        self._entries: dict[str, VendorSuggestionEntry] = {}

    def init(self) -> "SuggestionMemory":
        self._entries = {}
        for key, data in load_json(self.kv, VENDOR_SUGGESTIONS_KEY, {}).items():
            try:
                self._entries[key] = VendorSuggestionEntry.model_validate(data)
            except ValidationError:
                logger.warning("vendor_suggestion.invalid", key=key)
        return self

    def suggest(self, vendor_or_sender: Optional[str]) -> Optional[Suggestion]:
        """Look up a remembered suggestion by exact (case-folded) name.

        Vendor entries are consulted first, then sender rules.
        """
        key = normalize_key(vendor_or_sender)
        if not key:
            return None

        entry = self._entries.get(key)
        if entry is not None:
            return Suggestion(
                type=entry.type,
                category=entry.category,
                subcategory=entry.subcategory,
                source="vendor",
            )

        if self.sender_rules is not None:
            rule = self.sender_rules.rule(vendor_or_sender)
            if rule is not None:
                return Suggestion(
                    category=rule.category, subcategory=rule.subcategory, source="sender"
                )
        return None

    def learn(
        self,
        vendor_or_sender: Optional[str],
        type: Optional[str],
        category: Optional[str],
        subcategory: Optional[str],
        source: Literal["user", "import"] = "user",
        confidence: Optional[float] = None,
        sample_count: int = 0,
    ) -> Optional[str]:
        """Remember the final values for a vendor (last write wins).

        Args:
            vendor_or_sender: Vendor name
            type: Transaction type
            category: Category
            subcategory: Subcategory
            source: "user" for confirmations, "import" for batch-learned history
            confidence: Confidence of an imported mapping
            sample_count: Number of imported transactions behind the mapping

        Returns:
            A warning if the memory could not be persisted
        """
        key = normalize_key(vendor_or_sender)
        if not key:
            return None
        self._entries[key] = VendorSuggestionEntry(
            vendor=vendor_or_sender.strip(),
            type=type or None,
            category=category or None,
            subcategory=subcategory or None,
            source=source,
            confidence=confidence,
            sample_count=sample_count,
        )
        logger.debug("vendor_suggestion.learned", vendor=key, category=category, source=source)
        return save_json(
            self.kv,
            VENDOR_SUGGESTIONS_KEY,
            {k: v.model_dump(mode="json") for k, v in self._entries.items()},
        )

    def entry(self, vendor: Optional[str]) -> Optional[VendorSuggestionEntry]:
        return self._entries.get(normalize_key(vendor))

    def imported(self) -> list[VendorSuggestionEntry]:
        """Entries learned from imported transaction history."""
        return [entry for entry in self._entries.values() if entry.source == "import"]

    def __len__(self) -> int:
        return len(self._entries)
