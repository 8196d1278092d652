"""Batch learning from imported, already categorized transactions."""

from __future__ import annotations

import re
from collections import Counter
from typing import Iterable, NamedTuple, Optional

import structlog

from smartpaste.inference.keyword_bank import KeywordBank
from smartpaste.learning.models import BatchLearningResult, ImportedTransaction
from smartpaste.suggestions.memory import SuggestionMemory

logger = structlog.get_logger(__name__)

_VENDOR_KEY_STRIP = re.compile(r"[^a-z0-9\u0600-\u06FF]")
MIN_GROUP_SIZE = 2


def vendor_group_key(name: Optional[str]) -> str:
    """Compact key grouping spellings of one vendor ("Star-Bucks " -> "starbucks")."""
    if not name:
        return ""
    return _VENDOR_KEY_STRIP.sub("", name.lower().strip())[:50]


def import_confidence(count: int) -> float:
    if count >= 5:
        return 0.9
    if count >= 3:
        return 0.7
    return 0.5


class VendorClassification(NamedTuple):
    vendor: str
    type: str
    category: str
    subcategory: Optional[str]
    count: int


class BatchLearner:
    """Learn vendor suggestions and keywords from categorized history.

    Transactions are grouped by vendor; groups with fewer than two
    transactions are ignored. Each group's most frequent
    (type, category, subcategory) becomes a suggestion unless a
    user-confirmed mapping or a stronger imported one already exists.
    """

    def __init__(self, suggestions: SuggestionMemory, keywords: Optional[KeywordBank] = None):
        self.suggestions = suggestions
        self.keywords = keywords

    def learn(self, transactions: Iterable[ImportedTransaction]) -> BatchLearningResult:
        result = BatchLearningResult()
        classifications = self.classify(transactions)
        if not classifications:
            return result

        for cls in classifications:
            self._learn_vendor(cls, result)
            if self.keywords is not None:
                self._learn_keyword(cls, result)

        logger.info(
            "learning.batch_applied",
            vendors=result.vendors_learned,
            keywords=result.keywords_learned,
            conflicts=len(result.conflicts),
        )
        return result

    @staticmethod
    def classify(transactions: Iterable[ImportedTransaction]) -> list[VendorClassification]:
        """Dominant classification per vendor group, in first-seen order."""
        groups: dict[str, list[ImportedTransaction]] = {}
        for txn in transactions:
            key = vendor_group_key(txn.name)
            if key:
                groups.setdefault(key, []).append(txn)

        classifications = []
        for txns in groups.values():
            if len(txns) < MIN_GROUP_SIZE:
                continue
            # Ties go to the combination seen first
            combos = Counter(
                (txn.type, txn.category.strip(), (txn.subcategory or "").strip() or None)
                for txn in txns
            )
            (txn_type, category, subcategory), count = combos.most_common(1)[0]
            classifications.append(
                VendorClassification(txns[0].name, txn_type, category, subcategory, count)
            )
        return classifications

    def _learn_vendor(self, cls: VendorClassification, result: BatchLearningResult) -> None:
        confidence = import_confidence(cls.count)
        existing = self.suggestions.entry(cls.vendor)
        if existing is not None:
            if existing.source == "user":
                result.conflicts.append(f"{cls.vendor}: kept user-defined mapping")
                return
            if existing.confidence is not None and existing.confidence >= confidence:
                result.conflicts.append(f"{cls.vendor}: kept existing higher-confidence mapping")
                return

        warning = self.suggestions.learn(
            cls.vendor,
            cls.type,
            cls.category,
            cls.subcategory,
            source="import",
            confidence=confidence,
            sample_count=cls.count,
        )
        if warning:
            result.warnings.append(warning)
        result.vendors_learned += 1

    def _learn_keyword(self, cls: VendorClassification, result: BatchLearningResult) -> None:
        mappings = {"category": cls.category}
        if cls.subcategory:
            mappings["subcategory"] = cls.subcategory
        # A new keyword counts once; an existing one counts each mapping it gains
        is_new = self.keywords.entry(cls.vendor) is None
        added, warning = self.keywords.merge(cls.vendor, mappings, cls.count)
        if warning:
            result.warnings.append(warning)
        result.keywords_learned += 1 if is_new else added
