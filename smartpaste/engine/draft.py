"""Draft assembly from match results and the knowledge stores."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, Optional

from smartpaste.engine.config import DraftDefaults
from smartpaste.engine.models import DRAFT_FIELDS
from smartpaste.extraction.vendor import extract_vendor_name
from smartpaste.inference.keyword_bank import KeywordBank
from smartpaste.matching.models import FieldSource, MatchResult
from smartpaste.suggestions.memory import SenderCategoryRules, SuggestionMemory

logger = logging.getLogger(__name__)


class DraftBuilder:
    """Fill every draft field from the highest-priority source that has it.

    Priority: directly extracted values, matched template defaults, vendor
    memory, sender rules, keyword inference, the income fallback, and
    finally the configured defaults.
    """

    def __init__(
        self,
        keywords: KeywordBank,
        suggestions: SuggestionMemory,
        sender_rules: SenderCategoryRules,
        defaults: DraftDefaults,
        clock: Callable[[], datetime],
    ):
        self.keywords = keywords
        self.suggestions = suggestions
        self.sender_rules = sender_rules
        self.defaults = defaults
        self.clock = clock

    def build(
        self, text: str, match: MatchResult, sender: Optional[str] = None
    ) -> tuple[dict[str, str], dict[str, FieldSource]]:
        """Build draft values and their sources.

        Args:
            text: Raw message text
            match: Matcher output for the message
            sender: Message sender

        Returns:
            (values, sources) covering every draft field
        """
        values: dict[str, str] = {}
        sources: dict[str, FieldSource] = {}

        def put(name: str, value: Optional[str], source: FieldSource) -> None:
            if value and name not in values:
                values[name] = value
                sources[name] = source

        for name, value in match.fields.items():
            put(name, value, FieldSource.DIRECT)

        for name, value in match.defaults.items():
            put(name, value, FieldSource.INFERRED)

        put("vendor", match.vendor_hint or extract_vendor_name(text), FieldSource.INFERRED)

        suggestion = match.suggestion or self.suggestions.suggest(values.get("vendor"))
        if suggestion is not None:
            for name, value in suggestion.as_fields().items():
                put(name, value, FieldSource.INFERRED)

        rule = self.sender_rules.rule(sender)
        if rule is not None:
            put("category", rule.category, FieldSource.INFERRED)
            put("subcategory", rule.subcategory, FieldSource.INFERRED)

        inferred = self.keywords.infer(text, knowns=values, sender=sender)
        for name, value in inferred.fields.items():
            put(name, value, FieldSource.INFERRED)

        if values.get("type") == "income" and "category" not in values and "subcategory" not in values:
            put("category", self.defaults.income_category, FieldSource.INFERRED)
            put("subcategory", self.defaults.income_subcategory, FieldSource.INFERRED)
            logger.info("[DRAFT] Applied income fallback category")

        fallback = {
            "currency": self.defaults.currency,
            "type": self.defaults.type,
            "category": self.defaults.category,
            "subcategory": self.defaults.subcategory,
            "date": self.clock().date().isoformat(),
        }
        for name in DRAFT_FIELDS:
            if name not in values:
                values[name] = fallback.get(name, "")
                sources[name] = FieldSource.DEFAULT

        return values, sources
