"""Smart-Paste engine facade."""

from __future__ import annotations

import logging
from collections import OrderedDict
from datetime import datetime, timezone
from typing import Callable, Iterable, Optional

from smartpaste.cloud.client import CloudClassifier
from smartpaste.diagnostics.failure_log import FailureLog, ParsingFailure
from smartpaste.engine.config import EngineConfig
from smartpaste.engine.draft import DraftBuilder
from smartpaste.engine.models import ParseResult, TransactionDraft
from smartpaste.extraction.filter import FALLBACK_KEYWORDS, FinancialMessageFilter
from smartpaste.extraction.structure import StructureExtractor
from smartpaste.inference.keyword_bank import KeywordBank
from smartpaste.learning.loop import LearningLoop
from smartpaste.learning.models import (
    BatchLearningResult,
    ConfirmedTransaction,
    ImportedTransaction,
    LearningOutcome,
)
from smartpaste.matching.matcher import TemplateMatcher
from smartpaste.matching.models import FieldSource, MatchResult, Origin
from smartpaste.matching.scorer import ConfidenceScorer
from smartpaste.matching.similarity import SIMILARITY_FUNCTIONS, SimilarityFn
from smartpaste.storage.base import KeyValueStore
from smartpaste.storage.sql import SqlKeyValueStore
from smartpaste.suggestions.memory import SenderCategoryRules, SuggestionMemory
from smartpaste.templates.models import Template, TemplateStats
from smartpaste.templates.store import TemplateStore

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SmartPasteEngine:
    """Turn pasted bank messages into transaction drafts and learn from confirmations.

    All knowledge stores share one KeyValueStore. Call ``init()`` before use
    to load persisted state.
    """

    def __init__(
        self,
        kv: KeyValueStore,
        config: Optional[EngineConfig] = None,
        similarity: Optional[SimilarityFn] = None,
        cloud: Optional[CloudClassifier] = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        """Initialize engine.

        Args:
            kv: Backing key/value store
            config: Engine configuration
            similarity: Override for the configured structure similarity
            cloud: Cloud classifier (built from config when enabled)
            clock: Source of the current time, for default dates
        """
        self.config = config or EngineConfig()
        self.config.validate_all()
        self.kv = kv

        self.store = TemplateStore(kv, self.config.lifecycle)
        self.sender_rules = SenderCategoryRules(kv)
        self.suggestions = SuggestionMemory(kv, self.sender_rules)
        self.keywords = KeywordBank(kv)
        self.failure_log = FailureLog(kv, self.config.failure_log_max_entries)

        self.extractor = StructureExtractor()
        self.matcher = TemplateMatcher(
            self.store,
            similarity=similarity or SIMILARITY_FUNCTIONS[self.config.similarity],
            config=self.config.matching,
            suggestions=self.suggestions,
            extractor=self.extractor,
        )
        self.scorer = ConfidenceScorer(self.config.scoring)
        self.drafts = DraftBuilder(
            self.keywords, self.suggestions, self.sender_rules, self.config.defaults, clock
        )
        self.learning = LearningLoop(
            self.store,
            self.suggestions,
            self.sender_rules,
            kv=kv,
            extractor=self.extractor,
            keywords=self.keywords,
        )
        self.message_filter = FinancialMessageFilter()

        if cloud is None and self.config.cloud.enabled:
            cloud = CloudClassifier(self.config.cloud)
        self.cloud = cloud

        self._recent: OrderedDict[str, MatchResult] = OrderedDict()
        self._initialized = False

    @classmethod
    def from_settings(cls, settings) -> "SmartPasteEngine":
        """Build an initialized engine on the configured SQL store."""
        kv = SqlKeyValueStore(settings.database_url, echo=False)
        kv.create_tables()
        return cls(kv, EngineConfig.from_settings(settings)).init()

    def init(self) -> "SmartPasteEngine":
        """Load every knowledge store from the backing store."""
        self.store.init()
        self.sender_rules.init()
        self.suggestions.init()
        self.keywords.init()
        self.failure_log.init()
        self.learning.init()
        type_keywords = [k for words in self.keywords.type_keywords.values() for k in words]
        self.message_filter = FinancialMessageFilter(FALLBACK_KEYWORDS + type_keywords)
        self._initialized = True
        logger.info(
            f"[ENGINE] ✓ Initialized ({len(self.store)} templates, "
            f"{len(self.suggestions)} vendor suggestions)"
        )
        return self

    # ------------------------------------------------------------------
    # Parsing
    # ------------------------------------------------------------------

    def parse(
        self, text: str, sender: Optional[str] = None, message_id: Optional[str] = None
    ) -> ParseResult:
        """Parse a pasted message into a draft.

        Never raises on unrecognised input; the result carries a low
        confidence and ``needs_review`` instead.

        Args:
            text: Raw message text
            sender: Message sender
            message_id: Caller's id for the message, recorded on failures

        Returns:
            ParseResult
        """
        self._ensure_initialized()
        match = self.matcher.match(text, sender)
        values, sources = self.drafts.build(text, match, sender)
        result = self._result(match, values, sources, text)
        self._remember(match)

        if result.parsing_status == "failed":
            self._record_failure(result, match, text, sender, message_id)

        result.warnings.extend(self.store.drain_warnings())
        logger.info(f"[ENGINE] {result.get_summary()}")
        return result

    async def parse_async(
        self, text: str, sender: Optional[str] = None, message_id: Optional[str] = None
    ) -> ParseResult:
        """Parse locally, then consult the cloud classifier for weak fallbacks.

        Cloud values only fill fields still at their defaults. Cancelling
        the awaiting task abandons the cloud call; local state is not
        touched after the await.
        """
        result = self.parse(text, sender, message_id)
        if (
            self.cloud is None
            or result.origin != Origin.FALLBACK
            or result.confidence >= self.config.cloud.min_local_confidence
        ):
            return result

        classification = await self.cloud.classify(text)
        if classification is None:
            result.notes.append("Cloud classifier unavailable; using local result")
            return result

        values = result.draft.model_dump()
        sources = dict(result.field_sources)
        filled = []
        for name, value in classification.as_fields().items():
            if name in values and sources.get(name) == FieldSource.DEFAULT:
                values[name] = value
                sources[name] = FieldSource.INFERRED
                filled.append(name)

        if not filled:
            return result

        confidence = self.scorer.score(result.origin, sources)
        status = self.scorer.parsing_status(confidence)
        logger.info(f"[ENGINE] Cloud filled {', '.join(filled)}")
        return result.model_copy(
            update={
                "draft": TransactionDraft(**values),
                "field_sources": sources,
                "field_confidences": self.scorer.field_confidences(sources),
                "confidence": confidence,
                "parsing_status": status,
                "needs_review": status != "success",
                "cloud_used": True,
            }
        )

    # ------------------------------------------------------------------
    # Learning and review
    # ------------------------------------------------------------------

    def confirm(self, confirmed: ConfirmedTransaction) -> LearningOutcome:
        """Feed a user-confirmed transaction back into the engine."""
        self._ensure_initialized()
        match = self._recent.get(confirmed.structure_hash) if confirmed.structure_hash else None
        return self.learning.apply(confirmed, match)

    def learn_batch(self, transactions: Iterable[ImportedTransaction]) -> BatchLearningResult:
        """Learn vendor suggestions and keywords from categorized history."""
        self._ensure_initialized()
        return self.learning.learn_batch(transactions)

    def list_for_review(self) -> list[Template]:
        return self.store.list_for_review()

    def approve(self, template_id: str) -> Template:
        return self.store.approve(template_id)

    def deprecate(self, template_id: str, reason: str) -> Template:
        return self.store.deprecate(template_id, reason)

    def stats(self, now: Optional[datetime] = None) -> TemplateStats:
        return self.store.stats(now)

    def stale_templates(
        self, days: Optional[int] = None, now: Optional[datetime] = None
    ) -> list[Template]:
        return self.store.stale_templates(days, now)

    def failures(self) -> dict:
        """Recent parsing failures and per-structure template failures."""
        return {
            "parsing_failures": self.failure_log.parsing_failures(),
            "template_failures": self.failure_log.template_failures(),
        }

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _result(
        self,
        match: MatchResult,
        values: dict[str, str],
        sources: dict[str, FieldSource],
        text: str,
    ) -> ParseResult:
        confidence = self.scorer.score(match.origin, sources, match.template)
        status = self.scorer.parsing_status(confidence)
        return ParseResult(
            draft=TransactionDraft(**values),
            field_sources=sources,
            field_confidences=self.scorer.field_confidences(sources),
            confidence=confidence,
            origin=match.origin,
            parsing_status=status,
            needs_review=status != "success",
            matched_template_id=match.matched_template_id,
            match_kind=match.match_kind,
            matched_count=match.matched_count,
            total_templates_considered=match.total_templates_considered,
            structure=match.extraction.structure,
            hash=match.extraction.hash,
            is_financial=self.message_filter.check(text).passed,
            notes=list(match.notes),
        )

    def _record_failure(
        self,
        result: ParseResult,
        match: MatchResult,
        text: str,
        sender: Optional[str],
        message_id: Optional[str],
    ) -> None:
        warning = self.failure_log.record_parsing_failure(
            ParsingFailure(
                message_id=message_id,
                raw_message=text,
                sender=sender,
                structure_hash=result.hash,
                confidence=result.confidence,
                reason=f"{result.origin.value} parse below partial threshold",
            )
        )
        if warning:
            result.warnings.append(warning)
        if match.template is not None:
            warning = self.failure_log.record_template_failure(
                result.hash, sender, text, template_id=match.template.id
            )
            if warning:
                result.warnings.append(warning)

    def _remember(self, match: MatchResult) -> None:
        self._recent[match.extraction.hash] = match
        self._recent.move_to_end(match.extraction.hash)
        while len(self._recent) > self.config.recent_match_cache_size:
            self._recent.popitem(last=False)

    def _ensure_initialized(self) -> None:
        if not self._initialized:
            raise RuntimeError("SmartPasteEngine.init() must be called before use")
