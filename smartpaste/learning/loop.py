"""Learning loop: feed confirmed transactions back into the template bank."""

from __future__ import annotations

import threading
from typing import Iterable, Optional

import structlog

from smartpaste.extraction.models import FIELD_ORDER, StructureExtractionResult
from smartpaste.extraction.structure import StructureExtractor
from smartpaste.inference.keyword_bank import KeywordBank
from smartpaste.learning.batch import BatchLearner
from smartpaste.learning.models import (
    BatchLearningResult,
    ConfirmedTransaction,
    ImportedTransaction,
    LearningOutcome,
)
from smartpaste.matching.models import MatchResult
from smartpaste.storage.base import KeyValueStore
from smartpaste.storage.json_state import PROCESSED_TRANSACTIONS_KEY, load_json, save_json
from smartpaste.suggestions.memory import SenderCategoryRules, SuggestionMemory
from smartpaste.templates.lifecycle import apply_transition
from smartpaste.templates.models import Template, TemplateMeta, TemplateStatus, utcnow
from smartpaste.templates.store import TemplateStore

logger = structlog.get_logger(__name__)

SEMANTIC_FIELDS = ("type", "category", "subcategory")


class LearningLoop:
    """Apply user confirmations to templates and suggestion memory.

    Each confirmation is applied at most once per ``transaction_id``. The
    template update (counters, defaults and lifecycle transition) happens
    inside a single ``TemplateStore.update`` critical section.
    """

    def __init__(
        self,
        store: TemplateStore,
        suggestions: SuggestionMemory,
        sender_rules: SenderCategoryRules,
        kv: Optional[KeyValueStore] = None,
        extractor: Optional[StructureExtractor] = None,
        max_processed_ids: int = 1000,
        keywords: Optional[KeywordBank] = None,
    ):
        self.store = store
        self.suggestions = suggestions
        self.sender_rules = sender_rules
        self.kv = kv
        self.extractor = extractor or StructureExtractor()
        self.max_processed_ids = max_processed_ids
        self.keywords = keywords
        self._processed: list[str] = []
        self._lock = threading.Lock()

    def init(self) -> "LearningLoop":
        if self.kv is not None:
            self._processed = [
                str(i) for i in load_json(self.kv, PROCESSED_TRANSACTIONS_KEY, [])
            ][-self.max_processed_ids :]
        return self

    def apply(
        self, confirmed: ConfirmedTransaction, match: Optional[MatchResult] = None
    ) -> LearningOutcome:
        """Apply one confirmation.

        Args:
            confirmed: Final transaction as confirmed by the user
            match: Matching-phase result for the same message, if cached

        Returns:
            LearningOutcome describing the changes
        """
        outcome = LearningOutcome(transaction_id=confirmed.transaction_id)

        with self._lock:
            if confirmed.transaction_id and confirmed.transaction_id in self._processed:
                logger.info(
                    "learning.already_applied", transaction_id=confirmed.transaction_id
                )
                outcome.skipped_reason = "already_applied"
                return outcome
            if confirmed.transaction_id:
                self._mark_processed(confirmed.transaction_id, outcome)

        extraction = self._extraction_for(confirmed, match)
        template = self._resolve_template(confirmed, match, extraction)

        if template is not None and template.is_deprecated:
            logger.info("learning.template_deprecated", template_id=template.id)
            outcome.template_id = template.id
            outcome.template_status = template.meta.status
            outcome.skipped_reason = "template_deprecated"
        elif template is not None:
            self._update_template(template, confirmed, outcome)
        else:
            self._create_template(confirmed, extraction, outcome)

        self._update_memory(confirmed, outcome)
        outcome.warnings.extend(self.store.drain_warnings())
        return outcome

    def learn_batch(self, transactions: Iterable[ImportedTransaction]) -> BatchLearningResult:
        """Learn vendor suggestions and keywords from imported transaction history."""
        return BatchLearner(self.suggestions, self.keywords).learn(transactions)

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    def _extraction_for(
        self, confirmed: ConfirmedTransaction, match: Optional[MatchResult]
    ) -> StructureExtractionResult:
        if match is not None and (
            confirmed.structure_hash is None
            or confirmed.structure_hash == match.extraction.hash
        ):
            return match.extraction
        return self.extractor.extract(confirmed.raw_message)

    def _resolve_template(
        self,
        confirmed: ConfirmedTransaction,
        match: Optional[MatchResult],
        extraction: StructureExtractionResult,
    ) -> Optional[Template]:
        template_id = confirmed.template_id or (match.matched_template_id if match else None)
        if template_id:
            template = self.store.get_by_id(template_id)
            if template is not None:
                return template
            logger.warning("learning.template_missing", template_id=template_id)

        template = self.store.get(extraction.hash)
        if template is None:
            return None
        if template.is_deprecated or template.field_set == extraction.field_names:
            return template
        return None

    def _update_template(
        self, template: Template, confirmed: ConfirmedTransaction, outcome: LearningOutcome
    ) -> None:
        corrected = confirmed.edited & template.supplied_fields()
        success = not corrected
        semantics = self._semantics(confirmed)
        previous_status = template.meta.status

        def _learn(current: Template) -> Template:
            now = utcnow()
            usage = current.meta.usage_count + 1
            successes = current.meta.success_count + (1 if success else 0)
            meta = current.meta.model_copy(
                update={
                    "usage_count": usage,
                    "success_count": successes,
                    "confidence_score": round(successes / usage, 4),
                    "updated_at": now,
                    "last_used_at": now,
                }
            )
            meta = apply_transition(meta, self.store.lifecycle)
            return current.model_copy(
                update={"meta": meta, "defaults": {**current.defaults, **semantics}}
            )

        updated = self.store.update(template.id, _learn)

        if corrected:
            logger.info(
                "learning.template_corrected",
                template_id=updated.id,
                corrected_fields=sorted(corrected),
            )
        logger.info(
            "learning.template_updated",
            template_id=updated.id,
            usage=updated.meta.usage_count,
            success=updated.meta.success_count,
            status=updated.meta.status.value,
        )
        outcome.template_id = updated.id
        outcome.success = success
        outcome.template_status = updated.meta.status
        outcome.status_changed = updated.meta.status != previous_status
        outcome.confidence_snapshot = confirmed.confidence

    def _create_template(
        self,
        confirmed: ConfirmedTransaction,
        extraction: StructureExtractionResult,
        outcome: LearningOutcome,
    ) -> None:
        if not extraction.detected_fields:
            logger.info("learning.no_fields", structure_hash=extraction.hash)
            outcome.skipped_reason = "no_fields"
            return

        existing = self.store.get(extraction.hash)
        if existing is not None:
            # Occupied by a template with a different field set
            logger.warning(
                "learning.hash_collision",
                structure_hash=extraction.hash,
                existing_fields=sorted(existing.field_set),
                new_fields=sorted(extraction.field_names),
            )
            outcome.skipped_reason = "hash_collision"
            return

        # The first confirmation succeeds unless an extracted value was wrong
        success = not (confirmed.edited & extraction.field_names)
        now = utcnow()
        template = Template(
            id=extraction.hash,
            hash=extraction.hash,
            template=extraction.structure,
            fields=[f.value for f in FIELD_ORDER if f in extraction.detected_fields],
            defaults=self._semantics(confirmed),
            raw_sample=confirmed.raw_message,
            sender=confirmed.sender,
            meta=TemplateMeta(
                status=TemplateStatus.LEARNING,
                usage_count=1,
                success_count=1 if success else 0,
                confidence_score=1.0 if success else 0.0,
                created_at=now,
                updated_at=now,
                last_used_at=now,
            ),
        )
        self.store.upsert(template)
        logger.info(
            "template.created",
            template_id=template.id,
            fields=template.fields,
            structure=template.template,
        )
        outcome.template_id = template.id
        outcome.template_created = True
        outcome.template_status = template.meta.status
        outcome.success = success
        outcome.confidence_snapshot = confirmed.confidence

    def _update_memory(self, confirmed: ConfirmedTransaction, outcome: LearningOutcome) -> None:
        semantics = self._semantics(confirmed)
        vendor = confirmed.value("vendor")
        if vendor:
            warning = self.suggestions.learn(
                vendor,
                semantics.get("type"),
                semantics.get("category"),
                semantics.get("subcategory"),
            )
            if warning:
                outcome.warnings.append(warning)
        if confirmed.sender:
            warning = self.sender_rules.learn(
                confirmed.sender, semantics.get("category"), semantics.get("subcategory")
            )
            if warning:
                outcome.warnings.append(warning)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _semantics(confirmed: ConfirmedTransaction) -> dict[str, str]:
        return {
            name: value
            for name in SEMANTIC_FIELDS
            if (value := confirmed.value(name)) is not None
        }

    def _mark_processed(self, transaction_id: str, outcome: LearningOutcome) -> None:
        self._processed.append(transaction_id)
        if len(self._processed) > self.max_processed_ids:
            del self._processed[: len(self._processed) - self.max_processed_ids]
        if self.kv is not None:
            warning = save_json(self.kv, PROCESSED_TRANSACTIONS_KEY, self._processed)
            if warning:
                outcome.warnings.append(warning)
