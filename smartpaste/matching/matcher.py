"""Template matcher: exact hash lookup, then fuzzy structure similarity."""

from __future__ import annotations

import logging
from typing import Optional

from smartpaste.extraction.models import StructureExtractionResult
from smartpaste.extraction.structure import StructureExtractor
from smartpaste.extraction.vendor import extract_vendor_name
from smartpaste.matching.config import MatchingConfig
from smartpaste.matching.models import MatchResult, Origin
from smartpaste.matching.similarity import SimilarityFn, ratio_similarity
from smartpaste.suggestions.memory import SuggestionMemory
from smartpaste.templates.models import Template
from smartpaste.templates.store import TemplateStore

logger = logging.getLogger(__name__)


class TemplateMatcher:
    """Resolve a message to a template, a regex-only parse, or a fallback."""

    def __init__(
        self,
        store: TemplateStore,
        similarity: SimilarityFn = ratio_similarity,
        config: Optional[MatchingConfig] = None,
        suggestions: Optional[SuggestionMemory] = None,
        extractor: Optional[StructureExtractor] = None,
    ):
        """Initialize matcher.

        Args:
            store: Template bank to match against
            similarity: Structure similarity function returning 0-1
            config: Matching configuration
            suggestions: Memory consulted for fallback parses
            extractor: Structure extractor (a fresh one by default)
        """
        self.store = store
        self.similarity = similarity
        self.config = config or MatchingConfig()
        self.suggestions = suggestions
        self.extractor = extractor or StructureExtractor()

    def match(self, message: str, sender: Optional[str] = None) -> MatchResult:
        """Match a message against the template bank.

        Args:
            message: Raw message text
            sender: Sender identity, used for fallback suggestions

        Returns:
            MatchResult with origin, extraction and any matched template
        """
        extraction = self.extractor.extract(message)
        fields = extraction.values()
        candidates = self.store.matchable()
        notes: list[str] = []

        # Zero detected fields never resolve to a template
        if fields:
            exact = self._exact_match(extraction, notes)
            if exact is not None:
                logger.info(f"[MATCHER] ✓ Exact match: {exact.id}")
                return MatchResult(
                    origin=Origin.TEMPLATE,
                    extraction=extraction,
                    template=exact,
                    match_kind="exact",
                    similarity=1.0,
                    matched_count=1,
                    fields=fields,
                    defaults=self._template_defaults(exact, fields),
                    total_templates_considered=len(candidates),
                    notes=notes,
                )

            fuzzy = self._fuzzy_match(extraction, candidates)
            if fuzzy is not None:
                template, score, matched_count = fuzzy
                logger.info(
                    f"[MATCHER] ✓ Fuzzy match: {template.id} (similarity: {score:.2f})"
                )
                return MatchResult(
                    origin=Origin.TEMPLATE,
                    extraction=extraction,
                    template=template,
                    match_kind="fuzzy",
                    similarity=score,
                    matched_count=matched_count,
                    fields=fields,
                    defaults=self._template_defaults(template, fields),
                    total_templates_considered=len(candidates),
                    notes=notes,
                )

            logger.debug(f"[MATCHER] No template for structure {extraction.hash}")
            return MatchResult(
                origin=Origin.STRUCTURE,
                extraction=extraction,
                fields=fields,
                total_templates_considered=len(candidates),
                notes=notes,
            )

        vendor_hint = extract_vendor_name(message) or None
        suggestion = None
        if self.suggestions is not None:
            suggestion = self.suggestions.suggest(vendor_hint) or self.suggestions.suggest(sender)

        logger.debug(
            f"[MATCHER] Fallback (vendor hint: {vendor_hint!r}, "
            f"suggestion: {suggestion.source if suggestion else None})"
        )
        return MatchResult(
            origin=Origin.FALLBACK,
            extraction=extraction,
            suggestion=suggestion,
            vendor_hint=vendor_hint,
            total_templates_considered=len(candidates),
            notes=notes,
        )

    def _exact_match(
        self, extraction: StructureExtractionResult, notes: list[str]
    ) -> Optional[Template]:
        template = self.store.get(extraction.hash)
        if template is None:
            return None
        if template.is_deprecated:
            notes.append(f"Template {template.id} is deprecated")
            return None
        if template.field_set != extraction.field_names:
            # Same hash, different placeholders: a hash collision
            notes.append(f"Hash collision with template {template.id}")
            logger.warning(
                f"[MATCHER] Hash collision on {extraction.hash}: "
                f"{sorted(template.field_set)} vs {sorted(extraction.field_names)}"
            )
            return None
        return template

    def _fuzzy_match(
        self, extraction: StructureExtractionResult, candidates: list[Template]
    ) -> Optional[tuple[Template, float, int]]:
        best: Optional[tuple[Template, float]] = None
        matched = 0
        for template in candidates:
            # The exact-hash template was already rejected above
            if template.hash == extraction.hash:
                continue
            if (
                self.config.require_same_fields_for_fuzzy
                and template.field_set != extraction.field_names
            ):
                continue
            score = max(0.0, min(1.0, self.similarity(extraction.structure, template.template)))
            if score < self.config.similarity_threshold:
                continue
            matched += 1
            if best is None or self._rank(template, score) > self._rank(*best):
                best = (template, score)
        if best is None:
            return None
        return best[0], best[1], matched

    @staticmethod
    def _rank(template: Template, score: float) -> tuple:
        # similarity, then confidence, then most recently updated
        return (score, template.meta.confidence_score, template.meta.updated_at)

    @staticmethod
    def _template_defaults(template: Template, fields: dict[str, str]) -> dict[str, str]:
        return {k: v for k, v in template.defaults.items() if v and k not in fields}
