"""Tests for template matching, similarity and confidence scoring."""

from datetime import datetime, timedelta, timezone

import pytest

from smartpaste.extraction import extract_structure
from smartpaste.matching import (
    ConfidenceScorer,
    FieldSource,
    MatchingConfig,
    Origin,
    ScoringConfig,
    SourceWeights,
    TemplateMatcher,
    ratio_similarity,
    token_sort_similarity,
)
from smartpaste.suggestions import SenderCategoryRules, SuggestionMemory
from smartpaste.templates import Template, TemplateMeta, TemplateStatus

NOW = datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)


def template_from(message, defaults=None, hash=None, fields=None, **meta):
    extraction = extract_structure(message)
    template_hash = hash or extraction.hash
    return Template(
        id=template_hash,
        hash=template_hash,
        template=extraction.structure,
        fields=list(fields if fields is not None else extraction.field_names),
        defaults=defaults or {},
        raw_sample=message,
        meta=TemplateMeta(**meta),
    )


@pytest.fixture
def suggestions(kv):
    rules = SenderCategoryRules(kv).init()
    return SuggestionMemory(kv, rules).init()


# Test Similarity


class TestSimilarity:
    """Test similarity functions."""

    def test_ratio_identical(self):
        assert ratio_similarity("Paid {amount}", "Paid {amount}") == 1.0

    def test_ratio_empty(self):
        assert ratio_similarity("", "Paid {amount}") == 0.0

    def test_token_sort_ignores_order(self):
        assert token_sort_similarity("{amount} paid", "paid {amount}") == 1.0

    def test_suffix_similarity(self):
        base = "Paid {amount} {currency} at {vendor}"
        assert ratio_similarity(base, base + " via Pay") == pytest.approx(0.9)


# Test Matching


class TestTemplateMatcher:
    """Test exact, fuzzy, structure and fallback resolution."""

    def test_exact_match(self, store):
        store.upsert(template_from("Paid 50 SAR at CoffeeShop", defaults={"category": "Food"}))
        matcher = TemplateMatcher(store)

        result = matcher.match("Paid 75 SAR at CoffeeShop")

        assert result.origin == Origin.TEMPLATE
        assert result.match_kind == "exact"
        assert result.fields["amount"] == "75"
        assert result.defaults == {"category": "Food"}
        assert result.matched_count == 1
        assert result.total_templates_considered == 1

    def test_extracted_values_win_over_defaults(self, store):
        store.upsert(
            template_from("Paid 50 SAR at CoffeeShop", defaults={"vendor": "Old", "type": "expense"})
        )

        result = TemplateMatcher(store).match("Paid 75 SAR at CoffeeShop")

        assert result.fields["vendor"] == "CoffeeShop"
        assert result.defaults == {"type": "expense"}

    def test_deprecated_template_not_matched(self, store):
        store.upsert(
            template_from("Paid 50 SAR at CoffeeShop", status=TemplateStatus.DEPRECATED)
        )

        result = TemplateMatcher(store).match("Paid 75 SAR at CoffeeShop")

        assert result.origin == Origin.STRUCTURE
        assert result.template is None
        assert result.total_templates_considered == 0

    def test_hash_collision_compares_field_sets(self, store):
        store.upsert(template_from("Paid 50 SAR at CoffeeShop", fields=["amount"]))

        result = TemplateMatcher(store).match("Paid 75 SAR at CoffeeShop")

        assert result.origin == Origin.STRUCTURE
        assert any("collision" in note for note in result.notes)

    def test_fuzzy_match(self, store):
        store.upsert(template_from("Paid 50 SAR at CoffeeShop"))

        result = TemplateMatcher(store).match("Paid 75 SAR at CoffeeShop via Pay")

        assert result.origin == Origin.TEMPLATE
        assert result.match_kind == "fuzzy"
        assert result.similarity == pytest.approx(0.9)
        assert result.fields["amount"] == "75"

    def test_fuzzy_below_threshold(self, store):
        store.upsert(template_from("Paid 50 SAR at CoffeeShop"))
        matcher = TemplateMatcher(store, config=MatchingConfig(similarity_threshold=0.95))

        result = matcher.match("Paid 75 SAR at CoffeeShop via Pay")

        assert result.origin == Origin.STRUCTURE

    def test_fuzzy_tie_broken_by_confidence(self, store):
        store.upsert(template_from("Paid 1 SAR at A", hash="00000001", confidence_score=0.5))
        store.upsert(template_from("Paid 1 SAR at A", hash="00000002", confidence_score=0.9))
        matcher = TemplateMatcher(store, similarity=lambda a, b: 0.9)

        result = matcher.match("Spent 20 SAR at Store")

        assert result.matched_template_id == "00000002"
        assert result.matched_count == 2

    def test_fuzzy_tie_broken_by_recency(self, store):
        store.upsert(
            template_from(
                "Paid 1 SAR at A", hash="00000001", confidence_score=0.9, updated_at=NOW
            )
        )
        store.upsert(
            template_from(
                "Paid 1 SAR at A",
                hash="00000002",
                confidence_score=0.9,
                updated_at=NOW - timedelta(days=1),
            )
        )
        matcher = TemplateMatcher(store, similarity=lambda a, b: 0.9)

        result = matcher.match("Spent 20 SAR at Store")

        assert result.matched_template_id == "00000001"

    def test_structure_origin(self, store):
        result = TemplateMatcher(store).match("Spent 100 SAR at Store")

        assert result.origin == Origin.STRUCTURE
        assert result.fields == {"amount": "100", "currency": "SAR", "vendor": "Store"}

    def test_fallback_uses_suggestion_memory(self, store, suggestions):
        suggestions.sender_rules.learn("STC Pay", "Bills", "Mobile")
        matcher = TemplateMatcher(store, suggestions=suggestions)

        result = matcher.match("Your bill is ready", sender="stc pay")

        assert result.origin == Origin.FALLBACK
        assert result.suggestion.source == "sender"
        assert result.suggestion.category == "Bills"

    def test_fallback_vendor_hint(self, store, suggestions):
        suggestions.learn("Company", "income", "Salary", "Monthly")
        matcher = TemplateMatcher(store, suggestions=suggestions)

        result = matcher.match("Your salary has been deposited")

        assert result.origin == Origin.FALLBACK
        assert result.vendor_hint == "Company"
        assert result.suggestion.category == "Salary"

    def test_empty_field_set_never_matches_template(self, store):
        store.upsert(template_from("Paid 1 SAR at A", hash="00000001"))
        matcher = TemplateMatcher(store, similarity=lambda a, b: 1.0)

        result = matcher.match("Hello there")

        assert result.origin == Origin.FALLBACK
        assert result.template is None


# Test Scoring


class TestConfidenceScorer:
    """Test confidence scoring."""

    @pytest.fixture
    def scorer(self):
        return ConfidenceScorer()

    def test_direct_beats_default(self, scorer):
        direct = {"amount": FieldSource.DIRECT, "currency": FieldSource.DIRECT}
        default = {"amount": FieldSource.DEFAULT, "currency": FieldSource.DEFAULT}

        assert scorer.score(Origin.STRUCTURE, direct) > scorer.score(Origin.STRUCTURE, default)

    def test_structure_score(self, scorer):
        sources = {
            "amount": FieldSource.DIRECT,
            "type": FieldSource.INFERRED,
            "category": FieldSource.DEFAULT,
        }
        assert scorer.score(Origin.STRUCTURE, sources) == round((1.0 + 0.6 + 0.25) / 3, 4)

    def test_template_uses_success_ratio(self, scorer):
        template = template_from("Paid 1 SAR at A", usage_count=4, success_count=2)
        sources = {"amount": FieldSource.DIRECT}

        assert scorer.score(Origin.TEMPLATE, sources, template) == 0.5

    def test_unused_template_counts_as_successful(self, scorer):
        template = template_from("Paid 1 SAR at A")
        assert scorer.score(Origin.TEMPLATE, {"amount": FieldSource.DIRECT}, template) == 1.0

    def test_fallback_base(self, scorer):
        assert scorer.score(Origin.FALLBACK, {"amount": FieldSource.DIRECT}) == 0.25

    def test_empty_sources(self, scorer):
        assert scorer.score(Origin.STRUCTURE, {}) == 0.0

    def test_deterministic(self, scorer):
        sources = {"amount": FieldSource.DIRECT, "vendor": FieldSource.INFERRED}
        assert scorer.score(Origin.STRUCTURE, sources) == scorer.score(Origin.STRUCTURE, sources)

    def test_parsing_status(self, scorer):
        assert scorer.parsing_status(0.8) == "success"
        assert scorer.parsing_status(0.79) == "partial"
        assert scorer.parsing_status(0.4) == "partial"
        assert scorer.parsing_status(0.39) == "failed"

    def test_field_confidences(self, scorer):
        confidences = scorer.field_confidences(
            {"amount": FieldSource.DIRECT, "date": FieldSource.DEFAULT}
        )
        assert confidences == {"amount": 1.0, "date": 0.25}

    def test_invalid_config(self):
        with pytest.raises(ValueError):
            ConfidenceScorer(ScoringConfig(success_threshold=0.3, partial_threshold=0.5))
        with pytest.raises(ValueError):
            ConfidenceScorer(ScoringConfig(weights=SourceWeights(direct=0.5, inferred=0.6)))
