"""Tests for the learning/feedback loop."""

import itertools

import pytest

from smartpaste.extraction import extract_structure
from smartpaste.inference import KeywordBank
from smartpaste.learning import ConfirmedTransaction, ImportedTransaction, LearningLoop
from smartpaste.learning.batch import import_confidence, vendor_group_key
from smartpaste.matching import TemplateMatcher
from smartpaste.suggestions import SenderCategoryRules, SuggestionMemory
from smartpaste.templates import Template, TemplateStatus

MESSAGE = "Paid 50 SAR at CoffeeShop"

_ids = itertools.count(1)


def confirmed(raw=MESSAGE, edited=None, transaction_id=None, sender="BANK", **fields):
    values = {
        "amount": "50",
        "currency": "SAR",
        "vendor": "CoffeeShop",
        "type": "expense",
        "category": "Food",
        "subcategory": "Coffee",
    }
    values.update(fields)
    return ConfirmedTransaction(
        transaction_id=transaction_id or f"txn-{next(_ids)}",
        raw_message=raw,
        sender=sender,
        fields=values,
        edited_fields={name: True for name in (edited or [])},
    )


@pytest.fixture
def rules(kv):
    return SenderCategoryRules(kv).init()


@pytest.fixture
def suggestions(kv, rules):
    return SuggestionMemory(kv, rules).init()


@pytest.fixture
def loop(kv, store, suggestions, rules):
    return LearningLoop(store, suggestions, rules, kv=kv).init()


class TestTemplateCreation:
    """Test creation of templates from first confirmations."""

    def test_first_confirmation_creates_learning_template(self, loop, store):
        outcome = loop.apply(confirmed())

        assert outcome.template_created is True
        assert outcome.template_status == TemplateStatus.LEARNING
        template = store.get(extract_structure(MESSAGE).hash)
        assert template.meta.usage_count == 1
        assert template.meta.success_count == 1
        assert template.template == "Paid {amount} {currency} at {vendor}"
        assert template.fields == ["amount", "currency", "vendor"]
        assert template.defaults == {
            "type": "expense",
            "category": "Food",
            "subcategory": "Coffee",
        }

    def test_edited_extracted_field_is_not_a_success(self, loop, store):
        outcome = loop.apply(confirmed(edited=["amount"], amount="55"))

        assert outcome.success is False
        assert store.get(outcome.template_id).meta.success_count == 0

    def test_zero_fields_never_create_template(self, loop, store):
        outcome = loop.apply(confirmed(raw="Hello there"))

        assert outcome.template_created is False
        assert outcome.skipped_reason == "no_fields"
        assert len(store) == 0

    def test_hash_collision_skipped(self, loop, store):
        extraction = extract_structure(MESSAGE)
        store.upsert(
            Template(
                id=extraction.hash,
                hash=extraction.hash,
                template=extraction.structure,
                fields=["amount"],
            )
        )

        outcome = loop.apply(confirmed())

        assert outcome.skipped_reason == "hash_collision"
        assert store.get(extraction.hash).fields == ["amount"]


class TestTemplateUpdates:
    """Test counters, defaults and lifecycle transitions."""

    def test_usage_and_success_increment(self, loop, store):
        loop.apply(confirmed())
        outcome = loop.apply(confirmed(raw="Paid 75 SAR at CoffeeShop", amount="75"))

        template = store.get(outcome.template_id)
        assert outcome.template_created is False
        assert outcome.success is True
        assert template.meta.usage_count == 2
        assert template.meta.success_count == 2
        assert template.meta.confidence_score == 1.0
        assert template.meta.last_used_at is not None

    def test_correcting_supplied_field_is_failure(self, loop, store):
        loop.apply(confirmed())
        outcome = loop.apply(confirmed(edited=["category"], category="Work"))

        template = store.get(outcome.template_id)
        assert outcome.success is False
        assert template.meta.success_count == 1
        assert template.meta.confidence_score == 0.5
        assert template.defaults["category"] == "Work"

    def test_editing_unsupplied_field_is_success(self, loop, store):
        loop.apply(confirmed())
        outcome = loop.apply(confirmed(edited=["date"], date="2024-05-01"))

        assert outcome.success is True

    def test_promotion_to_active(self, loop, store):
        outcomes = [loop.apply(confirmed()) for _ in range(5)]

        assert outcomes[-1].template_status == TemplateStatus.ACTIVE
        assert outcomes[-1].status_changed is True
        assert store.list_for_review() == []

    def test_deprecation_after_failures(self, loop, store):
        loop.apply(confirmed())
        loop.apply(confirmed(edited=["amount"]))
        outcome = loop.apply(confirmed(edited=["vendor"]))

        template = store.get(outcome.template_id)
        assert template.meta.usage_count == 3
        assert template.meta.success_count == 1
        assert template.meta.status == TemplateStatus.DEPRECATED
        assert template.meta.deprecated_reason == "low_success_ratio"
        assert outcome.status_changed is True

    def test_deprecated_template_is_not_updated(self, loop, store, suggestions):
        first = loop.apply(confirmed())
        store.deprecate(first.template_id, "rejected")

        outcome = loop.apply(confirmed(category="Treats"))

        assert outcome.skipped_reason == "template_deprecated"
        assert store.get(first.template_id).meta.usage_count == 1
        assert suggestions.suggest("CoffeeShop").category == "Treats"

    def test_monotonic_counters(self, loop, store):
        edits = [[], ["amount"], [], ["vendor", "category"], ["date"], ["type"], []]
        for edited in edits * 3:
            outcome = loop.apply(confirmed(edited=edited))
            if outcome.template_id is None:
                continue
            meta = store.get(outcome.template_id).meta
            assert 0 <= meta.success_count <= meta.usage_count
            assert 0.0 <= meta.confidence_score <= 1.0

    def test_reuses_match_extraction(self, loop, store):
        loop.apply(confirmed())
        match = TemplateMatcher(store).match("Paid 75 SAR at CoffeeShop")

        outcome = loop.apply(confirmed(raw="Paid 75 SAR at CoffeeShop", amount="75"), match)

        assert outcome.template_id == match.matched_template_id
        assert store.get(outcome.template_id).meta.usage_count == 2


class TestIdempotenceAndMemory:
    """Test once-per-transaction application and memory updates."""

    def test_applied_once_per_transaction(self, loop, store):
        loop.apply(confirmed(transaction_id="txn-dup"))
        outcome = loop.apply(confirmed(transaction_id="txn-dup"))

        assert outcome.skipped_reason == "already_applied"
        assert store.all()[0].meta.usage_count == 1

    def test_processed_ids_survive_restart(self, kv, store, suggestions, rules):
        LearningLoop(store, suggestions, rules, kv=kv).init().apply(
            confirmed(transaction_id="txn-persisted")
        )

        restarted = LearningLoop(store, suggestions, rules, kv=kv).init()
        outcome = restarted.apply(confirmed(transaction_id="txn-persisted"))

        assert outcome.skipped_reason == "already_applied"

    def test_memory_updated_with_final_values(self, loop, suggestions, rules):
        loop.apply(confirmed(edited=["category"], category="Work", sender="AlRajhi"))

        assert suggestions.suggest("coffeeshop").category == "Work"
        assert rules.rule("alrajhi").category == "Work"

    def test_write_failure_surfaces_warnings(self, kv, loop, store):
        kv.fail_writes = True

        outcome = loop.apply(confirmed())

        assert outcome.template_created is True
        assert outcome.warnings
        assert len(store) == 1


def imported(vendor="Starbucks", category="Food", subcategory="Coffee", type="expense", **extra):
    return ImportedTransaction(
        vendor=vendor, category=category, subcategory=subcategory, type=type, **extra
    )


@pytest.fixture
def keywords(kv):
    return KeywordBank(kv).init()


@pytest.fixture
def batch_loop(kv, store, suggestions, rules, keywords):
    return LearningLoop(store, suggestions, rules, kv=kv, keywords=keywords).init()


class TestBatchLearning:
    """Test learning from imported, categorized history."""

    def test_dominant_classification_per_vendor(self, batch_loop, suggestions):
        result = batch_loop.learn_batch(
            [
                imported(),
                imported(vendor="STAR-BUCKS "),
                imported(),
                imported(category="Shopping", subcategory=None),
            ]
        )

        assert result.vendors_learned == 1
        entry = suggestions.entry("Starbucks")
        assert (entry.category, entry.subcategory, entry.type) == ("Food", "Coffee", "expense")
        assert entry.source == "import"
        assert entry.sample_count == 3
        assert entry.confidence == 0.7
        assert suggestions.suggest("starbucks").category == "Food"

    def test_single_transactions_are_ignored(self, batch_loop, suggestions, keywords):
        result = batch_loop.learn_batch([imported(), imported(vendor="Netflix")])

        assert result.vendors_learned == 0
        assert result.keywords_learned == 0
        assert len(suggestions) == 0
        assert keywords.entry("starbucks") is None

    def test_empty_batch(self, batch_loop):
        result = batch_loop.learn_batch([])

        assert result.model_dump() == {
            "vendors_learned": 0,
            "keywords_learned": 0,
            "conflicts": [],
            "warnings": [],
        }

    def test_title_used_without_vendor(self, batch_loop, suggestions):
        batch_loop.learn_batch(
            [imported(vendor=None, title="Netflix", category="Entertainment")] * 2
        )

        assert suggestions.suggest("netflix").category == "Entertainment"

    def test_keeps_user_defined_mapping(self, batch_loop, suggestions):
        suggestions.learn("Starbucks", "expense", "Work", None)

        result = batch_loop.learn_batch([imported()] * 5)

        assert result.vendors_learned == 0
        assert result.conflicts == ["Starbucks: kept user-defined mapping"]
        assert suggestions.suggest("starbucks").category == "Work"

    def test_keeps_stronger_imported_mapping(self, batch_loop, suggestions):
        batch_loop.learn_batch([imported()] * 5)

        result = batch_loop.learn_batch([imported(category="Dining")] * 2)

        assert result.conflicts == ["Starbucks: kept existing higher-confidence mapping"]
        assert suggestions.entry("starbucks").confidence == 0.9
        assert suggestions.suggest("starbucks").category == "Food"

    def test_stronger_import_replaces_weaker(self, batch_loop, suggestions):
        batch_loop.learn_batch([imported()] * 2)

        result = batch_loop.learn_batch([imported(category="Dining")] * 3)

        assert result.vendors_learned == 1
        assert result.conflicts == []
        assert suggestions.suggest("starbucks").category == "Dining"

    def test_new_keyword_learned(self, batch_loop, keywords):
        result = batch_loop.learn_batch([imported()] * 2)

        assert result.keywords_learned == 1
        entry = keywords.entry("starbucks")
        assert entry.mapping_for("category") == "Food"
        assert entry.mapping_for("subcategory") == "Coffee"
        assert entry.mapping_count == 2
        assert keywords.infer("Card purchase at Starbucks").fields["category"] == "Food"

    def test_existing_keyword_only_gains_missing_mappings(self, batch_loop, keywords):
        keywords.learn("Starbucks", {"category": "Drinks"})

        result = batch_loop.learn_batch([imported()] * 3)

        assert result.keywords_learned == 1
        entry = keywords.entry("starbucks")
        assert entry.mapping_for("category") == "Drinks"
        assert entry.mapping_for("subcategory") == "Coffee"
        assert entry.mapping_count == 4

    def test_imported_entries_listed_and_persisted(self, kv, batch_loop, suggestions, rules):
        suggestions.learn("CoffeeShop", "expense", "Food", None)
        batch_loop.learn_batch([imported()] * 2)

        assert [e.vendor for e in suggestions.imported()] == ["Starbucks"]
        reloaded = SuggestionMemory(kv, rules).init()
        assert reloaded.entry("starbucks").source == "import"
        assert reloaded.entry("coffeeshop").source == "user"

    def test_write_failure_surfaces_warnings(self, kv, batch_loop):
        kv.fail_writes = True

        result = batch_loop.learn_batch([imported()] * 2)

        assert result.vendors_learned == 1
        assert result.warnings

    def test_vendor_group_key(self):
        assert vendor_group_key("  Star-Bucks 24 ") == "starbucks24"
        assert vendor_group_key("مطعم البيك") == "مطعمالبيك"
        assert vendor_group_key("x" * 80) == "x" * 50
        assert vendor_group_key(None) == ""

    @pytest.mark.parametrize("count,expected", [(2, 0.5), (3, 0.7), (4, 0.7), (5, 0.9), (12, 0.9)])
    def test_import_confidence(self, count, expected):
        assert import_confidence(count) == expected
