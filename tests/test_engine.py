"""End-to-end tests for the Smart-Paste engine facade."""

import pytest

from smartpaste.core.config import Settings
from smartpaste.engine import EngineConfig, SmartPasteEngine
from smartpaste.learning import ConfirmedTransaction, ImportedTransaction
from smartpaste.matching import FieldSource, Origin
from smartpaste.storage.base import InMemoryKeyValueStore
from smartpaste.templates import Template, TemplateMeta, TemplateStatus


class TestParse:
    """Test draft construction and scoring."""

    def test_spent_message(self, engine):
        result = engine.parse("Spent 100 SAR at Store")

        assert result.origin == Origin.STRUCTURE
        assert result.draft.amount == "100"
        assert result.draft.currency == "SAR"
        assert result.draft.vendor == "Store"
        assert result.draft.type == "expense"
        assert result.field_sources["amount"] == FieldSource.DIRECT
        assert result.field_sources["type"] == FieldSource.INFERRED

    def test_defaults_fill_remaining_fields(self, engine):
        result = engine.parse("Spent 100 SAR at Store")

        assert result.draft.date == "2024-05-01"
        assert result.draft.category == "Uncategorized"
        assert result.draft.subcategory == "none"
        assert result.draft.fromAccount == ""
        assert result.field_sources["date"] == FieldSource.DEFAULT
        assert "fromAccount" not in result.fields
        assert len(result.field_sources) == 8

    def test_confidence_and_status(self, engine):
        result = engine.parse("Spent 100 SAR at Store")

        # 3 direct, 1 inferred, 4 defaults
        assert result.confidence == round((3 * 1.0 + 0.6 + 4 * 0.25) / 8, 4)
        assert result.parsing_status == "partial"
        assert result.needs_review is True
        assert result.field_confidences["amount"] == 1.0

    def test_income_fallback_category(self, engine):
        result = engine.parse("Salary credited SAR 5,000")

        assert result.draft.amount == "5000"
        assert result.draft.type == "income"
        assert result.draft.vendor == "Company"
        assert result.draft.category == "Earnings"
        assert result.draft.subcategory == "Benefits"

    def test_is_financial_flag(self, engine):
        assert engine.parse("تم شراء بمبلغ 150 ريال بتاريخ 01/05/2024").is_financial is True
        assert engine.parse("Hello there").is_financial is False

    def test_deterministic(self, engine):
        first = engine.parse("Spent 100 SAR at Store")
        second = engine.parse("Spent 100 SAR at Store")

        assert first.model_dump() == second.model_dump()

    def test_requires_init(self, kv):
        with pytest.raises(RuntimeError):
            SmartPasteEngine(kv).parse("Spent 100 SAR at Store")


class TestLearningRoundTrip:
    """Test parse -> confirm -> parse."""

    def test_second_message_matches_learned_template(self, engine):
        first = engine.parse("Paid 50 SAR at CoffeeShop")
        assert first.origin == Origin.STRUCTURE

        outcome = engine.confirm(
            ConfirmedTransaction(
                transaction_id="txn-1",
                raw_message="Paid 50 SAR at CoffeeShop",
                fields={**first.fields, "category": "Food", "subcategory": "Coffee"},
                edited_fields={"category": True, "subcategory": True},
                structure_hash=first.hash,
                confidence=first.confidence,
            )
        )
        assert outcome.template_created is True

        second = engine.parse("Paid 75 SAR at CoffeeShop")

        assert second.origin == Origin.TEMPLATE
        assert second.match_kind == "exact"
        assert second.matched_template_id == outcome.template_id
        assert second.matched_count == 1
        assert second.total_templates_considered == 1
        assert second.draft.amount == "75"
        assert second.draft.category == "Food"
        assert second.field_sources["category"] == FieldSource.INFERRED

    def test_template_match_raises_confidence(self, engine):
        first = engine.parse("Paid 50 SAR at CoffeeShop")
        engine.confirm(
            ConfirmedTransaction(
                transaction_id="txn-1",
                raw_message="Paid 50 SAR at CoffeeShop",
                fields={**first.fields, "category": "Food", "subcategory": "Coffee"},
                structure_hash=first.hash,
            )
        )

        second = engine.parse("Paid 75 SAR at CoffeeShop")

        assert second.confidence > first.confidence

    def test_vendor_memory_used_for_new_structures(self, engine):
        engine.confirm(
            ConfirmedTransaction(
                transaction_id="txn-1",
                raw_message="Paid 50 SAR at CoffeeShop",
                fields={"amount": "50", "vendor": "CoffeeShop", "category": "Food"},
            )
        )

        result = engine.parse("Card purchase at CoffeeShop, SAR 12")

        assert result.draft.vendor == "CoffeeShop"
        assert result.draft.category == "Food"
        assert result.field_sources["category"] == FieldSource.INFERRED

    def test_batch_learned_vendor_used_for_suggestions(self, engine):
        history = [
            ImportedTransaction(vendor="Starbucks", type="expense", category="Food")
            for _ in range(3)
        ]

        result = engine.learn_batch(history)
        parsed = engine.parse("Card purchase at Starbucks, SAR 12")

        assert result.vendors_learned == 1
        assert parsed.draft.category == "Food"
        assert parsed.field_sources["category"] == FieldSource.INFERRED

    def test_zero_field_message_never_creates_template(self, engine):
        result = engine.parse("Hello there")
        outcome = engine.confirm(
            ConfirmedTransaction(
                transaction_id="txn-1",
                raw_message="Hello there",
                fields={"amount": "10", "category": "Misc"},
                structure_hash=result.hash,
            )
        )

        assert result.origin == Origin.FALLBACK
        assert outcome.skipped_reason == "no_fields"
        assert len(engine.store) == 0

    def test_review_operations(self, engine):
        first = engine.parse("Paid 50 SAR at CoffeeShop")
        outcome = engine.confirm(
            ConfirmedTransaction(
                transaction_id="txn-1",
                raw_message="Paid 50 SAR at CoffeeShop",
                fields=first.fields,
                structure_hash=first.hash,
            )
        )

        assert [t.id for t in engine.list_for_review()] == [outcome.template_id]
        assert engine.approve(outcome.template_id).meta.status == TemplateStatus.ACTIVE
        engine.deprecate(outcome.template_id, "wrong_layout")

        result = engine.parse("Paid 75 SAR at CoffeeShop")
        assert result.origin == Origin.STRUCTURE
        assert engine.stats().by_status == {"deprecated": 1}


class TestFailuresAndWarnings:
    """Test diagnostics and persistence warnings."""

    def test_failed_parse_is_logged(self, engine):
        result = engine.parse("Hello there", sender="Friend", message_id="m-1")

        assert result.parsing_status == "failed"
        failures = engine.failures()["parsing_failures"]
        assert len(failures) == 1
        assert failures[0].message_id == "m-1"
        assert failures[0].structure_hash == result.hash

    def test_template_failure_recorded(self, engine):
        extraction = engine.extractor.extract("Paid 50 SAR at CoffeeShop")
        engine.store.upsert(
            Template(
                id=extraction.hash,
                hash=extraction.hash,
                template=extraction.structure,
                fields=sorted(extraction.field_names),
                meta=TemplateMeta(
                    status=TemplateStatus.ACTIVE, usage_count=10, success_count=1
                ),
            )
        )

        result = engine.parse("Paid 75 SAR at CoffeeShop", sender="BANK")

        assert result.origin == Origin.TEMPLATE
        assert result.parsing_status == "failed"
        failures = engine.failures()["template_failures"]
        assert failures[0].template_id == extraction.hash
        assert failures[0].failure_count == 1

    def test_write_failures_become_warnings(self, clock):
        kv = InMemoryKeyValueStore()
        engine = SmartPasteEngine(kv, clock=clock).init()
        kv.fail_writes = True

        result = engine.parse("Hello there")

        assert result.warnings
        assert result.draft.date == "2024-05-01"

    def test_corrupt_state_starts_empty(self, clock):
        kv = InMemoryKeyValueStore(
            {
                "smartpaste.templates": "not json",
                "smartpaste.vendor_suggestions": "[]",
                "smartpaste.parsing_failures": "{broken",
            }
        )
        engine = SmartPasteEngine(kv, clock=clock).init()

        assert len(engine.store) == 0
        assert engine.parse("Spent 100 SAR at Store").origin == Origin.STRUCTURE


class TestEngineConfig:
    """Test configuration wiring."""

    def test_from_settings(self):
        settings = Settings(
            FUZZY_MATCH_THRESHOLD=0.9,
            DEFAULT_CURRENCY="EGP",
            CLOUD_CLASSIFIER_URL="https://classifier.example/api",
            CLOUD_CLASSIFIER_TOKEN="secret",
        )

        config = EngineConfig.from_settings(settings)

        assert config.matching.similarity_threshold == 0.9
        assert config.defaults.currency == "EGP"
        assert config.cloud.enabled is True
        assert config.cloud.token == "secret"

    def test_default_currency_used(self, kv, clock):
        config = EngineConfig.from_settings(Settings(DEFAULT_CURRENCY="EGP"))
        engine = SmartPasteEngine(kv, config, clock=clock).init()

        assert engine.parse("Hello there").draft.currency == "EGP"

    def test_invalid_config_rejected(self, kv):
        config = EngineConfig()
        config.scoring.partial_threshold = 0.9
        config.scoring.success_threshold = 0.5

        with pytest.raises(ValueError):
            SmartPasteEngine(kv, config)
