"""Tests for the parsing-failure log."""

from smartpaste.diagnostics import FailureLog, ParsingFailure, failure_key
from smartpaste.storage.base import InMemoryKeyValueStore
from smartpaste.storage.json_state import PARSING_FAILURES_KEY


def failure(n):
    return ParsingFailure(
        message_id=f"m-{n}",
        raw_message=f"message {n}",
        structure_hash=f"{n:08x}",
        confidence=0.1,
        reason="fallback parse below partial threshold",
    )


class TestParsingFailures:
    """Test the bounded failure buffer."""

    def test_ring_buffer_evicts_oldest(self, kv):
        log = FailureLog(kv, max_entries=3).init()
        for n in range(5):
            log.record_parsing_failure(failure(n))

        assert [f.message_id for f in log.parsing_failures()] == ["m-2", "m-3", "m-4"]

    def test_persisted_and_reloaded(self, kv):
        FailureLog(kv).init().record_parsing_failure(failure(1))

        reloaded = FailureLog(kv).init()
        assert reloaded.parsing_failures()[0].structure_hash == "00000001"

    def test_reload_respects_smaller_limit(self, kv):
        log = FailureLog(kv, max_entries=10).init()
        for n in range(6):
            log.record_parsing_failure(failure(n))

        assert len(FailureLog(kv, max_entries=2).init().parsing_failures()) == 2

    def test_invalid_entries_skipped(self):
        kv = InMemoryKeyValueStore({PARSING_FAILURES_KEY: '[{"raw_message": "x"}]'})
        assert FailureLog(kv).init().parsing_failures() == []

    def test_write_failure_returns_warning(self, kv):
        log = FailureLog(kv).init()
        kv.fail_writes = True

        assert log.record_parsing_failure(failure(1)) is not None
        assert len(log.parsing_failures()) == 1


class TestTemplateFailures:
    """Test per-structure/sender failure counters."""

    def test_key_folds_sender(self):
        assert failure_key("abc12345", " AlRajhi ") == "abc12345|alrajhi"
        assert failure_key("abc12345", None) == "abc12345|"

    def test_counts_accumulate(self, kv):
        log = FailureLog(kv).init()
        log.record_template_failure("abc12345", "BANK", "first", template_id="abc12345")
        log.record_template_failure("abc12345", "bank", "second")

        failures = log.template_failures()
        assert len(failures) == 1
        assert failures[0].failure_count == 2
        assert failures[0].last_message == "second"
        assert failures[0].template_id == "abc12345"

    def test_sorted_by_count(self, kv):
        log = FailureLog(kv).init()
        log.record_template_failure("00000001", "A", "x")
        log.record_template_failure("00000002", "B", "y")
        log.record_template_failure("00000002", "B", "z")

        assert [f.structure_hash for f in log.template_failures()] == ["00000002", "00000001"]
        assert [f.failure_count for f in FailureLog(kv).init().template_failures()] == [2, 1]
