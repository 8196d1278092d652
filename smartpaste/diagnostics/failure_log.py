"""Parsing-failure diagnostics.

Two logs are kept:
- a ring buffer of recent failed parses (newest last), and
- per (structure hash, sender) counters of templates that matched but still
  produced a failed parse, so a reviewer can spot templates needing retraining.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

import structlog
from pydantic import BaseModel, Field, ValidationError

from smartpaste.storage.base import KeyValueStore
from smartpaste.storage.json_state import (
    PARSING_FAILURES_KEY,
    TEMPLATE_FAILURES_KEY,
    load_json,
    save_json,
)

logger = structlog.get_logger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


class ParsingFailure(BaseModel):
    """One failed parse."""

    message_id: Optional[str] = None
    raw_message: str
    sender: Optional[str] = None
    structure_hash: str
    confidence: float = Field(ge=0.0, le=1.0)
    reason: str
    logged_at: datetime = Field(default_factory=_now)


class TemplateFailure(BaseModel):
    """Failures of one template for one sender."""

    structure_hash: str
    sender: Optional[str] = None
    template_id: Optional[str] = None
    failure_count: int = Field(default=0, ge=0)
    last_message: str = ""
    last_failed_at: datetime = Field(default_factory=_now)

    @property
    def key(self) -> str:
        return failure_key(self.structure_hash, self.sender)


def failure_key(structure_hash: str, sender: Optional[str]) -> str:
    return f"{structure_hash}|{(sender or '').strip().lower()}"


class FailureLog:
    """Persisted parsing-failure diagnostics."""

    def __init__(self, kv: KeyValueStore, max_entries: int = 100):
        self.kv = kv
        self.max_entries = max_entries
        self._failures: list[ParsingFailure] = []
        self._template_failures: dict[str, TemplateFailure] = {}

    def init(self) -> "FailureLog":
        self._failures = []
        for data in load_json(self.kv, PARSING_FAILURES_KEY, [])[-self.max_entries :]:
            try:
                self._failures.append(ParsingFailure.model_validate(data))
            except ValidationError:
                logger.warning("failure_log.entry_invalid")
        self._template_failures = {}
        for key, data in load_json(self.kv, TEMPLATE_FAILURES_KEY, {}).items():
            try:
                self._template_failures[key] = TemplateFailure.model_validate(data)
            except ValidationError:
                logger.warning("failure_log.template_entry_invalid", key=key)
        return self

    def record_parsing_failure(self, failure: ParsingFailure) -> Optional[str]:
        """Append a failure, evicting the oldest beyond ``max_entries``.

        Returns:
            A warning if the log could not be persisted
        """
        self._failures.append(failure)
        if len(self._failures) > self.max_entries:
            del self._failures[: len(self._failures) - self.max_entries]
        logger.info(
            "parse.failed",
            structure_hash=failure.structure_hash,
            confidence=failure.confidence,
            reason=failure.reason,
        )
        return save_json(
            self.kv,
            PARSING_FAILURES_KEY,
            [f.model_dump(mode="json") for f in self._failures],
        )

    def record_template_failure(
        self,
        structure_hash: str,
        sender: Optional[str],
        raw_message: str,
        template_id: Optional[str] = None,
    ) -> Optional[str]:
        key = failure_key(structure_hash, sender)
        entry = self._template_failures.get(key) or TemplateFailure(
            structure_hash=structure_hash, sender=sender, template_id=template_id
        )
        self._template_failures[key] = entry.model_copy(
            update={
                "failure_count": entry.failure_count + 1,
                "last_message": raw_message,
                "last_failed_at": _now(),
                "template_id": template_id or entry.template_id,
            }
        )
        logger.warning(
            "template.match_failed",
            template_id=template_id,
            structure_hash=structure_hash,
            failures=entry.failure_count + 1,
        )
        return save_json(
            self.kv,
            TEMPLATE_FAILURES_KEY,
            {k: v.model_dump(mode="json") for k, v in self._template_failures.items()},
        )

    def parsing_failures(self) -> list[ParsingFailure]:
        return list(self._failures)

    def template_failures(self) -> list[TemplateFailure]:
        """Template failures, most frequent first."""
        return sorted(
            self._template_failures.values(),
            key=lambda f: f.failure_count,
            reverse=True,
        )
