"""Persisted template bank."""

from __future__ import annotations

import threading
from collections import defaultdict
from datetime import datetime, timedelta
from typing import Callable, Optional

import structlog
from pydantic import ValidationError

from smartpaste.storage.base import KeyValueStore
from smartpaste.storage.json_state import TEMPLATES_KEY, load_json, save_json
from smartpaste.templates.config import LifecycleConfig
from smartpaste.templates.metrics import compute_template_stats
from smartpaste.templates.models import Template, TemplateStats, TemplateStatus, utcnow

logger = structlog.get_logger(__name__)


class TemplateNotFoundError(KeyError):
    """Raised when an operation targets an unknown template id."""

    def __init__(self, template_id: str):
        self.template_id = template_id
        super().__init__(template_id)

    def __str__(self) -> str:
        return f"Template not found: {self.template_id}"


class TemplateStore:
    """hash -> Template bank backed by a KeyValueStore.

    The in-memory map is authoritative once ``init()`` has loaded it. Every
    mutation persists the whole bank synchronously; a failed write is
    logged and kept in ``warnings`` rather than raised.

    Mutations of one template are serialized through a per-id lock so a
    read-modify-write via ``update()`` can never lose a concurrent update.
    """

    def __init__(self, kv: KeyValueStore, lifecycle: Optional[LifecycleConfig] = None):
        self.kv = kv
        self.lifecycle = lifecycle or LifecycleConfig()
        self._templates: dict[str, Template] = {}
        self._locks: defaultdict[str, threading.Lock] = defaultdict(threading.Lock)
        self._locks_guard = threading.Lock()
        self._save_lock = threading.Lock()
        self.warnings: list[str] = []

    def init(self) -> "TemplateStore":
        """Load templates from the backing store.

        Entries that fail validation are skipped with a warning; a corrupt
        document yields an empty bank.
        """
        raw = load_json(self.kv, TEMPLATES_KEY, {})
        templates: dict[str, Template] = {}
        for key, data in raw.items():
            try:
                template = Template.model_validate(data)
            except ValidationError as e:
                logger.warning("template.invalid", key=key, errors=e.error_count())
                continue
            templates[template.hash] = template
        self._templates = templates
        logger.info("template_store.loaded", templates=len(templates))
        return self

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get(self, hash: str) -> Optional[Template]:
        return self._templates.get(hash)

    def get_by_id(self, template_id: str) -> Optional[Template]:
        # id == hash, kept as a separate entry point for callers holding an id
        return self._templates.get(template_id)

    def all(self) -> list[Template]:
        return list(self._templates.values())

    def matchable(self) -> list[Template]:
        """Templates eligible for matching (not deprecated)."""
        return [t for t in self._templates.values() if not t.is_deprecated]

    def list_for_review(self) -> list[Template]:
        """Templates still in the learning state, most used first."""
        return sorted(
            (t for t in self._templates.values() if t.meta.status == TemplateStatus.LEARNING),
            key=lambda t: (-t.meta.usage_count, t.meta.created_at),
        )

    def stale_templates(
        self, days: Optional[int] = None, now: Optional[datetime] = None
    ) -> list[Template]:
        """Templates not used within ``days`` (or never used)."""
        days = days if days is not None else self.lifecycle.stale_after_days
        cutoff = (now or utcnow()) - timedelta(days=days)
        return [
            t
            for t in self._templates.values()
            if t.meta.last_used_at is None or t.meta.last_used_at < cutoff
        ]

    def stats(self, now: Optional[datetime] = None) -> TemplateStats:
        return compute_template_stats(
            self._templates.values(), self.lifecycle.stale_after_days, now
        )

    def __len__(self) -> int:
        return len(self._templates)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def upsert(self, template: Template) -> Template:
        with self._lock_for(template.id):
            self._commit(template)
        logger.debug("template.upserted", template_id=template.id)
        return template

    def update(self, template_id: str, fn: Callable[[Template], Template]) -> Template:
        """Atomically replace a template with ``fn(current)``.

        Raises:
            TemplateNotFoundError: If the id is unknown
        """
        with self._lock_for(template_id):
            current = self._templates.get(template_id)
            if current is None:
                raise TemplateNotFoundError(template_id)
            # Re-validate so counter invariants hold for every committed state
            updated = Template.model_validate(fn(current).model_dump())
            self._commit(updated)
            return updated

    def approve(self, template_id: str) -> Template:
        """Mark a template active; reinstates a deprecated one."""

        def _approve(template: Template) -> Template:
            meta_update: dict = {
                "status": TemplateStatus.ACTIVE,
                "deprecated_reason": None,
                "updated_at": utcnow(),
            }
            if template.is_deprecated and self.lifecycle.reset_on_reinstate:
                meta_update.update(usage_count=0, success_count=0, confidence_score=1.0)
            return template.model_copy(
                update={"meta": template.meta.model_copy(update=meta_update)}
            )

        was_deprecated = self._require(template_id).is_deprecated
        template = self.update(template_id, _approve)
        logger.info(
            "template.approved", template_id=template_id, reinstated=was_deprecated
        )
        return template

    def deprecate(self, template_id: str, reason: str) -> Template:
        """Mark a template deprecated. It is retained but no longer matched."""

        def _deprecate(template: Template) -> Template:
            meta = template.meta.model_copy(
                update={
                    "status": TemplateStatus.DEPRECATED,
                    "deprecated_reason": reason,
                    "updated_at": utcnow(),
                }
            )
            return template.model_copy(update={"meta": meta})

        template = self.update(template_id, _deprecate)
        logger.info("template.deprecated", template_id=template_id, reason=reason)
        return template

    def reset_counters(self, template_id: str) -> Template:
        def _reset(template: Template) -> Template:
            meta = template.meta.model_copy(
                update={
                    "usage_count": 0,
                    "success_count": 0,
                    "confidence_score": 1.0,
                    "updated_at": utcnow(),
                }
            )
            return template.model_copy(update={"meta": meta})

        logger.info("template.counters_reset", template_id=template_id)
        return self.update(template_id, _reset)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _require(self, template_id: str) -> Template:
        template = self._templates.get(template_id)
        if template is None:
            raise TemplateNotFoundError(template_id)
        return template

    def _lock_for(self, template_id: str) -> threading.Lock:
        with self._locks_guard:
            return self._locks[template_id]

    def _commit(self, template: Template) -> None:
        with self._save_lock:
            self._templates[template.hash] = template
            payload = {
                key: stored.model_dump(mode="json")
                for key, stored in self._templates.items()
            }
            warning = save_json(self.kv, TEMPLATES_KEY, payload)
        if warning:
            self.warnings.append(warning)

    def drain_warnings(self) -> list[str]:
        """Return and clear persistence warnings accumulated so far."""
        warnings, self.warnings = self.warnings, []
        return warnings
