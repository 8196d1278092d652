"""Template lifecycle state machine."""

from __future__ import annotations

import logging
from typing import Optional

from smartpaste.templates.config import LifecycleConfig
from smartpaste.templates.models import TemplateMeta, TemplateStatus

logger = logging.getLogger(__name__)

AUTO_DEPRECATION_REASON = "low_success_ratio"


def evaluate_transition(
    meta: TemplateMeta, config: LifecycleConfig
) -> Optional[TemplateStatus]:
    """Return the status a template should move to, or None to stay.

    Deprecated templates never move automatically; only an explicit
    approval reinstates them.

    Args:
        meta: Current template metadata (after counters were updated)
        config: Lifecycle thresholds

    Returns:
        New status, or None when no transition applies
    """
    if meta.status == TemplateStatus.DEPRECATED:
        return None

    ratio = meta.success_ratio

    if meta.usage_count >= config.deprecate_min_usage and ratio < config.deprecate_below_ratio:
        return TemplateStatus.DEPRECATED

    if (
        meta.status == TemplateStatus.LEARNING
        and meta.usage_count >= config.promote_min_usage
        and ratio >= config.promote_min_success_ratio
    ):
        return TemplateStatus.ACTIVE

    return None


def apply_transition(meta: TemplateMeta, config: LifecycleConfig) -> TemplateMeta:
    """Apply ``evaluate_transition`` and return the (possibly) updated meta."""
    new_status = evaluate_transition(meta, config)
    if new_status is None:
        return meta

    logger.info(
        f"[LIFECYCLE] {meta.status.value} -> {new_status.value} "
        f"(usage={meta.usage_count}, ratio={meta.success_ratio:.2f})"
    )
    update: dict = {"status": new_status}
    if new_status == TemplateStatus.DEPRECATED:
        update["deprecated_reason"] = AUTO_DEPRECATION_REASON
    return meta.model_copy(update=update)
