"""Aggregate statistics over the template bank."""

from __future__ import annotations

from collections import Counter
from datetime import datetime, timedelta
from typing import Iterable, Optional

from smartpaste.templates.models import Template, TemplateStats, utcnow


def compute_template_stats(
    templates: Iterable[Template],
    stale_after_days: int = 90,
    now: Optional[datetime] = None,
    top_n: int = 5,
) -> TemplateStats:
    """Summarize usage, success and freshness of templates.

    Args:
        templates: Templates to summarize
        stale_after_days: Age after which an unused template counts as stale
        now: Reference time (defaults to the current UTC time)
        top_n: Number of entries in ``most_used``

    Returns:
        TemplateStats snapshot
    """
    templates = list(templates)
    if not templates:
        return TemplateStats()

    cutoff = (now or utcnow()) - timedelta(days=stale_after_days)
    by_status = Counter(t.meta.status.value for t in templates)
    field_counts = Counter(field for t in templates for field in t.fields)
    total_usage = sum(t.meta.usage_count for t in templates)
    total_success = sum(t.meta.success_count for t in templates)
    stale = sum(
        1
        for t in templates
        if t.meta.last_used_at is None or t.meta.last_used_at < cutoff
    )
    most_used = sorted(templates, key=lambda t: t.meta.usage_count, reverse=True)[:top_n]

    return TemplateStats(
        total_templates=len(templates),
        by_status=dict(by_status),
        total_usage=total_usage,
        total_success=total_success,
        average_confidence=round(
            sum(t.meta.confidence_score for t in templates) / len(templates), 4
        ),
        average_usage=round(total_usage / len(templates), 2),
        overall_success_ratio=round(total_success / total_usage, 4) if total_usage else 0.0,
        stale_templates=stale,
        most_used=[
            {
                "id": t.id,
                "template": t.template,
                "usage_count": t.meta.usage_count,
                "status": t.meta.status.value,
            }
            for t in most_used
        ],
        top_fields=dict(field_counts.most_common()),
    )
