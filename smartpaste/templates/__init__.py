"""Template bank, lifecycle rules and statistics."""

from smartpaste.templates.config import LifecycleConfig
from smartpaste.templates.lifecycle import apply_transition, evaluate_transition
from smartpaste.templates.metrics import compute_template_stats
from smartpaste.templates.models import Template, TemplateMeta, TemplateStats, TemplateStatus
from smartpaste.templates.store import TemplateNotFoundError, TemplateStore

__all__ = [
    # Config
    "LifecycleConfig",
    # Models
    "Template",
    "TemplateMeta",
    "TemplateStatus",
    "TemplateStats",
    # Store
    "TemplateStore",
    "TemplateNotFoundError",
    # Lifecycle
    "evaluate_transition",
    "apply_transition",
    "compute_template_stats",
]
