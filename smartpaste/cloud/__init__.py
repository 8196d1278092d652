"""Optional cloud classification fallback."""

from smartpaste.cloud.client import CloudClassification, CloudClassifier
from smartpaste.cloud.config import CloudConfig

__all__ = ["CloudConfig", "CloudClassifier", "CloudClassification"]
