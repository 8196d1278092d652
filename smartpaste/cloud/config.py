"""Configuration for the optional cloud classifier."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field


class CloudConfig(BaseModel):
    """Configuration for the external classification endpoint."""

    enabled: bool = Field(default=False, description="Consult the cloud classifier")
    url: Optional[str] = Field(default=None, description="Classifier endpoint")
    token: Optional[str] = Field(default=None, description="Bearer token")
    timeout: float = Field(
        default=5.0, gt=0.0, le=60.0, description="Hard bound on one call in seconds"
    )
    max_retries: int = Field(default=1, ge=0, le=5, description="Retries on HTTP errors")
    min_local_confidence: float = Field(
        default=0.4,
        ge=0.0,
        le=1.0,
        description="Only fallback parses below this confidence are sent to the cloud",
    )
    min_cloud_confidence: float = Field(
        default=0.5, ge=0.0, le=1.0, description="Ignore cloud answers below this"
    )

    @classmethod
    def from_settings(cls, settings) -> CloudConfig:
        """Create CloudConfig from app settings."""
        return cls(
            enabled=bool(settings.CLOUD_CLASSIFIER_URL),
            url=settings.CLOUD_CLASSIFIER_URL,
            token=settings.CLOUD_CLASSIFIER_TOKEN,
            timeout=settings.CLOUD_TIMEOUT_SECONDS,
        )
