"""Client for the optional cloud transaction classifier."""

from __future__ import annotations

import asyncio
import logging
from decimal import Decimal, InvalidOperation
from typing import TYPE_CHECKING, Optional

import httpx
from pydantic import BaseModel, Field, ValidationError, field_validator

if TYPE_CHECKING:
    from smartpaste.cloud.config import CloudConfig

logger = logging.getLogger(__name__)


class CloudClassification(BaseModel):
    """Fields returned by the cloud classifier."""

    amount: Optional[str] = None
    currency: Optional[str] = None
    vendor: Optional[str] = None
    type: Optional[str] = None
    category: Optional[str] = None
    subcategory: Optional[str] = None
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)

    @field_validator("amount", mode="before")
    @classmethod
    def _amount_as_text(cls, value):
        if value is None or value == "":
            return None
        try:
            return format(Decimal(str(value).replace(",", "")), "f")
        except InvalidOperation:
            return None

    def as_fields(self) -> dict[str, str]:
        return {
            name: value
            for name, value in self.model_dump(exclude={"confidence"}).items()
            if value
        }


class CloudClassifier:
    """Ask a remote classifier to fill in fields local heuristics missed.

    Every call is bounded by ``config.timeout``. Timeouts, HTTP errors and
    malformed responses are logged and answered with None; cancellation of
    the awaiting task is propagated unchanged.
    """

    def __init__(self, config: CloudConfig, transport: Optional[httpx.AsyncBaseTransport] = None):
        """Initialize client.

        Args:
            config: Cloud configuration
            transport: Optional httpx transport (used by tests)
        """
        self.config = config
        self.transport = transport
        if self.config.enabled and not self.config.url:
            raise ValueError("CLOUD_CLASSIFIER_URL is required when the cloud classifier is enabled")

    async def classify(self, text: str) -> Optional[CloudClassification]:
        """Classify a message.

        Args:
            text: Raw message text

        Returns:
            Classification, or None on timeout, error or low confidence
        """
        if not self.config.enabled:
            return None
        try:
            data = await asyncio.wait_for(self._call(text), timeout=self.config.timeout)
        except asyncio.TimeoutError:
            logger.warning(f"[CLOUD] Classification timed out after {self.config.timeout}s")
            return None
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"[CLOUD] Error calling classifier: {e}")
            return None

        try:
            result = CloudClassification.model_validate(data)
        except ValidationError as e:
            logger.error(f"[CLOUD] Malformed classifier response: {e.error_count()} error(s)")
            return None

        if result.confidence < self.config.min_cloud_confidence:
            logger.info(f"[CLOUD] Ignoring low-confidence answer ({result.confidence:.2f})")
            return None

        logger.info(f"[CLOUD] ✓ Classified (confidence: {result.confidence:.2f})")
        return result

    async def _call(self, text: str) -> dict:
        headers = {"Content-Type": "application/json"}
        if self.config.token:
            headers["Authorization"] = f"Bearer {self.config.token}"

        async with httpx.AsyncClient(
            timeout=self.config.timeout, transport=self.transport
        ) as client:
            for attempt in range(self.config.max_retries + 1):
                try:
                    response = await client.post(
                        self.config.url, headers=headers, json={"text": text}
                    )
                    response.raise_for_status()
                    data = response.json()
                    if not isinstance(data, dict):
                        raise httpx.DecodingError("Classifier response is not an object")
                    return data
                except httpx.HTTPStatusError as e:
                    logger.error(f"[CLOUD] HTTP error (attempt {attempt + 1}): {e}")
                    if attempt == self.config.max_retries:
                        raise

        raise RuntimeError("Failed to call classifier after all retries")
