"""FastAPI router for Smart-Paste parsing and template review."""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, status
from pydantic import BaseModel, Field

from smartpaste.engine.engine import SmartPasteEngine
from smartpaste.engine.models import ParseResult, RawMessage
from smartpaste.learning.models import (
    BatchLearningResult,
    ConfirmedTransaction,
    ImportedTransaction,
    LearningOutcome,
)
from smartpaste.templates.models import Template, TemplateStats
from smartpaste.templates.store import TemplateNotFoundError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/smart-paste", tags=["smart-paste"])

# Global engine instance (set by main app)
_engine: Optional[SmartPasteEngine] = None


def set_engine(engine: Optional[SmartPasteEngine]):
    """Set the global engine instance."""
    global _engine
    _engine = engine


def get_engine() -> SmartPasteEngine:
    if _engine is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Smart-Paste engine not initialized",
        )
    return _engine


class DeprecateRequest(BaseModel):
    """Body of a manual deprecation."""

    reason: str = Field(min_length=1, description="Why the template was rejected")


class BatchLearnRequest(BaseModel):
    """Imported transactions to learn from."""

    transactions: list[ImportedTransaction] = Field(..., min_length=1)


class ReviewResponse(BaseModel):
    """Templates awaiting review."""

    count: int
    templates: list[Template]


@router.post("/parse", response_model=ParseResult, status_code=status.HTTP_200_OK)
async def parse_message(message: RawMessage):
    """Parse a pasted message into a transaction draft.

    The cloud classifier, when configured, is consulted only for weak
    fallback parses.
    """
    engine = get_engine()
    return await engine.parse_async(message.text, message.sender, message.message_id)


@router.post("/confirm", response_model=LearningOutcome, status_code=status.HTTP_200_OK)
async def confirm_transaction(confirmed: ConfirmedTransaction):
    """Feed a user-confirmed transaction into the learning loop."""
    engine = get_engine()
    outcome = engine.confirm(confirmed)
    logger.info(
        f"[API] Confirmed transaction {confirmed.transaction_id or '-'} "
        f"(template: {outcome.template_id or 'none'}, skipped: {outcome.skipped_reason or 'no'})"
    )
    return outcome


@router.post("/learn/batch", response_model=BatchLearningResult, status_code=status.HTTP_200_OK)
async def learn_batch(request: BatchLearnRequest):
    """Learn vendor suggestions and keywords from imported, categorized history."""
    result = get_engine().learn_batch(request.transactions)
    logger.info(
        f"[API] Batch learned {result.vendors_learned} vendor(s), "
        f"{result.keywords_learned} keyword(s) from {len(request.transactions)} transaction(s)"
    )
    return result


@router.get("/templates/review", response_model=ReviewResponse)
async def list_templates_for_review():
    """List templates still in the learning state, most used first."""
    templates = get_engine().list_for_review()
    return ReviewResponse(count=len(templates), templates=templates)


@router.post("/templates/{template_id}/approve", response_model=Template)
async def approve_template(template_id: str):
    """Approve a template, reinstating it if it was deprecated."""
    try:
        return get_engine().approve(template_id)
    except TemplateNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


@router.post("/templates/{template_id}/deprecate", response_model=Template)
async def deprecate_template(template_id: str, request: DeprecateRequest):
    """Reject a template; it is retained but no longer matched."""
    try:
        return get_engine().deprecate(template_id, request.reason)
    except TemplateNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


@router.get("/templates/stats", response_model=TemplateStats)
async def template_stats():
    """Aggregate statistics over the template bank."""
    return get_engine().stats()
