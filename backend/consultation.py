"""
consultation.py — SamvidhanAI
The consultation pipeline: validate → match topic → Groq → normalize → record.

Failure handling:
  - blank query                 → ValidationFailure (before any upstream call)
  - no GROQ_API_KEY             → ConfigurationMissing (no call attempted)
  - Groq call fails             → absorbed; canned topic answer or apology
  - model output not JSON       → absorbed by normalizer fallback
  - database read/write fails   → PersistenceFailure
  - anything else               → logged, fixed 500 payload (route)
"""

import asyncio
import logging
from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ai_gateway import AIGateway, ConfigurationMissing, UpstreamUnavailable
from database import Consultation, HistoryEntry, User
from legal_catalog import MatchResult, build_context, match_topic
from normalizer import GENERIC_DISCLAIMER, Fallback, NormalizedResponse, normalize

logger = logging.getLogger("samvidhan.consultation")

UPSTREAM_APOLOGY = (
    "Sorry, I am having trouble connecting to the AI service right now. "
    "Please try again later."
)

SERVICE_UNAVAILABLE_PAYLOAD = {
    "message": "AI Service Unavailable",
    "response": (
        "The AI service is currently unavailable because the API key is missing. "
        "Please contact the administrator to set GROQ_API_KEY in the environment."
    ),
    "citations": [],
    "disclaimer": "System Error: Essential configuration missing.",
}

PROCESSING_FAILURE_PAYLOAD = {
    "message": "Failed to process AI response",
    "response": UPSTREAM_APOLOGY,
    "citations": [],
    "disclaimer": "",
}


class ValidationFailure(Exception):
    pass


class PersistenceFailure(Exception):
    pass


class UserNotFound(Exception):
    pass


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------


class ConsultationRequest(BaseModel):
    query: str = ""
    mode: Literal["text", "voice", "visual"] = "text"
    visualData: Optional[str] = Field(default=None, description="Base64 image for visual mode")


class ConsultationResponse(BaseModel):
    response: str
    citations: List[str] = []
    disclaimer: str
    isPremium: bool


class ConsultationRecordOut(BaseModel):
    id: int
    query: str
    mode: str
    response: str
    citations: List[str]
    isPremium: bool
    timestamp: datetime

    @classmethod
    def from_row(cls, row) -> "ConsultationRecordOut":
        # Consultation rows carry ai_response; history rows carry response
        return cls(
            id=row.id,
            query=row.query,
            mode=row.mode,
            response=getattr(row, "ai_response", None) or getattr(row, "response", ""),
            citations=list(row.citations or []),
            isPremium=row.is_premium,
            timestamp=row.created_at,
        )


# ---------------------------------------------------------------------------
# Recorder
# ---------------------------------------------------------------------------


def load_user(db: Session, user_id: int) -> User:
    try:
        user = db.get(User, user_id)
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("Failed to load user %s: %s", user_id, exc)
        raise PersistenceFailure(str(exc)) from exc
    if user is None:
        raise UserNotFound(user_id)
    return user


def record_consultation(
    db: Session,
    user: User,
    query: str,
    mode: str,
    result: NormalizedResponse,
    visual_data: Optional[str] = None,
) -> Consultation:
    """Write the consultation and the user's history entry in one commit."""
    user_id = user.id
    is_premium = bool(user.is_premium)
    consultation = Consultation(
        user_id=user_id,
        query=query,
        mode=mode,
        ai_response=result.response_text,
        citations=list(result.citations),
        disclaimer=result.disclaimer,
        is_premium=is_premium,
        visual_data=visual_data,
    )
    entry = HistoryEntry(
        user_id=user_id,
        query=query,
        response=result.response_text,
        mode=mode,
        citations=list(result.citations),
        is_premium=is_premium,
    )
    try:
        db.add_all([consultation, entry])
        db.commit()
        db.refresh(consultation)
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("Failed to record consultation for user %s: %s", user_id, exc)
        raise PersistenceFailure(str(exc)) from exc
    return consultation


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------


def degraded_response(match: MatchResult) -> NormalizedResponse:
    """Answer used when the model could not be reached at all."""
    if match.matched:
        return NormalizedResponse(
            response_text=match.topic.response,
            citations=list(match.topic.citations),
            disclaimer=GENERIC_DISCLAIMER,
        )
    return NormalizedResponse(response_text=UPSTREAM_APOLOGY, citations=[], disclaimer=GENERIC_DISCLAIMER)


async def answer_query(gateway: AIGateway, query: str, image_b64: Optional[str] = None) -> NormalizedResponse:
    """Match, call the model once, normalize. Never raises UpstreamUnavailable."""
    match = match_topic(query)
    if match.matched:
        logger.info("Query matched topic %s (score %d)", match.topic.key, match.score)
    context = build_context(match.topic) if match.matched else None

    try:
        raw = await gateway.generate(query, context=context, image_b64=image_b64)
    except UpstreamUnavailable as exc:
        logger.warning("AI upstream unavailable, serving reference answer: %s", exc)
        return degraded_response(match)

    outcome = normalize(raw, match)
    if isinstance(outcome, Fallback):
        logger.info("Using fallback answer (%s)", outcome.reason)
    return outcome.result


async def run_consultation(
    db: Session,
    gateway: AIGateway,
    user_id: int,
    request: ConsultationRequest,
) -> ConsultationResponse:
    query = (request.query or "").strip()
    if not query:
        raise ValidationFailure("Query is required")

    if not gateway.configured:
        logger.warning("Consultation refused: GROQ_API_KEY is not configured")
        raise ConfigurationMissing("GROQ_API_KEY is not set")

    user = await asyncio.to_thread(load_user, db, user_id)

    image_b64 = request.visualData if request.mode == "visual" else None
    result = await answer_query(gateway, query, image_b64=image_b64)

    record = await asyncio.to_thread(
        record_consultation, db, user, request.query, request.mode, result, image_b64,
    )
    return ConsultationResponse(
        response=result.response_text,
        citations=list(result.citations),
        disclaimer=result.disclaimer,
        isPremium=bool(record.is_premium),
    )
