"""API routes for review sessions."""

import logging
import time
import uuid

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from backend.analytics import new_introduced_today
from backend.api.schemas import (
    AnswerRequest,
    AnswerResponse,
    ItemResponse,
    NextItemResponse,
    RevealRequest,
    SessionStartResponse,
    SessionStatsResponse,
)
from backend.config import ms_to_datetime, now_ms, settings
from backend.curriculum import check_level_unlocks
from backend.database import get_session
from backend.srs.queue import deck_stats
from backend.srs.session import ReviewOutcome, ReviewSession, start_session
from backend.srs.sm2 import ItemState
from backend.storage import (
    finish_session,
    get_learner,
    open_deck,
    record_review,
    save_deck,
    set_unlocked_levels,
    unlocked_levels,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/session", tags=["session"])

# In-memory session store: session id -> (session, monotonic start time)
_active_sessions: dict[str, tuple[ReviewSession, float]] = {}


def _purge_expired() -> None:
    cutoff = time.monotonic() - settings.session_ttl_seconds
    expired = [sid for sid, (_, started) in _active_sessions.items() if started < cutoff]
    for sid in expired:
        del _active_sessions[sid]
    if expired:
        logger.info("Dropped %d expired review sessions", len(expired))


def _get_active(session_id: str) -> ReviewSession:
    entry = _active_sessions.get(session_id)
    if entry is None:
        raise HTTPException(status_code=404, detail="Session not found")
    return entry[0]


@router.post("/start", response_model=SessionStartResponse)
async def session_start(
    learner_id: int,
    db: AsyncSession = Depends(get_session),
) -> SessionStartResponse:
    """Start a new review session for a learner."""
    _purge_expired()

    learner = await get_learner(db, learner_id)
    if learner is None:
        raise HTTPException(status_code=404, detail="Learner not found")

    now = now_ms()
    deck = await open_deck(db, learner, now)
    introduced = await new_introduced_today(db, learner_id, ms_to_datetime(now))
    review_session = start_session(
        deck,
        now,
        learner_id=learner_id,
        new_introduced_today=introduced,
        longest_streak=learner.longest_streak,
    )

    session_id = str(uuid.uuid4())
    _active_sessions[session_id] = (review_session, time.monotonic())

    stats = deck_stats(deck, now)
    return SessionStartResponse(
        session_id=session_id,
        learner_id=learner_id,
        total_items=stats.total,
        due_items=stats.due,
        new_available=min(stats.new, review_session.new_remaining_today),
        max_reviews=deck.max_reviews_per_session,
    )


@router.get("/next/{session_id}", response_model=NextItemResponse)
async def session_next(session_id: str) -> NextItemResponse:
    """Get the next item in the session."""
    review_session = _get_active(session_id)

    item = review_session.get_next(now_ms())
    if item is None:
        raise HTTPException(status_code=410, detail="No more items in session")

    return NextItemResponse(
        item=ItemResponse.from_item(item),
        is_new=item.state is ItemState.NEW,
        remaining=review_session.remaining,
    )


async def _commit_outcome(
    db: AsyncSession,
    review_session: ReviewSession,
    outcome: ReviewOutcome,
    time_ms: int,
    now: int,
) -> AnswerResponse:
    """Persist a graded answer and build the response."""
    learner_id = review_session.learner_id
    learner = await get_learner(db, learner_id)
    if learner is None:
        raise HTTPException(status_code=404, detail="Learner not found")

    record_review(db, learner_id, outcome, time_ms, now)

    levels = unlocked_levels(learner)
    newly_unlocked = check_level_unlocks(review_session.deck, levels, now)
    if newly_unlocked:
        set_unlocked_levels(learner, levels)

    await save_deck(db, learner_id, review_session.deck)

    return AnswerResponse(
        grade=outcome.assessment.grade.value,
        suggested_quality=outcome.assessment.suggested_quality,
        applied_quality=outcome.quality,
        feedback=outcome.assessment.feedback,
        correct_answer=outcome.assessment.expected,
        item=ItemResponse.from_item(outcome.item),
        remaining=review_session.remaining,
        streak=review_session.stats.current_streak,
        newly_unlocked_levels=newly_unlocked,
    )


@router.post("/answer/{session_id}", response_model=AnswerResponse)
async def session_answer(
    session_id: str,
    request: AnswerRequest,
    db: AsyncSession = Depends(get_session),
) -> AnswerResponse:
    """Submit an answer for an item."""
    review_session = _get_active(session_id)

    now = now_ms()
    outcome = review_session.submit_answer(
        request.item_key,
        request.response,
        request.time_ms,
        now,
        quality=request.quality,
    )
    if outcome is None:
        raise HTTPException(status_code=404, detail="Item not found")

    return await _commit_outcome(db, review_session, outcome, request.time_ms, now)


@router.post("/reveal/{session_id}", response_model=AnswerResponse)
async def session_reveal(
    session_id: str,
    request: RevealRequest,
    db: AsyncSession = Depends(get_session),
) -> AnswerResponse:
    """Reveal the answer; graded as a complete blackout."""
    review_session = _get_active(session_id)

    now = now_ms()
    outcome = review_session.reveal(request.item_key, request.time_ms, now)
    if outcome is None:
        raise HTTPException(status_code=404, detail="Item not found")

    return await _commit_outcome(db, review_session, outcome, request.time_ms, now)


@router.get("/stats/{session_id}", response_model=SessionStatsResponse)
async def session_stats(session_id: str) -> SessionStatsResponse:
    """Get stats for the current session."""
    review_session = _get_active(session_id)

    s = review_session.stats
    return SessionStatsResponse(
        reviews=s.reviews,
        correct=s.correct,
        wrong=s.wrong,
        new_items_seen=s.new_items_seen,
        current_streak=s.current_streak,
        longest_streak=s.longest_streak,
        accuracy=review_session.accuracy,
        average_time_ms=s.average_time_ms,
    )


@router.post("/end/{session_id}")
async def session_end(
    session_id: str,
    db: AsyncSession = Depends(get_session),
) -> dict:
    """End a session and fold its totals into the learner record."""
    entry = _active_sessions.pop(session_id, None)
    if entry is None:
        raise HTTPException(status_code=404, detail="Session not found")

    review_session = entry[0]
    learner = await get_learner(db, review_session.learner_id)
    if learner is not None:
        await finish_session(db, learner, review_session)

    s = review_session.stats
    return {
        "status": "ended",
        "reviews": s.reviews,
        "correct": s.correct,
        "wrong": s.wrong,
    }
