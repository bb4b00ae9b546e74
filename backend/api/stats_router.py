"""API routes for learner statistics and dashboard data."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from backend.analytics import (
    confusion_pairs,
    daily_history,
    difficult_items,
    mastered_items,
    overall_accuracy,
    review_streak_days,
    reviews_today,
)
from backend.api.schemas import (
    ConfusionPairResponse,
    DailyStatsResponse,
    ItemSummaryResponse,
    LearnerStatsResponse,
    LevelProgressResponse,
)
from backend.config import ms_to_datetime, now_ms, settings
from backend.curriculum import LEVELS, level_accuracy, level_progress
from backend.database import get_session
from backend.models.learner import Learner
from backend.srs.queue import Deck, deck_stats
from backend.storage import get_learner, load_deck, unlocked_levels

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/stats", tags=["stats"])


async def _learner_and_deck(db: AsyncSession, learner_id: int) -> tuple[Learner, Deck]:
    learner = await get_learner(db, learner_id)
    if learner is None:
        raise HTTPException(status_code=404, detail="Learner not found")
    return learner, await load_deck(db, learner_id)


@router.get("/{learner_id}", response_model=LearnerStatsResponse)
async def get_learner_stats(
    learner_id: int,
    db: AsyncSession = Depends(get_session),
) -> LearnerStatsResponse:
    """Get overall statistics for a learner."""
    learner, deck = await _learner_and_deck(db, learner_id)
    now = now_ms()
    now_dt = ms_to_datetime(now)
    stats = deck_stats(deck, now)

    return LearnerStatsResponse(
        total_items=stats.total,
        items_new=stats.new,
        items_learning=stats.learning,
        items_mature=stats.mature,
        items_due=stats.due,
        total_reviews=stats.total_reviews,
        total_success=stats.total_success,
        total_failure=stats.total_failure,
        overall_accuracy=round(overall_accuracy(deck), 1),
        streak_days=await review_streak_days(db, learner_id, now_dt),
        reviews_today=await reviews_today(db, learner_id, now_dt),
        current_level=learner.current_level,
        unlocked_levels=unlocked_levels(learner),
        sessions_count=learner.sessions_count,
        longest_streak=learner.longest_streak,
    )


@router.get("/{learner_id}/history", response_model=list[DailyStatsResponse])
async def get_history(
    learner_id: int,
    days: int = Query(30, ge=1, le=365),
    db: AsyncSession = Depends(get_session),
) -> list[DailyStatsResponse]:
    """Get per-day review totals, oldest first."""
    await _learner_and_deck(db, learner_id)
    history = await daily_history(db, learner_id, ms_to_datetime(now_ms()), days=days)
    return [
        DailyStatsResponse(
            date=day.date,
            reviews=day.reviews,
            correct=day.correct,
            wrong=day.wrong,
            accuracy=round(day.accuracy, 1),
        )
        for day in history
    ]


@router.get("/{learner_id}/difficult", response_model=list[ItemSummaryResponse])
async def get_difficult(
    learner_id: int,
    count: int = Query(10, ge=1, le=100),
    db: AsyncSession = Depends(get_session),
) -> list[ItemSummaryResponse]:
    """Get the reviewed items with the weakest memory strength."""
    _, deck = await _learner_and_deck(db, learner_id)
    return [ItemSummaryResponse(**vars(s)) for s in difficult_items(deck, count)]


@router.get("/{learner_id}/mastered", response_model=list[ItemSummaryResponse])
async def get_mastered(
    learner_id: int,
    count: int = Query(10, ge=1, le=100),
    db: AsyncSession = Depends(get_session),
) -> list[ItemSummaryResponse]:
    """Get the strongest mature items."""
    _, deck = await _learner_and_deck(db, learner_id)
    return [ItemSummaryResponse(**vars(s)) for s in mastered_items(deck, count)]


@router.get("/{learner_id}/confusions", response_model=list[ConfusionPairResponse])
async def get_confusions(
    learner_id: int,
    threshold: int | None = Query(None, ge=1),
    db: AsyncSession = Depends(get_session),
) -> list[ConfusionPairResponse]:
    """Get characters the learner repeatedly answers with the same wrong romanization."""
    await _learner_and_deck(db, learner_id)
    pairs = await confusion_pairs(
        db, learner_id, threshold=threshold or settings.confusion_threshold
    )
    return [ConfusionPairResponse(shown=p.shown, answered=p.answered, count=p.count) for p in pairs]


@router.get("/{learner_id}/levels", response_model=list[LevelProgressResponse])
async def get_levels(
    learner_id: int,
    db: AsyncSession = Depends(get_session),
) -> list[LevelProgressResponse]:
    """Get progress through each curriculum level."""
    learner, deck = await _learner_and_deck(db, learner_id)
    unlocked = unlocked_levels(learner)
    result: list[LevelProgressResponse] = []
    for level in LEVELS:
        progress = level_progress(deck, level.number)
        result.append(
            LevelProgressResponse(
                level=level.number,
                name=level.name,
                unlocked=level.number in unlocked,
                total_chars=progress.total_chars,
                reviewed_chars=progress.reviewed_chars,
                mastered_chars=progress.mastered_chars,
                accuracy=round(level_accuracy(deck, level.number), 1),
            )
        )
    return result
