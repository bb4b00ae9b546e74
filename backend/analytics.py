"""Learning analytics derived from review logs and the deck.

Daily history, streaks and confusion pairs come from ``ReviewLog`` rows;
per-item rankings come straight from the deck's memory states.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta

from sqlalchemy import and_, case, distinct, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.models.review_log import ReviewLog
from backend.srs.queue import Deck
from backend.srs.sm2 import Item, ItemState, accuracy

logger = logging.getLogger(__name__)

MASTERED_MIN_REPETITIONS = 3


@dataclass
class DailyStats:
    date: date
    reviews: int = 0
    correct: int = 0
    wrong: int = 0

    @property
    def accuracy(self) -> float:
        return self.correct / self.reviews * 100 if self.reviews > 0 else 0.0


@dataclass
class ItemSummary:
    """A ranked item for the difficult/mastered lists."""

    key: str
    memory_strength: float
    accuracy: float
    total_reviews: int
    repetitions: int


@dataclass
class ConfusionPair:
    shown: str
    answered: str
    count: int


def _day_start(now: datetime) -> datetime:
    return datetime.combine(now.date(), time.min)


async def review_streak_days(db: AsyncSession, learner_id: int, now: datetime) -> int:
    """Calculate the number of consecutive days the learner has reviewed."""
    stmt = (
        select(distinct(func.date(ReviewLog.reviewed_at)))
        .where(ReviewLog.learner_id == learner_id)
        .order_by(func.date(ReviewLog.reviewed_at).desc())
    )
    result = await db.execute(stmt)
    dates = [row[0] for row in result.all()]

    if not dates:
        return 0

    today = now.date()
    streak = 0

    for i, review_date in enumerate(dates):
        expected = today - timedelta(days=i)
        if str(review_date) == str(expected):
            streak += 1
        else:
            break

    return streak


async def daily_history(
    db: AsyncSession,
    learner_id: int,
    now: datetime,
    days: int = 30,
) -> list[DailyStats]:
    """Per-day review totals for the last ``days`` days, oldest first."""
    first_day = now.date() - timedelta(days=days - 1)
    day = func.date(ReviewLog.reviewed_at)
    stmt = (
        select(
            day,
            func.count(ReviewLog.id),
            func.sum(case((ReviewLog.passed.is_(True), 1), else_=0)),
        )
        .where(
            and_(
                ReviewLog.learner_id == learner_id,
                ReviewLog.reviewed_at >= datetime.combine(first_day, time.min),
            )
        )
        .group_by(day)
    )
    rows = {str(row[0]): (row[1], row[2] or 0) for row in (await db.execute(stmt)).all()}

    history: list[DailyStats] = []
    for i in range(days):
        current = first_day + timedelta(days=i)
        reviews, correct = rows.get(str(current), (0, 0))
        history.append(
            DailyStats(date=current, reviews=reviews, correct=correct, wrong=reviews - correct)
        )
    return history


async def reviews_today(db: AsyncSession, learner_id: int, now: datetime) -> int:
    stmt = select(func.count(ReviewLog.id)).where(
        and_(ReviewLog.learner_id == learner_id, ReviewLog.reviewed_at >= _day_start(now))
    )
    return (await db.execute(stmt)).scalar() or 0


async def new_introduced_today(db: AsyncSession, learner_id: int, now: datetime) -> int:
    """Count unseen items graded for the first time today."""
    stmt = select(func.count(ReviewLog.id)).where(
        and_(
            ReviewLog.learner_id == learner_id,
            ReviewLog.was_new.is_(True),
            ReviewLog.reviewed_at >= _day_start(now),
        )
    )
    return (await db.execute(stmt)).scalar() or 0


async def confusion_pairs(
    db: AsyncSession,
    learner_id: int,
    threshold: int = 3,
) -> list[ConfusionPair]:
    """Wrong answers given at least ``threshold`` times for the same item."""
    count = func.count(ReviewLog.id)
    stmt = (
        select(ReviewLog.item_key, ReviewLog.response, count)
        .where(
            and_(
                ReviewLog.learner_id == learner_id,
                ReviewLog.passed.is_(False),
                ReviewLog.response != "",
            )
        )
        .group_by(ReviewLog.item_key, ReviewLog.response)
        .having(count >= threshold)
        .order_by(count.desc())
    )
    result = await db.execute(stmt)
    return [ConfusionPair(shown=row[0], answered=row[1], count=row[2]) for row in result.all()]


def overall_accuracy(deck: Deck) -> float:
    """Percentage of all reviews in the deck that passed (0-100)."""
    success = sum(item.success_count for item in deck.items.values())
    failure = sum(item.failure_count for item in deck.items.values())
    total = success + failure
    return success / total * 100 if total > 0 else 0.0


def _summary(item: Item) -> ItemSummary:
    return ItemSummary(
        key=item.key,
        memory_strength=item.memory_strength,
        accuracy=accuracy(item),
        total_reviews=item.total_reviews,
        repetitions=item.repetitions,
    )


def difficult_items(deck: Deck, count: int = 10) -> list[ItemSummary]:
    """Reviewed items with the lowest memory strength first."""
    reviewed = [item for item in deck.items.values() if item.total_reviews > 0]
    reviewed.sort(key=lambda item: item.memory_strength)
    return [_summary(item) for item in reviewed[:count]]


def mastered_items(deck: Deck, count: int = 10) -> list[ItemSummary]:
    """Mature items with a solid run of passes, strongest first."""
    mastered = [
        item
        for item in deck.items.values()
        if item.state is ItemState.MATURE and item.repetitions >= MASTERED_MIN_REPETITIONS
    ]
    mastered.sort(key=lambda item: item.memory_strength, reverse=True)
    return [_summary(item) for item in mastered[:count]]
