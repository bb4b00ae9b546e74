"""Review session orchestrator.

Coordinates the memory model, queue and assessment into a session flow,
and applies the limits the engine leaves to its host: the daily cap on
introducing unseen items and the per-session review cap.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field

from backend.curriculum import romanization
from backend.srs.assessment import (
    REVEALED_QUALITY,
    Assessment,
    AssessmentGrade,
    assess_romanization,
)
from backend.srs.queue import Deck, get_item, next_item
from backend.srs.sm2 import Item, ItemState, clamp_quality, grade

logger = logging.getLogger(__name__)


@dataclass
class SessionStats:
    """Running statistics for one review session."""

    reviews: int = 0
    correct: int = 0
    wrong: int = 0
    new_items_seen: int = 0
    current_streak: int = 0
    longest_streak: int = 0
    total_time_ms: int = 0
    average_time_ms: float = 0.0


@dataclass
class ReviewOutcome:
    """What happened when one answer was graded."""

    item: Item
    assessment: Assessment
    quality: int
    was_new: bool
    strength_before: float
    revealed: bool = False


@dataclass
class ReviewSession:
    """Manages an active review session over one deck."""

    deck: Deck
    learner_id: int | None = None
    started_at: int = 0  # Epoch ms
    new_introduced_today: int = 0
    answer_for: Callable[[str], str] = romanization
    max_reviews: int | None = None  # Overrides the deck cap for this session only
    stats: SessionStats = field(default_factory=SessionStats)

    @property
    def review_cap(self) -> int:
        if self.max_reviews is None:
            return self.deck.max_reviews_per_session
        return max(0, self.max_reviews)

    @property
    def remaining(self) -> int:
        """Reviews left before the session cap is reached."""
        return max(0, self.review_cap - self.stats.reviews)

    @property
    def new_remaining_today(self) -> int:
        return max(0, self.deck.new_items_per_day - self.new_introduced_today)

    @property
    def accuracy(self) -> float:
        """Session accuracy as a percentage (0-100)."""
        total = self.stats.correct + self.stats.wrong
        return self.stats.correct / total * 100 if total > 0 else 0.0

    def get_next(self, now: int) -> Item | None:
        """Return the next item to present, or None when the session is done."""
        if self.remaining == 0:
            return None

        item = next_item(self.deck, now)
        if item is None:
            return None

        if item.state is ItemState.NEW and self.new_remaining_today == 0:
            logger.debug("Daily new item cap (%d) reached", self.deck.new_items_per_day)
            return None

        return item

    def submit_answer(
        self,
        key: str,
        response: str,
        time_ms: int,
        now: int,
        quality: int | None = None,
    ) -> ReviewOutcome | None:
        """Assess a typed answer and grade the item.

        Args:
            key: The item being answered.
            response: What the learner typed.
            time_ms: How long the response took in milliseconds.
            now: Review time in epoch ms.
            quality: Optional quality override (0-5).

        Returns:
            The outcome, or None if the deck has no such item.
        """
        item = get_item(self.deck, key)
        if item is None:
            return None

        assessment = assess_romanization(response, self.answer_for(key), time_ms)
        applied = assessment.suggested_quality if quality is None else clamp_quality(quality)
        return self._apply(item, assessment, applied, time_ms, now)

    def reveal(self, key: str, time_ms: int, now: int) -> ReviewOutcome | None:
        """Show the answer; counts as a complete blackout."""
        item = get_item(self.deck, key)
        if item is None:
            return None

        expected = self.answer_for(key)
        assessment = Assessment(
            grade=AssessmentGrade.INCORRECT,
            suggested_quality=REVEALED_QUALITY,
            feedback=f"The answer was: {expected}",
            expected=expected,
            actual="",
        )
        return self._apply(item, assessment, REVEALED_QUALITY, time_ms, now, revealed=True)

    def _apply(
        self,
        item: Item,
        assessment: Assessment,
        quality: int,
        time_ms: int,
        now: int,
        revealed: bool = False,
    ) -> ReviewOutcome:
        was_new = item.state is ItemState.NEW
        strength_before = item.memory_strength

        grade(item, quality, time_ms, now)

        s = self.stats
        s.reviews += 1
        s.total_time_ms += max(0, time_ms)
        s.average_time_ms = s.total_time_ms / s.reviews
        if was_new:
            s.new_items_seen += 1
            self.new_introduced_today += 1
        if assessment.correct:
            s.correct += 1
            s.current_streak += 1
            s.longest_streak = max(s.longest_streak, s.current_streak)
        else:
            s.wrong += 1
            s.current_streak = 0

        logger.debug(
            "Graded %r q=%d: interval=%d reps=%d strength=%.2f",
            item.key,
            quality,
            item.interval,
            item.repetitions,
            item.memory_strength,
        )

        return ReviewOutcome(
            item=item,
            assessment=assessment,
            quality=quality,
            was_new=was_new,
            strength_before=strength_before,
            revealed=revealed,
        )


def start_session(
    deck: Deck,
    now: int,
    learner_id: int | None = None,
    new_introduced_today: int = 0,
    longest_streak: int = 0,
    max_reviews: int | None = None,
) -> ReviewSession:
    """Start a new review session over a deck.

    Args:
        deck: The learner's deck.
        now: Session start time in epoch ms.
        learner_id: Owning learner, if persisted.
        new_introduced_today: Unseen items already introduced today.
        longest_streak: Best streak carried over from earlier sessions.
        max_reviews: Review cap for this session; defaults to the deck's.

    Returns:
        A ReviewSession ready for use.
    """
    session = ReviewSession(
        deck=deck,
        learner_id=learner_id,
        started_at=now,
        new_introduced_today=new_introduced_today,
        max_reviews=max_reviews,
        stats=SessionStats(longest_streak=longest_streak),
    )
    logger.info(
        "Started session for learner %s: %d items, %d new allowed today",
        learner_id,
        len(deck.items),
        session.new_remaining_today,
    )
    return session
