"""Deck persistence, schema migration and JSON import/export.

The engine never touches storage: the host restores a learner's deck
wholesale before a session and writes it back after every review.
Payloads carry a schema version; older layouts are migrated by merging
their fields over fresh defaults.
"""

import json
import logging
from typing import Any

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.config import ms_to_datetime, settings
from backend.curriculum import seed_level
from backend.models.deck_snapshot import DeckSnapshot
from backend.models.learner import Learner
from backend.models.review_log import ReviewLog
from backend.srs.queue import Deck
from backend.srs.serialization import DeckFormatError, deck_from_dict, deck_to_dict
from backend.srs.session import ReviewOutcome, ReviewSession
from backend.srs.sm2 import PASS_QUALITY

logger = logging.getLogger(__name__)

STORAGE_VERSION = 2


def new_deck() -> Deck:
    """Create an empty deck using the configured limits."""
    return Deck(
        new_items_per_day=settings.new_items_per_day,
        max_reviews_per_session=settings.max_reviews_per_session,
    )


def default_data() -> dict[str, Any]:
    """Return the full export structure for a learner with no progress."""
    return {
        "version": STORAGE_VERSION,
        "deck": deck_to_dict(new_deck()),
        "settings": {
            "currentLevel": 1,
            "unlockedLevels": [1],
        },
        "stats": {
            "sessionsCount": 0,
            "longestStreak": 0,
            "totalTimeSpent": 0,  # milliseconds
        },
    }


def _section(value: Any, name: str) -> dict[str, Any]:
    """Return an optional JSON object, raising if it has the wrong shape."""
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise DeckFormatError(f"Invalid data format: {name} must be an object")
    return value


def _migrate_v1_card(key: str, card: Any) -> dict[str, Any]:
    """Translate a version-1 card (boolean state flags) to the item layout."""
    card = _section(card, f"card {key!r}")
    if card.get("isNew", True):
        state = "new"
    elif card.get("isMature") and not card.get("isLearning"):
        state = "mature"
    else:
        state = "learning"

    item: dict[str, Any] = {
        "interval": card.get("interval", 0),
        "repetitions": card.get("repetitions", 0),
        "totalReviews": card.get("totalReviews", 0),
        "averageResponseTime": card.get("averageResponseTime", 0.0),
        "state": state,
    }
    renamed = {
        "easeFactor": "memoryStrength",
        "nextReview": "dueAt",
        "lastReviewed": "lastReviewedAt",
        "correctCount": "successCount",
        "incorrectCount": "failureCount",
    }
    for old, new in renamed.items():
        if card.get(old) is not None:
            item[new] = card[old]
    return item


def migrate(data: dict[str, Any]) -> dict[str, Any]:
    """Upgrade a stored or imported payload to the current version.

    Raises:
        DeckFormatError: If a section of the payload has the wrong shape.
    """
    version = data.get("version", 1)
    logger.info("Migrating data from version %s to %d", version, STORAGE_VERSION)

    defaults = default_data()
    deck = _section(data.get("deck"), "deck")
    stats = dict(_section(data.get("stats"), "stats"))
    saved_settings = _section(data.get("settings"), "settings")

    if isinstance(version, int) and version < 2:
        cards = _section(deck.get("cards"), "deck.cards")
        deck = {
            "items": {key: _migrate_v1_card(key, card) for key, card in cards.items()},
            "newItemsPerDay": deck.get("newCardsPerDay") or settings.new_items_per_day,
            "maxReviewsPerSession": deck.get("maxReviewsPerSession")
            or settings.max_reviews_per_session,
        }
        # Version 1 kept the best streak with the transient session block
        session = _section(data.get("session"), "session")
        if "longestStreak" in session:
            stats.setdefault("longestStreak", session["longestStreak"])

    return {
        "version": STORAGE_VERSION,
        "deck": {**defaults["deck"], **deck},
        "settings": {**defaults["settings"], **saved_settings},
        "stats": {**defaults["stats"], **stats},
    }


def unlocked_levels(learner: Learner) -> list[int]:
    try:
        levels = json.loads(learner.unlocked_levels)
    except json.JSONDecodeError:
        logger.warning("Learner %d has unreadable unlocked levels; resetting", learner.id)
        return [1]
    return [int(level) for level in levels] or [1]


def set_unlocked_levels(learner: Learner, levels: list[int]) -> None:
    learner.unlocked_levels = json.dumps(sorted(set(levels)))
    learner.current_level = max(levels) if levels else 1


async def create_learner(db: AsyncSession, name: str) -> Learner:
    learner = Learner(name=name, current_level=1, unlocked_levels="[1]")
    db.add(learner)
    await db.commit()
    await db.refresh(learner)
    logger.info("Created learner %d (%s)", learner.id, name)
    return learner


async def get_learner(db: AsyncSession, learner_id: int) -> Learner | None:
    return await db.get(Learner, learner_id)


async def _get_snapshot(db: AsyncSession, learner_id: int) -> DeckSnapshot | None:
    stmt = select(DeckSnapshot).where(DeckSnapshot.learner_id == learner_id)
    return (await db.execute(stmt)).scalar_one_or_none()


async def load_deck(db: AsyncSession, learner_id: int) -> Deck:
    """Restore a learner's deck, or a fresh one if nothing usable is stored."""
    snapshot = await _get_snapshot(db, learner_id)
    if snapshot is None:
        return new_deck()

    try:
        payload = json.loads(snapshot.payload)
        if snapshot.version != STORAGE_VERSION:
            payload = migrate({"version": snapshot.version, "deck": payload})["deck"]
        deck = deck_from_dict(payload)
    except (json.JSONDecodeError, DeckFormatError):
        logger.exception("Stored deck for learner %d is unreadable; starting fresh", learner_id)
        return new_deck()

    logger.debug("Loaded deck for learner %d: %d items", learner_id, len(deck.items))
    return deck


async def open_deck(db: AsyncSession, learner: Learner, now: int) -> Deck:
    """Load a learner's deck and make sure their current level is seeded."""
    deck = await load_deck(db, learner.id)
    if seed_level(deck, learner.current_level, now):
        await save_deck(db, learner.id, deck)
    return deck


async def save_deck(db: AsyncSession, learner_id: int, deck: Deck) -> None:
    """Write the whole deck back and commit (including any pending review logs)."""
    payload = json.dumps(deck_to_dict(deck), ensure_ascii=False)
    snapshot = await _get_snapshot(db, learner_id)
    if snapshot is None:
        db.add(DeckSnapshot(learner_id=learner_id, version=STORAGE_VERSION, payload=payload))
    else:
        snapshot.version = STORAGE_VERSION
        snapshot.payload = payload
    await db.commit()


def record_review(
    db: AsyncSession,
    learner_id: int,
    outcome: ReviewOutcome,
    time_ms: int,
    now: int,
) -> ReviewLog:
    """Stage a review log row; it is committed by the next ``save_deck``.

    ``now`` is the epoch-ms time the item was graded at, so the log agrees
    with the item's ``last_reviewed_at``.
    """
    log = ReviewLog(
        learner_id=learner_id,
        item_key=outcome.item.key,
        quality=outcome.quality,
        passed=outcome.quality >= PASS_QUALITY,
        was_new=outcome.was_new,
        response=outcome.assessment.actual[:64],
        time_ms=max(0, time_ms),
        strength_before=outcome.strength_before,
        strength_after=outcome.item.memory_strength,
        interval_after=outcome.item.interval,
        reviewed_at=ms_to_datetime(now),
    )
    db.add(log)
    return log


async def finish_session(db: AsyncSession, learner: Learner, session: ReviewSession) -> None:
    """Fold a finished session's totals into the learner record."""
    if session.stats.reviews > 0:
        learner.sessions_count += 1
    learner.longest_streak = max(learner.longest_streak, session.stats.longest_streak)
    learner.total_time_ms += session.stats.total_time_ms
    await db.commit()


async def export_data(db: AsyncSession, learner: Learner) -> str:
    """Export a learner's full progress as pretty-printed JSON."""
    deck = await load_deck(db, learner.id)
    data = {
        "version": STORAGE_VERSION,
        "deck": deck_to_dict(deck),
        "settings": {
            "currentLevel": learner.current_level,
            "unlockedLevels": unlocked_levels(learner),
        },
        "stats": {
            "sessionsCount": learner.sessions_count,
            "longestStreak": learner.longest_streak,
            "totalTimeSpent": learner.total_time_ms,
        },
    }
    return json.dumps(data, indent=2, ensure_ascii=False)


async def import_data(db: AsyncSession, learner: Learner, text: str) -> Deck:
    """Replace a learner's progress with an exported JSON document.

    Raises:
        DeckFormatError: If the document is not a valid export.
    """
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise DeckFormatError(f"Import is not valid JSON: {exc.msg}") from exc

    if not isinstance(data, dict) or not all(data.get(k) for k in ("version", "deck", "settings")):
        raise DeckFormatError("Invalid data format: expected version, deck and settings")

    if data["version"] != STORAGE_VERSION:
        data = migrate(data)

    deck = deck_from_dict(data["deck"])
    saved_settings = _section(data["settings"], "settings")
    stats = _section(data.get("stats"), "stats")
    levels = saved_settings.get("unlockedLevels") or [1]

    try:
        set_unlocked_levels(learner, [int(level) for level in levels])
        learner.current_level = int(saved_settings.get("currentLevel", learner.current_level))
        learner.sessions_count = int(stats.get("sessionsCount", 0))
        learner.longest_streak = int(stats.get("longestStreak", 0))
        learner.total_time_ms = int(stats.get("totalTimeSpent", 0))
    except (TypeError, ValueError) as exc:
        raise DeckFormatError(f"Invalid settings or stats: {exc}") from exc

    await save_deck(db, learner.id, deck)
    logger.info("Imported %d items for learner %d", len(deck.items), learner.id)
    return deck


async def reset_learner(db: AsyncSession, learner: Learner) -> None:
    """Clear all progress for a learner."""
    await db.execute(delete(DeckSnapshot).where(DeckSnapshot.learner_id == learner.id))
    await db.execute(delete(ReviewLog).where(ReviewLog.learner_id == learner.id))
    learner.current_level = 1
    learner.unlocked_levels = "[1]"
    learner.sessions_count = 0
    learner.longest_streak = 0
    learner.total_time_ms = 0
    await db.commit()
    logger.info("Reset progress for learner %d", learner.id)
