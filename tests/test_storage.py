"""Tests for deck persistence, migration, import/export and analytics."""

import json

import pytest

from backend.analytics import (
    confusion_pairs,
    daily_history,
    difficult_items,
    mastered_items,
    new_introduced_today,
    overall_accuracy,
    review_streak_days,
    reviews_today,
)
from backend.config import ms_to_datetime, utcnow
from backend.database import async_session
from backend.models.deck_snapshot import DeckSnapshot
from backend.srs.queue import Deck, add_item
from backend.srs.serialization import DeckFormatError
from backend.srs.session import start_session
from backend.srs.sm2 import MS_PER_DAY, Item, ItemState, grade
from backend.storage import (
    STORAGE_VERSION,
    create_learner,
    export_data,
    finish_session,
    import_data,
    load_deck,
    migrate,
    open_deck,
    record_review,
    reset_learner,
    save_deck,
    set_unlocked_levels,
    unlocked_levels,
)

NOW = 1_700_000_000_000

V1_CARD = {
    "easeFactor": 2.2,
    "interval": 6,
    "repetitions": 2,
    "nextReview": NOW,
    "lastReviewed": NOW - 6 * MS_PER_DAY,
    "totalReviews": 3,
    "correctCount": 2,
    "incorrectCount": 1,
    "averageResponseTime": 1500,
    "isNew": False,
    "isLearning": True,
    "isMature": False,
}


class TestMigration:
    def test_v1_cards_become_items(self) -> None:
        data = migrate(
            {
                "version": 1,
                "deck": {"cards": {"ก": V1_CARD, "ข": {"isNew": True}}, "newCardsPerDay": 8},
                "settings": {"currentLevel": 2, "unlockedLevels": [1, 2]},
                "session": {"longestStreak": 7},
            }
        )
        assert data["version"] == STORAGE_VERSION
        assert data["deck"]["newItemsPerDay"] == 8
        assert data["settings"]["unlockedLevels"] == [1, 2]
        assert data["stats"]["longestStreak"] == 7

        item = data["deck"]["items"]["ก"]
        assert item["memoryStrength"] == 2.2
        assert item["dueAt"] == NOW
        assert item["successCount"] == 2
        assert item["state"] == "learning"
        assert data["deck"]["items"]["ข"]["state"] == "new"

    def test_v1_mature_flag(self) -> None:
        card = {**V1_CARD, "isLearning": False, "isMature": True, "repetitions": 3}
        data = migrate({"version": 1, "deck": {"cards": {"ก": card}}})
        assert data["deck"]["items"]["ก"]["state"] == "mature"

    def test_wrong_section_shapes_rejected(self) -> None:
        for data in [
            {"version": 1, "deck": {"cards": ["ก"]}},
            {"version": 1, "deck": {"cards": {"ก": 3}}},
            {"version": 1, "session": "longest"},
            {"version": 2, "settings": [1, 2]},
            {"version": 2, "stats": "none"},
        ]:
            with pytest.raises(DeckFormatError):
                migrate(data)

    def test_missing_sections_get_defaults(self) -> None:
        data = migrate({"version": 1})
        assert data["deck"]["items"] == {}
        assert data["settings"] == {"currentLevel": 1, "unlockedLevels": [1]}
        assert data["stats"]["sessionsCount"] == 0


@pytest.mark.asyncio
async def test_open_deck_seeds_current_level(fresh_db) -> None:
    async with async_session() as db:
        learner = await create_learner(db, "Somchai")
        deck = await open_deck(db, learner, NOW)
        assert len(deck.items) == 19

        # Seeding is persisted and not repeated
        again = await open_deck(db, learner, NOW + MS_PER_DAY)
        assert list(again.items) == list(deck.items)
        assert again.items["ก"].due_at == NOW


@pytest.mark.asyncio
async def test_save_and_load_deck(fresh_db) -> None:
    async with async_session() as db:
        learner = await create_learner(db, "Somchai")
        deck = Deck(new_items_per_day=3)
        add_item(deck, "ก", NOW)
        grade(deck.items["ก"], 4, 1200, NOW)
        await save_deck(db, learner.id, deck)

        restored = await load_deck(db, learner.id)
    assert restored == deck


@pytest.mark.asyncio
async def test_load_missing_deck(fresh_db) -> None:
    async with async_session() as db:
        deck = await load_deck(db, 999)
    assert deck.items == {}
    assert deck.new_items_per_day == 5


@pytest.mark.asyncio
async def test_corrupt_snapshot_starts_fresh(fresh_db) -> None:
    async with async_session() as db:
        learner = await create_learner(db, "Somchai")
        db.add(DeckSnapshot(learner_id=learner.id, version=STORAGE_VERSION, payload="{broken"))
        await db.commit()

        deck = await load_deck(db, learner.id)
    assert deck.items == {}


@pytest.mark.parametrize(
    "payload",
    [
        {"cards": ["ก"]},
        {"cards": {"ก": "k"}},
        ["ก"],
    ],
)
@pytest.mark.asyncio
async def test_corrupt_old_snapshot_starts_fresh(fresh_db, payload) -> None:
    async with async_session() as db:
        learner = await create_learner(db, "Somchai")
        db.add(DeckSnapshot(learner_id=learner.id, version=1, payload=json.dumps(payload)))
        await db.commit()

        deck = await load_deck(db, learner.id)
        assert deck.items == {}

        # The learner can still start over
        reopened = await open_deck(db, learner, NOW)
    assert len(reopened.items) == 19


@pytest.mark.asyncio
async def test_old_snapshot_is_migrated(fresh_db) -> None:
    async with async_session() as db:
        learner = await create_learner(db, "Somchai")
        payload = json.dumps({"cards": {"ก": V1_CARD}, "newCardsPerDay": 8})
        db.add(DeckSnapshot(learner_id=learner.id, version=1, payload=payload))
        await db.commit()

        deck = await load_deck(db, learner.id)
    item = deck.items["ก"]
    assert item.state is ItemState.LEARNING
    assert item.memory_strength == pytest.approx(2.2)
    assert item.due_at == NOW
    assert deck.new_items_per_day == 8


@pytest.mark.asyncio
async def test_unlocked_levels_round_trip(fresh_db) -> None:
    async with async_session() as db:
        learner = await create_learner(db, "Somchai")
        assert unlocked_levels(learner) == [1]
        set_unlocked_levels(learner, [2, 1])
        assert unlocked_levels(learner) == [1, 2]
        assert learner.current_level == 2


@pytest.mark.asyncio
async def test_export_import_round_trip(fresh_db) -> None:
    async with async_session() as db:
        learner = await create_learner(db, "Somchai")
        deck = await open_deck(db, learner, NOW)
        grade(deck.items["ก"], 5, 1000, NOW)
        await save_deck(db, learner.id, deck)
        set_unlocked_levels(learner, [1, 2])
        learner.longest_streak = 6
        await db.commit()

        exported = await export_data(db, learner)
        data = json.loads(exported)
        assert data["version"] == STORAGE_VERSION
        assert data["settings"] == {"currentLevel": 2, "unlockedLevels": [1, 2]}
        assert data["stats"]["longestStreak"] == 6

        other = await create_learner(db, "Malee")
        imported = await import_data(db, other, exported)
        assert imported == deck
        assert unlocked_levels(other) == [1, 2]
        assert other.longest_streak == 6
        assert await load_deck(db, other.id) == deck


@pytest.mark.asyncio
async def test_import_v1_export(fresh_db) -> None:
    document = {
        "version": 1,
        "deck": {"cards": {"ก": V1_CARD}},
        "settings": {"currentLevel": 1, "unlockedLevels": [1]},
        "session": {"longestStreak": 4},
    }
    async with async_session() as db:
        learner = await create_learner(db, "Somchai")
        deck = await import_data(db, learner, json.dumps(document))
    assert deck.items["ก"].success_count == 2
    assert learner.longest_streak == 4


@pytest.mark.parametrize(
    "text",
    [
        "not json",
        "[]",
        json.dumps({"deck": {}, "settings": {}}),
        json.dumps({"version": 2, "deck": {"items": {}}}),
        json.dumps({"version": 2, "deck": {"items": []}, "settings": {"currentLevel": 1}}),
        json.dumps({"version": 2, "deck": {"items": {}}, "settings": ["x"]}),
        json.dumps({"version": 2, "deck": {"items": {}}, "settings": {"a": 1}, "stats": [1]}),
        json.dumps({"version": 1, "deck": {"cards": ["a"]}, "settings": {"currentLevel": 1}}),
        json.dumps({"version": 1, "deck": {"cards": {"a": "b"}}, "settings": {"currentLevel": 1}}),
        json.dumps({"version": 1, "deck": "cards", "settings": {"currentLevel": 1}}),
    ],
)
@pytest.mark.asyncio
async def test_import_rejects_invalid(fresh_db, text) -> None:
    async with async_session() as db:
        learner = await create_learner(db, "Somchai")
        with pytest.raises(DeckFormatError):
            await import_data(db, learner, text)


@pytest.mark.asyncio
async def test_reset_learner(fresh_db) -> None:
    async with async_session() as db:
        learner = await create_learner(db, "Somchai")
        deck = await open_deck(db, learner, NOW)
        session = start_session(deck, NOW, learner_id=learner.id)
        outcome = session.submit_answer("ก", "k", 1000, NOW)
        record_review(db, learner.id, outcome, 1000, NOW)
        set_unlocked_levels(learner, [1, 2])
        await save_deck(db, learner.id, deck)

        await reset_learner(db, learner)
        assert unlocked_levels(learner) == [1]
        assert learner.current_level == 1
        assert (await load_deck(db, learner.id)).items == {}
        assert await reviews_today(db, learner.id, ms_to_datetime(NOW)) == 0


@pytest.mark.asyncio
async def test_finish_session(fresh_db) -> None:
    async with async_session() as db:
        learner = await create_learner(db, "Somchai")
        deck = await open_deck(db, learner, NOW)
        session = start_session(deck, NOW, learner_id=learner.id)
        session.submit_answer("ก", "k", 1000, NOW)
        session.submit_answer("ง", "ng", 2000, NOW)

        await finish_session(db, learner, session)
        assert learner.sessions_count == 1
        assert learner.longest_streak == 2
        assert learner.total_time_ms == 3000

        # An empty session doesn't count
        await finish_session(db, learner, start_session(deck, NOW))
        assert learner.sessions_count == 1


# --- Analytics ---


@pytest.mark.asyncio
async def test_review_log_analytics(fresh_db) -> None:
    async with async_session() as db:
        learner = await create_learner(db, "Somchai")
        deck = await open_deck(db, learner, NOW)
        session = start_session(deck, NOW, learner_id=learner.id)

        for key, response in [("ก", "k"), ("ข", "k"), ("ค", "k"), ("ง", "ng")]:
            outcome = session.submit_answer(key, response, 1000, NOW)
            record_review(db, learner.id, outcome, 1000, NOW)
        for _ in range(2):
            outcome = session.submit_answer("ข", "k", 1000, NOW)
            record_review(db, learner.id, outcome, 1000, NOW)
        await save_deck(db, learner.id, deck)

        now = ms_to_datetime(NOW)
        assert await reviews_today(db, learner.id, now) == 6
        assert await new_introduced_today(db, learner.id, now) == 4
        assert await review_streak_days(db, learner.id, now) == 1

        history = await daily_history(db, learner.id, now, days=7)
        assert len(history) == 7
        assert history[-1].date == now.date()
        assert history[-1].reviews == 6
        assert history[-1].correct == 2
        assert history[-1].wrong == 4
        assert history[0].reviews == 0

        pairs = await confusion_pairs(db, learner.id, threshold=3)
        assert [(p.shown, p.answered, p.count) for p in pairs] == [("ข", "k", 3)]


@pytest.mark.asyncio
async def test_review_logged_at_grading_time(fresh_db) -> None:
    graded_at = NOW - 2 * MS_PER_DAY
    async with async_session() as db:
        learner = await create_learner(db, "Somchai")
        deck = await open_deck(db, learner, graded_at)
        session = start_session(deck, graded_at, learner_id=learner.id)
        outcome = session.submit_answer("ก", "k", 1000, graded_at)
        log = record_review(db, learner.id, outcome, 1000, graded_at)
        await save_deck(db, learner.id, deck)

        assert log.reviewed_at == ms_to_datetime(graded_at)
        assert log.reviewed_at == ms_to_datetime(outcome.item.last_reviewed_at)
        assert await new_introduced_today(db, learner.id, ms_to_datetime(graded_at)) == 1

        history = await daily_history(db, learner.id, ms_to_datetime(NOW), days=3)
        assert [day.reviews for day in history] == [1, 0, 0]


@pytest.mark.asyncio
async def test_no_reviews_analytics(fresh_db) -> None:
    async with async_session() as db:
        learner = await create_learner(db, "Somchai")
        now = utcnow()
        assert await review_streak_days(db, learner.id, now) == 0
        assert await confusion_pairs(db, learner.id) == []
        assert all(day.reviews == 0 for day in await daily_history(db, learner.id, now))


def test_deck_rankings() -> None:
    deck = Deck()
    deck.items["weak"] = Item(
        key="weak", due_at=NOW, memory_strength=1.5, total_reviews=4,
        success_count=1, failure_count=3, state=ItemState.LEARNING,
    )
    deck.items["strong"] = Item(
        key="strong", due_at=NOW, memory_strength=2.9, repetitions=4, total_reviews=4,
        success_count=4, state=ItemState.MATURE,
    )
    deck.items["okay"] = Item(
        key="okay", due_at=NOW, memory_strength=2.4, repetitions=3, total_reviews=3,
        success_count=3, state=ItemState.MATURE,
    )
    add_item(deck, "unseen", NOW)

    assert [s.key for s in difficult_items(deck, 2)] == ["weak", "okay"]
    assert [s.key for s in mastered_items(deck)] == ["strong", "okay"]
    assert difficult_items(deck)[0].accuracy == 25
    assert overall_accuracy(deck) == pytest.approx(8 / 11 * 100)
    assert overall_accuracy(Deck()) == 0
