"""Tests for the Thai character curriculum and level unlocking."""

from backend.curriculum import (
    LEVELS,
    THAI_CHARACTERS,
    character_info,
    character_level,
    check_level_unlocks,
    level_accuracy,
    level_characters,
    level_progress,
    romanization,
    seed_level,
    should_unlock,
)
from backend.srs.queue import Deck
from backend.srs.sm2 import grade

NOW = 1_700_000_000_000


def _review_all(deck: Deck, quality: int) -> None:
    for item in deck.items.values():
        grade(item, quality, 1000, NOW)


class TestCharacterData:
    def test_character_count(self) -> None:
        assert len(THAI_CHARACTERS) == 46
        assert {"ฤ", "ฦ"} <= set(THAI_CHARACTERS)

    def test_consonant_classes(self) -> None:
        classes = {info.consonant_class for info in THAI_CHARACTERS.values()}
        assert classes == {"mid", "high", "low"}

    def test_romanization(self) -> None:
        assert romanization("ก") == "k"
        assert romanization("ข") == "kh"
        assert romanization("ง") == "ng"
        assert romanization("A") == ""

    def test_character_info(self) -> None:
        info = character_info("ก")
        assert info.name == "ko kai"
        assert info.consonant_class == "mid"
        assert character_info("A") is None

    def test_levels_are_cumulative(self) -> None:
        sizes = [len(level.characters) for level in LEVELS]
        assert sizes == [19, 34, 46]
        assert set(level_characters(1)) <= set(level_characters(2))
        assert set(level_characters(3)) == set(THAI_CHARACTERS)

    def test_level_characters_known(self) -> None:
        for level in LEVELS:
            for char in level.characters:
                assert char in THAI_CHARACTERS
        assert level_characters(99) == ()

    def test_character_level(self) -> None:
        assert character_level("ก") == 1
        assert character_level(level_characters(3)[-1]) == 3
        assert character_level("A") is None


class TestLevelProgress:
    def test_seed_level(self) -> None:
        deck = Deck()
        assert seed_level(deck, 1, NOW) == 19
        assert seed_level(deck, 1, NOW) == 0
        assert seed_level(deck, 2, NOW) == 15
        assert list(deck.items)[:19] == list(level_characters(1))

    def test_level_accuracy(self) -> None:
        deck = Deck()
        seed_level(deck, 1, NOW)
        assert level_accuracy(deck, 1) == 0
        grade(deck.items["ก"], 5, 0, NOW)
        grade(deck.items["ข"], 1, 0, NOW)
        assert level_accuracy(deck, 1) == 50

    def test_level_progress(self) -> None:
        deck = Deck()
        seed_level(deck, 1, NOW)
        grade(deck.items["ก"], 5, 0, NOW)
        grade(deck.items["ก"], 5, 0, NOW)
        grade(deck.items["ข"], 5, 0, NOW)

        progress = level_progress(deck, 1)
        assert progress.total_chars == 19
        assert progress.reviewed_chars == 2
        assert progress.mastered_chars == 1
        assert progress.reviewed_percentage == 2 / 19 * 100


class TestLevelUnlocks:
    def test_level_one_always_unlocked(self) -> None:
        assert should_unlock(Deck(), 1, [])

    def test_no_reviews_no_unlock(self) -> None:
        deck = Deck()
        seed_level(deck, 1, NOW)
        assert not should_unlock(deck, 2, [1])
        assert check_level_unlocks(deck, [1], NOW) == []

    def test_below_threshold(self) -> None:
        deck = Deck()
        seed_level(deck, 1, NOW)
        keys = list(deck.items)
        for i, key in enumerate(keys):
            grade(deck.items[key], 1 if i % 4 == 0 else 5, 0, NOW)  # 14 of 19 pass
        assert level_accuracy(deck, 1) < 80
        assert check_level_unlocks(deck, [1], NOW) == []

    def test_unlock_seeds_next_level(self) -> None:
        deck = Deck()
        seed_level(deck, 1, NOW)
        _review_all(deck, 5)

        unlocked = [1]
        assert check_level_unlocks(deck, unlocked, NOW) == [2]
        assert unlocked == [1, 2]
        assert len(deck.items) == 34

    def test_one_level_per_check(self) -> None:
        deck = Deck()
        seed_level(deck, 1, NOW)
        _review_all(deck, 5)

        unlocked = [1]
        check_level_unlocks(deck, unlocked, NOW)
        assert 3 not in unlocked

        # Level 2 accuracy only counts reviewed characters
        assert check_level_unlocks(deck, unlocked, NOW) == [3]
        assert unlocked == [1, 2, 3]
        assert check_level_unlocks(deck, unlocked, NOW) == []
