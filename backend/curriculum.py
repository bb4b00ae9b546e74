"""Thai consonant curriculum and progressive level unlocking.

Holds the 44 Thai consonants plus the vowel letters ฤ and ฦ (46 entries)
with RTGS romanization, grouped into three cumulative levels. A level
unlocks once the learner's accuracy on the previous level reaches the
configured threshold.
"""

import logging
from dataclasses import dataclass

from backend.config import settings
from backend.srs.queue import Deck, add_item

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CharacterInfo:
    """Reference data for one Thai consonant."""

    roman: str
    consonant_class: str  # mid, high, low
    frequency: str  # very-high, high, medium, low, rare, obsolete
    name: str


@dataclass(frozen=True)
class Level:
    number: int
    name: str
    characters: tuple[str, ...]
    unlock_threshold: float  # Accuracy (0-1) required on the previous level
    description: str


THAI_CHARACTERS: dict[str, CharacterInfo] = {
    # Ko class
    "ก": CharacterInfo("k", "mid", "very-high", "ko kai"),
    "ข": CharacterInfo("kh", "high", "high", "kho khai"),
    "ฃ": CharacterInfo("kh", "high", "rare", "kho khuat"),
    "ค": CharacterInfo("kh", "low", "high", "kho khwai"),
    "ฅ": CharacterInfo("kh", "low", "obsolete", "kho khon"),
    "ฆ": CharacterInfo("kh", "low", "low", "kho rakhang"),
    # Ngo
    "ง": CharacterInfo("ng", "low", "very-high", "ngo ngu"),
    # Cho class
    "จ": CharacterInfo("ch", "mid", "high", "cho chan"),
    "ฉ": CharacterInfo("ch", "high", "medium", "cho ching"),
    "ช": CharacterInfo("ch", "low", "high", "cho chang"),
    "ซ": CharacterInfo("s", "low", "medium", "so so"),
    "ฌ": CharacterInfo("ch", "low", "low", "cho choe"),
    # Yo class
    "ญ": CharacterInfo("y", "low", "medium", "yo ying"),
    # Do/To class
    "ฎ": CharacterInfo("d", "mid", "low", "do chada"),
    "ฏ": CharacterInfo("t", "mid", "low", "to patak"),
    "ฐ": CharacterInfo("th", "high", "low", "tho than"),
    "ฑ": CharacterInfo("th", "low", "low", "tho montho"),
    "ฒ": CharacterInfo("th", "low", "low", "tho phu thao"),
    "ณ": CharacterInfo("n", "low", "medium", "no nen"),
    "ด": CharacterInfo("d", "mid", "very-high", "do dek"),
    "ต": CharacterInfo("t", "mid", "very-high", "to tao"),
    "ถ": CharacterInfo("th", "high", "high", "tho thung"),
    "ท": CharacterInfo("th", "low", "high", "tho thahan"),
    "ธ": CharacterInfo("th", "low", "medium", "tho thong"),
    "น": CharacterInfo("n", "low", "very-high", "no nu"),
    # Bo/Po class
    "บ": CharacterInfo("b", "mid", "high", "bo baimai"),
    "ป": CharacterInfo("p", "mid", "very-high", "po pla"),
    "ผ": CharacterInfo("ph", "high", "high", "pho phueng"),
    "ฝ": CharacterInfo("f", "high", "medium", "fo fa"),
    "พ": CharacterInfo("ph", "low", "high", "pho phan"),
    "ฟ": CharacterInfo("f", "low", "medium", "fo fan"),
    "ภ": CharacterInfo("ph", "low", "medium", "pho samphao"),
    "ม": CharacterInfo("m", "low", "very-high", "mo ma"),
    # Yo/Ro/Lo class
    "ย": CharacterInfo("y", "low", "very-high", "yo yak"),
    "ร": CharacterInfo("r", "low", "very-high", "ro ruea"),
    "ฤ": CharacterInfo("rue", "low", "low", "rue"),
    "ล": CharacterInfo("l", "low", "very-high", "lo ling"),
    "ฦ": CharacterInfo("lue", "low", "rare", "lue"),
    "ว": CharacterInfo("w", "low", "very-high", "wo waen"),
    "ศ": CharacterInfo("s", "high", "medium", "so sala"),
    "ษ": CharacterInfo("s", "high", "medium", "so rue si"),
    "ส": CharacterInfo("s", "high", "very-high", "so suea"),
    # Ho class
    "ห": CharacterInfo("h", "high", "very-high", "ho hip"),
    "ฬ": CharacterInfo("l", "low", "rare", "lo chula"),
    "อ": CharacterInfo("o", "mid", "very-high", "o ang"),
    "ฮ": CharacterInfo("h", "low", "medium", "ho nokhuk"),
}

# Most common consonants first
_LEVEL_1_CHARS = (
    "ก", "ง", "ด", "ต", "น", "บ", "ป", "ม", "ย", "ร",
    "ล", "ว", "ส", "ห", "อ", "ข", "ค", "จ", "ช",
)
_LEVEL_2_CHARS = (
    "ผ", "พ", "ถ", "ท", "ญ", "ฉ", "ฝ", "ฟ", "ภ", "ธ",
    "ซ", "ศ", "ษ", "ฮ", "ณ",
)
_LEVEL_3_CHARS = (
    "ฆ", "ฌ", "ฎ", "ฏ", "ฐ", "ฑ", "ฒ", "ฤ", "ฦ", "ฬ",
    "ฃ", "ฅ",
)

LEVELS: list[Level] = [
    Level(1, "Beginner", _LEVEL_1_CHARS, 0.0, "Most common Thai consonants"),
    Level(
        2,
        "Intermediate",
        _LEVEL_1_CHARS + _LEVEL_2_CHARS,
        settings.level_unlock_threshold,
        "Add more common consonants",
    ),
    Level(
        3,
        "Advanced",
        _LEVEL_1_CHARS + _LEVEL_2_CHARS + _LEVEL_3_CHARS,
        settings.level_unlock_threshold,
        "The full consonant set",
    ),
]

# Mastery: a strong ease that has survived at least the learning ladder
MASTERED_MIN_STRENGTH = 2.5
MASTERED_MIN_REPETITIONS = 2


@dataclass
class LevelProgress:
    level: int
    total_chars: int
    reviewed_chars: int
    mastered_chars: int

    @property
    def reviewed_percentage(self) -> float:
        return self.reviewed_chars / self.total_chars * 100 if self.total_chars else 0.0

    @property
    def mastered_percentage(self) -> float:
        return self.mastered_chars / self.total_chars * 100 if self.total_chars else 0.0


def romanization(char: str) -> str:
    """Return the RTGS romanization for a character, or "" if unknown."""
    info = THAI_CHARACTERS.get(char)
    return info.roman if info else ""


def character_info(char: str) -> CharacterInfo | None:
    return THAI_CHARACTERS.get(char)


def level_info(number: int) -> Level | None:
    for level in LEVELS:
        if level.number == number:
            return level
    return None


def level_characters(number: int) -> tuple[str, ...]:
    level = level_info(number)
    return level.characters if level else ()


def character_level(char: str) -> int | None:
    """Return the first level that introduces ``char``."""
    for level in LEVELS:
        if char in level.characters:
            return level.number
    return None


def level_accuracy(deck: Deck, number: int) -> float:
    """Percentage of passed reviews across a level's characters (0-100)."""
    total_reviews = 0
    total_success = 0
    for char in level_characters(number):
        item = deck.items.get(char)
        if item and item.total_reviews > 0:
            total_reviews += item.total_reviews
            total_success += item.success_count
    return total_success / total_reviews * 100 if total_reviews > 0 else 0.0


def level_progress(deck: Deck, number: int) -> LevelProgress:
    chars = level_characters(number)
    reviewed = 0
    mastered = 0
    for char in chars:
        item = deck.items.get(char)
        if item and item.total_reviews > 0:
            reviewed += 1
            if (
                item.memory_strength >= MASTERED_MIN_STRENGTH
                and item.repetitions >= MASTERED_MIN_REPETITIONS
            ):
                mastered += 1
    return LevelProgress(
        level=number,
        total_chars=len(chars),
        reviewed_chars=reviewed,
        mastered_chars=mastered,
    )


def should_unlock(deck: Deck, number: int, unlocked: list[int]) -> bool:
    """Decide whether level ``number`` is (or should now be) unlocked."""
    if number <= 1 or number in unlocked:
        return True

    level = level_info(number)
    if level is None:
        return False

    return level_accuracy(deck, number - 1) >= level.unlock_threshold * 100


def seed_level(deck: Deck, number: int, now: int) -> int:
    """Make sure every character of a level is in the deck.

    Returns the number of items that were actually added.
    """
    before = len(deck.items)
    for char in level_characters(number):
        add_item(deck, char, now)
    added = len(deck.items) - before
    if added:
        logger.info("Seeded level %d: %d new items", number, added)
    return added


def check_level_unlocks(deck: Deck, unlocked: list[int], now: int) -> list[int]:
    """Unlock and seed every level the learner now qualifies for.

    ``unlocked`` is updated in place. At most one step up the ladder is taken
    per level already held, so a freshly seeded level is never judged on
    characters the learner hasn't seen yet. Returns the newly unlocked levels.
    """
    held = set(unlocked)
    newly_unlocked: list[int] = []
    for level in LEVELS:
        if level.number in held:
            continue
        if level.number > 1 and level.number - 1 not in held:
            continue
        if should_unlock(deck, level.number, unlocked):
            unlocked.append(level.number)
            seed_level(deck, level.number, now)
            newly_unlocked.append(level.number)
            logger.info("Level %d unlocked", level.number)
    return newly_unlocked
