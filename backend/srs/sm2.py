"""SM-2 item memory model.

A per-item implementation of the SuperMemo SM-2 algorithm.
Reference: https://www.supermemo.com/en/archives1990-2015/english/ol/sm2

Key concepts:
- Memory strength (ease factor): multiplier on the interval after a pass, floor 1.3.
- Interval: whole days until the item is due again.
- Repetitions: consecutive passes since the last lapse.
- Quality: 0-5 grade for a recall attempt (>= 3 is a pass).
"""

import math
from dataclasses import dataclass
from enum import Enum

MS_PER_DAY = 24 * 60 * 60 * 1000

INITIAL_MEMORY_STRENGTH = 2.5
MIN_MEMORY_STRENGTH = 1.3
MIN_QUALITY = 0
MAX_QUALITY = 5
PASS_QUALITY = 3

# Learning ladder: interval after the first and second consecutive pass
FIRST_INTERVAL = 1
SECOND_INTERVAL = 6

# Weight of the newest sample in the response-time moving average
RESPONSE_TIME_WEIGHT = 0.2

# Ease thresholds for difficulty labels (upper bounds, exclusive)
DIFFICULTY_LABELS: list[tuple[float, str]] = [
    (1.7, "very-hard"),
    (2.0, "hard"),
    (2.5, "medium"),
    (2.8, "easy"),
]


class ItemState(str, Enum):
    """Where an item sits in the new -> learning -> mature cycle."""

    NEW = "new"
    LEARNING = "learning"
    MATURE = "mature"


@dataclass
class Item:
    """The memory state of one learnable unit."""

    key: str
    due_at: int  # Epoch ms
    memory_strength: float = INITIAL_MEMORY_STRENGTH
    interval: int = 0  # Days
    repetitions: int = 0
    last_reviewed_at: int | None = None  # Epoch ms
    total_reviews: int = 0
    success_count: int = 0
    failure_count: int = 0
    average_response_time: float = 0.0  # ms, exponential moving average
    state: ItemState = ItemState.NEW


def round_half_up(value: float) -> int:
    """Round to the nearest integer with halves going up."""
    return math.floor(value + 0.5)


def clamp_quality(quality: int) -> int:
    return max(MIN_QUALITY, min(MAX_QUALITY, int(quality)))


def strength_delta(quality: int) -> float:
    """Ease adjustment for a quality grade.

    EF' = EF + (0.1 - (5 - q) * (0.08 + (5 - q) * 0.02))

    q=5 adds 0.1, q=4 leaves the ease unchanged, and q=3 already lowers it
    by 0.14 even though it counts as a pass.
    """
    miss = MAX_QUALITY - quality
    return 0.1 - miss * (0.08 + miss * 0.02)


def grade(item: Item, quality: int, response_time_ms: int, now: int) -> Item:
    """Apply a graded recall attempt to an item, in place.

    Args:
        item: The item being reviewed.
        quality: Recall quality 0-5; out-of-range values are clamped.
        response_time_ms: Answer latency; 0 means not measured.
        now: Review time in epoch ms.

    Returns:
        The same item, updated.
    """
    quality = clamp_quality(quality)
    response_time_ms = max(0, response_time_ms)

    item.total_reviews += 1
    item.last_reviewed_at = now

    if response_time_ms > 0:
        if item.average_response_time == 0:
            item.average_response_time = float(response_time_ms)
        else:
            item.average_response_time = (
                item.average_response_time * (1 - RESPONSE_TIME_WEIGHT)
                + response_time_ms * RESPONSE_TIME_WEIGHT
            )

    if quality >= PASS_QUALITY:
        item.success_count += 1
        if item.repetitions == 0:
            item.interval = FIRST_INTERVAL
            item.state = ItemState.LEARNING
        elif item.repetitions == 1:
            item.interval = SECOND_INTERVAL
            item.state = ItemState.LEARNING
        else:
            # Uses the ease from before this review's adjustment
            item.interval = round_half_up(item.interval * item.memory_strength)
            item.state = ItemState.MATURE
        item.repetitions += 1
    else:
        item.failure_count += 1
        item.repetitions = 0
        item.interval = FIRST_INTERVAL
        item.state = ItemState.LEARNING

    item.memory_strength = max(MIN_MEMORY_STRENGTH, item.memory_strength + strength_delta(quality))
    item.due_at = now + item.interval * MS_PER_DAY
    return item


def is_due(item: Item, now: int) -> bool:
    return now >= item.due_at


def days_until_review(item: Item, now: int) -> float:
    """Days until the item is due; negative when overdue."""
    return (item.due_at - now) / MS_PER_DAY


def days_overdue(item: Item, now: int) -> float:
    """How many days past due the item is, or 0 if it isn't due yet."""
    if not is_due(item, now):
        return 0.0
    return abs(days_until_review(item, now))


def accuracy(item: Item) -> float:
    """Percentage of reviews that passed (0-100)."""
    if item.total_reviews == 0:
        return 0.0
    return item.success_count / item.total_reviews * 100


def difficulty_label(item: Item) -> str:
    for upper, label in DIFFICULTY_LABELS:
        if item.memory_strength < upper:
            return label
    return "very-easy"
