"""Queue management for SRS review sessions.

Holds the deck of item memory states and decides which item to present
next: overdue reviews first (most overdue leading), then unseen items.
"""

import logging
from dataclasses import dataclass, field

from backend.srs.sm2 import Item, ItemState

logger = logging.getLogger(__name__)

DEFAULT_NEW_ITEMS_PER_DAY = 5
DEFAULT_MAX_REVIEWS_PER_SESSION = 50


@dataclass
class Deck:
    """All items for one learner, keyed by item content in insertion order."""

    items: dict[str, Item] = field(default_factory=dict)
    new_items_per_day: int = DEFAULT_NEW_ITEMS_PER_DAY
    max_reviews_per_session: int = DEFAULT_MAX_REVIEWS_PER_SESSION  # Advisory; enforced by the host


@dataclass
class DeckStats:
    """Aggregate counts over a deck at a point in time."""

    total: int = 0
    new: int = 0
    learning: int = 0
    mature: int = 0
    due: int = 0
    total_reviews: int = 0
    total_success: int = 0
    total_failure: int = 0


def add_item(deck: Deck, key: str, now: int) -> Item:
    """Add an item with default state, or return the existing one untouched."""
    existing = deck.items.get(key)
    if existing is not None:
        return existing
    item = Item(key=key, due_at=now)
    deck.items[key] = item
    logger.debug("Added item %r to deck (%d items)", key, len(deck.items))
    return item


def get_item(deck: Deck, key: str) -> Item | None:
    return deck.items.get(key)


def due_items(deck: Deck, now: int) -> list[Item]:
    """Return reviewed items whose due time has passed, most overdue first.

    Never-reviewed items are not counted as due even though they are
    eligible from the moment they are added; they reach the learner only
    through ``new_items``, so the daily cap on new items can apply to them.
    ``sorted`` is stable, so items with equal overdueness keep insertion
    order.
    """
    due = [
        item
        for item in deck.items.values()
        if item.state is not ItemState.NEW and item.due_at <= now
    ]
    return sorted(due, key=lambda item: now - item.due_at, reverse=True)


def new_items(deck: Deck, limit: int) -> list[Item]:
    """Return up to ``limit`` never-reviewed items in insertion order."""
    if limit <= 0:
        return []
    result: list[Item] = []
    for item in deck.items.values():
        if item.state is ItemState.NEW:
            result.append(item)
            if len(result) >= limit:
                break
    return result


def next_item(deck: Deck, now: int) -> Item | None:
    """Pick the single item to present next.

    Priority 1 is the most overdue review; priority 2 is an unseen item.
    Returns None when nothing is available, which ends a session normally.
    The daily cap on new items is the caller's to apply.
    """
    due = due_items(deck, now)
    if due:
        return due[0]

    unseen = new_items(deck, 1)
    if unseen:
        return unseen[0]

    return None


def deck_stats(deck: Deck, now: int) -> DeckStats:
    stats = DeckStats(total=len(deck.items))
    for item in deck.items.values():
        if item.state is ItemState.NEW:
            stats.new += 1
        elif item.state is ItemState.LEARNING:
            stats.learning += 1
        else:
            stats.mature += 1
        if item.state is not ItemState.NEW and item.due_at <= now:  # As in due_items
            stats.due += 1
        stats.total_reviews += item.total_reviews
        stats.total_success += item.success_count
        stats.total_failure += item.failure_count
    return stats
