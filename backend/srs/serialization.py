"""Persisted deck shape and its validation.

The host stores decks as JSON in the camelCase layout below and restores
them wholesale. Payloads are validated once here; the engine then works
only with ``Deck``/``Item`` instances.

    {
      "items": {"<key>": {"memoryStrength": 2.5, "interval": 0, ...}},
      "newItemsPerDay": 5,
      "maxReviewsPerSession": 50
    }
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from backend.srs.queue import DEFAULT_MAX_REVIEWS_PER_SESSION, DEFAULT_NEW_ITEMS_PER_DAY, Deck
from backend.srs.sm2 import (
    INITIAL_MEMORY_STRENGTH,
    MIN_MEMORY_STRENGTH,
    MS_PER_DAY,
    Item,
    ItemState,
)


class DeckFormatError(ValueError):
    """Raised when a persisted or imported deck payload is structurally invalid."""


class ItemRecord(BaseModel):
    """Serialized form of one item. Missing fields take fresh defaults."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    memory_strength: float = Field(INITIAL_MEMORY_STRENGTH, alias="memoryStrength")
    interval: int = 0
    repetitions: int = 0
    due_at: int | None = Field(None, alias="dueAt")
    last_reviewed_at: int | None = Field(None, alias="lastReviewedAt")
    total_reviews: int = Field(0, alias="totalReviews")
    success_count: int = Field(0, alias="successCount")
    failure_count: int = Field(0, alias="failureCount")
    average_response_time: float = Field(0.0, alias="averageResponseTime")
    state: ItemState | None = None

    @field_validator("memory_strength")
    @classmethod
    def _floor_strength(cls, value: float) -> float:
        return max(MIN_MEMORY_STRENGTH, value)

    @field_validator(
        "interval", "repetitions", "total_reviews", "success_count", "failure_count"
    )
    @classmethod
    def _non_negative(cls, value: int) -> int:
        return max(0, value)

    def to_item(self, key: str) -> Item:
        state = self.state
        if state is None:
            if self.total_reviews == 0:
                state = ItemState.NEW
            elif self.repetitions >= 3:
                state = ItemState.MATURE
            else:
                state = ItemState.LEARNING

        due_at = self.due_at
        if due_at is None:
            # Never-reviewed items are immediately eligible
            due_at = 0
            if self.last_reviewed_at is not None:
                due_at = self.last_reviewed_at + self.interval * MS_PER_DAY

        return Item(
            key=key,
            due_at=due_at,
            memory_strength=self.memory_strength,
            interval=self.interval,
            repetitions=self.repetitions,
            last_reviewed_at=self.last_reviewed_at,
            total_reviews=self.total_reviews,
            success_count=self.success_count,
            failure_count=self.failure_count,
            average_response_time=self.average_response_time,
            state=state,
        )

    @classmethod
    def from_item(cls, item: Item) -> "ItemRecord":
        return cls(
            memory_strength=item.memory_strength,
            interval=item.interval,
            repetitions=item.repetitions,
            due_at=item.due_at,
            last_reviewed_at=item.last_reviewed_at,
            total_reviews=item.total_reviews,
            success_count=item.success_count,
            failure_count=item.failure_count,
            average_response_time=item.average_response_time,
            state=item.state,
        )


class DeckRecord(BaseModel):
    """Serialized form of a whole deck."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    items: dict[str, ItemRecord] = Field(default_factory=dict)
    new_items_per_day: int = Field(DEFAULT_NEW_ITEMS_PER_DAY, alias="newItemsPerDay", ge=0)
    max_reviews_per_session: int = Field(
        DEFAULT_MAX_REVIEWS_PER_SESSION, alias="maxReviewsPerSession", ge=0
    )


def deck_to_dict(deck: Deck) -> dict[str, Any]:
    """Serialize a deck to its JSON-compatible persisted shape."""
    record = DeckRecord(
        items={key: ItemRecord.from_item(item) for key, item in deck.items.items()},
        new_items_per_day=deck.new_items_per_day,
        max_reviews_per_session=deck.max_reviews_per_session,
    )
    return record.model_dump(by_alias=True, mode="json")


def deck_from_dict(data: Any) -> Deck:
    """Validate a persisted payload and restore the deck it describes.

    Raises:
        DeckFormatError: If the payload isn't a structurally valid deck.
    """
    if not isinstance(data, dict):
        raise DeckFormatError(f"Deck payload must be an object, got {type(data).__name__}")
    try:
        record = DeckRecord.model_validate(data)
    except ValidationError as exc:
        raise DeckFormatError(f"Invalid deck payload: {exc.error_count()} error(s)") from exc

    return Deck(
        items={key: item.to_item(key) for key, item in record.items.items()},
        new_items_per_day=record.new_items_per_day,
        max_reviews_per_session=record.max_reviews_per_session,
    )
