"""Pydantic schemas for API request/response models."""

from datetime import date, datetime

from pydantic import BaseModel, Field

from backend.config import ms_to_datetime
from backend.srs.sm2 import Item, accuracy, difficulty_label

# --- Session ---


class SessionStartResponse(BaseModel):
    """Response when starting a new review session."""

    session_id: str
    learner_id: int
    total_items: int
    due_items: int
    new_available: int
    max_reviews: int


class ItemResponse(BaseModel):
    """An item's memory state, as presented to the learner."""

    key: str
    state: str  # new, learning, mature
    memory_strength: float
    interval: int
    repetitions: int
    due_at: datetime
    total_reviews: int
    accuracy: float
    difficulty: str

    @classmethod
    def from_item(cls, item: Item) -> "ItemResponse":
        return cls(
            key=item.key,
            state=item.state.value,
            memory_strength=item.memory_strength,
            interval=item.interval,
            repetitions=item.repetitions,
            due_at=ms_to_datetime(item.due_at),
            total_reviews=item.total_reviews,
            accuracy=accuracy(item),
            difficulty=difficulty_label(item),
        )


class NextItemResponse(BaseModel):
    """Response containing the next item to review."""

    item: ItemResponse
    is_new: bool
    remaining: int


class AnswerRequest(BaseModel):
    """Request to submit an answer for an item."""

    item_key: str
    response: str
    time_ms: int = Field(ge=0)
    quality: int | None = None  # Optional override (0-5)


class RevealRequest(BaseModel):
    """Request to reveal the answer instead of answering."""

    item_key: str
    time_ms: int = Field(0, ge=0)


class AnswerResponse(BaseModel):
    """Response after grading with feedback and scheduling info."""

    grade: str  # correct, incorrect
    suggested_quality: int
    applied_quality: int
    feedback: str
    correct_answer: str
    item: ItemResponse
    remaining: int
    streak: int
    newly_unlocked_levels: list[int]


class SessionStatsResponse(BaseModel):
    """Statistics for the current review session."""

    reviews: int
    correct: int
    wrong: int
    new_items_seen: int
    current_streak: int
    longest_streak: int
    accuracy: float
    average_time_ms: float


# --- Stats ---


class LearnerStatsResponse(BaseModel):
    """Overall statistics for a learner."""

    total_items: int
    items_new: int
    items_learning: int
    items_mature: int
    items_due: int
    total_reviews: int
    total_success: int
    total_failure: int
    overall_accuracy: float
    streak_days: int
    reviews_today: int
    current_level: int
    unlocked_levels: list[int]
    sessions_count: int
    longest_streak: int


class DailyStatsResponse(BaseModel):
    date: date
    reviews: int
    correct: int
    wrong: int
    accuracy: float


class ItemSummaryResponse(BaseModel):
    key: str
    memory_strength: float
    accuracy: float
    total_reviews: int
    repetitions: int


class ConfusionPairResponse(BaseModel):
    shown: str
    answered: str
    count: int


class LevelProgressResponse(BaseModel):
    level: int
    name: str
    unlocked: bool
    total_chars: int
    reviewed_chars: int
    mastered_chars: int
    accuracy: float


# --- Deck ---


class LearnerCreateRequest(BaseModel):
    name: str = Field(min_length=1, max_length=100)


class LearnerResponse(BaseModel):
    id: int
    name: str
    current_level: int
    unlocked_levels: list[int]


class AddItemRequest(BaseModel):
    key: str = Field(min_length=1, max_length=64)
