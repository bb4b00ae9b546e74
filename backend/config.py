from datetime import UTC, datetime
from pathlib import Path

from pydantic_settings import BaseSettings


def utcnow() -> datetime:
    """Return the current UTC time as a naive datetime.

    Replaces the deprecated ``datetime.utcnow()`` while keeping datetimes
    naive so they stay compatible with SQLite (which doesn't store tz info).
    """
    return datetime.now(UTC).replace(tzinfo=None)


def now_ms() -> int:
    """Return the current time in epoch milliseconds (the engine's clock unit)."""
    return int(datetime.now(UTC).timestamp() * 1000)


def ms_to_datetime(value: int) -> datetime:
    """Convert epoch milliseconds to a naive UTC datetime."""
    return datetime.fromtimestamp(value / 1000, UTC).replace(tzinfo=None)


class Settings(BaseSettings):
    app_name: str = "Thai Script SRS"
    database_url: str = f"sqlite+aiosqlite:///{Path(__file__).resolve().parent.parent / 'data' / 'thai_srs.db'}"
    new_items_per_day: int = 5
    max_reviews_per_session: int = 50
    fast_answer_ms: int = 3000
    slow_answer_ms: int = 6000
    level_unlock_threshold: float = 0.80
    confusion_threshold: int = 3
    session_ttl_seconds: int = 7200  # 2 hours
    cors_origins: list[str] = ["http://localhost:5173", "http://localhost:3000"]
    debug: bool = False

    model_config = {"env_prefix": "THAI_SRS_", "env_file": ".env"}


settings = Settings()
