"""SQLAlchemy ORM models for the Thai Script SRS database."""

from backend.models.base import Base
from backend.models.deck_snapshot import DeckSnapshot
from backend.models.learner import Learner
from backend.models.review_log import ReviewLog

__all__ = ["Base", "DeckSnapshot", "Learner", "ReviewLog"]
