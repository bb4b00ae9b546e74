"""Wholesale snapshot of a learner's deck in its persisted JSON shape."""

from sqlalchemy import ForeignKey, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backend.models.base import Base, TimestampMixin


class DeckSnapshot(Base, TimestampMixin):
    """The serialized deck for one learner, rewritten after every review."""

    __tablename__ = "deck_snapshots"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    learner_id: Mapped[int] = mapped_column(ForeignKey("learners.id"), nullable=False, unique=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False)
    payload: Mapped[str] = mapped_column(Text, nullable=False)  # JSON deck

    learner: Mapped["Learner"] = relationship(back_populates="deck")  # type: ignore[name-defined] # noqa: F821
