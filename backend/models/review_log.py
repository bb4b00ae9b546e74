from datetime import datetime

from sqlalchemy import Boolean, DateTime, Float, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backend.config import utcnow
from backend.models.base import Base


class ReviewLog(Base):
    __tablename__ = "review_logs"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    learner_id: Mapped[int] = mapped_column(ForeignKey("learners.id"), nullable=False)
    item_key: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    quality: Mapped[int] = mapped_column(Integer, nullable=False)  # 0-5
    passed: Mapped[bool] = mapped_column(Boolean, nullable=False)
    was_new: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    response: Mapped[str] = mapped_column(String(64), nullable=False, default="")
    time_ms: Mapped[int] = mapped_column(Integer, nullable=False)  # Response time in ms
    strength_before: Mapped[float] = mapped_column(Float, nullable=False)
    strength_after: Mapped[float] = mapped_column(Float, nullable=False)
    interval_after: Mapped[int] = mapped_column(Integer, nullable=False)  # Days
    reviewed_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)

    learner: Mapped["Learner"] = relationship(back_populates="review_logs")  # type: ignore[name-defined] # noqa: F821
