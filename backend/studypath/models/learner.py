"""Learner model: preferences and competency snapshot."""

from datetime import datetime

from sqlalchemy import JSON, DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from studypath.core.database import Base


def _default_study_days() -> list[int]:
    return [1, 2, 3, 4, 5]


class Learner(Base):
    __tablename__ = "learners"

    id: Mapped[int] = mapped_column(primary_key=True)
    username: Mapped[str | None] = mapped_column(String, unique=True)
    email: Mapped[str | None] = mapped_column(String, unique=True)

    # Weekday indices, 0 = Sunday
    study_days_of_week: Mapped[list[int]] = mapped_column(JSON, default=_default_study_days)
    current_level: Mapped[str | None] = mapped_column(String, default=None)
    competency_profile: Mapped[dict | None] = mapped_column(JSON, default=None)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    last_active_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )
