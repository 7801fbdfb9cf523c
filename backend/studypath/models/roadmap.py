"""Roadmap model.

The week/day plan is embedded as JSON: the roadmap is loaded whole, mutated in
memory and written back whole, guarded by the ``revision`` version counter.
"""

from datetime import date, datetime

from sqlalchemy import JSON, Date, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.orm.attributes import flag_modified

from studypath.core.database import Base
from studypath.schemas.roadmap import WeeklyFocus


class Roadmap(Base):
    __tablename__ = "roadmaps"

    id: Mapped[int] = mapped_column(primary_key=True)
    learner_id: Mapped[int] = mapped_column(ForeignKey("learners.id"), index=True)
    status: Mapped[str] = mapped_column(String, default="draft", index=True)

    # Goal
    user_prompt: Mapped[str | None] = mapped_column(Text, nullable=True)
    current_level: Mapped[str | None] = mapped_column(String, nullable=True)
    current_score: Mapped[int | None] = mapped_column(Integer, nullable=True)
    target_score: Mapped[int] = mapped_column(Integer)

    # Schedule
    start_date: Mapped[date] = mapped_column(Date)
    end_date: Mapped[date] = mapped_column(Date)
    total_weeks: Mapped[int] = mapped_column(Integer)
    study_days_per_week: Mapped[int] = mapped_column(Integer)
    study_time_per_day: Mapped[int] = mapped_column(Integer)

    # Plan
    learning_strategy: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    phase_summary: Mapped[list[dict]] = mapped_column(JSON, default=list)
    weekly_focuses: Mapped[list[dict]] = mapped_column(JSON, default=list)

    # Progress
    active_week_number: Mapped[int] = mapped_column(Integer, default=1)
    sessions_completed: Mapped[int] = mapped_column(Integer, default=0)
    total_sessions: Mapped[int] = mapped_column(Integer, default=0)
    overall_progress: Mapped[int] = mapped_column(Integer, default=0)

    # Calibration
    last_recalibrated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    recalibration_count: Mapped[int] = mapped_column(Integer, default=0)

    revision: Mapped[int] = mapped_column(Integer, nullable=False)

    created_at: Mapped[datetime] = mapped_column(default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(default=datetime.utcnow, onupdate=datetime.utcnow)

    __mapper_args__ = {"version_id_col": revision}

    def load_weeks(self) -> list[WeeklyFocus]:
        return [WeeklyFocus.model_validate(w) for w in self.weekly_focuses or []]

    def store_weeks(self, weeks: list[WeeklyFocus]) -> None:
        self.weekly_focuses = [w.model_dump(mode="json") for w in weeks]
        flag_modified(self, "weekly_focuses")
