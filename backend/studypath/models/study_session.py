"""Materialized study session model."""

from datetime import date, datetime

from sqlalchemy import (
    JSON,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.orm.attributes import flag_modified

from studypath.core.database import Base
from studypath.schemas.study_session import PlanItem, SessionState, SessionStatus


class StudySession(Base):
    """One session per learner per calendar day."""

    __tablename__ = "study_sessions"
    __table_args__ = (
        UniqueConstraint("learner_id", "scheduled_date", name="uq_study_session_learner_date"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    learner_id: Mapped[int] = mapped_column(ForeignKey("learners.id"), index=True)
    # Used for progress roll-up only, never cascades
    roadmap_id: Mapped[int] = mapped_column(ForeignKey("roadmaps.id"), index=True)

    scheduled_date: Mapped[date] = mapped_column(Date)
    week_number: Mapped[int] = mapped_column(Integer)
    day_number: Mapped[int] = mapped_column(Integer)

    # Content
    title: Mapped[str] = mapped_column(String)
    description: Mapped[str | None] = mapped_column(Text)
    target_skills: Mapped[list[str]] = mapped_column(JSON, default=list)
    target_domains: Mapped[list[str]] = mapped_column(JSON, default=list)
    target_weaknesses: Mapped[list[dict]] = mapped_column(JSON, default=list)
    catch_up: Mapped[list[dict]] = mapped_column(JSON, default=list)
    plan_items: Mapped[list[dict]] = mapped_column(JSON, default=list)

    # Progress
    total_estimated_time: Mapped[int] = mapped_column(Integer, default=0)
    total_time_spent: Mapped[int] = mapped_column(Integer, default=0)
    progress: Mapped[int] = mapped_column(Integer, default=0)
    status: Mapped[str] = mapped_column(String, default=SessionStatus.UPCOMING.value)
    started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    revision: Mapped[int] = mapped_column(Integer, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    __mapper_args__ = {"version_id_col": revision}

    def load_state(self) -> SessionState:
        return SessionState(
            status=SessionStatus(self.status),
            progress=self.progress or 0,
            plan_items=[PlanItem.model_validate(i) for i in self.plan_items or []],
            started_at=self.started_at,
            completed_at=self.completed_at,
            total_time_spent=self.total_time_spent or 0,
        )

    def store_state(self, state: SessionState) -> None:
        self.status = state.status.value
        self.progress = state.progress
        self.plan_items = [i.model_dump(mode="json") for i in state.plan_items]
        flag_modified(self, "plan_items")
        self.started_at = state.started_at
        self.completed_at = state.completed_at
        self.total_time_spent = state.total_time_spent
