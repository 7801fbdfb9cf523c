"""Materialized study session schemas."""

from datetime import date, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from studypath.schemas.roadmap import CatchUpContent, Weakness


class SessionStatus(str, Enum):
    UPCOMING = "upcoming"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"


class ItemStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"


class ActivityType(str, Enum):
    LEARN = "learn"
    PRACTICE = "practice"
    REVIEW = "review"
    DRILL = "drill"


class TargetWeakness(BaseModel):
    skill_key: str
    skill_name: str
    severity: str = "medium"


class LearningResource(BaseModel):
    id: str
    type: str = "article"  # video | article | vocabulary_set | personalized_guide
    title: str
    description: str = ""
    estimated_time: int = 0  # minutes
    url: str | None = None
    completed: bool = False
    completed_at: datetime | None = None


class PracticeDrill(BaseModel):
    id: str
    title: str
    description: str = ""
    total_questions: int = 10
    estimated_time: int = 0
    skill_category: str = ""
    difficulty: str | None = None
    completed: bool = False
    completed_at: datetime | None = None
    score: int | None = None
    attempts: int = 0


class PlanItem(BaseModel):
    """One activity inside a session. ``progress`` is derived from its children."""

    id: str
    priority: int
    title: str
    description: str = ""
    activity_type: ActivityType = ActivityType.LEARN
    target_weakness: TargetWeakness
    skills_to_improve: list[str] = Field(default_factory=list)
    resources: list[LearningResource] = Field(default_factory=list)
    practice_drills: list[PracticeDrill] = Field(default_factory=list)
    progress: int = 0
    status: ItemStatus = ItemStatus.PENDING
    started_at: datetime | None = None
    completed_at: datetime | None = None
    result: dict[str, Any] | None = None

    def find_resource(self, resource_id: str) -> LearningResource | None:
        return next((r for r in self.resources if r.id == resource_id), None)

    def find_drill(self, drill_id: str) -> PracticeDrill | None:
        return next((d for d in self.practice_drills if d.id == drill_id), None)


class SessionState(BaseModel):
    """In-memory view of a session used by the progress aggregator."""

    status: SessionStatus = SessionStatus.UPCOMING
    progress: int = 0
    plan_items: list[PlanItem] = Field(default_factory=list)
    started_at: datetime | None = None
    completed_at: datetime | None = None
    total_time_spent: int = 0

    def find_item(self, item_id: str) -> PlanItem | None:
        return next((i for i in self.plan_items if i.id == item_id), None)


class StudySessionResponse(BaseModel):
    id: int
    learner_id: int
    roadmap_id: int
    scheduled_date: date
    week_number: int
    day_number: int
    title: str
    description: str | None
    target_skills: list[str]
    target_domains: list[str]
    target_weaknesses: list[Weakness]
    catch_up: list[CatchUpContent]
    plan_items: list[PlanItem]
    total_estimated_time: int
    total_time_spent: int
    progress: int
    status: SessionStatus
    started_at: datetime | None
    completed_at: datetime | None

    class Config:
        from_attributes = True


class TodaySession(BaseModel):
    """Today's session enriched with roadmap context."""

    session: StudySessionResponse
    roadmap_id: int
    active_week_number: int
    overall_progress: int
    week_sessions_completed: int
    week_total_sessions: int
    is_blocked: bool
    catch_up: list[CatchUpContent] = Field(default_factory=list)


class PlanItemSummary(BaseModel):
    id: str
    title: str
    progress: int
    status: ItemStatus
    total_activities: int
    completed_activities: int


class SessionSummary(BaseModel):
    session_progress: int
    session_status: SessionStatus
    total_plan_items: int
    completed_plan_items: int
    plan_items: list[PlanItemSummary]


class CompletionResult(BaseModel):
    """Outcome of a completion event."""

    session: StudySessionResponse
    session_completed: bool
    day_completed: bool = False
    can_proceed: bool = True
    week_advanced: bool = False
    active_week_number: int | None = None
    message: str = ""
