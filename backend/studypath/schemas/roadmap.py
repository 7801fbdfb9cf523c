"""Roadmap schemas: the embedded week/day plan and orchestrator results."""

from datetime import date, datetime
from enum import Enum

from pydantic import BaseModel, Field


class RoadmapStatus(str, Enum):
    DRAFT = "draft"
    ACTIVE = "active"
    COMPLETED = "completed"
    ARCHIVED = "archived"  # superseded by a newer goal


class WeekStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"


class DayStatus(str, Enum):
    PENDING = "pending"
    UPCOMING = "upcoming"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    SKIPPED = "skipped"


RESOLVED_DAY_STATUSES = frozenset({DayStatus.COMPLETED, DayStatus.SKIPPED})


class Weakness(BaseModel):
    """A diagnosed weakness, supplied by the diagnosis provider."""

    skill_key: str
    skill_name: str
    severity: str = "medium"  # critical | high | medium | low
    category: str = ""
    accuracy: float | None = None


class DailyFocus(BaseModel):
    """The planned intent for a single study day."""

    day_number: int = Field(ge=1)
    day_of_week: int = Field(ge=0, le=6)  # 0 = Sunday
    focus: str
    target_skills: list[str] = Field(default_factory=list)
    suggested_domains: list[str] = Field(default_factory=list)
    estimated_minutes: int = 60
    foundation_weight: int = Field(default=50, ge=0, le=100)
    is_critical: bool = False
    status: DayStatus = DayStatus.PENDING
    scheduled_date: date | None = None

    @property
    def is_resolved(self) -> bool:
        return self.status in RESOLVED_DAY_STATUSES


class MistakeQuestion(BaseModel):
    question_id: str
    question_text: str
    content_tags: list[str] = Field(default_factory=list)
    skill_tag: str | None = None
    part_number: int | None = None
    difficulty: str | None = None
    mistake_count: int = 1
    added_at: datetime | None = None


class MistakeInput(BaseModel):
    question_id: str
    question_text: str
    content_tags: list[str] = Field(default_factory=list)
    skill_tag: str | None = None
    part_number: int | None = None
    difficulty: str | None = None


class MistakePracticeSet(BaseModel):
    week_number: int
    mistakes: list[MistakeQuestion] = Field(default_factory=list)


class WeeklyFocus(BaseModel):
    """One week of the roadmap."""

    week_number: int = Field(ge=1)
    title: str
    summary: str = ""
    focus_skills: list[str] = Field(default_factory=list)
    target_weaknesses: list[Weakness] = Field(default_factory=list)
    recommended_domains: list[str] = Field(default_factory=list)
    foundation_weight: int = Field(default=50, ge=0, le=100)
    expected_progress: int | None = None
    daily_focuses: list[DailyFocus] = Field(default_factory=list)
    mistakes: list[MistakeQuestion] = Field(default_factory=list)
    sessions_completed: int = 0
    total_sessions: int = 0
    status: WeekStatus = WeekStatus.PENDING

    def find_day(self, day_number: int) -> DailyFocus | None:
        return next((d for d in self.daily_focuses if d.day_number == day_number), None)

    def open_days(self) -> list[DailyFocus]:
        return [d for d in self.daily_focuses if not d.is_resolved]


class LearningStrategy(BaseModel):
    foundation_focus: int = Field(default=50, ge=0, le=100)
    domain_focus: int = Field(default=50, ge=0, le=100)


class PhaseSummary(BaseModel):
    week_range: str
    phase_title: str
    description: str = ""
    target_score: int | None = None
    key_focus_areas: list[str] = Field(default_factory=list)


class RoadmapGoal(BaseModel):
    """Input for roadmap generation.

    Positivity of the numeric fields is checked by the orchestrator so that it
    can report ``InvalidGoalError`` rather than a schema error.
    """

    user_prompt: str | None = None
    current_score: int = 0
    target_score: int
    study_time_per_day: int
    study_days_per_week: int = 5
    weaknesses: list[Weakness] = Field(default_factory=list)


class RoadmapResponse(BaseModel):
    """Roadmap snapshot returned to callers."""

    id: int
    learner_id: int
    status: RoadmapStatus
    user_prompt: str | None
    current_level: str | None
    current_score: int | None
    target_score: int
    start_date: date
    end_date: date
    total_weeks: int
    study_days_per_week: int
    study_time_per_day: int
    learning_strategy: LearningStrategy | None
    phase_summary: list[PhaseSummary]
    weekly_focuses: list[WeeklyFocus]
    active_week_number: int
    sessions_completed: int
    total_sessions: int
    overall_progress: int
    recalibration_count: int
    last_recalibrated_at: datetime | None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class WeekAdvanceResult(BaseModel):
    progressed: bool
    new_week_number: int | None = None
    message: str


class DayCompletionResult(BaseModel):
    """Outcome of the day-complete hook."""

    week_number: int
    day_number: int
    newly_completed: bool
    can_proceed: bool  # no critical day of the active week left open
    advance: WeekAdvanceResult | None = None


class CalibrationAction(str, Enum):
    NONE = "none"
    MARK_SKIPPED = "mark_skipped"
    REGENERATE_WEEK = "regenerate_week"


class MissedSession(BaseModel):
    week_number: int
    day_number: int
    day_of_week: int
    focus: str
    target_skills: list[str] = Field(default_factory=list)
    suggested_domains: list[str] = Field(default_factory=list)


class CalibrationReport(BaseModel):
    has_missed_sessions: bool
    missed_count: int
    action: CalibrationAction
    message: str
    missed_sessions: list[MissedSession] = Field(default_factory=list)
    regenerated_days: int = 0
    retained_completions: int = 0


class CatchUpContent(BaseModel):
    """Content of a skipped day, carried into later sessions."""

    day_number: int
    focus: str
    target_skills: list[str] = Field(default_factory=list)
    suggested_domains: list[str] = Field(default_factory=list)
