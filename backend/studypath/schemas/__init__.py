"""Pydantic schemas."""

from studypath.schemas.generation import (
    DailyActivityContext,
    GeneratedActivities,
    GeneratedActivity,
    GeneratedDay,
    GeneratedRoadmap,
    GeneratedWeek,
    GeneratedWeekFocus,
    RoadmapContext,
    WeekPlanContext,
)
from studypath.schemas.learner import CompetencyProfile, LearnerPreferences
from studypath.schemas.roadmap import (
    CalibrationAction,
    CalibrationReport,
    CatchUpContent,
    DailyFocus,
    DayStatus,
    MistakeInput,
    MistakePracticeSet,
    MistakeQuestion,
    RoadmapGoal,
    RoadmapResponse,
    RoadmapStatus,
    Weakness,
    WeekAdvanceResult,
    WeeklyFocus,
    WeekStatus,
)
from studypath.schemas.study_session import (
    CompletionResult,
    ItemStatus,
    PlanItem,
    SessionStatus,
    SessionSummary,
    StudySessionResponse,
    TodaySession,
)

__all__ = [
    "CalibrationAction",
    "CalibrationReport",
    "CatchUpContent",
    "CompetencyProfile",
    "CompletionResult",
    "DailyActivityContext",
    "DailyFocus",
    "DayStatus",
    "GeneratedActivities",
    "GeneratedActivity",
    "GeneratedDay",
    "GeneratedRoadmap",
    "GeneratedWeek",
    "GeneratedWeekFocus",
    "ItemStatus",
    "LearnerPreferences",
    "MistakeInput",
    "MistakePracticeSet",
    "MistakeQuestion",
    "PlanItem",
    "RoadmapContext",
    "RoadmapGoal",
    "RoadmapResponse",
    "RoadmapStatus",
    "SessionStatus",
    "SessionSummary",
    "StudySessionResponse",
    "TodaySession",
    "Weakness",
    "WeekAdvanceResult",
    "WeekPlanContext",
    "WeeklyFocus",
    "WeekStatus",
]
