"""Content generator boundary types.

The generator produces three distinct payloads. Each is a tagged pydantic
model validated at the boundary and converted into the internal week/day/item
structures before it goes any deeper into the engine.
"""

from typing import Literal

from pydantic import BaseModel, Field

from studypath.schemas.roadmap import LearningStrategy, PhaseSummary, Weakness

# ============================================================================
# Contexts (engine -> generator)
# ============================================================================


class RoadmapContext(BaseModel):
    learner_id: int
    user_prompt: str
    current_level: str | None = None
    current_score: int
    target_score: int
    study_time_per_day: int
    study_days_per_week: int
    weaknesses: list[Weakness] = Field(default_factory=list)


class SkillSnapshot(BaseModel):
    skill: str
    current_accuracy: float
    proficiency: str = ""


class DailyActivityContext(BaseModel):
    current_level: str
    focus: str
    target_skills: list[str]
    suggested_domains: list[str]
    available_minutes: int
    week_number: int
    week_title: str
    week_summary: str = ""
    target_weaknesses: list[Weakness] = Field(default_factory=list)
    lowest_skills: list[SkillSnapshot] = Field(default_factory=list)
    catch_up_skills: list[str] = Field(default_factory=list)


class WeekPlanContext(BaseModel):
    current_level: str
    week_number: int
    week_title: str
    week_summary: str = ""
    focus_skills: list[str] = Field(default_factory=list)
    recommended_domains: list[str] = Field(default_factory=list)
    target_weaknesses: list[Weakness] = Field(default_factory=list)
    days_of_week: list[int]
    minutes_per_day: int
    covered_skills: list[str] = Field(default_factory=list)
    covered_domains: list[str] = Field(default_factory=list)


# ============================================================================
# Results (generator -> engine)
# ============================================================================


class GeneratedDay(BaseModel):
    focus: str
    target_skills: list[str] = Field(default_factory=list)
    suggested_domains: list[str] = Field(default_factory=list)
    estimated_minutes: int | None = None
    foundation_weight: int = Field(default=50, ge=0, le=100)
    is_critical: bool = False


class GeneratedWeekFocus(BaseModel):
    week_number: int | None = None
    title: str
    summary: str = ""
    focus_skills: list[str] = Field(default_factory=list)
    target_weaknesses: list[Weakness] = Field(default_factory=list)
    recommended_domains: list[str] = Field(default_factory=list)
    foundation_weight: int = Field(default=50, ge=0, le=100)
    expected_progress: int | None = None
    daily_focuses: list[GeneratedDay] = Field(default_factory=list)


class GeneratedRoadmap(BaseModel):
    kind: Literal["roadmap"] = "roadmap"
    current_level: str | None = None
    total_weeks: int
    learning_strategy: LearningStrategy = Field(default_factory=LearningStrategy)
    phase_summary: list[PhaseSummary] = Field(default_factory=list)
    weekly_focuses: list[GeneratedWeekFocus]


class GeneratedActivity(BaseModel):
    title: str
    description: str = ""
    estimated_time: int = 15
    activity_type: str = "learn"
    resource_type: str = "article"
    url: str | None = None
    skills_to_improve: list[str] = Field(default_factory=list)
    total_questions: int | None = None


class GeneratedActivities(BaseModel):
    kind: Literal["activities"] = "activities"
    activities: list[GeneratedActivity]
    reasoning: str = ""


class GeneratedWeek(BaseModel):
    kind: Literal["week"] = "week"
    daily_focuses: list[GeneratedDay]
