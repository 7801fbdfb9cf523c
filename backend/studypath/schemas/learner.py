"""Learner preference schemas."""

from pydantic import BaseModel, Field, field_validator


class SkillMatrixEntry(BaseModel):
    skill: str
    current_accuracy: float = Field(ge=0, le=100)
    proficiency: str = ""


class CompetencyProfile(BaseModel):
    current_level: str | None = None
    skill_matrix: list[SkillMatrixEntry] = Field(default_factory=list)


class LearnerPreferences(BaseModel):
    study_days_of_week: list[int] = Field(default_factory=lambda: [1, 2, 3, 4, 5])
    current_level: str | None = None

    @field_validator("study_days_of_week")
    @classmethod
    def _normalize_days(cls, value: list[int]) -> list[int]:
        if any(day < 0 or day > 6 for day in value):
            raise ValueError("study days must be weekday indices 0-6")
        return sorted(set(value))
