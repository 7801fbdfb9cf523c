"""Learner preference store (read-mostly from the engine's perspective)."""

from sqlalchemy.ext.asyncio import AsyncSession

from studypath.core.config import get_settings
from studypath.core.errors import NotFoundError
from studypath.core.logging import get_logger
from studypath.models.learner import Learner
from studypath.schemas.learner import CompetencyProfile, LearnerPreferences

logger = get_logger(__name__)


async def create_learner(
    db: AsyncSession,
    *,
    username: str | None = None,
    email: str | None = None,
    preferences: LearnerPreferences | None = None,
    competency: CompetencyProfile | None = None,
) -> Learner:
    preferences = preferences or LearnerPreferences()
    learner = Learner(
        username=username,
        email=email,
        study_days_of_week=preferences.study_days_of_week,
        current_level=preferences.current_level,
        competency_profile=competency.model_dump(mode="json") if competency else None,
    )
    db.add(learner)
    await db.flush()
    logger.info("Learner created", learner_id=learner.id)
    return learner


async def get_learner(db: AsyncSession, learner_id: int) -> Learner:
    learner = await db.get(Learner, learner_id)
    if not learner:
        raise NotFoundError("Learner", learner_id)
    return learner


async def get_study_days_of_week(db: AsyncSession, learner_id: int) -> list[int]:
    """The learner's study weekdays (0 = Sunday), falling back to the configured default."""
    learner = await db.get(Learner, learner_id)
    days = learner.study_days_of_week if learner else None
    if not days:
        return list(get_settings().DEFAULT_STUDY_DAYS)
    return sorted(set(days))


async def get_competency_profile(db: AsyncSession, learner_id: int) -> CompetencyProfile:
    learner = await db.get(Learner, learner_id)
    if not learner:
        return CompetencyProfile()
    profile = CompetencyProfile.model_validate(learner.competency_profile or {})
    if profile.current_level is None:
        profile.current_level = learner.current_level
    return profile


async def update_preferences(
    db: AsyncSession, learner_id: int, preferences: LearnerPreferences
) -> Learner:
    learner = await get_learner(db, learner_id)
    learner.study_days_of_week = preferences.study_days_of_week
    if preferences.current_level is not None:
        learner.current_level = preferences.current_level
    await db.flush()
    logger.info(
        "Learner preferences updated",
        learner_id=learner_id,
        study_days=preferences.study_days_of_week,
    )
    return learner
