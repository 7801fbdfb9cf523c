"""Roadmap store: persistence of one roadmap per learner goal."""

from datetime import date, timedelta

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from studypath.core.database import flush_or_conflict
from studypath.core.errors import NotFoundError
from studypath.core.logging import get_logger
from studypath.models.roadmap import Roadmap
from studypath.schemas.roadmap import (
    LearningStrategy,
    PhaseSummary,
    RoadmapGoal,
    RoadmapStatus,
    WeeklyFocus,
)
from studypath.services import progress_service

logger = get_logger(__name__)


async def create_roadmap(
    db: AsyncSession,
    *,
    learner_id: int,
    goal: RoadmapGoal,
    start_date: date,
    weeks: list[WeeklyFocus],
    current_level: str | None = None,
    learning_strategy: LearningStrategy | None = None,
    phase_summary: list[PhaseSummary] | None = None,
) -> Roadmap:
    """Persist a new active roadmap, archiving the learner's previous active one.

    Note: flushes but does NOT commit; the caller owns the transaction.
    """
    active_result = await db.execute(
        select(Roadmap).where(
            Roadmap.learner_id == learner_id,
            Roadmap.status == RoadmapStatus.ACTIVE.value,
        )
    )
    for previous in active_result.scalars().all():
        previous.status = RoadmapStatus.ARCHIVED.value
        logger.info("Roadmap archived", roadmap_id=previous.id, learner_id=learner_id)

    completed, total, overall = progress_service.roadmap_totals(weeks, goal.study_days_per_week)

    roadmap = Roadmap(
        learner_id=learner_id,
        status=RoadmapStatus.ACTIVE.value,
        user_prompt=goal.user_prompt,
        current_level=current_level,
        current_score=goal.current_score,
        target_score=goal.target_score,
        start_date=start_date,
        end_date=start_date + timedelta(days=7 * len(weeks)),
        total_weeks=len(weeks),
        study_days_per_week=goal.study_days_per_week,
        study_time_per_day=goal.study_time_per_day,
        learning_strategy=learning_strategy.model_dump(mode="json") if learning_strategy else None,
        phase_summary=[p.model_dump(mode="json") for p in phase_summary or []],
        active_week_number=1,
        sessions_completed=completed,
        total_sessions=total,
        overall_progress=overall,
        recalibration_count=0,
    )
    roadmap.store_weeks(weeks)
    db.add(roadmap)
    await db.flush()

    logger.info(
        "Roadmap created",
        roadmap_id=roadmap.id,
        learner_id=learner_id,
        total_weeks=roadmap.total_weeks,
        total_sessions=total,
    )
    return roadmap


async def get_active_roadmap(db: AsyncSession, learner_id: int) -> Roadmap | None:
    """The learner's single active roadmap, or None when there is no plan."""
    result = await db.execute(
        select(Roadmap)
        .where(
            Roadmap.learner_id == learner_id,
            Roadmap.status == RoadmapStatus.ACTIVE.value,
        )
        .order_by(Roadmap.id.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


async def get_roadmap(db: AsyncSession, roadmap_id: int) -> Roadmap | None:
    return await db.get(Roadmap, roadmap_id)


async def require_roadmap(
    db: AsyncSession, roadmap_id: int, learner_id: int | None = None
) -> Roadmap:
    """Load a roadmap, raising ``NotFoundError`` if missing or owned by someone else."""
    roadmap = await db.get(Roadmap, roadmap_id)
    if not roadmap or (learner_id is not None and roadmap.learner_id != learner_id):
        raise NotFoundError("Roadmap", roadmap_id)
    return roadmap


async def list_learner_roadmaps(db: AsyncSession, learner_id: int) -> list[Roadmap]:
    """All roadmaps of a learner, newest first (including archived ones)."""
    result = await db.execute(
        select(Roadmap).where(Roadmap.learner_id == learner_id).order_by(Roadmap.id.desc())
    )
    return list(result.scalars().all())


async def save_weeks(db: AsyncSession, roadmap: Roadmap, weeks: list[WeeklyFocus]) -> Roadmap:
    """Write the mutated plan back and refresh the derived counters.

    Raises:
        ConcurrentModificationError: another writer updated the roadmap since it was loaded.
    """
    completed, total, overall = progress_service.roadmap_totals(weeks, roadmap.study_days_per_week)
    roadmap.store_weeks(weeks)
    roadmap.sessions_completed = completed
    roadmap.total_sessions = total
    roadmap.overall_progress = overall

    await flush_or_conflict(db, entity="Roadmap", entity_id=roadmap.id)
    logger.debug(
        "Roadmap saved",
        roadmap_id=roadmap.id,
        sessions_completed=completed,
        total_sessions=total,
        overall_progress=overall,
    )
    return roadmap


def find_week(weeks: list[WeeklyFocus], week_number: int) -> WeeklyFocus | None:
    return next((w for w in weeks if w.week_number == week_number), None)
