"""Session materializer.

Creates the single study session of a learner's calendar day on demand.
The (learner, date) unique constraint is the guard against duplicate
sessions: the insert runs inside a SAVEPOINT and a losing writer re-reads
the winner instead of failing.
"""

import re
import uuid
from datetime import date

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from studypath.agent.content_generator import ContentGenerator
from studypath.core.clock import day_of_week
from studypath.core.errors import ContentGenerationFailedError, NotFoundError
from studypath.core.logging import get_logger
from studypath.models.roadmap import Roadmap
from studypath.models.study_session import StudySession
from studypath.schemas.generation import (
    DailyActivityContext,
    GeneratedActivity,
    SkillSnapshot,
)
from studypath.schemas.learner import CompetencyProfile
from studypath.schemas.roadmap import (
    CatchUpContent,
    DailyFocus,
    DayStatus,
    WeeklyFocus,
)
from studypath.schemas.study_session import (
    ActivityType,
    LearningResource,
    PlanItem,
    PracticeDrill,
    SessionStatus,
    StudySessionResponse,
    TargetWeakness,
    TodaySession,
)
from studypath.services import calibration_service, roadmap_service

logger = get_logger(__name__)

# Skills under this accuracy are surfaced to the generator as weak spots
LOW_ACCURACY_THRESHOLD = 60
LOWEST_SKILLS_LIMIT = 3


# ============================================================================
# Lookup
# ============================================================================


async def get_session_for_date(
    db: AsyncSession, learner_id: int, scheduled_date: date
) -> StudySession | None:
    result = await db.execute(
        select(StudySession).where(
            StudySession.learner_id == learner_id,
            StudySession.scheduled_date == scheduled_date,
        )
    )
    return result.scalar_one_or_none()


async def require_session(
    db: AsyncSession, session_id: int, learner_id: int | None = None
) -> StudySession:
    """Load a session, raising ``NotFoundError`` if missing or owned by someone else."""
    session = await db.get(StudySession, session_id)
    if not session or (learner_id is not None and session.learner_id != learner_id):
        raise NotFoundError("Session", session_id)
    return session


def locate_daily_focus(
    roadmap: Roadmap, weeks: list[WeeklyFocus], today: date
) -> tuple[WeeklyFocus, DailyFocus] | None:
    """Find the planned day for ``today``.

    A day of the active week scheduled for today wins. Otherwise the position
    is derived from the calendar: the week from the days elapsed since the
    roadmap start, the day from today's weekday.
    """
    current = calibration_service.active_week(roadmap, weeks)
    if current is not None:
        for day in current.daily_focuses:
            if day.scheduled_date == today:
                return current, day

    elapsed = (today - roadmap.start_date).days
    if elapsed < 0:
        return None
    week = roadmap_service.find_week(weeks, elapsed // 7 + 1)
    if week is None:
        return None

    weekday = day_of_week(today)
    day = next(
        (d for d in week.daily_focuses if d.day_of_week == weekday and d.scheduled_date is None),
        None,
    )
    if day is None:
        return None
    return week, day


# ============================================================================
# Content
# ============================================================================


def _new_id() -> str:
    return uuid.uuid4().hex


def _skill_key(name: str) -> str:
    return re.sub(r"[^a-z0-9]+", "_", name.lower()).strip("_") or "general"


def _target_weakness(week: WeeklyFocus, day: DailyFocus, skills: list[str]) -> TargetWeakness:
    wanted = {s.lower() for s in skills + day.target_skills}
    for weakness in week.target_weaknesses:
        if weakness.skill_key.lower() in wanted or weakness.skill_name.lower() in wanted:
            return TargetWeakness(
                skill_key=weakness.skill_key,
                skill_name=weakness.skill_name,
                severity=weakness.severity,
            )

    name = (skills or day.target_skills or [day.focus])[0]
    return TargetWeakness(skill_key=_skill_key(name), skill_name=name, severity="medium")


def _activity_type(raw: str) -> ActivityType:
    try:
        return ActivityType(raw.strip().lower())
    except ValueError:
        return ActivityType.LEARN


def build_plan_items(
    activities: list[GeneratedActivity], week: WeeklyFocus, day: DailyFocus
) -> list[PlanItem]:
    """Map generated activities to plan items in ascending priority."""
    items = []
    for index, activity in enumerate(activities):
        activity_type = _activity_type(activity.activity_type)
        skills = activity.skills_to_improve or list(day.target_skills)
        item = PlanItem(
            id=_new_id(),
            priority=index + 1,
            title=activity.title,
            description=activity.description,
            activity_type=activity_type,
            target_weakness=_target_weakness(week, day, skills),
            skills_to_improve=skills,
        )
        if activity_type == ActivityType.DRILL:
            item.practice_drills = [
                PracticeDrill(
                    id=_new_id(),
                    title=activity.title,
                    description=activity.description,
                    total_questions=activity.total_questions or 10,
                    estimated_time=activity.estimated_time,
                    skill_category=skills[0] if skills else "",
                )
            ]
        else:
            item.resources = [
                LearningResource(
                    id=_new_id(),
                    type=activity.resource_type,
                    title=activity.title,
                    description=activity.description,
                    estimated_time=activity.estimated_time,
                    url=activity.url,
                )
            ]
        items.append(item)
    return items


def _estimated_minutes(item: PlanItem) -> int:
    return sum(r.estimated_time for r in item.resources) + sum(
        d.estimated_time for d in item.practice_drills
    )


def fallback_plan_items(week: WeeklyFocus, day: DailyFocus) -> list[PlanItem]:
    """Single review item used when lenient daily fallback is enabled."""
    title = f"Review: {day.focus}"
    return [
        PlanItem(
            id=_new_id(),
            priority=1,
            title=title,
            description=f"Revisit this week's material on {week.title}.",
            activity_type=ActivityType.REVIEW,
            target_weakness=_target_weakness(week, day, []),
            skills_to_improve=list(day.target_skills),
            resources=[
                LearningResource(
                    id=_new_id(),
                    type="personalized_guide",
                    title=title,
                    estimated_time=day.estimated_minutes,
                )
            ],
        )
    ]


def build_activity_context(
    roadmap: Roadmap,
    week: WeeklyFocus,
    day: DailyFocus,
    competency: CompetencyProfile | None,
    catch_up: list[CatchUpContent],
) -> DailyActivityContext:
    competency = competency or CompetencyProfile()
    lowest = sorted(
        (e for e in competency.skill_matrix if e.current_accuracy < LOW_ACCURACY_THRESHOLD),
        key=lambda e: e.current_accuracy,
    )[:LOWEST_SKILLS_LIMIT]

    return DailyActivityContext(
        current_level=competency.current_level or roadmap.current_level or "B1",
        focus=day.focus,
        target_skills=day.target_skills,
        suggested_domains=day.suggested_domains,
        available_minutes=day.estimated_minutes or roadmap.study_time_per_day,
        week_number=week.week_number,
        week_title=week.title,
        week_summary=week.summary,
        target_weaknesses=week.target_weaknesses,
        lowest_skills=[
            SkillSnapshot(
                skill=e.skill, current_accuracy=e.current_accuracy, proficiency=e.proficiency
            )
            for e in lowest
        ],
        catch_up_skills=sorted({s for c in catch_up for s in c.target_skills}),
    )


async def _generate_items(
    generator: ContentGenerator,
    context: DailyActivityContext,
    week: WeeklyFocus,
    day: DailyFocus,
    *,
    fallback_enabled: bool,
) -> list[PlanItem]:
    try:
        generated = await generator.generate_daily_activities(context)
        if not generated.activities:
            raise ContentGenerationFailedError("Content generator returned no activities")
        return build_plan_items(generated.activities, week, day)
    except Exception as exc:
        if not fallback_enabled:
            logger.error(
                "Daily activity generation failed",
                week_number=week.week_number,
                day_number=day.day_number,
                error=str(exc),
            )
            if isinstance(exc, ContentGenerationFailedError):
                raise
            raise ContentGenerationFailedError(
                f"Could not generate activities for day {day.day_number}"
            ) from exc

        logger.warning(
            "Daily activity generation failed, using review fallback",
            week_number=week.week_number,
            day_number=day.day_number,
            error=str(exc),
        )
        return fallback_plan_items(week, day)


async def build_session(
    generator: ContentGenerator,
    roadmap: Roadmap,
    *,
    learner_id: int,
    today: date,
    competency: CompetencyProfile | None = None,
    fallback_enabled: bool = False,
) -> StudySession | None:
    """Generate today's session without touching the database.

    Returns None when the roadmap has no planned day for today.
    """
    weeks = roadmap.load_weeks()
    located = locate_daily_focus(roadmap, weeks, today)
    if located is None:
        logger.info("No planned day for today", roadmap_id=roadmap.id, today=today.isoformat())
        return None
    week, day = located

    catch_up = calibration_service.skipped_content(week)
    context = build_activity_context(roadmap, week, day, competency, catch_up)
    items = await _generate_items(
        generator, context, week, day, fallback_enabled=fallback_enabled
    )

    skills = {s.lower() for s in day.target_skills}
    weaknesses = [
        w for w in week.target_weaknesses
        if w.skill_key.lower() in skills or w.skill_name.lower() in skills
    ] or week.target_weaknesses

    return StudySession(
        learner_id=learner_id,
        roadmap_id=roadmap.id,
        scheduled_date=today,
        week_number=week.week_number,
        day_number=day.day_number,
        title=day.focus,
        description=f"Week {week.week_number}: {week.title}",
        target_skills=list(day.target_skills),
        target_domains=list(day.suggested_domains),
        target_weaknesses=[w.model_dump(mode="json") for w in weaknesses],
        catch_up=[c.model_dump(mode="json") for c in catch_up],
        plan_items=[i.model_dump(mode="json") for i in items],
        total_estimated_time=sum(_estimated_minutes(i) for i in items),
        total_time_spent=0,
        progress=0,
        status=SessionStatus.UPCOMING.value,
    )


# ============================================================================
# Persistence
# ============================================================================


async def insert_if_absent(db: AsyncSession, session: StudySession) -> StudySession:
    """Insert ``session`` unless one already exists for its learner and date.

    The loser of a concurrent creation discards its content and gets the
    winner's row back.
    """
    try:
        async with db.begin_nested():
            db.add(session)
    except IntegrityError:
        logger.info(
            "Session already created concurrently, re-reading",
            learner_id=session.learner_id,
            scheduled_date=session.scheduled_date.isoformat(),
        )
        winner = await get_session_for_date(db, session.learner_id, session.scheduled_date)
        if winner is None:
            raise
        return winner

    logger.info(
        "Session materialized",
        session_id=session.id,
        learner_id=session.learner_id,
        week_number=session.week_number,
        day_number=session.day_number,
        plan_items=len(session.plan_items),
    )
    return session


async def delete_session_for_date(db: AsyncSession, learner_id: int, scheduled_date: date) -> bool:
    existing = await get_session_for_date(db, learner_id, scheduled_date)
    if existing is None:
        return False
    await db.delete(existing)
    await db.flush()
    return True


def is_stale(session: StudySession, roadmap: Roadmap, weeks: list[WeeklyFocus]) -> bool:
    """An untouched session that no longer points at an open plan day.

    The day may be gone, moved onto another date, or skipped. Happens after the
    learner switches roadmaps or calibration regenerates the week.
    """
    if session.status != SessionStatus.UPCOMING.value or session.progress:
        return False
    if session.roadmap_id != roadmap.id:
        return True
    day = calibration_service.find_planned_day(
        weeks, session.week_number, session.day_number, session.scheduled_date
    )
    return day is None or day.status == DayStatus.SKIPPED


async def materialize(
    db: AsyncSession,
    generator: ContentGenerator,
    roadmap: Roadmap,
    *,
    learner_id: int,
    today: date,
    competency: CompetencyProfile | None = None,
    fallback_enabled: bool = False,
) -> StudySession | None:
    """Return today's session, creating it when absent. None means no plan for today."""
    existing = await get_session_for_date(db, learner_id, today)
    if existing is not None:
        if not is_stale(existing, roadmap, roadmap.load_weeks()):
            return existing
        logger.info("Replacing stale session", session_id=existing.id, roadmap_id=roadmap.id)
        return await regenerate(
            db,
            generator,
            roadmap,
            learner_id=learner_id,
            today=today,
            competency=competency,
            fallback_enabled=fallback_enabled,
        )

    session = await build_session(
        generator,
        roadmap,
        learner_id=learner_id,
        today=today,
        competency=competency,
        fallback_enabled=fallback_enabled,
    )
    if session is None:
        return None
    return await insert_if_absent(db, session)


async def regenerate(
    db: AsyncSession,
    generator: ContentGenerator,
    roadmap: Roadmap,
    *,
    learner_id: int,
    today: date,
    competency: CompetencyProfile | None = None,
    fallback_enabled: bool = False,
) -> StudySession | None:
    """Replace today's session with freshly generated content.

    Content is generated before the old row is deleted, so a generator
    failure leaves the existing session in place.
    """
    session = await build_session(
        generator,
        roadmap,
        learner_id=learner_id,
        today=today,
        competency=competency,
        fallback_enabled=fallback_enabled,
    )
    if session is None:
        return None

    if await delete_session_for_date(db, learner_id, today):
        logger.info("Session deleted for regeneration", learner_id=learner_id)
    return await insert_if_absent(db, session)


def enrich(session: StudySession, roadmap: Roadmap) -> TodaySession:
    weeks = roadmap.load_weeks()
    week = calibration_service.active_week(roadmap, weeks)
    return TodaySession(
        session=StudySessionResponse.model_validate(session),
        roadmap_id=roadmap.id,
        active_week_number=roadmap.active_week_number,
        overall_progress=roadmap.overall_progress,
        week_sessions_completed=week.sessions_completed if week else 0,
        week_total_sessions=week.total_sessions if week else 0,
        is_blocked=calibration_service.is_blocked(week),
        catch_up=calibration_service.skipped_content(week),
    )
