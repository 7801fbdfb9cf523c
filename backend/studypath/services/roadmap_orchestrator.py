"""Roadmap orchestrator.

The public coordinator of the engine: generates roadmaps, answers "what
should I study today", records completion events and drives calibration and
week advancement. Every method takes the caller's ``AsyncSession`` and only
flushes; committing or rolling back is the caller's unit of work.
"""

from sqlalchemy.ext.asyncio import AsyncSession

from studypath.agent.content_generator import ContentGenerator
from studypath.core.clock import Clock, SystemClock
from studypath.core.config import Settings, get_settings
from studypath.core.database import flush_or_conflict
from studypath.core.errors import GenerationFailedError, InvalidGoalError, NotFoundError
from studypath.core.logging import bind_learner, get_logger
from studypath.models.roadmap import Roadmap
from studypath.models.study_session import StudySession
from studypath.schemas.generation import GeneratedRoadmap, RoadmapContext
from studypath.schemas.roadmap import (
    CalibrationReport,
    CatchUpContent,
    MistakeInput,
    MistakePracticeSet,
    RoadmapGoal,
    RoadmapStatus,
    WeekAdvanceResult,
    WeeklyFocus,
    WeekStatus,
)
from studypath.schemas.study_session import (
    CompletionResult,
    LearningResource,
    PlanItem,
    PracticeDrill,
    SessionState,
    SessionStatus,
    SessionSummary,
    StudySessionResponse,
    TodaySession,
)
from studypath.services import (
    calibration_service,
    learner_service,
    mistake_service,
    progress_service,
    roadmap_service,
    session_materializer,
)

logger = get_logger(__name__)


def validate_goal(goal: RoadmapGoal) -> None:
    if goal.target_score <= 0:
        raise InvalidGoalError(f"target score must be positive, got {goal.target_score}")
    if goal.study_time_per_day <= 0:
        raise InvalidGoalError(
            f"study time per day must be positive, got {goal.study_time_per_day}"
        )
    if not 0 < goal.study_days_per_week <= 7:
        raise InvalidGoalError(
            f"study days per week must be within 1-7, got {goal.study_days_per_week}"
        )


def convert_weeks(
    generated: GeneratedRoadmap, days_per_week: int, minutes_per_day: int
) -> list[WeeklyFocus]:
    """Turn the generator's roadmap payload into numbered ``WeeklyFocus`` entries.

    Weeks are renumbered 1..n in the order given and day numbers run across the
    whole roadmap.
    """
    weeks = []
    for index, raw in enumerate(generated.weekly_focuses):
        number = index + 1
        days = calibration_service.days_from_generated(
            raw.daily_focuses,
            first_day_number=(number - 1) * days_per_week + 1,
            default_minutes=minutes_per_day,
            limit=days_per_week,
        )
        weeks.append(
            WeeklyFocus(
                week_number=number,
                title=raw.title,
                summary=raw.summary,
                focus_skills=raw.focus_skills,
                target_weaknesses=raw.target_weaknesses,
                recommended_domains=raw.recommended_domains,
                foundation_weight=raw.foundation_weight,
                expected_progress=raw.expected_progress,
                daily_focuses=days,
                total_sessions=len(days) or days_per_week,
                status=WeekStatus.PENDING,
            )
        )
    return weeks


def _find_resource(state: SessionState, resource_id: str) -> tuple[PlanItem, LearningResource]:
    for item in state.plan_items:
        resource = item.find_resource(resource_id)
        if resource is not None:
            return item, resource
    raise NotFoundError("Resource", resource_id)


def _find_drill(
    state: SessionState, drill_id: str, item_id: str | None = None
) -> tuple[PlanItem, PracticeDrill]:
    for item in state.plan_items:
        if item_id is not None and item.id != item_id:
            continue
        drill = item.find_drill(drill_id)
        if drill is not None:
            return item, drill
    raise NotFoundError("Drill", drill_id)


class RoadmapOrchestrator:
    """Composes the roadmap store, session materializer, progress aggregator and calibration."""

    def __init__(
        self,
        generator: ContentGenerator,
        clock: Clock | None = None,
        settings: Settings | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.generator = generator
        self.clock = clock or SystemClock(self.settings.TIMEZONE)

    # ------------------------------------------------------------------
    # Roadmaps
    # ------------------------------------------------------------------

    async def generate_roadmap(
        self, db: AsyncSession, learner_id: int, goal: RoadmapGoal
    ) -> Roadmap:
        """Plan and persist a new active roadmap for the learner.

        All generator calls happen before anything is written, so a
        ``GenerationFailedError`` leaves the learner's data untouched.

        Raises:
            InvalidGoalError: non-positive target score or time budget, or days
                per week outside 1-7.
            GenerationFailedError: the generator failed or produced no weeks.
        """
        validate_goal(goal)
        bind_learner(learner_id)

        study_days = await learner_service.get_study_days_of_week(db, learner_id)
        competency = await learner_service.get_competency_profile(db, learner_id)
        days_per_week = min(goal.study_days_per_week, len(study_days))
        goal = goal.model_copy(update={"study_days_per_week": days_per_week})

        context = RoadmapContext(
            learner_id=learner_id,
            user_prompt=goal.user_prompt or "",
            current_level=competency.current_level,
            current_score=goal.current_score,
            target_score=goal.target_score,
            study_time_per_day=goal.study_time_per_day,
            study_days_per_week=days_per_week,
            weaknesses=goal.weaknesses,
        )
        try:
            generated = await self.generator.generate_roadmap(context)
        except GenerationFailedError:
            raise
        except Exception as exc:
            logger.error("Roadmap generation failed", learner_id=learner_id, error=str(exc))
            raise GenerationFailedError("Could not generate a roadmap") from exc

        weeks = convert_weeks(generated, days_per_week, goal.study_time_per_day)
        if not weeks:
            raise GenerationFailedError("Content generator returned a roadmap without weeks")

        current_level = generated.current_level or competency.current_level
        today = self.clock.today()
        first = weeks[0]
        if not first.daily_focuses:
            first.daily_focuses = await calibration_service.plan_week_days(
                self.generator,
                first,
                days_of_week=calibration_service.chronological_days(today, study_days)[
                    :days_per_week
                ],
                first_day_number=1,
                minutes_per_day=goal.study_time_per_day,
                current_level=current_level,
            )
        calibration_service.schedule_week(first, today, study_days)
        for later in weeks[1:]:
            calibration_service.align_weekdays(later.daily_focuses, study_days)

        roadmap = await roadmap_service.create_roadmap(
            db,
            learner_id=learner_id,
            goal=goal,
            start_date=today,
            weeks=weeks,
            current_level=current_level,
            learning_strategy=generated.learning_strategy,
            phase_summary=generated.phase_summary,
        )
        logger.info(
            "Roadmap generated",
            roadmap_id=roadmap.id,
            learner_id=learner_id,
            total_weeks=roadmap.total_weeks,
        )
        return roadmap

    async def get_active_roadmap(self, db: AsyncSession, learner_id: int) -> Roadmap | None:
        return await roadmap_service.get_active_roadmap(db, learner_id)

    async def list_roadmaps(self, db: AsyncSession, learner_id: int) -> list[Roadmap]:
        return await roadmap_service.list_learner_roadmaps(db, learner_id)

    # ------------------------------------------------------------------
    # Today's session
    # ------------------------------------------------------------------

    async def get_today_session(self, db: AsyncSession, learner_id: int) -> TodaySession | None:
        """Today's session, materialized on first request. None when there is no plan."""
        roadmap = await roadmap_service.get_active_roadmap(db, learner_id)
        if roadmap is None:
            return None

        competency = await learner_service.get_competency_profile(db, learner_id)
        session = await session_materializer.materialize(
            db,
            self.generator,
            roadmap,
            learner_id=learner_id,
            today=self.clock.today(),
            competency=competency,
            fallback_enabled=self.settings.DAILY_FALLBACK_ENABLED,
        )
        if session is None:
            return None
        return session_materializer.enrich(session, roadmap)

    async def regenerate_today_session(
        self, db: AsyncSession, learner_id: int
    ) -> TodaySession | None:
        roadmap = await roadmap_service.get_active_roadmap(db, learner_id)
        if roadmap is None:
            return None

        competency = await learner_service.get_competency_profile(db, learner_id)
        session = await session_materializer.regenerate(
            db,
            self.generator,
            roadmap,
            learner_id=learner_id,
            today=self.clock.today(),
            competency=competency,
            fallback_enabled=self.settings.DAILY_FALLBACK_ENABLED,
        )
        if session is None:
            return None
        return session_materializer.enrich(session, roadmap)

    # ------------------------------------------------------------------
    # Completion events
    # ------------------------------------------------------------------

    async def record_completion(
        self,
        db: AsyncSession,
        session_id: int,
        item_id: str | None = None,
        resource_id: str | None = None,
        time_spent: int | None = None,
        learner_id: int | None = None,
    ) -> CompletionResult:
        """Record a completion against the most specific target given.

        A resource id records a view (an explicit completion when no time is
        given), an item id completes the item, neither completes the session.
        """
        if resource_id is not None:
            return await self.track_resource_view(
                db,
                session_id,
                resource_id,
                time_spent=time_spent or 0,
                learner_id=learner_id,
                mark_complete=time_spent is None,
            )
        if item_id is not None:
            return await self.complete_item(db, session_id, item_id, learner_id=learner_id)
        return await self.complete_session(db, session_id, learner_id=learner_id)

    async def track_resource_view(
        self,
        db: AsyncSession,
        session_id: int,
        resource_id: str,
        time_spent: int,
        learner_id: int | None = None,
        mark_complete: bool = False,
    ) -> CompletionResult:
        session = await session_materializer.require_session(db, session_id, learner_id)
        state = session.load_state()
        previous = state.status
        now = self.clock.now()

        item, resource = _find_resource(state, resource_id)
        progress_service.apply_resource_view(
            state,
            resource,
            time_spent,
            self.settings.RESOURCE_AUTO_COMPLETE_SECONDS,
            now,
            mark_complete=mark_complete,
        )
        progress_service.cascade(state, item, now)
        return await self._save_progress(db, session, state, previous)

    async def complete_drill(
        self,
        db: AsyncSession,
        session_id: int,
        drill_id: str,
        score: int | None = None,
        item_id: str | None = None,
        learner_id: int | None = None,
    ) -> CompletionResult:
        session = await session_materializer.require_session(db, session_id, learner_id)
        state = session.load_state()
        previous = state.status
        now = self.clock.now()

        item, drill = _find_drill(state, drill_id, item_id)
        progress_service.apply_drill_result(drill, now, score)
        progress_service.cascade(state, item, now)
        return await self._save_progress(db, session, state, previous)

    async def complete_item(
        self,
        db: AsyncSession,
        session_id: int,
        item_id: str,
        learner_id: int | None = None,
    ) -> CompletionResult:
        session = await session_materializer.require_session(db, session_id, learner_id)
        state = session.load_state()
        previous = state.status
        now = self.clock.now()

        item = state.find_item(item_id)
        if item is None:
            raise NotFoundError("Item", item_id)
        progress_service.complete_item_children(item, now)
        progress_service.cascade(state, item, now)
        return await self._save_progress(db, session, state, previous)

    async def complete_session(
        self, db: AsyncSession, session_id: int, learner_id: int | None = None
    ) -> CompletionResult:
        session = await session_materializer.require_session(db, session_id, learner_id)
        state = session.load_state()
        previous = state.status
        now = self.clock.now()

        for item in state.plan_items:
            progress_service.complete_item_children(item, now)
        fire = progress_service.auto_scan(state, now, auto_complete_roadmap=True)
        return await self._save_progress(db, session, state, previous, fire_day_complete=fire)

    async def _save_progress(
        self,
        db: AsyncSession,
        session: StudySession,
        state: SessionState,
        previous: SessionStatus,
        fire_day_complete: bool | None = None,
    ) -> CompletionResult:
        """Persist the cascaded session, then roll the change up into the roadmap."""
        session.store_state(state)
        await flush_or_conflict(db, entity="Session", entity_id=session.id)

        if fire_day_complete is None:
            fire_day_complete = (
                previous != SessionStatus.COMPLETED and state.status == SessionStatus.COMPLETED
            )

        result = CompletionResult(
            session=StudySessionResponse.model_validate(session),
            session_completed=state.status == SessionStatus.COMPLETED,
        )

        roadmap = await roadmap_service.get_roadmap(db, session.roadmap_id)
        if roadmap is None or roadmap.status != RoadmapStatus.ACTIVE.value:
            # Sessions of archived roadmaps still track progress, without roll-up
            result.message = "Progress saved"
            return result

        if previous == SessionStatus.UPCOMING and state.status != SessionStatus.UPCOMING:
            await calibration_service.mark_day_started(
                db, roadmap, session.week_number, session.day_number, session.scheduled_date
            )

        result.active_week_number = roadmap.active_week_number
        result.can_proceed = not calibration_service.is_blocked(
            calibration_service.active_week(roadmap, roadmap.load_weeks())
        )
        if not fire_day_complete:
            result.message = "Progress saved"
            return result

        study_days = await learner_service.get_study_days_of_week(db, session.learner_id)
        day = await calibration_service.complete_day(
            db,
            self.generator,
            roadmap,
            week_number=session.week_number,
            day_number=session.day_number,
            study_days_of_week=study_days,
            today=self.clock.today(),
            scheduled_date=session.scheduled_date,
        )
        result.day_completed = day.newly_completed
        result.can_proceed = day.can_proceed
        result.week_advanced = bool(day.advance and day.advance.progressed)
        result.active_week_number = roadmap.active_week_number
        result.message = day.advance.message if day.advance else "Session completed"
        return result

    # ------------------------------------------------------------------
    # Calibration
    # ------------------------------------------------------------------

    async def check_missed_sessions(
        self, db: AsyncSession, learner_id: int
    ) -> CalibrationReport | None:
        """Absorb study days the learner missed. None when there is no plan."""
        roadmap = await roadmap_service.get_active_roadmap(db, learner_id)
        if roadmap is None:
            return None

        bind_learner(learner_id)
        study_days = await learner_service.get_study_days_of_week(db, learner_id)
        competency = await learner_service.get_competency_profile(db, learner_id)
        return await calibration_service.calibrate(
            db,
            self.generator,
            roadmap,
            study_days_of_week=study_days,
            today=self.clock.today(),
            now=self.clock.now(),
            skip_limit=self.settings.MISSED_SKIP_LIMIT,
            current_level=competency.current_level,
        )

    async def check_and_advance_week(
        self, db: AsyncSession, roadmap_id: int, learner_id: int | None = None
    ) -> WeekAdvanceResult:
        roadmap = await roadmap_service.require_roadmap(db, roadmap_id, learner_id)
        study_days = await learner_service.get_study_days_of_week(db, roadmap.learner_id)
        return await calibration_service.check_and_advance_week(
            db,
            self.generator,
            roadmap,
            study_days_of_week=study_days,
            today=self.clock.today(),
        )

    async def get_skipped_sessions_content(
        self, db: AsyncSession, learner_id: int
    ) -> list[CatchUpContent] | None:
        roadmap = await roadmap_service.get_active_roadmap(db, learner_id)
        if roadmap is None:
            return None
        return calibration_service.skipped_content(
            calibration_service.active_week(roadmap, roadmap.load_weeks())
        )

    async def get_session_summary(
        self, db: AsyncSession, session_id: int, learner_id: int | None = None
    ) -> SessionSummary:
        session = await session_materializer.require_session(db, session_id, learner_id)
        return progress_service.session_summary(session.load_state())

    # ------------------------------------------------------------------
    # Mistake stack
    # ------------------------------------------------------------------

    async def add_mistakes(
        self, db: AsyncSession, learner_id: int, mistakes: list[MistakeInput]
    ) -> int | None:
        return await mistake_service.add_mistakes(db, learner_id, mistakes, self.clock.now())

    async def remove_mistake(
        self,
        db: AsyncSession,
        learner_id: int,
        question_id: str,
        week_number: int | None = None,
    ) -> bool | None:
        return await mistake_service.remove_mistake(db, learner_id, question_id, week_number)

    async def get_mistakes_for_practice(
        self,
        db: AsyncSession,
        learner_id: int,
        week_number: int | None = None,
        limit: int | None = None,
    ) -> MistakePracticeSet | None:
        return await mistake_service.get_mistakes_for_practice(
            db,
            learner_id,
            week_number=week_number,
            limit=limit or self.settings.MISTAKE_PRACTICE_LIMIT,
        )