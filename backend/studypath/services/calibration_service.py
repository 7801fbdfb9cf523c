"""Calibration engine.

Reconciles the active week of a roadmap against the learner's real calendar:
finds study days that slipped by, resolves small drift by marking them
skipped and large drift by regenerating the rest of the week, completes days
when their session finishes, and is the only code that moves
``active_week_number`` forward.
"""

from datetime import date, datetime, timedelta

from sqlalchemy.ext.asyncio import AsyncSession

from studypath.agent.content_generator import ContentGenerator
from studypath.core.clock import day_of_week, next_weekday_on_or_after
from studypath.core.errors import GenerationFailedError
from studypath.core.logging import get_logger
from studypath.models.roadmap import Roadmap
from studypath.schemas.generation import GeneratedDay, WeekPlanContext
from studypath.schemas.roadmap import (
    CalibrationAction,
    CalibrationReport,
    CatchUpContent,
    DailyFocus,
    DayCompletionResult,
    DayStatus,
    MissedSession,
    RoadmapStatus,
    WeekAdvanceResult,
    WeeklyFocus,
    WeekStatus,
)
from studypath.services import roadmap_service

logger = get_logger(__name__)

DEFAULT_LEVEL = "B1"


# ============================================================================
# Scheduling helpers
# ============================================================================


def days_from_generated(
    generated: list[GeneratedDay],
    *,
    first_day_number: int,
    default_minutes: int,
    limit: int | None = None,
) -> list[DailyFocus]:
    """Convert generator day payloads into pending ``DailyFocus`` entries."""
    chosen = generated[:limit] if limit is not None else generated
    return [
        DailyFocus(
            day_number=first_day_number + index,
            day_of_week=0,
            focus=day.focus,
            target_skills=day.target_skills,
            suggested_domains=day.suggested_domains,
            estimated_minutes=day.estimated_minutes or default_minutes,
            foundation_weight=day.foundation_weight,
            is_critical=day.is_critical,
        )
        for index, day in enumerate(chosen)
    ]


def chronological_days(anchor: date, study_days: list[int]) -> list[int]:
    """Study weekdays ordered by their next occurrence on or after ``anchor``."""
    anchor_dow = day_of_week(anchor)
    return sorted(set(study_days), key=lambda d: (d - anchor_dow) % 7)


def align_weekdays(days: list[DailyFocus], study_days: list[int]) -> None:
    """Tentatively place unscheduled days on study weekdays, without dates."""
    for day, weekday in zip(sorted(days, key=lambda d: d.day_number), sorted(set(study_days))):
        day.day_of_week = weekday


def schedule_days(days: list[DailyFocus], anchor: date, study_days: list[int]) -> None:
    """Align open days to the learner's study weekdays, stamping calendar dates.

    Days are assigned in ``day_number`` order to the study weekdays in the
    order they next occur from ``anchor``. Completed and skipped days are left
    alone.
    """
    open_days = sorted((d for d in days if not d.is_resolved), key=lambda d: d.day_number)
    for day, weekday in zip(open_days, chronological_days(anchor, study_days)):
        day.day_of_week = weekday
        day.scheduled_date = next_weekday_on_or_after(anchor, weekday)
        if day.status == DayStatus.PENDING:
            day.status = DayStatus.UPCOMING


def schedule_week(week: WeeklyFocus, anchor: date, study_days: list[int]) -> None:
    schedule_days(week.daily_focuses, anchor, study_days)
    week.total_sessions = len(week.daily_focuses)
    week.status = WeekStatus.IN_PROGRESS


def week_anchor(roadmap: Roadmap, week_number: int, today: date) -> date:
    """A week starts at its natural offset from the roadmap start, never in the past."""
    natural = roadmap.start_date + timedelta(days=7 * (week_number - 1))
    return max(natural, today)


def active_week(roadmap: Roadmap, weeks: list[WeeklyFocus]) -> WeeklyFocus | None:
    return roadmap_service.find_week(weeks, roadmap.active_week_number)


def is_blocked(week: WeeklyFocus | None) -> bool:
    """A critical day of the week is still open."""
    if week is None:
        return False
    return any(d.is_critical and not d.is_resolved for d in week.daily_focuses)


def skipped_content(week: WeeklyFocus | None) -> list[CatchUpContent]:
    if week is None:
        return []
    return [
        CatchUpContent(
            day_number=d.day_number,
            focus=d.focus,
            target_skills=d.target_skills,
            suggested_domains=d.suggested_domains,
        )
        for d in week.daily_focuses
        if d.status == DayStatus.SKIPPED
    ]


async def plan_week_days(
    generator: ContentGenerator,
    week: WeeklyFocus,
    *,
    days_of_week: list[int],
    first_day_number: int,
    minutes_per_day: int,
    current_level: str | None,
    covered: list[DailyFocus] | None = None,
) -> list[DailyFocus]:
    """Ask the generator for one day per listed weekday.

    Raises:
        GenerationFailedError: the generator failed or returned no days.
    """
    covered = covered or []
    context = WeekPlanContext(
        current_level=current_level or DEFAULT_LEVEL,
        week_number=week.week_number,
        week_title=week.title,
        week_summary=week.summary,
        focus_skills=week.focus_skills,
        recommended_domains=week.recommended_domains,
        target_weaknesses=week.target_weaknesses,
        days_of_week=days_of_week,
        minutes_per_day=minutes_per_day,
        covered_skills=sorted({s for d in covered for s in d.target_skills}),
        covered_domains=sorted({s for d in covered for s in d.suggested_domains}),
    )
    try:
        generated = await generator.generate_week_days(context)
    except GenerationFailedError:
        raise
    except Exception as exc:
        logger.error(
            "Week generation failed",
            week_number=week.week_number,
            error=str(exc),
        )
        raise GenerationFailedError(f"Could not generate days for week {week.week_number}") from exc

    if not generated.daily_focuses:
        raise GenerationFailedError(
            f"Content generator returned no days for week {week.week_number}"
        )

    return days_from_generated(
        generated.daily_focuses,
        first_day_number=first_day_number,
        default_minutes=minutes_per_day,
        limit=len(days_of_week),
    )


# ============================================================================
# Missed-session detection
# ============================================================================


def _is_past(day: DailyFocus, today: date) -> bool:
    if day.scheduled_date is not None:
        return day.scheduled_date < today
    # Unscheduled days fall back to comparing weekdays inside the current week
    return day.day_of_week < day_of_week(today)


def identify_missed_sessions(
    roadmap: Roadmap,
    study_days_of_week: list[int],
    today: date,
    weeks: list[WeeklyFocus] | None = None,
) -> list[MissedSession]:
    """Open study days of the active week whose slot is already behind ``today``."""
    weeks = weeks if weeks is not None else roadmap.load_weeks()
    week = active_week(roadmap, weeks)
    if week is None or not week.daily_focuses:
        return []

    open_days = week.open_days()
    has_completed = any(d.status == DayStatus.COMPLETED for d in week.daily_focuses)
    if has_completed and open_days and not any(_is_past(d, today) for d in open_days):
        # On track: everything left is still ahead
        return []

    study_days = set(study_days_of_week)
    missed = [
        MissedSession(
            week_number=week.week_number,
            day_number=d.day_number,
            day_of_week=d.day_of_week,
            focus=d.focus,
            target_skills=d.target_skills,
            suggested_domains=d.suggested_domains,
        )
        for d in open_days
        if d.day_of_week in study_days and _is_past(d, today)
    ]
    if missed:
        logger.info(
            "Missed sessions identified",
            roadmap_id=roadmap.id,
            week_number=week.week_number,
            days=[m.day_number for m in missed],
        )
    return missed


def _is_kept(day: DailyFocus, today: date) -> bool:
    if day.status == DayStatus.COMPLETED:
        return True
    return day.status == DayStatus.IN_PROGRESS and day.scheduled_date == today


def find_planned_day(
    weeks: list[WeeklyFocus],
    week_number: int,
    day_number: int,
    scheduled_date: date | None = None,
) -> DailyFocus | None:
    """The plan day a session points at.

    When both sides carry a date they must agree; a day rescheduled onto
    another date is not the session's day anymore.
    """
    week = roadmap_service.find_week(weeks, week_number)
    day = week.find_day(day_number) if week else None
    if day is None:
        return None
    if scheduled_date is not None and day.scheduled_date not in (None, scheduled_date):
        return None
    return day


def mark_skipped(week: WeeklyFocus, missed: list[MissedSession]) -> None:
    """Flip missed days to ``skipped`` in place; content and day count are untouched."""
    missed_numbers = {m.day_number for m in missed}
    for day in week.daily_focuses:
        if day.day_number in missed_numbers and not day.is_resolved:
            day.status = DayStatus.SKIPPED


async def regenerate_week(
    generator: ContentGenerator,
    roadmap: Roadmap,
    week: WeeklyFocus,
    *,
    study_days_of_week: list[int],
    today: date,
    current_level: str | None = None,
    weeks: list[WeeklyFocus] | None = None,
) -> tuple[int, int]:
    """Replace the abandoned days of ``week`` with freshly generated days.

    New days cover the learner's remaining study days of the current calendar
    week (today onward, or tomorrow onward when today's day is kept); when
    none remain, the following week's study days. Completed days and a day
    already started today are kept untouched. New days are numbered after the
    highest day number the roadmap has used, so a session of a discarded day
    can never resolve to one of its replacements. Returns (new days, retained
    completions).
    """
    retained = [d for d in week.daily_focuses if _is_kept(d, today)]
    completed = [d for d in retained if d.status == DayStatus.COMPLETED]

    today_dow = day_of_week(today)
    first_open = today_dow
    if any(d.scheduled_date == today for d in retained):
        first_open += 1
    remaining = sorted(d for d in set(study_days_of_week) if d >= first_open)
    anchor = today
    if not remaining:
        remaining = sorted(set(study_days_of_week))
        anchor = today + timedelta(days=7 - today_dow)

    used = [d.day_number for w in (weeks or [week]) for d in w.daily_focuses]
    first_day_number = max(used, default=(week.week_number - 1) * roadmap.study_days_per_week) + 1
    new_days = await plan_week_days(
        generator,
        week,
        days_of_week=remaining,
        first_day_number=first_day_number,
        minutes_per_day=roadmap.study_time_per_day,
        current_level=current_level or roadmap.current_level,
        covered=retained,
    )

    schedule_days(new_days, anchor, remaining)
    week.daily_focuses = retained + new_days
    week.total_sessions = len(week.daily_focuses)
    week.status = WeekStatus.IN_PROGRESS

    logger.info(
        "Week regenerated",
        roadmap_id=roadmap.id,
        week_number=week.week_number,
        new_days=len(new_days),
        retained=len(retained),
        first_day_number=first_day_number,
    )
    return len(new_days), len(completed)


async def calibrate(
    db: AsyncSession,
    generator: ContentGenerator,
    roadmap: Roadmap,
    *,
    study_days_of_week: list[int],
    today: date,
    now: datetime,
    skip_limit: int = 2,
    current_level: str | None = None,
) -> CalibrationReport:
    """Detect missed days in the active week and absorb them.

    0 missed: nothing. Up to ``skip_limit``: mark them skipped. More: regenerate
    the rest of the week through the content generator.
    """
    weeks = roadmap.load_weeks()
    week = active_week(roadmap, weeks)
    missed = identify_missed_sessions(roadmap, study_days_of_week, today, weeks)
    if week is None or not missed:
        return CalibrationReport(
            has_missed_sessions=False,
            missed_count=0,
            action=CalibrationAction.NONE,
            message="Roadmap is up to date",
        )

    if len(missed) <= skip_limit:
        mark_skipped(week, missed)
        report = CalibrationReport(
            has_missed_sessions=True,
            missed_count=len(missed),
            action=CalibrationAction.MARK_SKIPPED,
            message=(
                f"You missed {len(missed)} session(s). "
                "They will be reviewed in your next study session."
            ),
            missed_sessions=missed,
        )
    else:
        new_count, retained = await regenerate_week(
            generator,
            roadmap,
            week,
            study_days_of_week=study_days_of_week,
            today=today,
            current_level=current_level,
            weeks=weeks,
        )
        report = CalibrationReport(
            has_missed_sessions=True,
            missed_count=len(missed),
            action=CalibrationAction.REGENERATE_WEEK,
            message=(
                f"You missed {len(missed)} sessions. "
                "Your week plan has been regenerated to fit your current schedule."
            ),
            missed_sessions=missed,
            regenerated_days=new_count,
            retained_completions=retained,
        )

    roadmap.recalibration_count = (roadmap.recalibration_count or 0) + 1
    roadmap.last_recalibrated_at = now
    await roadmap_service.save_weeks(db, roadmap, weeks)

    logger.info(
        "Roadmap calibrated",
        roadmap_id=roadmap.id,
        action=report.action.value,
        missed=report.missed_count,
    )
    return report


# ============================================================================
# Day completion and week advancement
# ============================================================================


async def mark_day_started(
    db: AsyncSession,
    roadmap: Roadmap,
    week_number: int,
    day_number: int,
    scheduled_date: date | None = None,
) -> bool:
    """pending/upcoming -> in-progress once the day's session has started."""
    weeks = roadmap.load_weeks()
    day = find_planned_day(weeks, week_number, day_number, scheduled_date)
    if day is None or day.status not in (DayStatus.PENDING, DayStatus.UPCOMING):
        return False

    day.status = DayStatus.IN_PROGRESS
    await roadmap_service.save_weeks(db, roadmap, weeks)
    return True


async def check_and_advance_week(
    db: AsyncSession,
    generator: ContentGenerator,
    roadmap: Roadmap,
    *,
    study_days_of_week: list[int],
    today: date,
    current_level: str | None = None,
) -> WeekAdvanceResult:
    """Move to the next week once every day of the active week is completed or skipped.

    The next week's days are generated first when it has none yet, so a
    generator failure leaves the roadmap untouched.
    """
    weeks = roadmap.load_weeks()
    week = active_week(roadmap, weeks)
    if week is None or not week.daily_focuses:
        return WeekAdvanceResult(progressed=False, message="No active week found")

    open_days = week.open_days()
    if open_days:
        message = f"You still have {len(open_days)} session(s) to complete this week"
        critical = [d for d in open_days if d.is_critical]
        if critical:
            message += f", including {len(critical)} critical session(s)"
        return WeekAdvanceResult(progressed=False, message=message)

    if roadmap.status == RoadmapStatus.COMPLETED.value:
        return WeekAdvanceResult(progressed=False, message="Roadmap already completed")

    next_number = week.week_number + 1
    next_week = roadmap_service.find_week(weeks, next_number)
    if next_week is None:
        roadmap.status = RoadmapStatus.COMPLETED.value
        await roadmap_service.save_weeks(db, roadmap, weeks)
        logger.info("Roadmap completed", roadmap_id=roadmap.id)
        return WeekAdvanceResult(
            progressed=False,
            message="Congratulations! You have finished every week of this roadmap",
        )

    anchor = week_anchor(roadmap, next_number, today)
    study_days = sorted(set(study_days_of_week))
    if not next_week.daily_focuses:
        previous_max = max(
            (d.day_number for w in weeks for d in w.daily_focuses),
            default=(next_number - 1) * roadmap.study_days_per_week,
        )
        next_week.daily_focuses = await plan_week_days(
            generator,
            next_week,
            days_of_week=chronological_days(anchor, study_days)[: roadmap.study_days_per_week],
            first_day_number=previous_max + 1,
            minutes_per_day=roadmap.study_time_per_day,
            current_level=current_level or roadmap.current_level,
        )

    schedule_week(next_week, anchor, study_days)
    roadmap.active_week_number = next_number
    await roadmap_service.save_weeks(db, roadmap, weeks)

    logger.info("Week advanced", roadmap_id=roadmap.id, week_number=next_number)
    return WeekAdvanceResult(
        progressed=True,
        new_week_number=next_number,
        message=f"Congratulations! Moving to week {next_number}",
    )


async def complete_day(
    db: AsyncSession,
    generator: ContentGenerator,
    roadmap: Roadmap,
    *,
    week_number: int,
    day_number: int,
    study_days_of_week: list[int],
    today: date,
    current_level: str | None = None,
    scheduled_date: date | None = None,
) -> DayCompletionResult:
    """Day-complete hook: flip the day to completed and try to advance the week.

    Completed and skipped days are terminal, so a repeated or late completion
    does not count twice. ``scheduled_date`` is the session's date; a plan day
    that now sits on another date does not match.
    """
    weeks = roadmap.load_weeks()
    day = find_planned_day(weeks, week_number, day_number, scheduled_date)

    newly_completed = False
    if day is None:
        logger.warning(
            "Completed session has no matching day in the plan",
            roadmap_id=roadmap.id,
            week_number=week_number,
            day_number=day_number,
            scheduled_date=scheduled_date.isoformat() if scheduled_date else None,
        )
    elif day.is_resolved:
        logger.info(
            "Day already resolved, completion not counted",
            roadmap_id=roadmap.id,
            day_number=day_number,
            status=day.status.value,
        )
    else:
        day.status = DayStatus.COMPLETED
        newly_completed = True
        await roadmap_service.save_weeks(db, roadmap, weeks)
        logger.info(
            "Day completed",
            roadmap_id=roadmap.id,
            week_number=week_number,
            day_number=day_number,
            overall_progress=roadmap.overall_progress,
        )

    can_proceed = not is_blocked(active_week(roadmap, weeks))
    advance = None
    if newly_completed and week_number == roadmap.active_week_number:
        advance = await check_and_advance_week(
            db,
            generator,
            roadmap,
            study_days_of_week=study_days_of_week,
            today=today,
            current_level=current_level,
        )

    return DayCompletionResult(
        week_number=week_number,
        day_number=day_number,
        newly_completed=newly_completed,
        can_proceed=can_proceed,
        advance=advance,
    )
