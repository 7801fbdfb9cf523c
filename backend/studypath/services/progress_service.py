"""Progress aggregation.

Pure computations over in-memory session and roadmap structures: callers load,
call into this module, then persist. Timestamps come from the ``now`` the
caller passes in, never from the wall clock.
"""

import math
from datetime import datetime

from studypath.core.errors import InvalidProgressValueError
from studypath.schemas.roadmap import DayStatus, WeeklyFocus, WeekStatus
from studypath.schemas.study_session import (
    ItemStatus,
    LearningResource,
    PlanItem,
    PlanItemSummary,
    PracticeDrill,
    SessionState,
    SessionStatus,
    SessionSummary,
)


def percent(done: int, total: int) -> int:
    """Whole percentage, halves rounded up; 0 when there is nothing to count."""
    if total <= 0:
        return 0
    return math.floor(100 * done / total + 0.5)


# ============================================================================
# Item / session progress
# ============================================================================


def _child_counts(item: PlanItem) -> tuple[int, int]:
    total = len(item.resources) + len(item.practice_drills)
    done = sum(1 for r in item.resources if r.completed) + sum(
        1 for d in item.practice_drills if d.completed
    )
    return done, total


def item_progress(item: PlanItem, now: datetime) -> int:
    done, total = _child_counts(item)
    item.progress = percent(done, total)

    if item.progress == 100:
        item.status = ItemStatus.COMPLETED
        if item.completed_at is None:
            item.completed_at = now
    elif item.progress > 0 and item.status == ItemStatus.PENDING:
        item.status = ItemStatus.IN_PROGRESS
        if item.started_at is None:
            item.started_at = now
    return item.progress


def session_progress(session: SessionState, now: datetime) -> int:
    total = len(session.plan_items)
    done = sum(1 for item in session.plan_items if item.status == ItemStatus.COMPLETED)
    session.progress = percent(done, total)

    if session.progress == 100:
        session.status = SessionStatus.COMPLETED
        if session.completed_at is None:
            session.completed_at = now
    elif session.progress > 0 and session.status == SessionStatus.UPCOMING:
        session.status = SessionStatus.IN_PROGRESS
        if session.started_at is None:
            session.started_at = now
    return session.progress


def cascade(session: SessionState, item: PlanItem, now: datetime) -> None:
    """Recompute the touched item, then the session. Always both, in that order."""
    item_progress(item, now)
    session_progress(session, now)


def auto_scan(session: SessionState, now: datetime, auto_complete_roadmap: bool = False) -> bool:
    """Recompute every item, then the session.

    Returns True when the caller must run the roadmap day-complete hook: the
    session moved into ``completed`` during this scan and roadmap
    auto-completion was requested. A session that was already complete never
    fires again.
    """
    for item in session.plan_items:
        item_progress(item, now)

    was_completed = session.status == SessionStatus.COMPLETED
    session_progress(session, now)

    return (
        auto_complete_roadmap
        and not was_completed
        and session.status == SessionStatus.COMPLETED
    )


# ============================================================================
# Leaf updates
# ============================================================================


def apply_resource_view(
    session: SessionState,
    resource: LearningResource,
    time_spent: int,
    threshold_seconds: int,
    now: datetime,
    *,
    mark_complete: bool = False,
) -> bool:
    """Record dwell time; flips the resource to completed at the threshold.

    ``mark_complete`` completes the resource regardless of the dwell time.

    A resource that is already complete keeps its original ``completed_at``.
    Returns whether the resource changed state.
    """
    if time_spent < 0:
        raise InvalidProgressValueError(f"time spent must be non-negative, got {time_spent}")

    session.total_time_spent += time_spent
    if (mark_complete or time_spent >= threshold_seconds) and not resource.completed:
        resource.completed = True
        resource.completed_at = now
        return True
    return False


def apply_drill_result(drill: PracticeDrill, now: datetime, score: int | None = None) -> None:
    if score is not None and not 0 <= score <= 100:
        raise InvalidProgressValueError(f"drill score must be within [0, 100], got {score}")

    drill.attempts += 1
    if score is not None:
        drill.score = score
    if not drill.completed:
        drill.completed = True
        drill.completed_at = now


def complete_item_children(item: PlanItem, now: datetime) -> None:
    """Mark every resource and drill of ``item`` complete.

    Childless items have no derived progress, so their status is set directly.
    """
    for resource in item.resources:
        if not resource.completed:
            resource.completed = True
            resource.completed_at = now
    for drill in item.practice_drills:
        if not drill.completed:
            drill.completed = True
            drill.completed_at = now

    if not item.resources and not item.practice_drills and item.status != ItemStatus.COMPLETED:
        item.status = ItemStatus.COMPLETED
        item.started_at = item.started_at or now
        item.completed_at = now


# ============================================================================
# Week / roadmap roll-up
# ============================================================================


def roadmap_progress(sessions_completed: int, total_sessions: int) -> int:
    return percent(sessions_completed, total_sessions)


def week_status(week: WeeklyFocus) -> WeekStatus:
    """Completed once every day is resolved; in progress once any day moved."""
    if week.daily_focuses and all(d.is_resolved for d in week.daily_focuses):
        return WeekStatus.COMPLETED
    if any(d.status != DayStatus.PENDING for d in week.daily_focuses):
        return WeekStatus.IN_PROGRESS
    return week.status


def roll_up_week(week: WeeklyFocus) -> None:
    if week.daily_focuses:
        week.total_sessions = len(week.daily_focuses)
    week.sessions_completed = sum(
        1 for d in week.daily_focuses if d.status == DayStatus.COMPLETED
    )
    week.status = week_status(week)


def roadmap_totals(weeks: list[WeeklyFocus], study_days_per_week: int) -> tuple[int, int, int]:
    """(sessions_completed, total_sessions, overall_progress) over all weeks.

    Weeks whose days are not materialized yet count ``study_days_per_week``
    planned sessions.
    """
    total = 0
    completed = 0
    for week in weeks:
        roll_up_week(week)
        total += week.total_sessions if week.daily_focuses else study_days_per_week
        completed += week.sessions_completed
    return completed, total, roadmap_progress(completed, total)


def session_summary(session: SessionState) -> SessionSummary:
    items = []
    for item in session.plan_items:
        done, total = _child_counts(item)
        items.append(
            PlanItemSummary(
                id=item.id,
                title=item.title,
                progress=item.progress,
                status=item.status,
                total_activities=total,
                completed_activities=done,
            )
        )
    return SessionSummary(
        session_progress=session.progress,
        session_status=session.status,
        total_plan_items=len(session.plan_items),
        completed_plan_items=sum(1 for i in session.plan_items if i.status == ItemStatus.COMPLETED),
        plan_items=items,
    )
