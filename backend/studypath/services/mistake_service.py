"""Weekly mistake stack.

Each week of the active roadmap keeps a most-recent-first stack of questions
the learner got wrong, used to build review practice.
"""

from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from studypath.core.logging import get_logger
from studypath.schemas.roadmap import (
    MistakeInput,
    MistakePracticeSet,
    MistakeQuestion,
    WeeklyFocus,
)
from studypath.services import roadmap_service

logger = get_logger(__name__)


def push_mistake(week: WeeklyFocus, mistake: MistakeInput, now: datetime) -> None:
    """Put ``mistake`` on top of the stack; a repeated question bumps its count."""
    for index, existing in enumerate(week.mistakes):
        if existing.question_id == mistake.question_id:
            existing.mistake_count += 1
            existing.added_at = now
            week.mistakes.insert(0, week.mistakes.pop(index))
            return

    week.mistakes.insert(
        0,
        MistakeQuestion(**mistake.model_dump(), mistake_count=1, added_at=now),
    )


async def add_mistakes(
    db: AsyncSession, learner_id: int, mistakes: list[MistakeInput], now: datetime
) -> int | None:
    """Push mistakes onto the active week. Returns the number added, None without a plan."""
    roadmap = await roadmap_service.get_active_roadmap(db, learner_id)
    if roadmap is None:
        return None

    weeks = roadmap.load_weeks()
    week = roadmap_service.find_week(weeks, roadmap.active_week_number)
    if week is None:
        return 0

    for mistake in mistakes:
        push_mistake(week, mistake, now)
    await roadmap_service.save_weeks(db, roadmap, weeks)

    logger.info(
        "Mistakes added",
        roadmap_id=roadmap.id,
        week_number=week.week_number,
        count=len(mistakes),
    )
    return len(mistakes)


async def remove_mistake(
    db: AsyncSession, learner_id: int, question_id: str, week_number: int | None = None
) -> bool | None:
    """Drop a question from a week's stack (default: the active week)."""
    roadmap = await roadmap_service.get_active_roadmap(db, learner_id)
    if roadmap is None:
        return None

    weeks = roadmap.load_weeks()
    week = roadmap_service.find_week(weeks, week_number or roadmap.active_week_number)
    if week is None:
        return False

    remaining = [m for m in week.mistakes if m.question_id != question_id]
    if len(remaining) == len(week.mistakes):
        return False

    week.mistakes = remaining
    await roadmap_service.save_weeks(db, roadmap, weeks)
    logger.info("Mistake removed", roadmap_id=roadmap.id, question_id=question_id)
    return True


async def get_mistakes_for_practice(
    db: AsyncSession, learner_id: int, week_number: int | None = None, limit: int = 40
) -> MistakePracticeSet | None:
    roadmap = await roadmap_service.get_active_roadmap(db, learner_id)
    if roadmap is None:
        return None

    target = week_number or roadmap.active_week_number
    week = roadmap_service.find_week(roadmap.load_weeks(), target)
    mistakes = week.mistakes[:limit] if week else []
    return MistakePracticeSet(week_number=target, mistakes=mistakes)
