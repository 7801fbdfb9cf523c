"""Test helpers: a scripted content generator and fixed dates."""

from datetime import date, timedelta

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
from studypath.schemas.roadmap import DailyFocus, DayStatus, WeeklyFocus

# 2026-10-19 is a Monday
MONDAY = date(2026, 10, 19)


class FakeContentGenerator:
    """Deterministic ``ContentGenerator`` that records every context it receives."""

    def __init__(self, weeks: int = 3, include_first_week_days: bool = True) -> None:
        self.weeks = weeks
        self.include_first_week_days = include_first_week_days
        self.roadmap_error: Exception | None = None
        self.daily_error: Exception | None = None
        self.week_error: Exception | None = None
        self.empty_roadmap = False
        self.empty_week = False
        self.roadmap_contexts: list[RoadmapContext] = []
        self.daily_contexts: list[DailyActivityContext] = []
        self.week_contexts: list[WeekPlanContext] = []

    async def generate_roadmap(self, context: RoadmapContext) -> GeneratedRoadmap:
        self.roadmap_contexts.append(context)
        if self.roadmap_error:
            raise self.roadmap_error
        weekly = []
        if not self.empty_roadmap:
            for n in range(1, self.weeks + 1):
                days = []
                if n == 1 and self.include_first_week_days:
                    days = [
                        GeneratedDay(
                            focus=f"Week 1 day {i}",
                            target_skills=["grammar"],
                            suggested_domains=["office"],
                            estimated_minutes=context.study_time_per_day,
                        )
                        for i in range(1, 8)
                    ]
                weekly.append(
                    GeneratedWeekFocus(
                        # Deliberately out of sequence, the engine renumbers
                        week_number=n * 10,
                        title=f"Week {n}",
                        summary=f"Summary {n}",
                        focus_skills=["grammar", "listening"],
                        target_weaknesses=context.weaknesses,
                        recommended_domains=["office"],
                        daily_focuses=days,
                    )
                )
        return GeneratedRoadmap(
            current_level="B1",
            total_weeks=len(weekly),
            weekly_focuses=weekly,
        )

    async def generate_daily_activities(
        self, context: DailyActivityContext
    ) -> GeneratedActivities:
        self.daily_contexts.append(context)
        if self.daily_error:
            raise self.daily_error
        return GeneratedActivities(
            activities=[
                GeneratedActivity(
                    title=f"Read: {context.focus}",
                    estimated_time=20,
                    activity_type="learn",
                    skills_to_improve=["grammar"],
                ),
                GeneratedActivity(
                    title="Drill",
                    estimated_time=15,
                    activity_type="drill",
                    total_questions=12,
                ),
                GeneratedActivity(
                    title="Something new",
                    estimated_time=10,
                    activity_type="mystery",
                ),
            ]
        )

    async def generate_week_days(self, context: WeekPlanContext) -> GeneratedWeek:
        self.week_contexts.append(context)
        if self.week_error:
            raise self.week_error
        if self.empty_week:
            return GeneratedWeek(daily_focuses=[])
        return GeneratedWeek(
            daily_focuses=[
                GeneratedDay(
                    focus=f"Week {context.week_number} planned for weekday {weekday}",
                    target_skills=["reading"],
                    suggested_domains=["travel"],
                )
                for weekday in context.days_of_week
            ]
        )


def make_week(
    statuses: list[DayStatus],
    *,
    week_number: int = 1,
    start: date = MONDAY,
    scheduled: bool = True,
    critical: set[int] | None = None,
) -> WeeklyFocus:
    """A week with one day per status, placed Monday onward from ``start``."""
    critical = critical or set()
    days = []
    for index, status in enumerate(statuses):
        number = (week_number - 1) * len(statuses) + index + 1
        days.append(
            DailyFocus(
                day_number=number,
                day_of_week=index + 1,
                focus=f"Day {number}",
                target_skills=[f"skill-{number}"],
                suggested_domains=[f"domain-{number}"],
                is_critical=number in critical,
                status=status,
                scheduled_date=start + timedelta(days=index) if scheduled else None,
            )
        )
    return WeeklyFocus(
        week_number=week_number,
        title=f"Week {week_number}",
        focus_skills=["grammar"],
        daily_focuses=days,
        total_sessions=len(days),
    )
