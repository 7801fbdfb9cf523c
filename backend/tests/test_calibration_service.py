"""Tests for calibration_service."""

from datetime import UTC, datetime, timedelta

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession

from studypath.core.errors import GenerationFailedError
from studypath.models import Learner, Roadmap
from studypath.schemas.roadmap import (
    CalibrationAction,
    DayStatus,
    RoadmapGoal,
    RoadmapStatus,
    WeeklyFocus,
    WeekStatus,
)
from studypath.services import calibration_service, progress_service, roadmap_service
from tests.helpers import MONDAY, FakeContentGenerator, make_week

C, S, U = DayStatus.COMPLETED, DayStatus.SKIPPED, DayStatus.UPCOMING
P = DayStatus.IN_PROGRESS
WEEKDAYS = [1, 2, 3, 4, 5]
TUESDAY = MONDAY + timedelta(days=1)
WEDNESDAY = MONDAY + timedelta(days=2)
THURSDAY = MONDAY + timedelta(days=3)
FRIDAY = MONDAY + timedelta(days=4)
SATURDAY = MONDAY + timedelta(days=5)
NEXT_MONDAY = MONDAY + timedelta(days=7)


def _now(day) -> datetime:
    return datetime(day.year, day.month, day.day, 9, 0, tzinfo=UTC)


def assert_invariants(roadmap: Roadmap) -> None:
    assert roadmap.sessions_completed <= roadmap.total_sessions
    assert roadmap.overall_progress == progress_service.percent(
        roadmap.sessions_completed, roadmap.total_sessions
    )


@pytest_asyncio.fixture
async def make_roadmap(test_session: AsyncSession, learner: Learner):
    async def _make(*weeks: WeeklyFocus) -> Roadmap:
        return await roadmap_service.create_roadmap(
            test_session,
            learner_id=learner.id,
            goal=RoadmapGoal(target_score=750, study_time_per_day=60),
            start_date=MONDAY,
            weeks=list(weeks),
            current_level="B1",
        )

    return _make


async def _calibrate(db, generator, roadmap, today, study_days=WEEKDAYS):
    return await calibration_service.calibrate(
        db,
        generator,
        roadmap,
        study_days_of_week=study_days,
        today=today,
        now=_now(today),
    )


class TestIdentifyMissedSessions:
    @pytest.mark.asyncio
    async def test_only_past_open_day_is_missed(self, make_roadmap) -> None:
        roadmap = await make_roadmap(make_week([C, C, C, U, U]))

        missed = calibration_service.identify_missed_sessions(roadmap, WEEKDAYS, FRIDAY)

        assert [m.day_number for m in missed] == [4]

    @pytest.mark.asyncio
    async def test_on_track_when_remaining_days_are_ahead(self, make_roadmap) -> None:
        roadmap = await make_roadmap(make_week([C, U, U, U, U]))

        assert calibration_service.identify_missed_sessions(roadmap, WEEKDAYS, TUESDAY) == []

    @pytest.mark.asyncio
    async def test_unscheduled_days_compare_weekdays(self, make_roadmap) -> None:
        roadmap = await make_roadmap(make_week([U] * 5, scheduled=False))

        missed = calibration_service.identify_missed_sessions(roadmap, WEEKDAYS, WEDNESDAY)

        assert [m.day_of_week for m in missed] == [1, 2]

    @pytest.mark.asyncio
    async def test_week_boundary_is_not_a_false_positive(self, make_roadmap) -> None:
        roadmap = await make_roadmap(make_week([C, U, U, U, U], scheduled=False))

        assert calibration_service.identify_missed_sessions(roadmap, WEEKDAYS, MONDAY) == []

    @pytest.mark.asyncio
    async def test_non_study_days_are_ignored(self, make_roadmap) -> None:
        roadmap = await make_roadmap(make_week([U] * 5))

        missed = calibration_service.identify_missed_sessions(roadmap, [1, 3, 5], SATURDAY)

        assert [m.day_of_week for m in missed] == [1, 3, 5]

    @pytest.mark.asyncio
    async def test_no_active_week(self, make_roadmap) -> None:
        roadmap = await make_roadmap(make_week([]))

        assert calibration_service.identify_missed_sessions(roadmap, WEEKDAYS, FRIDAY) == []


class TestScheduleWeek:
    def test_midweek_anchor_orders_days_chronologically(self) -> None:
        week = make_week([DayStatus.PENDING] * 5, scheduled=False)

        calibration_service.schedule_week(week, WEDNESDAY, WEEKDAYS)

        assert [d.day_of_week for d in week.daily_focuses] == [3, 4, 5, 1, 2]
        assert [d.scheduled_date for d in week.daily_focuses] == [
            WEDNESDAY,
            WEDNESDAY + timedelta(days=1),
            WEDNESDAY + timedelta(days=2),
            NEXT_MONDAY,
            NEXT_MONDAY + timedelta(days=1),
        ]
        assert all(d.status == DayStatus.UPCOMING for d in week.daily_focuses)
        assert week.status == WeekStatus.IN_PROGRESS

    def test_resolved_days_are_left_alone(self) -> None:
        week = make_week([C, DayStatus.PENDING], scheduled=False)
        calibration_service.schedule_week(week, MONDAY, WEEKDAYS)

        assert week.daily_focuses[0].scheduled_date is None
        assert week.daily_focuses[1].scheduled_date == MONDAY


class TestCalibrate:
    @pytest.mark.asyncio
    async def test_one_missed_day_is_marked_skipped(
        self, test_session: AsyncSession, make_roadmap
    ) -> None:
        generator = FakeContentGenerator()
        roadmap = await make_roadmap(make_week([C, C, C, U, U]), make_week([], week_number=2))
        before = roadmap.load_weeks()[0]

        report = await _calibrate(test_session, generator, roadmap, FRIDAY)

        assert report.action == CalibrationAction.MARK_SKIPPED
        assert report.missed_count == 1
        week = roadmap.load_weeks()[0]
        assert week.find_day(4).status == DayStatus.SKIPPED
        assert len(week.daily_focuses) == len(before.daily_focuses)
        for old, new in zip(before.daily_focuses, week.daily_focuses):
            assert old.model_dump(exclude={"status"}) == new.model_dump(exclude={"status"})
        assert generator.week_contexts == []
        assert roadmap.recalibration_count == 1
        assert roadmap.last_recalibrated_at == _now(FRIDAY)
        assert_invariants(roadmap)

        advance = await calibration_service.check_and_advance_week(
            test_session, generator, roadmap, study_days_of_week=WEEKDAYS, today=FRIDAY
        )
        assert advance.progressed is False
        assert advance.message == "You still have 1 session(s) to complete this week"
        assert roadmap.active_week_number == 1

    @pytest.mark.asyncio
    async def test_second_run_without_drift_finds_nothing(
        self, test_session: AsyncSession, make_roadmap
    ) -> None:
        generator = FakeContentGenerator()
        roadmap = await make_roadmap(make_week([U] * 5))

        first = await _calibrate(test_session, generator, roadmap, WEDNESDAY)
        second = await _calibrate(test_session, generator, roadmap, WEDNESDAY)

        assert first.missed_count == 2
        assert second.has_missed_sessions is False
        assert second.action == CalibrationAction.NONE
        assert roadmap.recalibration_count == 1

    @pytest.mark.asyncio
    async def test_following_monday_regenerates_week(
        self, test_session: AsyncSession, make_roadmap
    ) -> None:
        generator = FakeContentGenerator()
        roadmap = await make_roadmap(make_week([U] * 5), make_week([], week_number=2))

        report = await _calibrate(test_session, generator, roadmap, NEXT_MONDAY)

        assert report.action == CalibrationAction.REGENERATE_WEEK
        assert report.missed_count == 5
        assert report.regenerated_days == 5
        assert report.retained_completions == 0
        assert generator.week_contexts[0].days_of_week == WEEKDAYS

        week = roadmap.load_weeks()[0]
        assert [d.day_number for d in week.daily_focuses] == [6, 7, 8, 9, 10]
        assert [d.scheduled_date for d in week.daily_focuses] == [
            NEXT_MONDAY + timedelta(days=i) for i in range(5)
        ]
        assert week.total_sessions == 5
        assert roadmap.total_sessions == 10
        assert_invariants(roadmap)

        again = await _calibrate(test_session, generator, roadmap, NEXT_MONDAY)
        assert again.missed_count == 0

    @pytest.mark.asyncio
    async def test_regeneration_keeps_completed_days(
        self, test_session: AsyncSession, make_roadmap
    ) -> None:
        generator = FakeContentGenerator()
        roadmap = await make_roadmap(make_week([C, U, U, U, U]), make_week([], week_number=2))
        completed_before = roadmap.load_weeks()[0].find_day(1)

        report = await _calibrate(test_session, generator, roadmap, FRIDAY)

        assert report.action == CalibrationAction.REGENERATE_WEEK
        assert report.missed_count == 3
        assert report.retained_completions == 1
        assert report.regenerated_days == 1

        context = generator.week_contexts[0]
        assert context.days_of_week == [5]
        assert context.covered_skills == ["skill-1"]
        assert context.covered_domains == ["domain-1"]

        week = roadmap.load_weeks()[0]
        assert week.find_day(1) == completed_before
        new_day = week.daily_focuses[1]
        assert new_day.day_number == 6
        assert new_day.scheduled_date == FRIDAY
        assert new_day.status == DayStatus.UPCOMING
        assert week.total_sessions == 2
        assert (roadmap.sessions_completed, roadmap.total_sessions) == (1, 7)
        assert_invariants(roadmap)

    @pytest.mark.asyncio
    async def test_regeneration_keeps_day_started_today(
        self, test_session: AsyncSession, make_roadmap
    ) -> None:
        generator = FakeContentGenerator()
        roadmap = await make_roadmap(make_week([U, U, U, P, U]), make_week([], week_number=2))

        report = await _calibrate(test_session, generator, roadmap, THURSDAY)

        assert report.action == CalibrationAction.REGENERATE_WEEK
        assert [m.day_number for m in report.missed_sessions] == [1, 2, 3]
        assert report.regenerated_days == 1
        assert report.retained_completions == 0
        assert generator.week_contexts[0].days_of_week == [5]

        week = roadmap.load_weeks()[0]
        assert [d.day_number for d in week.daily_focuses] == [4, 6]
        assert [d.scheduled_date for d in week.daily_focuses] == [THURSDAY, FRIDAY]
        assert week.find_day(4).status == DayStatus.IN_PROGRESS
        assert week.total_sessions == 2
        assert_invariants(roadmap)

    @pytest.mark.asyncio
    async def test_regenerated_day_numbers_are_never_reused(
        self, test_session: AsyncSession, make_roadmap
    ) -> None:
        generator = FakeContentGenerator()
        roadmap = await make_roadmap(make_week([U] * 5), make_week([], week_number=2))

        await _calibrate(test_session, generator, roadmap, NEXT_MONDAY)
        await _calibrate(test_session, generator, roadmap, NEXT_MONDAY + timedelta(days=3))

        week = roadmap.load_weeks()[0]
        assert [d.day_number for d in week.daily_focuses] == [11, 12]
        assert [d.day_of_week for d in week.daily_focuses] == [4, 5]

    @pytest.mark.asyncio
    async def test_regeneration_on_weekend_plans_next_week(
        self, test_session: AsyncSession, make_roadmap
    ) -> None:
        generator = FakeContentGenerator()
        roadmap = await make_roadmap(make_week([U] * 5))

        await _calibrate(test_session, generator, roadmap, SATURDAY)

        assert generator.week_contexts[0].days_of_week == WEEKDAYS
        week = roadmap.load_weeks()[0]
        assert week.daily_focuses[0].scheduled_date == NEXT_MONDAY

    @pytest.mark.asyncio
    async def test_empty_regeneration_fails_without_changes(
        self, test_session: AsyncSession, make_roadmap
    ) -> None:
        generator = FakeContentGenerator()
        generator.empty_week = True
        roadmap = await make_roadmap(make_week([U] * 5))
        before = list(roadmap.weekly_focuses)

        with pytest.raises(GenerationFailedError):
            await _calibrate(test_session, generator, roadmap, NEXT_MONDAY)

        assert roadmap.weekly_focuses == before
        assert roadmap.recalibration_count == 0

    @pytest.mark.asyncio
    async def test_generator_crash_is_wrapped(
        self, test_session: AsyncSession, make_roadmap
    ) -> None:
        generator = FakeContentGenerator()
        generator.week_error = RuntimeError("timeout")
        roadmap = await make_roadmap(make_week([U] * 5))

        with pytest.raises(GenerationFailedError):
            await _calibrate(test_session, generator, roadmap, NEXT_MONDAY)


class TestAdvanceWeek:
    @pytest.mark.asyncio
    async def test_advances_and_generates_next_week(
        self, test_session: AsyncSession, make_roadmap
    ) -> None:
        generator = FakeContentGenerator()
        roadmap = await make_roadmap(make_week([C, C, S, C, C]), make_week([], week_number=2))

        result = await calibration_service.check_and_advance_week(
            test_session, generator, roadmap, study_days_of_week=WEEKDAYS, today=FRIDAY
        )

        assert result.progressed is True
        assert result.new_week_number == 2
        assert result.message == "Congratulations! Moving to week 2"
        assert roadmap.active_week_number == 2
        assert generator.week_contexts[0].week_number == 2

        week = roadmap.load_weeks()[1]
        assert [d.day_number for d in week.daily_focuses] == [6, 7, 8, 9, 10]
        assert week.daily_focuses[0].scheduled_date == NEXT_MONDAY
        assert week.status == WeekStatus.IN_PROGRESS
        assert roadmap.load_weeks()[0].status == WeekStatus.COMPLETED
        assert_invariants(roadmap)

    @pytest.mark.asyncio
    async def test_open_critical_day_is_reported(
        self, test_session: AsyncSession, make_roadmap
    ) -> None:
        roadmap = await make_roadmap(
            make_week([C, C, C, C, U], critical={5}), make_week([], week_number=2)
        )

        result = await calibration_service.check_and_advance_week(
            test_session,
            FakeContentGenerator(),
            roadmap,
            study_days_of_week=WEEKDAYS,
            today=FRIDAY,
        )

        assert result.progressed is False
        assert "critical" in result.message
        assert calibration_service.is_blocked(roadmap.load_weeks()[0]) is True

    @pytest.mark.asyncio
    async def test_skipped_critical_day_does_not_block(
        self, test_session: AsyncSession, make_roadmap
    ) -> None:
        roadmap = await make_roadmap(
            make_week([C, C, C, C, S], critical={5}), make_week([], week_number=2)
        )

        result = await calibration_service.check_and_advance_week(
            test_session,
            FakeContentGenerator(),
            roadmap,
            study_days_of_week=WEEKDAYS,
            today=FRIDAY,
        )

        assert result.progressed is True

    @pytest.mark.asyncio
    async def test_final_week_completes_roadmap(
        self, test_session: AsyncSession, make_roadmap
    ) -> None:
        roadmap = await make_roadmap(make_week([C] * 5))

        result = await calibration_service.check_and_advance_week(
            test_session,
            FakeContentGenerator(),
            roadmap,
            study_days_of_week=WEEKDAYS,
            today=FRIDAY,
        )

        assert result.progressed is False
        assert roadmap.status == RoadmapStatus.COMPLETED.value
        assert roadmap.active_week_number == 1
        assert roadmap.overall_progress == 100

    @pytest.mark.asyncio
    async def test_generation_failure_keeps_week(
        self, test_session: AsyncSession, make_roadmap
    ) -> None:
        generator = FakeContentGenerator()
        generator.week_error = GenerationFailedError("down")
        roadmap = await make_roadmap(make_week([C] * 5), make_week([], week_number=2))

        with pytest.raises(GenerationFailedError):
            await calibration_service.check_and_advance_week(
                test_session, generator, roadmap, study_days_of_week=WEEKDAYS, today=FRIDAY
            )

        assert roadmap.active_week_number == 1


class TestCompleteDay:
    @pytest.mark.asyncio
    async def test_is_idempotent(self, test_session: AsyncSession, make_roadmap) -> None:
        generator = FakeContentGenerator()
        roadmap = await make_roadmap(make_week([U] * 5), make_week([], week_number=2))

        kwargs = dict(week_number=1, day_number=1, study_days_of_week=WEEKDAYS, today=MONDAY)
        first = await calibration_service.complete_day(test_session, generator, roadmap, **kwargs)
        second = await calibration_service.complete_day(test_session, generator, roadmap, **kwargs)

        assert first.newly_completed is True
        assert second.newly_completed is False
        assert roadmap.sessions_completed == 1
        assert first.advance is not None and first.advance.progressed is False
        assert_invariants(roadmap)

    @pytest.mark.asyncio
    async def test_skipped_day_stays_skipped(
        self, test_session: AsyncSession, make_roadmap
    ) -> None:
        roadmap = await make_roadmap(make_week([S, U, U, U, U]))

        result = await calibration_service.complete_day(
            test_session,
            FakeContentGenerator(),
            roadmap,
            week_number=1,
            day_number=1,
            study_days_of_week=WEEKDAYS,
            today=TUESDAY,
        )

        assert result.newly_completed is False
        assert roadmap.load_weeks()[0].find_day(1).status == DayStatus.SKIPPED
        assert roadmap.sessions_completed == 0

    @pytest.mark.asyncio
    async def test_last_day_advances_week(
        self, test_session: AsyncSession, make_roadmap
    ) -> None:
        roadmap = await make_roadmap(make_week([C, C, C, C, U]), make_week([], week_number=2))

        result = await calibration_service.complete_day(
            test_session,
            FakeContentGenerator(),
            roadmap,
            week_number=1,
            day_number=5,
            study_days_of_week=WEEKDAYS,
            today=FRIDAY,
        )

        assert result.newly_completed is True
        assert result.advance.progressed is True
        assert roadmap.active_week_number == 2

    @pytest.mark.asyncio
    async def test_session_from_another_date_completes_nothing(
        self, test_session: AsyncSession, make_roadmap
    ) -> None:
        roadmap = await make_roadmap(make_week([U] * 5), make_week([], week_number=2))

        result = await calibration_service.complete_day(
            test_session,
            FakeContentGenerator(),
            roadmap,
            week_number=1,
            day_number=2,
            study_days_of_week=WEEKDAYS,
            today=TUESDAY,
            scheduled_date=MONDAY,
        )

        assert result.newly_completed is False
        assert result.advance is None
        assert roadmap.load_weeks()[0].find_day(2).status == DayStatus.UPCOMING
        assert roadmap.sessions_completed == 0


def test_skipped_content_lists_skipped_days() -> None:
    week = make_week([C, S, U])

    content = calibration_service.skipped_content(week)

    assert [c.day_number for c in content] == [2]
    assert content[0].target_skills == ["skill-2"]


def test_planned_day_must_match_session_date() -> None:
    weeks = [make_week([U, U])]

    assert calibration_service.find_planned_day(weeks, 1, 2, TUESDAY).day_number == 2
    assert calibration_service.find_planned_day(weeks, 1, 2, MONDAY) is None
    assert calibration_service.find_planned_day(weeks, 1, 2) is not None
    assert calibration_service.find_planned_day(weeks, 2, 1, MONDAY) is None


def test_unscheduled_day_matches_any_date() -> None:
    weeks = [make_week([U], scheduled=False)]

    assert calibration_service.find_planned_day(weeks, 1, 1, FRIDAY) is not None
