"""Clock abstraction.

Every wall-clock read in the engine goes through a ``Clock`` so that "today"
can be pinned in tests. Weekday indices follow the calendar convention used
by learner preferences: 0 = Sunday, 1 = Monday, ..., 6 = Saturday.
"""

from datetime import UTC, date, datetime, timedelta
from typing import Protocol
from zoneinfo import ZoneInfo


class Clock(Protocol):
    def now(self) -> datetime: ...

    def today(self) -> date: ...


class SystemClock:
    """Real clock, localized to the learner-facing timezone."""

    def __init__(self, timezone: str = "UTC") -> None:
        self._tz = ZoneInfo(timezone)

    def now(self) -> datetime:
        return datetime.now(self._tz)

    def today(self) -> date:
        return self.now().date()


class FixedClock:
    """Clock pinned to a given instant; ``advance`` moves it forward."""

    def __init__(self, current: datetime | date) -> None:
        if not isinstance(current, datetime):
            current = datetime(current.year, current.month, current.day, 9, 0, tzinfo=UTC)
        self._current = current

    def now(self) -> datetime:
        return self._current

    def today(self) -> date:
        return self._current.date()

    def set(self, current: datetime | date) -> None:
        if not isinstance(current, datetime):
            current = datetime(current.year, current.month, current.day, 9, 0, tzinfo=UTC)
        self._current = current

    def advance(self, days: int = 0, **kwargs: float) -> None:
        self._current = self._current + timedelta(days=days, **kwargs)


def day_of_week(value: date) -> int:
    """Calendar weekday with Sunday as 0."""
    return (value.weekday() + 1) % 7


def next_weekday_on_or_after(anchor: date, weekday: int) -> date:
    """First date >= ``anchor`` falling on ``weekday`` (0 = Sunday)."""
    delta = (weekday - day_of_week(anchor)) % 7
    return anchor + timedelta(days=delta)
