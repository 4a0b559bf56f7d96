"""Generation window checks."""

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, UTC
from typing import Any

from autopress.config import Settings

WEEKDAY_NAMES = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")


def as_utc(moment: datetime) -> datetime:
    """Treat naive datetimes (SQLite hands these back) as UTC."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=UTC)
    return moment.astimezone(UTC)


def day_bounds(day: date) -> tuple[datetime, datetime]:
    """[start, end) of a calendar day in UTC."""
    start = datetime.combine(day, time.min, tzinfo=UTC)
    return start, start + timedelta(days=1)


@dataclass(frozen=True)
class TimingGate:
    """
    Pure check of wall-clock time against the configured window.

    The hour range is [start_hour, end_hour) in UTC and may wrap past
    midnight. `weekdays` uses datetime.weekday() numbering; an empty set
    allows every day. `min_interval` rejects runs too soon after the last
    successful one.
    """

    start_hour: int = 6
    end_hour: int = 12
    weekdays: frozenset[int] = frozenset({1, 2, 3})
    min_interval: timedelta = timedelta(minutes=60)

    @classmethod
    def from_settings(cls, settings: Settings) -> "TimingGate":
        return cls(
            start_hour=settings.generation_window_start_hour,
            end_hour=settings.generation_window_end_hour,
            weekdays=frozenset(settings.window_days),
            min_interval=settings.min_run_interval,
        )

    def in_hours(self, now: datetime) -> bool:
        hour = as_utc(now).hour
        if self.start_hour == self.end_hour:
            return True
        if self.start_hour < self.end_hour:
            return self.start_hour <= hour < self.end_hour
        return hour >= self.start_hour or hour < self.end_hour

    def on_allowed_day(self, now: datetime) -> bool:
        return not self.weekdays or as_utc(now).weekday() in self.weekdays

    def too_soon(self, now: datetime, last_success_at: datetime | None) -> bool:
        if last_success_at is None:
            return False
        return as_utc(now) - as_utc(last_success_at) < self.min_interval

    def is_within_window(self, now: datetime, last_success_at: datetime | None = None) -> bool:
        return (
            self.in_hours(now)
            and self.on_allowed_day(now)
            and not self.too_soon(now, last_success_at)
        )

    def describe(self, now: datetime) -> dict[str, Any]:
        return {
            "start_hour": self.start_hour,
            "end_hour": self.end_hour,
            "days": [WEEKDAY_NAMES[day] for day in sorted(self.weekdays)],
            "current_hour": as_utc(now).hour,
            "current_day": WEEKDAY_NAMES[as_utc(now).weekday()],
            "within_window": self.in_hours(now) and self.on_allowed_day(now),
        }
