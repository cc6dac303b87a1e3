"""Turn weekly availability windows into concrete bookable slots.

Everything here is pure: the same windows, duration and ``now`` always give
the same slots. Times are wall-clock values in the deployment's local zone
and a window never crosses midnight.
"""

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Iterable, Iterator

from medibook.core import config
from medibook.models.availability import WEEKDAY_LABELS

MINUTES_PER_DAY = 24 * 60


@dataclass(frozen=True, order=True)
class Slot:
    date: date
    time: time

    @property
    def instant(self) -> datetime:
        return slot_instant(self.date, self.time)

    def to_dict(self) -> dict[str, str]:
        return {'date': self.date.isoformat(), 'time': self.time.strftime('%H:%M')}


@dataclass(frozen=True)
class WeeklyWindow:
    day_of_week: str
    start_time: time
    end_time: time


def slot_instant(slot_date: date, slot_time: time) -> datetime:
    """Combine a calendar date and a wall-clock time into one comparable instant."""
    return datetime.combine(slot_date, slot_time.replace(second=0, microsecond=0, tzinfo=None))


def is_strictly_after(slot_date: date, slot_time: time, now: datetime) -> bool:
    return slot_instant(slot_date, slot_time) > now


def minutes_of_day(value: time) -> int:
    return value.hour * 60 + value.minute


def time_from_minutes(minutes: int) -> time:
    return time(minutes // 60, minutes % 60)


def weekday_label(day: date) -> str:
    return WEEKDAY_LABELS[day.weekday()]


def iterate_window_starts(
    start_time: time,
    end_time: time,
    duration_minutes: int,
    break_minutes: int = config.SLOT_BREAK_MINUTES,
) -> Iterator[time]:
    """Yield slot start times inside one window.

    Consecutive starts are ``duration_minutes + break_minutes`` apart and a
    start is only yielded when that whole step still ends by ``end_time``,
    so a window shorter than one step yields nothing.
    """
    if duration_minutes <= 0:
        raise ValueError('duration_minutes must be positive.')
    if break_minutes < 0:
        raise ValueError('break_minutes cannot be negative.')

    step = duration_minutes + break_minutes
    window_end = minutes_of_day(end_time)
    current = minutes_of_day(start_time)

    while current < window_end and current + step <= window_end:
        yield time_from_minutes(current)
        current += step


def generate_slots(
    windows: Iterable[WeeklyWindow],
    duration_minutes: int,
    now: datetime,
    horizon_days: int = config.SLOT_HORIZON_DAYS,
    break_minutes: int = config.SLOT_BREAK_MINUTES,
) -> list[Slot]:
    """Candidate slots for one practitioner over ``[today, today + horizon_days)``.

    Slots are returned in chronological order. Past slots are not removed
    here; that is the availability filter's job.
    """
    windows_by_day: dict[str, WeeklyWindow] = {}
    for window in windows:
        # One window per weekday; a later row for the same day wins.
        windows_by_day[window.day_of_week] = window

    today = now.date()
    slots: list[Slot] = []

    for offset in range(horizon_days):
        current_day = today + timedelta(days=offset)
        window = windows_by_day.get(weekday_label(current_day))
        if window is None:
            continue

        for start in iterate_window_starts(window.start_time, window.end_time, duration_minutes, break_minutes):
            slots.append(Slot(date=current_day, time=start))

    return slots


def local_now() -> datetime:
    """Current wall-clock instant in the deployment's local zone."""
    return datetime.now()
