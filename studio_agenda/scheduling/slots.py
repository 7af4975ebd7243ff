"""Slot generation and interval overlap on naive wall-clock times.

Everything here is pure: no database, no clock. Times are compared as
minutes since midnight, dates are the caller's concern.
"""

from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from datetime import date, datetime, time

MINUTES_PER_DAY = 24 * 60


@dataclass(frozen=True, order=True)
class TimeInterval:
    """Half-open interval ``[start, end)`` within a single day."""

    start: time
    end: time

    @property
    def duration_minutes(self) -> int:
        return to_minutes(self.end) - to_minutes(self.start)


@dataclass(frozen=True)
class Slot:
    service_type_id: int
    date: date
    start_time: time
    end_time: time

    @property
    def interval(self) -> TimeInterval:
        return TimeInterval(self.start_time, self.end_time)


def to_minutes(value: time) -> int:
    return value.hour * 60 + value.minute


def from_minutes(total: int) -> time:
    if total < 0 or total >= MINUTES_PER_DAY:
        raise ValueError(f"{total} minutes does not fall within a single day.")
    return time(total // 60, total % 60)


def add_minutes(value: time, minutes: int) -> time:
    """Shift a time of day; raises ValueError when the result leaves the day."""
    return from_minutes(to_minutes(value) + minutes)


def parse_time(raw: str | time) -> time:
    """Accept ``HH:MM`` or ``HH:MM:SS``. Seconds are dropped."""
    if isinstance(raw, time):
        return raw.replace(second=0, microsecond=0)

    normalized = raw.strip()
    for fmt in ("%H:%M", "%H:%M:%S"):
        try:
            return datetime.strptime(normalized, fmt).time()
        except ValueError:
            continue
    raise ValueError(f"Invalid time {raw!r}; expected HH:MM[:SS].")


def format_time(value: time) -> str:
    return value.strftime("%H:%M")


def day_of_week(value: date) -> int:
    """Sunday = 0 ... Saturday = 6."""
    return (value.weekday() + 1) % 7


def generate_slots(open_time: time, close_time: time, duration_minutes: int) -> list[TimeInterval]:
    """Contiguous slots of ``duration_minutes`` from open until close.

    A trailing slot that would run past close is dropped, never clipped.
    """
    return list(iter_slots(open_time, close_time, duration_minutes))


def iter_slots(open_time: time, close_time: time, duration_minutes: int) -> Iterator[TimeInterval]:
    start = to_minutes(open_time)
    close = to_minutes(close_time)
    if duration_minutes <= 0 or start >= close:
        return

    while start + duration_minutes <= close:
        end = start + duration_minutes
        yield TimeInterval(from_minutes(start), from_minutes(end))
        start = end


def overlaps(a: TimeInterval, b: TimeInterval) -> bool:
    return to_minutes(a.start) < to_minutes(b.end) and to_minutes(b.start) < to_minutes(a.end)


def overlaps_any(candidate: TimeInterval, intervals: Iterable[TimeInterval]) -> bool:
    return any(overlaps(candidate, other) for other in intervals)


def filter_available(
    slots: Iterable[TimeInterval],
    booked: Iterable[TimeInterval],
    blocked: Iterable[TimeInterval],
) -> list[TimeInterval]:
    """Drop every slot that touches a booked or blocked interval."""
    taken = [*booked, *blocked]
    return [slot for slot in slots if not overlaps_any(slot, taken)]
