"""Half-open calendar-day interval primitives.

Every booking occupies ``[check_in, check_out)``: the check-in day is occupied,
the check-out day is free again. All comparisons are made on calendar days;
timestamps are truncated to their date before comparing so that time-of-day
never leaks into overlap, containment or visibility decisions.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import Iterator, Union

from backend.domain.models import DateInterval


DayLike = Union[date, datetime, str]


def to_day(value: DayLike) -> date:
    """Normalize a date, datetime or ISO ``YYYY-MM-DD`` string to a day."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value[:10])
        except ValueError as exc:
            raise ValueError(f"date must follow YYYY-MM-DD format, got {value!r}") from exc
    raise TypeError(f"cannot interpret {type(value).__name__} as a calendar day")


def make_interval(start: DayLike, end: DayLike) -> DateInterval:
    return DateInterval(to_day(start), to_day(end))


def days_between(start: DayLike, end: DayLike) -> int:
    """Signed number of days from ``start`` to ``end``."""
    return (to_day(end) - to_day(start)).days


def nights(interval: DateInterval) -> int:
    return days_between(interval.start, interval.end)


def is_valid(interval: DateInterval) -> bool:
    return nights(interval) >= 1


def contains(interval: DateInterval, day: DayLike) -> bool:
    target = to_day(day)
    return to_day(interval.start) <= target < to_day(interval.end)


def overlaps(a: DateInterval, b: DateInterval) -> bool:
    """True iff the two half-open intervals share at least one day.

    Back-to-back intervals (``a.end == b.start``) do not overlap, which is what
    allows same-day turnover.
    """
    return to_day(a.start) < to_day(b.end) and to_day(b.start) < to_day(a.end)


def shift(interval: DateInterval, day_delta: int) -> DateInterval:
    delta = timedelta(days=day_delta)
    return DateInterval(to_day(interval.start) + delta, to_day(interval.end) + delta)


def iter_days(start: DayLike, end: DayLike) -> Iterator[date]:
    """Yield each day of ``[start, end)``; nothing when ``end <= start``."""
    current = to_day(start)
    stop = to_day(end)
    while current < stop:
        yield current
        current += timedelta(days=1)
