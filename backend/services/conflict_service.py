"""Overlap detection between a candidate stay and existing bookings."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Iterator, Optional

from backend.domain.intervals import DayLike, make_interval, overlaps
from backend.domain.models import Booking, DateInterval


@dataclass(frozen=True)
class ConflictCandidate:
    room_id: str
    check_in: DayLike
    check_out: DayLike

    @property
    def interval(self) -> DateInterval:
        return make_interval(self.check_in, self.check_out)

    @classmethod
    def from_booking(cls, booking: Booking) -> ConflictCandidate:
        return cls(room_id=booking.room_id, check_in=booking.check_in, check_out=booking.check_out)


def _blocking_bookings(
    room_id: str,
    exclude_id: Optional[str],
    bookings: Iterable[Booking],
) -> Iterator[Booking]:
    for booking in bookings:
        if booking.room_id != room_id:
            continue
        if booking.is_cancelled:
            continue
        if exclude_id is not None and booking.booking_id == exclude_id:
            continue
        yield booking


def find_conflicts(
    candidate: ConflictCandidate,
    exclude_id: Optional[str],
    bookings: Iterable[Booking],
) -> list[Booking]:
    """Every non-cancelled booking on the candidate room that overlaps it, in list order."""
    interval = candidate.interval
    return [
        booking
        for booking in _blocking_bookings(candidate.room_id, exclude_id, bookings)
        if overlaps(interval, booking.interval)
    ]


def detect_conflict(
    candidate: ConflictCandidate,
    exclude_id: Optional[str],
    bookings: Iterable[Booking],
) -> Optional[Booking]:
    """Return the first conflicting booking, or ``None`` when the room is free.

    Snapshots that already contain overlapping bookings are tolerated; the first
    match in list order is returned.
    """
    interval = candidate.interval
    for booking in _blocking_bookings(candidate.room_id, exclude_id, bookings):
        if overlaps(interval, booking.interval):
            return booking
    return None
