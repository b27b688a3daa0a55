"""Turns drag and resize gestures into accepted mutations or rejections.

Resolution is pure: inputs are never modified and every outcome, including
rejections, is returned as a ``MutationResult``. A rejected result always
carries the booking's original dates and room so the calendar can snap the
block back into place.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import timedelta
from typing import Optional, Sequence, Union

from backend.domain.constraints import evaluate_stay_rules
from backend.domain.intervals import is_valid, nights, shift
from backend.domain.models import (
    Booking,
    BookingPosition,
    DateInterval,
    MutationResult,
    RejectionReason,
    ResizeDirection,
    Room,
    VisibleWindow,
)
from backend.services.conflict_service import ConflictCandidate, detect_conflict
from backend.services.timeline_service import map_to_coordinates
from backend.utils.logger import get_logger


logger = get_logger(__name__)

DirectionLike = Union[ResizeDirection, str]


class UnknownBookingError(LookupError):
    """Raised when a gesture starts on a booking missing from the snapshot."""


def _reject(
    booking: Booking,
    reason: RejectionReason,
    conflicting_booking: Optional[Booking] = None,
) -> MutationResult:
    logger.debug(
        "Gesture rejected | booking_id=%s | reason=%s | conflicting_booking_id=%s",
        booking.booking_id,
        reason.value,
        conflicting_booking.booking_id if conflicting_booking else None,
    )
    return MutationResult(
        accepted=False,
        check_in=booking.check_in,
        check_out=booking.check_out,
        room_id=booking.room_id,
        reason=reason,
        conflicting_booking=conflicting_booking,
    )


def _find_room(room_id: str, rooms: Optional[Sequence[Room]]) -> Optional[Room]:
    if rooms is None:
        return None
    for room in rooms:
        if room.room_id == room_id:
            return room
    return None


def _resolve_target_room(
    booking: Booking,
    target_room_id: Optional[str],
    rooms: Optional[Sequence[Room]],
) -> str:
    if target_room_id is None or target_room_id == booking.room_id:
        return booking.room_id
    if rooms is not None and _find_room(target_room_id, rooms) is None:
        # Dropped outside any known room row: keep the source room.
        return booking.room_id
    return target_room_id


def _validate_candidate(
    booking: Booking,
    candidate: DateInterval,
    room_id: str,
    bookings: Sequence[Booking],
    rooms: Optional[Sequence[Room]],
) -> MutationResult:
    # Cancelled bookings occupy no days.
    conflict = None
    if not booking.is_cancelled:
        conflict = detect_conflict(
            ConflictCandidate(room_id=room_id, check_in=candidate.start, check_out=candidate.end),
            booking.booking_id,
            bookings,
        )
    if conflict is not None:
        return _reject(booking, RejectionReason.CONFLICT, conflict)

    warnings = evaluate_stay_rules(_find_room(room_id, rooms), nights(candidate))
    return MutationResult(
        accepted=True,
        check_in=candidate.start,
        check_out=candidate.end,
        room_id=room_id,
        warnings=warnings,
    )


def drag_candidate(
    booking: Booking,
    day_delta: int,
    target_room_id: Optional[str] = None,
    rooms: Optional[Sequence[Room]] = None,
) -> tuple[DateInterval, str]:
    """Candidate interval and room for a drag, without any validation."""
    return shift(booking.interval, day_delta), _resolve_target_room(booking, target_room_id, rooms)


def resize_candidate(
    booking: Booking,
    direction: DirectionLike,
    day_delta: int,
) -> Optional[DateInterval]:
    """Candidate interval for a resize, or ``None`` when the edge would cross the other.

    An unrecognised direction also yields ``None``.
    """
    try:
        edge = ResizeDirection(direction)
    except ValueError:
        return None
    delta = timedelta(days=day_delta)
    if edge is ResizeDirection.START:
        new_check_in = booking.check_in + delta
        if not new_check_in < booking.check_out:
            return None
        return DateInterval(new_check_in, booking.check_out)

    new_check_out = booking.check_out + delta
    if not new_check_out > booking.check_in:
        return None
    return DateInterval(booking.check_in, new_check_out)


def resolve_drag(
    booking: Booking,
    day_delta: int,
    target_room_id: Optional[str],
    bookings: Sequence[Booking],
    rooms: Optional[Sequence[Room]] = None,
) -> MutationResult:
    """Shift both dates by ``day_delta`` and/or move to ``target_room_id``."""
    if not is_valid(booking.interval):
        return _reject(booking, RejectionReason.INVALID_RANGE)
    candidate, room_id = drag_candidate(booking, day_delta, target_room_id, rooms)
    return _validate_candidate(booking, candidate, room_id, bookings, rooms)


def resolve_resize(
    booking: Booking,
    direction: DirectionLike,
    day_delta: int,
    bookings: Sequence[Booking],
    rooms: Optional[Sequence[Room]] = None,
) -> MutationResult:
    """Move one edge of the booking by ``day_delta`` days."""
    if not is_valid(booking.interval):
        return _reject(booking, RejectionReason.INVALID_RANGE)
    candidate = resize_candidate(booking, direction, day_delta)
    if candidate is None:
        return _reject(booking, RejectionReason.INVALID_RANGE)
    return _validate_candidate(booking, candidate, booking.room_id, bookings, rooms)


@dataclass(frozen=True)
class GestureSession:
    """One drag/resize interaction: cheap previews while moving, one validated commit."""

    booking: Booking
    bookings: tuple[Booking, ...]
    window: VisibleWindow
    rooms: Optional[tuple[Room, ...]] = None

    def _position(self, candidate: DateInterval, room_id: str) -> BookingPosition:
        moved = replace(
            self.booking,
            check_in=candidate.start,
            check_out=candidate.end,
            room_id=room_id,
        )
        return map_to_coordinates(
            moved,
            self.window.start,
            self.window.day_count,
            self.window.pixel_per_day,
        )

    def preview(self, day_delta: int, target_room_id: Optional[str] = None) -> BookingPosition:
        candidate, room_id = drag_candidate(self.booking, day_delta, target_room_id, self.rooms)
        return self._position(candidate, room_id)

    def preview_resize(self, direction: DirectionLike, day_delta: int) -> BookingPosition:
        candidate = resize_candidate(self.booking, direction, day_delta) or self.booking.interval
        return self._position(candidate, self.booking.room_id)

    def commit(self, day_delta: int, target_room_id: Optional[str] = None) -> MutationResult:
        return resolve_drag(self.booking, day_delta, target_room_id, self.bookings, self.rooms)

    def commit_resize(self, direction: DirectionLike, day_delta: int) -> MutationResult:
        return resolve_resize(self.booking, direction, day_delta, self.bookings, self.rooms)


def begin_gesture(
    booking_id: str,
    bookings: Sequence[Booking],
    window: VisibleWindow,
    rooms: Optional[Sequence[Room]] = None,
) -> GestureSession:
    for booking in bookings:
        if booking.booking_id == booking_id:
            return GestureSession(
                booking=booking,
                bookings=tuple(bookings),
                window=window,
                rooms=tuple(rooms) if rooms is not None else None,
            )
    raise UnknownBookingError(f"booking {booking_id!r} is not in the current snapshot")
