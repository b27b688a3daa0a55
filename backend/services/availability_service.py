"""Room availability, unit capacity and occupancy aggregation."""

from __future__ import annotations

from collections import defaultdict
from datetime import date, timedelta
from typing import Iterable, Optional, Sequence

import numpy as np
import pandas as pd

from backend.domain.constraints import meets_max_stay, meets_min_stay
from backend.domain.intervals import DayLike, contains, days_between, make_interval, nights, to_day
from backend.domain.models import Booking, Room, RoomAvailability, UnitAvailability
from backend.services.conflict_service import ConflictCandidate, find_conflicts
from backend.utils.logger import get_logger


logger = get_logger(__name__)

DAILY_OCCUPANCY_COLUMNS = ["date", "occupied_rooms", "total_rooms", "occupancy_percentage"]


def _round_percentage(part: int, whole: int) -> int:
    """Nearest integer percentage with halves rounded up."""
    if whole <= 0:
        return 0
    return (200 * part + whole) // (2 * whole)


def _clamped_index_range(booking: Booking, start: date, day_count: int) -> tuple[int, int]:
    first = max(0, days_between(start, booking.check_in))
    last = min(day_count, days_between(start, booking.check_out))
    return first, last


def compute_availability(
    rooms: Sequence[Room],
    bookings: Sequence[Booking],
    start: DayLike,
    end: DayLike,
) -> list[RoomAvailability]:
    """Per room: free for the whole of ``[start, end)`` or not, with conflict counts."""
    if days_between(start, end) < 1:
        # An empty or reversed range has no days to collide on.
        return [
            RoomAvailability(room=room, is_available=True, conflicting_booking_count=0)
            for room in rooms
        ]

    results: list[RoomAvailability] = []
    for room in rooms:
        conflicts = find_conflicts(
            ConflictCandidate(room_id=room.room_id, check_in=start, check_out=end),
            None,
            bookings,
        )
        results.append(
            RoomAvailability(
                room=room,
                is_available=not conflicts,
                conflicting_booking_count=len(conflicts),
            )
        )
    return results


def occupancy_matrix(
    bookings: Iterable[Booking],
    rooms: Sequence[Room],
    start: DayLike,
    end: DayLike,
) -> np.ndarray:
    """Boolean ``rooms x days`` grid marking occupied room-days in ``[start, end)``."""
    window_start = to_day(start)
    day_count = max(0, days_between(window_start, end))
    matrix = np.zeros((len(rooms), day_count), dtype=bool)
    if day_count == 0 or not rooms:
        return matrix

    rows_by_room: dict[str, list[int]] = defaultdict(list)
    for row, room in enumerate(rooms):
        rows_by_room[room.room_id].append(row)

    for booking in bookings:
        if booking.is_cancelled:
            continue
        rows = rows_by_room.get(booking.room_id)
        if not rows:
            continue
        first, last = _clamped_index_range(booking, window_start, day_count)
        if first >= last:
            continue
        for row in rows:
            matrix[row, first:last] = True
    return matrix


def compute_occupancy(
    bookings: Sequence[Booking],
    rooms: Sequence[Room],
    start: DayLike,
    end: DayLike,
) -> int:
    """Occupied room-days as a 0-100 share of all room-days in ``[start, end)``."""
    matrix = occupancy_matrix(bookings, rooms, start, end)
    total_room_days = int(matrix.size)
    if total_room_days == 0:
        return 0
    return _round_percentage(int(matrix.sum()), total_room_days)


def daily_occupancy(
    bookings: Sequence[Booking],
    rooms: Sequence[Room],
    start: DayLike,
    end: DayLike,
) -> pd.DataFrame:
    matrix = occupancy_matrix(bookings, rooms, start, end)
    day_count = matrix.shape[1]
    if day_count == 0:
        return pd.DataFrame(columns=DAILY_OCCUPANCY_COLUMNS)

    window_start = to_day(start)
    total_rooms = len(rooms)
    occupied = matrix.sum(axis=0).astype(int)
    frame = pd.DataFrame(
        {
            "date": [window_start + timedelta(days=offset) for offset in range(day_count)],
            "occupied_rooms": occupied,
            "total_rooms": total_rooms,
        }
    )
    frame["occupancy_percentage"] = [
        _round_percentage(int(count), total_rooms) for count in occupied
    ]
    return frame[DAILY_OCCUPANCY_COLUMNS]


def check_unit_availability(
    room: Room,
    bookings: Sequence[Booking],
    check_in: DayLike,
    check_out: DayLike,
) -> UnitAvailability:
    """Capacity view for room types with several interchangeable units."""
    overlapping = find_conflicts(
        ConflictCandidate(room_id=room.room_id, check_in=check_in, check_out=check_out),
        None,
        bookings,
    )
    total_units = max(1, room.total_units)
    available_units = max(0, total_units - len(overlapping))
    night_count = nights(make_interval(check_in, check_out))
    min_ok = meets_min_stay(room, night_count)
    max_ok = meets_max_stay(room, night_count)
    logger.debug(
        "Unit availability | room_id=%s | booked=%s | total_units=%s | nights=%s",
        room.room_id,
        len(overlapping),
        total_units,
        night_count,
    )
    return UnitAvailability(
        available=available_units > 0 and min_ok and max_ok,
        available_units=available_units,
        total_units=total_units,
        nights=night_count,
        meets_min_stay=min_ok,
        meets_max_stay=max_ok,
    )


def fully_booked_dates(
    room: Room,
    bookings: Iterable[Booking],
    start: DayLike,
    end: DayLike,
) -> list[date]:
    """Days in ``[start, end)`` on which every unit of the room is taken."""
    window_start = to_day(start)
    day_count = max(0, days_between(window_start, end))
    counts = np.zeros(day_count, dtype=int)
    if day_count == 0:
        return []

    for booking in bookings:
        if booking.room_id != room.room_id or booking.is_cancelled:
            continue
        first, last = _clamped_index_range(booking, window_start, day_count)
        if first < last:
            counts[first:last] += 1

    total_units = max(1, room.total_units)
    return [
        window_start + timedelta(days=int(offset))
        for offset in np.flatnonzero(counts >= total_units)
    ]


def group_bookings_by_room(
    bookings: Iterable[Booking],
    rooms: Sequence[Room],
) -> dict[str, list[Booking]]:
    """Bookings keyed by room id; every supplied room gets an entry, even when empty."""
    grouped: dict[str, list[Booking]] = {room.room_id: [] for room in rooms}
    for booking in bookings:
        grouped.setdefault(booking.room_id, []).append(booking)
    return grouped


def bookings_on_day(
    bookings: Iterable[Booking],
    day: DayLike,
    room_id: Optional[str] = None,
) -> list[Booking]:
    return [
        booking
        for booking in bookings
        if (room_id is None or booking.room_id == room_id) and contains(booking.interval, day)
    ]
