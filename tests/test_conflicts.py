from __future__ import annotations

from datetime import date

from backend.domain.models import Booking, BookingStatus
from backend.services.conflict_service import ConflictCandidate, detect_conflict, find_conflicts


def _booking(booking_id: str, room_id: str, check_in: str, check_out: str, **kwargs) -> Booking:
    return Booking(
        booking_id=booking_id,
        room_id=room_id,
        check_in=date.fromisoformat(check_in),
        check_out=date.fromisoformat(check_out),
        **kwargs,
    )


def test_detect_conflict_returns_none_for_free_room() -> None:
    bookings = [_booking("b1", "room-a", "2024-03-01", "2024-03-05")]
    candidate = ConflictCandidate(room_id="room-a", check_in="2024-03-05", check_out="2024-03-07")

    assert detect_conflict(candidate, None, bookings) is None


def test_detect_conflict_ignores_other_rooms_and_cancelled_bookings() -> None:
    bookings = [
        _booking("b1", "room-b", "2024-03-01", "2024-03-05"),
        _booking("b2", "room-a", "2024-03-02", "2024-03-04", status=BookingStatus.CANCELLED),
    ]
    candidate = ConflictCandidate(room_id="room-a", check_in="2024-03-01", check_out="2024-03-05")

    assert detect_conflict(candidate, None, bookings) is None


def test_excluded_booking_never_conflicts_with_itself() -> None:
    own = _booking("b1", "room-a", "2024-03-01", "2024-03-05")
    candidate = ConflictCandidate.from_booking(own)

    assert detect_conflict(candidate, "b1", [own]) is None
    assert detect_conflict(candidate, None, [own]) == own


def test_first_conflict_in_list_order_is_returned() -> None:
    bookings = [
        _booking("b1", "room-a", "2024-03-08", "2024-03-10"),
        _booking("b2", "room-a", "2024-03-02", "2024-03-04"),
        _booking("b3", "room-a", "2024-03-03", "2024-03-09"),
    ]
    candidate = ConflictCandidate(room_id="room-a", check_in="2024-03-01", check_out="2024-03-09")

    assert detect_conflict(candidate, None, bookings).booking_id == "b1"
    assert [b.booking_id for b in find_conflicts(candidate, None, bookings)] == ["b1", "b2", "b3"]


def test_find_conflicts_tolerates_preexisting_overlaps() -> None:
    bookings = [
        _booking("b1", "room-a", "2024-03-01", "2024-03-05"),
        _booking("b2", "room-a", "2024-03-02", "2024-03-06"),
    ]
    candidate = ConflictCandidate(room_id="room-a", check_in="2024-03-05", check_out="2024-03-06")

    assert [b.booking_id for b in find_conflicts(candidate, None, bookings)] == ["b2"]
