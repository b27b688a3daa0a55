from __future__ import annotations

from dataclasses import replace
from datetime import date

import pytest

from backend.domain.models import Booking, BookingStatus, Room
from backend.repository.data_repository import BookingOverlapError, DataRepository
from backend.services.calendar_service import CalendarService
from backend.utils.config import get_settings


def _build_repository(tmp_path) -> DataRepository:
    get_settings.cache_clear()
    settings = replace(get_settings(), database_path=tmp_path / "repository.db", seed_demo_data=False)
    repository = DataRepository(settings)
    repository.initialize_database()
    repository.create_room(Room(room_id="room-a", name="Garden Suite"))
    repository.create_room(Room(room_id="room-b", name="Ocean View"))
    return repository


def _booking(booking_id: str, room_id: str, check_in: str, check_out: str) -> Booking:
    return Booking(
        booking_id=booking_id,
        room_id=room_id,
        check_in=date.fromisoformat(check_in),
        check_out=date.fromisoformat(check_out),
        guest_name="Ana Silva",
    )


def test_initialize_database_is_idempotent(tmp_path):
    repository = _build_repository(tmp_path)
    repository.initialize_database()

    assert [room.room_id for room in repository.list_rooms()] == ["room-a", "room-b"]


def test_create_room_rejects_invalid_rooms(tmp_path):
    repository = _build_repository(tmp_path)

    with pytest.raises(ValueError):
        repository.create_room(Room(room_id="room-c", name="Broken", total_units=0))


def test_list_bookings_filters_by_window_overlap(tmp_path):
    repository = _build_repository(tmp_path)
    repository.create_booking(_booking("b1", "room-a", "2024-03-01", "2024-03-05"))
    repository.create_booking(_booking("b2", "room-a", "2024-03-05", "2024-03-08"))
    repository.create_booking(_booking("b3", "room-b", "2024-02-01", "2024-02-03"))

    window = repository.list_bookings(start=date(2024, 3, 5), end=date(2024, 3, 6))
    assert [booking.booking_id for booking in window] == ["b2"]
    assert [booking.booking_id for booking in repository.list_bookings()] == ["b3", "b1", "b2"]


def test_create_booking_enforces_free_room_unless_forced(tmp_path):
    repository = _build_repository(tmp_path)
    repository.create_booking(_booking("b1", "room-a", "2024-03-01", "2024-03-05"))

    with pytest.raises(BookingOverlapError) as excinfo:
        repository.create_booking(_booking("b2", "room-a", "2024-03-04", "2024-03-06"))
    assert [conflict.booking_id for conflict in excinfo.value.conflicts] == ["b1"]
    assert repository.count_bookings() == 1

    generated = repository.create_booking(
        _booking("", "room-a", "2024-03-04", "2024-03-06"),
        enforce_free=False,
    )
    assert generated.booking_id
    assert repository.count_bookings() == 2


def test_update_booking_interval_revalidates_against_stored_state(tmp_path):
    repository = _build_repository(tmp_path)
    repository.create_booking(_booking("b1", "room-a", "2024-03-01", "2024-03-05"))
    repository.create_booking(_booking("b2", "room-b", "2024-03-01", "2024-03-05"))

    with pytest.raises(BookingOverlapError):
        repository.update_booking_interval("b1", date(2024, 3, 2), date(2024, 3, 4), "room-b")

    moved = repository.update_booking_interval("b1", date(2024, 3, 2), date(2024, 3, 6), "room-a")
    assert (moved.check_in, moved.check_out) == (date(2024, 3, 2), date(2024, 3, 6))

    with pytest.raises(RuntimeError):
        repository.update_booking_interval("missing", date(2024, 4, 1), date(2024, 4, 2), "room-a")


def test_cancelled_booking_frees_the_room(tmp_path):
    repository = _build_repository(tmp_path)
    repository.create_booking(_booking("b1", "room-a", "2024-03-01", "2024-03-05"))
    repository.update_booking_status("b1", BookingStatus.CANCELLED)

    assert repository.get_booking("b1").is_cancelled
    assert repository.list_bookings(include_cancelled=False) == []
    repository.create_booking(_booking("b2", "room-a", "2024-03-02", "2024-03-04"))
    assert repository.count_bookings() == 2


def test_deactivated_rooms_leave_workflow_views(tmp_path):
    repository = _build_repository(tmp_path)
    repository.create_booking(_booking("b1", "room-b", "2024-03-01", "2024-03-03"))
    repository.deactivate_room("room-b")

    assert [room.room_id for room in repository.list_rooms(active_only=True)] == ["room-a"]
    assert len(repository.list_rooms()) == 2

    service = CalendarService(repository=repository, settings=get_settings())
    view = service.timeline("2024-03-01", 7)
    assert [row.room.room_id for row in view.rows] == ["room-a"]
    assert view.occupancy_percentage == 0


def test_cancelled_booking_can_be_moved_onto_booked_days(tmp_path):
    repository = _build_repository(tmp_path)
    repository.create_booking(_booking("b1", "room-a", "2024-03-01", "2024-03-03"))
    repository.create_booking(_booking("b2", "room-a", "2024-03-05", "2024-03-09"))
    repository.update_booking_status("b1", BookingStatus.CANCELLED)

    moved = repository.update_booking_interval("b1", date(2024, 3, 5), date(2024, 3, 7), "room-a")
    assert moved.check_in == date(2024, 3, 5)
    assert moved.is_cancelled


def test_reinstating_a_cancelled_booking_rechecks_overlaps(tmp_path):
    repository = _build_repository(tmp_path)
    repository.create_booking(_booking("b1", "room-a", "2024-03-01", "2024-03-05"))
    cancelled = repository.update_booking_status("b1", BookingStatus.CANCELLED)
    assert cancelled.is_cancelled
    repository.create_booking(_booking("b2", "room-a", "2024-03-03", "2024-03-06"))

    with pytest.raises(BookingOverlapError) as excinfo:
        repository.update_booking_status("b1", BookingStatus.CONFIRMED)
    assert [conflict.booking_id for conflict in excinfo.value.conflicts] == ["b2"]
    assert repository.get_booking("b1").is_cancelled

    assert repository.update_booking_status("missing", BookingStatus.CONFIRMED) is None
