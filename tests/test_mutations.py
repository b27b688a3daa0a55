"""Tests for drag/resize resolution and the gesture session protocol."""

from __future__ import annotations

from datetime import date

import pytest

from backend.domain.models import (
    Booking,
    BookingStatus,
    RejectionReason,
    ResizeDirection,
    Room,
    VisibleWindow,
)
from backend.services.mutation_service import (
    UnknownBookingError,
    begin_gesture,
    resize_candidate,
    resolve_drag,
    resolve_resize,
)


def _booking(booking_id: str, check_in: str, check_out: str, room_id: str = "room-r", **kwargs) -> Booking:
    return Booking(
        booking_id=booking_id,
        room_id=room_id,
        check_in=date.fromisoformat(check_in),
        check_out=date.fromisoformat(check_out),
        **kwargs,
    )


G1 = _booking("g1", "2024-03-01", "2024-03-05")
G2 = _booking("g2", "2024-03-07", "2024-03-10")


def test_drag_into_free_days_is_accepted() -> None:
    result = resolve_drag(G1, 2, None, [G1])

    assert result.accepted
    assert (result.check_in, result.check_out) == (date(2024, 3, 3), date(2024, 3, 7))
    assert result.room_id == "room-r"
    assert result.reason is None


def test_drag_onto_neighbour_is_rejected_with_original_dates() -> None:
    result = resolve_drag(G1, 4, None, [G1, G2])

    assert not result.accepted
    assert result.reason is RejectionReason.CONFLICT
    assert result.conflicting_booking == G2
    assert (result.check_in, result.check_out) == (G1.check_in, G1.check_out)


def test_drag_to_back_to_back_position_is_accepted() -> None:
    result = resolve_drag(G1, 2, None, [G1, G2])

    assert result.accepted
    assert result.check_out == G2.check_in


def test_drag_ignores_cancelled_bookings() -> None:
    cancelled = _booking("g3", "2024-03-05", "2024-03-09", status=BookingStatus.CANCELLED)

    assert resolve_drag(G1, 4, None, [G1, cancelled]).accepted


def test_drag_to_another_room() -> None:
    other = _booking("o1", "2024-03-02", "2024-03-04", room_id="room-s")
    rooms = [Room(room_id="room-r", name="R"), Room(room_id="room-s", name="S"), Room(room_id="room-t", name="T")]

    blocked = resolve_drag(G1, 0, "room-s", [G1, other], rooms)
    assert not blocked.accepted
    assert blocked.room_id == "room-r"
    assert blocked.conflicting_booking == other

    moved = resolve_drag(G1, 0, "room-t", [G1, other], rooms)
    assert moved.accepted
    assert moved.room_id == "room-t"


def test_drop_on_unknown_room_keeps_source_room() -> None:
    rooms = [Room(room_id="room-r", name="R")]

    result = resolve_drag(G1, 1, "room-missing", [G1], rooms)

    assert result.accepted
    assert result.room_id == "room-r"


def test_resize_with_zero_delta_returns_same_interval() -> None:
    for direction in (ResizeDirection.START, ResizeDirection.END):
        result = resolve_resize(G1, direction, 0, [G1, G2])
        assert result.accepted
        assert (result.check_in, result.check_out) == (G1.check_in, G1.check_out)


def test_resize_start_past_checkout_is_a_noop_rejection() -> None:
    result = resolve_resize(G1, "start", 4, [G1])

    assert not result.accepted
    assert result.reason is RejectionReason.INVALID_RANGE
    assert (result.check_in, result.check_out) == (G1.check_in, G1.check_out)
    assert resize_candidate(G1, "start", 10) is None


def test_resize_end_before_checkin_is_rejected() -> None:
    result = resolve_resize(G1, ResizeDirection.END, -4, [G1])

    assert not result.accepted
    assert result.reason is RejectionReason.INVALID_RANGE


def test_resize_end_into_neighbour_conflicts() -> None:
    extended = resolve_resize(G1, ResizeDirection.END, 2, [G1, G2])
    assert extended.accepted
    assert extended.check_out == date(2024, 3, 7)

    blocked = resolve_resize(G1, ResizeDirection.END, 3, [G1, G2])
    assert not blocked.accepted
    assert blocked.conflicting_booking == G2


def test_resize_start_earlier_extends_stay() -> None:
    result = resolve_resize(G1, ResizeDirection.START, -2, [G1, G2])

    assert result.accepted
    assert result.check_in == date(2024, 2, 28)
    assert result.check_out == G1.check_out


def test_invalid_input_booking_is_rejected() -> None:
    broken = _booking("bad", "2024-03-05", "2024-03-05")

    assert resolve_drag(broken, 1, None, [broken]).reason is RejectionReason.INVALID_RANGE
    assert resolve_resize(broken, "end", 1, [broken]).reason is RejectionReason.INVALID_RANGE


def test_stay_rule_violations_become_warnings() -> None:
    rooms = [Room(room_id="room-r", name="Loft", min_stay_nights=3, max_stay_nights=5)]

    short = resolve_resize(G1, ResizeDirection.END, -2, [G1], rooms)
    assert short.accepted
    assert short.requires_override
    assert [warning.rule for warning in short.warnings] == ["min_stay"]
    assert short.warnings[0].limit == 3

    long = resolve_resize(G1, ResizeDirection.END, 3, [G1], rooms)
    assert [warning.rule for warning in long.warnings] == ["max_stay"]

    fine = resolve_resize(G1, ResizeDirection.END, 1, [G1], rooms)
    assert not fine.requires_override


def test_inputs_are_not_modified() -> None:
    bookings = [G1, G2]

    resolve_drag(G1, 4, None, bookings)
    resolve_resize(G1, "end", 5, bookings)

    assert bookings == [G1, G2]
    assert G1.check_in == date(2024, 3, 1)


def test_gesture_session_previews_without_validation_and_commits_once() -> None:
    window = VisibleWindow(start=date(2024, 3, 1), day_count=14, pixel_per_day=80.0)
    session = begin_gesture("g1", [G1, G2], window)

    preview = session.preview(4)
    assert preview.offset == 320.0
    assert preview.width == 320.0

    resize_preview = session.preview_resize("start", 10)
    assert resize_preview.offset == 0.0
    assert resize_preview.width == 320.0

    assert not session.commit(4).accepted
    assert session.commit(2).accepted
    assert session.commit_resize(ResizeDirection.END, 1).check_out == date(2024, 3, 6)


def test_begin_gesture_on_unknown_booking_raises() -> None:
    window = VisibleWindow(start=date(2024, 3, 1), day_count=14, pixel_per_day=80.0)

    with pytest.raises(UnknownBookingError):
        begin_gesture("missing", [G1], window)


def test_cancelled_booking_moves_over_live_bookings() -> None:
    cancelled = _booking("g0", "2024-03-01", "2024-03-03", status=BookingStatus.CANCELLED)
    live = _booking("g4", "2024-03-05", "2024-03-09")

    dragged = resolve_drag(cancelled, 4, None, [cancelled, live])
    assert dragged.accepted
    assert (dragged.check_in, dragged.check_out) == (date(2024, 3, 5), date(2024, 3, 7))

    resized = resolve_resize(cancelled, ResizeDirection.END, 4, [cancelled, live])
    assert resized.accepted
    assert resized.conflicting_booking is None


def test_unknown_resize_direction_is_rejected_as_invalid_range() -> None:
    result = resolve_resize(G1, "sideways", 1, [G1])

    assert not result.accepted
    assert result.reason is RejectionReason.INVALID_RANGE
    assert (result.check_in, result.check_out) == (G1.check_in, G1.check_out)

    window = VisibleWindow(start=date(2024, 3, 1), day_count=14, pixel_per_day=80.0)
    preview = begin_gesture("g1", [G1], window).preview_resize("sideways", 1)
    assert (preview.offset, preview.width) == (0.0, 320.0)
