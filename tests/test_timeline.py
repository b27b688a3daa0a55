"""Tests for timeline visibility filtering and coordinate mapping."""

from __future__ import annotations

from dataclasses import replace
from datetime import date, timedelta

import pytest

from backend.domain.models import Booking, BookingStatus, VisibleWindow
from backend.services.timeline_service import (
    UnknownZoomLevelError,
    build_window,
    filter_visible,
    is_visible,
    layout_room_row,
    map_to_coordinates,
    month_grid_days,
    navigate_timeline,
    pixels_to_day_delta,
    resolve_zoom,
    timeline_days,
    turnover_zone,
    turnover_zones,
)
from backend.utils.config import get_settings


def _booking(booking_id: str, check_in: str, check_out: str, room_id: str = "room-a", **kwargs) -> Booking:
    return Booking(
        booking_id=booking_id,
        room_id=room_id,
        check_in=date.fromisoformat(check_in),
        check_out=date.fromisoformat(check_out),
        **kwargs,
    )


def test_checkout_on_window_start_is_not_visible() -> None:
    booking = _booking("b1", "2024-01-01", "2024-01-03")

    assert not is_visible(booking, "2024-01-03", 5)
    assert is_visible(booking, "2024-01-02", 5)


def test_checkin_on_window_end_is_not_visible() -> None:
    booking = _booking("b1", "2024-01-08", "2024-01-10")

    assert not is_visible(booking, "2024-01-03", 5)
    assert is_visible(booking, "2024-01-03", 6)


def test_filter_visible_keeps_order() -> None:
    bookings = [
        _booking("b1", "2024-01-05", "2024-01-07"),
        _booking("b2", "2023-12-20", "2023-12-22"),
        _booking("b3", "2024-01-01", "2024-01-04"),
    ]

    visible = filter_visible(bookings, "2024-01-03", 7)
    assert [booking.booking_id for booking in visible] == ["b1", "b3"]


def test_map_to_coordinates_inside_window() -> None:
    position = map_to_coordinates(_booking("b1", "2024-03-03", "2024-03-06"), "2024-03-01", 14, 80.0)

    assert position.offset == 160.0
    assert position.width == 240.0
    assert position.offset / 80.0 == position.start_day_index
    assert (position.offset + position.width) / 80.0 == position.end_day_index
    assert position.start_day_index == 2
    assert position.end_day_index == 5
    assert position.nights == 3
    assert not position.clipped_at_start
    assert not position.clipped_at_end


def test_map_to_coordinates_clips_to_window_edges() -> None:
    position = map_to_coordinates(_booking("b1", "2024-02-27", "2024-03-20"), "2024-03-01", 14, 80.0)

    assert position.offset == 0.0
    assert position.width == 14 * 80.0
    assert position.start_day_index == -3
    assert position.clipped_at_start
    assert position.clipped_at_end
    assert position.nights == 22


def test_map_to_coordinates_outside_window_has_no_width() -> None:
    position = map_to_coordinates(_booking("b1", "2024-02-01", "2024-02-05"), "2024-03-01", 14, 80.0)

    assert position.width == 0
    assert not position.is_renderable


def test_layout_room_row_skips_other_rooms_and_hidden_bookings() -> None:
    window = VisibleWindow(start=date(2024, 3, 1), day_count=7, pixel_per_day=40.0)
    bookings = [
        _booking("b1", "2024-03-02", "2024-03-04"),
        _booking("b2", "2024-03-02", "2024-03-04", room_id="room-b"),
        _booking("b3", "2024-02-20", "2024-03-01"),
    ]

    row = layout_room_row("room-a", bookings, window)

    assert [(booking.booking_id, position.offset, position.width) for booking, position in row] == [
        ("b1", 40.0, 80.0),
    ]


def test_turnover_zone_starts_on_checkout_day() -> None:
    zone = turnover_zone(_booking("b1", "2024-03-01", "2024-03-04"), "2024-03-01", 14, 80.0, 4.0)

    assert zone is not None
    assert zone.offset == 240.0
    assert zone.width == pytest.approx(80.0 * 4 / 24)


def test_turnover_zone_hidden_outside_window_and_for_cancelled() -> None:
    booking = _booking("b1", "2024-03-01", "2024-03-15")

    assert turnover_zone(booking, "2024-03-01", 14, 80.0, 4.0) is None
    cancelled = replace(booking, check_out=date(2024, 3, 4), status=BookingStatus.CANCELLED)
    assert turnover_zone(cancelled, "2024-03-01", 14, 80.0, 4.0) is None

    window = VisibleWindow(start=date(2024, 3, 1), day_count=14, pixel_per_day=80.0)
    assert [zone.booking_id for zone in turnover_zones([booking, cancelled], window, 4.0)] == []


def test_pixels_to_day_delta_snaps_to_nearest_day() -> None:
    assert pixels_to_day_delta(0, 80.0) == 0
    assert pixels_to_day_delta(39, 80.0) == 0
    assert pixels_to_day_delta(40, 80.0) == 1
    assert pixels_to_day_delta(170, 80.0) == 2
    assert pixels_to_day_delta(-41, 80.0) == -1
    assert pixels_to_day_delta(-200, 80.0) == -2

    with pytest.raises(ValueError):
        pixels_to_day_delta(100, 0)


def test_timeline_navigation_and_days() -> None:
    assert navigate_timeline("2024-03-01", "next", 7) == date(2024, 3, 8)
    assert navigate_timeline("2024-03-01", "prev", 7) == date(2024, 2, 23)
    step = get_settings().timeline_navigation_step_days
    assert navigate_timeline("2024-03-01", "next") == date(2024, 3, 1) + timedelta(days=step)
    with pytest.raises(ValueError):
        navigate_timeline("2024-03-01", "sideways")  # type: ignore[arg-type]

    days = timeline_days("2024-02-28", 3)
    assert days == [date(2024, 2, 28), date(2024, 2, 29), date(2024, 3, 1)]


def test_month_grid_starts_on_sunday() -> None:
    days = month_grid_days(2024, 3)

    assert days[0] == date(2024, 2, 25)
    assert days[0].weekday() == 6
    assert len(days) % 7 == 0
    assert date(2024, 3, 31) in days


def test_zoom_levels_resolve_from_settings() -> None:
    settings = replace(get_settings(), timeline_pixel_per_day=80.0, timeline_zoom_levels={"compact": 40.0})

    assert resolve_zoom(None, settings) == 80.0
    assert resolve_zoom("compact", settings) == 40.0
    with pytest.raises(UnknownZoomLevelError):
        resolve_zoom("huge", settings)

    window = build_window("2024-03-01", None, "compact", replace(settings, timeline_default_days=14))
    assert window.day_count == 14
    assert window.pixel_per_day == 40.0
    assert window.end == date(2024, 3, 15)
