"""Domain-level validation rules for rooms, bookings and stay lengths."""

from __future__ import annotations

from typing import Optional

from backend.domain.intervals import nights
from backend.domain.models import Booking, DateInterval, Room, StayRuleWarning, VisibleWindow


def validate_booking_interval(interval: DateInterval) -> None:
    if nights(interval) < 1:
        raise ValueError("check_out must be after check_in")


def validate_booking(booking: Booking) -> None:
    if not booking.booking_id:
        raise ValueError("booking_id must be non-empty")
    if not booking.room_id:
        raise ValueError("room_id must be non-empty")
    validate_booking_interval(booking.interval)
    if booking.total_amount < 0:
        raise ValueError("total_amount cannot be negative")
    if not booking.currency:
        raise ValueError("currency is required")


def validate_room(room: Room) -> None:
    if not room.room_id:
        raise ValueError("room_id must be non-empty")
    if room.total_units < 1:
        raise ValueError("total_units must be >= 1")
    if room.min_stay_nights < 1:
        raise ValueError("min_stay_nights must be >= 1")
    if room.max_stay_nights is not None and room.max_stay_nights < room.min_stay_nights:
        raise ValueError("max_stay_nights must be >= min_stay_nights")


def validate_visible_window(window: VisibleWindow) -> None:
    if window.day_count < 0:
        raise ValueError("day_count must be >= 0")
    if window.pixel_per_day <= 0:
        raise ValueError("pixel_per_day must be > 0")


def validate_timeline_config(
    *,
    default_days: int,
    navigation_step_days: int,
    pixel_per_day: float,
    zoom_levels: dict[str, float],
    turnover_hours: float,
) -> None:
    if default_days <= 0:
        raise ValueError("timeline_default_days must be > 0")
    if navigation_step_days <= 0:
        raise ValueError("timeline_navigation_step_days must be > 0")
    if pixel_per_day <= 0:
        raise ValueError("timeline_pixel_per_day must be > 0")
    for name, scale in zoom_levels.items():
        if scale <= 0:
            raise ValueError(f"zoom level {name!r} must be > 0")
    if not 0 <= turnover_hours <= 24:
        raise ValueError("turnover_hours must be between 0 and 24")


def meets_min_stay(room: Room, night_count: int) -> bool:
    return night_count >= (room.min_stay_nights or 1)


def meets_max_stay(room: Room, night_count: int) -> bool:
    return room.max_stay_nights is None or night_count <= room.max_stay_nights


def evaluate_stay_rules(room: Optional[Room], night_count: int) -> tuple[StayRuleWarning, ...]:
    """Advisory stay-length check; an unknown room has no rules to apply."""
    if room is None:
        return ()

    warnings: list[StayRuleWarning] = []
    if not meets_min_stay(room, night_count):
        warnings.append(
            StayRuleWarning(
                rule="min_stay",
                nights=night_count,
                limit=room.min_stay_nights,
                message=f"{room.name} requires a minimum stay of {room.min_stay_nights} nights",
            )
        )
    if not meets_max_stay(room, night_count):
        warnings.append(
            StayRuleWarning(
                rule="max_stay",
                nights=night_count,
                limit=int(room.max_stay_nights),
                message=f"{room.name} allows a maximum stay of {room.max_stay_nights} nights",
            )
        )
    return tuple(warnings)
