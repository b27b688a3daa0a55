"""Timeline geometry: visibility filtering and pixel coordinates for bookings.

The visible window is purely a rendering concern. Nothing here takes part in
conflict decisions, but visibility reuses the same ``overlaps`` primitive as the
conflict engine so that boundary days behave identically in both places.
"""

from __future__ import annotations

import calendar
import math
from datetime import date, timedelta
from typing import Iterable, Literal, Optional, Sequence

from backend.domain.intervals import DayLike, days_between, make_interval, nights, overlaps, to_day
from backend.domain.models import Booking, BookingPosition, TurnoverZone, VisibleWindow
from backend.utils.config import Settings, get_settings


class UnknownZoomLevelError(ValueError):
    """Raised when a named zoom level is not configured."""


def is_visible(booking: Booking, window_start: DayLike, day_count: int) -> bool:
    """Fast reject before coordinate mapping: does the booking touch the window at all?"""
    start = to_day(window_start)
    window = make_interval(start, start + timedelta(days=day_count))
    return overlaps(booking.interval, window)


def filter_visible(
    bookings: Iterable[Booking],
    window_start: DayLike,
    day_count: int,
) -> list[Booking]:
    return [booking for booking in bookings if is_visible(booking, window_start, day_count)]


def map_to_coordinates(
    booking: Booking,
    window_start: DayLike,
    day_count: int,
    pixel_per_day: float,
) -> BookingPosition:
    """Pixel offset and width of a booking, clipped to the visible window.

    Raw day indices are relative to ``window_start`` and may fall outside
    ``[0, day_count]``; offset and width only describe the visible part. A
    non-positive width means the booking lies entirely outside the window.
    """
    start_index = days_between(window_start, booking.check_in)
    end_index = days_between(window_start, booking.check_out)

    visible_start = min(max(start_index, 0), day_count)
    visible_end = min(max(end_index, 0), day_count)
    visible_days = max(0, visible_end - visible_start)

    return BookingPosition(
        offset=visible_start * pixel_per_day,
        width=visible_days * pixel_per_day,
        start_day_index=start_index,
        end_day_index=end_index,
        nights=nights(booking.interval),
        clipped_at_start=start_index < 0,
        clipped_at_end=end_index > day_count,
    )


def layout_room_row(
    room_id: str,
    bookings: Iterable[Booking],
    window: VisibleWindow,
) -> list[tuple[Booking, BookingPosition]]:
    """Visible bookings of one room with their positions, skipping zero-width blocks."""
    row: list[tuple[Booking, BookingPosition]] = []
    for booking in bookings:
        if booking.room_id != room_id:
            continue
        if not is_visible(booking, window.start, window.day_count):
            continue
        position = map_to_coordinates(booking, window.start, window.day_count, window.pixel_per_day)
        if position.is_renderable:
            row.append((booking, position))
    return row


def turnover_zone(
    booking: Booking,
    window_start: DayLike,
    day_count: int,
    pixel_per_day: float,
    turnover_hours: float,
) -> Optional[TurnoverZone]:
    """Cleaning band drawn from the start of the check-out day."""
    if booking.is_cancelled:
        return None
    checkout_index = days_between(window_start, booking.check_out)
    if checkout_index < 0 or checkout_index >= day_count:
        return None
    width = min(
        (turnover_hours / 24.0) * pixel_per_day,
        (day_count - checkout_index) * pixel_per_day,
    )
    return TurnoverZone(
        booking_id=booking.booking_id,
        offset=checkout_index * pixel_per_day,
        width=width,
    )


def pixels_to_day_delta(pixel_delta: float, pixel_per_day: float) -> int:
    """Snap a horizontal drag distance to whole days."""
    if pixel_per_day <= 0:
        raise ValueError("pixel_per_day must be > 0")
    return int(math.floor(pixel_delta / pixel_per_day + 0.5))


def timeline_days(start: DayLike, day_count: int) -> list[date]:
    first = to_day(start)
    return [first + timedelta(days=offset) for offset in range(max(0, day_count))]


def navigate_timeline(
    current_start: DayLike,
    direction: Literal["prev", "next"],
    step_days: Optional[int] = None,
) -> date:
    step = step_days if step_days is not None else get_settings().timeline_navigation_step_days
    start = to_day(current_start)
    if direction == "next":
        return start + timedelta(days=step)
    if direction == "prev":
        return start - timedelta(days=step)
    raise ValueError("direction must be 'prev' or 'next'")


def month_grid_days(year: int, month: int) -> list[date]:
    """Whole Sunday-first weeks covering the month, as shown in month view."""
    month_calendar = calendar.Calendar(firstweekday=calendar.SUNDAY)
    return list(month_calendar.itermonthdates(year, month))


def resolve_zoom(zoom: Optional[str], settings: Optional[Settings] = None) -> float:
    active = settings or get_settings()
    if zoom is None:
        return active.timeline_pixel_per_day
    try:
        return active.timeline_zoom_levels[zoom]
    except KeyError as exc:
        known = ", ".join(sorted(active.timeline_zoom_levels))
        raise UnknownZoomLevelError(f"unknown zoom level {zoom!r}; expected one of: {known}") from exc


def build_window(
    start: DayLike,
    day_count: Optional[int] = None,
    zoom: Optional[str] = None,
    settings: Optional[Settings] = None,
) -> VisibleWindow:
    active = settings or get_settings()
    return VisibleWindow(
        start=to_day(start),
        day_count=day_count if day_count is not None else active.timeline_default_days,
        pixel_per_day=resolve_zoom(zoom, active),
    )


def turnover_zones(
    bookings: Sequence[Booking],
    window: VisibleWindow,
    turnover_hours: float,
) -> list[TurnoverZone]:
    zones: list[TurnoverZone] = []
    for booking in bookings:
        zone = turnover_zone(
            booking,
            window.start,
            window.day_count,
            window.pixel_per_day,
            turnover_hours,
        )
        if zone is not None:
            zones.append(zone)
    return zones
