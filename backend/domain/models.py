"""Domain models for rooms, bookings and calendar rendering."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, timedelta
from enum import Enum
from typing import Optional


class BookingStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CHECKED_IN = "checked_in"
    CHECKED_OUT = "checked_out"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


class ResizeDirection(str, Enum):
    START = "start"
    END = "end"


class RejectionReason(str, Enum):
    CONFLICT = "conflict"
    INVALID_RANGE = "invalid-range"


@dataclass(frozen=True)
class Room:
    room_id: str
    name: str
    total_units: int = 1
    is_active: bool = True
    min_stay_nights: int = 1
    max_stay_nights: Optional[int] = None


@dataclass(frozen=True)
class Booking:
    booking_id: str
    room_id: str
    check_in: date
    check_out: date
    status: BookingStatus = BookingStatus.PENDING
    guest_name: str = ""
    guest_email: Optional[str] = None
    guest_phone: Optional[str] = None
    total_amount: float = 0.0
    currency: str = "ZAR"

    @property
    def is_cancelled(self) -> bool:
        return self.status == BookingStatus.CANCELLED

    @property
    def interval(self) -> DateInterval:
        return DateInterval(self.check_in, self.check_out)


@dataclass(frozen=True)
class DateInterval:
    """Half-open ``[start, end)`` range of calendar days."""

    start: date
    end: date


@dataclass(frozen=True)
class VisibleWindow:
    start: date
    day_count: int
    pixel_per_day: float

    @property
    def end(self) -> date:
        return self.start + timedelta(days=self.day_count)

    @property
    def interval(self) -> DateInterval:
        return DateInterval(self.start, self.end)


@dataclass(frozen=True)
class BookingPosition:
    offset: float
    width: float
    start_day_index: int
    end_day_index: int
    nights: int
    clipped_at_start: bool
    clipped_at_end: bool

    @property
    def is_renderable(self) -> bool:
        return self.width > 0


@dataclass(frozen=True)
class TurnoverZone:
    booking_id: str
    offset: float
    width: float


@dataclass(frozen=True)
class RoomAvailability:
    room: Room
    is_available: bool
    conflicting_booking_count: int


@dataclass(frozen=True)
class UnitAvailability:
    available: bool
    available_units: int
    total_units: int
    nights: int
    meets_min_stay: bool
    meets_max_stay: bool


@dataclass(frozen=True)
class StayRuleWarning:
    rule: str
    nights: int
    limit: int
    message: str


@dataclass(frozen=True)
class MutationResult:
    """Outcome of one gesture; rejected results carry the original interval."""

    accepted: bool
    check_in: date
    check_out: date
    room_id: str
    reason: Optional[RejectionReason] = None
    conflicting_booking: Optional[Booking] = None
    warnings: tuple[StayRuleWarning, ...] = field(default_factory=tuple)

    @property
    def requires_override(self) -> bool:
        return self.accepted and bool(self.warnings)
