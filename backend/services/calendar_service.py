"""Calendar workflow: snapshot loading, engine calls and persistence of accepted mutations."""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date
from threading import RLock
from typing import Any, Optional
from uuid import uuid4

from backend.domain.constraints import validate_booking, validate_timeline_config
from backend.domain.intervals import DayLike, days_between, to_day
from backend.domain.models import (
    Booking,
    BookingPosition,
    BookingStatus,
    MutationResult,
    RejectionReason,
    ResizeDirection,
    Room,
    RoomAvailability,
    TurnoverZone,
    UnitAvailability,
    VisibleWindow,
)
from backend.repository.data_repository import BookingOverlapError, DataRepository
from backend.services.availability_service import (
    check_unit_availability,
    compute_availability,
    compute_occupancy,
    daily_occupancy,
    fully_booked_dates,
)
from backend.services.conflict_service import ConflictCandidate, find_conflicts
from backend.services.mutation_service import begin_gesture, resolve_drag, resolve_resize
from backend.services.timeline_service import build_window, layout_room_row, turnover_zones
from backend.utils.config import Settings, get_settings
from backend.utils.logger import get_logger


logger = get_logger(__name__)


class CalendarError(Exception):
    """Base exception for calendar workflow failures."""


class CalendarValidationError(CalendarError):
    """Raised when workflow inputs are malformed."""


class BookingNotFoundError(CalendarError):
    """Raised when a booking id does not exist in persisted state."""


class RoomNotFoundError(CalendarError):
    """Raised when a room id does not exist in persisted state."""


class BookingConflictError(CalendarError):
    """Raised when a new booking overlaps existing ones and creation is not forced."""

    def __init__(self, conflicts: list[Booking]) -> None:
        self.conflicts = conflicts
        super().__init__(
            f"This room has {len(conflicts)} overlapping booking(s). "
            "Set force_create=true to create anyway."
        )


@dataclass(frozen=True)
class MutationOutcome:
    result: MutationResult
    persisted: bool
    booking: Booking


@dataclass(frozen=True)
class TimelineRow:
    room: Room
    placements: list[tuple[Booking, BookingPosition]]
    turnover_zones: list[TurnoverZone]


@dataclass(frozen=True)
class TimelineView:
    window: VisibleWindow
    rows: list[TimelineRow]
    occupancy_percentage: int


class CalendarService:
    """Loads the latest snapshot for every call; holds no booking state of its own."""

    def __init__(
        self,
        repository: Optional[DataRepository] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._repository = repository or DataRepository(self._settings)
        self._write_lock = RLock()
        validate_timeline_config(
            default_days=self._settings.timeline_default_days,
            navigation_step_days=self._settings.timeline_navigation_step_days,
            pixel_per_day=self._settings.timeline_pixel_per_day,
            zoom_levels=self._settings.timeline_zoom_levels,
            turnover_hours=self._settings.turnover_hours,
        )

    @staticmethod
    def _validate_range(start: DayLike, end: DayLike) -> tuple[date, date]:
        try:
            start_day, end_day = to_day(start), to_day(end)
        except (TypeError, ValueError) as exc:
            raise CalendarValidationError(str(exc)) from exc
        if days_between(start_day, end_day) < 1:
            raise CalendarValidationError("end must be after start")
        return start_day, end_day

    def _require_room(self, room_id: str) -> Room:
        room = self._repository.get_room(room_id)
        if room is None:
            raise RoomNotFoundError(f"Room {room_id} not found")
        return room

    def _require_booking(self, booking_id: str) -> Booking:
        booking = self._repository.get_booking(booking_id)
        if booking is None:
            raise BookingNotFoundError(f"Booking {booking_id} not found")
        return booking

    def list_rooms(self) -> list[Room]:
        return self._repository.list_rooms()

    def room_availability(self, start: DayLike, end: DayLike) -> list[RoomAvailability]:
        start_day, end_day = self._validate_range(start, end)
        rooms = self._repository.list_rooms(active_only=True)
        bookings = self._repository.list_bookings(start=start_day, end=end_day)
        return compute_availability(rooms, bookings, start_day, end_day)

    def unit_availability(self, room_id: str, check_in: DayLike, check_out: DayLike) -> UnitAvailability:
        start_day, end_day = self._validate_range(check_in, check_out)
        room = self._require_room(room_id)
        bookings = self._repository.list_bookings(start=start_day, end=end_day)
        return check_unit_availability(room, bookings, start_day, end_day)

    def booked_dates(self, room_id: str, start: DayLike, end: DayLike) -> tuple[Room, list[date]]:
        start_day, end_day = self._validate_range(start, end)
        room = self._require_room(room_id)
        bookings = self._repository.list_bookings(start=start_day, end=end_day)
        return room, fully_booked_dates(room, bookings, start_day, end_day)

    def occupancy(self, start: DayLike, end: DayLike) -> dict[str, Any]:
        start_day, end_day = self._validate_range(start, end)
        rooms = self._repository.list_rooms(active_only=True)
        bookings = self._repository.list_bookings(start=start_day, end=end_day)
        frame = daily_occupancy(bookings, rooms, start_day, end_day)
        return {
            "start": start_day,
            "end": end_day,
            "occupancy_percentage": compute_occupancy(bookings, rooms, start_day, end_day),
            "daily": [
                {
                    "date": row.date,
                    "occupied_rooms": int(row.occupied_rooms),
                    "total_rooms": int(row.total_rooms),
                    "occupancy_percentage": int(row.occupancy_percentage),
                }
                for row in frame.itertuples(index=False)
            ],
        }

    def timeline(
        self,
        start: DayLike,
        day_count: Optional[int] = None,
        zoom: Optional[str] = None,
        statuses: Optional[list[BookingStatus]] = None,
    ) -> TimelineView:
        window = build_window(start, day_count, zoom, self._settings)
        if window.day_count < 1:
            raise CalendarValidationError("days must be >= 1")
        rooms = self._repository.list_rooms(active_only=True)
        bookings = self._repository.list_bookings(start=window.start, end=window.end)
        if statuses:
            wanted = set(statuses)
            bookings = [booking for booking in bookings if booking.status in wanted]

        rows = []
        for room in rooms:
            room_bookings = [booking for booking in bookings if booking.room_id == room.room_id]
            rows.append(
                TimelineRow(
                    room=room,
                    placements=layout_room_row(room.room_id, room_bookings, window),
                    turnover_zones=turnover_zones(
                        room_bookings, window, self._settings.turnover_hours
                    ),
                )
            )
        return TimelineView(
            window=window,
            rows=rows,
            occupancy_percentage=compute_occupancy(bookings, rooms, window.start, window.end),
        )

    def check_conflicts(
        self,
        room_id: str,
        check_in: DayLike,
        check_out: DayLike,
        exclude_booking_id: Optional[str] = None,
    ) -> list[Booking]:
        start_day, end_day = self._validate_range(check_in, check_out)
        bookings = self._repository.list_bookings(start=start_day, end=end_day)
        return find_conflicts(
            ConflictCandidate(room_id=room_id, check_in=start_day, check_out=end_day),
            exclude_booking_id,
            bookings,
        )

    def create_booking(self, booking: Booking, force_create: bool = False) -> Booking:
        if not booking.booking_id:
            booking = replace(booking, booking_id=str(uuid4()))
        try:
            validate_booking(booking)
        except ValueError as exc:
            raise CalendarValidationError(str(exc)) from exc
        self._require_room(booking.room_id)

        with self._write_lock:
            try:
                created = self._repository.create_booking(booking, enforce_free=not force_create)
            except BookingOverlapError as exc:
                raise BookingConflictError(exc.conflicts) from exc
        logger.info(
            "Booking created | booking_id=%s | room_id=%s | check_in=%s | check_out=%s | forced=%s",
            created.booking_id,
            created.room_id,
            created.check_in,
            created.check_out,
            force_create,
        )
        return created

    def get_booking(self, booking_id: str) -> Booking:
        return self._require_booking(booking_id)

    def update_status(self, booking_id: str, status: BookingStatus) -> Booking:
        """Confirm, cancel or otherwise move a booking through its lifecycle.

        Cancelling frees the room for conflicts and occupancy immediately.
        Reinstating a cancelled booking fails with ``BookingConflictError`` when
        its dates have since been taken.
        """
        with self._write_lock:
            try:
                updated = self._repository.update_booking_status(booking_id, BookingStatus(status))
            except BookingOverlapError as exc:
                raise BookingConflictError(exc.conflicts) from exc
        if updated is None:
            raise BookingNotFoundError(f"Booking {booking_id} not found")
        logger.info(
            "Booking status updated | booking_id=%s | status=%s",
            updated.booking_id,
            updated.status.value,
        )
        return updated

    def drag_booking(
        self,
        booking_id: str,
        day_delta: int,
        target_room_id: Optional[str] = None,
        allow_stay_override: bool = False,
    ) -> MutationOutcome:
        booking = self._require_booking(booking_id)
        rooms = self._repository.list_rooms()
        result = resolve_drag(
            booking,
            day_delta,
            target_room_id,
            self._repository.list_bookings(),
            rooms,
        )
        return self._persist(booking, result, allow_stay_override)

    def resize_booking(
        self,
        booking_id: str,
        direction: ResizeDirection,
        day_delta: int,
        allow_stay_override: bool = False,
    ) -> MutationOutcome:
        booking = self._require_booking(booking_id)
        rooms = self._repository.list_rooms()
        result = resolve_resize(
            booking,
            direction,
            day_delta,
            self._repository.list_bookings(),
            rooms,
        )
        return self._persist(booking, result, allow_stay_override)

    def preview_drag(
        self,
        booking_id: str,
        day_delta: int,
        target_room_id: Optional[str],
        window_start: DayLike,
        day_count: Optional[int] = None,
        zoom: Optional[str] = None,
    ) -> BookingPosition:
        self._require_booking(booking_id)
        window = build_window(window_start, day_count, zoom, self._settings)
        session = begin_gesture(
            booking_id,
            self._repository.list_bookings(),
            window,
            self._repository.list_rooms(),
        )
        return session.preview(day_delta, target_room_id)

    def _persist(
        self,
        booking: Booking,
        result: MutationResult,
        allow_stay_override: bool,
    ) -> MutationOutcome:
        if not result.accepted:
            return MutationOutcome(result=result, persisted=False, booking=booking)
        if result.requires_override and not allow_stay_override:
            logger.info(
                "Mutation held for stay-rule override | booking_id=%s | rules=%s",
                booking.booking_id,
                [warning.rule for warning in result.warnings],
            )
            return MutationOutcome(result=result, persisted=False, booking=booking)
        unchanged = (
            result.check_in == booking.check_in
            and result.check_out == booking.check_out
            and result.room_id == booking.room_id
        )
        if unchanged:
            return MutationOutcome(result=result, persisted=False, booking=booking)

        with self._write_lock:
            try:
                updated = self._repository.update_booking_interval(
                    booking.booking_id,
                    result.check_in,
                    result.check_out,
                    result.room_id,
                )
            except BookingOverlapError as exc:
                logger.warning(
                    "Server-side conflict after snapshot | booking_id=%s | conflicting_booking_id=%s",
                    booking.booking_id,
                    exc.conflicts[0].booking_id,
                )
                rejected = MutationResult(
                    accepted=False,
                    check_in=booking.check_in,
                    check_out=booking.check_out,
                    room_id=booking.room_id,
                    reason=RejectionReason.CONFLICT,
                    conflicting_booking=exc.conflicts[0],
                )
                return MutationOutcome(result=rejected, persisted=False, booking=booking)

        logger.info(
            "Booking moved | booking_id=%s | room_id=%s | check_in=%s | check_out=%s",
            updated.booking_id,
            updated.room_id,
            updated.check_in,
            updated.check_out,
        )
        return MutationOutcome(result=result, persisted=True, booking=updated)
