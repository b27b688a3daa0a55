"""HTTP controller layer for the booking calendar."""

from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field, ValidationInfo, field_validator, model_validator

from backend.controllers.dependencies import get_calendar_service
from backend.domain.intervals import nights
from backend.domain.models import (
    Booking,
    BookingPosition,
    BookingStatus,
    MutationResult,
    ResizeDirection,
    Room,
)
from backend.services.calendar_service import (
    BookingConflictError,
    BookingNotFoundError,
    CalendarService,
    CalendarValidationError,
    MutationOutcome,
    RoomNotFoundError,
)
from backend.services.timeline_service import (
    UnknownZoomLevelError,
    pixels_to_day_delta,
    resolve_zoom,
    timeline_days,
)
from backend.utils.config import get_settings
from backend.utils.logger import get_logger


logger = get_logger(__name__)
settings = get_settings()

router = APIRouter(tags=["calendar"])


class RoomResponse(BaseModel):
    room_id: str
    name: str
    total_units: int = Field(ge=1)
    is_active: bool
    min_stay_nights: int = Field(ge=1)
    max_stay_nights: int | None = None

    @classmethod
    def from_domain(cls, room: Room) -> RoomResponse:
        return cls(
            room_id=room.room_id,
            name=room.name,
            total_units=room.total_units,
            is_active=room.is_active,
            min_stay_nights=room.min_stay_nights,
            max_stay_nights=room.max_stay_nights,
        )


class BookingResponse(BaseModel):
    booking_id: str
    room_id: str
    check_in: date
    check_out: date
    nights: int
    status: BookingStatus
    guest_name: str
    guest_email: str | None = None
    guest_phone: str | None = None
    total_amount: float = Field(ge=0.0)
    currency: str

    @classmethod
    def from_domain(cls, booking: Booking) -> BookingResponse:
        return cls(
            booking_id=booking.booking_id,
            room_id=booking.room_id,
            check_in=booking.check_in,
            check_out=booking.check_out,
            nights=nights(booking.interval),
            status=booking.status,
            guest_name=booking.guest_name,
            guest_email=booking.guest_email,
            guest_phone=booking.guest_phone,
            total_amount=booking.total_amount,
            currency=booking.currency,
        )


class RoomAvailabilityResponse(BaseModel):
    room: RoomResponse
    is_available: bool
    conflicting_booking_count: int = Field(ge=0)


class UnitAvailabilityResponse(BaseModel):
    available: bool
    available_units: int = Field(ge=0)
    total_units: int = Field(ge=1)
    nights: int
    meets_min_stay: bool
    meets_max_stay: bool


class BookedDatesResponse(BaseModel):
    room_id: str
    total_units: int = Field(ge=1)
    booked_dates: list[date]


class OccupancyDayResponse(BaseModel):
    date: date
    occupied_rooms: int = Field(ge=0)
    total_rooms: int = Field(ge=0)
    occupancy_percentage: int = Field(ge=0, le=100)


class OccupancyResponse(BaseModel):
    start: date
    end: date
    occupancy_percentage: int = Field(ge=0, le=100)
    daily: list[OccupancyDayResponse]


class PositionResponse(BaseModel):
    offset: float
    width: float = Field(ge=0.0)
    start_day_index: int
    end_day_index: int
    nights: int
    clipped_at_start: bool
    clipped_at_end: bool

    @classmethod
    def from_domain(cls, position: BookingPosition) -> PositionResponse:
        return cls(
            offset=position.offset,
            width=position.width,
            start_day_index=position.start_day_index,
            end_day_index=position.end_day_index,
            nights=position.nights,
            clipped_at_start=position.clipped_at_start,
            clipped_at_end=position.clipped_at_end,
        )


class PlacementResponse(BaseModel):
    booking: BookingResponse
    position: PositionResponse


class TurnoverZoneResponse(BaseModel):
    booking_id: str
    offset: float
    width: float = Field(ge=0.0)


class TimelineRowResponse(BaseModel):
    room: RoomResponse
    placements: list[PlacementResponse]
    turnover_zones: list[TurnoverZoneResponse]


class TimelineResponse(BaseModel):
    start: date
    end: date
    day_count: int = Field(ge=1)
    pixel_per_day: float = Field(gt=0.0)
    days: list[date]
    occupancy_percentage: int = Field(ge=0, le=100)
    rows: list[TimelineRowResponse]


class StayRequest(BaseModel):
    room_id: str = Field(min_length=1)
    check_in: date
    check_out: date

    @field_validator("check_out")
    @classmethod
    def validate_check_out_after_check_in(cls, value: date, info: ValidationInfo) -> date:
        check_in = info.data.get("check_in")
        if check_in is not None and value <= check_in:
            raise ValueError("check_out must be after check_in")
        return value


class ConflictCheckRequest(StayRequest):
    exclude_booking_id: str | None = None


class ConflictCheckResponse(BaseModel):
    has_conflict: bool
    conflicts: list[BookingResponse]


class CreateBookingRequest(StayRequest):
    guest_name: str = Field(min_length=1)
    guest_email: str | None = None
    guest_phone: str | None = None
    total_amount: float = Field(ge=0.0)
    currency: str = Field(default=settings.default_currency, min_length=3, max_length=3)
    status: BookingStatus = BookingStatus.PENDING
    force_create: bool = False


class StatusUpdateRequest(BaseModel):
    status: BookingStatus


class GestureDeltaRequest(BaseModel):
    """Gesture distance either as whole days or as raw pixels at a zoom level."""

    day_delta: int | None = None
    pixel_delta: float | None = None
    zoom: str | None = None
    allow_stay_override: bool = False

    @model_validator(mode="after")
    def validate_delta_source(self) -> GestureDeltaRequest:
        if self.day_delta is None and self.pixel_delta is None:
            raise ValueError("either day_delta or pixel_delta is required")
        return self

    def resolved_day_delta(self) -> int:
        if self.day_delta is not None:
            return self.day_delta
        return pixels_to_day_delta(float(self.pixel_delta), resolve_zoom(self.zoom, settings))


class DragRequest(GestureDeltaRequest):
    target_room_id: str | None = None


class ResizeRequest(GestureDeltaRequest):
    direction: ResizeDirection


class PreviewRequest(BaseModel):
    day_delta: int
    target_room_id: str | None = None
    window_start: date
    days: int | None = Field(default=None, ge=1, le=366)
    zoom: str | None = None


class StayWarningResponse(BaseModel):
    rule: str
    nights: int
    limit: int
    message: str


class MutationResponse(BaseModel):
    accepted: bool
    check_in: date
    check_out: date
    room_id: str
    reason: str | None = None
    conflicting_booking: BookingResponse | None = None
    warnings: list[StayWarningResponse]
    requires_override: bool
    persisted: bool
    booking: BookingResponse


def _mutation_response(outcome: MutationOutcome) -> MutationResponse:
    result: MutationResult = outcome.result
    return MutationResponse(
        accepted=result.accepted,
        check_in=result.check_in,
        check_out=result.check_out,
        room_id=result.room_id,
        reason=result.reason.value if result.reason else None,
        conflicting_booking=(
            BookingResponse.from_domain(result.conflicting_booking)
            if result.conflicting_booking is not None
            else None
        ),
        warnings=[
            StayWarningResponse(
                rule=warning.rule,
                nights=warning.nights,
                limit=warning.limit,
                message=warning.message,
            )
            for warning in result.warnings
        ],
        requires_override=result.requires_override,
        persisted=outcome.persisted,
        booking=BookingResponse.from_domain(outcome.booking),
    )


def _bad_request(exc: Exception) -> HTTPException:
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))


def _not_found(exc: Exception) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))


def _conflict(exc: BookingConflictError) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_409_CONFLICT,
        detail={
            "error": "Booking conflict detected",
            "message": str(exc),
            "conflicts": [
                BookingResponse.from_domain(conflict).model_dump(mode="json")
                for conflict in exc.conflicts
            ],
        },
    )


@router.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/rooms", response_model=list[RoomResponse])
async def list_rooms(
    service: CalendarService = Depends(get_calendar_service),
) -> list[RoomResponse]:
    return [RoomResponse.from_domain(room) for room in service.list_rooms()]


@router.get("/availability", response_model=list[RoomAvailabilityResponse])
async def room_availability(
    start: date = Query(...),
    end: date = Query(...),
    service: CalendarService = Depends(get_calendar_service),
) -> list[RoomAvailabilityResponse]:
    """Which rooms are free for the whole of ``[start, end)``."""
    try:
        rows = service.room_availability(start, end)
    except CalendarValidationError as exc:
        raise _bad_request(exc) from exc
    return [
        RoomAvailabilityResponse(
            room=RoomResponse.from_domain(row.room),
            is_available=row.is_available,
            conflicting_booking_count=row.conflicting_booking_count,
        )
        for row in rows
    ]


@router.get("/rooms/{room_id}/availability", response_model=UnitAvailabilityResponse)
async def unit_availability(
    room_id: str,
    check_in: date = Query(...),
    check_out: date = Query(...),
    service: CalendarService = Depends(get_calendar_service),
) -> UnitAvailabilityResponse:
    try:
        result = service.unit_availability(room_id, check_in, check_out)
    except CalendarValidationError as exc:
        raise _bad_request(exc) from exc
    except RoomNotFoundError as exc:
        raise _not_found(exc) from exc
    return UnitAvailabilityResponse(
        available=result.available,
        available_units=result.available_units,
        total_units=result.total_units,
        nights=result.nights,
        meets_min_stay=result.meets_min_stay,
        meets_max_stay=result.meets_max_stay,
    )


@router.get("/rooms/{room_id}/booked_dates", response_model=BookedDatesResponse)
async def booked_dates(
    room_id: str,
    start: date = Query(...),
    end: date = Query(...),
    service: CalendarService = Depends(get_calendar_service),
) -> BookedDatesResponse:
    try:
        room, dates = service.booked_dates(room_id, start, end)
    except CalendarValidationError as exc:
        raise _bad_request(exc) from exc
    except RoomNotFoundError as exc:
        raise _not_found(exc) from exc
    return BookedDatesResponse(room_id=room.room_id, total_units=room.total_units, booked_dates=dates)


@router.get("/occupancy", response_model=OccupancyResponse)
async def occupancy(
    start: date = Query(...),
    end: date = Query(...),
    service: CalendarService = Depends(get_calendar_service),
) -> OccupancyResponse:
    try:
        result = service.occupancy(start, end)
    except CalendarValidationError as exc:
        raise _bad_request(exc) from exc
    return OccupancyResponse(**result)


@router.get("/timeline", response_model=TimelineResponse)
async def timeline(
    start: date = Query(...),
    days: int | None = Query(default=None, ge=1, le=366),
    zoom: str | None = Query(default=None),
    booking_status: list[BookingStatus] | None = Query(default=None, alias="status"),
    service: CalendarService = Depends(get_calendar_service),
) -> TimelineResponse:
    """Rendered positions of every visible booking, one row per active room."""
    try:
        view = service.timeline(start, days, zoom, booking_status)
    except (CalendarValidationError, UnknownZoomLevelError) as exc:
        raise _bad_request(exc) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected timeline failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to build timeline",
        ) from exc

    return TimelineResponse(
        start=view.window.start,
        end=view.window.end,
        day_count=view.window.day_count,
        pixel_per_day=view.window.pixel_per_day,
        days=timeline_days(view.window.start, view.window.day_count),
        occupancy_percentage=view.occupancy_percentage,
        rows=[
            TimelineRowResponse(
                room=RoomResponse.from_domain(row.room),
                placements=[
                    PlacementResponse(
                        booking=BookingResponse.from_domain(booking),
                        position=PositionResponse.from_domain(position),
                    )
                    for booking, position in row.placements
                ],
                turnover_zones=[
                    TurnoverZoneResponse(
                        booking_id=zone.booking_id,
                        offset=zone.offset,
                        width=zone.width,
                    )
                    for zone in row.turnover_zones
                ],
            )
            for row in view.rows
        ],
    )


@router.post("/bookings/check_conflicts", response_model=ConflictCheckResponse)
async def check_conflicts(
    payload: ConflictCheckRequest,
    service: CalendarService = Depends(get_calendar_service),
) -> ConflictCheckResponse:
    try:
        conflicts = service.check_conflicts(
            payload.room_id,
            payload.check_in,
            payload.check_out,
            payload.exclude_booking_id,
        )
    except CalendarValidationError as exc:
        raise _bad_request(exc) from exc
    return ConflictCheckResponse(
        has_conflict=bool(conflicts),
        conflicts=[BookingResponse.from_domain(booking) for booking in conflicts],
    )


@router.post(
    "/bookings",
    response_model=BookingResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_booking(
    payload: CreateBookingRequest,
    service: CalendarService = Depends(get_calendar_service),
) -> BookingResponse:
    booking = Booking(
        booking_id="",
        room_id=payload.room_id,
        check_in=payload.check_in,
        check_out=payload.check_out,
        status=payload.status,
        guest_name=payload.guest_name,
        guest_email=payload.guest_email,
        guest_phone=payload.guest_phone,
        total_amount=payload.total_amount,
        currency=payload.currency.upper(),
    )
    try:
        created = service.create_booking(booking, force_create=payload.force_create)
    except BookingConflictError as exc:
        raise _conflict(exc) from exc
    except RoomNotFoundError as exc:
        raise _not_found(exc) from exc
    except CalendarValidationError as exc:
        raise _bad_request(exc) from exc
    return BookingResponse.from_domain(created)


@router.get("/bookings/{booking_id}", response_model=BookingResponse)
async def get_booking(
    booking_id: str,
    service: CalendarService = Depends(get_calendar_service),
) -> BookingResponse:
    try:
        booking = service.get_booking(booking_id)
    except BookingNotFoundError as exc:
        raise _not_found(exc) from exc
    return BookingResponse.from_domain(booking)


@router.patch("/bookings/{booking_id}/status", response_model=BookingResponse)
async def update_booking_status(
    booking_id: str,
    payload: StatusUpdateRequest,
    service: CalendarService = Depends(get_calendar_service),
) -> BookingResponse:
    """Confirm or cancel a booking; cancelled bookings stop blocking their room."""
    try:
        booking = service.update_status(booking_id, payload.status)
    except BookingNotFoundError as exc:
        raise _not_found(exc) from exc
    except BookingConflictError as exc:
        raise _conflict(exc) from exc
    return BookingResponse.from_domain(booking)


@router.post("/bookings/{booking_id}/drag", response_model=MutationResponse)
async def drag_booking(
    booking_id: str,
    payload: DragRequest,
    service: CalendarService = Depends(get_calendar_service),
) -> MutationResponse:
    """Move a booking by whole days and/or to another room; rejections come back as values."""
    try:
        outcome = service.drag_booking(
            booking_id,
            payload.resolved_day_delta(),
            payload.target_room_id,
            allow_stay_override=payload.allow_stay_override,
        )
    except BookingNotFoundError as exc:
        raise _not_found(exc) from exc
    except UnknownZoomLevelError as exc:
        raise _bad_request(exc) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected drag failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to move booking",
        ) from exc
    return _mutation_response(outcome)


@router.post("/bookings/{booking_id}/resize", response_model=MutationResponse)
async def resize_booking(
    booking_id: str,
    payload: ResizeRequest,
    service: CalendarService = Depends(get_calendar_service),
) -> MutationResponse:
    try:
        outcome = service.resize_booking(
            booking_id,
            payload.direction,
            payload.resolved_day_delta(),
            allow_stay_override=payload.allow_stay_override,
        )
    except BookingNotFoundError as exc:
        raise _not_found(exc) from exc
    except UnknownZoomLevelError as exc:
        raise _bad_request(exc) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected resize failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to resize booking",
        ) from exc
    return _mutation_response(outcome)


@router.post("/bookings/{booking_id}/preview", response_model=PositionResponse)
async def preview_drag(
    booking_id: str,
    payload: PreviewRequest,
    service: CalendarService = Depends(get_calendar_service),
) -> PositionResponse:
    """Read-only position of the dragged block; nothing is validated or stored."""
    try:
        position = service.preview_drag(
            booking_id,
            payload.day_delta,
            payload.target_room_id,
            payload.window_start,
            payload.days,
            payload.zoom,
        )
    except BookingNotFoundError as exc:
        raise _not_found(exc) from exc
    except UnknownZoomLevelError as exc:
        raise _bad_request(exc) from exc
    return PositionResponse.from_domain(position)
