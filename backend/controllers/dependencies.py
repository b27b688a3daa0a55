"""Shared FastAPI dependency providers for controller layer."""

from __future__ import annotations

from fastapi import HTTPException, Request, status

from backend.services.calendar_service import CalendarService
from backend.utils.config import get_settings


def get_calendar_service(request: Request) -> CalendarService:
    service = getattr(request.app.state, "calendar_service", None)
    if service is None:
        repository = getattr(request.app.state, "repository", None)
        if repository is not None:
            service = CalendarService(repository=repository, settings=get_settings())
            request.app.state.calendar_service = service
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Calendar service is not initialized",
        )
    return service
