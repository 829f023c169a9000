# backend/lesson_engine/routes/v1/holidays.py
"""
Holiday calendar routes - API v1

Mounted under /api/v1/admin/holidays.

Endpoints:
    GET / - Holidays in an inclusive date range
    POST / - Register a holiday (idempotent per date)
    DELETE /{holiday_date} - Remove a holiday
"""

import asyncio
from datetime import date

from fastapi import APIRouter, Body, Depends, Query, Response, status

from ...api.dependencies import get_holiday_service
from ...core.exceptions import DomainException, NotFoundException
from ...schemas.holiday import HolidayCreate, HolidayListResponse, HolidayResponse
from ...services.holiday_service import HolidayService
from .lesson_requests import handle_domain_exception

router = APIRouter(tags=["holidays-v1"])


@router.get("", response_model=HolidayListResponse)
async def list_holidays(
    start: date = Query(...),
    end: date = Query(...),
    service: HolidayService = Depends(get_holiday_service),
) -> HolidayListResponse:
    try:
        holidays = await asyncio.to_thread(service.list_holidays, start, end)
        return HolidayListResponse(
            start=start,
            end=end,
            holidays=[HolidayResponse.model_validate(holiday) for holiday in holidays],
        )
    except DomainException as e:
        handle_domain_exception(e)


@router.post("", response_model=HolidayResponse, status_code=status.HTTP_201_CREATED)
async def add_holiday(
    payload: HolidayCreate = Body(...),
    service: HolidayService = Depends(get_holiday_service),
) -> HolidayResponse:
    """Registering an existing date returns the stored holiday unchanged."""
    try:
        holiday = await asyncio.to_thread(service.add_holiday, payload.date, payload.name)
        return HolidayResponse.model_validate(holiday)
    except DomainException as e:
        handle_domain_exception(e)


@router.delete(
    "/{holiday_date}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={404: {"description": "No holiday on that date"}},
)
async def remove_holiday(
    holiday_date: date,
    service: HolidayService = Depends(get_holiday_service),
) -> Response:
    try:
        removed = await asyncio.to_thread(service.remove_holiday, holiday_date)
        if not removed:
            raise NotFoundException(
                f"No holiday on {holiday_date.isoformat()}", code="HOLIDAY_NOT_FOUND"
            )
    except DomainException as e:
        handle_domain_exception(e)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
