# backend/lesson_engine/routes/v1/availability.py
"""
Teacher availability routes - API v1

Endpoints:
    GET /teachers/{teacher_id}/availability - Weekly windows
    PUT /teachers/{teacher_id}/availability - Replace the weekly windows
    GET /teachers/{teacher_id}/available-dates - Dates with a free slot
    GET /teachers/{teacher_id}/slots - Free start times on one date
    GET /admin/teachers/availability-at - Which teachers work at an instant
"""

import asyncio
from datetime import date, datetime
import logging
from typing import List, Optional

from fastapi import APIRouter, Body, Depends, Query
from fastapi.params import Path

from ...api.dependencies import get_availability_index, get_slot_proposal_service
from ...core.exceptions import DomainException, ValidationException
from ...models.availability import TeacherAvailabilitySlot
from ...schemas.availability import (
    AvailableDatesResponse,
    SlotProposalResponse,
    SlotsForDateResponse,
    TeachersAvailableAtResponse,
    WeeklyAvailabilityResponse,
    WeeklyAvailabilityUpdate,
    WeeklySlotResponse,
)
from ...services.availability_index import AvailabilityIndex
from ...services.slot_proposal_service import SlotProposalService
from .lesson_requests import ULID_PATH_PATTERN, handle_domain_exception

logger = logging.getLogger(__name__)

router = APIRouter(tags=["availability-v1"])

MAX_DURATION_MINUTES = 8 * 60


def _teacher_path():
    return Path(..., description="Teacher ULID", pattern=ULID_PATH_PATTERN)


def _require_offset(name: str, value: datetime) -> None:
    if value.tzinfo is None or value.utcoffset() is None:
        raise ValidationException(f"{name} must include a timezone offset")


def _weekly_response(
    teacher_id: str, slots: List[TeacherAvailabilitySlot]
) -> WeeklyAvailabilityResponse:
    return WeeklyAvailabilityResponse(
        teacher_id=teacher_id,
        open_door=not slots,
        slots=[WeeklySlotResponse(**slot.to_dict()) for slot in slots],
    )


def _read_week(index: AvailabilityIndex, teacher_id: str) -> WeeklyAvailabilityResponse:
    slots = index.configured_slots(teacher_id)
    return _weekly_response(teacher_id, slots)


def _replace_week(
    index: AvailabilityIndex, teacher_id: str, payload: WeeklyAvailabilityUpdate
) -> WeeklyAvailabilityResponse:
    slots = index.replace_weekly_slots(teacher_id, [slot.as_minutes() for slot in payload.slots])
    return _weekly_response(teacher_id, slots)


@router.get("/admin/teachers/availability-at", response_model=TeachersAvailableAtResponse)
async def teachers_available_at(
    instant: datetime = Query(..., description="ISO-8601 instant with offset"),
    index: AvailabilityIndex = Depends(get_availability_index),
) -> TeachersAvailableAtResponse:
    """Map of active teacher id to whether the instant falls inside their weekly windows."""
    try:
        _require_offset("instant", instant)
        teachers = await asyncio.to_thread(index.teachers_available_at, instant)
        return TeachersAvailableAtResponse(instant=instant, teachers=teachers)
    except DomainException as e:
        handle_domain_exception(e)


@router.get("/teachers/{teacher_id}/availability", response_model=WeeklyAvailabilityResponse)
async def get_weekly_availability(
    teacher_id: str = _teacher_path(),
    index: AvailabilityIndex = Depends(get_availability_index),
) -> WeeklyAvailabilityResponse:
    try:
        return await asyncio.to_thread(_read_week, index, teacher_id)
    except DomainException as e:
        handle_domain_exception(e)


@router.put(
    "/teachers/{teacher_id}/availability",
    response_model=WeeklyAvailabilityResponse,
    responses={404: {"description": "Teacher not found"}},
)
async def replace_weekly_availability(
    teacher_id: str = _teacher_path(),
    payload: WeeklyAvailabilityUpdate = Body(...),
    index: AvailabilityIndex = Depends(get_availability_index),
) -> WeeklyAvailabilityResponse:
    """
    Replace all weekly windows of a teacher.

    An empty list removes every restriction: the teacher becomes available
    at any time of any day.
    """
    try:
        return await asyncio.to_thread(_replace_week, index, teacher_id, payload)
    except DomainException as e:
        handle_domain_exception(e)


@router.get("/teachers/{teacher_id}/available-dates", response_model=AvailableDatesResponse)
async def get_available_dates(
    teacher_id: str = _teacher_path(),
    original_start_at: datetime = Query(
        ..., description="Start of the lesson being moved; only later dates are proposed"
    ),
    duration_minutes: int = Query(60, ge=1, le=MAX_DURATION_MINUTES),
    horizon_months: Optional[int] = Query(None, ge=1, le=12),
    service: SlotProposalService = Depends(get_slot_proposal_service),
) -> AvailableDatesResponse:
    try:
        _require_offset("original_start_at", original_start_at)
        dates = await asyncio.to_thread(
            lambda: list(
                service.available_dates(
                    teacher_id, original_start_at, duration_minutes, horizon_months
                )
            )
        )
        return AvailableDatesResponse(
            teacher_id=teacher_id, duration_minutes=duration_minutes, dates=dates
        )
    except DomainException as e:
        handle_domain_exception(e)


@router.get("/teachers/{teacher_id}/slots", response_model=SlotsForDateResponse)
async def get_slots_for_date(
    teacher_id: str = _teacher_path(),
    day: date = Query(..., alias="date", description="Local date in the business timezone"),
    duration_minutes: int = Query(60, ge=1, le=MAX_DURATION_MINUTES),
    service: SlotProposalService = Depends(get_slot_proposal_service),
) -> SlotsForDateResponse:
    try:
        proposals = await asyncio.to_thread(
            service.slots_for_date, teacher_id, day, duration_minutes
        )
        return SlotsForDateResponse(
            teacher_id=teacher_id,
            date=day,
            duration_minutes=duration_minutes,
            slots=[
                SlotProposalResponse(
                    start_time=proposal.start_label,
                    end_time=proposal.end_label,
                    start_at=proposal.start_at,
                    end_at=proposal.end_at,
                )
                for proposal in proposals
            ],
        )
    except DomainException as e:
        handle_domain_exception(e)
