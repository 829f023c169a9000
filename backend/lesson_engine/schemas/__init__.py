"""
Pydantic schemas for the lesson engine API.
"""

from .availability import (
    AvailableDatesResponse,
    SlotProposalResponse,
    SlotsForDateResponse,
    TeachersAvailableAtResponse,
    WeeklyAvailabilityResponse,
    WeeklyAvailabilityUpdate,
    WeeklySlotIn,
    WeeklySlotResponse,
)
from .holiday import HolidayCreate, HolidayListResponse, HolidayResponse
from .lesson_request import (
    AdminAction,
    AdminDecision,
    LessonRequestCreate,
    LessonRequestDecisionResponse,
    LessonRequestListResponse,
    LessonRequestResponse,
    LessonResponse,
    TeacherDecision,
)

__all__ = [
    "AdminAction",
    "AdminDecision",
    "AvailableDatesResponse",
    "HolidayCreate",
    "HolidayListResponse",
    "HolidayResponse",
    "LessonRequestCreate",
    "LessonRequestDecisionResponse",
    "LessonRequestListResponse",
    "LessonRequestResponse",
    "LessonResponse",
    "SlotProposalResponse",
    "SlotsForDateResponse",
    "TeacherDecision",
    "TeachersAvailableAtResponse",
    "WeeklyAvailabilityResponse",
    "WeeklyAvailabilityUpdate",
    "WeeklySlotIn",
    "WeeklySlotResponse",
]
