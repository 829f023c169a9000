"""
Lesson change request schemas.

Instants are exchanged as ISO-8601 with an explicit offset; naive values are
rejected at the edge so no local wall-clock time reaches the engine.
"""

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import AwareDatetime, Field, field_validator

from ..core.enums import LessonRequestStatus, LessonRequestType, LessonStatus
from .base import StandardizedModel, StrictRequestModel

NOTES_MAX_LENGTH = 2000


def _strip_notes(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


class LessonRequestCreate(StrictRequestModel):
    lesson_id: str = Field(..., min_length=1, max_length=26)
    request_type: LessonRequestType
    requested_start_at: Optional[AwareDatetime] = None
    requested_teacher_id: Optional[str] = Field(default=None, max_length=26)
    notes: Optional[str] = Field(default=None, max_length=NOTES_MAX_LENGTH)
    created_by_id: Optional[str] = Field(default=None, max_length=26)

    @field_validator("notes")
    @classmethod
    def _clean_notes(cls, value: Optional[str]) -> Optional[str]:
        return _strip_notes(value)


class TeacherDecision(StrictRequestModel):
    approved: bool
    notes: Optional[str] = Field(default=None, max_length=NOTES_MAX_LENGTH)

    @field_validator("notes")
    @classmethod
    def _clean_notes(cls, value: Optional[str]) -> Optional[str]:
        return _strip_notes(value)


class AdminAction(str, Enum):
    APPROVE = "APPROVE"
    REJECT = "REJECT"


class AdminDecision(StrictRequestModel):
    action: AdminAction
    new_start_at: Optional[AwareDatetime] = None
    new_teacher_id: Optional[str] = Field(default=None, max_length=26)
    admin_notes: Optional[str] = Field(default=None, max_length=NOTES_MAX_LENGTH)
    processed_by_id: Optional[str] = Field(default=None, max_length=26)

    @field_validator("admin_notes")
    @classmethod
    def _clean_notes(cls, value: Optional[str]) -> Optional[str]:
        return _strip_notes(value)


class LessonResponse(StandardizedModel):
    id: str
    enrollment_id: str
    teacher_id: str
    start_at: datetime
    duration_minutes: int
    status: LessonStatus
    notes: Optional[str] = None
    rescheduled_from_lesson_id: Optional[str] = None
    cancelled_at: Optional[datetime] = None


class LessonRequestResponse(StandardizedModel):
    id: str
    lesson_id: str
    enrollment_id: str
    teacher_id: str
    request_type: LessonRequestType
    status: LessonRequestStatus
    requested_start_at: Optional[datetime] = None
    requested_teacher_id: Optional[str] = None
    notes: Optional[str] = None
    teacher_notes: Optional[str] = None
    admin_notes: Optional[str] = None
    created_by_id: Optional[str] = None
    processed_by_id: Optional[str] = None
    replacement_lesson_id: Optional[str] = None
    version: int
    created_at: datetime
    teacher_resolved_at: Optional[datetime] = None
    resolved_at: Optional[datetime] = None


class LessonRequestDecisionResponse(StandardizedModel):
    """Outcome of a teacher or admin decision; lessons are set only when the calendar changed."""

    request: LessonRequestResponse
    cancelled_lesson: Optional[LessonResponse] = None
    replacement_lesson: Optional[LessonResponse] = None


class LessonRequestListResponse(StandardizedModel):
    items: List[LessonRequestResponse]
    total: int
