# backend/lesson_engine/core/enums.py
"""
Core enums for the lesson rescheduling engine.

Stored values match the school's existing records, so the Portuguese
names (CANCELAMENTO, TROCA_AULA, ...) are kept as the wire/storage values.
"""

from enum import Enum


class LessonStatus(str, Enum):
    CONFIRMED = "CONFIRMED"
    CANCELLED = "CANCELLED"
    REPOSICAO = "REPOSICAO"  # make-up marker; a replacement exists


class LessonType(str, Enum):
    PARTICULAR = "PARTICULAR"
    GROUP = "GRUPO"


class LessonRequestType(str, Enum):
    """Kinds of change a student can ask for."""

    CANCELAMENTO = "CANCELAMENTO"  # cancel the lesson
    TROCA_AULA = "TROCA_AULA"  # move the lesson to another time
    TROCA_PROFESSOR = "TROCA_PROFESSOR"  # move the lesson to another teacher

    @property
    def is_reschedule(self) -> bool:
        return self is not LessonRequestType.CANCELAMENTO


class LessonRequestStatus(str, Enum):
    PENDING = "PENDING"
    TEACHER_APPROVED = "TEACHER_APPROVED"  # transient, resolved into COMPLETED
    TEACHER_REJECTED = "TEACHER_REJECTED"  # escalated to administrative review
    ADMIN_REJECTED = "ADMIN_REJECTED"
    COMPLETED = "COMPLETED"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_REQUEST_STATUSES


TERMINAL_REQUEST_STATUSES = frozenset(
    {LessonRequestStatus.COMPLETED, LessonRequestStatus.ADMIN_REJECTED}
)
OPEN_REQUEST_STATUSES = frozenset(
    {LessonRequestStatus.PENDING, LessonRequestStatus.TEACHER_REJECTED}
)


class ApproverRole(str, Enum):
    TEACHER = "teacher"
    ADMIN = "admin"


class RecipientRole(str, Enum):
    STUDENT = "student"
    TEACHER = "teacher"
    ADMIN = "admin"


class NotificationKind(str, Enum):
    """Template kinds handed to the notification dispatcher."""

    REQUEST_CREATED = "lesson_request_created"
    REQUEST_APPROVED = "lesson_request_approved"
    REQUEST_REJECTED_BY_TEACHER = "lesson_request_rejected_by_teacher"
    REQUEST_ESCALATED = "lesson_request_escalated"
    REQUEST_REJECTED_BY_ADMIN = "lesson_request_rejected_by_admin"
    LESSON_ASSIGNED = "lesson_assigned"


def enum_value(value):
    """Plain stored value of an enum member, or the value itself when already plain."""
    return getattr(value, "value", value)
