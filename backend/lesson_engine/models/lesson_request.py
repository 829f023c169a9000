# backend/lesson_engine/models/lesson_request.py
"""
Lesson change request model.

A student asks to cancel a lesson, move it to another time, or move it to
another teacher. The teacher resolves the request first; a teacher
rejection escalates it to the administrators, who make the final call.

Lifecycle:
    PENDING -> COMPLETED (approved; calendar changed)
    PENDING -> TEACHER_REJECTED -> COMPLETED | ADMIN_REJECTED

At most one open request (PENDING or TEACHER_REJECTED) may exist per
lesson; the partial unique index below backs the service-level check.
"""

from typing import Any

from sqlalchemy import CheckConstraint, Column, ForeignKey, Index, Integer, String, Text, text
from sqlalchemy.orm import relationship

from ..core.enums import LessonRequestStatus
from ..core.ulid_helper import generate_ulid
from ..database import Base
from .types import UTCDateTime, utc_now

OPEN_STATUS_PREDICATE = "status IN ('PENDING', 'TEACHER_REJECTED')"


class LessonChangeRequest(Base):
    __tablename__ = "lesson_change_requests"

    id = Column(String(26), primary_key=True, index=True, default=generate_ulid)

    lesson_id = Column(String(26), ForeignKey("lessons.id"), nullable=False, index=True)
    enrollment_id = Column(String(26), ForeignKey("enrollments.id"), nullable=False, index=True)
    # Teacher of the lesson when the request was made; drives the teacher queue
    teacher_id = Column(String(26), ForeignKey("teachers.id"), nullable=False, index=True)

    request_type = Column(String(20), nullable=False)
    status = Column(
        String(20), nullable=False, default=LessonRequestStatus.PENDING.value, index=True
    )

    requested_start_at = Column(UTCDateTime, nullable=True)
    requested_teacher_id = Column(String(26), ForeignKey("teachers.id"), nullable=True)

    notes = Column(Text, nullable=True)
    teacher_notes = Column(Text, nullable=True)
    admin_notes = Column(Text, nullable=True)

    created_by_id = Column(String(26), nullable=True)
    processed_by_id = Column(String(26), nullable=True)
    replacement_lesson_id = Column(String(26), ForeignKey("lessons.id"), nullable=True)

    # Optimistic concurrency guard, bumped by every guarded transition
    version = Column(Integer, nullable=False, default=1)

    created_at = Column(UTCDateTime, nullable=False, default=utc_now)
    updated_at = Column(UTCDateTime, nullable=True, onupdate=utc_now)
    teacher_resolved_at = Column(UTCDateTime, nullable=True)
    resolved_at = Column(UTCDateTime, nullable=True)

    lesson = relationship("Lesson", foreign_keys=[lesson_id])
    replacement_lesson = relationship("Lesson", foreign_keys=[replacement_lesson_id])
    enrollment = relationship("Enrollment")
    teacher = relationship("Teacher", foreign_keys=[teacher_id])
    requested_teacher = relationship("Teacher", foreign_keys=[requested_teacher_id])

    __table_args__ = (
        CheckConstraint(
            "request_type IN ('CANCELAMENTO', 'TROCA_AULA', 'TROCA_PROFESSOR')",
            name="ck_lesson_change_requests_type",
        ),
        CheckConstraint(
            "status IN ('PENDING', 'TEACHER_APPROVED', 'TEACHER_REJECTED', "
            "'ADMIN_REJECTED', 'COMPLETED')",
            name="ck_lesson_change_requests_status",
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<LessonChangeRequest {self.id}: lesson={self.lesson_id}, "
            f"type={self.request_type}, status={self.status}, v={self.version}>"
        )

    @property
    def is_terminal(self) -> bool:
        return LessonRequestStatus(self.status).is_terminal

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "lesson_id": self.lesson_id,
            "enrollment_id": self.enrollment_id,
            "teacher_id": self.teacher_id,
            "request_type": self.request_type,
            "status": self.status,
            "requested_start_at": (
                self.requested_start_at.isoformat() if self.requested_start_at else None
            ),
            "requested_teacher_id": self.requested_teacher_id,
            "notes": self.notes,
            "teacher_notes": self.teacher_notes,
            "admin_notes": self.admin_notes,
            "replacement_lesson_id": self.replacement_lesson_id,
            "version": self.version,
        }


Index(
    "uq_lesson_change_requests_open_per_lesson",
    LessonChangeRequest.lesson_id,
    unique=True,
    postgresql_where=text(OPEN_STATUS_PREDICATE),
    sqlite_where=text(OPEN_STATUS_PREDICATE),
)
