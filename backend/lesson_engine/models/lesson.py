# backend/lesson_engine/models/lesson.py
"""
Lesson model.

A lesson is a concrete booking of a teacher for one enrollment at a UTC
instant. Lessons are never moved in place: a reschedule cancels the
original row and creates a replacement that points back to it through
rescheduled_from_lesson_id. A cancelled lesson is never reactivated.
"""

from datetime import datetime, timedelta
import logging
from typing import Any, Optional

from sqlalchemy import CheckConstraint, Column, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import relationship

from ..core.enums import LessonStatus
from ..core.ulid_helper import generate_ulid
from ..database import Base
from .types import UTCDateTime, utc_now

logger = logging.getLogger(__name__)


class Lesson(Base):
    __tablename__ = "lessons"

    id = Column(String(26), primary_key=True, index=True, default=generate_ulid)

    enrollment_id = Column(String(26), ForeignKey("enrollments.id"), nullable=False, index=True)
    teacher_id = Column(String(26), ForeignKey("teachers.id"), nullable=False)

    start_at = Column(UTCDateTime, nullable=False)
    duration_minutes = Column(Integer, nullable=False, default=60)

    status = Column(
        String(20), nullable=False, default=LessonStatus.CONFIRMED.value, index=True
    )
    notes = Column(Text, nullable=True)

    # Linkage when created by an approved reschedule
    rescheduled_from_lesson_id = Column(String(26), ForeignKey("lessons.id"), nullable=True)

    created_at = Column(UTCDateTime, nullable=False, default=utc_now)
    updated_at = Column(UTCDateTime, nullable=True, onupdate=utc_now)
    cancelled_at = Column(UTCDateTime, nullable=True)

    enrollment = relationship("Enrollment", back_populates="lessons")
    teacher = relationship("Teacher", back_populates="lessons")
    rescheduled_from = relationship("Lesson", remote_side=[id], uselist=False)

    __table_args__ = (
        CheckConstraint(
            "status IN ('CONFIRMED', 'CANCELLED', 'REPOSICAO')",
            name="ck_lessons_status",
        ),
        CheckConstraint("duration_minutes > 0", name="check_lesson_duration_positive"),
    )

    def __repr__(self) -> str:
        return (
            f"<Lesson {self.id}: enrollment={self.enrollment_id}, teacher={self.teacher_id}, "
            f"start={self.start_at}, status={self.status}>"
        )

    @property
    def end_at(self) -> datetime:
        return self.start_at + timedelta(minutes=self.duration_minutes)

    @property
    def is_active(self) -> bool:
        return self.status != LessonStatus.CANCELLED

    def append_note(self, note: Optional[str]) -> None:
        if not note:
            return
        self.notes = f"{self.notes}\n{note}" if self.notes else note

    def cancel(self, cancelled_at: datetime, note: Optional[str] = None) -> None:
        """Cancel this lesson, appending an audit note."""
        self.status = LessonStatus.CANCELLED.value
        self.cancelled_at = cancelled_at
        self.append_note(note)
        logger.info(f"Lesson {self.id} cancelled")

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "enrollment_id": self.enrollment_id,
            "teacher_id": self.teacher_id,
            "start_at": self.start_at.isoformat() if self.start_at else None,
            "duration_minutes": self.duration_minutes,
            "status": self.status,
            "notes": self.notes,
            "rescheduled_from_lesson_id": self.rescheduled_from_lesson_id,
            "cancelled_at": self.cancelled_at.isoformat() if self.cancelled_at else None,
        }


Index("ix_lessons_teacher_start", Lesson.teacher_id, Lesson.start_at)
