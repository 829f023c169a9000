# backend/lesson_engine/models/enrollment.py
"""
Enrollment model.

An enrollment is the student's contract with the school. It owns the
student's lessons and carries the inputs of the advance-notice policy
(source school and optional per-enrollment override).

Group lessons: every student of a group has its own enrollment with
lesson_type GRUPO and the same group_name. The trimmed group name is
the sharing key between their lessons.
"""

from typing import Any, Optional

from sqlalchemy import CheckConstraint, Column, Integer, String
from sqlalchemy.orm import relationship

from ..core.enums import LessonType
from ..core.ulid_helper import generate_ulid
from ..database import Base
from .types import UTCDateTime, utc_now


class Enrollment(Base):
    __tablename__ = "enrollments"

    id = Column(String(26), primary_key=True, index=True, default=generate_ulid)
    student_name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=True)

    lesson_type = Column(String(20), nullable=False, default=LessonType.PARTICULAR.value)
    group_name = Column(String(255), nullable=True, index=True)

    # Per-enrollment notice in hours, wins over the school-wide defaults
    notice_override_hours = Column(Integer, nullable=True)
    source_school = Column(String(100), nullable=True)

    created_at = Column(UTCDateTime, nullable=False, default=utc_now)
    updated_at = Column(UTCDateTime, nullable=True, onupdate=utc_now)

    lessons = relationship("Lesson", back_populates="enrollment")

    __table_args__ = (
        CheckConstraint(
            "lesson_type IN ('PARTICULAR', 'GRUPO')",
            name="ck_enrollments_lesson_type",
        ),
        CheckConstraint(
            "notice_override_hours IS NULL OR notice_override_hours >= 0",
            name="ck_enrollments_notice_override_non_negative",
        ),
    )

    def __repr__(self) -> str:
        return f"<Enrollment {self.id}: {self.student_name} ({self.lesson_type})>"

    @property
    def normalized_group_name(self) -> Optional[str]:
        if self.group_name is None:
            return None
        name = self.group_name.strip()
        return name or None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "student_name": self.student_name,
            "email": self.email,
            "lesson_type": self.lesson_type,
            "group_name": self.group_name,
            "notice_override_hours": self.notice_override_hours,
            "source_school": self.source_school,
        }
