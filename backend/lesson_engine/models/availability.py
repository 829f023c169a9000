# backend/lesson_engine/models/availability.py
"""
Recurring weekly availability of a teacher.

Each row is one window on one weekday, in minutes since local midnight
in the business timezone. Windows are half-open [start, end). A teacher
with no rows at all is treated as available at any time.
"""

from typing import Any

from sqlalchemy import CheckConstraint, Column, ForeignKey, Index, Integer, String
from sqlalchemy.orm import relationship

from ..core.ulid_helper import generate_ulid
from ..database import Base
from ..utils.time_utils import TimeWindow, minutes_to_time_str


class TeacherAvailabilitySlot(Base):
    __tablename__ = "teacher_availability_slots"

    id = Column(String(26), primary_key=True, index=True, default=generate_ulid)
    teacher_id = Column(
        String(26), ForeignKey("teachers.id", ondelete="CASCADE"), nullable=False
    )

    # 0 = Sunday ... 6 = Saturday
    day_of_week = Column(Integer, nullable=False)
    start_minutes = Column(Integer, nullable=False)
    end_minutes = Column(Integer, nullable=False)

    teacher = relationship("Teacher", back_populates="availability_slots")

    __table_args__ = (
        CheckConstraint("day_of_week BETWEEN 0 AND 6", name="ck_availability_day_of_week"),
        CheckConstraint(
            "start_minutes >= 0 AND start_minutes < end_minutes AND end_minutes <= 1440",
            name="ck_availability_window_bounds",
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<TeacherAvailabilitySlot teacher={self.teacher_id} day={self.day_of_week} "
            f"{minutes_to_time_str(self.start_minutes)}-{minutes_to_time_str(self.end_minutes)}>"
        )

    @property
    def window(self) -> TimeWindow:
        return TimeWindow(self.start_minutes, self.end_minutes)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "teacher_id": self.teacher_id,
            "day_of_week": self.day_of_week,
            "start_time": minutes_to_time_str(self.start_minutes),
            "end_time": minutes_to_time_str(self.end_minutes),
        }


Index(
    "ix_availability_teacher_day",
    TeacherAvailabilitySlot.teacher_id,
    TeacherAvailabilitySlot.day_of_week,
)
