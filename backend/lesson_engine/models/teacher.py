# backend/lesson_engine/models/teacher.py
"""
Teacher model.

Teachers are reference data for the engine: lessons are booked with a
teacher and requests may move a lesson to another teacher.
"""

from typing import Any

from sqlalchemy import Boolean, Column, String
from sqlalchemy.orm import relationship

from ..core.ulid_helper import generate_ulid
from ..database import Base
from .types import UTCDateTime, utc_now


class Teacher(Base):
    __tablename__ = "teachers"

    id = Column(String(26), primary_key=True, index=True, default=generate_ulid)
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=True, unique=True)
    is_active = Column(Boolean, nullable=False, default=True)

    created_at = Column(UTCDateTime, nullable=False, default=utc_now)
    updated_at = Column(UTCDateTime, nullable=True, onupdate=utc_now)

    availability_slots = relationship(
        "TeacherAvailabilitySlot",
        back_populates="teacher",
        cascade="all, delete-orphan",
        order_by="TeacherAvailabilitySlot.day_of_week",
    )
    lessons = relationship("Lesson", back_populates="teacher")

    def __repr__(self) -> str:
        return f"<Teacher {self.id}: {self.name}>"

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "is_active": self.is_active,
        }
