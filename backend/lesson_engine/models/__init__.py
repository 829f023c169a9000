"""
Database models for the lesson rescheduling engine.

This module exports all SQLAlchemy models used in the application.
The models are organized by functionality:
- Teachers and their recurring weekly availability
- Enrollments and the lessons they own
- The holiday calendar
- Lesson change requests (cancel / reschedule workflow)
"""

from .availability import TeacherAvailabilitySlot
from .enrollment import Enrollment
from .holiday import Holiday
from .lesson import Lesson
from .lesson_request import LessonChangeRequest
from .teacher import Teacher

__all__ = [
    "Enrollment",
    "Holiday",
    "Lesson",
    "LessonChangeRequest",
    "Teacher",
    "TeacherAvailabilitySlot",
]
