# backend/lesson_engine/repositories/__init__.py
"""
Repository Pattern Implementation for the lesson engine

This package provides the repository layer for data access,
separating business logic from database queries.

Key Components:
- BaseRepository: Shared lookup, create, flush and delete with error translation
- RepositoryFactory: Factory for creating repository instances
- ConflictCheckerRepository: Overlap queries on non-cancelled lessons
- LessonRequestRepository: Change requests and the optimistic status guard

Usage:
    from lesson_engine.repositories import RepositoryFactory

    # In a service:
    repository = RepositoryFactory.create_holiday_repository(db)
    holidays = repository.dates_in_range(start, end)
"""

from .availability_repository import AvailabilityRepository
from .base_repository import BaseRepository
from .conflict_checker_repository import ConflictCheckerRepository
from .enrollment_repository import EnrollmentRepository
from .factory import RepositoryFactory
from .holiday_repository import HolidayRepository
from .lesson_repository import LessonRepository
from .lesson_request_repository import LessonRequestRepository
from .teacher_repository import TeacherRepository

__all__ = [
    "AvailabilityRepository",
    "BaseRepository",
    "ConflictCheckerRepository",
    "EnrollmentRepository",
    "HolidayRepository",
    "LessonRepository",
    "LessonRequestRepository",
    "RepositoryFactory",
    "TeacherRepository",
]
