# backend/lesson_engine/services/group_lessons.py
"""
Group lesson synchronization.

A group lesson is stored as one Lesson row per member enrollment. Rows
belong to the same occurrence when their enrollments share the trimmed
group name and the lessons start at the same instant. Self-service
changes are not offered for group lessons.
"""

from datetime import datetime
import logging
from typing import List, Optional, Tuple

from sqlalchemy.orm import Session

from ..core.clock import BusinessClock
from ..core.enums import LessonType
from ..core.exceptions import UnsupportedForGroupException
from ..models.enrollment import Enrollment
from ..models.lesson import Lesson
from ..repositories.factory import RepositoryFactory
from .base import BaseService

logger = logging.getLogger(__name__)


def is_group_lesson(enrollment: Enrollment) -> bool:
    return enrollment.lesson_type == LessonType.GROUP and bool(enrollment.normalized_group_name)


class GroupLessons(BaseService):
    is_group_lesson = staticmethod(is_group_lesson)

    def __init__(
        self,
        db: Session,
        clock: Optional[BusinessClock] = None,
        lesson_repository=None,
        enrollment_repository=None,
    ):
        super().__init__(db, clock)
        self.lesson_repository = lesson_repository or RepositoryFactory.create_lesson_repository(db)
        self.enrollment_repository = (
            enrollment_repository or RepositoryFactory.create_enrollment_repository(db)
        )

    def group_key(self, lesson: Lesson) -> Optional[Tuple[str, datetime]]:
        enrollment = lesson.enrollment
        if enrollment is None or not is_group_lesson(enrollment):
            return None
        return (enrollment.normalized_group_name, lesson.start_at)

    @BaseService.measure_operation("occurrence_lessons")
    def occurrence_lessons(self, lesson: Lesson) -> List[Lesson]:
        """
        All non-cancelled rows of the occurrence `lesson` belongs to.

        For a particular lesson this is just the lesson itself when active.
        """
        key = self.group_key(lesson)
        if key is None:
            return [lesson] if lesson.is_active else []

        group_name, start_at = key
        member_ids = self.enrollment_repository.get_group_member_ids(group_name)
        return self.lesson_repository.get_active_at(start_at, member_ids)

    def ensure_not_group_lesson(self, enrollment: Enrollment) -> None:
        if is_group_lesson(enrollment):
            raise UnsupportedForGroupException(enrollment.normalized_group_name)
