# backend/lesson_engine/repositories/conflict_checker_repository.py
"""
ConflictChecker Repository

Booking queries used to detect overlaps. Only non-cancelled lessons block
time; REPOSICAO lessons still occupy the teacher.
"""

from datetime import datetime, timedelta
import logging
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.enums import LessonStatus
from ..core.exceptions import RepositoryException
from ..models.lesson import Lesson
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)

# Upper bound on lesson length; lessons starting earlier cannot reach the range
MAX_LESSON_SPAN = timedelta(hours=24)


class ConflictCheckerRepository(BaseRepository[Lesson]):
    """Read-only lesson queries for conflict checking."""

    def __init__(self, db: Session):
        super().__init__(db, Lesson)
        self.logger = logging.getLogger(__name__)

    def get_active_lessons_overlapping(
        self,
        teacher_id: str,
        range_start: datetime,
        range_end: datetime,
        exclude_lesson_id: Optional[str] = None,
    ) -> List[Lesson]:
        """
        Non-cancelled lessons of a teacher that intersect [range_start, range_end).

        The database narrows by start instant; the exact end-based overlap is
        applied here because end = start + duration is not portable SQL.
        """
        try:
            query = self.db.query(Lesson).filter(
                Lesson.teacher_id == teacher_id,
                Lesson.status != LessonStatus.CANCELLED.value,
                Lesson.start_at >= range_start - MAX_LESSON_SPAN,
                Lesson.start_at < range_end,
            )
            if exclude_lesson_id:
                query = query.filter(Lesson.id != exclude_lesson_id)

            lessons = query.order_by(Lesson.start_at).all()
            return [lesson for lesson in lessons if lesson.end_at > range_start]
        except SQLAlchemyError as e:
            self.logger.error(f"Error getting lessons for conflict check: {str(e)}")
            raise RepositoryException(f"Failed to get conflict lessons: {str(e)}") from e
