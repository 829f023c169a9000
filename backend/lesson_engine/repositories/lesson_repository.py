# backend/lesson_engine/repositories/lesson_repository.py
"""Lesson persistence: row locking for approvals and group occurrence lookups."""

from datetime import datetime
import logging
from typing import List, Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Query, Session, joinedload

from ..core.enums import LessonStatus
from ..core.exceptions import RepositoryException
from ..models.lesson import Lesson
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class LessonRepository(BaseRepository[Lesson]):
    def __init__(self, db: Session):
        super().__init__(db, Lesson)

    def _apply_eager_loading(self, query: Query) -> Query:
        return query.options(joinedload(Lesson.enrollment))

    def get_for_update(self, lesson_id: str) -> Optional[Lesson]:
        """
        Fetch a lesson with a row lock, overwriting any stale in-session state.

        FOR UPDATE is rendered only where the dialect supports it.
        """
        try:
            return (
                self.db.query(Lesson)
                .filter(Lesson.id == lesson_id)
                .populate_existing()
                .with_for_update()
                .first()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error locking lesson {lesson_id}: {str(e)}")
            raise RepositoryException(f"Failed to lock lesson: {str(e)}") from e

    def get_active_at(self, start_at: datetime, enrollment_ids: Sequence[str]) -> List[Lesson]:
        """Non-cancelled lessons of the given enrollments starting exactly at start_at."""
        if not enrollment_ids:
            return []
        try:
            return (
                self.db.query(Lesson)
                .filter(
                    Lesson.enrollment_id.in_(list(enrollment_ids)),
                    Lesson.start_at == start_at,
                    Lesson.status != LessonStatus.CANCELLED.value,
                )
                .order_by(Lesson.enrollment_id)
                .all()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error getting lessons at {start_at}: {str(e)}")
            raise RepositoryException(f"Failed to get lessons: {str(e)}") from e
