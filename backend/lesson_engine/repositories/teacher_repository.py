# backend/lesson_engine/repositories/teacher_repository.py
"""Teacher reference-data queries."""

import logging
from typing import List

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.teacher import Teacher
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class TeacherRepository(BaseRepository[Teacher]):
    def __init__(self, db: Session):
        super().__init__(db, Teacher)

    def get_active_teachers(self) -> List[Teacher]:
        try:
            return (
                self.db.query(Teacher)
                .filter(Teacher.is_active.is_(True))
                .order_by(Teacher.name)
                .all()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error getting active teachers: {str(e)}")
            raise RepositoryException(f"Failed to get active teachers: {str(e)}") from e
