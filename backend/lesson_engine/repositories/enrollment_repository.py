# backend/lesson_engine/repositories/enrollment_repository.py
"""Enrollment queries, including lookup of the other members of a group."""

import logging
from typing import List

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.enums import LessonType
from ..core.exceptions import RepositoryException
from ..models.enrollment import Enrollment
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class EnrollmentRepository(BaseRepository[Enrollment]):
    def __init__(self, db: Session):
        super().__init__(db, Enrollment)

    def get_group_member_ids(self, group_name: str) -> List[str]:
        """Ids of GROUP enrollments whose trimmed group name equals group_name."""
        try:
            rows = (
                self.db.query(Enrollment.id)
                .filter(
                    Enrollment.lesson_type == LessonType.GROUP.value,
                    func.trim(Enrollment.group_name) == group_name.strip(),
                )
                .all()
            )
            return [row[0] for row in rows]
        except SQLAlchemyError as e:
            self.logger.error(f"Error getting members of group {group_name!r}: {str(e)}")
            raise RepositoryException(f"Failed to get group members: {str(e)}") from e
