# backend/lesson_engine/repositories/availability_repository.py
"""
Availability Repository

Data access for a teacher's recurring weekly windows. The service layer
decides what an empty result means (open-door policy); this layer only
returns rows.
"""

import logging
from typing import Iterable, List, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.availability import TeacherAvailabilitySlot
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class AvailabilityRepository(BaseRepository[TeacherAvailabilitySlot]):
    def __init__(self, db: Session):
        super().__init__(db, TeacherAvailabilitySlot)

    def get_slots_for_teacher(self, teacher_id: str) -> List[TeacherAvailabilitySlot]:
        try:
            return (
                self.db.query(TeacherAvailabilitySlot)
                .filter(TeacherAvailabilitySlot.teacher_id == teacher_id)
                .order_by(
                    TeacherAvailabilitySlot.day_of_week,
                    TeacherAvailabilitySlot.start_minutes,
                    TeacherAvailabilitySlot.end_minutes,
                )
                .all()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error getting slots for teacher {teacher_id}: {str(e)}")
            raise RepositoryException(f"Failed to get availability slots: {str(e)}") from e

    def get_slots_for_day(
        self, teacher_id: str, day_of_week: int
    ) -> List[TeacherAvailabilitySlot]:
        try:
            return (
                self.db.query(TeacherAvailabilitySlot)
                .filter(
                    TeacherAvailabilitySlot.teacher_id == teacher_id,
                    TeacherAvailabilitySlot.day_of_week == day_of_week,
                )
                .order_by(
                    TeacherAvailabilitySlot.start_minutes,
                    TeacherAvailabilitySlot.end_minutes,
                )
                .all()
            )
        except SQLAlchemyError as e:
            self.logger.error(
                f"Error getting slots for teacher {teacher_id} on day {day_of_week}: {str(e)}"
            )
            raise RepositoryException(f"Failed to get availability slots: {str(e)}") from e

    def has_any_slots(self, teacher_id: str) -> bool:
        return self.exists(teacher_id=teacher_id)

    def replace_slots(
        self, teacher_id: str, windows: Iterable[Tuple[int, int, int]]
    ) -> List[TeacherAvailabilitySlot]:
        """
        Replace every weekly window of a teacher.

        Args:
            teacher_id: Teacher whose week is replaced
            windows: (day_of_week, start_minutes, end_minutes) triples

        Returns:
            The newly created slots
        """
        try:
            self.db.query(TeacherAvailabilitySlot).filter(
                TeacherAvailabilitySlot.teacher_id == teacher_id
            ).delete(synchronize_session=False)

            created = [
                TeacherAvailabilitySlot(
                    teacher_id=teacher_id,
                    day_of_week=day_of_week,
                    start_minutes=start,
                    end_minutes=end,
                )
                for day_of_week, start, end in windows
            ]
            self.db.add_all(created)
            self.db.flush()
            return created
        except SQLAlchemyError as e:
            self.logger.error(f"Error replacing slots for teacher {teacher_id}: {str(e)}")
            self.db.rollback()
            raise RepositoryException(f"Failed to replace availability slots: {str(e)}") from e
