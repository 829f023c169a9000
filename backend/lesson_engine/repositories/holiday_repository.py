# backend/lesson_engine/repositories/holiday_repository.py
"""Holiday calendar lookups keyed by business-timezone calendar date."""

from datetime import date
import logging
from typing import List, Optional, Set

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.holiday import Holiday
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class HolidayRepository(BaseRepository[Holiday]):
    def __init__(self, db: Session):
        super().__init__(db, Holiday)

    def is_holiday(self, day: date) -> bool:
        return self.exists(date_key=day)

    def get_by_date(self, day: date) -> Optional[Holiday]:
        try:
            return self.db.query(Holiday).filter(Holiday.date_key == day).first()
        except SQLAlchemyError as e:
            self.logger.error(f"Error getting holiday for {day}: {str(e)}")
            raise RepositoryException(f"Failed to get holiday: {str(e)}") from e

    def dates_in_range(self, start: date, end: date) -> Set[date]:
        """Holiday dates between start and end, both inclusive."""
        try:
            rows = (
                self.db.query(Holiday.date_key)
                .filter(Holiday.date_key >= start, Holiday.date_key <= end)
                .all()
            )
            return {row[0] for row in rows}
        except SQLAlchemyError as e:
            self.logger.error(f"Error getting holidays between {start} and {end}: {str(e)}")
            raise RepositoryException(f"Failed to get holidays: {str(e)}") from e

    def list_in_range(self, start: date, end: date) -> List[Holiday]:
        try:
            return (
                self.db.query(Holiday)
                .filter(Holiday.date_key >= start, Holiday.date_key <= end)
                .order_by(Holiday.date_key)
                .all()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error listing holidays between {start} and {end}: {str(e)}")
            raise RepositoryException(f"Failed to list holidays: {str(e)}") from e

    def delete_by_date(self, day: date) -> bool:
        holiday = self.get_by_date(day)
        if holiday is None:
            return False
        return self.delete(holiday.id)
