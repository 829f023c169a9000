# backend/lesson_engine/services/holiday_service.py
"""Holiday calendar administration."""

from datetime import date
import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from ..core.clock import BusinessClock
from ..core.exceptions import ValidationException
from ..models.holiday import Holiday
from ..repositories.factory import RepositoryFactory
from .base import BaseService

logger = logging.getLogger(__name__)


class HolidayService(BaseService):
    def __init__(self, db: Session, clock: Optional[BusinessClock] = None, repository=None):
        super().__init__(db, clock)
        self.repository = repository or RepositoryFactory.create_holiday_repository(db)

    def is_holiday(self, day: date) -> bool:
        return self.repository.is_holiday(day)

    @BaseService.measure_operation("list_holidays")
    def list_holidays(self, start: date, end: date) -> List[Holiday]:
        if end < start:
            raise ValidationException("end date must not be before start date")
        return self.repository.list_in_range(start, end)

    @BaseService.measure_operation("add_holiday")
    def add_holiday(self, day: date, name: Optional[str] = None) -> Holiday:
        """Mark a date as a holiday. Adding an existing date returns the existing row."""
        existing = self.repository.get_by_date(day)
        if existing is not None:
            return existing

        with self.transaction():
            holiday = self.repository.create(date_key=day, name=name)

        self.log_operation("add_holiday", date=day.isoformat())
        return holiday

    @BaseService.measure_operation("remove_holiday")
    def remove_holiday(self, day: date) -> bool:
        with self.transaction():
            removed = self.repository.delete_by_date(day)
        if removed:
            self.log_operation("remove_holiday", date=day.isoformat())
        return removed
