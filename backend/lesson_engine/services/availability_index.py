# backend/lesson_engine/services/availability_index.py
"""
Availability Index

Answers "when does this teacher work?" from the recurring weekly windows.

Open-door policy: a teacher who has configured no window at all is
available all day, every day; only existing bookings limit them. A teacher
with windows on other weekdays only is unavailable on this one.
"""

from datetime import datetime
import logging
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from sqlalchemy.orm import Session

from ..core.clock import BusinessClock
from ..core.exceptions import NotFoundException, ValidationException
from ..models.availability import TeacherAvailabilitySlot
from ..repositories.factory import RepositoryFactory
from ..utils.time_utils import MINUTES_PER_DAY, TimeWindow, validate_window
from .base import BaseService

logger = logging.getLogger(__name__)

FULL_DAY = TimeWindow(0, MINUTES_PER_DAY)


class AvailabilityIndex(BaseService):
    def __init__(
        self,
        db: Session,
        clock: Optional[BusinessClock] = None,
        availability_repository=None,
        teacher_repository=None,
    ):
        super().__init__(db, clock)
        self.availability_repository = (
            availability_repository or RepositoryFactory.create_availability_repository(db)
        )
        self.teacher_repository = (
            teacher_repository or RepositoryFactory.create_teacher_repository(db)
        )

    def has_configured_slots(self, teacher_id: str) -> bool:
        return self.availability_repository.has_any_slots(teacher_id)

    def configured_slots(self, teacher_id: str) -> List[TeacherAvailabilitySlot]:
        """Stored windows of a teacher; empty means the open-door policy applies."""
        if not self.teacher_repository.exists(id=teacher_id):
            raise NotFoundException(f"Teacher {teacher_id} not found")
        return self.availability_repository.get_slots_for_teacher(teacher_id)

    @BaseService.measure_operation("slots_for_day")
    def slots_for_day(self, teacher_id: str, day_of_week: int) -> List[TimeWindow]:
        """
        Windows of a teacher on a weekday (0 = Sunday), sorted by (start, end).

        Overlapping windows are returned as configured, not merged.
        """
        if not 0 <= day_of_week <= 6:
            raise ValidationException(f"day_of_week must be between 0 and 6, got {day_of_week}")

        slots = self.availability_repository.get_slots_for_day(teacher_id, day_of_week)
        if slots:
            return sorted(slot.window for slot in slots)
        if self.has_configured_slots(teacher_id):
            return []
        return [FULL_DAY]

    def weekly_slots(self, teacher_id: str) -> Dict[int, List[TimeWindow]]:
        """All seven weekdays at once, with the same open-door rule as slots_for_day."""
        slots = self.availability_repository.get_slots_for_teacher(teacher_id)
        if not slots:
            return {day: [FULL_DAY] for day in range(7)}

        week: Dict[int, List[TimeWindow]] = {day: [] for day in range(7)}
        for slot in slots:
            week[slot.day_of_week].append(slot.window)
        return {day: sorted(windows) for day, windows in week.items()}

    def is_available_at(self, teacher_id: str, instant: datetime) -> bool:
        """Whether the local minute of `instant` falls inside one of the teacher's windows."""
        day = self.clock.local_date(instant)
        minute = self.clock.minute_of_day(instant)
        windows = self.slots_for_day(teacher_id, self.clock.day_of_week(day))
        return any(window.start <= minute < window.end for window in windows)

    @BaseService.measure_operation("teachers_available_at")
    def teachers_available_at(self, instant: datetime) -> Dict[str, bool]:
        return {
            teacher.id: self.is_available_at(teacher.id, instant)
            for teacher in self.teacher_repository.get_active_teachers()
        }

    @BaseService.measure_operation("replace_weekly_slots")
    def replace_weekly_slots(
        self, teacher_id: str, slots: Iterable[Tuple[int, int, int]]
    ) -> List[TeacherAvailabilitySlot]:
        """
        Replace a teacher's whole week of windows.

        Args:
            teacher_id: Teacher to update
            slots: (day_of_week, start_minutes, end_minutes) triples; empty
                means "no restriction" under the open-door policy

        Raises:
            NotFoundException: Unknown teacher
            ValidationException: A window is out of bounds
        """
        if not self.teacher_repository.exists(id=teacher_id):
            raise NotFoundException(f"Teacher {teacher_id} not found")

        validated = self._validate_slots(list(slots))

        with self.transaction():
            created = self.availability_repository.replace_slots(teacher_id, validated)

        self.log_operation("replace_weekly_slots", teacher_id=teacher_id, slot_count=len(created))
        return created

    @staticmethod
    def _validate_slots(slots: Sequence[Tuple[int, int, int]]) -> List[Tuple[int, int, int]]:
        validated = []
        for day_of_week, start, end in slots:
            if not 0 <= day_of_week <= 6:
                raise ValidationException(
                    f"day_of_week must be between 0 and 6, got {day_of_week}",
                    details={"day_of_week": day_of_week},
                )
            try:
                window = validate_window(start, end)
            except ValueError as e:
                raise ValidationException(
                    str(e), details={"day_of_week": day_of_week, "start": start, "end": end}
                ) from e
            validated.append((day_of_week, window.start, window.end))
        return sorted(validated)
