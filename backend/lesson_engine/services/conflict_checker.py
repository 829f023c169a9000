# backend/lesson_engine/services/conflict_checker.py
"""
Conflict Checker Service

Detects overlaps between a candidate interval and a teacher's existing,
non-cancelled lessons. Intervals are half-open: a lesson ending at 15:00
does not conflict with one starting at 15:00.
"""

from datetime import date, datetime, timedelta
import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from ..core.clock import BusinessClock
from ..models.lesson import Lesson
from ..repositories.factory import RepositoryFactory
from ..utils.time_utils import MINUTES_PER_DAY, TimeWindow
from .base import BaseService

logger = logging.getLogger(__name__)


def overlaps(a_start, a_end, b_start, b_end) -> bool:
    """Half-open interval overlap; works for minutes and datetimes alike."""
    return a_start < b_end and b_start < a_end


class ConflictChecker(BaseService):
    """
    Service for checking lesson conflicts.

    Read-only: it never mutates lessons.
    """

    overlaps = staticmethod(overlaps)

    def __init__(
        self,
        db: Session,
        clock: Optional[BusinessClock] = None,
        repository=None,
    ):
        super().__init__(db, clock)
        self.repository = repository or RepositoryFactory.create_conflict_checker_repository(db)

    @BaseService.measure_operation("busy_intervals")
    def busy_intervals(self, teacher_id: str, day: date) -> List[TimeWindow]:
        """
        Minute-of-day intervals occupied by the teacher's lessons on a local date.

        Lessons crossing midnight are clipped to [0, 1440].
        """
        day_start = self.clock.start_of_day(day)
        day_end = self.clock.end_of_day(day)
        lessons = self.repository.get_active_lessons_overlapping(teacher_id, day_start, day_end)

        busy = []
        for lesson in lessons:
            start = (
                self.clock.minute_of_day(lesson.start_at)
                if lesson.start_at > day_start
                else 0
            )
            end = (
                self.clock.minute_of_day(lesson.end_at)
                if lesson.end_at < day_end
                else MINUTES_PER_DAY
            )
            if start < end:
                busy.append(TimeWindow(start, end))
        return sorted(busy)

    @BaseService.measure_operation("find_conflicts")
    def find_conflicts(
        self,
        teacher_id: str,
        start_at: datetime,
        duration_minutes: int,
        exclude_lesson_id: Optional[str] = None,
    ) -> List[Lesson]:
        """Non-cancelled lessons of the teacher overlapping [start_at, start_at + duration)."""
        end_at = start_at + timedelta(minutes=duration_minutes)
        conflicts = self.repository.get_active_lessons_overlapping(
            teacher_id, start_at, end_at, exclude_lesson_id=exclude_lesson_id
        )
        if conflicts:
            self.logger.debug(
                f"Found {len(conflicts)} conflicting lessons for teacher {teacher_id}",
                extra={"teacher_id": teacher_id, "start_at": start_at.isoformat()},
            )
        return conflicts

    def has_conflict(
        self,
        teacher_id: str,
        start_at: datetime,
        duration_minutes: int,
        exclude_lesson_id: Optional[str] = None,
    ) -> bool:
        return bool(
            self.find_conflicts(
                teacher_id, start_at, duration_minutes, exclude_lesson_id=exclude_lesson_id
            )
        )
