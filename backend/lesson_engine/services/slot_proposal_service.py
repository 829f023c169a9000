# backend/lesson_engine/services/slot_proposal_service.py
"""
Slot Proposal Service

Proposes replacement dates and start times for a lesson that is being
rescheduled. Proposals are the teacher's weekly windows minus the
teacher's existing bookings, stepped at a fixed granularity from each
window's start. Everything here is a pure read.
"""

from dataclasses import dataclass
from datetime import date, datetime, timedelta
import logging
from typing import Collection, Dict, Iterator, List, Optional

from sqlalchemy.orm import Session

from ..core.clock import BusinessClock
from ..core.config import settings
from ..core.exceptions import ValidationException
from ..repositories.factory import RepositoryFactory
from ..utils.time_utils import TimeWindow, add_months, minutes_to_time_str
from .availability_index import AvailabilityIndex
from .base import BaseService
from .conflict_checker import ConflictChecker, overlaps

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SlotProposal:
    """A bookable start time on a local date."""

    day: date
    start_minutes: int
    end_minutes: int
    start_at: datetime

    @property
    def end_at(self) -> datetime:
        return self.start_at + timedelta(minutes=self.end_minutes - self.start_minutes)

    @property
    def start_label(self) -> str:
        return minutes_to_time_str(self.start_minutes)

    @property
    def end_label(self) -> str:
        return minutes_to_time_str(self.end_minutes)


class SlotProposalService(BaseService):
    def __init__(
        self,
        db: Session,
        clock: Optional[BusinessClock] = None,
        availability_index: Optional[AvailabilityIndex] = None,
        conflict_checker: Optional[ConflictChecker] = None,
        holiday_repository=None,
        step_minutes: Optional[int] = None,
    ):
        super().__init__(db, clock)
        self.availability_index = availability_index or AvailabilityIndex(db, self.clock)
        self.conflict_checker = conflict_checker or ConflictChecker(db, self.clock)
        self.holiday_repository = (
            holiday_repository or RepositoryFactory.create_holiday_repository(db)
        )
        self.step_minutes = step_minutes or settings.slot_step_minutes

    @BaseService.measure_operation("available_dates")
    def available_dates(
        self,
        teacher_id: str,
        original_lesson_start: datetime,
        duration_minutes: int,
        horizon_months: Optional[int] = None,
    ) -> Iterator[date]:
        """
        Lazily yield dates that have at least one free slot.

        The range is [today, today + horizon_months]. Only dates strictly after
        the original lesson's local date are considered, and holidays are
        skipped. Holidays and the weekly windows are loaded once up front;
        busy intervals are read per candidate date as the caller iterates.
        """
        self._validate_duration(duration_minutes)
        horizon = horizon_months if horizon_months is not None else settings.proposal_horizon_months

        today = self.clock.today()
        last_day = add_months(today, horizon)
        original_day = self.clock.local_date(original_lesson_start)
        holidays = self.holiday_repository.dates_in_range(today, last_day)
        week = self.availability_index.weekly_slots(teacher_id)

        return self._iter_available_dates(
            teacher_id, duration_minutes, today, last_day, original_day, holidays, week
        )

    def _iter_available_dates(
        self,
        teacher_id: str,
        duration_minutes: int,
        first_day: date,
        last_day: date,
        original_day: date,
        holidays: Collection[date],
        week: Dict[int, List[TimeWindow]],
    ) -> Iterator[date]:
        day = max(first_day, original_day + timedelta(days=1))
        while day <= last_day:
            if day not in holidays:
                windows = week[self.clock.day_of_week(day)]
                if windows and self._proposals(teacher_id, day, windows, duration_minutes):
                    yield day
            day += timedelta(days=1)

    @BaseService.measure_operation("slots_for_date")
    def slots_for_date(
        self, teacher_id: str, day: date, duration_minutes: int
    ) -> List[SlotProposal]:
        """
        Free start times of a teacher on a local date, sorted and de-duplicated.

        A holiday yields nothing; so do candidates starting before now.
        """
        self._validate_duration(duration_minutes)
        if self.holiday_repository.is_holiday(day):
            return []
        windows = self.availability_index.slots_for_day(teacher_id, self.clock.day_of_week(day))
        if not windows:
            return []
        return self._proposals(teacher_id, day, windows, duration_minutes)

    def _proposals(
        self,
        teacher_id: str,
        day: date,
        windows: List[TimeWindow],
        duration_minutes: int,
    ) -> List[SlotProposal]:
        busy = self.conflict_checker.busy_intervals(teacher_id, day)
        now = self.clock.now()

        proposals: Dict[int, SlotProposal] = {}
        for window in windows:
            start = window.start
            while start + duration_minutes <= window.end:
                end = start + duration_minutes
                if start not in proposals and not any(
                    overlaps(start, end, b.start, b.end) for b in busy
                ):
                    start_at = self.clock.local_to_utc(day, start)
                    if start_at >= now:
                        proposals[start] = SlotProposal(day, start, end, start_at)
                start += self.step_minutes

        return [proposals[start] for start in sorted(proposals)]

    @staticmethod
    def _validate_duration(duration_minutes: int) -> None:
        if duration_minutes <= 0:
            raise ValidationException(
                f"duration_minutes must be positive, got {duration_minutes}"
            )
