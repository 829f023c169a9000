# backend/lesson_engine/services/change_policy.py
"""
Change Policy

Decides whether a lesson may still be changed through self-service:

- a lesson that falls on a holiday cannot be changed;
- otherwise the lesson must start at least N hours from now, where N is
  the enrollment override, else the partner-school notice, else the
  school default.

All dates and "now" come from the business clock.
"""

from datetime import datetime
import logging
from typing import Optional

from sqlalchemy.orm import Session

from ..core.clock import BusinessClock
from ..core.config import settings
from ..core.exceptions import InsufficientNoticeException, PolicyViolationException
from ..models.enrollment import Enrollment
from ..models.lesson import Lesson
from ..repositories.factory import RepositoryFactory
from .base import BaseService

logger = logging.getLogger(__name__)


class ChangePolicy(BaseService):
    def __init__(
        self,
        db: Session,
        clock: Optional[BusinessClock] = None,
        holiday_repository=None,
    ):
        super().__init__(db, clock)
        self.holiday_repository = (
            holiday_repository or RepositoryFactory.create_holiday_repository(db)
        )

    def advance_notice_threshold_hours(self, enrollment: Enrollment) -> int:
        if enrollment.notice_override_hours is not None:
            return int(enrollment.notice_override_hours)
        if (enrollment.source_school or "").strip() == settings.partner_school_tag:
            return settings.partner_notice_hours
        return settings.default_notice_hours

    def is_change_allowed(
        self, lesson: Lesson, enrollment: Enrollment, now: Optional[datetime] = None
    ) -> bool:
        try:
            self.check_change_allowed(lesson, enrollment, now)
        except PolicyViolationException:
            return False
        return True

    def check_change_allowed(
        self, lesson: Lesson, enrollment: Enrollment, now: Optional[datetime] = None
    ) -> None:
        """
        Raise PolicyViolationException when the lesson can no longer be changed.

        The notice boundary is inclusive: exactly N hours ahead is allowed.
        """
        lesson_day = self.clock.local_date(lesson.start_at)
        if self.holiday_repository.is_holiday(lesson_day):
            raise PolicyViolationException(
                "Lessons scheduled on a holiday cannot be changed",
                code="LESSON_ON_HOLIDAY",
                details={"lesson_id": lesson.id, "date": lesson_day.isoformat()},
            )

        required = self.advance_notice_threshold_hours(enrollment)
        provided = self.clock.hours_until(lesson.start_at, now or self.clock.now())
        if provided < required:
            self.logger.info(
                f"Change blocked for lesson {lesson.id}: {provided:.2f}h notice, {required}h required",
                extra={"lesson_id": lesson.id, "enrollment_id": enrollment.id},
            )
            raise InsufficientNoticeException(required_hours=required, provided_hours=provided)

    def check_requested_start(self, lesson: Lesson, requested_start_at: datetime) -> None:
        """Validate the start a student asks for against the original date and the calendar."""
        requested_day = self.clock.local_date(requested_start_at)
        original_day = self.clock.local_date(lesson.start_at)

        if requested_start_at < self.clock.now():
            raise PolicyViolationException(
                "The requested time is in the past",
                code="REQUESTED_START_IN_PAST",
                details={"requested_start_at": requested_start_at.isoformat()},
            )
        if requested_day < original_day:
            raise PolicyViolationException(
                "The new date cannot be before the original lesson date",
                code="REQUESTED_DATE_BEFORE_ORIGINAL",
                details={
                    "requested_date": requested_day.isoformat(),
                    "original_date": original_day.isoformat(),
                },
            )
        if self.holiday_repository.is_holiday(requested_day):
            raise PolicyViolationException(
                "The requested date is a holiday",
                code="REQUESTED_DATE_ON_HOLIDAY",
                details={"requested_date": requested_day.isoformat()},
            )
