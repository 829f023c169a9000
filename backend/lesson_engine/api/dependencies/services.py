# backend/lesson_engine/api/dependencies/services.py
"""
Service layer dependencies for dependency injection.

This module provides factory functions that create service instances
with their required dependencies properly injected. Tests override
get_business_clock and get_notification_dispatcher.
"""

from functools import lru_cache

from fastapi import Depends
from sqlalchemy.orm import Session

from ...core.clock import BusinessClock, get_clock
from ...notifications.dispatcher import LoggingNotificationDispatcher, NotificationDispatcher
from ...notifications.lesson_request_notifier import LessonRequestNotifier
from ...services.availability_index import AvailabilityIndex
from ...services.holiday_service import HolidayService
from ...services.lesson_request_service import LessonRequestService
from ...services.slot_proposal_service import SlotProposalService
from .database import get_db


def get_business_clock() -> BusinessClock:
    return get_clock()


@lru_cache(maxsize=1)
def _default_dispatcher() -> NotificationDispatcher:
    return LoggingNotificationDispatcher()


def get_notification_dispatcher() -> NotificationDispatcher:
    return _default_dispatcher()


def get_lesson_request_notifier(
    dispatcher: NotificationDispatcher = Depends(get_notification_dispatcher),
) -> LessonRequestNotifier:
    return LessonRequestNotifier(dispatcher)


def get_lesson_request_service(
    db: Session = Depends(get_db),
    clock: BusinessClock = Depends(get_business_clock),
) -> LessonRequestService:
    return LessonRequestService(db, clock)


def get_slot_proposal_service(
    db: Session = Depends(get_db),
    clock: BusinessClock = Depends(get_business_clock),
) -> SlotProposalService:
    return SlotProposalService(db, clock)


def get_availability_index(
    db: Session = Depends(get_db),
    clock: BusinessClock = Depends(get_business_clock),
) -> AvailabilityIndex:
    return AvailabilityIndex(db, clock)


def get_holiday_service(
    db: Session = Depends(get_db),
    clock: BusinessClock = Depends(get_business_clock),
) -> HolidayService:
    return HolidayService(db, clock)
