# backend/lesson_engine/api/dependencies/__init__.py
"""
FastAPI dependencies for the lesson engine API.

Usage:
    from lesson_engine.api.dependencies import get_db, get_lesson_request_service
"""

from .database import get_db
from .services import (
    get_availability_index,
    get_business_clock,
    get_holiday_service,
    get_lesson_request_notifier,
    get_lesson_request_service,
    get_notification_dispatcher,
    get_slot_proposal_service,
)

__all__ = [
    "get_availability_index",
    "get_business_clock",
    "get_db",
    "get_holiday_service",
    "get_lesson_request_notifier",
    "get_lesson_request_service",
    "get_notification_dispatcher",
    "get_slot_proposal_service",
]
