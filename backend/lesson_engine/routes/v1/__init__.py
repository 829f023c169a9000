# backend/lesson_engine/routes/v1/__init__.py
"""
API v1 Routes

Versioned API endpoints under /api/v1.
"""

from . import availability, holidays, lesson_requests

__all__ = ["availability", "holidays", "lesson_requests"]
