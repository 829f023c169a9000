# backend/tests/conftest.py
"""
Pytest configuration for the lesson engine.

Every test gets its own SQLite file under tmp_path, so commits made by the
services never leak between tests. "Now" is frozen on Monday 2025-06-02
09:00 in the business timezone (12:00 UTC).
"""

import os

# Set testing mode BEFORE any lesson_engine imports
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")

from datetime import datetime
from typing import Callable, List

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from lesson_engine.api.dependencies import get_business_clock, get_db, get_notification_dispatcher
from lesson_engine.core.clock import FixedClock
from lesson_engine.database import Base
from lesson_engine.main import app
import lesson_engine.models  # noqa: F401
from lesson_engine.notifications.dispatcher import NotificationMessage

BUSINESS_TZ = "America/Sao_Paulo"
NOW_LOCAL = datetime(2025, 6, 2, 9, 0)


class RecordingDispatcher:
    """Collects dispatched messages instead of delivering them."""

    def __init__(self) -> None:
        self.messages: List[NotificationMessage] = []

    def dispatch(self, message: NotificationMessage) -> None:
        self.messages.append(message)

    def kinds(self) -> List[str]:
        return [message.kind.value for message in self.messages]


@pytest.fixture
def engine(tmp_path) -> Engine:
    test_engine = create_engine(
        f"sqlite:///{tmp_path / 'lesson_engine_test.db'}",
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(bind=test_engine)
    yield test_engine
    test_engine.dispose()


@pytest.fixture
def session_factory(engine: Engine) -> Callable[[], Session]:
    return sessionmaker(autocommit=False, autoflush=False, bind=engine, expire_on_commit=False)


@pytest.fixture(scope="function")
def db(session_factory):
    """Create a new database session for each test."""
    session = session_factory()

    yield session

    # Cleanup
    session.rollback()
    session.close()


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(NOW_LOCAL, BUSINESS_TZ)


@pytest.fixture
def dispatcher() -> RecordingDispatcher:
    return RecordingDispatcher()


@pytest.fixture
def client(db: Session, clock: FixedClock, dispatcher: RecordingDispatcher):
    """Create a test client bound to the test database, clock and dispatcher."""

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_business_clock] = lambda: clock
    app.dependency_overrides[get_notification_dispatcher] = lambda: dispatcher

    # Don't use context manager - lifespan stays off
    test_client = TestClient(app)

    yield test_client

    # Cleanup
    app.dependency_overrides.clear()
    test_client.close()
