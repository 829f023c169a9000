# backend/lesson_engine/models/holiday.py
"""Holiday calendar: explicit dates in the business timezone, no recurrence rules."""

from typing import Any

from sqlalchemy import Column, Date, String

from ..core.ulid_helper import generate_ulid
from ..database import Base
from .types import UTCDateTime, utc_now


class Holiday(Base):
    __tablename__ = "holidays"

    id = Column(String(26), primary_key=True, default=generate_ulid)
    date_key = Column(Date, nullable=False, unique=True, index=True)
    name = Column(String(255), nullable=True)
    created_at = Column(UTCDateTime, nullable=False, default=utc_now)

    def __repr__(self) -> str:
        return f"<Holiday {self.date_key.isoformat()}: {self.name or '-'}>"

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "date": self.date_key.isoformat(), "name": self.name}
