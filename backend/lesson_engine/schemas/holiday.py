"""Holiday calendar schemas."""

from datetime import date as Date
from typing import List, Optional

from pydantic import Field

from .base import StandardizedModel, StrictRequestModel


class HolidayCreate(StrictRequestModel):
    date: Date
    name: Optional[str] = Field(default=None, max_length=255)


class HolidayResponse(StandardizedModel):
    id: str
    date: Date = Field(..., validation_alias="date_key")
    name: Optional[str] = None


class HolidayListResponse(StandardizedModel):
    start: Date
    end: Date
    holidays: List[HolidayResponse]
