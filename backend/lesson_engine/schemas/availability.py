"""
Teacher availability and slot proposal schemas.

Times of day travel as "HH:MM" in the business timezone; "24:00" closes a
window at midnight.
"""

from datetime import date as Date, datetime
from typing import Dict, List

from pydantic import Field, field_validator, model_validator

from ..utils.time_utils import parse_time_str
from .base import StandardizedModel, StrictRequestModel


class WeeklySlotIn(StrictRequestModel):
    day_of_week: int = Field(..., ge=0, le=6, description="0 = Sunday")
    start_time: str = Field(..., examples=["14:00"])
    end_time: str = Field(..., examples=["16:00"])

    @field_validator("start_time", "end_time")
    @classmethod
    def _validate_time(cls, value: str) -> str:
        parse_time_str(value)
        return value.strip()

    @model_validator(mode="after")
    def _validate_order(self) -> "WeeklySlotIn":
        if parse_time_str(self.start_time) >= parse_time_str(self.end_time):
            raise ValueError("start_time must be before end_time")
        return self

    def as_minutes(self) -> tuple:
        return (
            self.day_of_week,
            parse_time_str(self.start_time),
            parse_time_str(self.end_time),
        )


class WeeklyAvailabilityUpdate(StrictRequestModel):
    slots: List[WeeklySlotIn] = Field(default_factory=list)


class WeeklySlotResponse(StandardizedModel):
    id: str
    day_of_week: int
    start_time: str
    end_time: str


class WeeklyAvailabilityResponse(StandardizedModel):
    teacher_id: str
    open_door: bool = Field(
        ..., description="True when no window is configured and the teacher is always available"
    )
    slots: List[WeeklySlotResponse]


class AvailableDatesResponse(StandardizedModel):
    teacher_id: str
    duration_minutes: int
    dates: List[Date]


class SlotProposalResponse(StandardizedModel):
    start_time: str
    end_time: str
    start_at: datetime
    end_at: datetime


class SlotsForDateResponse(StandardizedModel):
    teacher_id: str
    date: Date
    duration_minutes: int
    slots: List[SlotProposalResponse]


class TeachersAvailableAtResponse(StandardizedModel):
    instant: datetime
    teachers: Dict[str, bool]
