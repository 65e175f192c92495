"""Leave records: full-day date ranges and partial-day time windows."""

import datetime as dt
import uuid
from enum import Enum
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator, model_validator

from salon_scheduler.time_model import normalize_time


class LeaveType(str, Enum):
    FULL_DAY = "FULL_DAY"
    PARTIAL_DAY = "PARTIAL_DAY"


def _leave_id() -> str:
    return f"LV-{uuid.uuid4().hex[:8].upper()}"


class FullDayLeave(BaseModel):
    """Every slot on every date in [start_date, end_date] is blocked."""

    model_config = ConfigDict(extra="forbid")

    type: Literal[LeaveType.FULL_DAY] = LeaveType.FULL_DAY
    leave_id: str = Field(default_factory=_leave_id)
    provider_id: str
    start_date: dt.date
    end_date: dt.date
    reason: Optional[str] = None
    active: bool = True

    @model_validator(mode="after")
    def _check_range(self) -> "FullDayLeave":
        if self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self

    def covers(self, day: dt.date) -> bool:
        return self.start_date <= day <= self.end_date


class PartialDayLeave(BaseModel):
    """Slots on ``date`` whose start falls in [start_time, end_time) are blocked."""

    model_config = ConfigDict(extra="forbid")

    type: Literal[LeaveType.PARTIAL_DAY] = LeaveType.PARTIAL_DAY
    leave_id: str = Field(default_factory=_leave_id)
    provider_id: str
    date: dt.date
    start_time: str
    end_time: str
    reason: Optional[str] = None
    active: bool = True

    @field_validator("start_time", "end_time")
    @classmethod
    def _check_label(cls, value: str) -> str:
        normalize_time(value)
        return value

    @model_validator(mode="after")
    def _check_window(self) -> "PartialDayLeave":
        if self.end_minutes <= self.start_minutes:
            raise ValueError("end_time must be after start_time")
        return self

    @property
    def start_minutes(self) -> int:
        return normalize_time(self.start_time)

    @property
    def end_minutes(self) -> int:
        return normalize_time(self.end_time)

    def covers(self, day: dt.date) -> bool:
        return self.date == day


Leave = Annotated[Union[FullDayLeave, PartialDayLeave], Field(discriminator="type")]

LeaveAdapter: TypeAdapter[Leave] = TypeAdapter(Leave)
