from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field, field_validator

from venuesync.core.timeutil import as_utc


class AvailabilityBlockCreate(BaseModel):
    venue_id: str
    title: str = Field(default="Unavailable", max_length=255)
    description: str | None = None
    start_time: datetime
    end_time: datetime
    all_day: bool = False


class AvailabilityBlockOut(BaseModel):
    id: str
    venue_id: str
    title: str
    description: str | None
    start_time: datetime
    end_time: datetime
    all_day: bool
    recurring: bool
    recurrence_rule: str | None
    source: str
    google_event_id: str | None

    class Config:
        from_attributes = True

    @field_validator("start_time", "end_time")
    @classmethod
    def _as_utc(cls, v: datetime) -> datetime:
        return as_utc(v)


class AvailabilityListResponse(BaseModel):
    success: bool = True
    data: list[AvailabilityBlockOut]
