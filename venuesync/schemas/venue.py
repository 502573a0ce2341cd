from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

CollaborationKind = Literal["minimum_spend", "revenue_share", "fixed_rental", "free_promotion"]


class CollaborationType(BaseModel):
    type: CollaborationKind
    amount: float = 0
    description: str | None = None


class CollaborationSchedule(BaseModel):
    # keys "0".."6", 0 = Sunday
    default_weekly: dict[str, list[CollaborationType]] = Field(default_factory=dict)
    # keys "YYYY-MM-DD"
    date_overrides: dict[str, list[CollaborationType]] = Field(default_factory=dict)


class CollaborationScheduleUpdate(BaseModel):
    schedule: CollaborationSchedule


class VenueCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)


class VenueOut(BaseModel):
    id: str
    owner_id: str
    name: str
    status: str

    class Config:
        from_attributes = True


class CalendarDay(BaseModel):
    date: str
    status: Literal["blocked", "available"]
    collaboration_types: list[CollaborationType]
    source: Literal["blocked_time", "collaboration_rule"]
    blocked_reason: str | None = None


class AvailabilityCalendarResponse(BaseModel):
    success: bool = True
    venue_id: str
    start_date: str
    end_date: str
    calendar_data: list[CalendarDay]
