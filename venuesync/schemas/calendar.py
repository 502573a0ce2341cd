from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class CalendarStatus(BaseModel):
    connected: bool


class AuthorizeResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    authorization_url: str = Field(alias="authorizationUrl")


class SyncRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    venue_id: str | None = Field(default=None, alias="venueId")
    look_ahead_days: int = Field(default=90, alias="lookAheadDays", ge=1, le=365)


class SyncResponse(BaseModel):
    success: bool
    message: str
    count: int


class WebhookSetupRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    venue_id: str | None = Field(default=None, alias="venueId")


class WebhookSetupResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool
    message: str
    expires_at: datetime = Field(alias="expiresAt")


class CalendarViewEvent(BaseModel):
    """An entry for the calendar widget: business-hours background or a busy block."""

    model_config = ConfigDict(populate_by_name=True)

    id: str | None = None
    title: str
    start: datetime
    end: datetime
    all_day: bool = Field(default=False, alias="allDay")
    display: str = "auto"  # auto | background
    background_color: str = Field(alias="backgroundColor")
    source: str  # business_hours | manual | google
    description: str | None = None
    recurring: bool = False
    recurrence_rule: str | None = Field(default=None, alias="recurrenceRule")


class VenueAvailabilityCheck(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    available_venue_ids: list[str] = Field(alias="availableVenueIds")
    unavailable_venue_ids: list[str] = Field(alias="unavailableVenueIds")
