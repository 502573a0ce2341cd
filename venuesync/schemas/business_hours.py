from __future__ import annotations

from datetime import time

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


def _hhmm(value: str) -> str:
    try:
        parsed = time.fromisoformat(value)
    except (TypeError, ValueError):
        raise ValueError("time must be HH:MM")
    return parsed.strftime("%H:%M")


class BusinessHour(BaseModel):
    """One weekly open window; ``daysOfWeek`` uses 0 = Sunday .. 6 = Saturday."""

    model_config = ConfigDict(populate_by_name=True)

    days_of_week: list[int] = Field(alias="daysOfWeek", min_length=1)
    start_time: str = Field(alias="startTime")
    end_time: str = Field(alias="endTime")

    @field_validator("days_of_week")
    @classmethod
    def _check_days(cls, v: list[int]) -> list[int]:
        if any(d < 0 or d > 6 for d in v):
            raise ValueError("daysOfWeek entries must be between 0 and 6")
        return sorted(set(v))

    @field_validator("start_time", "end_time")
    @classmethod
    def _check_time(cls, v: str) -> str:
        return _hhmm(v)

    @model_validator(mode="after")
    def _check_window(self) -> "BusinessHour":
        # Windows stay within one day; overnight hours are split by the caller.
        if self.end_time <= self.start_time:
            raise ValueError("endTime must be after startTime")
        return self


class BusinessHoursSave(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    venue_id: str | None = Field(default=None, alias="venueId")
    business_hours: list[BusinessHour] | None = Field(default=None, alias="businessHours")
