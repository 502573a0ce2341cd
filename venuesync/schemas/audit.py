from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, field_validator

from venuesync.core.timeutil import as_utc


class _Timestamped(BaseModel):
    created_at: datetime

    class Config:
        from_attributes = True

    @field_validator("created_at")
    @classmethod
    def _as_utc(cls, v: datetime) -> datetime:
        return as_utc(v)


class AuditLogOut(_Timestamped):
    id: str
    action_type: str
    target_type: str
    target_id: str
    summary: str
    diff_json: dict | None


class AuthEventOut(_Timestamped):
    """A sign-in attempt on the caller's account."""

    id: str
    event_type: str
    failure_reason: str
    ip_address: str
