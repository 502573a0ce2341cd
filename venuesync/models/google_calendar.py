from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from venuesync.db.base import Base
from venuesync.models._mixins import TimestampMixin


class GoogleCalendarToken(Base, TimestampMixin):
    __tablename__ = "google_calendar_tokens"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"), nullable=False, unique=True)

    access_token: Mapped[str] = mapped_column(Text, nullable=False)
    refresh_token: Mapped[str] = mapped_column(Text, nullable=False, default="")
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    calendar_id: Mapped[str | None] = mapped_column(String(500), nullable=True)


class GoogleCalendarWebhook(Base, TimestampMixin):
    """A push notification channel watching one calendar on behalf of one venue."""

    __tablename__ = "google_calendar_webhooks"
    __table_args__ = (UniqueConstraint("venue_id", "user_id", "calendar_id", name="uq_google_calendar_webhook_scope"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    channel_id: Mapped[str] = mapped_column(String(64), nullable=False, unique=True, index=True)
    resource_id: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    calendar_id: Mapped[str] = mapped_column(String(500), nullable=False)

    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"), nullable=False)
    venue_id: Mapped[str] = mapped_column(String(36), ForeignKey("venues.id"), nullable=False, index=True)

    expiration: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
