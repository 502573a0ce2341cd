from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from venuesync.db.base import Base
from venuesync.models._mixins import TimestampMixin

SOURCE_MANUAL = "manual"
SOURCE_GOOGLE = "google"


class VenueAvailability(Base, TimestampMixin):
    """A span during which a venue is unavailable."""

    __tablename__ = "venue_availability"
    __table_args__ = (UniqueConstraint("venue_id", "source", "google_event_id", name="uq_venue_availability_remote"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    venue_id: Mapped[str] = mapped_column(String(36), ForeignKey("venues.id"), nullable=False, index=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    start_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    end_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    all_day: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    recurring: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    recurrence_rule: Mapped[str | None] = mapped_column(String(512), nullable=True)

    # manual | google
    source: Mapped[str] = mapped_column(String(16), nullable=False, default=SOURCE_MANUAL)
    google_event_id: Mapped[str | None] = mapped_column(String(255), nullable=True)

    created_by_user_id: Mapped[str | None] = mapped_column(String(36), ForeignKey("users.id"), nullable=True)
