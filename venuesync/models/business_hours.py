from __future__ import annotations

import uuid
from datetime import time

from sqlalchemy import ForeignKey, JSON, String, Time
from sqlalchemy.orm import Mapped, mapped_column

from venuesync.db.base import Base
from venuesync.models._mixins import TimestampMixin


class VenueBusinessHours(Base, TimestampMixin):
    __tablename__ = "venue_business_hours"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    venue_id: Mapped[str] = mapped_column(String(36), ForeignKey("venues.id"), nullable=False, index=True)

    # 0 = Sunday .. 6 = Saturday
    days_of_week: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    # Local time
    start_time: Mapped[time] = mapped_column(Time, nullable=False)
    end_time: Mapped[time] = mapped_column(Time, nullable=False)
