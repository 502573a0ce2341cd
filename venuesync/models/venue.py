from __future__ import annotations

import uuid
from typing import TYPE_CHECKING

from sqlalchemy import ForeignKey, JSON, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from venuesync.db.base import Base
from venuesync.models._mixins import TimestampMixin

if TYPE_CHECKING:
    from venuesync.models.user import User

STATUS_PENDING = "pending"
STATUS_APPROVED = "approved"
STATUS_REJECTED = "rejected"


class Venue(Base, TimestampMixin):
    __tablename__ = "venues"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    owner_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)

    # Only approved venues are offered in availability searches
    status: Mapped[str] = mapped_column(String(16), nullable=False, default=STATUS_PENDING, index=True)

    # {"default_weekly": {"0".."6": [..]}, "date_overrides": {"YYYY-MM-DD": [..]}}
    collaboration_schedule: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    owner: Mapped["User"] = relationship("User", back_populates="venues")
