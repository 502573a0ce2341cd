from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Index, JSON, String
from sqlalchemy.orm import Mapped, mapped_column

from venuesync.core.timeutil import utcnow
from venuesync.db.base import Base


class AuditLog(Base):
    """State changes made through the API or operator scripts (actor is None for scripts)."""

    __tablename__ = "audit_logs"
    __table_args__ = (
        Index("ix_audit_logs_actor_created", "actor_user_id", "created_at"),
        Index("ix_audit_logs_target", "target_type", "target_id"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    actor_user_id: Mapped[str | None] = mapped_column(String(36), ForeignKey("users.id"), nullable=True)

    # e.g. CALENDAR_SYNC, WEBHOOK_SETUP, BUSINESS_HOURS_UPDATE
    action_type: Mapped[str] = mapped_column(String(64), nullable=False)
    # venue | venue_availability | user | webhook
    target_type: Mapped[str] = mapped_column(String(32), nullable=False, default="")
    target_id: Mapped[str] = mapped_column(String(36), nullable=False, default="")

    summary: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    diff_json: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    ip_address: Mapped[str] = mapped_column(String(64), nullable=False, default="")
    user_agent: Mapped[str] = mapped_column(String(255), nullable=False, default="")

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
