from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, Query
from sqlalchemy import select
from sqlalchemy.orm import Session

from venuesync.core.deps import get_current_user, get_db
from venuesync.models.audit_log import AuditLog
from venuesync.models.auth_event import AuthEvent
from venuesync.models.user import User
from venuesync.schemas.audit import AuditLogOut, AuthEventOut

router = APIRouter()

MAX_ROWS = 500


@router.get("/audit-logs", response_model=list[AuditLogOut])
def list_audit_logs(
    from_: datetime | None = Query(default=None, alias="from"),
    to: datetime | None = None,
    action_type: str | None = None,
    target_id: str | None = None,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """The caller's own audit trail, newest first."""
    q = select(AuditLog).where(AuditLog.actor_user_id == user.id).order_by(AuditLog.created_at.desc())
    if from_:
        q = q.where(AuditLog.created_at >= from_)
    if to:
        q = q.where(AuditLog.created_at <= to)
    if action_type:
        q = q.where(AuditLog.action_type == action_type)
    if target_id:
        q = q.where(AuditLog.target_id == target_id)

    return db.execute(q.limit(MAX_ROWS)).scalars().all()


@router.get("/auth-events", response_model=list[AuthEventOut])
def list_auth_events(limit: int = Query(default=50, ge=1, le=MAX_ROWS), db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    q = select(AuthEvent).where(AuthEvent.user_id == user.id).order_by(AuthEvent.created_at.desc()).limit(limit)
    return db.execute(q).scalars().all()
