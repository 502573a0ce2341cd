from __future__ import annotations

import logging

from fastapi import HTTPException
from sqlalchemy import select
from sqlalchemy.orm import Session

from venuesync.core.security import verify_password
from venuesync.core.timeutil import utcnow
from venuesync.models.auth_event import LOGIN_FAIL, LOGIN_SUCCESS, AuthEvent
from venuesync.models.user import User

logger = logging.getLogger(__name__)


def normalize_email(email: str) -> str:
    return email.strip().lower()


def _record(db: Session, *, user: User | None, email: str, event_type: str, reason: str, ip: str, user_agent: str) -> None:
    db.add(
        AuthEvent(
            user_id=user.id if user else None,
            email=email,
            event_type=event_type,
            failure_reason=reason,
            ip_address=ip,
            user_agent=user_agent[:255],
        )
    )


def authenticate(db: Session, *, email: str, password: str, ip: str = "", user_agent: str = "") -> User:
    """Check credentials and record the attempt; raises 401 with a uniform message."""
    email_norm = normalize_email(email)
    user = db.execute(select(User).where(User.email == email_norm)).scalar_one_or_none()

    reason = ""
    if not user or not user.is_active:
        reason = "user_not_found_or_inactive"
    elif not verify_password(password, user.hashed_password):
        reason = "bad_password"

    if reason:
        _record(db, user=user, email=email_norm, event_type=LOGIN_FAIL, reason=reason, ip=ip, user_agent=user_agent)
        db.commit()
        logger.info("Login failed for %s: %s", email_norm, reason)
        raise HTTPException(status_code=401, detail="Invalid credentials")

    user.last_login_at = utcnow()
    _record(db, user=user, email=email_norm, event_type=LOGIN_SUCCESS, reason="", ip=ip, user_agent=user_agent)
    db.commit()
    return user
