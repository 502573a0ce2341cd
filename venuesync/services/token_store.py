from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Any, Mapping

from sqlalchemy import select
from sqlalchemy.orm import Session

from venuesync.core.config import get_settings
from venuesync.core.timeutil import as_utc, utcnow
from venuesync.models.google_calendar import GoogleCalendarToken
from venuesync.services.google_client import GoogleCalendarClient, GoogleCalendarError

logger = logging.getLogger(__name__)

DEFAULT_EXPIRES_IN = 3600


def _expiry_from(payload: Mapping[str, Any], now: datetime) -> datetime:
    try:
        expires_in = int(payload.get("expires_in") or DEFAULT_EXPIRES_IN)
    except (TypeError, ValueError):
        expires_in = DEFAULT_EXPIRES_IN
    return now + timedelta(seconds=expires_in)


def get_token_row(db: Session, user_id: str) -> GoogleCalendarToken | None:
    return db.execute(select(GoogleCalendarToken).where(GoogleCalendarToken.user_id == user_id)).scalar_one_or_none()


def has_connected_calendar(db: Session, user_id: str) -> bool:
    q = select(GoogleCalendarToken.id).where(GoogleCalendarToken.user_id == user_id).limit(1)
    return db.execute(q).first() is not None


async def get_valid_token(
    db: Session,
    google: GoogleCalendarClient,
    user_id: str,
    *,
    now: datetime | None = None,
) -> GoogleCalendarToken | None:
    """Return the user's token row, refreshing the access token when it is close to expiry.

    Returns None when the user has not connected a calendar or the refresh
    fails (network error, revoked grant). Callers treat None as "not connected".
    """
    settings = get_settings()
    if now is None:
        now = utcnow()

    token = get_token_row(db, user_id)
    if token is None:
        logger.info("No Google Calendar token stored for user %s", user_id)
        return None

    margin = timedelta(minutes=settings.token_refresh_margin_minutes)
    if as_utc(token.expires_at) > now + margin:
        return token

    if not token.refresh_token:
        logger.warning("Google token for user %s expired and has no refresh token", user_id)
        return None

    logger.info("Refreshing Google Calendar token for user %s", user_id)
    try:
        payload = await google.refresh_access_token(token.refresh_token)
    except GoogleCalendarError as e:
        logger.error("Token refresh failed for user %s: %s", user_id, e.message)
        return None

    access_token = payload.get("access_token")
    if not access_token:
        logger.error("No access token in refresh response for user %s", user_id)
        return None

    token.access_token = access_token
    token.expires_at = _expiry_from(payload, now)
    # Google only rotates the refresh token occasionally; keep the old one otherwise.
    if payload.get("refresh_token"):
        token.refresh_token = payload["refresh_token"]
    db.commit()
    db.refresh(token)
    return token


def save_tokens(
    db: Session,
    *,
    user_id: str,
    payload: Mapping[str, Any],
    calendar_id: str | None,
    now: datetime | None = None,
) -> GoogleCalendarToken:
    """Upsert the token row for a user from an authorization-code exchange."""
    if now is None:
        now = utcnow()

    token = get_token_row(db, user_id)
    if token is None:
        token = GoogleCalendarToken(user_id=user_id)
        db.add(token)

    token.access_token = payload["access_token"]
    if payload.get("refresh_token") or not token.refresh_token:
        token.refresh_token = payload.get("refresh_token") or ""
    token.expires_at = _expiry_from(payload, now)
    token.calendar_id = calendar_id
    db.commit()
    db.refresh(token)
    return token


def delete_tokens(db: Session, user_id: str) -> bool:
    token = get_token_row(db, user_id)
    if token is None:
        return False
    db.delete(token)
    db.commit()
    return True
