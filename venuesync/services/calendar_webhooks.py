from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta, timezone

from fastapi import HTTPException
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from venuesync.core.config import get_settings
from venuesync.core.timeutil import utcnow
from venuesync.models.google_calendar import GoogleCalendarWebhook
from venuesync.services.calendar_sync import (
    NO_CALENDAR,
    NOT_CONNECTED,
    SyncError,
    SyncResult,
    apply_remote_events,
    load_remote_events,
    purge_google_blocks,
)
from venuesync.services.google_client import GoogleCalendarClient, GoogleCalendarError
from venuesync.services.token_store import get_valid_token

logger = logging.getLogger(__name__)

RESOURCE_STATE_SYNC = "sync"
RESOURCE_STATE_EXISTS = "exists"
RESOURCE_STATE_NOT_EXISTS = "not_exists"

# Google refuses channels longer than a week
MAX_CHANNEL_TTL_DAYS = 7
WEBHOOK_LOOK_AHEAD_DAYS = 90


def _expiration_from(data: dict, fallback: datetime) -> datetime:
    raw = data.get("expiration")
    if not raw:
        return fallback
    try:
        return datetime.fromtimestamp(int(raw) / 1000, tz=timezone.utc)
    except (TypeError, ValueError):
        return fallback


def get_webhook_by_channel(db: Session, channel_id: str) -> GoogleCalendarWebhook | None:
    return db.execute(select(GoogleCalendarWebhook).where(GoogleCalendarWebhook.channel_id == channel_id)).scalar_one_or_none()


async def subscribe(
    db: Session,
    google: GoogleCalendarClient,
    *,
    user_id: str,
    venue_id: str,
    now: datetime | None = None,
) -> GoogleCalendarWebhook:
    """Register a push channel for the user's calendar and record it for the venue.

    Venue ownership must already be checked by the caller.
    """
    settings = get_settings()
    if now is None:
        now = utcnow()

    token = await get_valid_token(db, google, user_id, now=now)
    if token is None or not token.access_token:
        raise HTTPException(status_code=400, detail=NOT_CONNECTED)
    if not token.calendar_id:
        raise HTTPException(status_code=400, detail=NO_CALENDAR)

    existing = db.execute(
        select(GoogleCalendarWebhook).where(
            GoogleCalendarWebhook.venue_id == venue_id,
            GoogleCalendarWebhook.user_id == user_id,
            GoogleCalendarWebhook.calendar_id == token.calendar_id,
        )
    ).scalar_one_or_none()

    channel_id = str(uuid.uuid4())
    ttl_days = min(settings.webhook_ttl_days, MAX_CHANNEL_TTL_DAYS)
    requested_expiration = now + timedelta(days=ttl_days)

    try:
        data = await google.watch_events(
            token.access_token,
            token.calendar_id,
            channel_id=channel_id,
            address=settings.webhook_address,
            expiration=requested_expiration,
        )
    except GoogleCalendarError as e:
        logger.error("Failed to set up webhook for venue %s: %s", venue_id, e.message)
        raise HTTPException(status_code=500, detail=f"Failed to setup webhook: {e.message}") from e

    if existing is not None and existing.resource_id:
        # The replaced channel would otherwise keep notifying until it expires.
        try:
            await google.stop_channel(token.access_token, channel_id=existing.channel_id, resource_id=existing.resource_id)
        except GoogleCalendarError as e:
            logger.warning("Could not stop previous channel %s: %s", existing.channel_id, e.message)

    webhook = existing or GoogleCalendarWebhook(venue_id=venue_id, user_id=user_id, calendar_id=token.calendar_id)
    webhook.channel_id = data.get("id") or channel_id
    webhook.resource_id = data.get("resourceId") or ""
    webhook.expiration = _expiration_from(data, requested_expiration)
    if existing is None:
        db.add(webhook)
    db.commit()
    db.refresh(webhook)

    logger.info("Webhook channel %s watching calendar for venue %s until %s", webhook.channel_id, venue_id, webhook.expiration)
    return webhook


async def handle_notification(
    db: Session,
    google: GoogleCalendarClient,
    *,
    channel_id: str,
    resource_state: str | None,
    message_number: str | None = None,
    now: datetime | None = None,
) -> SyncResult | None:
    """Process one push notification.

    ``exists`` replaces the venue's google-sourced blocks with a fresh import;
    purge and rebuild are committed together, so a failed rebuild keeps the
    previous blocks. Other states are acknowledged without side effects.
    """
    webhook = get_webhook_by_channel(db, channel_id)
    if webhook is None:
        logger.error("Webhook not found for channel %s", channel_id)
        raise HTTPException(status_code=404, detail="Webhook not found")

    if resource_state == RESOURCE_STATE_SYNC:
        logger.info("Initial sync notification for channel %s", channel_id)
        return None
    if resource_state == RESOURCE_STATE_NOT_EXISTS:
        logger.info("Resource deleted notification for channel %s", channel_id)
        return None
    if resource_state != RESOURCE_STATE_EXISTS:
        logger.info("Unknown resource state %r for channel %s", resource_state, channel_id)
        return None

    venue_id = webhook.venue_id
    try:
        events = await load_remote_events(db, google, user_id=webhook.user_id, look_ahead_days=WEBHOOK_LOOK_AHEAD_DAYS, now=now)
    except SyncError as e:
        logger.error("Error syncing events after notification %s: %s", message_number, e.message)
        raise HTTPException(status_code=500, detail="Failed to sync events") from e

    try:
        purged = purge_google_blocks(db, venue_id)
        result = apply_remote_events(db, venue_id=venue_id, events=events)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.exception("Failed to rebuild google blocks for venue %s", venue_id)
        raise HTTPException(status_code=500, detail="Failed to sync events") from e

    logger.info("Notification %s: purged %d and synced %d events for venue %s", message_number, purged, result.count, venue_id)
    return result


async def renew_expiring_subscriptions(
    db: Session,
    google: GoogleCalendarClient,
    *,
    within_hours: int | None = None,
    now: datetime | None = None,
) -> int:
    """Re-register every channel expiring within the window; returns how many were renewed."""
    settings = get_settings()
    if within_hours is None:
        within_hours = settings.webhook_renew_within_hours
    if now is None:
        now = utcnow()

    cutoff = now + timedelta(hours=within_hours)
    targets = db.execute(
        select(GoogleCalendarWebhook).where(GoogleCalendarWebhook.expiration <= cutoff).order_by(GoogleCalendarWebhook.expiration)
    ).scalars().all()

    renewed = 0
    for w in targets:
        try:
            await subscribe(db, google, user_id=w.user_id, venue_id=w.venue_id, now=now)
            renewed += 1
        except HTTPException as e:
            logger.warning("Could not renew channel %s for venue %s: %s", w.channel_id, w.venue_id, e.detail)
    return renewed
