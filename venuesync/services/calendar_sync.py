from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from zoneinfo import ZoneInfo

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from venuesync.core.config import get_settings
from venuesync.core.timeutil import as_utc
from venuesync.models.calendar_block import SOURCE_GOOGLE, VenueAvailability
from venuesync.services.google_client import GoogleCalendarClient, GoogleCalendarError
from venuesync.services.remote_calendar import RemoteEvent, fetch_remote_events
from venuesync.services.token_store import get_valid_token

logger = logging.getLogger(__name__)

NOT_CONNECTED = "Google Calendar not connected or token is invalid"
NO_CALENDAR = "No primary calendar ID found"


class SyncError(Exception):
    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


@dataclass
class SyncResult:
    success: bool
    message: str
    count: int = 0
    updated: int = 0


async def load_remote_events(
    db: Session,
    google: GoogleCalendarClient,
    *,
    user_id: str,
    look_ahead_days: int,
    now: datetime | None = None,
) -> list[RemoteEvent]:
    """Resolve the user's token and calendar, then read upcoming remote events.

    Raises SyncError with a user-facing message on any failure.
    """
    token = await get_valid_token(db, google, user_id, now=now)
    if token is None or not token.access_token:
        raise SyncError(NOT_CONNECTED)
    if not token.calendar_id:
        raise SyncError(NO_CALENDAR)

    tz = ZoneInfo(get_settings().timezone)
    try:
        return await fetch_remote_events(google, token, token.calendar_id, look_ahead_days=look_ahead_days, tz=tz, now=now)
    except GoogleCalendarError as e:
        raise SyncError(f"Failed to fetch events: {e.message}") from e


def _differs(block: VenueAvailability, ev: RemoteEvent) -> bool:
    for key, value in ev.block_fields().items():
        current = getattr(block, key)
        if isinstance(current, datetime):
            current = as_utc(current)
        if current != value:
            return True
    return False


def apply_remote_events(db: Session, *, venue_id: str, events: list[RemoteEvent]) -> SyncResult:
    """Upsert remote events as google-sourced blocks keyed by google_event_id.

    New ids are inserted and changed ones are updated in place; nothing is
    committed here.
    """
    if not events:
        return SyncResult(success=True, message="No events to sync", count=0)

    existing = {
        b.google_event_id: b
        for b in db.execute(
            select(VenueAvailability).where(
                VenueAvailability.venue_id == venue_id,
                VenueAvailability.source == SOURCE_GOOGLE,
            )
        ).scalars()
    }

    inserted = 0
    updated = 0
    seen: set[str] = set()
    for ev in events:
        if ev.google_event_id in seen:
            continue
        seen.add(ev.google_event_id)

        block = existing.get(ev.google_event_id)
        if block is None:
            db.add(VenueAvailability(venue_id=venue_id, source=SOURCE_GOOGLE, google_event_id=ev.google_event_id, **ev.block_fields()))
            inserted += 1
        elif _differs(block, ev):
            for key, value in ev.block_fields().items():
                setattr(block, key, value)
            updated += 1

    if inserted == 0 and updated == 0:
        return SyncResult(success=True, message="All events are already synced", count=0)

    db.flush()
    message = f"Successfully synced {inserted} events"
    if updated:
        message += f" ({updated} updated)"
    return SyncResult(success=True, message=message, count=inserted, updated=updated)


def purge_google_blocks(db: Session, venue_id: str) -> int:
    """Delete every google-sourced block of a venue (not committed)."""
    res = db.execute(
        delete(VenueAvailability).where(
            VenueAvailability.venue_id == venue_id,
            VenueAvailability.source == SOURCE_GOOGLE,
        )
    )
    return res.rowcount or 0


async def sync_venue_calendar(
    db: Session,
    google: GoogleCalendarClient,
    *,
    user_id: str,
    venue_id: str,
    look_ahead_days: int | None = None,
    now: datetime | None = None,
) -> SyncResult:
    """Import the owner's upcoming Google Calendar events as venue blocks.

    Never raises: failures are reported through ``SyncResult.success``.
    """
    if look_ahead_days is None:
        look_ahead_days = get_settings().calendar_look_ahead_days

    try:
        events = await load_remote_events(db, google, user_id=user_id, look_ahead_days=look_ahead_days, now=now)
    except SyncError as e:
        logger.warning("Calendar sync for venue %s aborted: %s", venue_id, e.message)
        return SyncResult(success=False, message=e.message)

    try:
        result = apply_remote_events(db, venue_id=venue_id, events=events)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Failed to store synced events for venue %s", venue_id)
        return SyncResult(success=False, message="Failed to insert events")

    logger.info("Calendar sync for venue %s: %s", venue_id, result.message)
    return result
