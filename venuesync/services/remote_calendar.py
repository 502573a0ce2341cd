from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Mapping
from zoneinfo import ZoneInfo

from venuesync.core.timeutil import utcnow
from venuesync.models.google_calendar import GoogleCalendarToken
from venuesync.services.google_client import GoogleCalendarClient

logger = logging.getLogger(__name__)

UNTITLED = "Untitled Event"
RRULE_PREFIX = "RRULE:"


@dataclass(frozen=True)
class RemoteEvent:
    """One concrete occurrence read from the remote calendar, normalized to UTC."""

    google_event_id: str
    title: str
    description: str | None
    start_time: datetime
    end_time: datetime
    all_day: bool
    recurring: bool
    recurrence_rule: str | None

    def block_fields(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "description": self.description,
            "start_time": self.start_time,
            "end_time": self.end_time,
            "all_day": self.all_day,
            "recurring": self.recurring,
            "recurrence_rule": self.recurrence_rule,
        }


def _parse_datetime(value: str, tz: ZoneInfo) -> datetime:
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    dt = datetime.fromisoformat(value)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=tz)
    return dt.astimezone(timezone.utc)


def _recurrence_rule(recurrence: list[str] | None) -> str | None:
    for rule in recurrence or []:
        if rule.startswith(RRULE_PREFIX):
            return rule[len(RRULE_PREFIX):]
    return None


def map_remote_event(item: Mapping[str, Any], tz: ZoneInfo) -> RemoteEvent | None:
    """Normalize a Calendar API event resource.

    All-day events carry an exclusive end date (the day after the last day);
    they are mapped to midnight of the first day through 23:59:59 of the last
    day in ``tz``. Returns None for events without usable start/end.
    """
    start = item.get("start") or {}
    end = item.get("end") or {}
    event_id = item.get("id")

    if not event_id or item.get("status") == "cancelled":
        return None
    if not (start.get("dateTime") or start.get("date")) or not (end.get("dateTime") or end.get("date")):
        return None

    all_day = bool(start.get("date") and not start.get("dateTime"))

    try:
        if all_day:
            first_day = date.fromisoformat(start["date"])
            last_day = date.fromisoformat(end.get("date") or start["date"]) - timedelta(days=1)
            if last_day < first_day:
                last_day = first_day
            start_time = datetime.combine(first_day, time.min, tzinfo=tz).astimezone(timezone.utc)
            end_time = datetime.combine(last_day, time(23, 59, 59), tzinfo=tz).astimezone(timezone.utc)
        else:
            start_tz = ZoneInfo(start["timeZone"]) if start.get("timeZone") else tz
            end_tz = ZoneInfo(end["timeZone"]) if end.get("timeZone") else tz
            start_time = _parse_datetime(start["dateTime"], start_tz)
            end_time = _parse_datetime(end["dateTime"], end_tz)
    except (KeyError, ValueError) as e:
        logger.warning("Skipping remote event %s with unparseable times: %s", event_id, e)
        return None

    if end_time <= start_time:
        logger.debug("Skipping zero-length remote event %s", event_id)
        return None

    recurrence = item.get("recurrence") or None
    return RemoteEvent(
        google_event_id=event_id,
        title=item.get("summary") or UNTITLED,
        description=item.get("description") or None,
        start_time=start_time,
        end_time=end_time,
        all_day=all_day,
        recurring=bool(recurrence) or bool(item.get("recurringEventId")),
        recurrence_rule=_recurrence_rule(recurrence),
    )


async def fetch_remote_events(
    google: GoogleCalendarClient,
    token: GoogleCalendarToken,
    calendar_id: str,
    *,
    look_ahead_days: int = 90,
    tz: ZoneInfo | None = None,
    now: datetime | None = None,
) -> list[RemoteEvent]:
    """Read occurrences between now and now + look_ahead_days from one calendar."""
    if now is None:
        now = utcnow()
    if tz is None:
        tz = ZoneInfo("UTC")

    items = await google.list_events(
        token.access_token,
        calendar_id,
        time_min=now,
        time_max=now + timedelta(days=look_ahead_days),
    )

    events: list[RemoteEvent] = []
    for item in items:
        ev = map_remote_event(item, tz)
        if ev is not None:
            events.append(ev)
    logger.info("Fetched %d remote events (%d usable) from calendar %s", len(items), len(events), calendar_id)
    return events
