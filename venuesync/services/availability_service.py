from __future__ import annotations

import logging
from datetime import date, datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo

from fastapi import HTTPException
from sqlalchemy import select
from sqlalchemy.orm import Session

from venuesync.core.config import get_settings
from venuesync.core.timeutil import as_utc
from venuesync.models.business_hours import VenueBusinessHours
from venuesync.models.calendar_block import SOURCE_GOOGLE, SOURCE_MANUAL, VenueAvailability
from venuesync.models.venue import STATUS_APPROVED, Venue
from venuesync.schemas.calendar import CalendarViewEvent
from venuesync.schemas.calendar_block import AvailabilityBlockCreate
from venuesync.schemas.venue import CalendarDay, CollaborationSchedule

logger = logging.getLogger(__name__)

BUSINESS_HOURS_COLOR = "#22c55e"
MANUAL_BLOCK_COLOR = "#ef4444"
GOOGLE_BLOCK_COLOR = "#64748b"

BLOCKED_REASON = "Unavailable time set by venue owner"


def _tz() -> ZoneInfo:
    return ZoneInfo(get_settings().timezone)


def _daterange(start: date, end: date):
    cur = start
    while cur <= end:
        yield cur
        cur = cur + timedelta(days=1)


def _sunday_first_weekday(d: date) -> int:
    # date.weekday() is Monday=0; the calendar uses Sunday=0
    return (d.weekday() + 1) % 7


def to_utc(value: datetime, tz: ZoneInfo) -> datetime:
    """Naive inputs are local to the configured timezone."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=tz)
    return value.astimezone(timezone.utc)


def day_bounds(start_date: date, end_date: date, tz: ZoneInfo | None = None) -> tuple[datetime, datetime]:
    """UTC instants for local midnight of start_date and the last microsecond of end_date."""
    tz = tz or _tz()
    start = datetime.combine(start_date, time.min, tzinfo=tz).astimezone(timezone.utc)
    end = datetime.combine(end_date, time.max, tzinfo=tz).astimezone(timezone.utc)
    return start, end


def current_month(today: date | None = None) -> tuple[date, date]:
    today = today or datetime.now(_tz()).date()
    first = today.replace(day=1)
    next_month = (first + timedelta(days=32)).replace(day=1)
    return first, next_month - timedelta(days=1)


# Manual blocks


def create_manual_block(db: Session, *, payload: AvailabilityBlockCreate, user_id: str) -> VenueAvailability:
    tz = _tz()
    start_time = to_utc(payload.start_time, tz)
    end_time = to_utc(payload.end_time, tz)
    if end_time <= start_time:
        raise HTTPException(status_code=400, detail="Invalid time range")

    b = VenueAvailability(
        venue_id=payload.venue_id,
        title=payload.title or "Unavailable",
        description=payload.description,
        start_time=start_time,
        end_time=end_time,
        all_day=payload.all_day,
        recurring=False,
        source=SOURCE_MANUAL,
        created_by_user_id=user_id,
    )
    db.add(b)
    db.commit()
    db.refresh(b)
    return b


def get_block(db: Session, block_id: str) -> VenueAvailability:
    b = db.get(VenueAvailability, block_id)
    if b is None:
        raise HTTPException(status_code=404, detail="Not found")
    return b


def delete_manual_block(db: Session, b: VenueAvailability) -> None:
    if b.source != SOURCE_MANUAL:
        raise HTTPException(status_code=400, detail="Google Calendar events are managed by calendar sync")
    db.delete(b)
    db.commit()


def list_blocks(db: Session, *, venue_id: str, start: datetime, end: datetime) -> list[VenueAvailability]:
    """Blocks lying entirely inside ``[start, end]``, earliest first."""
    q = (
        select(VenueAvailability)
        .where(VenueAvailability.venue_id == venue_id)
        .where(VenueAvailability.start_time >= start)
        .where(VenueAvailability.end_time <= end)
        .order_by(VenueAvailability.start_time.asc())
    )
    return list(db.execute(q).scalars().all())


def list_overlapping_blocks(db: Session, *, venue_id: str, start: datetime, end: datetime) -> list[VenueAvailability]:
    q = (
        select(VenueAvailability)
        .where(VenueAvailability.venue_id == venue_id)
        .where(VenueAvailability.start_time < end)
        .where(VenueAvailability.end_time > start)
        .order_by(VenueAvailability.start_time.asc())
    )
    return list(db.execute(q).scalars().all())


# Views


def compose_calendar_events(
    business_hours: list[VenueBusinessHours],
    blocks: list[VenueAvailability],
    *,
    start_date: date,
    end_date: date,
    tz: ZoneInfo | None = None,
) -> list[CalendarViewEvent]:
    """Business hours as background "available" windows, blocks layered on top.

    Blocks are shown whether or not they fall inside business hours.
    """
    tz = tz or _tz()
    events: list[CalendarViewEvent] = []

    for d in _daterange(start_date, end_date):
        dow = _sunday_first_weekday(d)
        for bh in business_hours:
            if dow not in (bh.days_of_week or []):
                continue
            events.append(
                CalendarViewEvent(
                    title="Available",
                    start=datetime.combine(d, bh.start_time, tzinfo=tz),
                    end=datetime.combine(d, bh.end_time, tzinfo=tz),
                    display="background",
                    background_color=BUSINESS_HOURS_COLOR,
                    source="business_hours",
                )
            )

    for b in blocks:
        is_google = b.source == SOURCE_GOOGLE
        events.append(
            CalendarViewEvent(
                id=b.id,
                title=b.title or ("Google Calendar Event" if is_google else "Unavailable"),
                start=as_utc(b.start_time),
                end=as_utc(b.end_time),
                all_day=bool(b.all_day),
                background_color=GOOGLE_BLOCK_COLOR if is_google else MANUAL_BLOCK_COLOR,
                source=b.source,
                description=b.description,
                recurring=bool(b.recurring),
                recurrence_rule=b.recurrence_rule,
            )
        )
    return events


def check_availability(db: Session, *, start: datetime, end: datetime) -> tuple[list[str], list[str]]:
    """Split approved venues into (available, unavailable) for ``[start, end]``.

    A venue is unavailable when any of its blocks overlaps the window.
    """
    venue_ids = db.execute(select(Venue.id).where(Venue.status == STATUS_APPROVED).order_by(Venue.name)).scalars().all()
    if not venue_ids:
        return [], []

    busy = set(
        db.execute(
            select(VenueAvailability.venue_id)
            .where(VenueAvailability.venue_id.in_(venue_ids))
            .where(VenueAvailability.start_time < end)
            .where(VenueAvailability.end_time > start)
            .distinct()
        ).scalars().all()
    )
    available = [v for v in venue_ids if v not in busy]
    unavailable = [v for v in venue_ids if v in busy]
    return available, unavailable


def availability_calendar(db: Session, *, venue: Venue, start_date: date, end_date: date) -> list[CalendarDay]:
    """Day-by-day availability with the collaboration types offered on open days."""
    tz = _tz()
    start, end = day_bounds(start_date, end_date, tz)
    blocks = list_overlapping_blocks(db, venue_id=venue.id, start=start, end=end)

    blocked_dates: set[date] = set()
    for b in blocks:
        first = max(as_utc(b.start_time).astimezone(tz).date(), start_date)
        last = min(as_utc(b.end_time).astimezone(tz).date(), end_date)
        blocked_dates.update(_daterange(first, last))

    schedule = CollaborationSchedule.model_validate(venue.collaboration_schedule or {})

    days: list[CalendarDay] = []
    for d in _daterange(start_date, end_date):
        key = d.isoformat()
        if d in blocked_dates:
            days.append(CalendarDay(date=key, status="blocked", collaboration_types=[], source="blocked_time", blocked_reason=BLOCKED_REASON))
            continue

        if key in schedule.date_overrides:
            types = schedule.date_overrides[key]
        else:
            types = schedule.default_weekly.get(str(_sunday_first_weekday(d)), [])
        days.append(CalendarDay(date=key, status="available", collaboration_types=types, source="collaboration_rule"))
    return days
