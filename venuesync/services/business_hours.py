from __future__ import annotations

import logging
from datetime import time

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from venuesync.models.business_hours import VenueBusinessHours
from venuesync.schemas.business_hours import BusinessHour

logger = logging.getLogger(__name__)


def list_business_hours(db: Session, venue_id: str) -> list[VenueBusinessHours]:
    q = select(VenueBusinessHours).where(VenueBusinessHours.venue_id == venue_id).order_by(VenueBusinessHours.created_at, VenueBusinessHours.id)
    return list(db.execute(q).scalars().all())


def to_business_hour(row: VenueBusinessHours) -> BusinessHour:
    return BusinessHour(
        days_of_week=list(row.days_of_week or []),
        start_time=row.start_time.strftime("%H:%M"),
        end_time=row.end_time.strftime("%H:%M"),
    )


def get_business_hours(db: Session, venue_id: str) -> list[BusinessHour]:
    return [to_business_hour(r) for r in list_business_hours(db, venue_id)]


def replace_business_hours(db: Session, *, venue_id: str, hours: list[BusinessHour]) -> list[VenueBusinessHours]:
    """Replace every business-hours row of a venue with ``hours``.

    Overlapping entries are stored as given; consumers take their union.
    """
    try:
        db.execute(delete(VenueBusinessHours).where(VenueBusinessHours.venue_id == venue_id))
        rows = [
            VenueBusinessHours(
                venue_id=venue_id,
                days_of_week=list(h.days_of_week),
                start_time=time.fromisoformat(h.start_time),
                end_time=time.fromisoformat(h.end_time),
            )
            for h in hours
        ]
        db.add_all(rows)
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info("Saved %d business-hours rows for venue %s", len(rows), venue_id)
    return rows
