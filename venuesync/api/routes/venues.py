from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy import select
from sqlalchemy.orm import Session

from venuesync.core.deps import get_current_user, get_db, get_owned_venue
from venuesync.models.user import User
from venuesync.models.venue import STATUS_PENDING, Venue
from venuesync.schemas.venue import AvailabilityCalendarResponse, CollaborationSchedule, CollaborationScheduleUpdate, VenueCreate, VenueOut
from venuesync.services.audit_service import write_audit_log
from venuesync.services.availability_service import availability_calendar

router = APIRouter()


def _get_venue(db: Session, venue_id: str) -> Venue:
    v = db.get(Venue, venue_id)
    if not v:
        raise HTTPException(status_code=404, detail="Venue not found")
    return v


@router.get("", response_model=list[VenueOut])
def list_my_venues(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    venues = db.execute(select(Venue).where(Venue.owner_id == user.id).order_by(Venue.name)).scalars().all()
    return venues


@router.post("", response_model=VenueOut)
def create_venue(payload: VenueCreate, request: Request, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    v = Venue(owner_id=user.id, name=payload.name, status=STATUS_PENDING)
    db.add(v)
    db.commit()
    db.refresh(v)

    write_audit_log(db, actor_user_id=user.id, action_type="VENUE_CREATE", target_type="venue", target_id=v.id, summary="Created venue", request=request)
    return v


@router.get("/{venue_id}/collaboration-schedule")
def read_collaboration_schedule(venue_id: str, db: Session = Depends(get_db)):
    v = _get_venue(db, venue_id)
    schedule = CollaborationSchedule.model_validate(v.collaboration_schedule or {})
    return {"success": True, "venue_id": v.id, "schedule": schedule.model_dump()}


@router.put("/{venue_id}/collaboration-schedule")
def update_collaboration_schedule(
    venue_id: str,
    payload: CollaborationScheduleUpdate,
    request: Request,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    v = get_owned_venue(db, venue_id, user)
    v.collaboration_schedule = payload.schedule.model_dump()
    db.commit()
    db.refresh(v)

    write_audit_log(
        db,
        actor_user_id=user.id,
        action_type="COLLAB_SCHEDULE_UPDATE",
        target_type="venue",
        target_id=v.id,
        summary="Updated collaboration schedule",
        diff_json={"weekdays": sorted(payload.schedule.default_weekly.keys()), "overrides": len(payload.schedule.date_overrides)},
        request=request,
    )
    return {"success": True, "venue_id": v.id, "schedule": v.collaboration_schedule}


@router.get("/{venue_id}/availability-calendar", response_model=AvailabilityCalendarResponse)
def read_availability_calendar(venue_id: str, start_date: date | None = None, end_date: date | None = None, db: Session = Depends(get_db)):
    if not start_date or not end_date:
        raise HTTPException(status_code=400, detail="start_date and end_date are required")
    if end_date < start_date:
        raise HTTPException(status_code=400, detail="Invalid date range")

    v = _get_venue(db, venue_id)
    days = availability_calendar(db, venue=v, start_date=start_date, end_date=end_date)
    return AvailabilityCalendarResponse(venue_id=v.id, start_date=start_date.isoformat(), end_date=end_date.isoformat(), calendar_data=days)
