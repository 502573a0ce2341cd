from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.orm import Session

from venuesync.core.deps import get_current_user, get_db, get_owned_venue
from venuesync.models.user import User
from venuesync.schemas.business_hours import BusinessHoursSave
from venuesync.services.audit_service import write_audit_log
from venuesync.services.business_hours import get_business_hours, replace_business_hours

router = APIRouter()


@router.get("")
def read_business_hours(venue_id: str | None = Query(default=None, alias="venueId"), db: Session = Depends(get_db)):
    if not venue_id:
        raise HTTPException(status_code=400, detail="Venue ID is required")
    hours = get_business_hours(db, venue_id)
    return {"data": [h.model_dump(by_alias=True) for h in hours]}


@router.post("")
def save_business_hours(payload: BusinessHoursSave, request: Request, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    if not payload.venue_id or payload.business_hours is None:
        raise HTTPException(status_code=400, detail="Venue ID and business hours are required")
    venue = get_owned_venue(db, payload.venue_id, user)

    rows = replace_business_hours(db, venue_id=venue.id, hours=payload.business_hours)

    write_audit_log(
        db,
        actor_user_id=user.id,
        action_type="BUSINESS_HOURS_UPDATE",
        target_type="venue",
        target_id=venue.id,
        summary="Replaced business hours",
        diff_json={"rows": len(rows)},
        request=request,
    )
    return {"message": "Business hours updated successfully"}
