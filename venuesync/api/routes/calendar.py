from __future__ import annotations

import logging
from datetime import date, datetime, time, timezone
from zoneinfo import ZoneInfo

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import RedirectResponse
from sqlalchemy import delete
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from venuesync.core.config import get_settings
from venuesync.core.deps import get_current_user, get_db, get_google_client, get_owned_venue
from venuesync.core.security import create_state_token, read_state_token
from venuesync.models.google_calendar import GoogleCalendarWebhook
from venuesync.models.user import User
from venuesync.schemas.calendar import AuthorizeResponse, CalendarStatus, CalendarViewEvent, SyncRequest, SyncResponse, VenueAvailabilityCheck
from venuesync.schemas.calendar_block import AvailabilityBlockCreate, AvailabilityBlockOut, AvailabilityListResponse
from venuesync.services.audit_service import write_audit_log
from venuesync.services.availability_service import (
    check_availability,
    compose_calendar_events,
    create_manual_block,
    current_month,
    day_bounds,
    delete_manual_block,
    get_block,
    list_blocks,
    list_overlapping_blocks,
)
from venuesync.services.business_hours import list_business_hours
from venuesync.services.calendar_sync import sync_venue_calendar
from venuesync.services.google_client import GoogleCalendarClient, GoogleCalendarError
from venuesync.services.token_store import delete_tokens, get_token_row, has_connected_calendar, save_tokens

logger = logging.getLogger(__name__)

router = APIRouter()


def _manage_redirect(query: str) -> RedirectResponse:
    settings = get_settings()
    return RedirectResponse(f"{settings.public_base_url.rstrip('/')}/manage?{query}", status_code=302)


@router.get("/status", response_model=CalendarStatus)
def calendar_status(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return CalendarStatus(connected=has_connected_calendar(db, user.id))


@router.get("/authorize", response_model=AuthorizeResponse)
def authorize(user: User = Depends(get_current_user), google: GoogleCalendarClient = Depends(get_google_client)):
    settings = get_settings()
    if not settings.google_client_id or not settings.google_client_secret:
        raise HTTPException(status_code=500, detail="Google Calendar not configured")

    return AuthorizeResponse(authorization_url=google.authorization_url(create_state_token(user.id)))


@router.get("/callback")
async def oauth_callback(
    request: Request,
    code: str | None = None,
    state: str | None = None,
    error: str | None = None,
    db: Session = Depends(get_db),
    google: GoogleCalendarClient = Depends(get_google_client),
):
    if error:
        logger.error("Google OAuth error: %s", error)
        return _manage_redirect("error=google_auth")
    if not code or not state:
        logger.error("Missing code or state parameter")
        return _manage_redirect("error=invalid_request")

    user_id = read_state_token(state)
    if user_id is None or db.get(User, user_id) is None:
        return _manage_redirect("error=invalid_request")

    try:
        tokens = await google.exchange_code(code)
    except GoogleCalendarError as e:
        logger.error("Error exchanging auth code for tokens: %s", e.message)
        return _manage_redirect("error=token_exchange")
    if not tokens.get("access_token"):
        return _manage_redirect("error=token_exchange")

    calendar_id = None
    try:
        calendar_id = await google.get_primary_calendar_id(tokens["access_token"])
    except GoogleCalendarError as e:
        logger.warning("Could not resolve primary calendar: %s", e.message)

    try:
        save_tokens(db, user_id=user_id, payload=tokens, calendar_id=calendar_id)
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Error storing Google tokens for user %s", user_id)
        return _manage_redirect("error=database")

    write_audit_log(db, actor_user_id=user_id, action_type="CALENDAR_CONNECT", target_type="user", target_id=user_id, summary="Connected Google Calendar", request=request)
    return _manage_redirect("calendar=connected")


@router.post("/disconnect")
async def disconnect(
    request: Request,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    google: GoogleCalendarClient = Depends(get_google_client),
):
    token = get_token_row(db, user.id)
    if token is not None:
        try:
            await google.revoke_token(token.access_token)
        except GoogleCalendarError as e:
            logger.warning("Failed to revoke Google token: %s", e.message)

    db.execute(delete(GoogleCalendarWebhook).where(GoogleCalendarWebhook.user_id == user.id))
    delete_tokens(db, user.id)
    db.commit()

    write_audit_log(db, actor_user_id=user.id, action_type="CALENDAR_DISCONNECT", target_type="user", target_id=user.id, summary="Disconnected Google Calendar", request=request)
    return {"success": True, "message": "Google Calendar disconnected successfully"}


@router.post("/sync", response_model=SyncResponse)
async def sync_calendar(
    payload: SyncRequest,
    request: Request,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    google: GoogleCalendarClient = Depends(get_google_client),
):
    if not payload.venue_id:
        raise HTTPException(status_code=400, detail="Venue ID is required")
    venue = get_owned_venue(db, payload.venue_id, user)

    result = await sync_venue_calendar(db, google, user_id=user.id, venue_id=venue.id, look_ahead_days=payload.look_ahead_days)
    if not result.success:
        raise HTTPException(status_code=500, detail=result.message)

    write_audit_log(
        db,
        actor_user_id=user.id,
        action_type="CALENDAR_SYNC",
        target_type="venue",
        target_id=venue.id,
        summary="Synced Google Calendar",
        diff_json={"inserted": result.count, "updated": result.updated, "look_ahead_days": payload.look_ahead_days},
        request=request,
    )
    return SyncResponse(success=True, message=result.message, count=result.count)


# Availability blocks and views


@router.get("/availability", response_model=AvailabilityListResponse)
def list_availability(
    venue_id: str | None = Query(default=None, alias="venueId"),
    start_date: date | None = Query(default=None, alias="startDate"),
    end_date: date | None = Query(default=None, alias="endDate"),
    db: Session = Depends(get_db),
):
    if not venue_id:
        raise HTTPException(status_code=400, detail="Venue ID is required")

    first, last = current_month()
    start, end = day_bounds(start_date or first, end_date or last)
    blocks = list_blocks(db, venue_id=venue_id, start=start, end=end)
    return AvailabilityListResponse(data=[AvailabilityBlockOut.model_validate(b) for b in blocks])


@router.post("/availability", response_model=AvailabilityBlockOut)
def create_availability(payload: AvailabilityBlockCreate, request: Request, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    venue = get_owned_venue(db, payload.venue_id, user)
    b = create_manual_block(db, payload=payload, user_id=user.id)

    write_audit_log(
        db,
        actor_user_id=user.id,
        action_type="BLOCK_CREATE",
        target_type="venue_availability",
        target_id=b.id,
        summary="Created manual block",
        diff_json={"venue_id": venue.id, "start_time": b.start_time.isoformat(), "end_time": b.end_time.isoformat()},
        request=request,
    )
    return b


@router.delete("/availability/{block_id}")
def delete_availability(block_id: str, request: Request, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    b = get_block(db, block_id)
    get_owned_venue(db, b.venue_id, user)
    venue_id = b.venue_id
    delete_manual_block(db, b)

    write_audit_log(db, actor_user_id=user.id, action_type="BLOCK_DELETE", target_type="venue_availability", target_id=block_id, summary="Deleted manual block", diff_json={"venue_id": venue_id}, request=request)
    return {"success": True}


@router.get("/events", response_model=list[CalendarViewEvent])
def calendar_events(
    venue_id: str | None = Query(default=None, alias="venueId"),
    start: date | None = None,
    end: date | None = None,
    db: Session = Depends(get_db),
):
    if not venue_id:
        raise HTTPException(status_code=400, detail="Venue ID is required")

    first, last = current_month()
    start_date = start or first
    end_date = end or last
    if end_date < start_date:
        raise HTTPException(status_code=400, detail="Invalid date range")

    window_start, window_end = day_bounds(start_date, end_date)
    return compose_calendar_events(
        list_business_hours(db, venue_id),
        list_overlapping_blocks(db, venue_id=venue_id, start=window_start, end=window_end),
        start_date=start_date,
        end_date=end_date,
    )


@router.get("/check-availability", response_model=VenueAvailabilityCheck)
def check_venue_availability(
    start_date: date | None = Query(default=None, alias="startDate"),
    end_date: date | None = Query(default=None, alias="endDate"),
    start_time: time | None = Query(default=None, alias="startTime"),
    end_time: time | None = Query(default=None, alias="endTime"),
    db: Session = Depends(get_db),
):
    if not start_date or not end_date:
        raise HTTPException(status_code=400, detail="Start date and end date are required")

    day_start, day_end = day_bounds(start_date, end_date)
    tz = ZoneInfo(get_settings().timezone)
    start = datetime.combine(start_date, start_time, tzinfo=tz).astimezone(timezone.utc) if start_time else day_start
    end = datetime.combine(end_date, end_time, tzinfo=tz).astimezone(timezone.utc) if end_time else day_end
    if end <= start:
        raise HTTPException(status_code=400, detail="Invalid time range")

    available, unavailable = check_availability(db, start=start, end=end)
    return VenueAvailabilityCheck(available_venue_ids=available, unavailable_venue_ids=unavailable)
