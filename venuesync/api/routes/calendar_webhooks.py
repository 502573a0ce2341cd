from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Header, HTTPException, Request, Response
from sqlalchemy.orm import Session

from venuesync.core.deps import get_current_user, get_db, get_google_client, get_owned_venue
from venuesync.models.user import User
from venuesync.schemas.calendar import WebhookSetupRequest, WebhookSetupResponse
from venuesync.services.audit_service import write_audit_log
from venuesync.services.calendar_webhooks import handle_notification, subscribe
from venuesync.services.google_client import GoogleCalendarClient

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/setup", response_model=WebhookSetupResponse)
async def setup_webhook(
    payload: WebhookSetupRequest,
    request: Request,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    google: GoogleCalendarClient = Depends(get_google_client),
):
    if not payload.venue_id:
        raise HTTPException(status_code=400, detail="Venue ID is required")
    venue = get_owned_venue(db, payload.venue_id, user)

    webhook = await subscribe(db, google, user_id=user.id, venue_id=venue.id)

    write_audit_log(
        db,
        actor_user_id=user.id,
        action_type="WEBHOOK_SETUP",
        target_type="venue",
        target_id=venue.id,
        summary="Registered calendar webhook",
        diff_json={"channel_id": webhook.channel_id, "expiration": webhook.expiration.isoformat()},
        request=request,
    )
    return WebhookSetupResponse(success=True, message="Webhook set up successfully", expires_at=webhook.expiration)


@router.post("/notifications")
async def receive_notification(
    db: Session = Depends(get_db),
    google: GoogleCalendarClient = Depends(get_google_client),
    x_goog_channel_id: str | None = Header(default=None),
    x_goog_resource_state: str | None = Header(default=None),
    x_goog_message_number: str | None = Header(default=None),
):
    # Called by Google, not by a signed-in user; the channel id is the credential.
    if not x_goog_channel_id:
        raise HTTPException(status_code=400, detail="Missing channel ID")

    logger.info("Calendar notification: channel=%s state=%s message=%s", x_goog_channel_id, x_goog_resource_state, x_goog_message_number)
    await handle_notification(
        db,
        google,
        channel_id=x_goog_channel_id,
        resource_state=x_goog_resource_state,
        message_number=x_goog_message_number,
    )
    return Response(status_code=200)
