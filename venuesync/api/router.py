from __future__ import annotations

from fastapi import APIRouter

from venuesync.api.routes import audit, auth, business_hours, calendar, calendar_webhooks, venues

api_router = APIRouter()

api_router.include_router(auth.router, prefix="/auth", tags=["auth"])
api_router.include_router(audit.router, tags=["audit"])
api_router.include_router(venues.router, prefix="/venues", tags=["venues"])

# Calendar
api_router.include_router(calendar.router, prefix="/calendar", tags=["calendar"])
api_router.include_router(calendar_webhooks.router, prefix="/calendar/webhook", tags=["calendar-webhooks"])
api_router.include_router(business_hours.router, prefix="/calendar/business-hours", tags=["business-hours"])
