# Import all models so that SQLAlchemy registers them for metadata.create_all
from venuesync.models.user import User
from venuesync.models.auth_event import AuthEvent
from venuesync.models.audit_log import AuditLog
from venuesync.models.venue import Venue
from venuesync.models.calendar_block import VenueAvailability
from venuesync.models.business_hours import VenueBusinessHours
from venuesync.models.google_calendar import GoogleCalendarToken, GoogleCalendarWebhook

__all__ = [
    "User",
    "AuthEvent",
    "AuditLog",
    "Venue",
    "VenueAvailability",
    "VenueBusinessHours",
    "GoogleCalendarToken",
    "GoogleCalendarWebhook",
]
