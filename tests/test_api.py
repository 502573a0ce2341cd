"""HTTP surface: status codes, payload shapes and ownership checks."""

from __future__ import annotations

from datetime import datetime, timezone
from urllib.parse import parse_qs, urlparse

from conftest import CALENDAR_ID, OWNER_EMAIL, OWNER_PASSWORD, timed_event
from sqlalchemy import select

from venuesync.core.security import create_access_token, create_state_token
from venuesync.models.audit_log import AuditLog
from venuesync.models.calendar_block import SOURCE_GOOGLE, VenueAvailability
from venuesync.models.google_calendar import GoogleCalendarToken, GoogleCalendarWebhook
from venuesync.services.token_store import get_token_row


def _at(day: int, hour: int) -> datetime:
    return datetime(2024, 6, day, hour, tzinfo=timezone.utc)


# Auth


def test_login_and_me(client, owner):
    r = client.post("/api/auth/login", json={"email": OWNER_EMAIL.upper(), "password": OWNER_PASSWORD})
    assert r.status_code == 200
    token = r.json()["access_token"]

    me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert me.status_code == 200
    assert me.json() == {"user_id": owner.id, "email": OWNER_EMAIL, "name": "Venue Owner"}


def test_login_with_wrong_password(client, owner):
    r = client.post("/api/auth/login", json={"email": OWNER_EMAIL, "password": "nope"})

    assert r.status_code == 401
    assert r.json() == {"error": "Invalid credentials"}


def test_session_is_required(client):
    r = client.get("/api/calendar/status")

    assert r.status_code == 401
    assert "error" in r.json()


def test_oauth_state_token_is_not_a_session(client, owner):
    state = create_state_token(owner.id)

    r = client.get("/api/calendar/status", headers={"Authorization": f"Bearer {state}"})

    assert r.status_code == 401


# Connection lifecycle


def test_status_reflects_stored_token(client, auth_headers, db, owner):
    assert client.get("/api/calendar/status", headers=auth_headers).json() == {"connected": False}

    db.add(GoogleCalendarToken(user_id=owner.id, access_token="a", refresh_token="r", expires_at=_at(1, 0), calendar_id=CALENDAR_ID))
    db.commit()

    assert client.get("/api/calendar/status", headers=auth_headers).json() == {"connected": True}


def test_authorize_then_callback_stores_tokens(client, auth_headers, db, owner, fake_google):
    r = client.get("/api/calendar/authorize", headers=auth_headers)
    assert r.status_code == 200
    url = urlparse(r.json()["authorizationUrl"])
    params = parse_qs(url.query)
    assert url.netloc == "accounts.google.com"
    assert params["client_id"] == ["client-id"]
    assert params["access_type"] == ["offline"]

    cb = client.get("/api/calendar/callback", params={"code": "auth-code", "state": params["state"][0]}, follow_redirects=False)

    assert cb.status_code == 302
    assert cb.headers["location"] == "https://venues.test/manage?calendar=connected"
    row = get_token_row(db, owner.id)
    assert row.access_token == "new-access"
    assert row.refresh_token == "new-refresh"
    assert row.calendar_id == CALENDAR_ID


def test_callback_error_redirects(client, owner):
    denied = client.get("/api/calendar/callback", params={"error": "access_denied"}, follow_redirects=False)
    assert denied.headers["location"].endswith("/manage?error=google_auth")

    forged = client.get("/api/calendar/callback", params={"code": "c", "state": owner.id}, follow_redirects=False)
    assert forged.headers["location"].endswith("/manage?error=invalid_request")


def test_callback_token_exchange_failure(client, owner, fake_google):
    fake_google.token_status = 400
    state = create_state_token(owner.id)

    r = client.get("/api/calendar/callback", params={"code": "c", "state": state}, follow_redirects=False)

    assert r.headers["location"].endswith("/manage?error=token_exchange")


def test_disconnect_revokes_and_forgets(client, auth_headers, db, owner, venue, token, fake_google):
    db.add(GoogleCalendarWebhook(channel_id="chan-1", resource_id="res", calendar_id=CALENDAR_ID, user_id=owner.id, venue_id=venue.id, expiration=_at(1, 0)))
    db.commit()

    r = client.post("/api/calendar/disconnect", headers=auth_headers)

    assert r.status_code == 200
    assert r.json()["success"] is True
    assert len(fake_google.calls_to("/revoke")) == 1
    assert get_token_row(db, owner.id) is None
    assert db.execute(select(GoogleCalendarWebhook)).scalars().all() == []


# Sync


def test_sync_requires_venue_id(client, auth_headers):
    r = client.post("/api/calendar/sync", json={}, headers=auth_headers)

    assert r.status_code == 400
    assert r.json() == {"error": "Venue ID is required"}


def test_sync_rejects_venues_owned_by_someone_else(client, venue, other_user):
    headers = {"Authorization": f"Bearer {create_access_token(other_user.id)}"}

    r = client.post("/api/calendar/sync", json={"venueId": venue.id}, headers=headers)

    assert r.status_code == 403


def test_sync_imports_events(client, auth_headers, db, venue, token, fake_google):
    fake_google.events = [timed_event("e1", _at(1, 18), _at(1, 22)), timed_event("e2", _at(2, 18), _at(2, 22))]

    r = client.post("/api/calendar/sync", json={"venueId": venue.id, "lookAheadDays": 30}, headers=auth_headers)

    assert r.status_code == 200
    assert r.json() == {"success": True, "message": "Successfully synced 2 events", "count": 2}
    again = client.post("/api/calendar/sync", json={"venueId": venue.id}, headers=auth_headers)
    assert again.json()["count"] == 0

    actions = db.execute(select(AuditLog.action_type).where(AuditLog.target_id == venue.id)).scalars().all()
    assert actions.count("CALENDAR_SYNC") == 2


def test_sync_without_connection_is_a_server_error(client, auth_headers, venue):
    r = client.post("/api/calendar/sync", json={"venueId": venue.id}, headers=auth_headers)

    assert r.status_code == 500
    assert r.json() == {"error": "Google Calendar not connected or token is invalid"}


def test_sync_validates_lookahead(client, auth_headers, venue):
    r = client.post("/api/calendar/sync", json={"venueId": venue.id, "lookAheadDays": 0}, headers=auth_headers)

    assert r.status_code == 422
    assert "details" in r.json()


# Webhooks


def test_webhook_setup(client, auth_headers, venue, token):
    r = client.post("/api/calendar/webhook/setup", json={"venueId": venue.id}, headers=auth_headers)

    assert r.status_code == 200
    body = r.json()
    assert body["success"] is True
    assert "expiresAt" in body


def test_webhook_setup_without_connection(client, auth_headers, venue):
    r = client.post("/api/calendar/webhook/setup", json={"venueId": venue.id}, headers=auth_headers)

    assert r.status_code == 400
    assert r.json() == {"error": "Google Calendar not connected or token is invalid"}


def test_notification_requires_channel_header(client):
    r = client.post("/api/calendar/webhook/notifications")

    assert r.status_code == 400
    assert r.json() == {"error": "Missing channel ID"}


def test_notification_for_unknown_channel(client):
    r = client.post("/api/calendar/webhook/notifications", headers={"X-Goog-Channel-ID": "nope", "X-Goog-Resource-State": "exists"})

    assert r.status_code == 404


def test_exists_notification_rebuilds_blocks(client, db, owner, venue, token, fake_google):
    db.add(GoogleCalendarWebhook(channel_id="chan-1", resource_id="res", calendar_id=CALENDAR_ID, user_id=owner.id, venue_id=venue.id, expiration=_at(30, 0)))
    db.add(VenueAvailability(venue_id=venue.id, title="Stale", start_time=_at(1, 9), end_time=_at(1, 10), source=SOURCE_GOOGLE, google_event_id="stale"))
    db.commit()
    fake_google.events = [timed_event("fresh", _at(2, 9), _at(2, 10))]

    r = client.post(
        "/api/calendar/webhook/notifications",
        headers={"X-Goog-Channel-ID": "chan-1", "X-Goog-Resource-State": "exists", "X-Goog-Message-Number": "3"},
    )

    assert r.status_code == 200
    assert r.content == b""
    ids = db.execute(select(VenueAvailability.google_event_id).where(VenueAvailability.venue_id == venue.id)).scalars().all()
    assert ids == ["fresh"]


def test_sync_notification_is_acknowledged(client, db, owner, venue):
    db.add(GoogleCalendarWebhook(channel_id="chan-1", resource_id="res", calendar_id=CALENDAR_ID, user_id=owner.id, venue_id=venue.id, expiration=_at(30, 0)))
    db.commit()

    r = client.post("/api/calendar/webhook/notifications", headers={"X-Goog-Channel-ID": "chan-1", "X-Goog-Resource-State": "sync"})

    assert r.status_code == 200


# Business hours


def test_business_hours_round_trip(client, auth_headers, venue):
    hours = [{"daysOfWeek": [1, 2, 3, 4, 5], "startTime": "09:00", "endTime": "17:00"}]

    r = client.post("/api/calendar/business-hours", json={"venueId": venue.id, "businessHours": hours}, headers=auth_headers)
    assert r.status_code == 200
    assert r.json() == {"message": "Business hours updated successfully"}

    got = client.get("/api/calendar/business-hours", params={"venueId": venue.id})
    assert got.json() == {"data": hours}


def test_business_hours_require_venue_and_hours(client, auth_headers, venue):
    r = client.post("/api/calendar/business-hours", json={"venueId": venue.id}, headers=auth_headers)

    assert r.status_code == 400
    assert r.json() == {"error": "Venue ID and business hours are required"}


def test_business_hours_are_owner_only(client, venue, other_user):
    headers = {"Authorization": f"Bearer {create_access_token(other_user.id)}"}
    payload = {"venueId": venue.id, "businessHours": []}

    assert client.post("/api/calendar/business-hours", json=payload, headers=headers).status_code == 403


# Manual blocks and views


def test_manual_block_lifecycle(client, auth_headers, venue):
    created = client.post(
        "/api/calendar/availability",
        json={"venue_id": venue.id, "title": "Private hire", "start_time": "2024-06-10T18:00:00Z", "end_time": "2024-06-10T23:00:00Z"},
        headers=auth_headers,
    )
    assert created.status_code == 200
    block = created.json()
    assert block["source"] == "manual"

    listed = client.get("/api/calendar/availability", params={"venueId": venue.id, "startDate": "2024-06-01", "endDate": "2024-06-30"})
    assert listed.status_code == 200
    assert [b["id"] for b in listed.json()["data"]] == [block["id"]]

    deleted = client.delete(f"/api/calendar/availability/{block['id']}", headers=auth_headers)
    assert deleted.status_code == 200
    listed = client.get("/api/calendar/availability", params={"venueId": venue.id, "startDate": "2024-06-01", "endDate": "2024-06-30"})
    assert listed.json()["data"] == []


def test_manual_block_with_bad_range(client, auth_headers, venue):
    r = client.post(
        "/api/calendar/availability",
        json={"venue_id": venue.id, "start_time": "2024-06-10T18:00:00Z", "end_time": "2024-06-10T17:00:00Z"},
        headers=auth_headers,
    )

    assert r.status_code == 400
    assert r.json() == {"error": "Invalid time range"}


def test_google_block_cannot_be_deleted(client, auth_headers, db, venue):
    b = VenueAvailability(venue_id=venue.id, title="Synced", start_time=_at(1, 9), end_time=_at(1, 10), source=SOURCE_GOOGLE, google_event_id="g1")
    db.add(b)
    db.commit()

    r = client.delete(f"/api/calendar/availability/{b.id}", headers=auth_headers)

    assert r.status_code == 400


def test_calendar_events_view(client, auth_headers, db, venue):
    client.post(
        "/api/calendar/business-hours",
        json={"venueId": venue.id, "businessHours": [{"daysOfWeek": [1], "startTime": "09:00", "endTime": "17:00"}]},
        headers=auth_headers,
    )
    db.add(VenueAvailability(venue_id=venue.id, title="Synced", start_time=_at(3, 9), end_time=_at(3, 10), source=SOURCE_GOOGLE, google_event_id="g1"))
    db.commit()

    r = client.get("/api/calendar/events", params={"venueId": venue.id, "start": "2024-06-03", "end": "2024-06-03"})

    assert r.status_code == 200
    events = r.json()
    assert [(e["display"], e["backgroundColor"]) for e in events] == [("background", "#22c55e"), ("auto", "#64748b")]
    assert events[1]["allDay"] is False


def test_check_availability(client, db, venue):
    db.add(VenueAvailability(venue_id=venue.id, title="Busy", start_time=_at(1, 18), end_time=_at(1, 20), source="manual"))
    db.commit()

    busy = client.get("/api/calendar/check-availability", params={"startDate": "2024-06-01", "endDate": "2024-06-01", "startTime": "19:00", "endTime": "21:00"})
    assert busy.json() == {"availableVenueIds": [], "unavailableVenueIds": [venue.id]}

    free = client.get("/api/calendar/check-availability", params={"startDate": "2024-06-02", "endDate": "2024-06-02"})
    assert free.json() == {"availableVenueIds": [venue.id], "unavailableVenueIds": []}

    missing = client.get("/api/calendar/check-availability", params={"startDate": "2024-06-02"})
    assert missing.status_code == 400


# Venues


def test_create_and_list_own_venues(client, auth_headers, venue):
    r = client.post("/api/venues", json={"name": "Rooftop"}, headers=auth_headers)

    assert r.status_code == 200
    assert r.json()["status"] == "pending"
    names = [v["name"] for v in client.get("/api/venues", headers=auth_headers).json()]
    assert names == ["Harbour Loft", "Rooftop"]


def test_collaboration_schedule_and_availability_calendar(client, auth_headers, db, venue):
    schedule = {
        "default_weekly": {"1": [{"type": "revenue_share", "amount": 20, "description": None}]},
        "date_overrides": {},
    }
    put = client.put(f"/api/venues/{venue.id}/collaboration-schedule", json={"schedule": schedule}, headers=auth_headers)
    assert put.status_code == 200

    got = client.get(f"/api/venues/{venue.id}/collaboration-schedule")
    assert got.json()["schedule"] == schedule

    db.add(VenueAvailability(venue_id=venue.id, title="Busy", start_time=_at(4, 10), end_time=_at(4, 12), source="manual"))
    db.commit()

    cal = client.get(f"/api/venues/{venue.id}/availability-calendar", params={"start_date": "2024-06-03", "end_date": "2024-06-04"})
    assert cal.status_code == 200
    days = cal.json()["calendar_data"]
    assert [(d["date"], d["status"]) for d in days] == [("2024-06-03", "available"), ("2024-06-04", "blocked")]
    assert days[0]["collaboration_types"][0]["type"] == "revenue_share"


def test_collaboration_schedule_rejects_unknown_types(client, auth_headers, venue):
    schedule = {"default_weekly": {"1": [{"type": "barter", "amount": 0}]}, "date_overrides": {}}

    r = client.put(f"/api/venues/{venue.id}/collaboration-schedule", json={"schedule": schedule}, headers=auth_headers)

    assert r.status_code == 422


def test_availability_calendar_requires_dates(client, venue):
    assert client.get(f"/api/venues/{venue.id}/availability-calendar").status_code == 400
    assert client.get("/api/venues/missing/availability-calendar", params={"start_date": "2024-06-01", "end_date": "2024-06-02"}).status_code == 404


# Audit


def test_audit_log_lists_callers_actions(client, auth_headers, venue):
    client.post("/api/calendar/business-hours", json={"venueId": venue.id, "businessHours": []}, headers=auth_headers)

    r = client.get("/api/audit-logs", headers=auth_headers)

    assert r.status_code == 200
    assert [e["action_type"] for e in r.json()] == ["BUSINESS_HOURS_UPDATE"]


def test_auth_events_show_failed_and_successful_logins(client, owner):
    client.post("/api/auth/login", json={"email": OWNER_EMAIL, "password": "wrong"})
    token = client.post("/api/auth/login", json={"email": OWNER_EMAIL, "password": OWNER_PASSWORD}).json()["access_token"]

    r = client.get("/api/auth-events", headers={"Authorization": f"Bearer {token}"})

    assert r.status_code == 200
    assert sorted((e["event_type"], e["failure_reason"]) for e in r.json()) == [("LOGIN_FAIL", "bad_password"), ("LOGIN_SUCCESS", "")]
