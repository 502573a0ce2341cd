"""Shared fixtures: in-memory database, fake Google endpoints, API client."""

from __future__ import annotations

import json
import os
from collections.abc import Iterator
from datetime import datetime, timedelta, timezone
from typing import Any

# Settings are read once at import time; point them at test values first.
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SECRET_KEY", "test-secret")
os.environ.setdefault("PUBLIC_BASE_URL", "https://venues.test")
os.environ.setdefault("GOOGLE_CLIENT_ID", "client-id")
os.environ.setdefault("GOOGLE_CLIENT_SECRET", "client-secret")
os.environ.setdefault("TIMEZONE", "UTC")

import httpx
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

import venuesync.models  # noqa: F401
from venuesync.core.security import create_access_token, hash_password
from venuesync.core.timeutil import utcnow
from venuesync.db.base import Base
from venuesync.models.google_calendar import GoogleCalendarToken
from venuesync.models.user import User
from venuesync.models.venue import Venue
from venuesync.services.google_client import (
    GOOGLE_CALENDAR_API,
    GOOGLE_REVOKE_URL,
    GOOGLE_TOKEN_URL,
    GoogleCalendarClient,
)

NOW = datetime(2024, 5, 20, 12, 0, tzinfo=timezone.utc)
OWNER_EMAIL = "owner@venues.io"
OWNER_PASSWORD = "correct horse battery"
CALENDAR_ID = "owner@venues.io"


def timed_event(event_id: str, start: datetime, end: datetime, **extra: Any) -> dict[str, Any]:
    item = {
        "id": event_id,
        "summary": extra.pop("summary", f"Event {event_id}"),
        "start": {"dateTime": start.isoformat()},
        "end": {"dateTime": end.isoformat()},
    }
    item.update(extra)
    return item


def all_day_event(event_id: str, first: str, exclusive_end: str, **extra: Any) -> dict[str, Any]:
    item = {"id": event_id, "summary": f"Event {event_id}", "start": {"date": first}, "end": {"date": exclusive_end}}
    item.update(extra)
    return item


class FakeGoogle:
    """Stand-in for the Google OAuth and Calendar v3 endpoints."""

    def __init__(self) -> None:
        self.events: list[dict[str, Any]] = []
        self.events_status = 200
        self.token_status = 200
        self.watch_status = 200
        self.refresh_payload: dict[str, Any] = {"access_token": "refreshed-access", "expires_in": 3600}
        self.code_payload: dict[str, Any] = {"access_token": "new-access", "refresh_token": "new-refresh", "expires_in": 3600}
        self.requests: list[httpx.Request] = []

    def calls_to(self, suffix: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.path.endswith(suffix)]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        url = f"{request.url.scheme}://{request.url.host}{request.url.path}"

        if url == GOOGLE_TOKEN_URL:
            if self.token_status >= 400:
                return httpx.Response(self.token_status, json={"error": "invalid_grant", "error_description": "Token has been revoked."})
            form = dict(httpx.QueryParams(request.content.decode()))
            if form.get("grant_type") == "refresh_token":
                return httpx.Response(200, json=self.refresh_payload)
            return httpx.Response(200, json=self.code_payload)

        if url == GOOGLE_REVOKE_URL:
            return httpx.Response(200)

        if url == f"{GOOGLE_CALENDAR_API}/users/me/calendarList":
            return httpx.Response(200, json={"items": [{"id": "holidays@group", "primary": False}, {"id": CALENDAR_ID, "primary": True}]})

        if url == f"{GOOGLE_CALENDAR_API}/channels/stop":
            return httpx.Response(204)

        if url.endswith("/events/watch"):
            if self.watch_status >= 400:
                return httpx.Response(self.watch_status, json={"error": {"code": self.watch_status, "message": "Push notifications are not enabled"}})
            body = json.loads(request.content)
            return httpx.Response(200, json={"kind": "api#channel", "id": body["id"], "resourceId": "resource-1", "expiration": body["expiration"]})

        if url.endswith("/events"):
            if self.events_status >= 400:
                return httpx.Response(self.events_status, json={"error": {"code": self.events_status, "message": "Backend Error"}})
            return httpx.Response(200, json={"kind": "calendar#events", "items": self.events})

        return httpx.Response(404, json={"error": {"code": 404, "message": f"unexpected {request.method} {url}"}})


@pytest.fixture
def engine():
    eng = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    Base.metadata.create_all(bind=eng)
    yield eng
    eng.dispose()


@pytest.fixture
def db(engine) -> Iterator[Session]:
    TestingSession = sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)
    session = TestingSession()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def fake_google() -> FakeGoogle:
    return FakeGoogle()


@pytest.fixture
def google(fake_google: FakeGoogle) -> GoogleCalendarClient:
    http = httpx.AsyncClient(transport=httpx.MockTransport(fake_google.handler))
    return GoogleCalendarClient("client-id", "client-secret", "https://venues.test/api/calendar/callback", http_client=http)


@pytest.fixture
def owner(db: Session) -> User:
    u = User(email=OWNER_EMAIL, name="Venue Owner", hashed_password=hash_password(OWNER_PASSWORD), is_active=True)
    db.add(u)
    db.commit()
    return u


@pytest.fixture
def other_user(db: Session) -> User:
    u = User(email="someone@venues.io", name="Someone Else", hashed_password=hash_password("another password"), is_active=True)
    db.add(u)
    db.commit()
    return u


@pytest.fixture
def venue(db: Session, owner: User) -> Venue:
    v = Venue(owner_id=owner.id, name="Harbour Loft", status="approved")
    db.add(v)
    db.commit()
    return v


@pytest.fixture
def token(db: Session, owner: User) -> GoogleCalendarToken:
    t = GoogleCalendarToken(
        user_id=owner.id,
        access_token="stored-access",
        refresh_token="stored-refresh",
        expires_at=utcnow() + timedelta(hours=1),
        calendar_id=CALENDAR_ID,
    )
    db.add(t)
    db.commit()
    return t


@pytest.fixture
def auth_headers(owner: User) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(owner.id)}"}


@pytest.fixture
def client(db: Session, google: GoogleCalendarClient):
    from fastapi.testclient import TestClient

    from venuesync.core.deps import get_db, get_google_client
    from venuesync.main import app

    def _get_db():
        yield db

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_google_client] = lambda: google
    try:
        with TestClient(app) as c:
            yield c
    finally:
        app.dependency_overrides.clear()
