from __future__ import annotations

from typing import AsyncIterator

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError
from sqlalchemy.orm import Session

from venuesync.core.config import get_settings
from venuesync.core.security import PURPOSE_CLAIM, decode_access_token
from venuesync.db.session import SessionLocal
from venuesync.models.user import User
from venuesync.models.venue import Venue
from venuesync.services.google_client import GoogleCalendarClient

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login")


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


async def get_google_client() -> AsyncIterator[GoogleCalendarClient]:
    """One Google client per request, closed when the response is done."""
    settings = get_settings()
    client = GoogleCalendarClient(
        settings.google_client_id,
        settings.google_client_secret,
        settings.oauth_redirect_uri,
        scopes=settings.google_scopes,
        timeout=settings.google_http_timeout_seconds,
    )
    try:
        yield client
    finally:
        await client.aclose()


def get_current_user(db: Session = Depends(get_db), token: str = Depends(oauth2_scheme)) -> User:
    try:
        payload = decode_access_token(token)
        user_id = payload.get("sub")
    except JWTError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Authentication required")

    if not user_id or payload.get(PURPOSE_CLAIM):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Authentication required")

    user = db.get(User, user_id)
    if not user or not user.is_active:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Inactive or missing user")
    return user


def get_owned_venue(db: Session, venue_id: str, user: User) -> Venue:
    """Load a venue owned by ``user`` or fail with 403."""
    venue = db.get(Venue, venue_id)
    if venue is None or venue.owner_id != user.id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Venue not found or you do not have permission to access it")
    return venue
