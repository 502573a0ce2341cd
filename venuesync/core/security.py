from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from jose import JWTError, jwt
from passlib.context import CryptContext

from venuesync.core.config import get_settings

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

# Claim that marks a token as usable only for one flow (never as a session)
PURPOSE_CLAIM = "purpose"
CALENDAR_CONNECT_PURPOSE = "calendar_connect"
STATE_TOKEN_EXP_MINUTES = 10


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def _encode(subject: str, minutes: int, extra_claims: Optional[Dict[str, Any]] = None) -> str:
    settings = get_settings()
    now = datetime.now(timezone.utc)

    payload: Dict[str, Any] = {
        "sub": subject,
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(minutes=minutes)).timestamp()),
    }
    if extra_claims:
        payload.update(extra_claims)
    return jwt.encode(payload, settings.secret_key, algorithm=settings.jwt_algorithm)


def create_access_token(subject: str, extra_claims: Optional[Dict[str, Any]] = None) -> str:
    """Create a session JWT for a user id."""
    return _encode(subject, get_settings().access_token_exp_minutes, extra_claims)


def decode_access_token(token: str) -> Dict[str, Any]:
    settings = get_settings()
    return jwt.decode(token, settings.secret_key, algorithms=[settings.jwt_algorithm])


def create_state_token(user_id: str) -> str:
    """Short-lived OAuth ``state`` binding a Google consent round-trip to a user."""
    return _encode(user_id, STATE_TOKEN_EXP_MINUTES, {PURPOSE_CLAIM: CALENDAR_CONNECT_PURPOSE})


def read_state_token(state: str) -> str | None:
    """User id from a state token, or None if it is forged, expired or a session token."""
    try:
        claims = decode_access_token(state)
    except JWTError:
        return None
    if claims.get(PURPOSE_CLAIM) != CALENDAR_CONNECT_PURPOSE:
        return None
    return claims.get("sub") or None
