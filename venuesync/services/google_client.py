from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Optional
from urllib.parse import quote

import httpx

logger = logging.getLogger(__name__)

GOOGLE_AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"  # noqa: S105 - OAuth endpoint URL
GOOGLE_REVOKE_URL = "https://oauth2.googleapis.com/revoke"
GOOGLE_CALENDAR_API = "https://www.googleapis.com/calendar/v3"

# Largest page the events.list endpoint will return
MAX_EVENT_RESULTS = 2500


class GoogleCalendarError(Exception):
    """Raised when Google rejects a request or cannot be reached."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


def _error_message(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}"

    err = data.get("error") if isinstance(data, dict) else None
    if isinstance(err, dict):
        return err.get("message") or "Unknown error"
    if isinstance(err, str):
        # OAuth endpoints: {"error": "invalid_grant", "error_description": "..."}
        return data.get("error_description") or err
    return "Unknown error"


class GoogleCalendarClient:
    """Google OAuth + Calendar v3 client over HTTP.

    One instance is created per request (see ``get_google_client``) and closed
    afterwards. Pass ``http_client`` to supply a preconfigured
    ``httpx.AsyncClient``; the caller then owns its lifecycle.
    """

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        redirect_uri: str = "",
        *,
        scopes: str = "https://www.googleapis.com/auth/calendar",
        timeout: float = 15.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_uri = redirect_uri
        self.scopes = scopes
        self._owns_http = http_client is None
        self._http = http_client or httpx.AsyncClient(timeout=timeout)

    async def aclose(self) -> None:
        if self._owns_http:
            await self._http.aclose()

    async def _request(self, method: str, url: str, **kwargs: Any) -> dict[str, Any]:
        try:
            r = await self._http.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            raise GoogleCalendarError(f"Google request failed: {e}") from e

        if r.status_code >= 400:
            message = _error_message(r)
            logger.warning("Google %s %s returned %s: %s", method, url, r.status_code, message)
            raise GoogleCalendarError(message, status_code=r.status_code)
        if r.status_code == 204 or not r.content:
            return {}
        try:
            return r.json()
        except ValueError as e:
            logger.warning("Google %s %s returned a non-JSON body", method, url)
            raise GoogleCalendarError("Invalid response from Google", status_code=r.status_code) from e

    # OAuth

    def authorization_url(self, state: str) -> str:
        params = {
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "response_type": "code",
            "scope": self.scopes,
            "access_type": "offline",
            "prompt": "consent",  # forces a refresh_token on every consent
            "state": state,
        }
        return str(httpx.URL(GOOGLE_AUTH_URL, params=params))

    async def exchange_code(self, code: str) -> dict[str, Any]:
        return await self._request(
            "POST",
            GOOGLE_TOKEN_URL,
            data={
                "code": code,
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "redirect_uri": self.redirect_uri,
                "grant_type": "authorization_code",
            },
        )

    async def refresh_access_token(self, refresh_token: str) -> dict[str, Any]:
        return await self._request(
            "POST",
            GOOGLE_TOKEN_URL,
            data={
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "refresh_token": refresh_token,
                "grant_type": "refresh_token",
            },
        )

    async def revoke_token(self, token: str) -> None:
        await self._request("POST", GOOGLE_REVOKE_URL, params={"token": token})

    # Calendar

    @staticmethod
    def _auth(access_token: str) -> dict[str, str]:
        return {"Authorization": f"Bearer {access_token}"}

    async def get_primary_calendar_id(self, access_token: str) -> str | None:
        data = await self._request("GET", f"{GOOGLE_CALENDAR_API}/users/me/calendarList", headers=self._auth(access_token))
        for item in data.get("items") or []:
            if item.get("primary") is True:
                return item.get("id")
        return None

    async def list_events(self, access_token: str, calendar_id: str, *, time_min: datetime, time_max: datetime) -> list[dict[str, Any]]:
        """List concrete event occurrences in ``[time_min, time_max)``.

        Recurring events are expanded by Google (``singleEvents``) and the
        result is capped at a single page of ``MAX_EVENT_RESULTS``.
        """
        data = await self._request(
            "GET",
            f"{GOOGLE_CALENDAR_API}/calendars/{quote(calendar_id, safe='')}/events",
            headers=self._auth(access_token),
            params={
                "timeMin": time_min.isoformat(),
                "timeMax": time_max.isoformat(),
                "singleEvents": "true",
                "orderBy": "startTime",
                "maxResults": str(MAX_EVENT_RESULTS),
            },
        )
        items = data.get("items")
        if not isinstance(items, list):
            raise GoogleCalendarError("No events found or invalid response format")
        return items

    async def watch_events(self, access_token: str, calendar_id: str, *, channel_id: str, address: str, expiration: datetime) -> dict[str, Any]:
        return await self._request(
            "POST",
            f"{GOOGLE_CALENDAR_API}/calendars/{quote(calendar_id, safe='')}/events/watch",
            headers=self._auth(access_token),
            json={
                "id": channel_id,
                "type": "web_hook",
                "address": address,
                "expiration": str(int(expiration.timestamp() * 1000)),
            },
        )

    async def stop_channel(self, access_token: str, *, channel_id: str, resource_id: str) -> None:
        await self._request(
            "POST",
            f"{GOOGLE_CALENDAR_API}/channels/stop",
            headers=self._auth(access_token),
            json={"id": channel_id, "resourceId": resource_id},
        )
