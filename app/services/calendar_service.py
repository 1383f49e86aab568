import json
import logging
import time
from datetime import UTC, datetime
from pathlib import Path
from typing import Protocol
from urllib.parse import quote

import httpx
from jose import jwt

logger = logging.getLogger(__name__)

GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
GOOGLE_CALENDAR_API = "https://www.googleapis.com/calendar/v3"
GOOGLE_CALENDAR_SCOPE = "https://www.googleapis.com/auth/calendar"
JWT_BEARER_GRANT = "urn:ietf:params:oauth:grant-type:jwt-bearer"


class CalendarError(Exception):
    """A calendar call failed. Callers log it and carry on."""


class CalendarAdapter(Protocol):
    async def create_event(self, title: str, body: str, start: datetime, end: datetime) -> str | None:
        """Create an event and return its id, or None when sync is disabled."""
        ...

    async def update_event(self, event_id: str, title: str, body: str, start: datetime, end: datetime) -> None:
        ...

    async def delete_event(self, event_id: str) -> None:
        ...


class DisabledCalendarAdapter:
    """Used when no calendar is configured: bookings simply carry no event id."""

    async def create_event(self, title: str, body: str, start: datetime, end: datetime) -> str | None:
        logger.debug("Calendar sync disabled, not creating event for %s at %s", title, start)
        return None

    async def update_event(self, event_id: str, title: str, body: str, start: datetime, end: datetime) -> None:
        logger.debug("Calendar sync disabled, not updating event %s", event_id)

    async def delete_event(self, event_id: str) -> None:
        logger.debug("Calendar sync disabled, not deleting event %s", event_id)


class GoogleCalendarAdapter:
    """Google Calendar v3 over httpx, authenticated as a service account.

    The access token is cached on the instance until shortly before it expires.
    """

    def __init__(
        self,
        credentials: dict,
        calendar_id: str = "primary",
        timezone: str = "UTC",
        timeout: float = 10.0,
    ) -> None:
        self._client_email = credentials["client_email"]
        self._private_key = credentials["private_key"]
        self._private_key_id = credentials.get("private_key_id")
        self._token_uri = credentials.get("token_uri", GOOGLE_TOKEN_URL)
        self.calendar_id = calendar_id
        self.timezone = timezone
        self.timeout = timeout
        self._access_token: str | None = None
        self._token_expires_at = 0.0

    @classmethod
    def from_key_file(cls, path: str, **kwargs) -> "GoogleCalendarAdapter":
        key_path = Path(path)
        if not key_path.exists():
            raise FileNotFoundError(f"Service account key file not found at: {key_path}")
        credentials = json.loads(key_path.read_text(encoding="utf-8"))
        return cls(credentials, **kwargs)

    def _signed_assertion(self, now: int) -> str:
        claims = {
            "iss": self._client_email,
            "scope": GOOGLE_CALENDAR_SCOPE,
            "aud": self._token_uri,
            "iat": now,
            "exp": now + 3600,
        }
        headers = {"kid": self._private_key_id} if self._private_key_id else None
        return jwt.encode(claims, self._private_key, algorithm="RS256", headers=headers)

    async def _get_access_token(self, client: httpx.AsyncClient) -> str:
        now = int(time.time())
        if self._access_token and now < self._token_expires_at - 60:
            return self._access_token
        resp = await client.post(
            self._token_uri,
            data={"grant_type": JWT_BEARER_GRANT, "assertion": self._signed_assertion(now)},
            headers={"Content-Type": "application/x-www-form-urlencoded"},
        )
        if resp.status_code != 200:
            raise CalendarError(f"Token exchange failed: status={resp.status_code} body={resp.text[:500]}")
        tokens = resp.json()
        access_token = tokens.get("access_token")
        if not access_token:
            raise CalendarError("No access token in token response")
        self._access_token = access_token
        self._token_expires_at = now + int(tokens.get("expires_in", 3600))
        return access_token

    def _event_time(self, dt: datetime) -> dict:
        # stored datetimes are naive UTC
        return {"dateTime": dt.replace(tzinfo=UTC).isoformat(), "timeZone": self.timezone}

    def _events_url(self, event_id: str | None = None) -> str:
        url = f"{GOOGLE_CALENDAR_API}/calendars/{quote(self.calendar_id, safe='')}/events"
        if event_id:
            url += f"/{quote(event_id, safe='')}"
        return url

    async def _request(self, method: str, url: str, payload: dict | None = None) -> httpx.Response:
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            token = await self._get_access_token(client)
            return await client.request(
                method,
                url,
                headers={"Authorization": f"Bearer {token}"},
                json=payload,
            )

    async def create_event(self, title: str, body: str, start: datetime, end: datetime) -> str | None:
        payload = {
            "summary": title,
            "description": body,
            "start": self._event_time(start),
            "end": self._event_time(end),
            "reminders": {
                "useDefault": False,
                "overrides": [
                    {"method": "email", "minutes": 24 * 60},
                    {"method": "popup", "minutes": 120},
                ],
            },
        }
        resp = await self._request("POST", self._events_url(), payload)
        if resp.status_code not in (200, 201):
            raise CalendarError(f"Create event failed: status={resp.status_code} body={resp.text[:500]}")
        event_id = resp.json().get("id")
        logger.info("Created calendar event %s for %s at %s", event_id, title, start)
        return event_id

    async def update_event(self, event_id: str, title: str, body: str, start: datetime, end: datetime) -> None:
        payload = {
            "summary": title,
            "description": body,
            "start": self._event_time(start),
            "end": self._event_time(end),
        }
        resp = await self._request("PATCH", self._events_url(event_id), payload)
        if resp.status_code != 200:
            raise CalendarError(f"Update event {event_id} failed: status={resp.status_code} body={resp.text[:500]}")
        logger.info("Updated calendar event %s for %s at %s", event_id, title, start)

    async def delete_event(self, event_id: str) -> None:
        resp = await self._request("DELETE", self._events_url(event_id))
        if resp.status_code in (404, 410):
            logger.info("Calendar event %s already gone", event_id)
            return
        if resp.status_code not in (200, 204):
            raise CalendarError(f"Delete event {event_id} failed: status={resp.status_code} body={resp.text[:500]}")
        logger.info("Deleted calendar event %s", event_id)
