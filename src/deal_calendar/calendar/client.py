"""Thin Google Calendar client used by the sync engine.

Provides :class:`GoogleCalendarClient`, a wrapper around the Google Calendar
v3 API and the Google OAuth token endpoint:

- **Create** -- insert an event for a local event, return its Google ID.
- **Delete** -- delete an event by its Google ID.
- **List** -- list events in a time range, following pagination.
- **Refresh** -- exchange a refresh token for a new access token.

Every method takes the access token to act with, performs exactly one
logical request/response exchange bounded by the configured timeout, and
never retries.  Failures surface as
:class:`~deal_calendar.calendar.exceptions.CalendarAPIError` subclasses via
:func:`~deal_calendar.calendar.exceptions.translate_errors`.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

import httplib2
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from google_auth_httplib2 import AuthorizedHttp
from googleapiclient.discovery import build

from deal_calendar.calendar.event_mapper import map_to_google_event
from deal_calendar.calendar.exceptions import (
    CalendarAPIError,
    CalendarAuthError,
    translate_errors,
)
from deal_calendar.config import Settings
from deal_calendar.models.calendar import LocalCalendarEvent

logger = logging.getLogger(__name__)

SCOPES: list[str] = [
    "openid",
    "https://www.googleapis.com/auth/userinfo.email",
    "https://www.googleapis.com/auth/calendar.events",
]
"""OAuth 2.0 scopes: create/delete events and read the account email."""

GOOGLE_TOKEN_URI = "https://oauth2.googleapis.com/token"

# Google Calendar API calendar identifier for the primary calendar.
_PRIMARY_CALENDAR = "primary"


@dataclass(frozen=True)
class RefreshedToken:
    """A freshly issued access token.

    Attributes:
        access_token: The new access token.
        expiry: Timezone-aware UTC expiry, or ``None`` if Google omitted
            ``expires_in``.
    """

    access_token: str
    expiry: datetime | None


class _TimeoutRequest(Request):
    """``google-auth`` transport that applies a fixed timeout to every call."""

    def __init__(self, timeout: float) -> None:
        super().__init__()
        self._timeout = timeout

    def __call__(self, url, method="GET", body=None, headers=None, timeout=None, **kwargs):
        return super().__call__(
            url,
            method=method,
            body=body,
            headers=headers,
            timeout=timeout if timeout is not None else self._timeout,
            **kwargs,
        )


class GoogleCalendarClient:
    """Stateless client for the Google Calendar operations the engine needs.

    Args:
        client_id: OAuth client ID (used for token refresh).
        client_secret: OAuth client secret (used for token refresh).
        timezone: IANA timezone that local event times are expressed in.
        timeout: Per-request timeout in seconds.
        service_factory: Optional callable mapping an access token to a
            ``googleapiclient`` service resource.  Pass one returning a
            mock in tests; by default a real ``calendar`` v3 resource is
            built for each call.
    """

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        timezone: str,
        timeout: float = 30.0,
        service_factory: Callable[[str], Any] | None = None,
    ) -> None:
        self._client_id = client_id
        self._client_secret = client_secret
        self._timezone = timezone
        self._timeout = timeout
        self._service_factory = service_factory or self._build_service

    @classmethod
    def from_settings(cls, settings: Settings) -> GoogleCalendarClient:
        """Create a client configured from application :class:`Settings`."""
        return cls(
            client_id=settings.google_client_id,
            client_secret=settings.google_client_secret,
            timezone=settings.timezone,
            timeout=settings.provider_timeout_seconds,
        )

    def _build_service(self, access_token: str) -> Any:
        credentials = Credentials(token=access_token)
        http = AuthorizedHttp(credentials, http=httplib2.Http(timeout=self._timeout))
        return build("calendar", "v3", http=http, cache_discovery=False)

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    @translate_errors
    def create_event(self, access_token: str, event: LocalCalendarEvent) -> str:
        """Create *event* on the user's primary calendar.

        Args:
            access_token: A valid OAuth access token.
            event: The local event to mirror.

        Returns:
            The Google Calendar event ID.

        Raises:
            CalendarAPIError: If the event cannot be mapped, the request
                fails, or the response carries no event ID.
        """
        try:
            body = map_to_google_event(event, self._timezone)
        except ValueError as exc:
            raise CalendarAPIError(f"Invalid event payload: {exc}") from exc

        service = self._service_factory(access_token)
        result = (
            service.events()
            .insert(calendarId=_PRIMARY_CALENDAR, body=body)
            .execute()
        )

        remote_id = result.get("id") if isinstance(result, dict) else None
        if not remote_id:
            raise CalendarAPIError("Google Calendar response did not include an event id")

        logger.info("Created Google event '%s' (id=%s)", event.title, remote_id)
        return remote_id

    @translate_errors
    def delete_event(self, access_token: str, remote_event_id: str) -> None:
        """Delete an event by its Google Calendar ID.

        Raises:
            CalendarNotFoundError: If the event no longer exists.
            CalendarAPIError: For any other failure.
        """
        service = self._service_factory(access_token)
        service.events().delete(
            calendarId=_PRIMARY_CALENDAR, eventId=remote_event_id
        ).execute()
        logger.info("Deleted Google event (id=%s)", remote_event_id)

    @translate_errors
    def list_events(
        self,
        access_token: str,
        time_min: datetime,
        time_max: datetime,
    ) -> list[dict]:
        """List events between *time_min* and *time_max*.

        Naive datetimes are taken to be UTC.  All result pages are fetched.

        Returns:
            A flat list of Google Calendar event resource dicts.
        """
        service = self._service_factory(access_token)
        all_events: list[dict] = []
        page_token: str | None = None

        while True:
            response = (
                service.events()
                .list(
                    calendarId=_PRIMARY_CALENDAR,
                    timeMin=_rfc3339(time_min),
                    timeMax=_rfc3339(time_max),
                    singleEvents=True,
                    orderBy="startTime",
                    pageToken=page_token,
                )
                .execute()
            )
            all_events.extend(response.get("items", []))

            page_token = response.get("nextPageToken")
            if page_token is None:
                break

        logger.info(
            "Listed %d Google event(s) between %s and %s",
            len(all_events),
            time_min.isoformat(),
            time_max.isoformat(),
        )
        return all_events

    # ------------------------------------------------------------------
    # Tokens
    # ------------------------------------------------------------------

    @translate_errors
    def refresh_access_token(self, refresh_token: str) -> RefreshedToken:
        """Exchange *refresh_token* for a new access token.

        Raises:
            CalendarAuthError: If Google rejects the refresh token, or the
                response is malformed or carries no usable access token.
            CalendarAPIError: On network failure or timeout.
        """
        credentials = Credentials(
            token=None,
            refresh_token=refresh_token,
            token_uri=GOOGLE_TOKEN_URI,
            client_id=self._client_id,
            client_secret=self._client_secret,
            scopes=SCOPES,
        )
        try:
            credentials.refresh(_TimeoutRequest(self._timeout))
        except (TypeError, ValueError, KeyError) as exc:
            # google-auth indexes the body directly; a non-object body lands here.
            raise CalendarAuthError(f"Malformed token endpoint response: {exc}") from exc

        if not isinstance(credentials.token, str) or not credentials.token:
            raise CalendarAuthError("Token endpoint returned no access token")

        expiry = credentials.expiry
        if expiry is not None and expiry.tzinfo is None:
            # google-auth reports expiry as naive UTC.
            expiry = expiry.replace(tzinfo=timezone.utc)

        logger.info("Access token refreshed (expires %s)", expiry.isoformat() if expiry else "?")
        return RefreshedToken(access_token=credentials.token, expiry=expiry)


def _rfc3339(dt: datetime) -> str:
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.isoformat()
