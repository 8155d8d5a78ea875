"""OAuth 2.0 credential handling for Google Calendar.

Two concerns live here:

- :class:`CredentialManager` hands out a usable access token for a user,
  refreshing it on demand when it is within the configured skew of its
  expiry, and deactivating the connection when the refresh fails.
- :func:`build_authorization_url`, :func:`complete_authorization` and
  :func:`disconnect` establish and tear down a user's connection using the
  ``google-auth-oauthlib`` web-server flow.

Usage::

    manager = CredentialManager(store, GoogleCalendarClient.from_settings(settings),
                                refresh_skew=settings.token_refresh_skew)
    lookup = manager.get_valid_access_token(user_id)
    if lookup.is_valid:
        ...
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from typing import Protocol

from google_auth_oauthlib.flow import Flow
from googleapiclient.discovery import build

from deal_calendar.calendar.client import GOOGLE_TOKEN_URI, SCOPES, RefreshedToken
from deal_calendar.calendar.exceptions import (
    CalendarAPIError,
    CalendarAuthError,
    translate_errors,
)
from deal_calendar.config import Settings
from deal_calendar.models.calendar import GOOGLE_PROVIDER, CalendarConnection, TokenLookup
from deal_calendar.store import CalendarStore

logger = logging.getLogger(__name__)

DEFAULT_REFRESH_SKEW = timedelta(minutes=10)

_GOOGLE_AUTH_URI = "https://accounts.google.com/o/oauth2/auth"


class TokenRefresher(Protocol):
    """Anything that can exchange a refresh token for a new access token."""

    def refresh_access_token(self, refresh_token: str) -> RefreshedToken: ...


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


class CredentialManager:
    """Refresh-on-demand access token provider.

    A stored token is returned untouched while its expiry is more than
    *refresh_skew* away.  Otherwise the refresh token is exchanged once; on
    success the new token and expiry are written back to the connection, on
    any failure the connection is deactivated and the caller is told to
    have the user reconnect.  A deactivated connection is never reactivated
    here.

    Args:
        store: Store holding the users' calendar connections.
        refresher: Performs the token-endpoint call.
        refresh_skew: How far ahead of expiry to refresh.
        clock: Returns the current timezone-aware time (injectable for tests).
    """

    def __init__(
        self,
        store: CalendarStore,
        refresher: TokenRefresher,
        refresh_skew: timedelta = DEFAULT_REFRESH_SKEW,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._store = store
        self._refresher = refresher
        self._refresh_skew = refresh_skew
        self._clock = clock

    def get_valid_access_token(
        self,
        user_id: str,
        provider: str = GOOGLE_PROVIDER,
    ) -> TokenLookup:
        """Return a usable access token for *user_id*, refreshing if needed.

        Returns:
            A :class:`TokenLookup` whose status is ``"valid"`` (token
            attached), ``"not_connected"`` (no active connection) or
            ``"reauth_required"`` (refresh failed; connection deactivated).
        """
        connection = self._store.get_active_connection(user_id, provider)
        if connection is None:
            logger.info("No active %s calendar connection for user %s", provider, user_id)
            return TokenLookup(status="not_connected")

        if connection.token_expiry is not None:
            remaining = _as_utc(connection.token_expiry) - self._clock()
            if remaining > self._refresh_skew:
                return TokenLookup(status="valid", access_token=connection.access_token)

        if not connection.refresh_token:
            logger.warning(
                "Connection %s has an expiring token and no refresh token; deactivating",
                connection.id,
            )
            self._store.deactivate_connection(connection.id)
            return TokenLookup(status="reauth_required")

        logger.info("Refreshing %s access token for user %s", provider, user_id)
        try:
            refreshed = self._refresher.refresh_access_token(connection.refresh_token)
        except CalendarAPIError as exc:
            logger.warning(
                "Token refresh failed for connection %s, marking it inactive: %s",
                connection.id,
                exc,
            )
            self._store.deactivate_connection(connection.id)
            return TokenLookup(status="reauth_required")

        self._store.update_connection_tokens(
            connection.id, refreshed.access_token, refreshed.expiry
        )
        logger.info("Stored refreshed token for connection %s", connection.id)
        return TokenLookup(status="valid", access_token=refreshed.access_token)


# ---------------------------------------------------------------------------
# Connection establishment
# ---------------------------------------------------------------------------


def _build_flow(settings: Settings, state: str | None = None) -> Flow:
    client_config = {
        "web": {
            "client_id": settings.google_client_id,
            "client_secret": settings.google_client_secret,
            "auth_uri": _GOOGLE_AUTH_URI,
            "token_uri": GOOGLE_TOKEN_URI,
            "redirect_uris": [settings.google_redirect_uri],
        }
    }
    # The callback arrives in a separate request, so no PKCE verifier is kept.
    return Flow.from_client_config(
        client_config,
        scopes=SCOPES,
        state=state,
        redirect_uri=settings.google_redirect_uri,
        autogenerate_code_verifier=False,
    )


def build_authorization_url(settings: Settings, state: str) -> str:
    """Return the Google consent URL the user should be redirected to.

    Offline access and a forced consent prompt make Google issue a refresh
    token every time, including for users who connected before.

    Args:
        settings: Application settings with the OAuth client credentials.
        state: Opaque anti-forgery value echoed back to the callback.
    """
    flow = _build_flow(settings, state=state)
    url, _ = flow.authorization_url(access_type="offline", prompt="consent")
    return url


def complete_authorization(
    settings: Settings,
    store: CalendarStore,
    user_id: str,
    code: str,
) -> CalendarConnection:
    """Exchange an authorization *code* and store the new connection.

    Any previously active connection of the user is deactivated by the
    store, keeping at most one active connection per provider.  The Google
    account email is read from the userinfo endpoint; if that lookup fails
    the connection is saved without it.

    Returns:
        The saved, active :class:`CalendarConnection`.

    Raises:
        CalendarAuthError: If Google rejects the code or the exchange fails.
    """
    flow = _build_flow(settings)
    try:
        flow.fetch_token(code=code)
    except Exception as exc:
        logger.warning("Authorization code exchange failed for user %s: %s", user_id, exc)
        raise CalendarAuthError(f"Authorization code exchange failed: {exc}") from exc

    credentials = flow.credentials
    if not credentials.refresh_token:
        logger.warning(
            "Google issued no refresh token for user %s; the connection will "
            "need reconnecting when the access token expires",
            user_id,
        )

    try:
        email = _fetch_account_email(credentials)
    except CalendarAPIError as exc:
        logger.warning("Could not read the Google account email for user %s: %s", user_id, exc)
        email = None

    expiry = credentials.expiry
    connection = CalendarConnection(
        user_id=user_id,
        provider=GOOGLE_PROVIDER,
        access_token=credentials.token,
        refresh_token=credentials.refresh_token,
        token_expiry=_as_utc(expiry) if expiry is not None else None,
        provider_account_email=email,
    )
    saved = store.save_connection(connection)
    logger.info("Google Calendar connected for user %s (connection %s)", user_id, saved.id)
    return saved


@translate_errors
def _fetch_account_email(credentials) -> str | None:
    service = build("oauth2", "v2", credentials=credentials, cache_discovery=False)
    info = service.userinfo().get().execute()
    return info.get("email") or None


def disconnect(store: CalendarStore, user_id: str, provider: str = GOOGLE_PROVIDER) -> bool:
    """Deactivate the user's active connection.

    Returns:
        ``True`` if a connection was deactivated, ``False`` if none was active.
    """
    connection = store.get_active_connection(user_id, provider)
    if connection is None:
        return False
    store.deactivate_connection(connection.id)
    logger.info("%s calendar disconnected for user %s", provider, user_id)
    return True
