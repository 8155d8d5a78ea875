"""Configuration loading for deal-calendar.

Reads settings from environment variables (with .env support via python-dotenv)
and validates that all required values are present.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import timedelta
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dotenv import load_dotenv


class ConfigError(Exception):
    """Raised when required configuration is missing or invalid."""


_DEFAULT_REDIRECT_URI = "http://localhost:3000/api/calendar/google/callback"


@dataclass(frozen=True)
class Settings:
    """Application settings loaded from environment variables.

    Attributes:
        google_client_id: OAuth client ID of the Google Cloud project.
        google_client_secret: OAuth client secret of the Google Cloud project.
        google_redirect_uri: Callback URL registered for the OAuth consent flow.
        timezone: IANA timezone that milestone events are scheduled in
            (default ``"America/Los_Angeles"``).
        token_refresh_skew_minutes: How long before expiry an access token
            is refreshed (default ``10``).
        provider_timeout_seconds: Timeout applied to every Google HTTP call
            (default ``30``).
        log_level: Logging level (default ``"INFO"``).
    """

    google_client_id: str
    google_client_secret: str
    google_redirect_uri: str = _DEFAULT_REDIRECT_URI
    timezone: str = "America/Los_Angeles"
    token_refresh_skew_minutes: int = 10
    provider_timeout_seconds: float = 30.0
    log_level: str = "INFO"

    @property
    def token_refresh_skew(self) -> timedelta:
        """The refresh lookahead as a :class:`~datetime.timedelta`."""
        return timedelta(minutes=self.token_refresh_skew_minutes)

    def __repr__(self) -> str:
        return (
            f"Settings(google_client_id={self.google_client_id!r}, "
            f"google_client_secret='***', "
            f"google_redirect_uri={self.google_redirect_uri!r}, "
            f"timezone={self.timezone!r}, "
            f"token_refresh_skew_minutes={self.token_refresh_skew_minutes!r}, "
            f"provider_timeout_seconds={self.provider_timeout_seconds!r}, "
            f"log_level={self.log_level!r})"
        )


def load_settings() -> Settings:
    """Load and validate settings from environment variables.

    Calls :func:`dotenv.load_dotenv` so a ``.env`` file in the project root
    is picked up automatically.

    Returns:
        A validated :class:`Settings` instance.

    Raises:
        ConfigError: If any required environment variable is missing,
            empty, or whitespace-only (the message names **all** missing
            variables), or if an optional value cannot be parsed.
    """
    load_dotenv()

    required = {
        "GOOGLE_CLIENT_ID": "google_client_id",
        "GOOGLE_CLIENT_SECRET": "google_client_secret",
    }

    values: dict[str, object] = {}
    missing: list[str] = []

    for env_var, field_name in required.items():
        raw = os.environ.get(env_var, "")
        if not raw.strip():
            missing.append(env_var)
        else:
            values[field_name] = raw.strip()

    if missing:
        names = ", ".join(missing)
        raise ConfigError(f"Missing required environment variables: {names}")

    # Optional settings with defaults handled by the dataclass.
    redirect_uri = os.environ.get("GOOGLE_REDIRECT_URI", "").strip()
    timezone = os.environ.get("TIMEZONE", "").strip()
    skew = os.environ.get("TOKEN_REFRESH_SKEW_MINUTES", "").strip()
    timeout = os.environ.get("PROVIDER_TIMEOUT_SECONDS", "").strip()
    log_level = os.environ.get("LOG_LEVEL", "").strip()

    if redirect_uri:
        values["google_redirect_uri"] = redirect_uri
    if timezone:
        values["timezone"] = _parse_timezone(timezone)
    if skew:
        values["token_refresh_skew_minutes"] = _parse_skew(skew)
    if timeout:
        values["provider_timeout_seconds"] = _parse_timeout(timeout)
    if log_level:
        values["log_level"] = log_level

    return Settings(**values)  # type: ignore[arg-type]


def _parse_timezone(raw: str) -> str:
    try:
        ZoneInfo(raw)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ConfigError(f"TIMEZONE is not a known IANA timezone: {raw!r}") from exc
    return raw


def _parse_skew(raw: str) -> int:
    try:
        minutes = int(raw)
    except ValueError as exc:
        raise ConfigError(
            f"TOKEN_REFRESH_SKEW_MINUTES must be an integer, got {raw!r}"
        ) from exc
    if minutes < 0:
        raise ConfigError("TOKEN_REFRESH_SKEW_MINUTES must not be negative")
    return minutes


def _parse_timeout(raw: str) -> float:
    try:
        seconds = float(raw)
    except ValueError as exc:
        raise ConfigError(
            f"PROVIDER_TIMEOUT_SECONDS must be a number, got {raw!r}"
        ) from exc
    if seconds <= 0:
        raise ConfigError("PROVIDER_TIMEOUT_SECONDS must be positive")
    return seconds
