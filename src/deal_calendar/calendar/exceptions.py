"""Exceptions and error translation for Google Calendar API operations.

Defines the calendar error hierarchy and a ``@translate_errors`` decorator
that converts Google client library failures into it.  The decorator never
retries: a failed provider call is reported once and the sync orchestrator
decides what to do with it.

Exception hierarchy::

    CalendarAPIError           (base for all Calendar API errors)
    +-- CalendarAuthError      (HTTP 401 and token refresh failures)
    +-- CalendarRateLimitError (HTTP 429, or 403 with a rate-limit reason)
    +-- CalendarNotFoundError  (HTTP 404/410 on delete)
"""

from __future__ import annotations

import functools
import logging
from collections.abc import Callable
from typing import Any, TypeVar

import httplib2
from google.auth import exceptions as google_auth_exceptions
from googleapiclient.errors import HttpError

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])

# ---------------------------------------------------------------------------
# Exception classes
# ---------------------------------------------------------------------------


class CalendarAPIError(Exception):
    """Base exception for Google Calendar API errors.

    Attributes:
        status_code: HTTP status code from the API, or ``None`` if the
            error did not originate from an HTTP response.
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class CalendarAuthError(CalendarAPIError):
    """Raised when Calendar API authentication fails.

    Covers HTTP 401 responses and rejected refresh tokens.
    """

    def __init__(self, message: str = "Calendar authentication failed") -> None:
        super().__init__(message, status_code=401)


class CalendarRateLimitError(CalendarAPIError):
    """Raised when the Calendar API reports that a rate limit was exceeded."""

    def __init__(self, message: str = "Calendar API rate limit exceeded") -> None:
        super().__init__(message, status_code=429)


class CalendarNotFoundError(CalendarAPIError):
    """Raised when a Calendar resource is not found (HTTP 404 or 410).

    Typically occurs when deleting an event the user already removed in
    Google Calendar.
    """

    def __init__(self, message: str = "Calendar resource not found", status_code: int = 404) -> None:
        super().__init__(message, status_code=status_code)


# ---------------------------------------------------------------------------
# Error translation
# ---------------------------------------------------------------------------

# Google reports some quota errors as 403 with a "rateLimitExceeded" reason.
_RATE_LIMIT_MARKER = "ratelimit"


def _classify_http_error(error: HttpError) -> CalendarAPIError:
    """Map an ``HttpError`` to the appropriate calendar exception.

    Args:
        error: The ``googleapiclient.errors.HttpError`` to classify.

    Returns:
        A :class:`CalendarAPIError` subclass matching the HTTP status code.
    """
    status = error.resp.status
    reason = str(getattr(error, "reason", "") or "")
    details = str(getattr(error, "error_details", "") or "")
    text = f"{reason} {details}".lower().replace(" ", "")

    if status in (404, 410):
        return CalendarNotFoundError(str(error), status_code=status)
    if status == 429 or (status == 403 and _RATE_LIMIT_MARKER in text):
        return CalendarRateLimitError(str(error))
    if status == 401:
        return CalendarAuthError(str(error))
    return CalendarAPIError(str(error), status_code=status)


def translate_errors(func: F) -> F:
    """Decorator that re-raises Google client failures as calendar errors.

    - ``HttpError`` -> classified by status code (see :func:`_classify_http_error`).
    - ``RefreshError`` -> :class:`CalendarAuthError`.
    - ``TransportError``, ``httplib2.HttpLib2Error``, ``OSError`` and
      ``TimeoutError`` -> :class:`CalendarAPIError` without a status code.

    :class:`CalendarAPIError` raised by the wrapped function passes through
    unchanged.  No call is ever retried.
    """

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return func(*args, **kwargs)
        except CalendarAPIError:
            raise
        except HttpError as exc:
            cal_error = _classify_http_error(exc)
            logger.debug(
                "%s failed with HTTP %s: %s", func.__name__, cal_error.status_code, exc
            )
            raise cal_error from exc
        except google_auth_exceptions.RefreshError as exc:
            raise CalendarAuthError(f"Token refresh rejected: {exc}") from exc
        except google_auth_exceptions.TransportError as exc:
            raise CalendarAPIError(f"Network error talking to Google: {exc}") from exc
        except (httplib2.HttpLib2Error, OSError, TimeoutError) as exc:
            raise CalendarAPIError(f"Network error talking to Google: {exc}") from exc

    return wrapper  # type: ignore[return-value]
