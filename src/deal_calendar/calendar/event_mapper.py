"""Turn milestones into local events and local events into Google payloads.

- :func:`materialize` builds the :class:`LocalCalendarEvent` draft for a
  milestone: 09:00-10:00 on the milestone date, or 09:00-12:00 for closing.
- :func:`map_to_google_event` converts a local event into the ``dict`` body
  expected by the Google Calendar ``events().insert()`` method.

Neither function performs I/O or touches credentials.
"""

from __future__ import annotations

import logging
from datetime import datetime, time

from deal_calendar.models.calendar import LocalCalendarEvent, Milestone

logger = logging.getLogger(__name__)

EVENT_START = time(9, 0)
EVENT_END = time(10, 0)
CLOSING_END = time(12, 0)


def materialize(
    milestone: Milestone,
    user_id: str,
    transaction_id: str,
) -> LocalCalendarEvent:
    """Build an unsaved local event for *milestone*.

    Args:
        milestone: The milestone to schedule.
        user_id: Owner of the transaction (and of the event).
        transaction_id: Transaction the milestone belongs to.

    Returns:
        A :class:`LocalCalendarEvent` draft with ``id=None`` and no
        provider fields set.
    """
    end = CLOSING_END if milestone.category == "closing" else EVENT_END
    return LocalCalendarEvent(
        user_id=user_id,
        transaction_id=transaction_id,
        category=milestone.category,
        title=milestone.title,
        description=milestone.description,
        start_time=datetime.combine(milestone.date, EVENT_START),
        end_time=datetime.combine(milestone.date, end),
    )


def map_to_google_event(event: LocalCalendarEvent, timezone: str) -> dict:
    """Convert a local event into a Google Calendar API event body.

    Args:
        event: The local event to push.
        timezone: IANA timezone the naive start and end times are expressed in.

    Returns:
        A ``dict`` conforming to the Google Calendar Event resource schema.

    Raises:
        ValueError: If the event ends at or before its start.
    """
    if event.end_time <= event.start_time:
        raise ValueError(
            f"end_time ({event.end_time.isoformat()}) must be after "
            f"start_time ({event.start_time.isoformat()})"
        )

    body: dict = {
        "summary": event.title,
        "description": event.description,
        "start": _format_datetime(event.start_time, timezone),
        "end": _format_datetime(event.end_time, timezone),
    }

    logger.debug(
        "Mapped event '%s' (%s -> %s) to Google Calendar body",
        event.title,
        event.start_time.isoformat(),
        event.end_time.isoformat(),
    )
    return body


def _format_datetime(dt: datetime, timezone: str) -> dict:
    return {
        "dateTime": dt.isoformat(),
        "timeZone": timezone,
    }
