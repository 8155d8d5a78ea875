"""Transaction milestone sync to the local calendar and Google Calendar."""

from __future__ import annotations

from deal_calendar.calendar.auth import (
    CredentialManager,
    build_authorization_url,
    complete_authorization,
    disconnect,
)
from deal_calendar.calendar.client import GoogleCalendarClient, RefreshedToken
from deal_calendar.calendar.event_mapper import map_to_google_event, materialize
from deal_calendar.calendar.milestones import MILESTONE_ORDER, extract_milestones
from deal_calendar.calendar.sync import TransactionCalendarSync

__all__ = [
    "MILESTONE_ORDER",
    "CredentialManager",
    "GoogleCalendarClient",
    "RefreshedToken",
    "TransactionCalendarSync",
    "build_authorization_url",
    "complete_authorization",
    "disconnect",
    "extract_milestones",
    "map_to_google_event",
    "materialize",
]
