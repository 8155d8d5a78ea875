"""deal-calendar: transaction-to-calendar synchronization.

Turns the milestone dates of a real-estate transaction into events in the
product's own calendar store and in the agent's Google Calendar.
"""

from __future__ import annotations

from deal_calendar.calendar import (
    CredentialManager,
    GoogleCalendarClient,
    TransactionCalendarSync,
    extract_milestones,
)
from deal_calendar.exceptions import DuplicateEventError, StoreError
from deal_calendar.models import (
    CalendarConnection,
    LocalCalendarEvent,
    Milestone,
    SyncResult,
    TokenLookup,
    Transaction,
)
from deal_calendar.store import CalendarStore, InMemoryCalendarStore

__version__ = "0.1.0"

__all__ = [
    "CalendarConnection",
    "CalendarStore",
    "CredentialManager",
    "DuplicateEventError",
    "GoogleCalendarClient",
    "InMemoryCalendarStore",
    "LocalCalendarEvent",
    "Milestone",
    "StoreError",
    "SyncResult",
    "TokenLookup",
    "Transaction",
    "TransactionCalendarSync",
    "extract_milestones",
]
