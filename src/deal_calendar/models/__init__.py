"""Data models for deal-calendar."""

from __future__ import annotations

from deal_calendar.models.calendar import (
    CalendarConnection,
    LocalCalendarEvent,
    Milestone,
    MilestoneCategory,
    PushStatus,
    SyncResult,
    TokenLookup,
    TokenStatus,
)
from deal_calendar.models.transaction import MILESTONE_DATE_FIELDS, Transaction

__all__ = [
    "MILESTONE_DATE_FIELDS",
    "CalendarConnection",
    "LocalCalendarEvent",
    "Milestone",
    "MilestoneCategory",
    "PushStatus",
    "SyncResult",
    "TokenLookup",
    "TokenStatus",
    "Transaction",
]
