"""Data models for milestones, calendar events and provider connections.

- :class:`Milestone` -- a single dated step of a transaction (transient).
- :class:`LocalCalendarEvent` -- an event row in the product's own store.
- :class:`CalendarConnection` -- a user's OAuth grant to Google Calendar.
- :class:`TokenLookup` -- outcome of asking for a usable access token.
- :class:`SyncResult` -- aggregated outcome of one sync/resync/delete call.
"""

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass, field
from typing import Literal

from pydantic import BaseModel, ConfigDict

MilestoneCategory = Literal[
    "offer",
    "acceptance",
    "inspection",
    "inspection_deadline",
    "appraisal",
    "appraisal_deadline",
    "financing_deadline",
    "title_deadline",
    "closing",
    "possession",
]

PushStatus = Literal["not_attempted", "synced", "failed"]
"""Provider outcome recorded on each local event."""

TokenStatus = Literal["valid", "not_connected", "reauth_required"]

GOOGLE_PROVIDER = "google"

TRANSACTION_EVENT_KIND = "transaction"
"""``event_kind`` tag carried by every event the sync engine creates."""


class Milestone(BaseModel):
    """A single milestone date extracted from a transaction.

    Never persisted; recomputed from the transaction on every sync.
    """

    model_config = ConfigDict(frozen=True)

    date: dt.date
    category: MilestoneCategory
    title: str
    description: str


class LocalCalendarEvent(BaseModel):
    """A calendar event owned by the product's own store.

    ``start_time`` and ``end_time`` are naive wall-clock datetimes in the
    configured timezone; the timezone name travels separately to Google.

    Attributes:
        id: Store-assigned identifier, ``None`` for an unsaved draft.
        user_id: Owner of the event.
        transaction_id: Transaction that produced the event.
        category: Milestone category; unique per transaction.
        title: Event title.
        description: Event description.
        start_time: Event start.
        end_time: Event end.
        event_kind: Tag distinguishing engine-created events from others.
        remote_event_id: Google Calendar event ID once the push succeeded.
        push_status: ``"not_attempted"``, ``"synced"`` or ``"failed"``.
        push_error: Reason for the last failed push, or ``None``.
    """

    id: str | None = None
    user_id: str
    transaction_id: str
    category: MilestoneCategory
    title: str
    description: str
    start_time: dt.datetime
    end_time: dt.datetime
    event_kind: str = TRANSACTION_EVENT_KIND
    remote_event_id: str | None = None
    push_status: PushStatus = "not_attempted"
    push_error: str | None = None


class CalendarConnection(BaseModel):
    """A user's OAuth credential grant to the external calendar provider.

    At most one connection per ``(user_id, provider)`` is active.  A
    connection whose refresh fails is deactivated, never deleted, so the
    dashboard can prompt the user to reconnect.

    Attributes:
        id: Store-assigned identifier.
        user_id: Owner of the grant.
        provider: Provider name (``"google"``).
        access_token: Current access token.
        refresh_token: Long-lived refresh token, or ``None`` if Google did
            not issue one.
        token_expiry: Timezone-aware expiry of *access_token*, or ``None``
            when unknown (treated as already expired).
        is_active: Whether the grant is usable.
        provider_account_email: Google account the grant belongs to.
    """

    id: str | None = None
    user_id: str
    provider: str = GOOGLE_PROVIDER
    access_token: str
    refresh_token: str | None = None
    token_expiry: dt.datetime | None = None
    is_active: bool = True
    provider_account_email: str | None = None


@dataclass(frozen=True)
class TokenLookup:
    """Outcome of :meth:`CredentialManager.get_valid_access_token`.

    Attributes:
        status: ``"valid"``, ``"not_connected"`` or ``"reauth_required"``.
        access_token: The usable token when *status* is ``"valid"``.
    """

    status: TokenStatus
    access_token: str | None = None

    @property
    def is_valid(self) -> bool:
        return self.status == "valid" and bool(self.access_token)


REAUTH_WARNING = "Google Calendar needs to be reconnected"


@dataclass
class SyncResult:
    """Aggregated result of a sync, resync or delete call.

    Attributes:
        events_created: Local events inserted by this call.
        events_deleted: Local events removed by this call.
        provider_status: Outcome of the access-token lookup, or ``None``
            when no provider access was needed.
        warning: User-facing note (reconnect required, pushes failed), or
            ``None``.
        push_failures: Per-event provider failures.  Each dict holds
            ``"event"`` and ``"error"`` keys.
    """

    events_created: int = 0
    events_deleted: int = 0
    provider_status: TokenStatus | None = None
    warning: str | None = None
    push_failures: list[dict] = field(default_factory=list)

    @property
    def has_failures(self) -> bool:
        """Whether any provider call failed."""
        return len(self.push_failures) > 0

    @property
    def has_warning(self) -> bool:
        return self.warning is not None
