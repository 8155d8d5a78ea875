"""Local calendar store interface and an in-memory implementation.

The sync engine never talks to a database directly.  It depends on the
:class:`CalendarStore` protocol, which the product's relational store
adapter implements.  :class:`InMemoryCalendarStore` implements the same
protocol for tests, local development and single-process use, including
the ``(transaction_id, category)`` uniqueness constraint and the
one-active-connection-per-provider invariant.
"""

from __future__ import annotations

import logging
import threading
import uuid
from datetime import datetime
from typing import Protocol

from deal_calendar.exceptions import ConnectionNotFoundError, DuplicateEventError
from deal_calendar.models.calendar import CalendarConnection, LocalCalendarEvent, PushStatus

logger = logging.getLogger(__name__)


class CalendarStore(Protocol):
    """Persistence operations the sync engine relies on.

    Implementations raise :class:`~deal_calendar.exceptions.DuplicateEventError`
    from :meth:`insert_event` on a ``(transaction_id, category)`` conflict.
    Any other exception is treated as a hard failure by the engine.
    """

    def get_active_connection(self, user_id: str, provider: str) -> CalendarConnection | None:
        """Return the active connection for *user_id* and *provider*, if any."""
        ...

    def save_connection(self, connection: CalendarConnection) -> CalendarConnection:
        """Store a new active connection, deactivating any previous one."""
        ...

    def update_connection_tokens(
        self,
        connection_id: str,
        access_token: str,
        token_expiry: datetime | None,
    ) -> None:
        """Overwrite the access token and expiry of a connection in place."""
        ...

    def deactivate_connection(self, connection_id: str) -> None:
        """Mark a connection inactive without deleting it."""
        ...

    def insert_event(self, event: LocalCalendarEvent) -> LocalCalendarEvent:
        """Insert a new event and return it with its store-assigned ``id``."""
        ...

    def record_push_outcome(
        self,
        event_id: str,
        status: PushStatus,
        remote_event_id: str | None = None,
        error: str | None = None,
    ) -> None:
        """Record the provider outcome for one event."""
        ...

    def list_transaction_events(
        self, transaction_id: str, user_id: str
    ) -> list[LocalCalendarEvent]:
        """Return the events *user_id* owns for *transaction_id*."""
        ...

    def delete_transaction_events(self, transaction_id: str, user_id: str) -> int:
        """Delete the events *user_id* owns for *transaction_id*; return the count."""
        ...


class InMemoryCalendarStore:
    """Thread-safe, process-local :class:`CalendarStore`.

    Events are kept in insertion order so listings come back in the order
    the sync engine created them.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._events: dict[str, LocalCalendarEvent] = {}
        self._connections: dict[str, CalendarConnection] = {}

    # ------------------------------------------------------------------
    # Connections
    # ------------------------------------------------------------------

    def get_active_connection(self, user_id: str, provider: str) -> CalendarConnection | None:
        with self._lock:
            for connection in self._connections.values():
                if (
                    connection.user_id == user_id
                    and connection.provider == provider
                    and connection.is_active
                ):
                    return connection.model_copy()
        return None

    def get_connection(self, connection_id: str) -> CalendarConnection:
        """Return a connection by ID, active or not."""
        with self._lock:
            return self._require_connection(connection_id).model_copy()

    def save_connection(self, connection: CalendarConnection) -> CalendarConnection:
        with self._lock:
            for existing_id, existing in self._connections.items():
                if (
                    existing.user_id == connection.user_id
                    and existing.provider == connection.provider
                    and existing.is_active
                ):
                    self._connections[existing_id] = existing.model_copy(
                        update={"is_active": False}
                    )
                    logger.info(
                        "Deactivated previous %s connection %s for user %s",
                        existing.provider,
                        existing_id,
                        existing.user_id,
                    )

            saved = connection.model_copy(
                update={"id": connection.id or uuid.uuid4().hex, "is_active": True}
            )
            self._connections[saved.id] = saved
            return saved.model_copy()

    def update_connection_tokens(
        self,
        connection_id: str,
        access_token: str,
        token_expiry: datetime | None,
    ) -> None:
        with self._lock:
            current = self._require_connection(connection_id)
            self._connections[connection_id] = current.model_copy(
                update={"access_token": access_token, "token_expiry": token_expiry}
            )

    def deactivate_connection(self, connection_id: str) -> None:
        with self._lock:
            current = self._require_connection(connection_id)
            self._connections[connection_id] = current.model_copy(update={"is_active": False})

    def _require_connection(self, connection_id: str) -> CalendarConnection:
        try:
            return self._connections[connection_id]
        except KeyError:
            raise ConnectionNotFoundError(
                f"Calendar connection not found: {connection_id}"
            ) from None

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def insert_event(self, event: LocalCalendarEvent) -> LocalCalendarEvent:
        with self._lock:
            for existing in self._events.values():
                if (
                    existing.transaction_id == event.transaction_id
                    and existing.category == event.category
                ):
                    raise DuplicateEventError(event.transaction_id, event.category)

            saved = event.model_copy(update={"id": uuid.uuid4().hex})
            self._events[saved.id] = saved
            return saved.model_copy()

    def record_push_outcome(
        self,
        event_id: str,
        status: PushStatus,
        remote_event_id: str | None = None,
        error: str | None = None,
    ) -> None:
        with self._lock:
            current = self._events.get(event_id)
            if current is None:
                # Deleted by a concurrent resync; nothing left to annotate.
                logger.warning("Event %s vanished before its push outcome was recorded", event_id)
                return
            self._events[event_id] = current.model_copy(
                update={
                    "push_status": status,
                    "remote_event_id": remote_event_id,
                    "push_error": error,
                }
            )

    def list_transaction_events(
        self, transaction_id: str, user_id: str
    ) -> list[LocalCalendarEvent]:
        with self._lock:
            return [
                event.model_copy()
                for event in self._events.values()
                if event.transaction_id == transaction_id and event.user_id == user_id
            ]

    def delete_transaction_events(self, transaction_id: str, user_id: str) -> int:
        with self._lock:
            doomed = [
                event_id
                for event_id, event in self._events.items()
                if event.transaction_id == transaction_id and event.user_id == user_id
            ]
            for event_id in doomed:
                del self._events[event_id]
            return len(doomed)
