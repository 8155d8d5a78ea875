"""Sync orchestrator keeping a transaction's calendar events current.

Provides :class:`TransactionCalendarSync` with the three entry points the
transaction routes call:

- :meth:`~TransactionCalendarSync.sync_transaction` -- on create: insert one
  local event per milestone, then push each new event to Google Calendar.
- :meth:`~TransactionCalendarSync.resync_transaction` -- on edit: delete every
  event of the transaction, then sync again.
- :meth:`~TransactionCalendarSync.delete_transaction_events` -- on delete:
  remove remote events (best effort) and all local events.

Local events are authoritative.  Google Calendar is best effort: a missing
connection, a connection needing re-authorization, or a failing push never
rolls back or blocks a local write.  Provider failures are logged, recorded
on the affected event and summarised in a single warning.  Store failures
other than a duplicate insert propagate to the caller.

Calls run sequentially and take no locks; two overlapping resyncs of the
same transaction can leave it with zero or duplicated events.
"""

from __future__ import annotations

import logging

from deal_calendar.calendar.auth import CredentialManager
from deal_calendar.calendar.client import GoogleCalendarClient
from deal_calendar.calendar.event_mapper import materialize
from deal_calendar.calendar.exceptions import CalendarAPIError, CalendarNotFoundError
from deal_calendar.calendar.milestones import extract_milestones
from deal_calendar.config import Settings
from deal_calendar.exceptions import DuplicateEventError
from deal_calendar.models.calendar import REAUTH_WARNING, LocalCalendarEvent, SyncResult
from deal_calendar.models.transaction import Transaction
from deal_calendar.store import CalendarStore

logger = logging.getLogger(__name__)


class TransactionCalendarSync:
    """Coordinates milestone extraction, local events and Google Calendar.

    Args:
        store: The local calendar store.
        credentials: Supplies access tokens for the transaction owner.
        client: Google Calendar client used for remote create/delete.
    """

    def __init__(
        self,
        store: CalendarStore,
        credentials: CredentialManager,
        client: GoogleCalendarClient,
    ) -> None:
        self._store = store
        self._credentials = credentials
        self._client = client

    @classmethod
    def from_settings(cls, settings: Settings, store: CalendarStore) -> TransactionCalendarSync:
        """Wire a real Google client and credential manager around *store*."""
        client = GoogleCalendarClient.from_settings(settings)
        credentials = CredentialManager(
            store, client, refresh_skew=settings.token_refresh_skew
        )
        return cls(store, credentials, client)

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    def sync_transaction(self, transaction: Transaction) -> SyncResult:
        """Create calendar events for every milestone of *transaction*.

        Args:
            transaction: The transaction as just written.

        Returns:
            A :class:`SyncResult` whose ``events_created`` counts the local
            events inserted.  ``warning`` is set when Google Calendar needs
            reconnecting or when any push failed.
        """
        result = SyncResult()
        milestones = extract_milestones(transaction)

        if not milestones:
            logger.info(
                "Transaction %s has no milestone dates; nothing to sync", transaction.id
            )
            return result

        logger.info(
            "Starting calendar sync for transaction %s (%s): %d milestone(s)",
            transaction.id,
            transaction.property_address,
            len(milestones),
        )

        created: list[LocalCalendarEvent] = []
        for milestone in milestones:
            draft = materialize(milestone, transaction.user_id, transaction.id)
            try:
                saved = self._store.insert_event(draft)
            except DuplicateEventError:
                logger.warning(
                    "Event for milestone '%s' of transaction %s already exists, skipping",
                    milestone.category,
                    transaction.id,
                )
                continue
            created.append(saved)
            logger.info("Created local event '%s' on %s", saved.title, milestone.date.isoformat())

        result.events_created = len(created)

        if created:
            self._push_events(transaction.user_id, created, result)

        logger.info(
            "Calendar sync complete for transaction %s: %d event(s) created, "
            "%d push failure(s), provider=%s",
            transaction.id,
            result.events_created,
            len(result.push_failures),
            result.provider_status,
        )
        return result

    def _push_events(
        self,
        user_id: str,
        events: list[LocalCalendarEvent],
        result: SyncResult,
    ) -> None:
        """Mirror newly created local events to Google Calendar.

        One token lookup covers the whole batch.  Each event's outcome is
        written back to the store; failures do not stop the loop.
        """
        lookup = self._credentials.get_valid_access_token(user_id)
        result.provider_status = lookup.status

        if lookup.status == "not_connected":
            logger.info("Google Calendar not connected for user %s; local events only", user_id)
            return
        if not lookup.is_valid:
            logger.warning("Google Calendar needs reconnecting for user %s; local events only", user_id)
            result.warning = REAUTH_WARNING
            return

        for event in events:
            try:
                remote_id = self._client.create_event(lookup.access_token, event)
            except CalendarAPIError as exc:
                logger.warning("Failed to push '%s' to Google Calendar: %s", event.title, exc)
                self._store.record_push_outcome(event.id, "failed", error=str(exc))
                result.push_failures.append({"event": event.title, "error": str(exc)})
                continue

            self._store.record_push_outcome(event.id, "synced", remote_event_id=remote_id)

        if result.push_failures:
            result.warning = (
                f"{len(result.push_failures)} event(s) could not be added to Google Calendar"
            )

    # ------------------------------------------------------------------
    # Update
    # ------------------------------------------------------------------

    def resync_transaction(self, transaction: Transaction) -> SyncResult:
        """Rebuild the transaction's events after an edit.

        Deletes every existing event (local and, best effort, remote) and
        syncs again from the current milestones.  Remote event IDs change on
        every resync.

        Returns:
            A :class:`SyncResult` carrying both ``events_deleted`` and
            ``events_created``, with the warnings of both steps.
        """
        deleted = self.delete_transaction_events(transaction.id, transaction.user_id)
        synced = self.sync_transaction(transaction)

        warnings = [w for w in (deleted.warning, synced.warning) if w]
        return SyncResult(
            events_created=synced.events_created,
            events_deleted=deleted.events_deleted,
            provider_status=synced.provider_status or deleted.provider_status,
            warning="; ".join(dict.fromkeys(warnings)) or None,
            push_failures=deleted.push_failures + synced.push_failures,
        )

    # ------------------------------------------------------------------
    # Delete
    # ------------------------------------------------------------------

    def delete_transaction_events(self, transaction_id: str, user_id: str) -> SyncResult:
        """Remove every calendar event *user_id* has for *transaction_id*.

        Remote events are deleted first when a valid token is available; a
        failed remote delete is logged and the local delete happens anyway,
        which can leave the remote event behind.  Nothing cleans such
        orphans up later.

        Returns:
            A :class:`SyncResult` whose ``events_deleted`` counts the local
            events removed.
        """
        result = SyncResult()
        events = self._store.list_transaction_events(transaction_id, user_id)

        if not events:
            logger.info("Transaction %s has no calendar events to delete", transaction_id)
            return result

        synced = [event for event in events if event.remote_event_id]
        if synced:
            self._delete_remote_events(user_id, synced, result)

        result.events_deleted = self._store.delete_transaction_events(transaction_id, user_id)
        logger.info(
            "Deleted %d calendar event(s) for transaction %s (%d remote failure(s))",
            result.events_deleted,
            transaction_id,
            len(result.push_failures),
        )
        return result

    def _delete_remote_events(
        self,
        user_id: str,
        events: list[LocalCalendarEvent],
        result: SyncResult,
    ) -> None:
        lookup = self._credentials.get_valid_access_token(user_id)
        result.provider_status = lookup.status

        if lookup.status == "not_connected":
            logger.info(
                "Google Calendar not connected for user %s; leaving %d remote event(s)",
                user_id,
                len(events),
            )
            return
        if not lookup.is_valid:
            logger.warning(
                "Google Calendar needs reconnecting for user %s; leaving %d remote event(s)",
                user_id,
                len(events),
            )
            result.warning = REAUTH_WARNING
            return

        for event in events:
            try:
                self._client.delete_event(lookup.access_token, event.remote_event_id)
            except CalendarNotFoundError:
                logger.info(
                    "Google event %s for '%s' was already gone", event.remote_event_id, event.title
                )
            except CalendarAPIError as exc:
                logger.warning(
                    "Failed to delete Google event %s for '%s'; it will be orphaned: %s",
                    event.remote_event_id,
                    event.title,
                    exc,
                )
                result.push_failures.append({"event": event.title, "error": str(exc)})

        if result.push_failures:
            result.warning = (
                f"{len(result.push_failures)} event(s) could not be removed from Google Calendar"
            )
