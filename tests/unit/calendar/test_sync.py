"""Tests for the transaction calendar sync orchestrator.

Uses the real in-memory store and credential manager with an autospec'd
Google client (``mock_client``), so local-event state can be inspected
after each call.

Test matrix:

Sync (10):
| test_no_dates_is_noop | No milestone dates | 0 created, no token lookup |
| test_creates_one_event_per_date | k populated dates | k local events |
| test_offer_and_closing_without_connection | Offer + closing, no connection | 2 events, right windows |
| test_not_connected_has_no_warning | No connection | No warning, not_attempted |
| test_valid_token_pushes_every_event | Valid token | All synced with remote ids |
| test_token_looked_up_once | 10 milestones | One token lookup |
| test_one_push_failure | 10 dates, one create fails | 10 local, 9 remote ids |
| test_reauth_required_warns | Refresh fails | Warning, connection inactive |
| test_duplicate_category_skipped | Existing event | Skipped, others created |
| test_store_failure_propagates | Insert raises OSError | Propagates |

Delete (7):
| test_delete_removes_local_events | Synced events | Remote + local deleted |
| test_delete_without_events | Nothing stored | 0 deleted, no provider call |
| test_delete_by_other_user_removes_nothing | Other owner | 0 deleted, events kept |
| test_delete_remote_already_gone | 410 on delete | Local removed, no warning |
| test_delete_remote_failure_still_deletes_local | 500 on delete | Local removed, warning |
| test_delete_not_connected | No connection | Local removed, no provider call |
| test_delete_reauth_required | Refresh fails | Local removed, reconnect warning |

Resync (4):
| test_resync_is_idempotent_in_count | Resync twice | Same final count |
| test_resync_reflects_changed_dates | Date removed | Event removed |
| test_resync_replaces_remote_events | Synced events | Old remote ids deleted, new created |
| test_resync_reports_both_counts | Any | events_deleted and events_created |
"""

from __future__ import annotations

from datetime import datetime, timedelta
from unittest.mock import patch

import pytest

from deal_calendar.calendar.exceptions import (
    CalendarAPIError,
    CalendarAuthError,
    CalendarNotFoundError,
    CalendarRateLimitError,
)
from deal_calendar.calendar.event_mapper import materialize
from deal_calendar.calendar.milestones import MILESTONE_ORDER, extract_milestones
from deal_calendar.calendar.sync import TransactionCalendarSync
from deal_calendar.models.calendar import REAUTH_WARNING

# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def sync(store, credentials, mock_client) -> TransactionCalendarSync:
    return TransactionCalendarSync(store, credentials, mock_client)


def _by_category(store, transaction_id: str = "txn-1") -> dict:
    return {e.category: e for e in store.list_transaction_events(transaction_id, "user-1")}


# ===========================================================================
# Sync
# ===========================================================================


class TestSyncLocalEvents:
    """Local events are created for every populated milestone."""

    def test_no_dates_is_noop(self, sync, make_transaction, mock_client, store) -> None:
        """A transaction without dates is a successful no-op."""
        result = sync.sync_transaction(make_transaction())

        assert result.events_created == 0
        assert result.warning is None
        assert result.provider_status is None
        assert store.list_transaction_events("txn-1", "user-1") == []
        mock_client.create_event.assert_not_called()

    @pytest.mark.parametrize("k", [1, 3, 7, 10])
    def test_creates_one_event_per_date(self, sync, make_transaction, all_dates, store, k) -> None:
        dates = dict(list(all_dates.items())[:k])

        result = sync.sync_transaction(make_transaction(**dates))

        assert result.events_created == k
        assert len(store.list_transaction_events("txn-1", "user-1")) == k

    def test_events_stored_in_category_order(self, sync, make_transaction, all_dates, store) -> None:
        sync.sync_transaction(make_transaction(**all_dates))

        categories = tuple(e.category for e in store.list_transaction_events("txn-1", "user-1"))
        assert categories == MILESTONE_ORDER

    def test_offer_and_closing_without_connection(
        self, sync, make_transaction, store, mock_client
    ) -> None:
        """Offer 09:00-10:00 and closing 09:00-12:00, local only."""
        txn = make_transaction(closing_date="2025-06-01", offer_date="2025-05-01")

        result = sync.sync_transaction(txn)

        assert result.events_created == 2
        events = _by_category(store)
        assert events["offer"].start_time == datetime(2025, 5, 1, 9, 0)
        assert events["offer"].end_time == datetime(2025, 5, 1, 10, 0)
        assert events["closing"].start_time == datetime(2025, 6, 1, 9, 0)
        assert events["closing"].end_time == datetime(2025, 6, 1, 12, 0)
        mock_client.create_event.assert_not_called()

    def test_not_connected_has_no_warning(self, sync, make_transaction, all_dates, store) -> None:
        result = sync.sync_transaction(make_transaction(**all_dates))

        assert result.events_created == 10
        assert result.provider_status == "not_connected"
        assert result.warning is None
        assert not result.has_failures
        events = store.list_transaction_events("txn-1", "user-1")
        assert all(e.remote_event_id is None for e in events)
        assert all(e.push_status == "not_attempted" for e in events)

    def test_duplicate_category_skipped(self, sync, make_transaction, store) -> None:
        """An already-present (transaction, category) event is skipped."""
        txn = make_transaction(offer_date="2025-05-01", closing_date="2025-06-01")
        store.insert_event(materialize(extract_milestones(txn)[0], "user-1", "txn-1"))

        result = sync.sync_transaction(txn)

        assert result.events_created == 1
        assert len(store.list_transaction_events("txn-1", "user-1")) == 2

    def test_store_failure_propagates(self, sync, make_transaction, store) -> None:
        """Local store errors are hard failures."""
        txn = make_transaction(offer_date="2025-05-01")

        with patch.object(store, "insert_event", side_effect=OSError("database unavailable")):
            with pytest.raises(OSError, match="database unavailable"):
                sync.sync_transaction(txn)


class TestSyncProviderPush:
    """New events are mirrored to Google Calendar when a token is valid."""

    def test_valid_token_pushes_every_event(
        self, sync, make_transaction, all_dates, connect, store, mock_client
    ) -> None:
        connect()

        result = sync.sync_transaction(make_transaction(**all_dates))

        assert result.events_created == 10
        assert result.provider_status == "valid"
        assert result.warning is None
        assert mock_client.create_event.call_count == 10
        events = store.list_transaction_events("txn-1", "user-1")
        assert [e.remote_event_id for e in events] == [f"g-{i}" for i in range(1, 11)]
        assert all(e.push_status == "synced" for e in events)

    def test_push_uses_stored_access_token(
        self, sync, make_transaction, connect, mock_client
    ) -> None:
        connect(access_token="access-xyz")

        sync.sync_transaction(make_transaction(offer_date="2025-05-01"))

        token, event = mock_client.create_event.call_args.args
        assert token == "access-xyz"
        assert event.category == "offer"
        assert event.id is not None

    def test_token_looked_up_once(self, sync, make_transaction, all_dates, credentials) -> None:
        with patch.object(
            credentials, "get_valid_access_token", wraps=credentials.get_valid_access_token
        ) as spy:
            sync.sync_transaction(make_transaction(**all_dates))

        spy.assert_called_once_with("user-1")

    def test_one_push_failure(
        self, sync, make_transaction, all_dates, connect, store, mock_client
    ) -> None:
        """One failed create leaves 9 synced events and 1 without a remote id."""
        connect()

        def _create(_token, event):
            if event.category == "appraisal":
                raise CalendarRateLimitError("Rate limit exceeded")
            return f"g-{event.category}"

        mock_client.create_event.side_effect = _create

        result = sync.sync_transaction(make_transaction(**all_dates))

        assert result.events_created == 10
        events = _by_category(store)
        assert sum(1 for e in events.values() if e.remote_event_id) == 9
        failed = events["appraisal"]
        assert failed.remote_event_id is None
        assert failed.push_status == "failed"
        assert "Rate limit" in failed.push_error
        assert events["closing"].remote_event_id == "g-closing"
        assert result.warning == "1 event(s) could not be added to Google Calendar"
        assert result.push_failures == [
            {"event": failed.title, "error": "Rate limit exceeded"}
        ]

    def test_every_push_failing_keeps_local_events(
        self, sync, make_transaction, all_dates, connect, store, mock_client
    ) -> None:
        connect()
        mock_client.create_event.side_effect = CalendarAPIError("Network error: timed out")

        result = sync.sync_transaction(make_transaction(**all_dates))

        assert result.events_created == 10
        assert len(result.push_failures) == 10
        assert len(store.list_transaction_events("txn-1", "user-1")) == 10

    def test_reauth_required_warns(
        self, sync, make_transaction, all_dates, connect, store, mock_client
    ) -> None:
        connection = connect(expires_in=timedelta(minutes=2))
        mock_client.refresh_access_token.side_effect = CalendarAuthError("invalid_grant")

        result = sync.sync_transaction(make_transaction(**all_dates))

        assert result.events_created == 10
        assert result.provider_status == "reauth_required"
        assert result.warning == REAUTH_WARNING
        assert not store.get_connection(connection.id).is_active
        mock_client.create_event.assert_not_called()


# ===========================================================================
# Delete
# ===========================================================================


class TestDeleteTransactionEvents:
    """All local events go; remote deletes are best effort."""

    def test_delete_removes_local_events(
        self, sync, make_transaction, all_dates, connect, store, mock_client
    ) -> None:
        connect()
        sync.sync_transaction(make_transaction(**all_dates))

        result = sync.delete_transaction_events("txn-1", "user-1")

        assert result.events_deleted == 10
        assert result.warning is None
        assert store.list_transaction_events("txn-1", "user-1") == []
        deleted_ids = [c.args[1] for c in mock_client.delete_event.call_args_list]
        assert deleted_ids == [f"g-{i}" for i in range(1, 11)]

    def test_delete_without_events(self, sync, mock_client) -> None:
        result = sync.delete_transaction_events("txn-unknown", "user-1")

        assert result.events_deleted == 0
        assert result.provider_status is None
        mock_client.delete_event.assert_not_called()

    def test_delete_leaves_other_transactions(self, sync, make_transaction, store) -> None:
        sync.sync_transaction(make_transaction(offer_date="2025-05-01"))
        sync.sync_transaction(make_transaction(id="txn-2", offer_date="2025-05-01"))

        sync.delete_transaction_events("txn-1", "user-1")

        assert len(store.list_transaction_events("txn-2", "user-1")) == 1

    def test_delete_by_other_user_removes_nothing(
        self, sync, make_transaction, connect, store, mock_client
    ) -> None:
        """Only the owner of a transaction's events can delete them."""
        connect()
        sync.sync_transaction(make_transaction(offer_date="2025-05-01"))

        result = sync.delete_transaction_events("txn-1", "user-2")

        assert result.events_deleted == 0
        assert len(store.list_transaction_events("txn-1", "user-1")) == 1
        mock_client.delete_event.assert_not_called()

    def test_delete_remote_already_gone(
        self, sync, make_transaction, connect, store, mock_client
    ) -> None:
        connect()
        sync.sync_transaction(make_transaction(offer_date="2025-05-01"))
        mock_client.delete_event.side_effect = CalendarNotFoundError("Gone", status_code=410)

        result = sync.delete_transaction_events("txn-1", "user-1")

        assert result.events_deleted == 1
        assert result.warning is None
        assert not result.has_failures

    def test_delete_remote_failure_still_deletes_local(
        self, sync, make_transaction, all_dates, connect, store, mock_client
    ) -> None:
        connect()
        sync.sync_transaction(make_transaction(**all_dates))
        mock_client.delete_event.side_effect = CalendarAPIError("Backend Error", status_code=500)

        result = sync.delete_transaction_events("txn-1", "user-1")

        assert result.events_deleted == 10
        assert store.list_transaction_events("txn-1", "user-1") == []
        assert len(result.push_failures) == 10
        assert result.warning == "10 event(s) could not be removed from Google Calendar"

    def test_delete_skips_unsynced_events(
        self, sync, make_transaction, connect, store, mock_client
    ) -> None:
        """Events never pushed need no remote delete or token lookup."""
        sync.sync_transaction(make_transaction(offer_date="2025-05-01"))
        connect()

        result = sync.delete_transaction_events("txn-1", "user-1")

        assert result.events_deleted == 1
        assert result.provider_status is None
        mock_client.delete_event.assert_not_called()

    def test_delete_not_connected(self, sync, make_transaction, connect, store, mock_client) -> None:
        connection = connect()
        sync.sync_transaction(make_transaction(offer_date="2025-05-01"))
        store.deactivate_connection(connection.id)

        result = sync.delete_transaction_events("txn-1", "user-1")

        assert result.events_deleted == 1
        assert result.provider_status == "not_connected"
        assert result.warning is None
        mock_client.delete_event.assert_not_called()

    def test_delete_reauth_required(
        self, sync, make_transaction, connect, store, mock_client, frozen_now
    ) -> None:
        connection = connect()
        sync.sync_transaction(make_transaction(offer_date="2025-05-01"))
        # Token has since expired and Google revoked the grant.
        store.update_connection_tokens(connection.id, "access-1", frozen_now)
        mock_client.refresh_access_token.side_effect = CalendarAuthError("invalid_grant")

        result = sync.delete_transaction_events("txn-1", "user-1")

        assert result.events_deleted == 1
        assert result.warning == REAUTH_WARNING
        assert store.list_transaction_events("txn-1", "user-1") == []
        mock_client.delete_event.assert_not_called()


# ===========================================================================
# Resync
# ===========================================================================


class TestResyncTransaction:
    """Resync deletes every event and syncs again."""

    def test_resync_is_idempotent_in_count(
        self, sync, make_transaction, all_dates, store
    ) -> None:
        txn = make_transaction(**all_dates)
        sync.sync_transaction(txn)

        sync.resync_transaction(txn)
        sync.resync_transaction(txn)

        assert len(store.list_transaction_events("txn-1", "user-1")) == 10

    def test_resync_reflects_changed_dates(self, sync, make_transaction, all_dates, store) -> None:
        sync.sync_transaction(make_transaction(**all_dates))
        edited = dict(all_dates, inspection_date=None, closing_date="2025-06-15")

        result = sync.resync_transaction(make_transaction(**edited))

        assert result.events_deleted == 10
        assert result.events_created == 9
        events = _by_category(store)
        assert "inspection" not in events
        assert events["closing"].start_time == datetime(2025, 6, 15, 9, 0)

    def test_resync_replaces_remote_events(
        self, sync, make_transaction, connect, store, mock_client
    ) -> None:
        connect()
        txn = make_transaction(offer_date="2025-05-01", closing_date="2025-06-01")
        sync.sync_transaction(txn)

        result = sync.resync_transaction(txn)

        deleted_ids = [c.args[1] for c in mock_client.delete_event.call_args_list]
        assert deleted_ids == ["g-1", "g-2"]
        remote_ids = [e.remote_event_id for e in store.list_transaction_events("txn-1", "user-1")]
        assert remote_ids == ["g-3", "g-4"]
        assert result.provider_status == "valid"
        assert result.warning is None

    def test_resync_reports_both_counts(self, sync, make_transaction, store) -> None:
        sync.sync_transaction(make_transaction(offer_date="2025-05-01"))

        result = sync.resync_transaction(
            make_transaction(offer_date="2025-05-01", closing_date="2025-06-01")
        )

        assert result.events_deleted == 1
        assert result.events_created == 2

    def test_resync_combines_failures(
        self, sync, make_transaction, connect, store, mock_client
    ) -> None:
        connect()
        txn = make_transaction(offer_date="2025-05-01")
        sync.sync_transaction(txn)
        mock_client.delete_event.side_effect = CalendarAPIError("Backend Error", status_code=500)
        mock_client.create_event.side_effect = CalendarAPIError("Backend Error", status_code=500)

        result = sync.resync_transaction(txn)

        assert len(result.push_failures) == 2
        assert result.warning == (
            "1 event(s) could not be removed from Google Calendar; "
            "1 event(s) could not be added to Google Calendar"
        )
