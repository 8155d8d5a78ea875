"""Shared fixtures for calendar sync unit tests."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock, create_autospec

import pytest

from deal_calendar.calendar.auth import CredentialManager
from deal_calendar.calendar.client import GoogleCalendarClient
from deal_calendar.models.calendar import CalendarConnection
from deal_calendar.models.transaction import Transaction
from deal_calendar.store import InMemoryCalendarStore

FROZEN_NOW = datetime(2025, 4, 1, 12, 0, tzinfo=timezone.utc)
USER_ID = "user-1"

ALL_DATES: dict[str, str] = {
    "offer_date": "2025-05-01",
    "acceptance_date": "2025-05-03",
    "inspection_date": "2025-05-08",
    "inspection_deadline": "2025-05-12",
    "appraisal_date": "2025-05-14",
    "appraisal_deadline": "2025-05-19",
    "financing_deadline": "2025-05-23",
    "title_deadline": "2025-05-26",
    "closing_date": "2025-06-01",
    "possession_date": "2025-06-02",
}


def build_transaction(**overrides: object) -> Transaction:
    """Create a Transaction with no dates and sensible defaults, applying *overrides*."""
    defaults: dict = {
        "id": "txn-1",
        "user_id": USER_ID,
        "property_address": "12 Elm St",
        "property_city": "Portland",
        "property_state": "OR",
        "buyer_name": "Alice Buyer",
        "seller_name": "Sam Seller",
    }
    defaults.update(overrides)
    return Transaction(**defaults)


@pytest.fixture()
def make_transaction() -> Callable[..., Transaction]:
    return build_transaction


@pytest.fixture()
def store() -> InMemoryCalendarStore:
    return InMemoryCalendarStore()


@pytest.fixture()
def connect(store: InMemoryCalendarStore) -> Callable[..., CalendarConnection]:
    """Return a factory that saves an active Google connection for USER_ID."""

    def _connect(
        expires_in: timedelta = timedelta(hours=1),
        refresh_token: str | None = "refresh-1",
        access_token: str = "access-1",
    ) -> CalendarConnection:
        return store.save_connection(
            CalendarConnection(
                user_id=USER_ID,
                access_token=access_token,
                refresh_token=refresh_token,
                token_expiry=FROZEN_NOW + expires_in,
            )
        )

    return _connect


@pytest.fixture()
def mock_client() -> MagicMock:
    """Return an autospec'd GoogleCalendarClient whose creates return g-1, g-2, ..."""
    client = create_autospec(GoogleCalendarClient, instance=True)
    counter = iter(range(1, 1000))
    client.create_event.side_effect = lambda _token, _event: f"g-{next(counter)}"
    client.delete_event.return_value = None
    return client


@pytest.fixture()
def credentials(store: InMemoryCalendarStore, mock_client: MagicMock) -> CredentialManager:
    return CredentialManager(store, mock_client, clock=lambda: FROZEN_NOW)


@pytest.fixture()
def frozen_now() -> datetime:
    return FROZEN_NOW


@pytest.fixture()
def all_dates() -> dict[str, str]:
    """All ten milestone date fields, populated."""
    return dict(ALL_DATES)
