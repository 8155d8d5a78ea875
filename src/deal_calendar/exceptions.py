"""Exceptions raised by calendar stores.

The sync engine treats the local store as its source of truth: a
:class:`DuplicateEventError` is the only store error it absorbs, everything
else propagates to the caller.
"""

from __future__ import annotations


class StoreError(Exception):
    """Raised when the local calendar store cannot complete an operation."""


class DuplicateEventError(StoreError):
    """Raised when an event already exists for a transaction milestone.

    Stores enforce a uniqueness constraint on ``(transaction_id, category)``;
    inserting a second event for the same pair raises this error.

    Attributes:
        transaction_id: The transaction the conflicting event belongs to.
        category: The milestone category that already has an event.
    """

    def __init__(self, transaction_id: str, category: str) -> None:
        super().__init__(
            f"Calendar event for transaction {transaction_id!r} "
            f"and milestone {category!r} already exists"
        )
        self.transaction_id = transaction_id
        self.category = category


class ConnectionNotFoundError(StoreError):
    """Raised when a calendar connection ID does not exist in the store."""
