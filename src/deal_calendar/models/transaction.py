"""Pydantic model for the transaction snapshot the sync engine reads.

Transactions live in the product's relational store; the engine only
receives a snapshot of one row.  Date fields arrive as ``YYYY-MM-DD``
strings (or ``date`` objects) and empty strings are treated as unset,
because the dashboard forms submit blank inputs as ``""``.
"""

from __future__ import annotations

from datetime import date

from pydantic import BaseModel, ConfigDict, field_validator

MILESTONE_DATE_FIELDS: tuple[str, ...] = (
    "offer_date",
    "acceptance_date",
    "inspection_date",
    "inspection_deadline",
    "appraisal_date",
    "appraisal_deadline",
    "financing_deadline",
    "title_deadline",
    "closing_date",
    "possession_date",
)
"""Names of the transaction's milestone date fields, in milestone order."""


class Transaction(BaseModel):
    """A real-estate transaction as seen by the calendar sync engine.

    Attributes:
        id: Transaction identifier.
        user_id: ID of the agent who owns the transaction (and its events).
        property_address: Street address of the property.
        property_city: City, or ``None``.
        property_state: State, or ``None``.
        buyer_name: Buyer display name.
        seller_name: Seller display name.
        offer_date: Date the offer was submitted.
        acceptance_date: Date the offer was accepted.
        inspection_date: Scheduled home inspection.
        inspection_deadline: Inspection contingency deadline.
        appraisal_date: Scheduled appraisal.
        appraisal_deadline: Appraisal contingency deadline.
        financing_deadline: Loan approval deadline.
        title_deadline: Title review deadline.
        closing_date: Closing day.
        possession_date: Day the buyer takes possession.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str
    user_id: str
    property_address: str
    property_city: str | None = None
    property_state: str | None = None
    buyer_name: str = ""
    seller_name: str = ""

    offer_date: date | None = None
    acceptance_date: date | None = None
    inspection_date: date | None = None
    inspection_deadline: date | None = None
    appraisal_date: date | None = None
    appraisal_deadline: date | None = None
    financing_deadline: date | None = None
    title_deadline: date | None = None
    closing_date: date | None = None
    possession_date: date | None = None

    @field_validator(*MILESTONE_DATE_FIELDS, mode="before")
    @classmethod
    def _blank_to_none(cls, value: object) -> object:
        """Treat blank form input as an unset date."""
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @property
    def location(self) -> str:
        """``"City, State"`` built from whichever parts are known (may be empty)."""
        return ", ".join(part for part in (self.property_city, self.property_state) if part)
