"""Extract calendar milestones from a transaction.

:func:`extract_milestones` is pure: it reads the ten milestone date fields
of a :class:`~deal_calendar.models.transaction.Transaction` and returns one
:class:`~deal_calendar.models.calendar.Milestone` per populated field, in
fixed category order.  Title and description wording is the only thing that
differs between categories and lives in :data:`_TEMPLATES`.
"""

from __future__ import annotations

from typing import NamedTuple

from deal_calendar.models.calendar import Milestone, MilestoneCategory
from deal_calendar.models.transaction import Transaction


class _Template(NamedTuple):
    field: str
    title: str
    description: str


_PARTIES = "\nBuyer: {buyer}\nSeller: {seller}"

# Ordered: milestones are emitted in this sequence.
_TEMPLATES: dict[MilestoneCategory, _Template] = {
    "offer": _Template(
        "offer_date",
        "📝 Offer Date - {address}",
        "Offer submitted for {address}{in_location}." + _PARTIES,
    ),
    "acceptance": _Template(
        "acceptance_date",
        "✅ Contract Acceptance - {address}",
        "Offer accepted for {address}." + _PARTIES,
    ),
    "inspection": _Template(
        "inspection_date",
        "🔍 Home Inspection - {address}",
        "Scheduled home inspection for {address}.",
    ),
    "inspection_deadline": _Template(
        "inspection_deadline",
        "⚠️ Inspection Deadline - {address}",
        "Inspection contingency deadline for {address}. "
        "All inspection items must be resolved.",
    ),
    "appraisal": _Template(
        "appraisal_date",
        "📊 Appraisal - {address}",
        "Property appraisal scheduled for {address}.",
    ),
    "appraisal_deadline": _Template(
        "appraisal_deadline",
        "⚠️ Appraisal Deadline - {address}",
        "Appraisal contingency deadline for {address}.",
    ),
    "financing_deadline": _Template(
        "financing_deadline",
        "💰 Financing Deadline - {address}",
        "Loan approval deadline for {address}. Financing must be secured.",
    ),
    "title_deadline": _Template(
        "title_deadline",
        "📜 Title Deadline - {address}",
        "Title review deadline for {address}. All title issues must be resolved.",
    ),
    "closing": _Template(
        "closing_date",
        "🏠 CLOSING DAY - {address}",
        "Closing day for {address}!" + _PARTIES + "\n\n"
        "Bring government-issued ID and be ready to sign documents.",
    ),
    "possession": _Template(
        "possession_date",
        "🔑 Possession Date - {address}",
        "Buyer takes possession of {address}.",
    ),
}

MILESTONE_ORDER: tuple[MilestoneCategory, ...] = tuple(_TEMPLATES)
"""Category order in which milestones are extracted and synced."""


def extract_milestones(transaction: Transaction) -> list[Milestone]:
    """Return the transaction's populated milestones in category order.

    Absent date fields are skipped; a transaction with no dates yields an
    empty list.

    Args:
        transaction: The transaction snapshot to read.

    Returns:
        Zero to ten :class:`Milestone` instances.
    """
    location = transaction.location
    values = {
        "address": transaction.property_address,
        "in_location": f" in {location}" if location else "",
        "buyer": transaction.buyer_name,
        "seller": transaction.seller_name,
    }

    milestones: list[Milestone] = []
    for category, template in _TEMPLATES.items():
        when = getattr(transaction, template.field)
        if when is None:
            continue
        milestones.append(
            Milestone(
                date=when,
                category=category,
                title=template.title.format(**values),
                description=template.description.format(**values),
            )
        )

    return milestones
