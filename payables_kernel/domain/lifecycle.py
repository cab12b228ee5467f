"""
Invoice lifecycle -- statuses and pure status derivation rules.

Responsibility:
    Defines the invoice status vocabulary and the pure functions that decide
    which status an invoice lands in after an approval, an edit or a change
    in cumulative payments.  Services apply the result; nothing here touches
    the database.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Lifecycle:
    PENDING -> APPROVED -> PAID
    PENDING -> REJECTED -> (edit) -> PENDING
    PENDING/APPROVED -> OVERDUE -> ESCALATED
    APPROVED/PAID <-> PARTIALLY_PAID (settlement)

    No status is final: rejected invoices may be edited and resubmitted,
    overdue and escalated invoices may still be approved or paid.
"""

from decimal import Decimal
from enum import Enum


class InvoiceStatus(str, Enum):
    """Lifecycle status of an invoice."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    PAID = "paid"
    PARTIALLY_PAID = "partially_paid"
    OVERDUE = "overdue"
    ESCALATED = "escalated"


class ApprovalDecision(str, Enum):
    """Outcome recorded on an approval event."""

    APPROVED = "approved"
    REJECTED = "rejected"


# Committed to settlement; edits are refused.
EDIT_LOCKED_STATUSES: frozenset[InvoiceStatus] = frozenset({
    InvoiceStatus.APPROVED,
    InvoiceStatus.PAID,
    InvoiceStatus.PARTIALLY_PAID,
})

# Never flagged overdue and never reminded about.
SETTLED_OR_CLOSED_STATUSES: frozenset[InvoiceStatus] = frozenset({
    InvoiceStatus.PAID,
    InvoiceStatus.REJECTED,
})


def is_editable(status: InvoiceStatus) -> bool:
    return status not in EDIT_LOCKED_STATUSES


def restarts_workflow_on_edit(status: InvoiceStatus) -> bool:
    """Editing a rejected invoice sends it back to PENDING at level 0."""
    return status == InvoiceStatus.REJECTED


def derive_approval_status(
    current_level: int,
    required_levels: int | None,
) -> InvoiceStatus:
    """Status after an approval at ``current_level``.

    ``required_levels`` is None when no approval rule covers the invoice
    total, in which case the invoice is auto-approved.
    """
    if required_levels is None or current_level >= required_levels:
        return InvoiceStatus.APPROVED
    return InvoiceStatus.PENDING


def derive_settlement_status(
    paid_total: Decimal,
    invoice_total: Decimal,
) -> InvoiceStatus:
    """Status implied by the cumulative amount paid against an invoice.

    Always derived from the full sum: nothing paid reverts to APPROVED,
    anything short of the total is PARTIALLY_PAID, the total or more is PAID.
    """
    if paid_total <= 0:
        return InvoiceStatus.APPROVED
    if paid_total < invoice_total:
        return InvoiceStatus.PARTIALLY_PAID
    return InvoiceStatus.PAID
