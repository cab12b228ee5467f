"""
Invoice Domain Models (``payables_modules.invoices.models``).

Responsibility
--------------
Frozen dataclass value objects for the invoice lifecycle: line item input,
persisted invoices with their line items, append-only approval events, and
the derived approval-progress view.

Architecture position
---------------------
**Modules layer** -- pure data definitions with no I/O.  Consumed by
``InvoiceService`` and the payments module; persisted via ``orm.py``.

Invariants enforced
-------------------
* All models are ``frozen=True`` (immutable after construction).
* Monetary fields use ``Decimal`` -- never ``float``.
* ``LineItemInput`` carries no amount; the line amount is always derived
  as quantity x unit price by the service.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from payables_kernel.domain.lifecycle import ApprovalDecision, InvoiceStatus


@dataclass(frozen=True)
class LineItemInput:
    """A line item as submitted by the caller."""

    description: str
    quantity: int
    unit_price: Decimal


@dataclass(frozen=True)
class InvoiceLineItem:
    id: UUID
    description: str
    quantity: int
    unit_price: Decimal
    amount: Decimal
    position: int


@dataclass(frozen=True)
class Invoice:
    """
    A vendor invoice and its computed amounts.

    Exactly one of (split_tax_a + split_tax_b) or single_tax is non-zero,
    and total_amount == base_amount + split_tax_a + split_tax_b + single_tax.
    """

    id: UUID
    invoice_number: str
    vendor_id: UUID
    invoice_date: date
    due_date: date
    status: InvoiceStatus
    base_amount: Decimal
    split_tax_a: Decimal
    split_tax_b: Decimal
    single_tax: Decimal
    total_amount: Decimal
    current_approval_level: int = 0
    is_overdue: bool = False
    escalation_level: int = 0
    created_by: str = ""
    line_items: tuple[InvoiceLineItem, ...] = field(default_factory=tuple)
    version: int = 1

    @property
    def tax_total(self) -> Decimal:
        return self.split_tax_a + self.split_tax_b + self.single_tax


@dataclass(frozen=True)
class InvoiceApproval:
    """An approval or rejection recorded against an invoice.  Append-only."""

    id: UUID
    invoice_id: UUID
    level: int
    approver: str
    decision: ApprovalDecision
    comments: str | None
    decided_at: datetime
    workflow_round: int = 0


@dataclass(frozen=True)
class ApprovalInfo:
    invoice_id: UUID
    invoice_number: str
    current_level: int
    required_levels: int
    remaining_levels: int
    fully_approved: bool
    applicable_range: str
