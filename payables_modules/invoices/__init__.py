"""
Invoices Module.

The invoice lifecycle engine: creation with tax stamping, admin edits,
ordered multi-level approval, rejection, overdue marking and escalation,
plus role-filtered reads.
"""

from payables_modules.invoices.models import (
    ApprovalInfo,
    Invoice,
    InvoiceApproval,
    InvoiceLineItem,
    LineItemInput,
)
from payables_modules.invoices.service import InvoiceService

__all__ = [
    "ApprovalInfo",
    "Invoice",
    "InvoiceApproval",
    "InvoiceLineItem",
    "InvoiceService",
    "LineItemInput",
]
