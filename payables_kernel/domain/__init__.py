"""
Pure domain layer.

Value objects and rules with NO dependencies on the ORM, the database,
the system clock or any other I/O.
"""

from payables_kernel.domain.access import (
    InvoiceVisibility,
    PaymentScope,
    check_invoice_access,
    invoice_visibility,
    payment_scope,
)
from payables_kernel.domain.actors import SYSTEM_ACTOR, Actor, Role
from payables_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from payables_kernel.domain.lifecycle import (
    ApprovalDecision,
    InvoiceStatus,
    derive_approval_status,
    derive_settlement_status,
)

__all__ = [
    "SYSTEM_ACTOR",
    "Actor",
    "ApprovalDecision",
    "Clock",
    "DeterministicClock",
    "InvoiceStatus",
    "InvoiceVisibility",
    "PaymentScope",
    "Role",
    "SystemClock",
    "check_invoice_access",
    "derive_approval_status",
    "derive_settlement_status",
    "invoice_visibility",
    "payment_scope",
]
