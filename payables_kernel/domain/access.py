"""
Role-based read visibility for invoices and payments.

Responsibility:
    Decide which invoices and payments an actor may read.  The decision is
    a pure function of the actor's roles; services translate it into query
    filters or a point check.

Architecture position:
    Kernel > Domain -- pure, zero I/O.

Policy:
    Invoices:
        admin     -- everything
        reviewer  -- PENDING invoices only
        finance   -- APPROVED invoices only
        user      -- invoices they created
    Payments:
        admin, finance -- everything
        user           -- payments on invoices they created
        reviewer       -- nothing

    When an actor holds several roles the most privileged one wins, in the
    order admin, reviewer, finance, user.
"""

from dataclasses import dataclass
from enum import Enum

from payables_kernel.domain.actors import Actor, Role
from payables_kernel.domain.lifecycle import InvoiceStatus
from payables_kernel.exceptions import AccessDeniedError


@dataclass(frozen=True)
class InvoiceVisibility:
    """Filter describing the invoices an actor may read.

    ``status`` and ``created_by`` are None when the dimension is unrestricted.
    """

    status: InvoiceStatus | None = None
    created_by: str | None = None
    denial_reason: str = ""

    @property
    def unrestricted(self) -> bool:
        return self.status is None and self.created_by is None

    def permits(self, status: InvoiceStatus, created_by: str) -> bool:
        if self.status is not None and status != self.status:
            return False
        if self.created_by is not None and created_by != self.created_by:
            return False
        return True


class PaymentScope(str, Enum):
    ALL = "all"
    OWN_INVOICES = "own_invoices"
    NONE = "none"


def invoice_visibility(actor: Actor) -> InvoiceVisibility:
    """Return the invoice filter for ``actor``."""
    if actor.has_role(Role.ADMIN):
        return InvoiceVisibility()
    if actor.has_role(Role.REVIEWER):
        return InvoiceVisibility(
            status=InvoiceStatus.PENDING,
            denial_reason="reviewers can only view PENDING invoices",
        )
    if actor.has_role(Role.FINANCE):
        return InvoiceVisibility(
            status=InvoiceStatus.APPROVED,
            denial_reason="finance can only view APPROVED invoices",
        )
    return InvoiceVisibility(
        created_by=actor.username,
        denial_reason="you can only view your own invoices",
    )


def check_invoice_access(
    actor: Actor,
    status: InvoiceStatus,
    created_by: str,
) -> None:
    """Raise AccessDeniedError unless ``actor`` may read the invoice."""
    visibility = invoice_visibility(actor)
    if not visibility.permits(status, created_by):
        raise AccessDeniedError(actor.username, visibility.denial_reason)


def payment_scope(actor: Actor) -> PaymentScope:
    """Return which payments ``actor`` may read."""
    if actor.has_role(Role.ADMIN):
        return PaymentScope.ALL
    if actor.has_role(Role.REVIEWER):
        return PaymentScope.NONE
    if actor.has_role(Role.FINANCE):
        return PaymentScope.ALL
    return PaymentScope.OWN_INVOICES
