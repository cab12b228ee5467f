"""
ORM-Level Immutability Enforcement.

===============================================================================
WHY THIS EXISTS
===============================================================================

Approval events and audit events are the evidence trail for every invoice
decision.  Once written they must never change: a correction is a new
event, not an edit.  SQLAlchemy fires mapper events before UPDATE/DELETE
statements reach the database, so listeners registered here reject any
attempt to modify or delete those rows through the ORM:

    session.flush()
         |
         v
    [before_update / before_delete] --> _reject_*() --> ImmutabilityViolationError

The exception aborts the flush; the caller's transaction is rolled back
by the owning service.

Protected models:
    - AuditEvent      (payables_kernel.models.audit_event)
    - InvoiceApprovalModel (payables_modules.invoices.orm)
"""

from sqlalchemy import event

from payables_kernel.exceptions import ImmutabilityViolationError
from payables_kernel.logging_config import get_logger

logger = get_logger("db.immutability")


def _block(entity_type: str, target, operation: str, reason: str) -> None:
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": str(target.id),
            "operation": operation,
        },
    )
    raise ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=str(target.id),
        reason=reason,
    )


def _reject_audit_event_update(mapper, connection, target):
    _block("AuditEvent", target, "UPDATE", "Audit events are immutable and cannot be modified")


def _reject_audit_event_delete(mapper, connection, target):
    _block("AuditEvent", target, "DELETE", "Audit events cannot be deleted")


def _reject_approval_update(mapper, connection, target):
    _block(
        "InvoiceApproval", target, "UPDATE",
        "Approval events are append-only and cannot be modified",
    )


def _reject_approval_delete(mapper, connection, target):
    _block("InvoiceApproval", target, "DELETE", "Approval events cannot be deleted")


def _listener_table():
    from payables_kernel.models.audit_event import AuditEvent
    from payables_modules.invoices.orm import InvoiceApprovalModel

    return (
        (AuditEvent, "before_update", _reject_audit_event_update),
        (AuditEvent, "before_delete", _reject_audit_event_delete),
        (InvoiceApprovalModel, "before_update", _reject_approval_update),
        (InvoiceApprovalModel, "before_delete", _reject_approval_delete),
    )


def register_immutability_listeners() -> None:
    """
    Register all immutability enforcement event listeners.

    Call during application initialization, after models are imported.
    Idempotent.
    """
    for target, event_name, listener_fn in _listener_table():
        if not event.contains(target, event_name, listener_fn):
            event.listen(target, event_name, listener_fn)


def unregister_immutability_listeners() -> None:
    """
    Remove immutability enforcement event listeners.

    WARNING: Only use this in tests.
    """
    for target, event_name, listener_fn in _listener_table():
        if event.contains(target, event_name, listener_fn):
            event.remove(target, event_name, listener_fn)
