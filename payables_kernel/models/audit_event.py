"""
Audit events: the append-only, hash-chained record of every payables
mutation.

One row per change to a vendor, approval rule, invoice or payment.  The
payload holds ``{"before": ..., "after": ...}`` snapshots.  ``hash`` links
the row to its predecessor (``prev_hash``) so that rewriting or deleting
an old row is detectable by ``AuditorService.validate_chain``.  UPDATE and
DELETE are refused by the listeners in ``payables_kernel.db.immutability``.
"""

from datetime import datetime
from enum import Enum
from uuid import UUID

from sqlalchemy import JSON, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from payables_kernel.db.base import USERNAME, Base

HASH_HEX = String(64)


class AuditAction(str, Enum):
    INVOICE_CREATED = "invoice_created"
    INVOICE_UPDATED = "invoice_updated"
    INVOICE_APPROVED = "invoice_approved"
    INVOICE_REJECTED = "invoice_rejected"
    INVOICE_MARKED_OVERDUE = "invoice_marked_overdue"
    INVOICE_ESCALATED = "invoice_escalated"

    PAYMENT_CREATED = "payment_created"
    PAYMENT_DELETED = "payment_deleted"

    RULE_CREATED = "rule_created"
    RULE_UPDATED = "rule_updated"
    RULE_DELETED = "rule_deleted"
    RULE_TOGGLED = "rule_toggled"

    VENDOR_CREATED = "vendor_created"
    VENDOR_UPDATED = "vendor_updated"
    VENDOR_RISK_RECOMPUTED = "vendor_risk_recomputed"


class AuditEvent(Base):
    __tablename__ = "audit_events"
    __table_args__ = (
        Index("idx_audit_entity", "entity_type", "entity_id"),
        Index("idx_audit_action", "action"),
    )

    seq: Mapped[int] = mapped_column(unique=True)
    entity_type: Mapped[str] = mapped_column(String(50))  # Vendor, Invoice, ApprovalRule, Payment
    entity_id: Mapped[UUID]
    action: Mapped[str] = mapped_column(String(50))
    actor: Mapped[str] = mapped_column(USERNAME)
    occurred_at: Mapped[datetime]
    description: Mapped[str | None] = mapped_column(Text)
    payload: Mapped[dict | None] = mapped_column(JSON)

    payload_hash: Mapped[str] = mapped_column(HASH_HEX)
    prev_hash: Mapped[str | None] = mapped_column(HASH_HEX)
    hash: Mapped[str] = mapped_column(HASH_HEX)

    def __repr__(self) -> str:
        return f"<AuditEvent #{self.seq} {self.action} {self.entity_type}:{self.entity_id}>"

    @property
    def is_genesis(self) -> bool:
        return self.prev_hash is None
