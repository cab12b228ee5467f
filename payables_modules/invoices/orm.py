"""
Invoice ORM Models (``payables_modules.invoices.orm``).

Responsibility
--------------
SQLAlchemy persistence for invoices, their line items and their approval
events.  Maps the frozen dataclasses in ``models.py`` to tables.

Architecture position
---------------------
**Modules layer** -- persistence.  Imports from ``payables_kernel.db.base``
and sibling ``models.py``.  MUST NOT be imported by ``payables_kernel``
except lazily by the immutability listeners.

Invariants enforced
-------------------
* ``invoice_number`` is unique.
* ``InvoiceModel.version`` is a SQLAlchemy version counter: every UPDATE
  carries ``WHERE version = :old`` so a concurrent writer fails with
  ``StaleDataError`` instead of silently overwriting.
* At most one APPROVED event per (invoice, round, level) and per
  (invoice, round, approver) -- partial unique indexes.
* ``InvoiceApprovalModel`` rows are append-only (ORM listeners in
  ``payables_kernel.db.immutability``).

Audit relevance
---------------
``TrackedBase`` supplies ``created_at`` / ``updated_at`` / ``created_by`` /
``updated_by`` on invoices.  Approval events carry their own actor and
timestamp.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    Boolean,
    Date,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from payables_kernel.db.base import Base, TrackedBase
from payables_kernel.domain.lifecycle import ApprovalDecision, InvoiceStatus
from payables_engines.tax import round_money


class InvoiceModel(TrackedBase):
    """
    ORM model for vendor invoices.

    ``workflow_round`` counts approval restarts: it is incremented when a
    rejected invoice is edited back to PENDING so earlier approval events
    no longer count towards the new round.
    """

    __tablename__ = "invoices"

    __table_args__ = (
        UniqueConstraint("invoice_number", name="uq_invoices_number"),
        Index("idx_invoices_vendor", "vendor_id"),
        Index("idx_invoices_status", "status"),
        Index("idx_invoices_due_date", "due_date"),
        Index("idx_invoices_created_by", "created_by"),
    )

    invoice_number: Mapped[str] = mapped_column(String(40), nullable=False)
    vendor_id: Mapped[UUID] = mapped_column(ForeignKey("vendors.id"), nullable=False)
    invoice_date: Mapped[date] = mapped_column(Date, nullable=False)
    due_date: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")
    base_amount: Mapped[Decimal] = mapped_column(nullable=False)
    split_tax_a: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    split_tax_b: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    single_tax: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    total_amount: Mapped[Decimal] = mapped_column(nullable=False)
    current_approval_level: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_overdue: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    escalation_level: Mapped[int | None] = mapped_column(Integer, nullable=True, default=0)
    workflow_round: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    line_items: Mapped[list["InvoiceLineItemModel"]] = relationship(
        back_populates="invoice",
        cascade="all, delete-orphan",
        order_by="InvoiceLineItemModel.position",
        lazy="selectin",
    )

    __mapper_args__ = {"version_id_col": version}

    def to_dto(self):
        """Convert ORM model to frozen dataclass."""
        from payables_modules.invoices.models import Invoice

        return Invoice(
            id=self.id,
            invoice_number=self.invoice_number,
            vendor_id=self.vendor_id,
            invoice_date=self.invoice_date,
            due_date=self.due_date,
            status=InvoiceStatus(self.status),
            base_amount=round_money(self.base_amount),
            split_tax_a=round_money(self.split_tax_a),
            split_tax_b=round_money(self.split_tax_b),
            single_tax=round_money(self.single_tax),
            total_amount=round_money(self.total_amount),
            current_approval_level=self.current_approval_level,
            is_overdue=self.is_overdue,
            escalation_level=self.escalation_level or 0,
            created_by=self.created_by,
            line_items=tuple(item.to_dto() for item in self.line_items),
            version=self.version,
        )

    def __repr__(self) -> str:
        return f"<InvoiceModel {self.invoice_number} [{self.status}]>"


class InvoiceLineItemModel(Base):
    """One line of an invoice.  Owned by the invoice; replaced wholesale on edit."""

    __tablename__ = "invoice_line_items"

    __table_args__ = (
        Index("idx_invoice_line_items_invoice", "invoice_id"),
    )

    invoice_id: Mapped[UUID] = mapped_column(
        ForeignKey("invoices.id", ondelete="CASCADE"), nullable=False,
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    description: Mapped[str] = mapped_column(String(500), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(nullable=False)
    amount: Mapped[Decimal] = mapped_column(nullable=False)

    invoice: Mapped[InvoiceModel] = relationship(back_populates="line_items")

    def to_dto(self):
        from payables_modules.invoices.models import InvoiceLineItem

        return InvoiceLineItem(
            id=self.id,
            description=self.description,
            quantity=self.quantity,
            unit_price=round_money(self.unit_price),
            amount=round_money(self.amount),
            position=self.position,
        )


class InvoiceApprovalModel(Base):
    """
    Append-only approval/rejection event.

    Guarantees:
        - No UPDATE or DELETE through the ORM (immutability listeners).
        - One approved event per (invoice_id, workflow_round, level).
        - One approved event per (invoice_id, workflow_round, approver).
    """

    __tablename__ = "invoice_approvals"

    __table_args__ = (
        Index("idx_invoice_approvals_invoice", "invoice_id"),
        Index(
            "uq_invoice_approvals_level",
            "invoice_id", "workflow_round", "level",
            unique=True,
            postgresql_where=text("decision = 'approved'"),
            sqlite_where=text("decision = 'approved'"),
        ),
        Index(
            "uq_invoice_approvals_approver",
            "invoice_id", "workflow_round", "approver",
            unique=True,
            postgresql_where=text("decision = 'approved'"),
            sqlite_where=text("decision = 'approved'"),
        ),
    )

    invoice_id: Mapped[UUID] = mapped_column(ForeignKey("invoices.id"), nullable=False)
    workflow_round: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    level: Mapped[int] = mapped_column(Integer, nullable=False)
    approver: Mapped[str] = mapped_column(String(100), nullable=False)
    decision: Mapped[str] = mapped_column(String(20), nullable=False)
    comments: Mapped[str | None] = mapped_column(Text, nullable=True)
    decided_at: Mapped[datetime] = mapped_column(nullable=False)

    def to_dto(self):
        from payables_modules.invoices.models import InvoiceApproval

        return InvoiceApproval(
            id=self.id,
            invoice_id=self.invoice_id,
            level=self.level,
            approver=self.approver,
            decision=ApprovalDecision(self.decision),
            comments=self.comments,
            decided_at=self.decided_at,
            workflow_round=self.workflow_round,
        )

    def __repr__(self) -> str:
        return f"<InvoiceApprovalModel L{self.level} {self.decision} by {self.approver}>"
