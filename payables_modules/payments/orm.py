"""
Payment ORM Models (``payables_modules.payments.orm``).

Responsibility
--------------
SQLAlchemy persistence for the settlement ledger.  Maps the frozen
``Payment`` dataclass to the ``payments`` table.

Architecture position
---------------------
**Modules layer** -- persistence.  Imports from ``payables_kernel.db.base``
and sibling ``models.py``.  MUST NOT be imported by ``payables_kernel``.

Invariants enforced
-------------------
* ``amount`` > 0 (checked by ``PaymentService`` before insert).
* Sum of amounts per invoice never exceeds the invoice total at creation
  time; the invoice row is locked while the sum is read.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from payables_kernel.db.base import TrackedBase
from payables_engines.tax import round_money


class PaymentModel(TrackedBase):
    """ORM model for payments.  Deletable; never updated."""

    __tablename__ = "payments"

    __table_args__ = (
        Index("idx_payments_invoice", "invoice_id"),
        Index("idx_payments_date", "payment_date"),
    )

    invoice_id: Mapped[UUID] = mapped_column(ForeignKey("invoices.id"), nullable=False)
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    payment_date: Mapped[datetime] = mapped_column(nullable=False)
    method: Mapped[str | None] = mapped_column(String(30), nullable=True)
    reference: Mapped[str | None] = mapped_column(String(100), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    def to_dto(self):
        """Convert ORM model to frozen dataclass."""
        from payables_modules.payments.models import Payment, PaymentMethod

        return Payment(
            id=self.id,
            invoice_id=self.invoice_id,
            amount=round_money(self.amount),
            payment_date=self.payment_date,
            method=PaymentMethod(self.method) if self.method else None,
            reference=self.reference,
            notes=self.notes,
            created_by=self.created_by,
        )

    def __repr__(self) -> str:
        return f"<PaymentModel {self.amount} on invoice {self.invoice_id}>"
