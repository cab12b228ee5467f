"""
Payment Module Service (``payables_modules.payments.service``).

Responsibility
--------------
The settlement ledger.  Records payments against invoices, deletes them
as a compensating action, and writes the settlement status implied by the
cumulative paid sum back onto the invoice.

Architecture position
---------------------
**Modules layer** -- ``PaymentService`` is the sole public entry point for
payment operations.  Status derivation is the pure
``payables_kernel.domain.lifecycle.derive_settlement_status``.

Invariants enforced
-------------------
* Payment amount > 0.
* Sum of payments on an invoice never exceeds its total at creation.  The
  invoice row is locked (``SELECT ... FOR UPDATE``) before the sum is read
  and its version counter is bumped by the status write, so two
  concurrent payments cannot both pass the balance check.
* After every create and delete the invoice status is re-derived from the
  full remaining sum: 0 -> APPROVED, below total -> PARTIALLY_PAID,
  total or more -> PAID.

Failure modes
-------------
* ``InvoiceNotFoundError`` / ``PaymentNotFoundError`` -- unknown ids.
* ``InvalidPaymentAmountError`` -- amount <= 0.
* ``PaymentExceedsBalanceError`` -- amount above the remaining balance;
  carries ``remaining``.  No payment row is written.
* ``AccessDeniedError`` -- actor's role cannot read payments.
* ``OptimisticLockError`` -- invoice modified concurrently.

Audit relevance
---------------
Creates record the new payment; deletes record the prior payment snapshot.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import flag_modified

from payables_engines.tax import round_money
from payables_kernel.domain.access import PaymentScope, payment_scope
from payables_kernel.domain.actors import Actor
from payables_kernel.domain.clock import Clock, SystemClock
from payables_kernel.domain.lifecycle import derive_settlement_status
from payables_kernel.exceptions import (
    AccessDeniedError,
    InvalidPaymentAmountError,
    PaymentExceedsBalanceError,
    PaymentNotFoundError,
)
from payables_kernel.logging_config import LogContext, get_logger
from payables_kernel.models.audit_event import AuditAction
from payables_kernel.services.auditor_service import AuditorService
from payables_modules._helpers import snapshot, unit_of_work
from payables_modules.invoices.models import Invoice
from payables_modules.invoices.orm import InvoiceModel
from payables_modules.invoices.service import load_invoice_for_update
from payables_modules.payments.models import Payment, PaymentMethod
from payables_modules.payments.orm import PaymentModel

logger = get_logger("modules.payments.service")

ENTITY_TYPE = "Payment"


class PaymentService:
    """
    Records and removes payments and keeps invoice settlement status
    consistent with them.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        auditor: AuditorService | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._auditor = auditor or AuditorService(session, self._clock)

    def paid_total(self, invoice_id: UUID) -> Decimal:
        """Sum of payments recorded against ``invoice_id``."""
        amounts = self._session.execute(
            select(PaymentModel.amount).where(PaymentModel.invoice_id == invoice_id)
        ).scalars().all()
        return round_money(sum(amounts, Decimal("0")))

    def _settle(self, invoice: InvoiceModel, actor: Actor) -> tuple[str, str]:
        paid = self.paid_total(invoice.id)
        from_status = invoice.status
        invoice.status = derive_settlement_status(paid, invoice.total_amount).value
        invoice.updated_by = actor.username
        # Forces an UPDATE: the version counter advances even when status is unchanged.
        flag_modified(invoice, "status")
        self._session.flush()
        return from_status, invoice.status

    # =========================================================================
    # Ledger
    # =========================================================================

    def create_payment(
        self,
        invoice_id: UUID,
        amount: Decimal,
        actor: Actor,
        method: PaymentMethod | str | None = None,
        reference: str | None = None,
        notes: str | None = None,
        payment_date: datetime | None = None,
    ) -> Payment:
        """
        Record a payment and update the invoice's settlement status.

        ``payment_date`` defaults to now.

        Raises:
            InvoiceNotFoundError, InvalidPaymentAmountError,
            PaymentExceedsBalanceError.
        """
        with LogContext.bind(invoice_id=invoice_id, actor=actor.username), \
                unit_of_work(self._session, "Invoice", invoice_id):
            invoice = load_invoice_for_update(self._session, invoice_id)
            if amount <= 0:
                raise InvalidPaymentAmountError(amount)

            remaining = round_money(invoice.total_amount - self.paid_total(invoice_id))
            if amount > remaining:
                logger.warning("payment_exceeds_balance", extra={
                    "amount": str(amount),
                    "remaining": str(remaining),
                })
                raise PaymentExceedsBalanceError(str(invoice_id), amount, remaining)

            model = PaymentModel(
                invoice_id=invoice_id,
                amount=amount,
                payment_date=payment_date or self._clock.now(),
                method=PaymentMethod(method).value if method else None,
                reference=reference,
                notes=notes,
                created_by=actor.username,
            )
            self._session.add(model)
            self._session.flush()
            from_status, to_status = self._settle(invoice, actor)
            payment = model.to_dto()

            self._auditor.record(
                actor, AuditAction.PAYMENT_CREATED, ENTITY_TYPE, payment.id,
                after=snapshot(payment),
                description=f"Payment of {payment.amount} on invoice {invoice.invoice_number}",
            )
            logger.info("payment_recorded", extra={
                "payment_id": str(payment.id),
                "amount": str(payment.amount),
                "remaining_after": str(remaining - payment.amount),
                "from_status": from_status,
                "to_status": to_status,
            })
        return payment

    def delete_payment(self, payment_id: UUID, actor: Actor) -> Invoice:
        """
        Delete a payment and re-derive the invoice status from what remains.

        Returns the updated invoice.
        """
        with LogContext.bind(actor=actor.username), \
                unit_of_work(self._session, ENTITY_TYPE, payment_id):
            model = self._session.get(PaymentModel, payment_id)
            if model is None:
                raise PaymentNotFoundError(str(payment_id))
            invoice = load_invoice_for_update(self._session, model.invoice_id)
            before = model.to_dto()

            self._session.delete(model)
            self._session.flush()
            from_status, to_status = self._settle(invoice, actor)
            updated = invoice.to_dto()

            self._auditor.record(
                actor, AuditAction.PAYMENT_DELETED, ENTITY_TYPE, payment_id,
                before=snapshot(before),
                description=f"Payment deleted from invoice {invoice.invoice_number}",
            )
            logger.info("payment_deleted", extra={
                "payment_id": str(payment_id),
                "invoice_id": str(invoice.id),
                "amount": str(before.amount),
                "from_status": from_status,
                "to_status": to_status,
            })
        return updated

    # =========================================================================
    # Reads
    # =========================================================================

    def _scoped(self, stmt, actor: Actor | None):
        if actor is None:
            return stmt
        scope = payment_scope(actor)
        if scope == PaymentScope.NONE:
            raise AccessDeniedError(actor.username, "your role cannot view payments")
        if scope == PaymentScope.OWN_INVOICES:
            stmt = stmt.join(InvoiceModel, InvoiceModel.id == PaymentModel.invoice_id).where(
                InvoiceModel.created_by == actor.username
            )
        return stmt

    def get_payment(self, payment_id: UUID, actor: Actor | None = None) -> Payment:
        """
        Raises:
            PaymentNotFoundError: unknown id.
            AccessDeniedError: ``actor`` may not see this payment.
        """
        model = self._session.get(PaymentModel, payment_id)
        if model is None:
            raise PaymentNotFoundError(str(payment_id))
        if actor is not None:
            visible = self._session.execute(
                self._scoped(select(PaymentModel.id), actor).where(PaymentModel.id == payment_id)
            ).first()
            if visible is None:
                raise AccessDeniedError(
                    actor.username, "you can only view payments on your own invoices",
                )
        return model.to_dto()

    def list_payments(self, actor: Actor | None = None) -> list[Payment]:
        stmt = self._scoped(
            select(PaymentModel).order_by(PaymentModel.payment_date), actor,
        )
        return [m.to_dto() for m in self._session.execute(stmt).scalars().all()]

    def list_payments_for_invoice(self, invoice_id: UUID) -> list[Payment]:
        rows = self._session.execute(
            select(PaymentModel)
            .where(PaymentModel.invoice_id == invoice_id)
            .order_by(PaymentModel.payment_date)
        ).scalars().all()
        return [m.to_dto() for m in rows]

    def payment_count(self, invoice_id: UUID) -> int:
        return self._session.execute(
            select(func.count(PaymentModel.id)).where(PaymentModel.invoice_id == invoice_id)
        ).scalar_one()

