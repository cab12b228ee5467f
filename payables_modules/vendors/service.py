"""
Vendor Module Service (``payables_modules.vendors.service``).

Responsibility
--------------
Vendor registry operations: create, update, status changes, lookups, the
jurisdiction code used for tax treatment, and on-demand risk scoring.
Pure scoring is delegated to ``payables_engines.risk``.

Architecture position
---------------------
**Modules layer** -- ``VendorService`` is the sole public entry point for
vendor operations.

Invariants enforced
-------------------
* Each mutating method owns the transaction boundary (commit on success,
  rollback and re-raise on any exception).
* Email is unique; tax identifier is unique when present.
* The stored risk score only changes through ``recompute_risk_score``.
  No other write path touches it.

Failure modes
-------------
* ``VendorNotFoundError`` -- unknown vendor id.
* ``DuplicateVendorError`` -- email or tax identifier already registered.

Audit relevance
---------------
Creates, updates, status changes and risk recomputes are recorded through
``AuditorService`` with before/after snapshots.
"""

from __future__ import annotations

from collections import defaultdict
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from payables_config.schema import PayablesConfig
from payables_engines.risk import (
    InvoiceRecord,
    PaymentRecord,
    RiskScoreBreakdown,
    calculate_risk_score,
)
from payables_engines.tax import jurisdiction_from_tax_id
from payables_kernel.domain.actors import Actor
from payables_kernel.domain.clock import Clock, SystemClock
from payables_kernel.domain.lifecycle import InvoiceStatus
from payables_kernel.exceptions import DuplicateVendorError, VendorNotFoundError
from payables_kernel.logging_config import get_logger
from payables_kernel.models.audit_event import AuditAction
from payables_kernel.services.auditor_service import AuditorService
from payables_modules._helpers import snapshot, unit_of_work
from payables_modules.vendors.models import Vendor, VendorStatus
from payables_modules.vendors.orm import VendorModel

logger = get_logger("modules.vendors.service")

ENTITY_TYPE = "Vendor"


class VendorService:
    """
    Vendor registry and risk scoring.

    Guarantees
    ----------
    * Clock is injectable for deterministic testing.
    * ``calculate_risk_score`` is read-only; ``recompute_risk_score``
      persists the result.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        auditor: AuditorService | None = None,
        config: PayablesConfig | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._auditor = auditor or AuditorService(session, self._clock)
        self._config = config or PayablesConfig()

    # =========================================================================
    # Registry
    # =========================================================================

    def _load(self, vendor_id: UUID) -> VendorModel:
        model = self._session.get(VendorModel, vendor_id)
        if model is None:
            raise VendorNotFoundError(str(vendor_id))
        return model

    def _check_unique(
        self,
        email: str,
        tax_identifier: str | None,
        exclude_id: UUID | None = None,
    ) -> None:
        stmt = select(VendorModel).where(VendorModel.email == email)
        if exclude_id is not None:
            stmt = stmt.where(VendorModel.id != exclude_id)
        if self._session.execute(stmt).scalars().first() is not None:
            raise DuplicateVendorError("email", email)

        if tax_identifier:
            stmt = select(VendorModel).where(VendorModel.tax_identifier == tax_identifier)
            if exclude_id is not None:
                stmt = stmt.where(VendorModel.id != exclude_id)
            if self._session.execute(stmt).scalars().first() is not None:
                raise DuplicateVendorError("tax_identifier", tax_identifier)

    def create_vendor(
        self,
        name: str,
        email: str,
        actor: Actor,
        tax_identifier: str | None = None,
        status: VendorStatus = VendorStatus.ACTIVE,
    ) -> Vendor:
        """
        Register a vendor.

        Raises:
            DuplicateVendorError: email or tax identifier already in use.
        """
        with unit_of_work(self._session, ENTITY_TYPE):
            self._check_unique(email, tax_identifier)
            model = VendorModel(
                name=name,
                email=email,
                tax_identifier=tax_identifier or None,
                status=VendorStatus(status).value,
                risk_score=Decimal("0"),
                created_by=actor.username,
            )
            self._session.add(model)
            self._session.flush()
            vendor = model.to_dto()

            self._auditor.record(
                actor, AuditAction.VENDOR_CREATED, ENTITY_TYPE, vendor.id,
                after=snapshot(vendor),
                description=f"Vendor created: {name}",
            )
            logger.info("vendor_created", extra={
                "vendor_id": str(vendor.id),
                "vendor_name": name,
            })
        return vendor

    def update_vendor(
        self,
        vendor_id: UUID,
        actor: Actor,
        name: str | None = None,
        email: str | None = None,
        tax_identifier: str | None = None,
    ) -> Vendor:
        """Change a vendor's name, email or tax identifier.  None keeps the value."""
        with unit_of_work(self._session, ENTITY_TYPE, vendor_id):
            model = self._load(vendor_id)
            before = model.to_dto()

            new_email = email if email is not None else model.email
            new_tax_id = tax_identifier if tax_identifier is not None else model.tax_identifier
            self._check_unique(new_email, new_tax_id, exclude_id=vendor_id)

            if name is not None:
                model.name = name
            model.email = new_email
            model.tax_identifier = new_tax_id or None
            model.updated_by = actor.username
            self._session.flush()
            vendor = model.to_dto()

            self._auditor.record(
                actor, AuditAction.VENDOR_UPDATED, ENTITY_TYPE, vendor_id,
                before=snapshot(before), after=snapshot(vendor),
            )
            logger.info("vendor_updated", extra={"vendor_id": str(vendor_id)})
        return vendor

    def set_status(self, vendor_id: UUID, status: VendorStatus, actor: Actor) -> Vendor:
        with unit_of_work(self._session, ENTITY_TYPE, vendor_id):
            model = self._load(vendor_id)
            before = model.to_dto()
            model.status = VendorStatus(status).value
            model.updated_by = actor.username
            self._session.flush()
            vendor = model.to_dto()

            self._auditor.record(
                actor, AuditAction.VENDOR_UPDATED, ENTITY_TYPE, vendor_id,
                before=snapshot(before), after=snapshot(vendor),
                description=f"Vendor status changed to {vendor.status.value}",
            )
            logger.info("vendor_status_changed", extra={
                "vendor_id": str(vendor_id),
                "from_status": before.status.value,
                "to_status": vendor.status.value,
            })
        return vendor

    def get_vendor(self, vendor_id: UUID) -> Vendor:
        return self._load(vendor_id).to_dto()

    def list_vendors(self, status: VendorStatus | None = None) -> list[Vendor]:
        stmt = select(VendorModel).order_by(VendorModel.name)
        if status is not None:
            stmt = stmt.where(VendorModel.status == VendorStatus(status).value)
        return [m.to_dto() for m in self._session.execute(stmt).scalars().all()]

    def jurisdiction_code(self, vendor_id: UUID) -> str:
        """Two-character jurisdiction code derived from the tax identifier."""
        model = self._load(vendor_id)
        return jurisdiction_from_tax_id(
            model.tax_identifier, self._config.tax.default_jurisdiction,
        )

    # =========================================================================
    # Risk
    # =========================================================================

    def _history(self, vendor_id: UUID) -> list[InvoiceRecord]:
        # Deferred to keep the vendors module importable without invoices.
        from payables_modules.invoices.orm import InvoiceModel
        from payables_modules.payments.orm import PaymentModel

        invoices = self._session.execute(
            select(InvoiceModel).where(InvoiceModel.vendor_id == vendor_id)
        ).scalars().all()
        if not invoices:
            return []

        payments_by_invoice: dict[UUID, list[PaymentRecord]] = defaultdict(list)
        payments = self._session.execute(
            select(PaymentModel).where(
                PaymentModel.invoice_id.in_([i.id for i in invoices])
            )
        ).scalars().all()
        for p in payments:
            payments_by_invoice[p.invoice_id].append(
                PaymentRecord(amount=p.amount, payment_date=p.payment_date.date())
            )

        return [
            InvoiceRecord(
                status=InvoiceStatus(i.status),
                total_amount=i.total_amount,
                due_date=i.due_date,
                is_overdue=i.is_overdue,
                escalation_level=i.escalation_level,
                payments=tuple(payments_by_invoice.get(i.id, ())),
            )
            for i in invoices
        ]

    def calculate_risk_score(self, vendor_id: UUID) -> RiskScoreBreakdown:
        """Score the vendor's current history without storing it."""
        self._load(vendor_id)
        return calculate_risk_score(self._history(vendor_id))

    def recompute_risk_score(self, vendor_id: UUID, actor: Actor) -> Vendor:
        """Recalculate and persist the vendor's risk score."""
        with unit_of_work(self._session, ENTITY_TYPE, vendor_id):
            model = self._load(vendor_id)
            previous = model.risk_score
            breakdown = calculate_risk_score(self._history(vendor_id))
            model.risk_score = breakdown.score
            model.updated_by = actor.username
            self._session.flush()
            vendor = model.to_dto()

            self._auditor.record(
                actor, AuditAction.VENDOR_RISK_RECOMPUTED, ENTITY_TYPE, vendor_id,
                before={"risk_score": previous},
                after=snapshot(breakdown),
            )
            logger.info("vendor_risk_recomputed", extra={
                "vendor_id": str(vendor_id),
                "previous_score": str(previous),
                "risk_score": str(breakdown.score),
                "payment_ratio": str(breakdown.payment_ratio),
            })
        return vendor

    def list_high_risk_vendors(self, threshold: Decimal | None = None) -> list[Vendor]:
        """Vendors whose stored score is at or above ``threshold``, riskiest first."""
        if threshold is None:
            threshold = self._config.risk.high_risk_threshold
        rows = self._session.execute(
            select(VendorModel)
            .where(VendorModel.risk_score >= threshold)
            .order_by(VendorModel.risk_score.desc(), VendorModel.name)
        ).scalars().all()
        return [m.to_dto() for m in rows]
