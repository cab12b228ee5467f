"""
Invoice Module Service (``payables_modules.invoices.service``).

Responsibility
--------------
The invoice lifecycle engine.  Creates invoices (stamping tax and total
through the tax calculator), applies administrator edits, claims approval
levels in strict order, records rejections, and runs the overdue and
escalation transitions.  Also serves the role-filtered read paths.

Architecture position
---------------------
**Modules layer** -- ``InvoiceService`` is the sole public entry point for
invoice state changes.  Composes ``SplitTaxCalculator`` (pure engine),
``ApprovalRuleService`` (rule matcher), ``SequenceService`` (invoice
numbers) and ``AuditorService`` (audit sink).

State machine
-------------
    PENDING --approve (last level)--> APPROVED --payments--> PARTIALLY_PAID / PAID
    PENDING --reject--> REJECTED --admin edit--> PENDING (level 0, new round)
    PENDING / APPROVED / ... --mark_overdue--> OVERDUE --escalate_overdue--> ESCALATED

Invariants enforced
-------------------
* total == base + split_tax_a + split_tax_b + single_tax, recomputed
  whenever the base amount changes.
* Line amounts are always quantity x unit price; never taken from input.
* An approval must claim exactly ``current_approval_level + 1``.
* Approval events are append-only.
* Each public mutating method owns the transaction boundary.  The invoice
  row is loaded ``SELECT ... FOR UPDATE`` and carries a version counter, so
  two concurrent approvals cannot both advance the same level.

Failure modes
-------------
* ``InvoiceNotFoundError`` / ``VendorNotFoundError`` -- unknown ids.
* ``EmptyLineItemsError`` / ``InvalidLineItemError`` / ``InvalidDueDateError``.
* ``InvoiceEditNotPermittedError`` -- non-admin edit.
* ``InvoiceNotEditableError`` -- edit after the invoice is committed to
  settlement.
* ``ApprovalLevelMismatchError`` -- out-of-order approval level.
* ``DuplicateApprovalError`` -- only when ``approvals.strict_duplicates``.
* ``OptimisticLockError`` -- concurrent modification of the same invoice.
* ``AccessDeniedError`` -- role cannot read the invoice.

Audit relevance
---------------
Every state change records an audit event with before/after snapshots and
emits a structured log event.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import date, timedelta
from decimal import Decimal
from uuid import UUID

from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from payables_config.schema import PayablesConfig
from payables_engines.approval import evaluate_progress
from payables_engines.tax import SplitTaxCalculator, jurisdiction_from_tax_id, round_money
from payables_kernel.domain.access import check_invoice_access, invoice_visibility
from payables_kernel.domain.actors import SYSTEM_ACTOR, Actor
from payables_kernel.domain.clock import Clock, SystemClock
from payables_kernel.domain.lifecycle import (
    SETTLED_OR_CLOSED_STATUSES,
    ApprovalDecision,
    InvoiceStatus,
    derive_approval_status,
    is_editable,
    restarts_workflow_on_edit,
)
from payables_kernel.exceptions import (
    ApprovalLevelMismatchError,
    DuplicateApprovalError,
    EmptyLineItemsError,
    InvalidDueDateError,
    InvalidLineItemError,
    InvoiceEditNotPermittedError,
    InvoiceNotEditableError,
    InvoiceNotFoundError,
    VendorNotFoundError,
)
from payables_kernel.logging_config import LogContext, get_logger
from payables_kernel.models.audit_event import AuditAction
from payables_kernel.services.auditor_service import AuditorService
from payables_kernel.services.sequence_service import SequenceService
from payables_modules._helpers import snapshot, unit_of_work
from payables_modules.approval_rules.service import ApprovalRuleService
from payables_modules.invoices.models import (
    ApprovalInfo,
    Invoice,
    InvoiceApproval,
    LineItemInput,
)
from payables_modules.invoices.orm import (
    InvoiceApprovalModel,
    InvoiceLineItemModel,
    InvoiceModel,
)
from payables_modules.vendors.orm import VendorModel

logger = get_logger("modules.invoices.service")

ENTITY_TYPE = "Invoice"

_CLOSED_STATUS_VALUES = tuple(s.value for s in SETTLED_OR_CLOSED_STATUSES)


def load_invoice_for_update(session: Session, invoice_id: UUID) -> InvoiceModel:
    """
    Load an invoice row with ``SELECT ... FOR UPDATE``.

    ``populate_existing`` refreshes an instance already in the identity map
    so the caller sees the committed values it has just locked.

    Raises:
        InvoiceNotFoundError: no invoice with ``invoice_id``.
    """
    model = session.execute(
        select(InvoiceModel)
        .where(InvoiceModel.id == invoice_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    ).scalar_one_or_none()
    if model is None:
        raise InvoiceNotFoundError(str(invoice_id))
    return model


def _build_line_items(items: Sequence[LineItemInput]) -> list[InvoiceLineItemModel]:
    if not items:
        raise EmptyLineItemsError()

    models = []
    for position, item in enumerate(items):
        if item.quantity is None or item.quantity < 1:
            raise InvalidLineItemError(position, "quantity must be at least 1")
        if item.unit_price is None or item.unit_price <= 0:
            raise InvalidLineItemError(position, "unit price must be positive")
        models.append(
            InvoiceLineItemModel(
                position=position,
                description=item.description,
                quantity=item.quantity,
                unit_price=item.unit_price,
                amount=round_money(item.unit_price * item.quantity),
            )
        )
    return models


class InvoiceService:
    """
    Orchestrates the invoice lifecycle.

    Contract
    --------
    * Mutating methods return the resulting ``Invoice`` DTO after commit.
    * Read methods never commit and, when given an actor, apply the actor's
      role visibility.
    * The batch transitions (``mark_overdue``, ``escalate_overdue``) return
      the number of invoices they changed.

    Non-goals
    ---------
    * Does NOT enforce who may approve at which level; rule
      ``approver_roles`` are advisory.
    * Does NOT delete invoices.
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

        self._tax = SplitTaxCalculator(self._config.tax.rate_percent)
        self._rules = ApprovalRuleService(
            session, clock=self._clock, auditor=self._auditor, config=self._config,
        )
        self._sequences = SequenceService(session)

    # =========================================================================
    # Helpers
    # =========================================================================

    def _vendor_jurisdiction(self, vendor_id: UUID) -> str:
        vendor = self._session.get(VendorModel, vendor_id)
        if vendor is None:
            raise VendorNotFoundError(str(vendor_id))
        return jurisdiction_from_tax_id(
            vendor.tax_identifier, self._config.tax.default_jurisdiction,
        )

    def _apply_amounts(self, model: InvoiceModel, base_amount: Decimal) -> None:
        """Stamp base, tax components and total onto ``model``."""
        jurisdiction = self._vendor_jurisdiction(model.vendor_id)
        result = self._tax.compute(base_amount, jurisdiction, jurisdiction)
        model.base_amount = result.base_amount
        model.split_tax_a = result.split_a
        model.split_tax_b = result.split_b
        model.single_tax = result.single
        model.total_amount = result.total

    def _next_invoice_number(self) -> str:
        today = self._clock.today()
        seq = self._sequences.next_value(SequenceService.invoice_number_sequence(today))
        inv = self._config.invoicing
        return f"{inv.number_prefix}-{today:%Y%m%d}-{seq:0{inv.sequence_width}d}"

    def _load(self, invoice_id: UUID) -> InvoiceModel:
        model = self._session.get(InvoiceModel, invoice_id)
        if model is None:
            raise InvoiceNotFoundError(str(invoice_id))
        return model

    def _required_levels(self, total: Decimal) -> int | None:
        rule = self._rules.find_applicable_rule(total)
        return rule.approval_levels if rule else None

    def _has_approval_record(self, model: InvoiceModel, **criteria) -> bool:
        stmt = select(InvoiceApprovalModel.id).where(
            InvoiceApprovalModel.invoice_id == model.id,
            InvoiceApprovalModel.workflow_round == model.workflow_round,
        )
        for column, value in criteria.items():
            stmt = stmt.where(getattr(InvoiceApprovalModel, column) == value)
        return self._session.execute(stmt.limit(1)).first() is not None

    # =========================================================================
    # Create / edit
    # =========================================================================

    def create_invoice(
        self,
        vendor_id: UUID,
        items: Sequence[LineItemInput],
        invoice_date: date,
        due_date: date,
        actor: Actor,
    ) -> Invoice:
        """
        Create a PENDING invoice at approval level 0.

        Preconditions:
            - ``items`` is non-empty; each quantity >= 1 and unit price > 0.
            - ``due_date`` is not before ``invoice_date``.
        Postconditions:
            - Invoice and line items persisted, number allocated, audit
              event recorded, session committed.
        Raises:
            VendorNotFoundError, EmptyLineItemsError, InvalidLineItemError,
            InvalidDueDateError.
        """
        with unit_of_work(self._session, ENTITY_TYPE):
            if self._session.get(VendorModel, vendor_id) is None:
                raise VendorNotFoundError(str(vendor_id))
            line_items = _build_line_items(items)
            if due_date < invoice_date:
                raise InvalidDueDateError(invoice_date.isoformat(), due_date.isoformat())

            model = InvoiceModel(
                invoice_number=self._next_invoice_number(),
                vendor_id=vendor_id,
                invoice_date=invoice_date,
                due_date=due_date,
                status=InvoiceStatus.PENDING.value,
                current_approval_level=0,
                is_overdue=False,
                escalation_level=0,
                workflow_round=0,
                created_by=actor.username,
            )
            model.line_items = line_items
            self._apply_amounts(model, sum((li.amount for li in line_items), Decimal("0")))
            self._session.add(model)
            self._session.flush()

            required = self._required_levels(model.total_amount)
            invoice = model.to_dto()

            self._auditor.record(
                actor, AuditAction.INVOICE_CREATED, ENTITY_TYPE, invoice.id,
                after=snapshot(invoice),
                description=f"Invoice {invoice.invoice_number} created",
            )
            logger.info("invoice_created", extra={
                "invoice_id": str(invoice.id),
                "invoice_number": invoice.invoice_number,
                "vendor_id": str(vendor_id),
                "base_amount": str(invoice.base_amount),
                "total_amount": str(invoice.total_amount),
                "line_count": len(line_items),
                "required_levels": required or 0,
            })
        return invoice

    def update_invoice(
        self,
        invoice_id: UUID,
        actor: Actor,
        items: Sequence[LineItemInput] | None = None,
        amount: Decimal | None = None,
        invoice_date: date | None = None,
        due_date: date | None = None,
    ) -> Invoice:
        """
        Administrator edit of an invoice that is not yet committed to
        settlement.

        ``items`` replaces the whole item list.  ``amount`` is the legacy
        path for callers that only send a base amount; it is ignored when
        ``items`` is given.  Either way tax and total are recomputed.
        Editing a REJECTED invoice restarts its approval workflow.

        Raises:
            InvoiceNotFoundError, InvoiceEditNotPermittedError,
            InvoiceNotEditableError, EmptyLineItemsError,
            InvalidLineItemError, InvalidDueDateError.
        """
        with unit_of_work(self._session, ENTITY_TYPE, invoice_id):
            model = load_invoice_for_update(self._session, invoice_id)
            if not actor.is_admin:
                raise InvoiceEditNotPermittedError(actor.username)
            status = InvoiceStatus(model.status)
            if not is_editable(status):
                raise InvoiceNotEditableError(str(invoice_id), status.name)

            before = model.to_dto()

            if restarts_workflow_on_edit(status):
                model.status = InvoiceStatus.PENDING.value
                model.current_approval_level = 0
                model.workflow_round += 1

            if items is not None:
                line_items = _build_line_items(items)
                model.line_items = line_items
                self._apply_amounts(model, sum((li.amount for li in line_items), Decimal("0")))
            elif amount is not None:
                self._apply_amounts(model, round_money(amount))

            new_invoice_date = invoice_date or model.invoice_date
            new_due_date = due_date or model.due_date
            if new_due_date < new_invoice_date:
                raise InvalidDueDateError(
                    new_invoice_date.isoformat(), new_due_date.isoformat(),
                )
            model.invoice_date = new_invoice_date
            model.due_date = new_due_date
            model.updated_by = actor.username
            self._session.flush()
            invoice = model.to_dto()

            self._auditor.record(
                actor, AuditAction.INVOICE_UPDATED, ENTITY_TYPE, invoice_id,
                before=snapshot(before), after=snapshot(invoice),
            )
            logger.info("invoice_updated", extra={
                "invoice_id": str(invoice_id),
                "from_status": before.status.value,
                "to_status": invoice.status.value,
                "workflow_restarted": restarts_workflow_on_edit(status),
                "total_amount": str(invoice.total_amount),
            })
        return invoice

    # =========================================================================
    # Approval workflow
    # =========================================================================

    def approve_invoice(
        self,
        invoice_id: UUID,
        level: int,
        approver: Actor,
        comments: str | None = None,
    ) -> Invoice:
        """
        Claim approval ``level`` on an invoice.

        A repeat by the same approver, or a second claim on a level that
        already has a record, returns the invoice unchanged (or raises
        ``DuplicateApprovalError`` under ``approvals.strict_duplicates``).
        Duplicates are judged within the current ``workflow_round``, so
        approvers of a rejected invoice may act again once an edit has
        restarted its workflow.
        Otherwise ``level`` must equal ``current_approval_level + 1``.

        Postconditions:
            - Approval event appended; current level advanced.
            - Status APPROVED once the applicable rule's level count is
              reached, or immediately when no rule applies; else PENDING.
        """
        with LogContext.bind(invoice_id=invoice_id, actor=approver.username), \
                unit_of_work(self._session, ENTITY_TYPE, invoice_id):
            model = load_invoice_for_update(self._session, invoice_id)

            duplicate_reason = None
            if self._has_approval_record(model, approver=approver.username):
                duplicate_reason = "approver has already acted on this invoice"
            elif self._has_approval_record(model, level=level):
                duplicate_reason = f"level {level} already has an approval record"
            if duplicate_reason:
                if self._config.approvals.strict_duplicates:
                    raise DuplicateApprovalError(
                        str(invoice_id), approver.username, level, duplicate_reason,
                    )
                logger.info("approval_duplicate_ignored", extra={
                    "approval_level": level,
                    "reason": duplicate_reason,
                })
                return model.to_dto()

            expected = model.current_approval_level + 1
            if level != expected:
                raise ApprovalLevelMismatchError(str(invoice_id), expected, level)

            before = model.to_dto()
            self._session.add(
                InvoiceApprovalModel(
                    invoice_id=model.id,
                    workflow_round=model.workflow_round,
                    level=level,
                    approver=approver.username,
                    decision=ApprovalDecision.APPROVED.value,
                    comments=comments,
                    decided_at=self._clock.now(),
                )
            )
            required = self._required_levels(model.total_amount)
            model.current_approval_level = level
            model.status = derive_approval_status(level, required).value
            model.updated_by = approver.username
            self._session.flush()
            invoice = model.to_dto()

            self._auditor.record(
                approver, AuditAction.INVOICE_APPROVED, ENTITY_TYPE, invoice_id,
                before=snapshot(before), after=snapshot(invoice),
                description=f"Approved at level {level}",
            )
            logger.info("invoice_approved", extra={
                "approval_level": level,
                "required_levels": required or 0,
                "status": invoice.status.value,
            })
        return invoice

    def reject_invoice(
        self,
        invoice_id: UUID,
        rejector: Actor,
        comments: str | None = None,
    ) -> Invoice:
        """
        Reject an invoice.  Unconditional: no level or state check.

        A rejection event is appended at the invoice's current level.
        """
        with LogContext.bind(invoice_id=invoice_id, actor=rejector.username), \
                unit_of_work(self._session, ENTITY_TYPE, invoice_id):
            model = load_invoice_for_update(self._session, invoice_id)
            before = model.to_dto()

            self._session.add(
                InvoiceApprovalModel(
                    invoice_id=model.id,
                    workflow_round=model.workflow_round,
                    level=model.current_approval_level,
                    approver=rejector.username,
                    decision=ApprovalDecision.REJECTED.value,
                    comments=comments,
                    decided_at=self._clock.now(),
                )
            )
            model.status = InvoiceStatus.REJECTED.value
            model.updated_by = rejector.username
            self._session.flush()
            invoice = model.to_dto()

            self._auditor.record(
                rejector, AuditAction.INVOICE_REJECTED, ENTITY_TYPE, invoice_id,
                before=snapshot(before), after=snapshot(invoice),
                description=comments,
            )
            logger.info("invoice_rejected", extra={
                "from_status": before.status.value,
                "approval_level": model.current_approval_level,
            })
        return invoice

    def get_approval_info(self, invoice_id: UUID) -> ApprovalInfo:
        """Derived approval progress against the currently applicable rule."""
        model = self._load(invoice_id)
        rule = self._rules.find_applicable_rule(model.total_amount)
        progress = evaluate_progress(
            model.current_approval_level, rule, self._config.invoicing.currency_symbol,
        )
        return ApprovalInfo(
            invoice_id=model.id,
            invoice_number=model.invoice_number,
            current_level=progress.current_level,
            required_levels=progress.required_levels,
            remaining_levels=progress.remaining_levels,
            fully_approved=progress.fully_approved,
            applicable_range=progress.applicable_range,
        )

    def list_approvals(self, invoice_id: UUID) -> list[InvoiceApproval]:
        """Every approval and rejection event on the invoice, oldest first."""
        self._load(invoice_id)
        rows = self._session.execute(
            select(InvoiceApprovalModel)
            .where(InvoiceApprovalModel.invoice_id == invoice_id)
            .order_by(
                InvoiceApprovalModel.workflow_round,
                InvoiceApprovalModel.decided_at,
                InvoiceApprovalModel.level,
            )
        ).scalars().all()
        return [r.to_dto() for r in rows]

    # =========================================================================
    # Batch transitions
    # =========================================================================

    def mark_overdue(self, actor: Actor = SYSTEM_ACTOR) -> int:
        """
        Flag every unsettled invoice whose due date is before today.

        Status becomes OVERDUE and the overdue flag is set.  PAID and
        REJECTED invoices are left alone.
        """
        today = self._clock.today()
        with unit_of_work(self._session, ENTITY_TYPE):
            rows = self._session.execute(
                select(InvoiceModel)
                .where(
                    InvoiceModel.due_date < today,
                    InvoiceModel.status.not_in(_CLOSED_STATUS_VALUES),
                )
                .order_by(InvoiceModel.due_date)
                .with_for_update()
            ).scalars().all()

            for model in rows:
                from_status = model.status
                model.is_overdue = True
                model.status = InvoiceStatus.OVERDUE.value
                model.updated_by = actor.username
                self._session.flush()
                self._auditor.record(
                    actor, AuditAction.INVOICE_MARKED_OVERDUE, ENTITY_TYPE, model.id,
                    before={"status": from_status},
                    after={"status": model.status, "is_overdue": True},
                )

            logger.info("invoices_marked_overdue", extra={
                "as_of": today.isoformat(),
                "count": len(rows),
            })
        return len(rows)

    def escalate_overdue(self, actor: Actor = SYSTEM_ACTOR) -> int:
        """
        Escalate every invoice flagged overdue.

        Escalation level is incremented (a missing level counts as 0) and
        status becomes ESCALATED.  There is no upper bound.  The overdue flag
        alone selects the invoice, so one paid or rejected after it was
        flagged is escalated too.
        """
        with unit_of_work(self._session, ENTITY_TYPE):
            rows = self._session.execute(
                select(InvoiceModel)
                .where(InvoiceModel.is_overdue.is_(True))
                .order_by(InvoiceModel.due_date)
                .with_for_update()
            ).scalars().all()

            for model in rows:
                from_level = model.escalation_level or 0
                model.escalation_level = from_level + 1
                model.status = InvoiceStatus.ESCALATED.value
                model.updated_by = actor.username
                self._session.flush()
                self._auditor.record(
                    actor, AuditAction.INVOICE_ESCALATED, ENTITY_TYPE, model.id,
                    before={"escalation_level": from_level},
                    after={
                        "escalation_level": model.escalation_level,
                        "status": model.status,
                    },
                )

            logger.info("invoices_escalated", extra={"count": len(rows)})
        return len(rows)

    # =========================================================================
    # Reads
    # =========================================================================

    def _visible(self, stmt, actor: Actor | None):
        if actor is None:
            return stmt
        visibility = invoice_visibility(actor)
        if visibility.status is not None:
            stmt = stmt.where(InvoiceModel.status == visibility.status.value)
        if visibility.created_by is not None:
            stmt = stmt.where(InvoiceModel.created_by == visibility.created_by)
        return stmt

    def _list(self, stmt, actor: Actor | None) -> list[Invoice]:
        rows = self._session.execute(self._visible(stmt, actor)).scalars().all()
        return [m.to_dto() for m in rows]

    def get_invoice(self, invoice_id: UUID, actor: Actor | None = None) -> Invoice:
        """
        Raises:
            InvoiceNotFoundError: unknown id.
            AccessDeniedError: ``actor``'s role cannot see this invoice.
        """
        model = self._load(invoice_id)
        if actor is not None:
            check_invoice_access(actor, InvoiceStatus(model.status), model.created_by)
        return model.to_dto()

    def list_invoices(
        self,
        actor: Actor | None = None,
        status: InvoiceStatus | None = None,
        vendor_id: UUID | None = None,
    ) -> list[Invoice]:
        stmt = select(InvoiceModel).order_by(InvoiceModel.invoice_date, InvoiceModel.invoice_number)
        if status is not None:
            stmt = stmt.where(InvoiceModel.status == InvoiceStatus(status).value)
        if vendor_id is not None:
            stmt = stmt.where(InvoiceModel.vendor_id == vendor_id)
        return self._list(stmt, actor)

    def list_overdue_invoices(self, actor: Actor | None = None) -> list[Invoice]:
        stmt = (
            select(InvoiceModel)
            .where(or_(
                InvoiceModel.is_overdue.is_(True),
                InvoiceModel.status == InvoiceStatus.OVERDUE.value,
            ))
            .order_by(InvoiceModel.due_date)
        )
        return self._list(stmt, actor)

    def list_invoices_due_between(
        self,
        start: date,
        end: date,
        actor: Actor | None = None,
    ) -> list[Invoice]:
        """Invoices with ``start <= due_date <= end``."""
        stmt = (
            select(InvoiceModel)
            .where(InvoiceModel.due_date >= start, InvoiceModel.due_date <= end)
            .order_by(InvoiceModel.due_date)
        )
        return self._list(stmt, actor)

    def list_invoices_due_soon(self, window_days: int | None = None) -> list[Invoice]:
        """Unsettled invoices due between today and today + window."""
        if window_days is None:
            window_days = self._config.schedule.reminder_window_days
        today = self._clock.today()
        stmt = (
            select(InvoiceModel)
            .where(
                InvoiceModel.due_date >= today,
                InvoiceModel.due_date <= today + timedelta(days=window_days),
                InvoiceModel.status.not_in(_CLOSED_STATUS_VALUES),
            )
            .order_by(InvoiceModel.due_date)
        )
        return self._list(stmt, None)
