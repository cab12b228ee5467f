"""
Tests for InvoiceService -- the invoice lifecycle state machine.

Covers:
- Creation: line amounts, tax stamping, numbering, input validation
- Tiered approval in strict level order, auto-approval without a rule
- Duplicate approvals (idempotent by default, strict when configured)
- Rejection and the admin edit that restarts the workflow
- Edit permissions and settlement lock
- Role-filtered reads
- Overdue marking and escalation
- Derived approval info and the audit trail
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from payables_config.schema import ApprovalSettings, PayablesConfig
from payables_kernel.domain.lifecycle import ApprovalDecision, InvoiceStatus
from payables_kernel.exceptions import (
    AccessDeniedError,
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
from payables_modules.invoices.service import InvoiceService

YESTERDAY = date(2024, 1, 14)


# =========================================================================
# Creation
# =========================================================================


class TestCreateInvoice:

    def test_amounts_and_initial_state(self, create_invoice, clerk):
        """25000.00 in the vendor's own jurisdiction: 2250 + 2250, total 29500."""
        invoice = create_invoice()

        assert invoice.base_amount == Decimal("25000.00")
        assert invoice.split_tax_a == Decimal("2250.00")
        assert invoice.split_tax_b == Decimal("2250.00")
        assert invoice.single_tax == Decimal("0.00")
        assert invoice.total_amount == Decimal("29500.00")
        assert invoice.status == InvoiceStatus.PENDING
        assert invoice.current_approval_level == 0
        assert invoice.escalation_level == 0
        assert not invoice.is_overdue
        assert invoice.created_by == clerk.username

    def test_numbering_per_day(self, create_invoice):
        first = create_invoice()
        second = create_invoice()
        assert first.invoice_number == "INV-20240115-0001"
        assert second.invoice_number == "INV-20240115-0002"

    def test_line_amounts_computed(self, create_invoice):
        """Line amount is quantity x unit price; order is preserved."""
        invoice = create_invoice((2, "100.00"), (3, "50.25"))

        assert [li.amount for li in invoice.line_items] == [
            Decimal("200.00"), Decimal("150.75"),
        ]
        assert [li.position for li in invoice.line_items] == [0, 1]
        assert invoice.base_amount == Decimal("350.75")

    def test_empty_items_rejected(self, invoice_service, vendor, clerk):
        with pytest.raises(EmptyLineItemsError):
            invoice_service.create_invoice(
                vendor.id, [], date(2024, 1, 15), date(2024, 2, 14), clerk,
            )

    @pytest.mark.parametrize("pair", [(0, "10.00"), (1, "0"), (1, "-5.00")])
    def test_invalid_line_item_rejected(self, create_invoice, pair):
        with pytest.raises(InvalidLineItemError):
            create_invoice(pair)

    def test_due_before_invoice_date_rejected(self, create_invoice):
        with pytest.raises(InvalidDueDateError):
            create_invoice(due_date=date(2024, 1, 1))

    def test_unknown_vendor(self, invoice_service, make_items, clerk):
        with pytest.raises(VendorNotFoundError):
            invoice_service.create_invoice(
                uuid4(), make_items((1, "10.00")), date(2024, 1, 15), date(2024, 2, 1), clerk,
            )

    def test_failed_create_consumes_no_number(self, create_invoice):
        """A rejected request rolls back its invoice number allocation."""
        with pytest.raises(InvalidDueDateError):
            create_invoice(due_date=date(2024, 1, 1))
        assert create_invoice().invoice_number == "INV-20240115-0001"


# =========================================================================
# Approval
# =========================================================================


class TestApprovalFlow:

    def test_two_level_scenario(
        self, invoice_service, create_invoice, two_level_rule, reviewer_a, reviewer_b,
    ):
        """29500.00 under a two-level rule needs both levels before APPROVED."""
        invoice = create_invoice()

        after_first = invoice_service.approve_invoice(invoice.id, 1, reviewer_a)
        assert after_first.status == InvoiceStatus.PENDING
        assert after_first.current_approval_level == 1

        after_second = invoice_service.approve_invoice(invoice.id, 2, reviewer_b)
        assert after_second.status == InvoiceStatus.APPROVED
        assert after_second.current_approval_level == 2

        approvals = invoice_service.list_approvals(invoice.id)
        assert [(a.level, a.approver) for a in approvals] == [
            (1, "reviewer.a"), (2, "reviewer.b"),
        ]
        assert all(a.decision == ApprovalDecision.APPROVED for a in approvals)

    def test_skipping_a_level_rejected(
        self, invoice_service, create_invoice, two_level_rule, reviewer_a,
    ):
        invoice = create_invoice()
        with pytest.raises(ApprovalLevelMismatchError) as exc_info:
            invoice_service.approve_invoice(invoice.id, 2, reviewer_a)

        assert exc_info.value.expected_level == 1
        assert exc_info.value.received_level == 2
        unchanged = invoice_service.get_invoice(invoice.id)
        assert unchanged.current_approval_level == 0
        assert invoice_service.list_approvals(invoice.id) == []

    def test_no_rule_auto_approves(self, invoice_service, create_invoice, two_level_rule, reviewer_a):
        """A total outside every rule is approved by its first approval."""
        invoice = create_invoice((1, "100.00"))
        approved = invoice_service.approve_invoice(invoice.id, 1, reviewer_a)
        assert approved.status == InvoiceStatus.APPROVED

    def test_unknown_invoice(self, invoice_service, reviewer_a):
        with pytest.raises(InvoiceNotFoundError):
            invoice_service.approve_invoice(uuid4(), 1, reviewer_a)

    def test_approval_info(self, invoice_service, create_invoice, two_level_rule, reviewer_a):
        invoice = create_invoice()
        invoice_service.approve_invoice(invoice.id, 1, reviewer_a)

        info = invoice_service.get_approval_info(invoice.id)
        assert info.invoice_number == invoice.invoice_number
        assert info.current_level == 1
        assert info.required_levels == 2
        assert info.remaining_levels == 1
        assert not info.fully_approved
        assert info.applicable_range == "₹10,000.01 - ₹50,000.00"

    def test_approval_info_without_rule(self, invoice_service, create_invoice):
        info = invoice_service.get_approval_info(create_invoice().id)
        assert info.required_levels == 0
        assert info.fully_approved
        assert info.applicable_range == "No rule applicable"


class TestDuplicateApprovals:

    def test_repeat_is_noop(
        self, invoice_service, create_invoice, two_level_rule, reviewer_a, captured_logs,
    ):
        """Repeating an approval returns the invoice unchanged."""
        invoice = create_invoice()
        first = invoice_service.approve_invoice(invoice.id, 1, reviewer_a)
        again = invoice_service.approve_invoice(invoice.id, 1, reviewer_a)

        assert again.current_approval_level == first.current_approval_level == 1
        assert len(invoice_service.list_approvals(invoice.id)) == 1
        assert any(r["message"] == "approval_duplicate_ignored" for r in captured_logs())

    def test_second_approver_on_same_level_is_noop(
        self, invoice_service, create_invoice, two_level_rule, reviewer_a, reviewer_b,
    ):
        invoice = create_invoice()
        invoice_service.approve_invoice(invoice.id, 1, reviewer_a)
        result = invoice_service.approve_invoice(invoice.id, 1, reviewer_b)

        assert result.current_approval_level == 1
        assert len(invoice_service.list_approvals(invoice.id)) == 1

    def test_same_approver_cannot_claim_next_level(
        self, invoice_service, create_invoice, two_level_rule, reviewer_a,
    ):
        """One approver acts once per workflow round."""
        invoice = create_invoice()
        invoice_service.approve_invoice(invoice.id, 1, reviewer_a)
        result = invoice_service.approve_invoice(invoice.id, 2, reviewer_a)

        assert result.status == InvoiceStatus.PENDING
        assert result.current_approval_level == 1

    def test_strict_mode_raises(
        self, session, deterministic_clock, auditor_service, create_invoice,
        two_level_rule, reviewer_a,
    ):
        strict = InvoiceService(
            session, deterministic_clock, auditor_service,
            PayablesConfig(approvals=ApprovalSettings(strict_duplicates=True)),
        )
        invoice = create_invoice()
        strict.approve_invoice(invoice.id, 1, reviewer_a)

        with pytest.raises(DuplicateApprovalError) as exc_info:
            strict.approve_invoice(invoice.id, 1, reviewer_a)
        assert exc_info.value.level == 1


# =========================================================================
# Rejection and edits
# =========================================================================


class TestRejectAndEdit:

    def test_reject_then_admin_edit_restarts(
        self, invoice_service, create_invoice, make_items, two_level_rule,
        reviewer_a, admin, deterministic_clock,
    ):
        """Editing a rejected invoice returns it to PENDING at level 0."""
        invoice = create_invoice()
        invoice_service.approve_invoice(invoice.id, 1, reviewer_a)
        deterministic_clock.advance(60)
        rejected = invoice_service.reject_invoice(invoice.id, reviewer_a, "wrong PO")
        assert rejected.status == InvoiceStatus.REJECTED

        edited = invoice_service.update_invoice(
            invoice.id, admin, items=make_items((1, "20000.00")),
        )
        assert edited.status == InvoiceStatus.PENDING
        assert edited.current_approval_level == 0
        assert edited.base_amount == Decimal("20000.00")
        assert edited.total_amount == Decimal("23600.00")
        assert len(edited.line_items) == 1

        # The earlier approver may act again in the new round.
        deterministic_clock.advance(60)
        again = invoice_service.approve_invoice(invoice.id, 1, reviewer_a)
        assert again.current_approval_level == 1

        history = invoice_service.list_approvals(invoice.id)
        assert [(a.workflow_round, a.decision) for a in history] == [
            (0, ApprovalDecision.APPROVED),
            (0, ApprovalDecision.REJECTED),
            (1, ApprovalDecision.APPROVED),
        ]

    def test_edit_pending_keeps_level(
        self, invoice_service, create_invoice, two_level_rule, reviewer_a, admin,
    ):
        """Only a rejected invoice restarts; a pending edit recomputes amounts only."""
        invoice = create_invoice()
        invoice_service.approve_invoice(invoice.id, 1, reviewer_a)

        edited = invoice_service.update_invoice(invoice.id, admin, amount=Decimal("30000.00"))
        assert edited.current_approval_level == 1
        assert edited.total_amount == Decimal("35400.00")

    def test_non_admin_cannot_edit(self, invoice_service, create_invoice, clerk):
        invoice = create_invoice()
        with pytest.raises(InvoiceEditNotPermittedError, match="Only administrators"):
            invoice_service.update_invoice(invoice.id, clerk, amount=Decimal("1.00"))

    def test_approved_invoice_locked(self, invoice_service, create_invoice, reviewer_a, admin):
        invoice = create_invoice()
        invoice_service.approve_invoice(invoice.id, 1, reviewer_a)
        with pytest.raises(InvoiceNotEditableError) as exc_info:
            invoice_service.update_invoice(invoice.id, admin, amount=Decimal("1.00"))
        assert str(exc_info.value) == "Cannot edit invoice with status: APPROVED"

    def test_edit_due_date_validated(self, invoice_service, create_invoice, admin):
        invoice = create_invoice()
        with pytest.raises(InvalidDueDateError):
            invoice_service.update_invoice(invoice.id, admin, due_date=date(2023, 12, 1))


# =========================================================================
# Reads
# =========================================================================


class TestRoleFilteredReads:

    def test_reviewer_sees_pending(self, invoice_service, create_invoice, reviewer_a, finance_user):
        invoice = create_invoice()
        assert invoice_service.get_invoice(invoice.id, reviewer_a).id == invoice.id
        with pytest.raises(AccessDeniedError):
            invoice_service.get_invoice(invoice.id, finance_user)

    def test_finance_sees_approved(self, invoice_service, create_invoice, reviewer_a, finance_user):
        pending = create_invoice()
        approved = create_invoice()
        invoice_service.approve_invoice(approved.id, 1, reviewer_a)

        visible = invoice_service.list_invoices(finance_user)
        assert [i.id for i in visible] == [approved.id]
        assert [i.id for i in invoice_service.list_invoices(reviewer_a)] == [pending.id]

    def test_user_sees_own(self, invoice_service, create_invoice, clerk, admin):
        mine = create_invoice()
        create_invoice(actor=admin)

        assert [i.id for i in invoice_service.list_invoices(clerk)] == [mine.id]
        assert len(invoice_service.list_invoices(admin)) == 2

    def test_status_filter(self, invoice_service, create_invoice, reviewer_a):
        invoice = create_invoice()
        invoice_service.reject_invoice(invoice.id, reviewer_a)
        assert len(invoice_service.list_invoices(status=InvoiceStatus.REJECTED)) == 1
        assert invoice_service.list_invoices(status=InvoiceStatus.PENDING) == []


# =========================================================================
# Overdue and escalation
# =========================================================================


class TestOverdueEscalation:

    def test_overdue_escalation_scenario(self, invoice_service, create_invoice):
        """Due yesterday and PENDING: OVERDUE, then ESCALATED at level 1."""
        invoice = create_invoice(invoice_date=date(2024, 1, 1), due_date=YESTERDAY)

        assert invoice_service.mark_overdue() == 1
        overdue = invoice_service.get_invoice(invoice.id)
        assert overdue.status == InvoiceStatus.OVERDUE
        assert overdue.is_overdue

        assert invoice_service.escalate_overdue() == 1
        escalated = invoice_service.get_invoice(invoice.id)
        assert escalated.status == InvoiceStatus.ESCALATED
        assert escalated.escalation_level == 1

        invoice_service.escalate_overdue()
        assert invoice_service.get_invoice(invoice.id).escalation_level == 2

    def test_due_today_not_overdue(self, invoice_service, create_invoice):
        create_invoice(due_date=date(2024, 1, 15))
        assert invoice_service.mark_overdue() == 0

    def test_rejected_not_marked(self, invoice_service, create_invoice, reviewer_a):
        invoice = create_invoice(invoice_date=date(2024, 1, 1), due_date=YESTERDAY)
        invoice_service.reject_invoice(invoice.id, reviewer_a)
        assert invoice_service.mark_overdue() == 0

    def test_overdue_invoice_can_still_be_approved(
        self, invoice_service, create_invoice, reviewer_a,
    ):
        invoice = create_invoice(invoice_date=date(2024, 1, 1), due_date=YESTERDAY)
        invoice_service.mark_overdue()
        approved = invoice_service.approve_invoice(invoice.id, 1, reviewer_a)
        assert approved.status == InvoiceStatus.APPROVED
        assert approved.is_overdue

    def test_listing_overdue_and_due_soon(self, invoice_service, create_invoice):
        late = create_invoice(invoice_date=date(2024, 1, 1), due_date=YESTERDAY)
        soon = create_invoice(due_date=date(2024, 1, 17))
        create_invoice(due_date=date(2024, 3, 1))
        invoice_service.mark_overdue()

        assert [i.id for i in invoice_service.list_overdue_invoices()] == [late.id]
        assert [i.id for i in invoice_service.list_invoices_due_soon()] == [soon.id]
        between = invoice_service.list_invoices_due_between(date(2024, 1, 1), date(2024, 1, 31))
        assert {i.id for i in between} == {late.id, soon.id}


class TestAuditTrail:

    def test_lifecycle_recorded(
        self, invoice_service, auditor_service, create_invoice, two_level_rule,
        reviewer_a, reviewer_b,
    ):
        invoice = create_invoice()
        invoice_service.approve_invoice(invoice.id, 1, reviewer_a)
        invoice_service.approve_invoice(invoice.id, 2, reviewer_b)

        trail = auditor_service.get_trail("Invoice", invoice.id)
        assert [e.action for e in trail] == [
            "invoice_created", "invoice_approved", "invoice_approved",
        ]
        assert trail[-1].payload["after"]["status"] == "approved"
        assert auditor_service.validate_chain()
