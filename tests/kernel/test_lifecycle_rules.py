"""
Tests for the pure invoice lifecycle rules and the deterministic clock.

Covers:
- Editability and workflow restart on edit
- Status after an approval
- Status implied by cumulative payments
- DeterministicClock advancement
"""

from datetime import date, datetime, timezone
from decimal import Decimal

import pytest

from payables_kernel.domain.clock import DeterministicClock
from payables_kernel.domain.lifecycle import (
    InvoiceStatus,
    derive_approval_status,
    derive_settlement_status,
    is_editable,
    restarts_workflow_on_edit,
)


class TestEditability:

    @pytest.mark.parametrize(
        "status",
        [InvoiceStatus.APPROVED, InvoiceStatus.PAID, InvoiceStatus.PARTIALLY_PAID],
    )
    def test_settlement_statuses_locked(self, status):
        assert not is_editable(status)

    @pytest.mark.parametrize(
        "status",
        [
            InvoiceStatus.PENDING, InvoiceStatus.REJECTED,
            InvoiceStatus.OVERDUE, InvoiceStatus.ESCALATED,
        ],
    )
    def test_other_statuses_editable(self, status):
        assert is_editable(status)

    def test_only_rejected_restarts(self):
        assert restarts_workflow_on_edit(InvoiceStatus.REJECTED)
        assert not restarts_workflow_on_edit(InvoiceStatus.PENDING)


class TestApprovalStatus:

    def test_pending_until_required_level(self):
        assert derive_approval_status(1, 2) == InvoiceStatus.PENDING
        assert derive_approval_status(2, 2) == InvoiceStatus.APPROVED

    def test_no_rule_auto_approves(self):
        assert derive_approval_status(1, None) == InvoiceStatus.APPROVED


class TestSettlementStatus:

    def test_thresholds(self):
        total = Decimal("17700.00")
        assert derive_settlement_status(Decimal("0"), total) == InvoiceStatus.APPROVED
        assert derive_settlement_status(Decimal("10000"), total) == InvoiceStatus.PARTIALLY_PAID
        assert derive_settlement_status(Decimal("17699.99"), total) == InvoiceStatus.PARTIALLY_PAID
        assert derive_settlement_status(total, total) == InvoiceStatus.PAID


class TestDeterministicClock:

    def test_fixed_until_advanced(self):
        start = datetime(2024, 1, 15, 12, 0, tzinfo=timezone.utc)
        clock = DeterministicClock(start)
        assert clock.now() == clock.now() == start

        clock.advance_days(20)
        assert clock.today() == date(2024, 2, 4)

    def test_tick_and_set_time(self):
        clock = DeterministicClock()
        first = clock.now()
        assert (clock.tick() - first).total_seconds() == 1

        target = datetime(2025, 6, 1, tzinfo=timezone.utc)
        clock.set_time(target)
        assert clock.now() == target
