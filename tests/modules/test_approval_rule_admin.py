"""
Tests for ApprovalRuleService.

Covers:
- Create with range, overlap and level validation
- Update excludes the rule's own range from the overlap check
- Toggle, delete and the audit trail they leave
- find_applicable_rule over persisted rules
"""

from decimal import Decimal
from uuid import uuid4

import pytest

from payables_kernel.exceptions import (
    ApprovalRuleNotFoundError,
    InvalidAmountRangeError,
    InvalidApprovalLevelsError,
    OverlappingRuleRangeError,
)


class TestCreateRule:

    def test_create(self, two_level_rule):
        assert two_level_rule.min_amount == Decimal("10000.01")
        assert two_level_rule.max_amount == Decimal("50000.00")
        assert two_level_rule.approval_levels == 2
        assert two_level_rule.is_active
        assert two_level_rule.approver_role_list == ["reviewer", "finance"]

    def test_min_not_below_max(self, rule_service, admin):
        with pytest.raises(InvalidAmountRangeError):
            rule_service.create_rule(Decimal("500"), Decimal("500"), 1, admin)

    def test_overlap_rejected(self, rule_service, two_level_rule, admin):
        with pytest.raises(OverlappingRuleRangeError) as exc_info:
            rule_service.create_rule(Decimal("40000.00"), Decimal("100000.00"), 3, admin)
        assert exc_info.value.existing_rule_id == str(two_level_rule.id)
        assert len(rule_service.list_rules()) == 1

    def test_adjacent_tier_allowed(self, rule_service, two_level_rule, admin):
        rule_service.create_rule(Decimal("50000.01"), Decimal("100000.00"), 3, admin)
        assert len(rule_service.list_rules()) == 2

    @pytest.mark.parametrize("levels", [0, 5])
    def test_levels_bounded(self, rule_service, admin, levels):
        with pytest.raises(InvalidApprovalLevelsError):
            rule_service.create_rule(Decimal("0"), Decimal("100"), levels, admin)


class TestUpdateRule:

    def test_widen_own_range(self, rule_service, two_level_rule, admin):
        """A rule may be widened over its own previous range."""
        updated = rule_service.update_rule(
            two_level_rule.id, admin, max_amount=Decimal("60000.00"),
        )
        assert updated.max_amount == Decimal("60000.00")
        assert updated.min_amount == Decimal("10000.01")

    def test_update_into_other_rule_rejected(self, rule_service, two_level_rule, admin):
        small = rule_service.create_rule(Decimal("0"), Decimal("10000.00"), 1, admin)
        with pytest.raises(OverlappingRuleRangeError):
            rule_service.update_rule(small.id, admin, max_amount=Decimal("20000.00"))
        assert rule_service.get_rule(small.id).max_amount == Decimal("10000.00")

    def test_unknown_rule(self, rule_service, admin):
        with pytest.raises(ApprovalRuleNotFoundError):
            rule_service.update_rule(uuid4(), admin, approval_levels=2)


class TestToggleAndDelete:

    def test_toggle_removes_from_matching(self, rule_service, two_level_rule, admin):
        total = Decimal("29500.00")
        assert rule_service.find_applicable_rule(total).id == two_level_rule.id

        toggled = rule_service.toggle_rule(two_level_rule.id, admin)
        assert not toggled.is_active
        assert rule_service.find_applicable_rule(total) is None
        assert rule_service.list_active_rules() == []

    def test_inactive_rule_still_blocks_overlap(self, rule_service, two_level_rule, admin):
        rule_service.toggle_rule(two_level_rule.id, admin)
        with pytest.raises(OverlappingRuleRangeError):
            rule_service.create_rule(Decimal("20000"), Decimal("30000"), 1, admin)

    def test_delete(self, rule_service, two_level_rule, admin, auditor_service):
        rule_service.delete_rule(two_level_rule.id, admin)
        with pytest.raises(ApprovalRuleNotFoundError):
            rule_service.get_rule(two_level_rule.id)

        trail = auditor_service.get_trail("ApprovalRule", two_level_rule.id)
        assert [e.action for e in trail] == ["rule_created", "rule_deleted"]


class TestMatching:

    def test_priority_orders_active_rules(self, rule_service, admin):
        rule_service.create_rule(Decimal("100"), Decimal("200"), 1, admin, priority=5)
        first = rule_service.create_rule(Decimal("0"), Decimal("50"), 2, admin, priority=1)
        assert rule_service.list_active_rules()[0].id == first.id

    def test_bounds_inclusive(self, rule_service, two_level_rule):
        assert rule_service.find_applicable_rule(Decimal("10000.01")) is not None
        assert rule_service.find_applicable_rule(Decimal("10000.00")) is None
