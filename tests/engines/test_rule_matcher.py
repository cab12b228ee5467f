"""
Tests for payables_engines.approval -- rule matching and range validation.

Covers:
- select_applicable_rule: inclusive bounds, inactive rules, priority tie-break
- validate_rule_range: min >= max, overlap against active and inactive rules,
  touching ranges, self-exclusion on update
- evaluate_progress / format_rule_range: derived approval view
- Property: matching is deterministic over non-overlapping rule sets
"""

from decimal import Decimal
from uuid import uuid4

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from payables_engines.approval import (
    NO_RULE_RANGE,
    evaluate_progress,
    format_rule_range,
    ranges_overlap,
    select_applicable_rule,
    validate_rule_range,
)
from payables_kernel.exceptions import (
    InvalidAmountRangeError,
    OverlappingRuleRangeError,
)
from payables_modules.approval_rules.models import ApprovalRule


def make_rule(
    min_amount: str,
    max_amount: str,
    approval_levels: int = 1,
    is_active: bool = True,
    priority: int = 0,
) -> ApprovalRule:
    return ApprovalRule(
        id=uuid4(),
        min_amount=Decimal(min_amount),
        max_amount=Decimal(max_amount),
        approval_levels=approval_levels,
        is_active=is_active,
        priority=priority,
    )


# =========================================================================
# Matching
# =========================================================================


class TestSelectApplicableRule:

    def test_inclusive_bounds(self):
        """Both range ends match."""
        rule = make_rule("10000.01", "50000.00", 2)
        assert select_applicable_rule([rule], Decimal("10000.01")) is rule
        assert select_applicable_rule([rule], Decimal("50000.00")) is rule

    def test_outside_range_returns_none(self):
        """A total outside every range needs no approvals."""
        rule = make_rule("10000.01", "50000.00", 2)
        assert select_applicable_rule([rule], Decimal("10000.00")) is None
        assert select_applicable_rule([rule], Decimal("50000.01")) is None

    def test_inactive_rules_ignored(self):
        """Inactive rules never match."""
        rule = make_rule("0", "100", is_active=False)
        assert select_applicable_rule([rule], Decimal("50")) is None

    def test_lowest_priority_wins(self):
        """Among matching rules the lowest priority value is chosen."""
        low = make_rule("0", "100", 1, priority=5)
        high = make_rule("0", "100", 3, priority=1)
        assert select_applicable_rule([low, high], Decimal("50")) is high

    def test_equal_priority_keeps_input_order(self):
        """Ties resolve to the first rule given."""
        first = make_rule("0", "100", 1)
        second = make_rule("0", "100", 2)
        assert select_applicable_rule([first, second], Decimal("50")) is first


# =========================================================================
# Range validation
# =========================================================================


class TestValidateRuleRange:

    def test_min_equal_max_rejected(self):
        """A zero-width range is malformed."""
        with pytest.raises(InvalidAmountRangeError, match="Minimum amount must be less"):
            validate_rule_range(Decimal("100"), Decimal("100"), [])

    def test_min_above_max_rejected(self):
        with pytest.raises(InvalidAmountRangeError):
            validate_rule_range(Decimal("200"), Decimal("100"), [])

    def test_overlap_rejected(self):
        """An overlapping range names the conflicting rule."""
        existing = make_rule("10000.01", "50000.00")
        with pytest.raises(OverlappingRuleRangeError) as exc_info:
            validate_rule_range(Decimal("40000"), Decimal("60000"), [existing])
        assert exc_info.value.existing_rule_id == str(existing.id)
        assert "Range: 10000.01 - 50000.00" in str(exc_info.value)

    def test_overlap_with_inactive_rule_rejected(self):
        """Inactive rules still block overlapping ranges."""
        existing = make_rule("0", "1000", is_active=False)
        with pytest.raises(OverlappingRuleRangeError):
            validate_rule_range(Decimal("500"), Decimal("1500"), [existing])

    def test_touching_ranges_allowed(self):
        """new_max == existing_min is not an overlap under the strict test."""
        existing = make_rule("1000", "2000")
        validate_rule_range(Decimal("0"), Decimal("1000"), [existing])
        validate_rule_range(Decimal("2000"), Decimal("3000"), [existing])

    def test_update_excludes_self(self):
        """A rule being updated does not conflict with its own old range."""
        existing = make_rule("0", "1000")
        validate_rule_range(
            Decimal("0"), Decimal("1500"), [existing], exclude_rule_id=existing.id,
        )

    def test_ranges_overlap_strict(self):
        assert ranges_overlap(Decimal("0"), Decimal("10"), Decimal("5"), Decimal("15"))
        assert not ranges_overlap(Decimal("0"), Decimal("10"), Decimal("10"), Decimal("15"))


# =========================================================================
# Progress
# =========================================================================


class TestEvaluateProgress:

    def test_partial_progress(self):
        """One of two levels done leaves one remaining."""
        rule = make_rule("10000.01", "50000.00", 2)
        progress = evaluate_progress(1, rule)

        assert progress.required_levels == 2
        assert progress.remaining_levels == 1
        assert not progress.fully_approved
        assert progress.applicable_range == "₹10,000.01 - ₹50,000.00"

    def test_no_rule_is_fully_approved(self):
        """Without a rule nothing is required."""
        progress = evaluate_progress(0, None)

        assert progress.required_levels == 0
        assert progress.remaining_levels == 0
        assert progress.fully_approved
        assert progress.applicable_range == NO_RULE_RANGE

    def test_remaining_never_negative(self):
        rule = make_rule("0", "100", 1)
        assert evaluate_progress(3, rule).remaining_levels == 0

    def test_currency_symbol(self):
        rule = make_rule("0", "1000")
        assert format_rule_range(rule, "$") == "$0.00 - $1,000.00"


# =========================================================================
# Properties
# =========================================================================


@st.composite
def _tiered_rules(draw):
    """Contiguous non-overlapping tiers [b0, b1], [b1, b2], ... as active rules."""
    bounds = sorted(draw(st.sets(
        st.integers(min_value=0, max_value=1_000_000), min_size=2, max_size=8,
    )))
    return [
        make_rule(str(lo), str(hi), approval_levels=(i % 4) + 1)
        for i, (lo, hi) in enumerate(zip(bounds, bounds[1:]))
    ]


class TestMatchingProperties:

    @settings(max_examples=100, deadline=None)
    @given(rules=_tiered_rules(), total=st.integers(min_value=0, max_value=1_000_000))
    def test_deterministic_and_contained(self, rules, total):
        """Repeated matching returns the same rule, and it contains the total."""
        amount = Decimal(total)
        first = select_applicable_rule(rules, amount)
        assert select_applicable_rule(rules, amount) is first
        if first is not None:
            assert first.min_amount <= amount <= first.max_amount
        else:
            assert all(not (r.min_amount <= amount <= r.max_amount) for r in rules)
