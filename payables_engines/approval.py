"""
payables_engines.approval -- Pure approval rule matching engine.

Responsibility:
    Given an invoice total and the configured tiered rules, find the rule
    that decides how many approval levels the invoice needs; validate new
    or changed rule ranges; and summarize an invoice's approval progress.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    Imports only payables_kernel exceptions and logging.

Invariants enforced:
    - Deterministic matching: among active rules whose inclusive range
      [min, max] contains the total, the lowest priority value wins; ties
      keep input order.
    - Range validation: min < max, and no overlap with ANY existing rule
      (active or inactive).  Overlap test: new_min < max AND new_max > min.
    - No rule means zero required levels (auto-approve).

Failure modes:
    - InvalidAmountRangeError when min >= max.
    - OverlappingRuleRangeError naming the first conflicting rule.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Protocol, Sequence, TypeVar

from payables_kernel.exceptions import (
    InvalidAmountRangeError,
    OverlappingRuleRangeError,
)

DEFAULT_CURRENCY_SYMBOL = "₹"
NO_RULE_RANGE = "No rule applicable"


class RangeRule(Protocol):
    """Shape of an approval rule as seen by the matcher."""

    @property
    def id(self): ...

    @property
    def min_amount(self) -> Decimal: ...

    @property
    def max_amount(self) -> Decimal: ...

    @property
    def approval_levels(self) -> int: ...

    @property
    def is_active(self) -> bool: ...

    @property
    def priority(self) -> int: ...


R = TypeVar("R", bound=RangeRule)


@dataclass(frozen=True)
class ApprovalProgress:
    """Derived view of how far an invoice is through its approval levels."""

    current_level: int
    required_levels: int
    remaining_levels: int
    fully_approved: bool
    applicable_range: str


def range_contains(rule: RangeRule, amount: Decimal) -> bool:
    return rule.min_amount <= amount <= rule.max_amount


def ranges_overlap(
    min_a: Decimal,
    max_a: Decimal,
    min_b: Decimal,
    max_b: Decimal,
) -> bool:
    return min_a < max_b and max_a > min_b


def validate_rule_range(
    min_amount: Decimal,
    max_amount: Decimal,
    existing_rules: Iterable[RangeRule],
    exclude_rule_id=None,
) -> None:
    """Reject a malformed range or one that overlaps any other rule.

    ``exclude_rule_id`` skips the rule being updated.
    """
    if min_amount >= max_amount:
        raise InvalidAmountRangeError(min_amount, max_amount)

    for rule in existing_rules:
        if exclude_rule_id is not None and rule.id == exclude_rule_id:
            continue
        if ranges_overlap(min_amount, max_amount, rule.min_amount, rule.max_amount):
            raise OverlappingRuleRangeError(
                str(rule.id), rule.min_amount, rule.max_amount,
            )


def select_applicable_rule(rules: Sequence[R], total: Decimal) -> R | None:
    """Lowest-priority active rule whose range contains ``total``, or None."""
    candidates = [r for r in rules if r.is_active and range_contains(r, total)]
    if not candidates:
        return None
    # sorted() is stable, so equal priorities keep input order
    return sorted(candidates, key=lambda r: r.priority)[0]


def format_rule_range(
    rule: RangeRule | None,
    currency_symbol: str = DEFAULT_CURRENCY_SYMBOL,
) -> str:
    if rule is None:
        return NO_RULE_RANGE
    return (
        f"{currency_symbol}{rule.min_amount:,.2f} - "
        f"{currency_symbol}{rule.max_amount:,.2f}"
    )


def evaluate_progress(
    current_level: int,
    rule: RangeRule | None,
    currency_symbol: str = DEFAULT_CURRENCY_SYMBOL,
) -> ApprovalProgress:
    """Summarize approval progress against the applicable rule."""
    if rule is None:
        return ApprovalProgress(
            current_level=current_level,
            required_levels=0,
            remaining_levels=0,
            fully_approved=True,
            applicable_range=NO_RULE_RANGE,
        )

    required = rule.approval_levels
    return ApprovalProgress(
        current_level=current_level,
        required_levels=required,
        remaining_levels=max(0, required - current_level),
        fully_approved=current_level >= required,
        applicable_range=format_rule_range(rule, currency_symbol),
    )
