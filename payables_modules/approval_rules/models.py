"""
Approval Rule Domain Models (``payables_modules.approval_rules.models``).

Frozen value object for a tiered approval rule.  Satisfies the
``payables_engines.approval.RangeRule`` protocol so the pure matcher can
work on it directly.
"""

from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID


@dataclass(frozen=True)
class ApprovalRule:
    """
    Invoices whose total falls in [min_amount, max_amount] need
    ``approval_levels`` sign-offs.

    ``approver_roles`` is an advisory comma-separated list of the roles
    expected at each level; it is not enforced.
    """

    id: UUID
    min_amount: Decimal
    max_amount: Decimal
    approval_levels: int
    approver_roles: str = ""
    is_active: bool = True
    priority: int = 0
    description: str | None = None

    @property
    def approver_role_list(self) -> list[str]:
        return [r.strip() for r in self.approver_roles.split(",") if r.strip()]
