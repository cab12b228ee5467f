"""
Approval Rule ORM Models (``payables_modules.approval_rules.orm``).

Responsibility
--------------
SQLAlchemy persistence for approval rules.  Range overlap is enforced by
``ApprovalRuleService`` at create/update time; the table itself carries no
range constraint.
"""

from decimal import Decimal

from sqlalchemy import Boolean, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from payables_kernel.db.base import TrackedBase
from payables_engines.tax import round_money


class ApprovalRuleModel(TrackedBase):
    """ORM model for approval rules."""

    __tablename__ = "approval_rules"

    __table_args__ = (
        Index("idx_approval_rules_min_amount", "min_amount"),
        Index("idx_approval_rules_active_priority", "is_active", "priority"),
    )

    min_amount: Mapped[Decimal] = mapped_column(nullable=False)
    max_amount: Mapped[Decimal] = mapped_column(nullable=False)
    approval_levels: Mapped[int] = mapped_column(Integer, nullable=False)
    approver_roles: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    priority: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    def to_dto(self):
        """Convert ORM model to frozen dataclass."""
        from payables_modules.approval_rules.models import ApprovalRule

        return ApprovalRule(
            id=self.id,
            min_amount=round_money(self.min_amount),
            max_amount=round_money(self.max_amount),
            approval_levels=self.approval_levels,
            approver_roles=self.approver_roles or "",
            is_active=self.is_active,
            priority=self.priority,
            description=self.description,
        )

    def __repr__(self) -> str:
        return (
            f"<ApprovalRuleModel {self.min_amount}-{self.max_amount} "
            f"levels={self.approval_levels}>"
        )
