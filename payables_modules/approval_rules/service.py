"""
Approval Rule Module Service (``payables_modules.approval_rules.service``).

Responsibility
--------------
CRUD for tiered approval rules and the rule matcher used by the invoice
lifecycle.  Range validation and rule selection are delegated to the pure
``payables_engines.approval`` functions.

Invariants enforced
-------------------
* ``min_amount < max_amount`` on every create/update.
* A rule's range never overlaps another rule's range, active or not.
  The overlap scan covers every rule, excluding the rule being updated.
* ``approval_levels`` within 1..``approvals.max_levels``.
* Mutating methods own the transaction boundary.  ``find_applicable_rule``
  never commits, so the invoice service can call it mid-transaction.

Failure modes
-------------
* ``InvalidAmountRangeError``, ``OverlappingRuleRangeError``,
  ``InvalidApprovalLevelsError`` -- rejected rule definitions.
* ``ApprovalRuleNotFoundError`` -- unknown rule id.
"""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from payables_config.schema import PayablesConfig
from payables_engines.approval import select_applicable_rule, validate_rule_range
from payables_kernel.domain.actors import Actor
from payables_kernel.domain.clock import Clock, SystemClock
from payables_kernel.exceptions import (
    ApprovalRuleNotFoundError,
    InvalidApprovalLevelsError,
)
from payables_kernel.logging_config import get_logger
from payables_kernel.models.audit_event import AuditAction
from payables_kernel.services.auditor_service import AuditorService
from payables_modules._helpers import snapshot, unit_of_work
from payables_modules.approval_rules.models import ApprovalRule
from payables_modules.approval_rules.orm import ApprovalRuleModel

logger = get_logger("modules.approval_rules.service")

ENTITY_TYPE = "ApprovalRule"


class ApprovalRuleService:
    """Manages approval rules and matches invoice totals to them."""

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

    def _load(self, rule_id: UUID) -> ApprovalRuleModel:
        model = self._session.get(ApprovalRuleModel, rule_id)
        if model is None:
            raise ApprovalRuleNotFoundError(str(rule_id))
        return model

    def _all_rules(self) -> list[ApprovalRule]:
        rows = self._session.execute(
            select(ApprovalRuleModel).order_by(ApprovalRuleModel.min_amount)
        ).scalars().all()
        return [m.to_dto() for m in rows]

    def _validate_levels(self, approval_levels: int) -> None:
        max_levels = self._config.approvals.max_levels
        if not 1 <= approval_levels <= max_levels:
            raise InvalidApprovalLevelsError(approval_levels, max_levels)

    # =========================================================================
    # CRUD
    # =========================================================================

    def create_rule(
        self,
        min_amount: Decimal,
        max_amount: Decimal,
        approval_levels: int,
        actor: Actor,
        approver_roles: str = "",
        is_active: bool = True,
        priority: int = 0,
        description: str | None = None,
    ) -> ApprovalRule:
        """
        Create an approval rule.

        Raises:
            InvalidAmountRangeError: min_amount >= max_amount.
            OverlappingRuleRangeError: range overlaps an existing rule.
            InvalidApprovalLevelsError: levels outside 1..max_levels.
        """
        with unit_of_work(self._session, ENTITY_TYPE):
            validate_rule_range(min_amount, max_amount, self._all_rules())
            self._validate_levels(approval_levels)

            model = ApprovalRuleModel(
                min_amount=min_amount,
                max_amount=max_amount,
                approval_levels=approval_levels,
                approver_roles=approver_roles,
                is_active=is_active,
                priority=priority,
                description=description,
                created_by=actor.username,
            )
            self._session.add(model)
            self._session.flush()
            rule = model.to_dto()

            self._auditor.record(
                actor, AuditAction.RULE_CREATED, ENTITY_TYPE, rule.id,
                after=snapshot(rule),
            )
            logger.info("approval_rule_created", extra={
                "rule_id": str(rule.id),
                "min_amount": str(min_amount),
                "max_amount": str(max_amount),
                "approval_levels": approval_levels,
            })
        return rule

    def update_rule(
        self,
        rule_id: UUID,
        actor: Actor,
        min_amount: Decimal | None = None,
        max_amount: Decimal | None = None,
        approval_levels: int | None = None,
        approver_roles: str | None = None,
        is_active: bool | None = None,
        priority: int | None = None,
        description: str | None = None,
    ) -> ApprovalRule:
        """Update a rule.  Arguments left as None keep their current value."""
        with unit_of_work(self._session, ENTITY_TYPE, rule_id):
            model = self._load(rule_id)
            before = model.to_dto()

            new_min = min_amount if min_amount is not None else model.min_amount
            new_max = max_amount if max_amount is not None else model.max_amount
            validate_rule_range(new_min, new_max, self._all_rules(), exclude_rule_id=rule_id)
            if approval_levels is not None:
                self._validate_levels(approval_levels)
                model.approval_levels = approval_levels

            model.min_amount = new_min
            model.max_amount = new_max
            if approver_roles is not None:
                model.approver_roles = approver_roles
            if is_active is not None:
                model.is_active = is_active
            if priority is not None:
                model.priority = priority
            if description is not None:
                model.description = description
            model.updated_by = actor.username
            self._session.flush()
            rule = model.to_dto()

            self._auditor.record(
                actor, AuditAction.RULE_UPDATED, ENTITY_TYPE, rule_id,
                before=snapshot(before), after=snapshot(rule),
            )
            logger.info("approval_rule_updated", extra={"rule_id": str(rule_id)})
        return rule

    def delete_rule(self, rule_id: UUID, actor: Actor) -> None:
        with unit_of_work(self._session, ENTITY_TYPE, rule_id):
            model = self._load(rule_id)
            before = model.to_dto()
            self._session.delete(model)
            self._session.flush()

            self._auditor.record(
                actor, AuditAction.RULE_DELETED, ENTITY_TYPE, rule_id,
                before=snapshot(before),
            )
            logger.info("approval_rule_deleted", extra={"rule_id": str(rule_id)})

    def toggle_rule(self, rule_id: UUID, actor: Actor) -> ApprovalRule:
        """Flip the rule's active flag."""
        with unit_of_work(self._session, ENTITY_TYPE, rule_id):
            model = self._load(rule_id)
            model.is_active = not model.is_active
            model.updated_by = actor.username
            self._session.flush()
            rule = model.to_dto()

            self._auditor.record(
                actor, AuditAction.RULE_TOGGLED, ENTITY_TYPE, rule_id,
                before={"is_active": not rule.is_active},
                after={"is_active": rule.is_active},
            )
            logger.info("approval_rule_toggled", extra={
                "rule_id": str(rule_id),
                "is_active": rule.is_active,
            })
        return rule

    # =========================================================================
    # Queries
    # =========================================================================

    def get_rule(self, rule_id: UUID) -> ApprovalRule:
        return self._load(rule_id).to_dto()

    def list_rules(self) -> list[ApprovalRule]:
        """All rules ordered by lower bound."""
        return self._all_rules()

    def list_active_rules(self) -> list[ApprovalRule]:
        rows = self._session.execute(
            select(ApprovalRuleModel)
            .where(ApprovalRuleModel.is_active.is_(True))
            .order_by(ApprovalRuleModel.priority, ApprovalRuleModel.min_amount)
        ).scalars().all()
        return [m.to_dto() for m in rows]

    def find_applicable_rule(self, total: Decimal) -> ApprovalRule | None:
        """
        The active rule whose range contains ``total``, lowest priority
        first, or None when the invoice needs no approvals.
        """
        rule = select_applicable_rule(self.list_active_rules(), total)
        logger.debug("approval_rule_matched", extra={
            "total": str(total),
            "rule_id": str(rule.id) if rule else None,
            "approval_levels": rule.approval_levels if rule else 0,
        })
        return rule
