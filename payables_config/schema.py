"""
Payables configuration schema.

Typed, frozen settings parsed from YAML by ``payables_config.loader``.
Every section validates itself in ``__post_init__`` and raises
``ValueError`` on an inconsistent value, so a bad file fails at load time
rather than midway through a workflow.  Monetary and rate values are
``Decimal``; never ``float``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

from payables_kernel.logging_config import get_logger

logger = get_logger("config.schema")


# ---------------------------------------------------------------------------
# Sections
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TaxSettings:
    """Flat tax rate and the jurisdiction assumed for short tax identifiers."""

    rate_percent: Decimal = Decimal("18")
    default_jurisdiction: str = "27"

    def __post_init__(self):
        if self.rate_percent < 0:
            raise ValueError("tax.rate_percent cannot be negative")
        if self.rate_percent > Decimal("100"):
            raise ValueError("tax.rate_percent cannot exceed 100")
        if len(self.default_jurisdiction) != 2:
            raise ValueError("tax.default_jurisdiction must be exactly 2 characters")


@dataclass(frozen=True)
class InvoicingSettings:
    number_prefix: str = "INV"
    sequence_width: int = 4
    currency_symbol: str = "₹"

    def __post_init__(self):
        if not self.number_prefix or not self.number_prefix.strip():
            raise ValueError("invoicing.number_prefix cannot be empty")
        if self.sequence_width < 1:
            raise ValueError("invoicing.sequence_width must be at least 1")


@dataclass(frozen=True)
class ApprovalSettings:
    """Approval tier bounds and duplicate-approval policy.

    ``strict_duplicates`` turns a repeated approval (same approver or same
    level) from an idempotent no-op into a ``DuplicateApprovalError``.
    """

    max_levels: int = 4
    strict_duplicates: bool = False

    def __post_init__(self):
        if self.max_levels < 1:
            raise ValueError("approvals.max_levels must be at least 1")


@dataclass(frozen=True)
class RiskSettings:
    high_risk_threshold: Decimal = Decimal("50")

    def __post_init__(self):
        if not (Decimal("0") <= self.high_risk_threshold <= Decimal("100")):
            raise ValueError("risk.high_risk_threshold must be within [0, 100]")


@dataclass(frozen=True)
class ScheduleSettings:
    """Cron expressions for the lifecycle jobs and the reminder window."""

    overdue_cron: str = "0 9 * * *"
    escalation_cron: str = "0 10 * * *"
    reminder_cron: str = "0 8 * * *"
    reminder_window_days: int = 3
    tick_interval_seconds: int = 60

    def __post_init__(self):
        if self.reminder_window_days < 0:
            raise ValueError("schedule.reminder_window_days cannot be negative")
        if self.tick_interval_seconds < 1:
            raise ValueError("schedule.tick_interval_seconds must be at least 1")


@dataclass(frozen=True)
class DatabaseSettings:
    url: str = "sqlite://"
    echo: bool = False
    pool_size: int = 20

    def __post_init__(self):
        if not self.url:
            raise ValueError("database.url cannot be empty")
        if self.pool_size < 1:
            raise ValueError("database.pool_size must be at least 1")


# ---------------------------------------------------------------------------
# Root
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PayablesConfig:
    """Effective configuration for one process."""

    tax: TaxSettings = field(default_factory=TaxSettings)
    invoicing: InvoicingSettings = field(default_factory=InvoicingSettings)
    approvals: ApprovalSettings = field(default_factory=ApprovalSettings)
    risk: RiskSettings = field(default_factory=RiskSettings)
    schedule: ScheduleSettings = field(default_factory=ScheduleSettings)
    database: DatabaseSettings = field(default_factory=DatabaseSettings)
    checksum: str = ""

    def __post_init__(self):
        logger.debug(
            "payables_config_initialized",
            extra={
                "tax_rate_percent": str(self.tax.rate_percent),
                "default_jurisdiction": self.tax.default_jurisdiction,
                "max_approval_levels": self.approvals.max_levels,
                "strict_duplicate_approvals": self.approvals.strict_duplicates,
                "high_risk_threshold": str(self.risk.high_risk_threshold),
            },
        )
