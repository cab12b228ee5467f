"""
Module: payables_engines
Responsibility:
    Package entrypoint that re-exports the public symbols of the pure
    calculation engines: tax split, approval rule matching and vendor risk
    scoring.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import payables_kernel (domain, exceptions, logging).
    MUST NOT import payables_modules or payables_batch.

Invariants enforced:
    - Purity: engines never read the clock or the database.
    - Decimal-only arithmetic: floats are never used for money.
    - Determinism: identical inputs always produce identical outputs.
"""

from payables_engines.approval import (
    ApprovalProgress,
    evaluate_progress,
    format_rule_range,
    ranges_overlap,
    select_applicable_rule,
    validate_rule_range,
)
from payables_engines.risk import (
    InvoiceRecord,
    PaymentRecord,
    RiskScoreBreakdown,
    calculate_risk_score,
)
from payables_engines.tax import (
    SplitTaxCalculator,
    SplitTaxResult,
    jurisdiction_from_tax_id,
    round_money,
)

__all__ = [
    "ApprovalProgress",
    "InvoiceRecord",
    "PaymentRecord",
    "RiskScoreBreakdown",
    "SplitTaxCalculator",
    "SplitTaxResult",
    "calculate_risk_score",
    "evaluate_progress",
    "format_rule_range",
    "jurisdiction_from_tax_id",
    "ranges_overlap",
    "round_money",
    "select_applicable_rule",
    "validate_rule_range",
]
