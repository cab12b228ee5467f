"""
payables_engines.risk -- Pure vendor risk scoring.

Responsibility:
    Turn a vendor's invoice and payment history into a bounded composite
    risk score in [0, 100].  Higher means riskier.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  The vendor service
    gathers the history and stores the result.

Scoring (four additive, independently capped factors):
    overdue       -- invoices flagged overdue x 10, capped at 40
    late payment  -- PAID invoices whose most recent payment is dated after
                     the due date x 5, capped at 30
    payment ratio -- (1 - paid/invoiced) x 20, ratio rounded to 2 places
                     half-up and taken as 1 when nothing is invoiced
    escalation    -- invoices with escalation level > 0 x 5, capped at 10
    The sum is capped at 100.  A vendor with no invoices scores exactly 0.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Sequence

from payables_kernel.domain.lifecycle import InvoiceStatus
from payables_kernel.logging_config import get_logger

logger = get_logger("engines.risk")

OVERDUE_WEIGHT = Decimal("10")
OVERDUE_CAP = Decimal("40")
LATE_PAYMENT_WEIGHT = Decimal("5")
LATE_PAYMENT_CAP = Decimal("30")
PAYMENT_RATIO_WEIGHT = Decimal("20")
ESCALATION_WEIGHT = Decimal("5")
ESCALATION_CAP = Decimal("10")
MAX_SCORE = Decimal("100")

_RATIO_PLACES = Decimal("0.01")


@dataclass(frozen=True)
class PaymentRecord:
    amount: Decimal
    payment_date: date


@dataclass(frozen=True)
class InvoiceRecord:
    """One invoice of the vendor's history, with its payments."""

    status: InvoiceStatus
    total_amount: Decimal
    due_date: date
    is_overdue: bool = False
    escalation_level: int | None = 0
    payments: tuple[PaymentRecord, ...] = field(default_factory=tuple)

    @property
    def paid_amount(self) -> Decimal:
        return sum((p.amount for p in self.payments), Decimal("0"))

    @property
    def last_payment(self) -> PaymentRecord | None:
        if not self.payments:
            return None
        return max(self.payments, key=lambda p: p.payment_date)


@dataclass(frozen=True)
class RiskScoreBreakdown:
    overdue_score: Decimal
    late_payment_score: Decimal
    payment_ratio_score: Decimal
    escalation_score: Decimal
    payment_ratio: Decimal
    score: Decimal


ZERO_RISK = RiskScoreBreakdown(
    overdue_score=Decimal("0"),
    late_payment_score=Decimal("0"),
    payment_ratio_score=Decimal("0"),
    escalation_score=Decimal("0"),
    payment_ratio=Decimal("1"),
    score=Decimal("0"),
)


def _is_late(invoice: InvoiceRecord) -> bool:
    if invoice.status != InvoiceStatus.PAID:
        return False
    last = invoice.last_payment
    return last is not None and last.payment_date > invoice.due_date


def payment_ratio(invoices: Sequence[InvoiceRecord]) -> Decimal:
    """Total paid over total invoiced, 2 places half-up; 1 if nothing invoiced."""
    invoiced = sum((i.total_amount for i in invoices), Decimal("0"))
    if invoiced == 0:
        return Decimal("1")
    paid = sum((i.paid_amount for i in invoices), Decimal("0"))
    return (paid / invoiced).quantize(_RATIO_PLACES, rounding=ROUND_HALF_UP)


def calculate_risk_score(invoices: Sequence[InvoiceRecord]) -> RiskScoreBreakdown:
    """Composite risk score for a vendor's invoice history."""
    if not invoices:
        return ZERO_RISK

    overdue_count = sum(1 for i in invoices if i.is_overdue)
    late_count = sum(1 for i in invoices if _is_late(i))
    escalated_count = sum(1 for i in invoices if (i.escalation_level or 0) > 0)
    ratio = payment_ratio(invoices)

    overdue_score = min(OVERDUE_CAP, overdue_count * OVERDUE_WEIGHT)
    late_score = min(LATE_PAYMENT_CAP, late_count * LATE_PAYMENT_WEIGHT)
    ratio_score = (1 - ratio) * PAYMENT_RATIO_WEIGHT
    escalation_score = min(ESCALATION_CAP, escalated_count * ESCALATION_WEIGHT)

    total = overdue_score + late_score + ratio_score + escalation_score
    # Overpayment would push the ratio above 1; keep the score in range.
    score = max(Decimal("0"), min(MAX_SCORE, total))

    logger.debug(
        "risk_score_calculated",
        extra={
            "invoice_count": len(invoices),
            "overdue_count": overdue_count,
            "late_payment_count": late_count,
            "escalated_count": escalated_count,
            "payment_ratio": str(ratio),
            "score": str(score),
        },
    )

    return RiskScoreBreakdown(
        overdue_score=overdue_score,
        late_payment_score=late_score,
        payment_ratio_score=ratio_score,
        escalation_score=escalation_score,
        payment_ratio=ratio,
        score=score,
    )
