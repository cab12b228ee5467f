"""
Tax Engine - split vs. single tax on an invoice base amount.

A flat rate (18% by default) is either split into two equal halves when
origin and destination share a jurisdiction (9% + 9%), or charged whole as
a single component when they differ.  Exactly one of the two shapes is
populated, never both.  Pure functions with no I/O.

Usage:
    from payables_engines.tax import SplitTaxCalculator
    from decimal import Decimal

    calculator = SplitTaxCalculator()
    result = calculator.compute(Decimal("5000.00"), "27", "27")
    print(result.split_a, result.split_b)  # 450.00 450.00
    print(result.total)                    # 5900.00
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from payables_kernel.logging_config import get_logger

logger = get_logger("engines.tax")

CENT = Decimal("0.01")
DEFAULT_RATE_PERCENT = Decimal("18")
DEFAULT_JURISDICTION = "27"


def round_money(amount: Decimal) -> Decimal:
    """Round to 2 decimal places, half-up."""
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def jurisdiction_from_tax_id(
    tax_identifier: str | None,
    default: str = DEFAULT_JURISDICTION,
) -> str:
    """First two characters of a tax identifier, or ``default`` if absent/short."""
    if tax_identifier is None or len(tax_identifier) < 2:
        return default
    return tax_identifier[:2]


@dataclass(frozen=True)
class SplitTaxResult:
    """
    Result of a tax computation.

    Immutable value object.  ``split_a``/``split_b`` are populated for
    same-jurisdiction transactions, ``single`` otherwise.
    """

    base_amount: Decimal
    split_a: Decimal
    split_b: Decimal
    single: Decimal
    total: Decimal

    @property
    def tax_total(self) -> Decimal:
        return self.split_a + self.split_b + self.single

    @property
    def is_split(self) -> bool:
        return self.single == 0 and (self.split_a != 0 or self.split_b != 0)


class SplitTaxCalculator:
    """
    Computes split or single tax from a base amount and two jurisdictions.

    Contract:
        - Same jurisdiction: split_a = split_b = round(base * rate/2 / 100),
          single = 0.
        - Different jurisdiction: single = round(base * rate / 100),
          split_a = split_b = 0.
        - total = base + split_a + split_b + single, exactly.
        - No error conditions; jurisdictions are normalized by the caller.
    """

    def __init__(self, rate_percent: Decimal = DEFAULT_RATE_PERCENT):
        if rate_percent < 0:
            raise ValueError("Tax rate cannot be negative")
        self._rate_percent = Decimal(rate_percent)
        self._half_rate_percent = self._rate_percent / 2

    @property
    def rate_percent(self) -> Decimal:
        return self._rate_percent

    def compute(
        self,
        base_amount: Decimal,
        origin_jurisdiction: str,
        destination_jurisdiction: str,
    ) -> SplitTaxResult:
        zero = Decimal("0.00")

        if origin_jurisdiction == destination_jurisdiction:
            half = round_money(base_amount * self._half_rate_percent / 100)
            split_a, split_b, single = half, half, zero
        else:
            split_a, split_b = zero, zero
            single = round_money(base_amount * self._rate_percent / 100)

        total = base_amount + split_a + split_b + single

        logger.debug(
            "tax_computed",
            extra={
                "base_amount": str(base_amount),
                "origin": origin_jurisdiction,
                "destination": destination_jurisdiction,
                "split_a": str(split_a),
                "split_b": str(split_b),
                "single": str(single),
                "total": str(total),
            },
        )

        return SplitTaxResult(
            base_amount=base_amount,
            split_a=split_a,
            split_b=split_b,
            single=single,
            total=total,
        )
