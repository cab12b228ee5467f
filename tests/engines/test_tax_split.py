"""
Tests for payables_engines.tax -- the split/single tax calculator.

Covers:
- Same-jurisdiction split into two equal halves
- Cross-jurisdiction single component
- Half-up rounding to cents
- Jurisdiction code derivation from tax identifiers
- Property: component sum and total identities for any base amount
"""

from decimal import ROUND_HALF_UP, Decimal

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from payables_engines.tax import (
    SplitTaxCalculator,
    SplitTaxResult,
    jurisdiction_from_tax_id,
    round_money,
)


def _cents(value: Decimal) -> Decimal:
    return value.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


class TestSameJurisdiction:

    def setup_method(self):
        self.calculator = SplitTaxCalculator()

    def test_split_scenario_5000(self):
        """5000.00 in one jurisdiction splits 450.00 + 450.00, total 5900.00."""
        result = self.calculator.compute(Decimal("5000.00"), "27", "27")

        assert result.split_a == Decimal("450.00")
        assert result.split_b == Decimal("450.00")
        assert result.single == Decimal("0.00")
        assert result.total == Decimal("5900.00")
        assert result.is_split

    def test_halves_are_equal(self):
        """Both split components are always identical."""
        result = self.calculator.compute(Decimal("1234.57"), "29", "29")
        assert result.split_a == result.split_b

    def test_rounding_half_up_per_component(self):
        """Each half is rounded half-up on its own: 0.05 x 9% = 0.0045 -> 0.00."""
        result = self.calculator.compute(Decimal("0.05"), "27", "27")
        assert result.split_a == Decimal("0.00")

        result = self.calculator.compute(Decimal("0.50"), "27", "27")
        # 0.045 rounds half-up to 0.05
        assert result.split_a == Decimal("0.05")
        assert result.tax_total == Decimal("0.10")

    def test_zero_base(self):
        """A zero base produces zero tax and zero total."""
        result = self.calculator.compute(Decimal("0"), "27", "27")
        assert result.tax_total == Decimal("0")
        assert result.total == Decimal("0")


class TestCrossJurisdiction:

    def setup_method(self):
        self.calculator = SplitTaxCalculator()

    def test_single_component(self):
        """Different jurisdictions apply the whole rate as one component."""
        result = self.calculator.compute(Decimal("5000.00"), "27", "29")

        assert result.split_a == Decimal("0.00")
        assert result.split_b == Decimal("0.00")
        assert result.single == Decimal("900.00")
        assert result.total == Decimal("5900.00")
        assert not result.is_split

    def test_custom_rate(self):
        """The rate is configurable."""
        calculator = SplitTaxCalculator(Decimal("12"))
        assert calculator.rate_percent == Decimal("12")
        result = calculator.compute(Decimal("100.00"), "27", "07")
        assert result.single == Decimal("12.00")


class TestResultShape:

    def test_result_is_frozen(self):
        """SplitTaxResult cannot be mutated."""
        result = SplitTaxCalculator().compute(Decimal("10"), "27", "27")
        assert isinstance(result, SplitTaxResult)
        with pytest.raises(AttributeError):
            result.total = Decimal("0")  # type: ignore[misc]

    def test_round_money(self):
        """round_money rounds to cents half-up."""
        assert round_money(Decimal("2.345")) == Decimal("2.35")
        assert round_money(Decimal("2.344")) == Decimal("2.34")


class TestJurisdictionCode:

    def test_first_two_characters(self):
        """The code is the first two characters of the identifier."""
        assert jurisdiction_from_tax_id("29ABCDE1234F1Z5") == "29"

    def test_missing_identifier_uses_default(self):
        """No identifier falls back to the default jurisdiction."""
        assert jurisdiction_from_tax_id(None) == "27"

    def test_short_identifier_uses_default(self):
        """An identifier shorter than two characters falls back too."""
        assert jurisdiction_from_tax_id("3") == "27"
        assert jurisdiction_from_tax_id("", default="07") == "07"


class TestTaxProperties:

    @settings(max_examples=200, deadline=None)
    @given(
        base=st.decimals(
            min_value=Decimal("0"), max_value=Decimal("100000000"),
            places=2, allow_nan=False, allow_infinity=False,
        ),
        same=st.booleans(),
    )
    def test_component_sum_and_total(self, base, same):
        """Tax is 2 x round(B x 9%) or round(B x 18%); total = B + tax exactly."""
        destination = "27" if same else "29"
        result = SplitTaxCalculator().compute(base, "27", destination)

        if same:
            expected_tax = 2 * _cents(base * Decimal("0.09"))
            assert result.single == 0
        else:
            expected_tax = _cents(base * Decimal("0.18"))
            assert result.split_a == 0 and result.split_b == 0

        assert result.split_a + result.split_b + result.single == expected_tax
        assert result.total == base + result.split_a + result.split_b + result.single
