"""Tests for the amount resolver."""

import pytest
from decimal import Decimal

from autoledger.accounting.amounts import (
    ImpliedRateOutOfRange,
    InconsistentAmounts,
    InsufficientAmountData,
    resolve_amounts,
)


class TestAmountDerivation:
    """HT / tax / TTC reconstruction."""

    def test_tax_and_total_from_tax_exclusive(self):
        """100 HT at 20 % gives 20 tax and 120 TTC."""
        amounts = resolve_amounts(tax_exclusive=Decimal("100"), tax_rate=Decimal("20"))
        assert amounts.tax_amount == Decimal("20")
        assert amounts.tax_inclusive == Decimal("120")

    def test_tax_exclusive_from_tax_inclusive(self):
        """Inverse of the previous case."""
        amounts = resolve_amounts(tax_inclusive=Decimal("120"), tax_rate=Decimal("20"))
        assert amounts.tax_exclusive == Decimal("100")
        assert amounts.tax_amount == Decimal("20")

    def test_default_rate_is_twenty_percent(self):
        """Without a rate the default applies."""
        amounts = resolve_amounts(tax_exclusive=Decimal("50"))
        assert amounts.tax_rate == Decimal("20")
        assert amounts.tax_amount == Decimal("10")

    def test_custom_default_rate(self):
        """The default rate can be configured."""
        amounts = resolve_amounts(tax_exclusive=Decimal("50"), default_rate=Decimal("10"))
        assert amounts.tax_amount == Decimal("5")

    def test_rounds_half_up_to_cents(self):
        """Derived tax is rounded half-up to the cent."""
        amounts = resolve_amounts(tax_exclusive=Decimal("33.33"), tax_rate=Decimal("20"))
        assert amounts.tax_amount == Decimal("6.67")
        assert amounts.tax_inclusive == Decimal("40.00")

    def test_reduced_rate_keeps_identity_exact(self):
        """HT + tax == TTC holds exactly after rounding."""
        amounts = resolve_amounts(tax_inclusive=Decimal("100"), tax_rate=Decimal("5.5"))
        assert amounts.tax_exclusive == Decimal("94.79")
        assert amounts.tax_amount == Decimal("5.21")
        assert amounts.tax_exclusive + amounts.tax_amount == amounts.tax_inclusive

    def test_tax_exclusive_from_total_and_tax(self):
        """HT is TTC minus tax; the rate is implied."""
        amounts = resolve_amounts(tax_amount=Decimal("20"), tax_inclusive=Decimal("120"))
        assert amounts.tax_exclusive == Decimal("100")
        assert amounts.tax_rate == Decimal("20")

    def test_total_from_tax_exclusive_and_tax(self):
        """TTC is HT plus tax; the rate is implied."""
        amounts = resolve_amounts(tax_exclusive=Decimal("100"), tax_amount=Decimal("5.5"))
        assert amounts.tax_inclusive == Decimal("105.5")
        assert amounts.tax_rate == Decimal("5.5")

    def test_zero_tax_is_a_value_not_an_absence(self):
        """A zero tax is kept, not derived."""
        amounts = resolve_amounts(
            tax_exclusive=Decimal("100"),
            tax_amount=Decimal("0"),
            tax_rate=Decimal("20"),
        )
        assert amounts.tax_amount == Decimal("0")
        assert amounts.tax_inclusive == Decimal("100")

    def test_consistent_triple_is_kept(self):
        """Three agreeing amounts pass through unchanged."""
        amounts = resolve_amounts(
            tax_exclusive=Decimal("100"),
            tax_amount=Decimal("20"),
            tax_inclusive=Decimal("120"),
        )
        assert (amounts.tax_exclusive, amounts.tax_amount, amounts.tax_inclusive) == (
            Decimal("100"), Decimal("20"), Decimal("120")
        )


class TestAmountFailures:
    """Checked preconditions."""

    def test_nothing_given(self):
        """No amounts at all is a checked failure."""
        with pytest.raises(InsufficientAmountData):
            resolve_amounts()

    def test_tax_alone(self):
        """Tax alone cannot be resolved."""
        with pytest.raises(InsufficientAmountData):
            resolve_amounts(tax_amount=Decimal("20"))

    def test_inconsistent_triple(self):
        """Three disagreeing amounts are rejected."""
        with pytest.raises(InconsistentAmounts):
            resolve_amounts(
                tax_exclusive=Decimal("100"),
                tax_amount=Decimal("20"),
                tax_inclusive=Decimal("130"),
            )

    def test_tax_larger_than_total(self):
        """Tax above TTC would give a negative HT."""
        with pytest.raises(InconsistentAmounts):
            resolve_amounts(tax_amount=Decimal("50"), tax_inclusive=Decimal("20"))

    def test_implied_rate_above_hundred_percent(self):
        """Tax larger than HT with no rate given cannot be a VAT rate."""
        with pytest.raises(ImpliedRateOutOfRange) as exc_info:
            resolve_amounts(tax_exclusive=Decimal("10"), tax_amount=Decimal("50"))
        assert exc_info.value.rate == Decimal("500.00")

    def test_explicit_rate_skips_implied_check(self):
        """With a rate given, the rate is not derived from the amounts."""
        amounts = resolve_amounts(
            tax_exclusive=Decimal("10"),
            tax_amount=Decimal("50"),
            tax_rate=Decimal("20"),
        )
        assert amounts.tax_rate == Decimal("20")
        assert amounts.tax_inclusive == Decimal("60")


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
