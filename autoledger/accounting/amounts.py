"""
Amount Resolver

Derives the missing amount among tax-exclusive (HT), tax and
tax-inclusive (TTC) from the others and a tax rate.

Rules, in order:
1. Tax missing, HT known: tax = HT * rate / 100, TTC = HT + tax
2. HT missing, TTC known: HT = TTC - tax if tax is known,
   otherwise HT = TTC / (1 + rate / 100) and tax = TTC - HT
3. TTC missing, HT and tax known: TTC = HT + tax
4. All three known: they must agree within one cent

Derived amounts are rounded half-up to the cent, and the last one is
always computed as a difference so HT + tax == TTC holds exactly.

A zero is a value, not an absence: tax_amount=0 means "no tax".
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from autoledger.models.ledger import BALANCE_TOLERANCE, ResolvedAmounts


DEFAULT_TAX_RATE = Decimal("20")
CENT = Decimal("0.01")
HUNDRED = Decimal("100")


class AmountResolutionError(Exception):
    """Base exception for amount resolution."""
    pass


class InsufficientAmountData(AmountResolutionError):
    """Not enough amounts to derive the others."""

    def __init__(self, message: str = "Need tax-exclusive or tax-inclusive amount"):
        super().__init__(message)


class InconsistentAmounts(AmountResolutionError):
    """All three amounts were given and they disagree."""

    def __init__(self, tax_exclusive: Decimal, tax_amount: Decimal, tax_inclusive: Decimal):
        self.tax_exclusive = tax_exclusive
        self.tax_amount = tax_amount
        self.tax_inclusive = tax_inclusive
        super().__init__(
            f"{tax_exclusive} + {tax_amount} != {tax_inclusive}"
        )


class ImpliedRateOutOfRange(AmountResolutionError):
    """Tax given without a rate, and tax / HT implies more than 100 %."""

    def __init__(self, tax_exclusive: Decimal, tax_amount: Decimal, rate: Decimal):
        self.tax_exclusive = tax_exclusive
        self.tax_amount = tax_amount
        self.rate = rate
        super().__init__(
            f"Tax {tax_amount} on {tax_exclusive} implies a {rate}% rate"
        )


def to_cents(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def implied_rate(tax_exclusive: Decimal, tax_amount: Decimal) -> Optional[Decimal]:
    """Rate (percent, two decimals) implied by HT and tax, if HT is non-zero."""
    if tax_exclusive == 0:
        return None
    return to_cents(tax_amount / tax_exclusive * HUNDRED)


def resolve_amounts(
    tax_exclusive: Optional[Decimal] = None,
    tax_amount: Optional[Decimal] = None,
    tax_inclusive: Optional[Decimal] = None,
    tax_rate: Optional[Decimal] = None,
    default_rate: Decimal = DEFAULT_TAX_RATE,
) -> ResolvedAmounts:
    """
    Complete the HT / tax / TTC triple.

    Args:
        tax_exclusive: Amount before tax
        tax_amount: Tax amount
        tax_inclusive: Amount including tax
        tax_rate: Rate in percent; default_rate applies when None.
                  When tax is given without a rate, the rate implied by
                  HT and tax is reported instead.
        default_rate: Rate used when nothing else provides one

    Raises:
        InsufficientAmountData: Neither HT nor TTC given
        InconsistentAmounts: HT + tax differs from TTC by a cent or more
        ImpliedRateOutOfRange: No rate given and tax exceeds HT
    """
    rate = tax_rate if tax_rate is not None else default_rate

    if tax_amount is None:
        if tax_exclusive is not None:
            tax = to_cents(tax_exclusive * rate / HUNDRED)
            return ResolvedAmounts(
                tax_exclusive=tax_exclusive,
                tax_amount=tax,
                tax_inclusive=tax_exclusive + tax,
                tax_rate=rate,
            )
        if tax_inclusive is not None:
            base = to_cents(tax_inclusive / (1 + rate / HUNDRED))
            return ResolvedAmounts(
                tax_exclusive=base,
                tax_amount=tax_inclusive - base,
                tax_inclusive=tax_inclusive,
                tax_rate=rate,
            )
        raise InsufficientAmountData()

    if tax_rate is None:
        base = tax_exclusive
        if base is None and tax_inclusive is not None:
            base = tax_inclusive - tax_amount
        # A negative base is left to the consistency checks below
        if base is not None and base >= 0:
            implied = implied_rate(base, tax_amount)
            if implied is not None:
                if implied > HUNDRED:
                    raise ImpliedRateOutOfRange(base, tax_amount, implied)
                rate = implied

    if tax_exclusive is not None and tax_inclusive is not None:
        if abs(tax_exclusive + tax_amount - tax_inclusive) >= BALANCE_TOLERANCE:
            raise InconsistentAmounts(tax_exclusive, tax_amount, tax_inclusive)
        # Sub-cent drift is absorbed into TTC
        return ResolvedAmounts(
            tax_exclusive=tax_exclusive,
            tax_amount=tax_amount,
            tax_inclusive=tax_exclusive + tax_amount,
            tax_rate=rate,
        )

    if tax_exclusive is not None:
        return ResolvedAmounts(
            tax_exclusive=tax_exclusive,
            tax_amount=tax_amount,
            tax_inclusive=tax_exclusive + tax_amount,
            tax_rate=rate,
        )

    if tax_inclusive is not None:
        if tax_amount > tax_inclusive:
            raise InconsistentAmounts(tax_inclusive - tax_amount, tax_amount, tax_inclusive)
        return ResolvedAmounts(
            tax_exclusive=tax_inclusive - tax_amount,
            tax_amount=tax_amount,
            tax_inclusive=tax_inclusive,
            tax_rate=rate,
        )

    raise InsufficientAmountData("Tax amount alone cannot be resolved")
