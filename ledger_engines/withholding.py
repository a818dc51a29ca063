"""
Withholding Engine - Tax withheld at source (TDS) on a gross amount.

One percentage, two rounding policies:

* standard: ``gross * percentage / 100`` rounded half-up to the currency's
  minor unit (two places unless configured otherwise);
* round-up: the same product rounded up to the next whole currency unit.

Both policies round away from zero on ties or remainders, so the function
is linear in sign: ``withhold(-g, p)`` is exactly the negation of
``withhold(g, p)``.  Credit-note reversals rely on this.

Pure functions with no I/O.

Usage:
    from decimal import Decimal
    from ledger_engines.withholding import withhold

    result = withhold(Decimal("333"), Decimal("7"), round_up=True)
    result.withheld_amount  # Decimal("24.00")
    result.payable_amount   # Decimal("309.00")
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, ROUND_UP, Decimal

from ledger_kernel.domain.values import (
    DEFAULT_CURRENCY_PLACES,
    HUNDRED,
    ZERO,
    quantize_money,
    to_decimal,
)
from ledger_kernel.exceptions import InvalidWithholdingPercentageError


@dataclass(frozen=True)
class WithholdingResult:
    """
    Outcome of one withholding calculation.

    ``withheld_amount + payable_amount == gross_amount`` always holds
    exactly; rounding only moves value between the two.
    """

    gross_amount: Decimal
    withheld_amount: Decimal
    payable_amount: Decimal
    exact_withholding: Decimal
    is_rounded: bool = False


def validate_percentage(percentage: object) -> Decimal | None:
    """
    Coerce and range-check a withholding percentage.

    Returns None for an absent percentage.

    Raises:
        InvalidAmountError: float or non-numeric input.
        InvalidWithholdingPercentageError: outside 0..100.
    """
    if percentage is None:
        return None
    value = to_decimal(percentage)
    if not ZERO <= value <= HUNDRED:
        raise InvalidWithholdingPercentageError(str(value))
    return value


def withhold(
    gross_amount: Decimal | int | str,
    percentage: Decimal | int | str | None,
    round_up: bool = False,
    places: int = DEFAULT_CURRENCY_PLACES,
    rounding: str = ROUND_HALF_UP,
) -> WithholdingResult:
    """
    Split ``gross_amount`` into withheld and payable parts.

    Args:
        gross_amount: Signed gross amount; negative for reversals.
        percentage: Withholding percentage (10 means 10%), or None.
        round_up: Ceiling to the next whole unit instead of standard rounding.
        places: Currency minor-unit places for standard rounding.
        rounding: ``decimal`` rounding constant for standard rounding.

    Raises:
        InvalidAmountError: float, NaN or non-numeric input.
        InvalidWithholdingPercentageError: percentage outside 0..100.
    """
    gross = to_decimal(gross_amount)
    pct = validate_percentage(percentage)

    if pct is None or pct == ZERO or gross == ZERO:
        return WithholdingResult(
            gross_amount=gross,
            withheld_amount=quantize_money(ZERO, places),
            payable_amount=gross,
            exact_withholding=ZERO,
        )

    exact = gross * pct / HUNDRED
    if round_up:
        withheld = quantize_money(exact.to_integral_value(rounding=ROUND_UP), places)
    else:
        withheld = quantize_money(exact, places, rounding)

    return WithholdingResult(
        gross_amount=gross,
        withheld_amount=withheld,
        payable_amount=gross - withheld,
        exact_withholding=exact,
        is_rounded=withheld != exact,
    )


def would_rounding_change(
    gross_amount: Decimal | int | str,
    percentage: Decimal | int | str | None,
) -> bool:
    """True when the round-up policy yields a different amount than the exact product."""
    result = withhold(gross_amount, percentage, round_up=True)
    return result.withheld_amount != result.exact_withholding


def rounding_difference(
    gross_amount: Decimal | int | str,
    percentage: Decimal | int | str | None,
) -> Decimal:
    """Extra amount withheld by the round-up policy over the exact product."""
    result = withhold(gross_amount, percentage, round_up=True)
    return result.withheld_amount - result.exact_withholding
