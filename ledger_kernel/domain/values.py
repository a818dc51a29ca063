"""
Values -- Decimal helpers and the reporting-period value object.

Responsibility:
    Single place where untrusted numbers become ``Decimal`` and where
    monetary quantization happens. Floats are never accepted: a binary
    float cannot round-trip a currency amount exactly.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Failure modes:
    - InvalidAmountError for floats, NaN/Infinity, unparseable input or a
      magnitude of MAX_AMOUNT or more.
    - InvalidReportPeriodError for a month outside 1..12.
"""

from __future__ import annotations

import calendar
from dataclasses import dataclass
from datetime import date
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from ledger_kernel.exceptions import InvalidAmountError, InvalidReportPeriodError

ZERO = Decimal("0")
HUNDRED = Decimal("100")

DEFAULT_CURRENCY = "INR"
DEFAULT_CURRENCY_PLACES = 2

# 24 integer digits plus minor units stays inside the 28-digit decimal context
MAX_AMOUNT = Decimal("1E+24")


def to_decimal(value: object) -> Decimal:
    """
    Coerce an amount to ``Decimal`` without going through binary float.

    Accepts ``Decimal``, ``int`` and numeric strings. ``bool`` is rejected
    even though it subclasses ``int``.
    """
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, bool) or isinstance(value, float):
        raise InvalidAmountError(value)
    elif isinstance(value, int):
        result = Decimal(value)
    elif isinstance(value, str):
        try:
            result = Decimal(value.strip())
        except InvalidOperation as e:
            raise InvalidAmountError(value, "not a numeric string") from e
    else:
        raise InvalidAmountError(value)

    if not result.is_finite():
        raise InvalidAmountError(value, "must be finite")
    if abs(result) >= MAX_AMOUNT:
        raise InvalidAmountError(value, f"must be below {MAX_AMOUNT:,.0f} in magnitude")
    return result


def minor_unit(places: int = DEFAULT_CURRENCY_PLACES) -> Decimal:
    """Smallest representable step for ``places`` decimals (0.01 for 2)."""
    return Decimal(1).scaleb(-places)


def quantize_money(
    amount: Decimal,
    places: int = DEFAULT_CURRENCY_PLACES,
    rounding: str = ROUND_HALF_UP,
) -> Decimal:
    """
    Round to the currency's minor unit. HALF_UP rounds half away from zero.

    Raises:
        InvalidAmountError: the rounded amount needs more digits than the
            decimal context carries.
    """
    try:
        return amount.quantize(minor_unit(places), rounding=rounding)
    except InvalidOperation as e:
        raise InvalidAmountError(amount, f"too large to round to {places} places") from e


def percentage_of(part: Decimal, whole: Decimal) -> int:
    """Whole-number percentage of ``part`` in ``whole``; 0 when whole is 0."""
    if whole == ZERO:
        return 0
    return int((part * HUNDRED / whole).to_integral_value(rounding=ROUND_HALF_UP))


@dataclass(frozen=True, slots=True, order=True)
class ReportPeriodKey:
    """
    A calendar month identified by (year, month).

    Ordered by year then month so periods sort chronologically.
    """

    year: int
    month: int

    def __post_init__(self) -> None:
        if not 1 <= self.month <= 12 or self.year < 1:
            raise InvalidReportPeriodError(self.month, self.year)

    @classmethod
    def of(cls, month: int, year: int) -> ReportPeriodKey:
        return cls(year=year, month=month)

    @classmethod
    def containing(cls, day: date) -> ReportPeriodKey:
        return cls(year=day.year, month=day.month)

    @property
    def label(self) -> str:
        return f"{self.year:04d}-{self.month:02d}"

    @property
    def display_label(self) -> str:
        """Human label, e.g. "March 2026"."""
        return f"{calendar.month_name[self.month]} {self.year}"

    @property
    def first_day(self) -> date:
        return date(self.year, self.month, 1)

    def contains(self, day: date | None) -> bool:
        return day is not None and day.year == self.year and day.month == self.month

    def __str__(self) -> str:
        return self.label
