"""
Ledger Builder -- chronological per-profile ledger with a running balance.

Responsibility:
    Merge one billing profile's normalized entries into date order and fold
    them into a running balance, with withholding (TDS) accounting per row
    and a summary that is a reduction over the same rows.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - ``running_balance[i] == running_balance[i-1] + payable[i] - paid[i]``
      with an implicit opening balance of zero.
    - Order is (date, kind precedence, insertion sequence): on a shared date
      invoices precede credit notes, which precede payments and advances.
    - Invoices use their own rounding flag; payments use the flag recorded
      on the payment, so a later change to the invoice does not rewrite
      history.
    - Summary totals are summed from the emitted rows, never recomputed
      independently.
    - ``LedgerFilter`` narrows the rows shown AFTER the fold, so visible
      running balances are those of the full ledger.

Failure modes:
    - A row whose withholding cannot be computed is reported as an
      ``EntryFailure`` and excluded from the fold and the totals.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from uuid import UUID

from ledger_engines.tracer import traced_engine
from ledger_engines.withholding import withhold
from ledger_kernel.domain.documents import InvoiceStatus
from ledger_kernel.domain.entries import (
    KIND_PRECEDENCE,
    CreditNotePayload,
    EntryFailure,
    EntryKind,
    InvoicePayload,
    NormalizedEntry,
    PaymentPayload,
    require_exhaustive,
)
from ledger_kernel.domain.values import DEFAULT_CURRENCY_PLACES, ZERO
from ledger_kernel.exceptions import LedgerKernelError
from ledger_kernel.logging_config import get_logger

logger = get_logger("engines.ledger")

# Statuses that leave an invoice with money still owed.
OPEN_INVOICE_STATUSES = frozenset({
    InvoiceStatus.UNPAID.value,
    InvoiceStatus.PARTIAL.value,
    InvoiceStatus.OVERDUE.value,
})


@dataclass(frozen=True)
class LedgerEntry:
    entry: NormalizedEntry
    payable_amount: Decimal
    withheld_amount: Decimal
    paid_amount: Decimal
    running_balance: Decimal
    sequence: int

    @property
    def kind(self) -> EntryKind:
        return self.entry.kind

    @property
    def date(self) -> date:
        return self.entry.date


@dataclass(frozen=True)
class LedgerSummary:
    profile_id: UUID | None
    total_invoiced: Decimal = ZERO
    total_withheld: Decimal = ZERO
    total_payable: Decimal = ZERO
    total_paid: Decimal = ZERO
    outstanding_balance: Decimal = ZERO
    invoice_count: int = 0
    payment_count: int = 0
    credit_note_count: int = 0
    advance_payment_count: int = 0
    unpaid_invoice_count: int = 0
    overdue_invoice_count: int = 0


@dataclass(frozen=True)
class LedgerFilter:
    """Narrows the visible rows; never changes balances."""

    date_from: date | None = None
    date_to: date | None = None
    kinds: frozenset[EntryKind] | None = None
    search: str | None = None

    def matches(self, row: LedgerEntry) -> bool:
        if self.date_from is not None and row.date < self.date_from:
            return False
        if self.date_to is not None and row.date > self.date_to:
            return False
        if self.kinds is not None and row.kind not in self.kinds:
            return False
        if self.search:
            needle = self.search.casefold()
            haystack = (row.entry.reference_number, row.entry.description or "")
            if not any(needle in text.casefold() for text in haystack):
                return False
        return True


@dataclass(frozen=True)
class LedgerResult:
    """
    ``entries`` are the visible rows; ``summary`` always covers the full
    ledger for the profile.
    """

    entries: tuple[LedgerEntry, ...]
    summary: LedgerSummary
    failures: tuple[EntryFailure, ...] = ()
    total_rows: int = 0


@dataclass(frozen=True)
class ProfileBalance:
    """One row of the ledger profile picker."""

    profile_id: UUID
    profile_name: str | None
    vendor_name: str
    outstanding_balance: Decimal = ZERO
    unpaid_count: int = 0

    @property
    def has_unpaid_invoices(self) -> bool:
        return self.unpaid_count > 0


@dataclass(frozen=True)
class _Amounts:
    payable: Decimal
    withheld: Decimal
    paid: Decimal


@dataclass(frozen=True)
class _Calculator:
    places: int = DEFAULT_CURRENCY_PLACES
    rounding: str = ROUND_HALF_UP

    def amounts(self, entry: NormalizedEntry) -> _Amounts:
        return _AMOUNT_HANDLERS[entry.kind](self, entry)


def _invoice_amounts(calc: _Calculator, entry: NormalizedEntry) -> _Amounts:
    payload: InvoicePayload = entry.payload
    pct = payload.withholding_percentage if payload.withholding_applicable else None
    split = withhold(
        entry.gross_amount, pct, payload.withholding_round_up, calc.places, calc.rounding
    )
    return _Amounts(payable=split.payable_amount, withheld=split.withheld_amount, paid=ZERO)


def _credit_note_amounts(calc: _Calculator, entry: NormalizedEntry) -> _Amounts:
    payload: CreditNotePayload = entry.payload
    reversal = -payload.withholding_reversal
    return _Amounts(payable=entry.gross_amount - reversal, withheld=reversal, paid=ZERO)


def _payment_amounts(calc: _Calculator, entry: NormalizedEntry) -> _Amounts:
    payload: PaymentPayload = entry.payload
    if payload.withholding_applied is not None:
        withheld = payload.withholding_applied
    else:
        withheld = withhold(
            payload.invoice_gross_amount,
            payload.withholding_percentage,
            payload.withholding_round_up,
            calc.places,
            calc.rounding,
        ).withheld_amount
    return _Amounts(payable=ZERO, withheld=withheld, paid=entry.gross_amount)


def _advance_amounts(calc: _Calculator, entry: NormalizedEntry) -> _Amounts:
    # Refunds arrive negated: they reduce what has been paid
    return _Amounts(payable=ZERO, withheld=ZERO, paid=entry.gross_amount)


_AMOUNT_HANDLERS: dict[EntryKind, Callable[[_Calculator, NormalizedEntry], _Amounts]] = dict(
    require_exhaustive(
        {
            EntryKind.INVOICE: _invoice_amounts,
            EntryKind.CREDIT_NOTE: _credit_note_amounts,
            EntryKind.PAYMENT: _payment_amounts,
            EntryKind.ADVANCE_PAYMENT: _advance_amounts,
        },
        "build_ledger",
    )
)


def ledger_order(entry: NormalizedEntry) -> tuple[date, int, int]:
    """Sort key: date, then kind precedence, then insertion sequence."""
    return (entry.date, KIND_PRECEDENCE[entry.kind], entry.sequence)


@traced_engine("ledger", "1.0", fingerprint_fields=("profile_id",))
def build_ledger(
    profile_id: UUID | None,
    entries: Iterable[NormalizedEntry],
    ledger_filter: LedgerFilter | None = None,
    places: int = DEFAULT_CURRENCY_PLACES,
    rounding: str = ROUND_HALF_UP,
) -> LedgerResult:
    """
    Build the ledger for one profile.

    ``profile_id=None`` selects the entries that belong to no profile
    (one-time invoices and their documents).
    """
    calc = _Calculator(places, rounding)
    selected = sorted(
        (e for e in entries if e.profile_id == profile_id and e.counts_toward_balance),
        key=ledger_order,
    )

    rows: list[LedgerEntry] = []
    failures: list[EntryFailure] = []
    balance = ZERO
    for entry in selected:
        try:
            amounts = calc.amounts(entry)
        except LedgerKernelError as exc:
            failures.append(EntryFailure(entry.kind, entry.id, exc.code, str(exc)))
            logger.warning(
                "ledger_entry_failed",
                extra={"entry_kind": entry.kind.value, "record_id": str(entry.id), "error_code": exc.code},
            )
            continue
        balance = balance + amounts.payable - amounts.paid
        rows.append(
            LedgerEntry(
                entry=entry,
                payable_amount=amounts.payable,
                withheld_amount=amounts.withheld,
                paid_amount=amounts.paid,
                running_balance=balance,
                sequence=len(rows),
            )
        )

    summary = summarize(profile_id, rows)
    visible = rows if ledger_filter is None else [r for r in rows if ledger_filter.matches(r)]

    logger.info(
        "ledger_built",
        extra={
            "profile_id": str(profile_id) if profile_id else None,
            "row_count": len(rows),
            "visible_count": len(visible),
            "failure_count": len(failures),
            "outstanding_balance": summary.outstanding_balance,
        },
    )
    return LedgerResult(
        entries=tuple(visible),
        summary=summary,
        failures=tuple(failures),
        total_rows=len(rows),
    )


def summarize(profile_id: UUID | None, rows: Iterable[LedgerEntry]) -> LedgerSummary:
    """Reduce ledger rows into the summary aggregate."""
    totals = {
        "total_invoiced": ZERO,
        "total_withheld": ZERO,
        "total_payable": ZERO,
        "total_paid": ZERO,
    }
    counts = dict.fromkeys(EntryKind, 0)
    unpaid = overdue = 0
    balance = ZERO

    for row in rows:
        counts[row.kind] += 1
        totals["total_payable"] += row.payable_amount
        totals["total_paid"] += row.paid_amount
        if row.kind in (EntryKind.INVOICE, EntryKind.CREDIT_NOTE):
            totals["total_invoiced"] += row.entry.gross_amount
            totals["total_withheld"] += row.withheld_amount
        if row.kind == EntryKind.INVOICE:
            payload: InvoicePayload = row.entry.payload
            if payload.settlement.remaining_balance > ZERO:
                unpaid += 1
            if row.entry.status == InvoiceStatus.OVERDUE.value or payload.is_overdue:
                overdue += 1
        balance = row.running_balance

    return LedgerSummary(
        profile_id=profile_id,
        outstanding_balance=balance,
        invoice_count=counts[EntryKind.INVOICE],
        payment_count=counts[EntryKind.PAYMENT],
        credit_note_count=counts[EntryKind.CREDIT_NOTE],
        advance_payment_count=counts[EntryKind.ADVANCE_PAYMENT],
        unpaid_invoice_count=unpaid,
        overdue_invoice_count=overdue,
        **totals,
    )


def profile_overview(entries: Iterable[NormalizedEntry]) -> tuple[ProfileBalance, ...]:
    """
    Outstanding balance and unpaid invoice count per profile, ordered by
    profile name.  Entries without a profile are skipped.
    """
    balances: dict[UUID, ProfileBalance] = {}
    for entry in entries:
        if entry.profile_id is None or entry.kind != EntryKind.INVOICE:
            continue
        payload: InvoicePayload = entry.payload
        current = balances.get(entry.profile_id) or ProfileBalance(
            profile_id=entry.profile_id,
            profile_name=payload.profile_name,
            vendor_name=entry.vendor_name,
        )
        remaining = payload.settlement.remaining_balance
        if (
            entry.counts_toward_balance
            and not payload.is_archived
            and entry.status in OPEN_INVOICE_STATUSES
            and remaining > ZERO
        ):
            current = ProfileBalance(
                profile_id=current.profile_id,
                profile_name=current.profile_name,
                vendor_name=current.vendor_name,
                outstanding_balance=current.outstanding_balance + remaining,
                unpaid_count=current.unpaid_count + 1,
            )
        balances[entry.profile_id] = current

    return tuple(
        sorted(balances.values(), key=lambda p: ((p.profile_name or "").casefold(), str(p.profile_id)))
    )
