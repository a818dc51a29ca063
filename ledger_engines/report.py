"""
Report Grouper -- a period's entries partitioned by payment method.

Responsibility:
    Select the entries that belong to one reporting month, turn each into
    report rows, and group the rows into payment-method sections with
    subtotals and a grand total.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  ``generated_at`` is passed
    in; the grouper never reads the clock.

Modes:
    LIVE          What happened this month.  Invoices booked in the month
                  (reporting month, else issue date) that still owe money
                  appear in Unpaid; payments made in the month appear under
                  their payment method (``late_invoice`` when the invoice
                  belongs to another month); approved credit notes and
                  advances dated in the month are included.
    INVOICE_DATE  What this month's invoices settled to.  Invoices issued in
                  the month with every approved payment they received
                  (``late_payment`` when paid in another month), plus an
                  Unpaid row for any balance still owed.

Invariants enforced:
    - Sections follow the configured payment-method order (sort order,
      then name); Unpaid (``payment_method_id=None``) is always last.
    - Empty sections are dropped; serials run 1..N within each section.
    - ``subtotal`` is the sum of a section's row amounts and
      ``grand_total`` the sum of subtotals.
    - Every entry kind is handled in both modes (``require_exhaustive``).

Failure modes:
    - A row that cannot be built (missing parent invoice, unknown payment
      method, invalid withholding data) is listed in
      ``MonthlyReport.failures`` and left out of every total.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from ledger_engines.ledger import ledger_order
from ledger_engines.tracer import traced_engine
from ledger_kernel.domain.documents import PaymentMethod
from ledger_kernel.domain.entries import (
    AdvancePaymentPayload,
    CreditNotePayload,
    EntryFailure,
    EntryKind,
    InvoicePayload,
    NormalizedEntry,
    PaymentPayload,
    require_exhaustive,
)
from ledger_kernel.domain.report import (
    MonthlyReport,
    ReportEntry,
    ReportEntryStatus,
    ReportEntryType,
    ReportMode,
    ReportSection,
)
from ledger_kernel.domain.values import (
    DEFAULT_CURRENCY,
    DEFAULT_CURRENCY_PLACES,
    ZERO,
    ReportPeriodKey,
    percentage_of,
)
from ledger_kernel.exceptions import DocumentNotFoundError, LedgerKernelError
from ledger_kernel.logging_config import get_logger

logger = get_logger("engines.report")

UNPAID_SECTION_NAME = "Unpaid"


@dataclass(frozen=True)
class _Row:
    section: UUID | None
    entry: ReportEntry
    order: tuple[date, int, int]


@dataclass(frozen=True)
class PaymentStatus:
    status: ReportEntryStatus
    percentage: int | None


def payment_status(net_payable: Decimal, paid_before: Decimal, amount: Decimal) -> PaymentStatus:
    """
    Status of one payment given what was paid before it.

    PAID when it completes the invoice in full, PAID_PARTIAL when it
    completes an invoice it only partly covered, PARTIALLY_PAID while a
    balance remains.
    """
    if net_payable <= ZERO:
        return PaymentStatus(ReportEntryStatus.PAID, None)
    share = percentage_of(amount, net_payable)
    if paid_before + amount >= net_payable:
        if share >= 100:
            return PaymentStatus(ReportEntryStatus.PAID, None)
        return PaymentStatus(ReportEntryStatus.PAID_PARTIAL, share)
    return PaymentStatus(ReportEntryStatus.PARTIALLY_PAID, share)


def invoice_month(payload: InvoicePayload) -> date:
    """The month an invoice is booked in: its reporting month, else issue date."""
    return payload.reporting_month or payload.issue_date


class _ReportContext:
    """Indexes built once per report; shared by the per-kind handlers."""

    def __init__(
        self,
        entries: Sequence[NormalizedEntry],
        period: ReportPeriodKey,
        payment_methods: Sequence[PaymentMethod],
        currency: str = DEFAULT_CURRENCY,
    ):
        self.period = period
        self.currency = currency
        self.methods = {m.id: m for m in payment_methods}
        self.invoices: dict[UUID, NormalizedEntry] = {
            e.id: e for e in entries if e.kind == EntryKind.INVOICE
        }
        payments: dict[UUID, list[NormalizedEntry]] = defaultdict(list)
        for e in entries:
            if e.kind == EntryKind.PAYMENT and e.counts_toward_balance:
                payments[e.payload.invoice_id].append(e)
        self.payments = {k: sorted(v, key=ledger_order) for k, v in payments.items()}

    # -- predicates -----------------------------------------------------

    @staticmethod
    def reportable(invoice: NormalizedEntry) -> bool:
        return invoice.counts_toward_balance and not invoice.payload.is_archived

    def parent(self, invoice_id: UUID) -> NormalizedEntry:
        invoice = self.invoices.get(invoice_id)
        if invoice is None:
            raise DocumentNotFoundError("invoice", str(invoice_id))
        return invoice

    def section_for(self, method_id: UUID | None) -> UUID | None:
        if method_id is not None and method_id not in self.methods:
            raise DocumentNotFoundError("payment_method", str(method_id))
        return method_id

    def live_unpaid(self, invoice: NormalizedEntry) -> bool:
        """True when the live view shows ``invoice`` in Unpaid."""
        return (
            self.reportable(invoice)
            and self.period.contains(invoice_month(invoice.payload))
            and invoice.payload.settlement.remaining_balance > ZERO
        )

    # -- row builders ---------------------------------------------------

    def unpaid_row(self, invoice: NormalizedEntry) -> _Row:
        settlement = invoice.payload.settlement
        if settlement.paid_amount > ZERO:
            status, pct = ReportEntryStatus.PARTIALLY_PAID, settlement.paid_percentage
        else:
            status, pct = ReportEntryStatus.UNPAID, None
        return _Row(
            section=None,
            entry=self._invoice_row(
                invoice,
                source=invoice,
                entry_type=ReportEntryType.STANDARD,
                status=status,
                percentage=pct,
                amount=settlement.remaining_balance,
            ),
            order=ledger_order(invoice),
        )

    def payment_row(self, payment: NormalizedEntry, entry_type: ReportEntryType) -> _Row:
        payload: PaymentPayload = payment.payload
        invoice = self.parent(payload.invoice_id)
        settlement = invoice.payload.settlement

        paid_before = ZERO
        for earlier in self.payments.get(invoice.id, ()):
            if earlier.id == payment.id:
                break
            paid_before += earlier.gross_amount
        state = payment_status(
            settlement.payable_amount - settlement.credited_amount,
            paid_before,
            payment.gross_amount,
        )

        return _Row(
            section=self.section_for(payment.payment_method_id),
            entry=self._invoice_row(
                invoice,
                source=payment,
                entry_type=entry_type,
                status=state.status,
                percentage=state.percentage,
                amount=payment.gross_amount,
                payment_date=payment.date,
                payment_reference=payload.transaction_reference,
            ),
            order=ledger_order(payment),
        )

    def _invoice_row(
        self,
        invoice: NormalizedEntry,
        source: NormalizedEntry,
        entry_type: ReportEntryType,
        status: ReportEntryStatus,
        percentage: int | None,
        amount: Decimal,
        payment_date: date | None = None,
        payment_reference: str | None = None,
    ) -> ReportEntry:
        payload: InvoicePayload = invoice.payload
        return ReportEntry(
            serial=0,
            source_kind=source.kind.value,
            source_id=source.id,
            entry_type=entry_type,
            status=status,
            status_percentage=percentage,
            vendor_name=invoice.vendor_name,
            amount=amount,
            invoice_id=invoice.id,
            invoice_number=payload.invoice_number,
            invoice_name=_invoice_name(invoice),
            invoice_date=payload.issue_date,
            invoice_amount=invoice.gross_amount,
            payment_date=payment_date,
            payment_reference=payment_reference,
            currency=payload.currency,
        )


def _invoice_name(invoice: NormalizedEntry) -> str | None:
    payload: InvoicePayload = invoice.payload
    if payload.is_recurring and payload.profile_name:
        return payload.profile_name
    return invoice.description


# ----------------------------------------------------------------------
# LIVE handlers
# ----------------------------------------------------------------------


def _live_invoice(ctx: _ReportContext, entry: NormalizedEntry) -> list[_Row]:
    return [ctx.unpaid_row(entry)] if ctx.live_unpaid(entry) else []


def _live_payment(ctx: _ReportContext, entry: NormalizedEntry) -> list[_Row]:
    if not entry.counts_toward_balance or not ctx.period.contains(entry.date):
        return []
    invoice = ctx.parent(entry.payload.invoice_id)
    if not ctx.reportable(invoice):
        return []
    booked_here = ctx.period.contains(invoice_month(invoice.payload))
    entry_type = ReportEntryType.STANDARD if booked_here else ReportEntryType.LATE_INVOICE
    return [ctx.payment_row(entry, entry_type)]


def _live_credit_note(ctx: _ReportContext, entry: NormalizedEntry) -> list[_Row]:
    if not entry.counts_toward_balance or not ctx.period.contains(entry.date):
        return []
    payload: CreditNotePayload = entry.payload
    invoice = ctx.parent(payload.invoice_id)
    # An invoice shown in Unpaid this month already nets its credit notes
    if not ctx.reportable(invoice) or ctx.live_unpaid(invoice):
        return []
    row = ReportEntry(
        serial=0,
        source_kind=entry.kind.value,
        source_id=entry.id,
        entry_type=ReportEntryType.CREDIT_NOTE,
        status=ReportEntryStatus.CREDIT_NOTE,
        vendor_name=entry.vendor_name,
        amount=entry.gross_amount - entry.withholding_amount,
        invoice_id=invoice.id,
        invoice_number=payload.invoice_number,
        invoice_name=_invoice_name(invoice),
        invoice_date=invoice.payload.issue_date,
        invoice_amount=invoice.gross_amount,
        payment_date=entry.date,
        currency=invoice.payload.currency,
        credit_note_number=payload.credit_note_number,
        withholding_reversal=payload.withholding_reversal,
    )
    return [_Row(section=None, entry=row, order=ledger_order(entry))]


def _live_advance(ctx: _ReportContext, entry: NormalizedEntry) -> list[_Row]:
    payload: AdvancePaymentPayload = entry.payload
    if not entry.counts_toward_balance:
        return []
    if not ctx.period.contains(payload.reporting_month or entry.date):
        return []
    row = ReportEntry(
        serial=0,
        source_kind=entry.kind.value,
        source_id=entry.id,
        entry_type=ReportEntryType.ADVANCE_PAYMENT,
        status=ReportEntryStatus.ADVANCE,
        vendor_name=entry.vendor_name,
        amount=entry.gross_amount,
        invoice_id=payload.linked_invoice_id,
        invoice_name=entry.description,
        invoice_amount=entry.gross_amount,
        payment_date=entry.date,
        payment_reference=entry.reference_number,
        currency=ctx.currency,
    )
    return [_Row(section=ctx.section_for(entry.payment_method_id), entry=row, order=ledger_order(entry))]


# ----------------------------------------------------------------------
# INVOICE_DATE handlers
# ----------------------------------------------------------------------


def _by_date_invoice(ctx: _ReportContext, entry: NormalizedEntry) -> list[_Row]:
    if not ctx.reportable(entry) or not ctx.period.contains(entry.payload.issue_date):
        return []
    rows = []
    for payment in ctx.payments.get(entry.id, ()):
        paid_here = ctx.period.contains(payment.date)
        entry_type = ReportEntryType.STANDARD if paid_here else ReportEntryType.LATE_PAYMENT
        rows.append(ctx.payment_row(payment, entry_type))
    if entry.payload.settlement.remaining_balance > ZERO:
        rows.append(ctx.unpaid_row(entry))
    return rows


def _by_date_skip(ctx: _ReportContext, entry: NormalizedEntry) -> list[_Row]:
    # Payments are emitted with their invoice; credit notes are netted into
    # the Unpaid balance; advances are not tied to an invoice date.
    return []


_Handler = Callable[[_ReportContext, NormalizedEntry], list[_Row]]

_HANDLERS: dict[ReportMode, dict[EntryKind, _Handler]] = {
    ReportMode.LIVE: dict(require_exhaustive(
        {
            EntryKind.INVOICE: _live_invoice,
            EntryKind.PAYMENT: _live_payment,
            EntryKind.CREDIT_NOTE: _live_credit_note,
            EntryKind.ADVANCE_PAYMENT: _live_advance,
        },
        "build_report(live)",
    )),
    ReportMode.INVOICE_DATE: dict(require_exhaustive(
        {
            EntryKind.INVOICE: _by_date_invoice,
            EntryKind.PAYMENT: _by_date_skip,
            EntryKind.CREDIT_NOTE: _by_date_skip,
            EntryKind.ADVANCE_PAYMENT: _by_date_skip,
        },
        "build_report(invoice_date)",
    )),
}


@traced_engine("report", "1.0", fingerprint_fields=("period", "mode"))
def build_report(
    entries: Iterable[NormalizedEntry],
    period: ReportPeriodKey,
    mode: ReportMode,
    payment_methods: Sequence[PaymentMethod],
    generated_at: datetime,
    places: int = DEFAULT_CURRENCY_PLACES,
    unpaid_label: str = UNPAID_SECTION_NAME,
    currency: str = DEFAULT_CURRENCY,
) -> MonthlyReport:
    """
    Group ``entries`` into the monthly report for ``period``.

    ``entries`` may span any range of dates; selection by period happens
    here so payments and credit notes can be matched to invoices from
    other months.  Invoice-linked rows carry their invoice's currency;
    advance payments have none of their own and carry ``currency``.
    """
    entries = list(entries)
    ctx = _ReportContext(entries, period, payment_methods, currency)
    handlers = _HANDLERS[mode]

    rows: list[_Row] = []
    failures: list[EntryFailure] = []
    for entry in entries:
        try:
            rows.extend(handlers[entry.kind](ctx, entry))
        except LedgerKernelError as exc:
            failures.append(EntryFailure(entry.kind, entry.id, exc.code, str(exc)))
            logger.warning(
                "report_entry_failed",
                extra={"entry_kind": entry.kind.value, "record_id": str(entry.id), "error_code": exc.code},
            )

    grouped: dict[UUID | None, list[_Row]] = defaultdict(list)
    for row in rows:
        grouped[row.section].append(row)

    ordered_methods = sorted(payment_methods, key=lambda m: (m.sort_order, m.name.casefold(), str(m.id)))
    layout: list[tuple[UUID | None, str]] = [(m.id, m.name) for m in ordered_methods]
    layout.append((None, unpaid_label))

    sections = []
    for method_id, name in layout:
        section_rows = sorted(grouped.get(method_id, ()), key=lambda r: r.order)
        if not section_rows:
            continue
        report_entries = tuple(r.entry.with_serial(i) for i, r in enumerate(section_rows, start=1))
        sections.append(
            ReportSection(
                payment_method_id=method_id,
                name=name,
                entries=report_entries,
                subtotal=sum((e.amount for e in report_entries), ZERO),
            )
        )

    report = MonthlyReport(
        period=period,
        mode=mode,
        sections=tuple(sections),
        grand_total=sum((s.subtotal for s in sections), ZERO),
        generated_at=generated_at,
        currency_places=places,
        failures=tuple(failures),
    )
    logger.info(
        "report_built",
        extra={
            "report_period": period.label,
            "mode": mode.value,
            "section_count": len(report.sections),
            "entry_count": report.total_entries,
            "failure_count": len(failures),
            "grand_total": report.grand_total,
        },
    )
    return report
