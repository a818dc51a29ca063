"""
Entry Normalizer -- source documents to ``NormalizedEntry``.

Responsibility:
    Convert the four source document kinds (invoice, payment, credit note,
    advance payment) into the single tagged entry type every downstream
    engine consumes.  Validates the business rules the document
    constructors do not, and computes each invoice's settlement from its
    approved payments and credit notes.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  ``as_of`` is passed in;
    the normalizer never reads the clock.

Invariants enforced:
    - Total over the four kinds: the handler table is checked with
      ``require_exhaustive`` at import time.
    - Credit notes and advance refunds are negated (amount and
      withholding) so downstream arithmetic never branches on kind.
    - Raw ``status`` is preserved; ``display_status`` folds in the paid
      percentage ("paid 60%", "partial 40%") for read models only.

Failure modes:
    - ``normalize`` raises the typed ``InvalidInputError`` /
      ``NotFoundError`` subclasses.
    - ``normalize_all`` never raises for a bad record; it reports an
      ``EntryFailure`` and carries on with the rest.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from uuid import UUID

from ledger_engines.tracer import traced_engine
from ledger_engines.withholding import withhold
from ledger_kernel.domain.documents import (
    BALANCE_BEARING_INVOICE_STATUSES,
    AdvancePayment,
    ApprovalStatus,
    CreditNote,
    Invoice,
    InvoiceStatus,
    Payment,
    PaymentMethod,
    SourceRecord,
)
from ledger_kernel.domain.entries import (
    AdvancePaymentPayload,
    CreditNotePayload,
    EntryFailure,
    EntryKind,
    InvoicePayload,
    InvoiceSettlement,
    NormalizedEntry,
    PaymentPayload,
    require_exhaustive,
)
from ledger_kernel.domain.values import (
    DEFAULT_CURRENCY_PLACES,
    MAX_AMOUNT,
    ZERO,
    percentage_of,
    to_decimal,
)
from ledger_kernel.exceptions import (
    DocumentNotFoundError,
    LedgerKernelError,
    MissingWithholdingPercentageError,
    NegativeAmountError,
    UnexpectedWithholdingPercentageError,
    UnsupportedEntryKindError,
)
from ledger_kernel.logging_config import get_logger

logger = get_logger("engines.normalizer")

RECORD_KINDS: dict[type, EntryKind] = {
    Invoice: EntryKind.INVOICE,
    Payment: EntryKind.PAYMENT,
    CreditNote: EntryKind.CREDIT_NOTE,
    AdvancePayment: EntryKind.ADVANCE_PAYMENT,
}

_APPROVED = ApprovalStatus.APPROVED


def kind_of(record: object) -> EntryKind:
    """
    Entry kind of a source record.

    Raises:
        UnsupportedEntryKindError: not one of the four document types.
    """
    kind = RECORD_KINDS.get(type(record))
    if kind is None:
        raise UnsupportedEntryKindError(type(record).__name__)
    return kind


@dataclass(frozen=True)
class NormalizationResult:
    """Entries in input order plus the records that were flagged."""

    entries: tuple[NormalizedEntry, ...]
    failures: tuple[EntryFailure, ...] = ()

    @property
    def has_failures(self) -> bool:
        return bool(self.failures)


class EntryNormalizer:
    """
    Normalizes source records against a fixed set of invoices.

    Payments and credit notes are resolved against ``invoices`` for vendor,
    profile and withholding context; the approved ones also feed each
    invoice's settlement.
    """

    def __init__(
        self,
        invoices: Iterable[Invoice],
        payments: Iterable[Payment] = (),
        payment_methods: Iterable[PaymentMethod] = (),
        as_of: date | None = None,
        credit_notes: Iterable[CreditNote] = (),
        places: int = DEFAULT_CURRENCY_PLACES,
        rounding: str = ROUND_HALF_UP,
    ):
        self._invoices: dict[UUID, Invoice] = {inv.id: inv for inv in invoices}
        self._methods: dict[UUID, PaymentMethod] = {m.id: m for m in payment_methods}
        self._as_of = as_of
        self._places = places
        self._rounding = rounding

        self._paid: dict[UUID, Decimal] = defaultdict(lambda: ZERO)
        for payment in payments:
            if payment.status == _APPROVED and _is_exact(payment.amount):
                self._paid[payment.invoice_id] += payment.amount

        self._credited: dict[UUID, Decimal] = defaultdict(lambda: ZERO)
        for note in credit_notes:
            reversal = note.withholding_reversal or ZERO
            if note.status == _APPROVED and _is_exact(note.amount) and _is_exact(reversal):
                self._credited[note.invoice_id] += note.amount - reversal

        self._settlements: dict[UUID, InvoiceSettlement] = {}

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def normalize(self, record: SourceRecord, sequence: int = 0) -> NormalizedEntry:
        """
        Project one record onto ``NormalizedEntry``.

        Raises:
            UnsupportedEntryKindError, NegativeAmountError,
            MissingWithholdingPercentageError,
            UnexpectedWithholdingPercentageError,
            InvalidWithholdingPercentageError, InvalidAmountError,
            DocumentNotFoundError (payment or credit note for an unknown invoice).
        """
        kind = kind_of(record)
        return self._HANDLERS[kind](self, record, sequence)

    @traced_engine("normalizer", "1.0")
    def normalize_all(self, records: Sequence[SourceRecord]) -> NormalizationResult:
        """Normalize every record; bad records become ``EntryFailure`` values."""
        entries: list[NormalizedEntry] = []
        failures: list[EntryFailure] = []

        for sequence, record in enumerate(records):
            try:
                entries.append(self.normalize(record, sequence))
            except LedgerKernelError as exc:
                failure = EntryFailure(
                    kind=RECORD_KINDS.get(type(record)),
                    record_id=getattr(record, "id", None),
                    code=exc.code,
                    message=str(exc),
                )
                failures.append(failure)
                logger.warning(
                    "entry_normalization_failed",
                    extra={
                        "entry_kind": failure.kind.value if failure.kind else None,
                        "record_id": str(failure.record_id),
                        "error_code": failure.code,
                    },
                )

        return NormalizationResult(entries=tuple(entries), failures=tuple(failures))

    def settlement(self, invoice: Invoice) -> InvoiceSettlement:
        """
        Settlement of ``invoice`` from approved payments and credit notes.

        Raises:
            MissingWithholdingPercentageError,
            UnexpectedWithholdingPercentageError,
            InvalidWithholdingPercentageError, InvalidAmountError.
        """
        cached = self._settlements.get(invoice.id)
        if cached is not None:
            return cached

        split = withhold(
            invoice.gross_amount,
            _effective_percentage(invoice),
            invoice.withholding_round_up,
            self._places,
            self._rounding,
        )
        paid = self._paid[invoice.id]
        credited = self._credited[invoice.id]
        remaining = split.payable_amount - credited - paid

        result = InvoiceSettlement(
            payable_amount=split.payable_amount,
            withheld_amount=split.withheld_amount,
            paid_amount=paid,
            credited_amount=credited,
            remaining_balance=remaining,
            paid_percentage=percentage_of(paid, split.payable_amount - credited),
        )
        self._settlements[invoice.id] = result
        return result

    # ------------------------------------------------------------------
    # Per-kind handlers
    # ------------------------------------------------------------------

    def _invoice_entry(self, invoice: Invoice, sequence: int) -> NormalizedEntry:
        gross = to_decimal(invoice.gross_amount)
        if gross < ZERO:
            raise NegativeAmountError("invoice", str(invoice.id), str(gross))

        settlement = self.settlement(invoice)
        counts = invoice.status in BALANCE_BEARING_INVOICE_STATUSES
        overdue = (
            counts
            and self._as_of is not None
            and invoice.due_date is not None
            and invoice.due_date < self._as_of
            and settlement.remaining_balance > ZERO
        )

        return NormalizedEntry(
            kind=EntryKind.INVOICE,
            id=invoice.id,
            date=invoice.issue_date,
            gross_amount=gross,
            withholding_amount=settlement.withheld_amount,
            status=invoice.status.value,
            display_status=_invoice_display_status(
                derive_invoice_status(invoice.status, settlement, overdue), settlement
            ),
            vendor_id=invoice.vendor_id,
            vendor_name=invoice.vendor_name,
            reference_number=invoice.invoice_number,
            description=invoice.description or invoice.name or f"Invoice #{invoice.invoice_number}",
            profile_id=invoice.profile_id,
            category_id=invoice.category_id,
            entity_id=invoice.entity_id,
            counts_toward_balance=counts,
            sequence=sequence,
            payload=InvoicePayload(
                invoice_number=invoice.invoice_number,
                issue_date=invoice.issue_date,
                settlement=settlement,
                currency=invoice.currency,
                due_date=invoice.due_date,
                reporting_month=invoice.reporting_month,
                withholding_applicable=invoice.withholding_applicable,
                withholding_percentage=invoice.withholding_percentage,
                withholding_round_up=invoice.withholding_round_up,
                is_recurring=invoice.is_recurring,
                is_archived=invoice.is_archived,
                is_overdue=overdue,
                profile_name=invoice.profile_name,
                category_name=invoice.category_name,
                notes=invoice.notes,
            ),
        )

    def _payment_entry(self, payment: Payment, sequence: int) -> NormalizedEntry:
        amount = to_decimal(payment.amount)
        if amount < ZERO:
            raise NegativeAmountError("payment", str(payment.id), str(amount))
        invoice = self._invoice_for("payment", payment.id, payment.invoice_id)

        pct = _effective_percentage(invoice)
        if payment.withholding_applied is not None:
            withheld = to_decimal(payment.withholding_applied)
        else:
            # Recomputed with the flag recorded on the payment, not the invoice's current one
            withheld = withhold(
                invoice.gross_amount, pct, payment.withholding_round_up,
                self._places, self._rounding,
            ).withheld_amount

        if payment.status == _APPROVED:
            settlement = self.settlement(invoice)
            share = percentage_of(amount, settlement.payable_amount - settlement.credited_amount)
            label = "paid" if settlement.is_fully_paid else "partial"
            display = f"{label} {share}%" if 0 < share < 100 else label
        else:
            display = payment.status.value

        method = self._methods.get(payment.payment_method_id) if payment.payment_method_id else None

        return NormalizedEntry(
            kind=EntryKind.PAYMENT,
            id=payment.id,
            date=payment.payment_date,
            gross_amount=amount,
            withholding_amount=withheld,
            status=payment.status.value,
            display_status=display,
            vendor_id=invoice.vendor_id,
            vendor_name=invoice.vendor_name,
            reference_number=payment.transaction_reference or invoice.invoice_number,
            description=f"Payment ({method.name})" if method else "Payment",
            profile_id=invoice.profile_id,
            payment_method_id=payment.payment_method_id,
            category_id=invoice.category_id,
            entity_id=invoice.entity_id,
            counts_toward_balance=(
                payment.status == _APPROVED
                and invoice.status in BALANCE_BEARING_INVOICE_STATUSES
            ),
            sequence=sequence,
            payload=PaymentPayload(
                invoice_id=invoice.id,
                invoice_number=invoice.invoice_number,
                invoice_issue_date=invoice.issue_date,
                invoice_reporting_month=invoice.reporting_month,
                invoice_gross_amount=to_decimal(invoice.gross_amount),
                withholding_percentage=pct,
                withholding_applied=payment.withholding_applied,
                withholding_round_up=payment.withholding_round_up,
                transaction_reference=payment.transaction_reference,
            ),
        )

    def _credit_note_entry(self, note: CreditNote, sequence: int) -> NormalizedEntry:
        amount = to_decimal(note.amount)
        if amount < ZERO:
            raise NegativeAmountError("credit_note", str(note.id), str(amount))
        reversal = to_decimal(note.withholding_reversal or ZERO)
        invoice = self._invoice_for("credit_note", note.id, note.invoice_id)

        return NormalizedEntry(
            kind=EntryKind.CREDIT_NOTE,
            id=note.id,
            date=note.credit_note_date,
            gross_amount=-amount,
            withholding_amount=-reversal,
            status=note.status.value,
            display_status=note.status.value,
            vendor_id=invoice.vendor_id,
            vendor_name=invoice.vendor_name,
            reference_number=note.credit_note_number,
            description=note.reason or f"Credit note against #{invoice.invoice_number}",
            profile_id=invoice.profile_id,
            category_id=invoice.category_id,
            entity_id=invoice.entity_id,
            counts_toward_balance=(
                note.status == _APPROVED
                and invoice.status in BALANCE_BEARING_INVOICE_STATUSES
            ),
            sequence=sequence,
            payload=CreditNotePayload(
                invoice_id=invoice.id,
                invoice_number=invoice.invoice_number,
                credit_note_number=note.credit_note_number,
                withholding_reversal=reversal,
                reason=note.reason,
            ),
        )

    def _advance_entry(self, advance: AdvancePayment, sequence: int) -> NormalizedEntry:
        amount = to_decimal(advance.amount)
        if amount < ZERO:
            raise NegativeAmountError("advance_payment", str(advance.id), str(amount))

        display = advance.status.value
        if advance.is_refund and advance.status == _APPROVED:
            display = "refunded"

        return NormalizedEntry(
            kind=EntryKind.ADVANCE_PAYMENT,
            id=advance.id,
            date=advance.payment_date,
            gross_amount=-amount if advance.is_refund else amount,
            status=advance.status.value,
            display_status=display,
            vendor_id=advance.vendor_id,
            vendor_name=advance.vendor_name,
            reference_number=advance.payment_reference or advance_reference(advance.id),
            description=advance.description,
            profile_id=advance.profile_id,
            payment_method_id=advance.payment_method_id,
            counts_toward_balance=advance.status == _APPROVED,
            sequence=sequence,
            payload=AdvancePaymentPayload(
                linked_invoice_id=advance.linked_invoice_id,
                payment_reference=advance.payment_reference,
                reporting_month=advance.reporting_month,
                is_refund=advance.is_refund,
            ),
        )

    _HANDLERS = require_exhaustive(
        {
            EntryKind.INVOICE: _invoice_entry,
            EntryKind.PAYMENT: _payment_entry,
            EntryKind.CREDIT_NOTE: _credit_note_entry,
            EntryKind.ADVANCE_PAYMENT: _advance_entry,
        },
        "EntryNormalizer",
    )

    def _invoice_for(self, kind: str, record_id: UUID, invoice_id: UUID) -> Invoice:
        invoice = self._invoices.get(invoice_id)
        if invoice is None:
            logger.debug(
                "parent_invoice_missing",
                extra={"entry_kind": kind, "record_id": str(record_id)},
            )
            raise DocumentNotFoundError("invoice", str(invoice_id))
        return invoice


def advance_reference(advance_id: UUID) -> str:
    """Fallback reference for an advance without one, e.g. "ADV-1A2B3C4D"."""
    return f"ADV-{advance_id.hex[:8].upper()}"


def _effective_percentage(invoice: Invoice) -> Decimal | None:
    if invoice.withholding_applicable:
        if invoice.withholding_percentage is None:
            raise MissingWithholdingPercentageError(str(invoice.id))
        return invoice.withholding_percentage
    if invoice.withholding_percentage is not None:
        raise UnexpectedWithholdingPercentageError(
            str(invoice.id), str(invoice.withholding_percentage)
        )
    return None


def derive_invoice_status(
    status: InvoiceStatus,
    settlement: InvoiceSettlement,
    is_overdue: bool = False,
) -> InvoiceStatus:
    """
    Status implied by an invoice's settlement.

    Invoices outside the payable lifecycle (pending, rejected) and invoices
    on hold keep their stored status.
    """
    if status not in BALANCE_BEARING_INVOICE_STATUSES or status == InvoiceStatus.ON_HOLD:
        return status
    if settlement.is_fully_paid:
        return InvoiceStatus.PAID
    if is_overdue:
        return InvoiceStatus.OVERDUE
    if settlement.paid_amount > ZERO:
        return InvoiceStatus.PARTIAL
    return InvoiceStatus.UNPAID


def _invoice_display_status(derived: InvoiceStatus, settlement: InvoiceSettlement) -> str:
    pct = settlement.paid_percentage
    if derived == InvoiceStatus.PAID and 0 < pct < 100:
        return f"paid {pct}%"
    if derived == InvoiceStatus.PARTIAL and 0 < pct < 100:
        return f"partial {pct}%"
    return derived.value


def _is_exact(value: object) -> bool:
    # Invalid amounts are skipped here and flagged when their record is normalized
    if isinstance(value, bool):
        return False
    if isinstance(value, Decimal):
        return value.is_finite() and abs(value) < MAX_AMOUNT
    return isinstance(value, int) and abs(value) < MAX_AMOUNT
