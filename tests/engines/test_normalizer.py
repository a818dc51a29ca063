"""
Tests for the Entry Normalizer.

Covers:
- Projection of each document kind onto NormalizedEntry
- Invoice settlement from approved payments and credit notes
- Derived and display statuses
- Flagging of malformed records without aborting the batch
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from ledger_engines.normalizer import (
    EntryNormalizer,
    derive_invoice_status,
    kind_of,
)
from ledger_kernel.domain.documents import ApprovalStatus, InvoiceStatus
from ledger_kernel.domain.entries import EntryKind, InvoiceSettlement
from ledger_kernel.exceptions import (
    DocumentNotFoundError,
    MissingWithholdingPercentageError,
    NegativeAmountError,
    UnexpectedWithholdingPercentageError,
    UnsupportedEntryKindError,
)


def _settlement(paid: str = "0", remaining: str = "100") -> InvoiceSettlement:
    return InvoiceSettlement(
        payable_amount=Decimal("100"),
        withheld_amount=Decimal("0"),
        paid_amount=Decimal(paid),
        credited_amount=Decimal("0"),
        remaining_balance=Decimal(remaining),
        paid_percentage=int(Decimal(paid)),
    )


class TestInvoiceProjection:
    def test_invoice_entry_fields(self, documents):
        invoice = documents.invoice("10000", percentage="10", description="Office rent")
        entry = EntryNormalizer([invoice]).normalize(invoice)

        assert entry.kind == EntryKind.INVOICE
        assert entry.gross_amount == Decimal("10000")
        assert entry.withholding_amount == Decimal("1000.00")
        assert entry.reference_number == invoice.invoice_number
        assert entry.description == "Office rent"
        assert entry.vendor_name == "Acme Supplies"
        assert entry.counts_toward_balance is True

    def test_settlement_with_payment(self, documents):
        invoice = documents.invoice("10000", percentage="10")
        payment = documents.payment(invoice, "9000")
        normalizer = EntryNormalizer([invoice], payments=[payment])

        settlement = normalizer.settlement(invoice)

        assert settlement.payable_amount == Decimal("9000.00")
        assert settlement.paid_amount == Decimal("9000")
        assert settlement.remaining_balance == Decimal("0.00")
        assert settlement.paid_percentage == 100
        assert normalizer.normalize(invoice).display_status == "paid"

    def test_pending_payment_does_not_settle(self, documents):
        invoice = documents.invoice("1000")
        payment = documents.payment(invoice, "1000", status=ApprovalStatus.PENDING_APPROVAL)

        settlement = EntryNormalizer([invoice], payments=[payment]).settlement(invoice)

        assert settlement.paid_amount == Decimal("0")
        assert settlement.remaining_balance == Decimal("1000")

    def test_credit_note_reduces_remaining(self, documents):
        invoice = documents.invoice("1000", percentage="10")
        note = documents.credit_note(invoice, "200", reversal="20")

        settlement = EntryNormalizer([invoice], credit_notes=[note]).settlement(invoice)

        assert settlement.credited_amount == Decimal("180")
        assert settlement.remaining_balance == Decimal("720.00")

    def test_partial_display_status(self, documents):
        invoice = documents.invoice("1000")
        payment = documents.payment(invoice, "400")

        entry = EntryNormalizer([invoice], payments=[payment]).normalize(invoice)

        assert entry.status == "unpaid"
        assert entry.display_status == "partial 40%"

    def test_overdue_as_of(self, documents):
        invoice = documents.invoice("1000", due_date=date(2026, 3, 31))

        entry = EntryNormalizer([invoice], as_of=date(2026, 4, 15)).normalize(invoice)

        assert entry.payload.is_overdue is True
        assert entry.display_status == "overdue"

    def test_not_overdue_without_as_of(self, documents):
        invoice = documents.invoice("1000", due_date=date(2026, 3, 31))

        entry = EntryNormalizer([invoice]).normalize(invoice)

        assert entry.payload.is_overdue is False

    def test_pending_invoice_does_not_count(self, documents):
        invoice = documents.invoice("1000", status=InvoiceStatus.PENDING_APPROVAL)

        entry = EntryNormalizer([invoice]).normalize(invoice)

        assert entry.counts_toward_balance is False
        assert entry.display_status == "pending_approval"

    def test_description_falls_back_to_number(self, documents):
        invoice = documents.invoice("1000")

        entry = EntryNormalizer([invoice]).normalize(invoice)

        assert entry.description == f"Invoice #{invoice.invoice_number}"


class TestPaymentProjection:
    def test_payment_inherits_invoice_context(self, documents):
        profile_id = uuid4()
        method = documents.method("NEFT")
        invoice = documents.invoice("10000", percentage="10", profile_id=profile_id)
        payment = documents.payment(invoice, "9000", method=method, transaction_reference="UTR-1")

        entry = EntryNormalizer([invoice], [payment], [method]).normalize(payment)

        assert entry.kind == EntryKind.PAYMENT
        assert entry.profile_id == profile_id
        assert entry.vendor_id == invoice.vendor_id
        assert entry.reference_number == "UTR-1"
        assert entry.description == "Payment (NEFT)"
        assert entry.withholding_amount == Decimal("1000.00")
        assert entry.display_status == "paid"

    def test_reference_falls_back_to_invoice_number(self, documents):
        invoice = documents.invoice("1000")
        payment = documents.payment(invoice, "500")

        entry = EntryNormalizer([invoice], [payment]).normalize(payment)

        assert entry.reference_number == invoice.invoice_number
        assert entry.description == "Payment"

    def test_recorded_withholding_overrides(self, documents):
        invoice = documents.invoice("333", percentage="7")
        payment = documents.payment(invoice, "309", withholding_applied=Decimal("24"))

        entry = EntryNormalizer([invoice], [payment]).normalize(payment)

        assert entry.withholding_amount == Decimal("24")

    def test_payment_uses_its_own_rounding_flag(self, documents):
        invoice = documents.invoice("333", percentage="7", round_up=False)
        payment = documents.payment(invoice, "309", withholding_round_up=True)

        entry = EntryNormalizer([invoice], [payment]).normalize(payment)

        assert entry.withholding_amount == Decimal("24.00")

    def test_partial_payment_display(self, documents):
        invoice = documents.invoice("1000")
        first = documents.payment(invoice, "250")

        entry = EntryNormalizer([invoice], [first]).normalize(first)

        assert entry.display_status == "partial 25%"

    def test_payment_for_unknown_invoice(self, documents):
        invoice = documents.invoice("1000")
        payment = documents.payment(invoice, "100")

        with pytest.raises(DocumentNotFoundError):
            EntryNormalizer([]).normalize(payment)


class TestCreditNoteAndAdvance:
    def test_credit_note_is_negated(self, documents):
        invoice = documents.invoice("1000", percentage="10")
        note = documents.credit_note(invoice, "200", reversal="20", reason="Damaged goods")

        entry = EntryNormalizer([invoice], credit_notes=[note]).normalize(note)

        assert entry.kind == EntryKind.CREDIT_NOTE
        assert entry.gross_amount == Decimal("-200")
        assert entry.withholding_amount == Decimal("-20")
        assert entry.reference_number == note.credit_note_number
        assert entry.description == "Damaged goods"

    def test_advance_reference_fallback(self, documents):
        advance = documents.advance("5000")

        entry = EntryNormalizer([]).normalize(advance)

        assert entry.kind == EntryKind.ADVANCE_PAYMENT
        assert entry.reference_number == f"ADV-{advance.id.hex[:8].upper()}"
        assert entry.counts_toward_balance is True

    def test_refund_is_negated(self, documents):
        advance = documents.advance("5000", is_refund=True)

        entry = EntryNormalizer([]).normalize(advance)

        assert entry.gross_amount == Decimal("-5000")
        assert entry.display_status == "refunded"

    def test_rejected_advance_does_not_count(self, documents):
        advance = documents.advance("5000", status=ApprovalStatus.REJECTED)

        entry = EntryNormalizer([]).normalize(advance)

        assert entry.counts_toward_balance is False


class TestFlagging:
    """Bad records are reported, never dropped silently or fatal."""

    def test_missing_percentage(self, documents):
        invoice = documents.invoice("1000", withholding_applicable=True)

        with pytest.raises(MissingWithholdingPercentageError):
            EntryNormalizer([invoice]).normalize(invoice)

    def test_percentage_without_flag(self, documents):
        invoice = documents.invoice("1000", withholding_percentage=Decimal("5"))

        with pytest.raises(UnexpectedWithholdingPercentageError):
            EntryNormalizer([invoice]).normalize(invoice)

    def test_negative_invoice(self, documents):
        invoice = documents.invoice("-10")

        with pytest.raises(NegativeAmountError):
            EntryNormalizer([invoice]).normalize(invoice)

    def test_unsupported_record(self):
        with pytest.raises(UnsupportedEntryKindError):
            kind_of(object())

    def test_normalize_all_reports_and_continues(self, documents, captured_logs):
        good = documents.invoice("1000")
        bad = documents.invoice("1000", withholding_applicable=True)
        payment = documents.payment(good, "100")

        result = EntryNormalizer([good, bad], [payment]).normalize_all([good, bad, payment])

        assert [e.id for e in result.entries] == [good.id, payment.id]
        assert [e.sequence for e in result.entries] == [0, 2]
        assert result.has_failures
        (failure,) = result.failures
        assert failure.record_id == bad.id
        assert failure.kind == EntryKind.INVOICE
        assert failure.code == "MISSING_WITHHOLDING_PERCENTAGE"

        logs = captured_logs()
        assert any(r["message"] == "entry_normalization_failed" for r in logs)
        traces = [r for r in logs if r["message"] == "LEDGER_ENGINE_TRACE"]
        assert traces and traces[-1]["engine_name"] == "normalizer"

    def test_oversized_amount_flagged_in_batch(self, documents):
        good = documents.invoice("1000")
        huge = documents.invoice("1E+28", percentage="10")
        payment = documents.payment(huge, "100")

        result = EntryNormalizer([good, huge], [payment]).normalize_all([good, huge, payment])

        assert [e.id for e in result.entries] == [good.id]
        assert [f.record_id for f in result.failures] == [huge.id, payment.id]
        assert {f.code for f in result.failures} == {"INVALID_AMOUNT"}

    def test_unknown_record_in_batch(self, documents):
        invoice = documents.invoice("1000")

        result = EntryNormalizer([invoice]).normalize_all([invoice, "not a document"])

        assert len(result.entries) == 1
        assert result.failures[0].kind is None
        assert result.failures[0].code == "UNSUPPORTED_ENTRY_KIND"


class TestDeriveInvoiceStatus:
    @pytest.mark.parametrize(
        "stored",
        [InvoiceStatus.PENDING_APPROVAL, InvoiceStatus.REJECTED, InvoiceStatus.ON_HOLD],
    )
    def test_outside_payable_lifecycle_unchanged(self, stored):
        assert derive_invoice_status(stored, _settlement(remaining="0")) == stored

    def test_fully_paid(self):
        assert derive_invoice_status(InvoiceStatus.UNPAID, _settlement("100", "0")) == InvoiceStatus.PAID

    def test_overdue_wins_over_partial(self):
        status = derive_invoice_status(InvoiceStatus.UNPAID, _settlement("40", "60"), is_overdue=True)

        assert status == InvoiceStatus.OVERDUE

    def test_partial(self):
        assert derive_invoice_status(InvoiceStatus.UNPAID, _settlement("40", "60")) == InvoiceStatus.PARTIAL

    def test_unpaid(self):
        assert derive_invoice_status(InvoiceStatus.PARTIAL, _settlement()) == InvoiceStatus.UNPAID
