"""
Module: ledger_kernel.selectors.document_selector
Responsibility: Fetch contract for the engines -- lists invoices, payments,
    credit notes, advance payments and payment methods as frozen domain
    objects.
Architecture position: Kernel > Selectors.  Read-only.

Invariants enforced:
    - Soft-deleted invoices never leave the selector.
    - Archived invoices are excluded unless ``include_archived`` is set.
    - Results are ordered deterministically (date, then id) so the engines'
      insertion-order tie-breaks are reproducible across calls.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select

from ledger_kernel.domain.documents import (
    AdvancePayment,
    ApprovalStatus,
    CreditNote,
    Invoice,
    InvoiceStatus,
    Payment,
    PaymentMethod,
)
from ledger_kernel.exceptions import DocumentNotFoundError
from ledger_kernel.models.documents import (
    AdvancePaymentModel,
    CreditNoteModel,
    InvoiceModel,
    PaymentMethodModel,
    PaymentModel,
    VendorModel,
)
from ledger_kernel.selectors.base import BaseSelector


@dataclass(frozen=True)
class DocumentFilter:
    """Storage-level pre-filter; fine-grained filtering happens in the feed."""

    profile_id: UUID | None = None
    vendor_id: UUID | None = None
    invoice_ids: tuple[UUID, ...] | None = None
    date_from: date | None = None
    date_to: date | None = None
    include_archived: bool = False


class DocumentSelector(BaseSelector):
    """Read-only access to source documents."""

    def list_invoices(self, doc_filter: DocumentFilter | None = None) -> list[Invoice]:
        f = doc_filter or DocumentFilter()
        stmt = (
            select(InvoiceModel, VendorModel.name)
            .join(VendorModel, VendorModel.id == InvoiceModel.vendor_id)
            .where(InvoiceModel.deleted_at.is_(None))
        )
        if not f.include_archived:
            stmt = stmt.where(InvoiceModel.is_archived.is_(False))
        if f.profile_id is not None:
            stmt = stmt.where(InvoiceModel.profile_id == f.profile_id)
        if f.vendor_id is not None:
            stmt = stmt.where(InvoiceModel.vendor_id == f.vendor_id)
        if f.invoice_ids is not None:
            stmt = stmt.where(InvoiceModel.id.in_(f.invoice_ids))
        if f.date_from is not None:
            stmt = stmt.where(InvoiceModel.issue_date >= f.date_from)
        if f.date_to is not None:
            stmt = stmt.where(InvoiceModel.issue_date <= f.date_to)
        stmt = stmt.order_by(InvoiceModel.issue_date, InvoiceModel.created_at, InvoiceModel.id)

        return [_invoice_to_dto(row, vendor_name) for row, vendor_name in self.session.execute(stmt)]

    def get_invoice(self, invoice_id: UUID) -> Invoice:
        """
        Raises:
            DocumentNotFoundError: If no live invoice has this id.
        """
        stmt = (
            select(InvoiceModel, VendorModel.name)
            .join(VendorModel, VendorModel.id == InvoiceModel.vendor_id)
            .where(InvoiceModel.id == invoice_id, InvoiceModel.deleted_at.is_(None))
        )
        row = self.session.execute(stmt).first()
        if row is None:
            raise DocumentNotFoundError("invoice", str(invoice_id))
        return _invoice_to_dto(row[0], row[1])

    def list_payments(self, invoice_ids: Iterable[UUID] | None = None) -> list[Payment]:
        stmt = select(PaymentModel)
        if invoice_ids is not None:
            stmt = stmt.where(PaymentModel.invoice_id.in_(list(invoice_ids)))
        stmt = stmt.order_by(PaymentModel.payment_date, PaymentModel.created_at, PaymentModel.id)
        return [_payment_to_dto(p) for p in self.session.scalars(stmt)]

    def list_credit_notes(self, doc_filter: DocumentFilter | None = None) -> list[CreditNote]:
        f = doc_filter or DocumentFilter()
        stmt = select(CreditNoteModel)
        if f.invoice_ids is not None:
            stmt = stmt.where(CreditNoteModel.invoice_id.in_(f.invoice_ids))
        if f.date_from is not None:
            stmt = stmt.where(CreditNoteModel.credit_note_date >= f.date_from)
        if f.date_to is not None:
            stmt = stmt.where(CreditNoteModel.credit_note_date <= f.date_to)
        stmt = stmt.order_by(
            CreditNoteModel.credit_note_date, CreditNoteModel.created_at, CreditNoteModel.id
        )
        return [_credit_note_to_dto(c) for c in self.session.scalars(stmt)]

    def list_advance_payments(
        self, doc_filter: DocumentFilter | None = None
    ) -> list[AdvancePayment]:
        f = doc_filter or DocumentFilter()
        stmt = select(AdvancePaymentModel, VendorModel.name).join(
            VendorModel, VendorModel.id == AdvancePaymentModel.vendor_id
        )
        if f.profile_id is not None:
            stmt = stmt.where(AdvancePaymentModel.profile_id == f.profile_id)
        if f.vendor_id is not None:
            stmt = stmt.where(AdvancePaymentModel.vendor_id == f.vendor_id)
        if f.date_from is not None:
            stmt = stmt.where(AdvancePaymentModel.payment_date >= f.date_from)
        if f.date_to is not None:
            stmt = stmt.where(AdvancePaymentModel.payment_date <= f.date_to)
        stmt = stmt.order_by(
            AdvancePaymentModel.payment_date, AdvancePaymentModel.created_at, AdvancePaymentModel.id
        )
        return [_advance_to_dto(a, vendor_name) for a, vendor_name in self.session.execute(stmt)]

    def list_payment_methods(self, active_only: bool = True) -> list[PaymentMethod]:
        stmt = select(PaymentMethodModel)
        if active_only:
            stmt = stmt.where(PaymentMethodModel.is_active.is_(True))
        stmt = stmt.order_by(PaymentMethodModel.sort_order, PaymentMethodModel.name)
        return [
            PaymentMethod(id=m.id, name=m.name, sort_order=m.sort_order)
            for m in self.session.scalars(stmt)
        ]


def _dec(value: Decimal | None) -> Decimal | None:
    # Some drivers hand back Numeric as str or int
    return None if value is None else Decimal(value)


def _invoice_to_dto(row: InvoiceModel, vendor_name: str) -> Invoice:
    return Invoice(
        id=row.id,
        invoice_number=row.invoice_number,
        vendor_id=row.vendor_id,
        vendor_name=vendor_name,
        gross_amount=_dec(row.gross_amount),
        issue_date=row.issue_date,
        status=InvoiceStatus(row.status),
        profile_id=row.profile_id,
        profile_name=row.profile_name,
        currency=row.currency,
        due_date=row.due_date,
        withholding_applicable=row.withholding_applicable,
        withholding_percentage=_dec(row.withholding_percentage),
        withholding_round_up=row.withholding_round_up,
        is_recurring=row.is_recurring,
        name=row.name,
        description=row.description,
        entity_id=row.entity_id,
        category_id=row.category_id,
        category_name=row.category_name,
        reporting_month=row.reporting_month,
        is_archived=row.is_archived,
        notes=row.notes,
        created_at=row.created_at,
    )


def _payment_to_dto(row: PaymentModel) -> Payment:
    return Payment(
        id=row.id,
        invoice_id=row.invoice_id,
        amount=_dec(row.amount),
        payment_date=row.payment_date,
        status=ApprovalStatus(row.status),
        payment_method_id=row.payment_method_id,
        transaction_reference=row.transaction_reference,
        withholding_applied=_dec(row.withholding_applied),
        withholding_round_up=row.withholding_round_up,
        created_at=row.created_at,
    )


def _credit_note_to_dto(row: CreditNoteModel) -> CreditNote:
    return CreditNote(
        id=row.id,
        invoice_id=row.invoice_id,
        credit_note_number=row.credit_note_number,
        amount=_dec(row.amount),
        credit_note_date=row.credit_note_date,
        status=ApprovalStatus(row.status),
        withholding_reversal=_dec(row.withholding_reversal),
        reason=row.reason,
        created_at=row.created_at,
    )


def _advance_to_dto(row: AdvancePaymentModel, vendor_name: str) -> AdvancePayment:
    return AdvancePayment(
        id=row.id,
        vendor_id=row.vendor_id,
        vendor_name=vendor_name,
        amount=_dec(row.amount),
        payment_date=row.payment_date,
        status=ApprovalStatus(row.status),
        payment_method_id=row.payment_method_id,
        description=row.description,
        payment_reference=row.payment_reference,
        linked_invoice_id=row.linked_invoice_id,
        profile_id=row.profile_id,
        reporting_month=row.reporting_month,
        is_refund=row.is_refund,
        created_at=row.created_at,
    )
