"""
Module: ledger_kernel.models.documents
Responsibility: ORM persistence for the source documents the engines read:
    vendors, payment methods, invoices, payments, credit notes and advance
    payments.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Monetary columns are Numeric(38, 9) via the Base type map.
    - Status columns hold the raw enum values of
      ``ledger_kernel.domain.documents``; services change them only through
      compare-and-swap UPDATEs.
    - Deletion is soft (``deleted_at``); selectors exclude deleted rows.

Failure modes:
    - IntegrityError on a payment/credit note whose invoice does not exist.
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import TrackedBase, UUIDString


class VendorModel(TrackedBase):
    __tablename__ = "vendors"

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    status: Mapped[str] = mapped_column(String(20), default="approved", nullable=False)

    def __repr__(self) -> str:
        return f"<Vendor {self.name}: {self.status}>"


class PaymentMethodModel(TrackedBase):
    """A payment type; ``sort_order`` fixes the report section order."""

    __tablename__ = "payment_methods"

    __table_args__ = (UniqueConstraint("name", name="uq_payment_method_name"),)

    name: Mapped[str] = mapped_column(String(100), nullable=False)
    sort_order: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)


class InvoiceModel(TrackedBase):
    __tablename__ = "invoices"

    __table_args__ = (
        Index("idx_invoice_profile", "profile_id"),
        Index("idx_invoice_issue_date", "issue_date"),
        Index("idx_invoice_reporting_month", "reporting_month"),
        Index("idx_invoice_status", "status"),
    )

    invoice_number: Mapped[str] = mapped_column(String(100), nullable=False)
    vendor_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("vendors.id"), nullable=False
    )
    profile_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    profile_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    gross_amount: Mapped[Decimal] = mapped_column(nullable=False)
    currency: Mapped[str] = mapped_column(String(3), default="INR", nullable=False)
    issue_date: Mapped[date] = mapped_column(nullable=False)
    due_date: Mapped[date | None] = mapped_column(nullable=True)
    reporting_month: Mapped[date | None] = mapped_column(nullable=True)

    withholding_applicable: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False
    )
    withholding_percentage: Mapped[Decimal | None] = mapped_column(nullable=True)
    withholding_round_up: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False
    )

    status: Mapped[str] = mapped_column(
        String(20), default="pending_approval", nullable=False
    )
    is_recurring: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    entity_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    category_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    category_name: Mapped[str | None] = mapped_column(String(100), nullable=True)

    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_archived: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    archived_at: Mapped[datetime | None] = mapped_column(nullable=True)
    archived_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    archive_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    deleted_at: Mapped[datetime | None] = mapped_column(nullable=True)
    deleted_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    def __repr__(self) -> str:
        return f"<Invoice {self.invoice_number}: {self.status}>"


class PaymentModel(TrackedBase):
    __tablename__ = "payments"

    __table_args__ = (
        Index("idx_payment_invoice", "invoice_id"),
        Index("idx_payment_date", "payment_date"),
    )

    invoice_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("invoices.id"), nullable=False
    )
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    payment_date: Mapped[date] = mapped_column(nullable=False)
    payment_method_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("payment_methods.id"), nullable=True
    )
    transaction_reference: Mapped[str | None] = mapped_column(String(200), nullable=True)
    withholding_applied: Mapped[Decimal | None] = mapped_column(nullable=True)
    withholding_round_up: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False
    )
    status: Mapped[str] = mapped_column(String(20), default="approved", nullable=False)
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)


class CreditNoteModel(TrackedBase):
    __tablename__ = "credit_notes"

    __table_args__ = (Index("idx_credit_note_invoice", "invoice_id"),)

    invoice_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("invoices.id"), nullable=False
    )
    credit_note_number: Mapped[str] = mapped_column(String(100), nullable=False)
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    withholding_reversal: Mapped[Decimal | None] = mapped_column(nullable=True)
    credit_note_date: Mapped[date] = mapped_column(nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), default="pending_approval", nullable=False
    )
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)


class AdvancePaymentModel(TrackedBase):
    __tablename__ = "advance_payments"

    __table_args__ = (Index("idx_advance_payment_date", "payment_date"),)

    vendor_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("vendors.id"), nullable=False
    )
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    payment_method_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("payment_methods.id"), nullable=True
    )
    payment_date: Mapped[date] = mapped_column(nullable=False)
    payment_reference: Mapped[str | None] = mapped_column(String(200), nullable=True)
    reporting_month: Mapped[date | None] = mapped_column(nullable=True)
    linked_invoice_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("invoices.id"), nullable=True
    )
    profile_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    is_refund: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), default="pending_approval", nullable=False
    )
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
