"""ORM models for the ledger kernel."""

from ledger_kernel.models.archive_request import ArchiveRequestModel
from ledger_kernel.models.documents import (
    AdvancePaymentModel,
    CreditNoteModel,
    InvoiceModel,
    PaymentMethodModel,
    PaymentModel,
    VendorModel,
)
from ledger_kernel.models.report_period import ReportPeriodModel

__all__ = [
    "AdvancePaymentModel",
    "ArchiveRequestModel",
    "CreditNoteModel",
    "InvoiceModel",
    "PaymentMethodModel",
    "PaymentModel",
    "ReportPeriodModel",
    "VendorModel",
]
