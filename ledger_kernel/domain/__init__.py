"""
Pure domain layer.

This module contains pure data transfer objects and domain logic
with NO dependencies on:
- ORM (SQLAlchemy)
- Database
- Time/clock (except the injectable ``Clock`` abstraction)
- I/O

All domain objects are immutable and deterministic.
"""

from ledger_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from ledger_kernel.domain.documents import (
    BALANCE_BEARING_INVOICE_STATUSES,
    Actor,
    ActorRole,
    AdvancePayment,
    ApprovalStatus,
    CreditNote,
    Invoice,
    InvoiceStatus,
    Payment,
    PaymentMethod,
)
from ledger_kernel.domain.entries import (
    KIND_PRECEDENCE,
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
from ledger_kernel.domain.report import (
    MonthlyReport,
    ReportEntry,
    ReportEntryStatus,
    ReportEntryType,
    ReportMode,
    ReportSection,
)
from ledger_kernel.domain.report_period import (
    REPORT_TRANSITIONS,
    ReportAction,
    ReportPeriodInfo,
    ReportSnapshot,
    ReportStatus,
    resolve_transition,
)
from ledger_kernel.domain.results import (
    BulkArchiveOutcome,
    BulkOperationResult,
    ItemError,
    MutationResult,
)
from ledger_kernel.domain.values import (
    MAX_AMOUNT,
    ZERO,
    ReportPeriodKey,
    percentage_of,
    quantize_money,
    to_decimal,
)

__all__ = [
    "BALANCE_BEARING_INVOICE_STATUSES",
    "MAX_AMOUNT",
    "KIND_PRECEDENCE",
    "REPORT_TRANSITIONS",
    "ZERO",
    "Actor",
    "ActorRole",
    "AdvancePayment",
    "AdvancePaymentPayload",
    "ApprovalStatus",
    "BulkArchiveOutcome",
    "BulkOperationResult",
    "Clock",
    "CreditNote",
    "CreditNotePayload",
    "DeterministicClock",
    "EntryFailure",
    "EntryKind",
    "Invoice",
    "InvoicePayload",
    "InvoiceSettlement",
    "InvoiceStatus",
    "ItemError",
    "MonthlyReport",
    "MutationResult",
    "NormalizedEntry",
    "Payment",
    "PaymentMethod",
    "PaymentPayload",
    "ReportAction",
    "ReportEntry",
    "ReportEntryStatus",
    "ReportEntryType",
    "ReportMode",
    "ReportPeriodInfo",
    "ReportPeriodKey",
    "ReportSection",
    "ReportSnapshot",
    "ReportStatus",
    "SystemClock",
    "percentage_of",
    "quantize_money",
    "require_exhaustive",
    "resolve_transition",
    "to_decimal",
]
