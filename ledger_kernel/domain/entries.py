"""
Normalized entry types (``ledger_kernel.domain.entries``).

Responsibility
--------------
The closed tagged union every engine consumes: one ``NormalizedEntry``
carrying a common projection (date, signed amount, raw status, owner
references) plus exactly one kind-specific payload.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.

Invariants enforced
-------------------
* ``EntryKind`` is closed.  Every consumer keeps a handler table keyed
  by ``EntryKind`` and validates it with ``require_exhaustive`` at import
  time, so adding a kind without teaching every consumer fails on
  import rather than at render time.
* ``payload`` type always matches ``kind`` (checked in ``__post_init__``).
* Amounts are signed: credit notes and advance refunds are already
  negated, so downstream arithmetic never branches on sign.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import TypeVar
from uuid import UUID

from ledger_kernel.domain.values import DEFAULT_CURRENCY, ZERO


class EntryKind(str, Enum):
    """Discriminator of the normalized entry union."""

    INVOICE = "invoice"
    PAYMENT = "payment"
    CREDIT_NOTE = "credit_note"
    ADVANCE_PAYMENT = "advance_payment"


# Same-day ordering: debits before the documents that settle them.
KIND_PRECEDENCE: dict[EntryKind, int] = {
    EntryKind.INVOICE: 0,
    EntryKind.CREDIT_NOTE: 1,
    EntryKind.PAYMENT: 2,
    EntryKind.ADVANCE_PAYMENT: 3,
}


@dataclass(frozen=True)
class InvoiceSettlement:
    """How far an invoice has been settled by approved payments and credits."""

    payable_amount: Decimal
    withheld_amount: Decimal
    paid_amount: Decimal
    credited_amount: Decimal
    remaining_balance: Decimal
    paid_percentage: int

    @property
    def is_fully_paid(self) -> bool:
        return self.remaining_balance <= ZERO


@dataclass(frozen=True)
class InvoicePayload:
    invoice_number: str
    issue_date: date
    settlement: InvoiceSettlement
    currency: str = DEFAULT_CURRENCY
    due_date: date | None = None
    reporting_month: date | None = None
    withholding_applicable: bool = False
    withholding_percentage: Decimal | None = None
    withholding_round_up: bool = False
    is_recurring: bool = False
    is_archived: bool = False
    is_overdue: bool = False
    profile_name: str | None = None
    category_name: str | None = None
    notes: str | None = None


@dataclass(frozen=True)
class PaymentPayload:
    invoice_id: UUID
    invoice_number: str
    invoice_issue_date: date
    invoice_reporting_month: date | None = None
    invoice_gross_amount: Decimal = ZERO
    withholding_percentage: Decimal | None = None
    withholding_applied: Decimal | None = None
    withholding_round_up: bool = False
    transaction_reference: str | None = None


@dataclass(frozen=True)
class CreditNotePayload:
    invoice_id: UUID
    invoice_number: str
    credit_note_number: str
    withholding_reversal: Decimal = ZERO
    reason: str | None = None


@dataclass(frozen=True)
class AdvancePaymentPayload:
    linked_invoice_id: UUID | None = None
    payment_reference: str | None = None
    reporting_month: date | None = None
    is_refund: bool = False


EntryPayload = InvoicePayload | PaymentPayload | CreditNotePayload | AdvancePaymentPayload

_PAYLOAD_TYPES: dict[EntryKind, type] = {
    EntryKind.INVOICE: InvoicePayload,
    EntryKind.PAYMENT: PaymentPayload,
    EntryKind.CREDIT_NOTE: CreditNotePayload,
    EntryKind.ADVANCE_PAYMENT: AdvancePaymentPayload,
}


@dataclass(frozen=True)
class NormalizedEntry:
    """
    One source document projected onto the common entry shape.

    ``gross_amount`` and ``withholding_amount`` are signed.  ``status`` is
    the raw stored status; ``display_status`` folds in settlement progress
    for read models only.  ``sequence`` is the insertion index used as the
    final tie-break wherever entries are ordered.
    """

    kind: EntryKind
    id: UUID
    date: date
    gross_amount: Decimal
    status: str
    display_status: str
    vendor_id: UUID
    vendor_name: str
    reference_number: str
    payload: EntryPayload
    withholding_amount: Decimal = ZERO
    profile_id: UUID | None = None
    payment_method_id: UUID | None = None
    description: str | None = None
    category_id: UUID | None = None
    entity_id: UUID | None = None
    counts_toward_balance: bool = True
    sequence: int = 0

    def __post_init__(self) -> None:
        expected = _PAYLOAD_TYPES[self.kind]
        if not isinstance(self.payload, expected):
            raise TypeError(
                f"{self.kind.value} entry requires {expected.__name__}, "
                f"got {type(self.payload).__name__}"
            )

    @property
    def remaining_balance(self) -> Decimal:
        """Outstanding amount; only invoices carry one."""
        if isinstance(self.payload, InvoicePayload):
            return self.payload.settlement.remaining_balance
        return ZERO


@dataclass(frozen=True)
class EntryFailure:
    """
    A source record excluded from totals, with the reason it was flagged.

    ``kind`` is None only when the record is not a known document type.
    """

    kind: EntryKind | None
    record_id: UUID | None
    code: str
    message: str


T = TypeVar("T")


def require_exhaustive(
    handlers: Mapping[EntryKind, T],
    consumer: str,
) -> Mapping[EntryKind, T]:
    """
    Verify a handler table covers every ``EntryKind``.

    Called at module import by each consumer of ``NormalizedEntry``.

    Raises:
        TypeError: If any kind is missing.
    """
    missing = [kind.value for kind in EntryKind if kind not in handlers]
    if missing:
        raise TypeError(
            f"{consumer} does not handle entry kinds: {', '.join(missing)}"
        )
    return handlers
