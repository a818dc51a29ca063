"""
Source document value objects (``ledger_kernel.domain.documents``).

Responsibility
--------------
Immutable, framework-free shapes for the four financial document kinds
the engines consume (invoice, payment, credit note, advance payment),
plus payment methods and the acting user.  Selectors translate ORM rows
into these; engines never see an ORM object.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.

Invariants
----------
Constructors do not validate business rules (percentage present iff
withholding applies, non-negative amounts).  Those are checked by the
entry normalizer so that a malformed record is flagged and excluded
instead of aborting the whole fetch.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from ledger_kernel.domain.values import DEFAULT_CURRENCY


class InvoiceStatus(str, Enum):
    """Invoice lifecycle status as stored."""

    PENDING_APPROVAL = "pending_approval"
    UNPAID = "unpaid"
    PARTIAL = "partial"
    PAID = "paid"
    OVERDUE = "overdue"
    ON_HOLD = "on_hold"
    REJECTED = "rejected"


class ApprovalStatus(str, Enum):
    """Approval lifecycle shared by payments, credit notes and advances."""

    PENDING_APPROVAL = "pending_approval"
    APPROVED = "approved"
    REJECTED = "rejected"


# Decisions only leave pending_approval; both outcomes are terminal.
APPROVAL_TRANSITIONS: dict[ApprovalStatus, frozenset[ApprovalStatus]] = {
    ApprovalStatus.PENDING_APPROVAL: frozenset({
        ApprovalStatus.APPROVED,
        ApprovalStatus.REJECTED,
    }),
    ApprovalStatus.APPROVED: frozenset(),
    ApprovalStatus.REJECTED: frozenset(),
}

# An approved invoice enters the payable lifecycle as unpaid.
INVOICE_APPROVED_STATUS = InvoiceStatus.UNPAID

# Invoice statuses that still count toward balances and reports.
BALANCE_BEARING_INVOICE_STATUSES: frozenset[InvoiceStatus] = frozenset({
    InvoiceStatus.UNPAID,
    InvoiceStatus.PARTIAL,
    InvoiceStatus.PAID,
    InvoiceStatus.OVERDUE,
    InvoiceStatus.ON_HOLD,
})


class ActorRole(str, Enum):
    """Dashboard roles, lowest privilege first."""

    STANDARD_USER = "standard_user"
    ADMIN = "admin"
    SUPER_ADMIN = "super_admin"


@dataclass(frozen=True)
class Actor:
    """The user on whose behalf a mutation or lifecycle call runs."""

    id: UUID
    role: ActorRole
    name: str = ""

    @property
    def is_admin(self) -> bool:
        return self.role in (ActorRole.ADMIN, ActorRole.SUPER_ADMIN)

    @property
    def is_super_admin(self) -> bool:
        return self.role == ActorRole.SUPER_ADMIN


@dataclass(frozen=True)
class PaymentMethod:
    """A payment type; ``sort_order`` is the configured section order."""

    id: UUID
    name: str
    sort_order: int = 0


@dataclass(frozen=True)
class Invoice:
    id: UUID
    invoice_number: str
    vendor_id: UUID
    vendor_name: str
    gross_amount: Decimal
    issue_date: date
    status: InvoiceStatus
    profile_id: UUID | None = None
    profile_name: str | None = None
    currency: str = DEFAULT_CURRENCY
    due_date: date | None = None
    withholding_applicable: bool = False
    withholding_percentage: Decimal | None = None
    withholding_round_up: bool = False
    is_recurring: bool = False
    name: str | None = None
    description: str | None = None
    entity_id: UUID | None = None
    category_id: UUID | None = None
    category_name: str | None = None
    reporting_month: date | None = None
    is_archived: bool = False
    notes: str | None = None
    created_at: datetime | None = None


@dataclass(frozen=True)
class Payment:
    id: UUID
    invoice_id: UUID
    amount: Decimal
    payment_date: date
    status: ApprovalStatus = ApprovalStatus.APPROVED
    payment_method_id: UUID | None = None
    transaction_reference: str | None = None
    withholding_applied: Decimal | None = None
    withholding_round_up: bool = False
    created_at: datetime | None = None


@dataclass(frozen=True)
class CreditNote:
    id: UUID
    invoice_id: UUID
    credit_note_number: str
    amount: Decimal
    credit_note_date: date
    status: ApprovalStatus
    withholding_reversal: Decimal | None = None
    reason: str | None = None
    created_at: datetime | None = None


@dataclass(frozen=True)
class AdvancePayment:
    id: UUID
    vendor_id: UUID
    vendor_name: str
    amount: Decimal
    payment_date: date
    status: ApprovalStatus
    payment_method_id: UUID | None = None
    description: str | None = None
    payment_reference: str | None = None
    linked_invoice_id: UUID | None = None
    profile_id: UUID | None = None
    reporting_month: date | None = None
    is_refund: bool = False
    created_at: datetime | None = None


SourceRecord = Invoice | Payment | CreditNote | AdvancePayment
