"""
Monthly report value objects (``ledger_kernel.domain.report``).

Responsibility
--------------
Immutable output of the report grouper plus its JSON-safe payload form.
The payload is what gets frozen into a report-period snapshot, so
``to_payload`` must be deterministic: Decimals are rendered as quantized
strings, dates as ISO strings, and key order is fixed by
``canonical_json``.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

from ledger_kernel.domain.entries import EntryFailure
from ledger_kernel.domain.values import DEFAULT_CURRENCY, ReportPeriodKey, quantize_money
from ledger_kernel.utils.hashing import canonicalize_json


class ReportMode(str, Enum):
    """How a period's entries are selected.

    LIVE: effective event in the period (payments made, invoices booked).
    INVOICE_DATE: invoices issued in the period, with every payment they
    eventually received.
    """

    LIVE = "live"
    INVOICE_DATE = "invoice_date"


class ReportEntryStatus(str, Enum):
    PAID = "PAID"
    PAID_PARTIAL = "PAID_PARTIAL"
    PARTIALLY_PAID = "PARTIALLY_PAID"
    UNPAID = "UNPAID"
    ADVANCE = "ADVANCE"
    CREDIT_NOTE = "CREDIT_NOTE"


class ReportEntryType(str, Enum):
    STANDARD = "standard"
    LATE_INVOICE = "late_invoice"
    LATE_PAYMENT = "late_payment"
    ADVANCE_PAYMENT = "advance_payment"
    CREDIT_NOTE = "credit_note"


@dataclass(frozen=True)
class ReportEntry:
    """
    One row of a report section.

    ``amount`` is what the section subtotal sums: the payment amount for
    payment-bearing rows, the outstanding payable for unpaid invoices and
    the (negative) amount for credit notes.
    """

    serial: int
    source_kind: str
    source_id: UUID
    entry_type: ReportEntryType
    status: ReportEntryStatus
    vendor_name: str
    amount: Decimal
    status_percentage: int | None = None
    invoice_id: UUID | None = None
    invoice_number: str | None = None
    invoice_name: str | None = None
    invoice_date: date | None = None
    invoice_amount: Decimal | None = None
    payment_date: date | None = None
    payment_reference: str | None = None
    currency: str = DEFAULT_CURRENCY
    credit_note_number: str | None = None
    withholding_reversal: Decimal | None = None

    def with_serial(self, serial: int) -> ReportEntry:
        return replace(self, serial=serial)

    def to_payload(self, places: int) -> dict[str, Any]:
        return {
            "serial": self.serial,
            "source_kind": self.source_kind,
            "source_id": str(self.source_id),
            "entry_type": self.entry_type.value,
            "status": self.status.value,
            "status_percentage": self.status_percentage,
            "vendor_name": self.vendor_name,
            "amount": _money(self.amount, places),
            "invoice_id": _opt_str(self.invoice_id),
            "invoice_number": self.invoice_number,
            "invoice_name": self.invoice_name,
            "invoice_date": _opt_iso(self.invoice_date),
            "invoice_amount": _opt_money(self.invoice_amount, places),
            "payment_date": _opt_iso(self.payment_date),
            "payment_reference": self.payment_reference,
            "currency": self.currency,
            "credit_note_number": self.credit_note_number,
            "withholding_reversal": _opt_money(self.withholding_reversal, places),
        }

    @classmethod
    def from_payload(cls, data: dict[str, Any]) -> ReportEntry:
        return cls(
            serial=int(data["serial"]),
            source_kind=data["source_kind"],
            source_id=UUID(data["source_id"]),
            entry_type=ReportEntryType(data["entry_type"]),
            status=ReportEntryStatus(data["status"]),
            status_percentage=data.get("status_percentage"),
            vendor_name=data["vendor_name"],
            amount=Decimal(data["amount"]),
            invoice_id=UUID(data["invoice_id"]) if data.get("invoice_id") else None,
            invoice_number=data.get("invoice_number"),
            invoice_name=data.get("invoice_name"),
            invoice_date=_opt_date(data.get("invoice_date")),
            invoice_amount=_opt_decimal(data.get("invoice_amount")),
            payment_date=_opt_date(data.get("payment_date")),
            payment_reference=data.get("payment_reference"),
            currency=data.get("currency", DEFAULT_CURRENCY),
            credit_note_number=data.get("credit_note_number"),
            withholding_reversal=_opt_decimal(data.get("withholding_reversal")),
        )


@dataclass(frozen=True)
class ReportSection:
    """Entries settled through one payment method; ``None`` is Unpaid."""

    payment_method_id: UUID | None
    name: str
    entries: tuple[ReportEntry, ...]
    subtotal: Decimal

    @property
    def entry_count(self) -> int:
        return len(self.entries)

    @property
    def is_unpaid(self) -> bool:
        return self.payment_method_id is None

    def to_payload(self, places: int) -> dict[str, Any]:
        return {
            "payment_method_id": _opt_str(self.payment_method_id),
            "name": self.name,
            "entries": [e.to_payload(places) for e in self.entries],
            "subtotal": _money(self.subtotal, places),
            "entry_count": self.entry_count,
        }

    @classmethod
    def from_payload(cls, data: dict[str, Any]) -> ReportSection:
        method_id = data.get("payment_method_id")
        return cls(
            payment_method_id=UUID(method_id) if method_id else None,
            name=data["name"],
            entries=tuple(ReportEntry.from_payload(e) for e in data["entries"]),
            subtotal=Decimal(data["subtotal"]),
        )


@dataclass(frozen=True)
class MonthlyReport:
    """
    Grouped report for one period; ``grand_total`` is the sum of subtotals.

    ``failures`` lists entries excluded from the totals.  They are a render
    concern only and are not part of the payload.
    """

    period: ReportPeriodKey
    mode: ReportMode
    sections: tuple[ReportSection, ...]
    grand_total: Decimal
    generated_at: datetime
    currency_places: int = 2
    failures: tuple[EntryFailure, ...] = field(default=(), compare=False)

    @property
    def total_entries(self) -> int:
        return sum(s.entry_count for s in self.sections)

    @property
    def label(self) -> str:
        return self.period.display_label

    def section_for(self, payment_method_id: UUID | None) -> ReportSection | None:
        for section in self.sections:
            if section.payment_method_id == payment_method_id:
                return section
        return None

    def to_payload(self) -> dict[str, Any]:
        places = self.currency_places
        return {
            "month": self.period.month,
            "year": self.period.year,
            "label": self.label,
            "mode": self.mode.value,
            "sections": [s.to_payload(places) for s in self.sections],
            "grand_total": _money(self.grand_total, places),
            "total_entries": self.total_entries,
            "generated_at": self.generated_at.isoformat(),
            "currency_places": places,
        }

    @classmethod
    def from_payload(cls, data: dict[str, Any]) -> MonthlyReport:
        return cls(
            period=ReportPeriodKey.of(int(data["month"]), int(data["year"])),
            mode=ReportMode(data["mode"]),
            sections=tuple(ReportSection.from_payload(s) for s in data["sections"]),
            grand_total=Decimal(data["grand_total"]),
            generated_at=datetime.fromisoformat(data["generated_at"]),
            currency_places=int(data.get("currency_places", 2)),
        )

    def canonical_json(self) -> str:
        """Byte-stable JSON rendering of ``to_payload()``."""
        return canonicalize_json(self.to_payload())


def _money(value: Decimal, places: int) -> str:
    return str(quantize_money(value, places))


def _opt_money(value: Decimal | None, places: int) -> str | None:
    return None if value is None else _money(value, places)


def _opt_decimal(value: str | None) -> Decimal | None:
    return None if value is None else Decimal(value)


def _opt_str(value: UUID | None) -> str | None:
    return None if value is None else str(value)


def _opt_iso(value: date | None) -> str | None:
    return None if value is None else value.isoformat()


def _opt_date(value: str | None) -> date | None:
    return None if value is None else date.fromisoformat(value)
