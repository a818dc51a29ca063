"""
Export flattening -- engine output as labelled rows.

Turns a monthly report, a ledger or a set of invoice entries into flat
rows of ``(column, value)`` cells for a tabular export collaborator
(spreadsheet or CSV writer).  Values stay typed (Decimal, date); number
and date formatting belong to the writer.

Pure functions with no I/O.

Usage:
    from ledger_engines.export import report_rows, select_columns

    rows = report_rows(report)
    rows = select_columns(rows, ["section", "vendor_name", "amount"])
    for row in rows:
        row.labelled()   # (("Section", "NEFT"), ("Vendor", "Acme"), ...)
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any
from uuid import UUID

from ledger_engines.ledger import LedgerResult
from ledger_kernel.domain.entries import EntryKind, InvoicePayload, NormalizedEntry
from ledger_kernel.domain.report import MonthlyReport
from ledger_kernel.exceptions import InvalidExportColumnError


@dataclass(frozen=True)
class ExportColumn:
    id: str
    label: str
    description: str = ""


@dataclass(frozen=True)
class ExportRow:
    """One output row; cells keep column order."""

    cells: tuple[tuple[ExportColumn, Any], ...]

    @property
    def columns(self) -> tuple[ExportColumn, ...]:
        return tuple(column for column, _ in self.cells)

    def value(self, column_id: str) -> Any:
        for column, value in self.cells:
            if column.id == column_id:
                return value
        raise KeyError(column_id)

    def labelled(self) -> tuple[tuple[str, Any], ...]:
        return tuple((column.label, value) for column, value in self.cells)

    def as_dict(self) -> dict[str, Any]:
        return {column.id: value for column, value in self.cells}


def _columns(*specs: tuple[str, str, str]) -> tuple[ExportColumn, ...]:
    return tuple(ExportColumn(*spec) for spec in specs)


INVOICE_COLUMNS = _columns(
    ("invoice_number", "Invoice Number", "Unique identifier"),
    ("vendor_name", "Vendor Name", "Vendor name"),
    ("category_name", "Category", "Category name"),
    ("invoice_amount", "Invoice Amount", "Total amount"),
    ("invoice_date", "Invoice Date", "Invoice date"),
    ("due_date", "Due Date", "Payment due date"),
    ("status", "Status", "Current status"),
    ("total_paid", "Total Paid", "Total amount paid"),
    ("remaining_balance", "Remaining Balance", "Amount remaining"),
    ("created_at", "Created Date", "Creation date"),
    ("created_by", "Created By", "User who created"),
    ("profile_name", "Invoice Profile", "Invoice profile name"),
    ("sub_entity_name", "Sub Entity", "Division/Department/Branch"),
    ("notes", "Notes", "Internal notes"),
)

REPORT_COLUMNS = _columns(
    ("section", "Section", "Payment method or Unpaid"),
    ("serial", "S.No", "Serial within the section"),
    ("vendor_name", "Vendor", "Vendor name"),
    ("invoice_number", "Invoice Number", ""),
    ("invoice_name", "Invoice Name", ""),
    ("invoice_date", "Invoice Date", ""),
    ("invoice_amount", "Invoice Amount", ""),
    ("payment_date", "Payment Date", ""),
    ("payment_reference", "Payment Reference", ""),
    ("amount", "Amount", "Amount counted in the subtotal"),
    ("status", "Status", ""),
    ("status_percentage", "Percentage", ""),
    ("entry_type", "Entry Type", ""),
    ("currency", "Currency", ""),
)

LEDGER_COLUMNS = _columns(
    ("date", "Date", ""),
    ("kind", "Type", ""),
    ("reference_number", "Reference", ""),
    ("description", "Description", ""),
    ("gross_amount", "Gross Amount", ""),
    ("withheld_amount", "TDS", "Tax withheld at source"),
    ("payable_amount", "Payable", ""),
    ("paid_amount", "Paid", ""),
    ("running_balance", "Running Balance", ""),
    ("status", "Status", ""),
)

TOTAL_LABEL = "Total"
GRAND_TOTAL_LABEL = "Grand Total"


def _row(columns: Sequence[ExportColumn], values: Mapping[str, Any]) -> ExportRow:
    return ExportRow(cells=tuple((c, values.get(c.id)) for c in columns))


def report_rows(report: MonthlyReport, include_totals: bool = True) -> list[ExportRow]:
    """
    One row per report entry, in section order.  With ``include_totals``
    each section ends with a subtotal row and the table with a grand total.
    """
    rows: list[ExportRow] = []
    for section in report.sections:
        for entry in section.entries:
            rows.append(_row(REPORT_COLUMNS, {
                "section": section.name,
                "serial": entry.serial,
                "vendor_name": entry.vendor_name,
                "invoice_number": entry.invoice_number,
                "invoice_name": entry.invoice_name,
                "invoice_date": entry.invoice_date,
                "invoice_amount": entry.invoice_amount,
                "payment_date": entry.payment_date,
                "payment_reference": entry.payment_reference or entry.credit_note_number,
                "amount": entry.amount,
                "status": entry.status.value,
                "status_percentage": entry.status_percentage,
                "entry_type": entry.entry_type.value,
                "currency": entry.currency,
            }))
        if include_totals:
            rows.append(_row(REPORT_COLUMNS, {
                "section": section.name,
                "status": TOTAL_LABEL,
                "amount": section.subtotal,
            }))
    if include_totals and report.sections:
        rows.append(_row(REPORT_COLUMNS, {
            "status": GRAND_TOTAL_LABEL,
            "amount": report.grand_total,
        }))
    return rows


def ledger_rows(ledger: LedgerResult) -> list[ExportRow]:
    return [
        _row(LEDGER_COLUMNS, {
            "date": row.date,
            "kind": row.kind.value,
            "reference_number": row.entry.reference_number,
            "description": row.entry.description,
            "gross_amount": row.entry.gross_amount,
            "withheld_amount": row.withheld_amount,
            "payable_amount": row.payable_amount,
            "paid_amount": row.paid_amount,
            "running_balance": row.running_balance,
            "status": row.entry.display_status,
        })
        for row in ledger.entries
    ]


def invoice_rows(
    entries: Iterable[NormalizedEntry],
    extras: Mapping[UUID, Mapping[str, Any]] | None = None,
) -> list[ExportRow]:
    """
    One row per invoice entry; other kinds are skipped.

    ``extras`` supplies per-invoice values the entry does not carry
    (``created_at``, ``created_by``, ``sub_entity_name``).
    """
    extras = extras or {}
    rows = []
    for entry in entries:
        if entry.kind != EntryKind.INVOICE:
            continue
        payload: InvoicePayload = entry.payload
        values: dict[str, Any] = {
            "invoice_number": payload.invoice_number,
            "vendor_name": entry.vendor_name,
            "category_name": payload.category_name,
            "invoice_amount": entry.gross_amount,
            "invoice_date": payload.issue_date,
            "due_date": payload.due_date,
            "status": entry.status,
            "total_paid": payload.settlement.paid_amount,
            "remaining_balance": payload.settlement.remaining_balance,
            "profile_name": payload.profile_name,
            "notes": payload.notes,
        }
        values.update(extras.get(entry.id, {}))
        rows.append(_row(INVOICE_COLUMNS, values))
    return rows


def select_columns(
    rows: Sequence[ExportRow],
    column_ids: Sequence[str],
    available: Sequence[ExportColumn] | None = None,
) -> list[ExportRow]:
    """
    Project ``rows`` onto ``column_ids`` in the requested order.

    Raises:
        InvalidExportColumnError: any id not among the available columns
            (``available``, else the first row's columns).
    """
    if available is None:
        if not rows:
            return []
        available = rows[0].columns
    known = {c.id for c in available}
    invalid = tuple(cid for cid in column_ids if cid not in known)
    if invalid:
        raise InvalidExportColumnError(invalid)

    projected = []
    for row in rows:
        by_id = {c.id: (c, v) for c, v in row.cells}
        projected.append(ExportRow(cells=tuple(by_id[cid] for cid in column_ids)))
    return projected
