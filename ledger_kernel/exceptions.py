"""
Typed Exception Hierarchy for the Ledger Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers (approval screens, report pages, export jobs) need to tell a
lifecycle conflict from a missing record from bad input without parsing
message strings. Every exception therefore:
  1. Has its own class (catch by type, not message)
  2. Has a CODE class attribute (machine-readable, API-safe)
  3. Carries its context as structured attributes

Example:
    try:
        service.finalize(month=3, year=2026, report=report, actor=actor)
    except ReportAlreadyFinalizedError as e:
        api_response(code=e.code, period=e.period_label)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    LedgerKernelError (base)
    |
    +-- InvalidInputError
    |   +-- InvalidAmountError
    |   +-- NegativeAmountError
    |   +-- InvalidWithholdingPercentageError
    |   +-- MissingWithholdingPercentageError
    |   +-- UnexpectedWithholdingPercentageError
    |   +-- InvalidReportPeriodError
    |   +-- UnsupportedEntryKindError
    |   +-- InvalidExportColumnError
    |
    +-- StateConflictError
    |   +-- ReportAlreadyFinalizedError
    |   +-- ReportNotFinalizedError
    |   +-- ReportAlreadySubmittedError
    |   +-- DocumentNoLongerPendingError
    |   +-- DocumentAlreadyArchivedError
    |
    +-- NotFoundError
    |   +-- ReportPeriodNotFoundError
    |   +-- ReportSnapshotNotFoundError
    |   +-- DocumentNotFoundError
    |   +-- ProfileNotFoundError
    |
    +-- PermissionDeniedError
    |   +-- ReportPermissionError
    |   +-- DocumentPermissionError
    |
    +-- LedgerIntegrityError
    |   +-- SnapshotTamperedError
    |
    +-- ConfigurationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category     | Code                          | When Raised
-------------|-------------------------------|------------------------------------
Input        | INVALID_AMOUNT                | Float or non-numeric amount
             | NEGATIVE_AMOUNT               | Negative gross on a non-reversal
             | INVALID_WITHHOLDING_PERCENTAGE| Percentage outside 0..100
             | MISSING_WITHHOLDING_PERCENTAGE| Withholding flagged, no percentage
             | UNEXPECTED_WITHHOLDING_PERC...| Percentage set, withholding off
             | INVALID_REPORT_PERIOD         | Month outside 1..12
             | UNSUPPORTED_ENTRY_KIND        | Record is none of the four kinds
             | INVALID_EXPORT_COLUMN         | Unknown export column id
-------------|-------------------------------|------------------------------------
Conflict     | REPORT_ALREADY_FINALIZED      | finalize when finalized/submitted
             | REPORT_NOT_FINALIZED          | submit/unfinalize when draft
             | REPORT_ALREADY_SUBMITTED      | submit/unfinalize when submitted
             | DOCUMENT_NO_LONGER_PENDING    | approve/reject lost a race
             | DOCUMENT_ALREADY_ARCHIVED     | archive of an archived invoice
-------------|-------------------------------|------------------------------------
Not found    | REPORT_PERIOD_NOT_FOUND       | No row for (month, year)
             | REPORT_SNAPSHOT_NOT_FOUND     | Submitted view without snapshot
             | DOCUMENT_NOT_FOUND            | Unknown invoice/payment/... id
             | PROFILE_NOT_FOUND             | Unknown billing profile
-------------|-------------------------------|------------------------------------
Permission   | REPORT_PERMISSION_DENIED      | Role may not run the transition
             | DOCUMENT_PERMISSION_DENIED    | Role may not mutate documents
-------------|-------------------------------|------------------------------------
Integrity    | SNAPSHOT_TAMPERED             | Stored snapshot checksum mismatch
-------------|-------------------------------|------------------------------------
Config       | CONFIGURATION_ERROR           | Invalid YAML configuration

Partial failure of a bulk operation is NOT an exception; it is reported as
a ``BulkOperationResult`` value (see ``ledger_kernel.domain.results``).
"""


class LedgerKernelError(Exception):
    """
    Base exception for all ledger kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "LEDGER_KERNEL_ERROR"


# Input errors


class InvalidInputError(LedgerKernelError):
    """Input rejected before computation; never silently coerced."""

    code: str = "INVALID_INPUT"


class InvalidAmountError(InvalidInputError):
    """Amount is not representable as an exact Decimal."""

    code: str = "INVALID_AMOUNT"

    def __init__(self, value: object, reason: str = "must be a Decimal, int or numeric string"):
        self.value = repr(value)
        self.reason = reason
        super().__init__(f"Invalid amount {value!r}: {reason}")


class NegativeAmountError(InvalidInputError):
    """Negative gross amount on a document that is not a reversal."""

    code: str = "NEGATIVE_AMOUNT"

    def __init__(self, document_kind: str, document_id: str, amount: str):
        self.document_kind = document_kind
        self.document_id = document_id
        self.amount = amount
        super().__init__(
            f"{document_kind} {document_id} has negative amount {amount}"
        )


class InvalidWithholdingPercentageError(InvalidInputError):
    """Withholding percentage outside the 0..100 range."""

    code: str = "INVALID_WITHHOLDING_PERCENTAGE"

    def __init__(self, percentage: str):
        self.percentage = percentage
        super().__init__(
            f"Invalid withholding percentage {percentage}: must be between 0 and 100"
        )


class MissingWithholdingPercentageError(InvalidInputError):
    """Invoice is flagged withholding-applicable but carries no percentage."""

    code: str = "MISSING_WITHHOLDING_PERCENTAGE"

    def __init__(self, invoice_id: str):
        self.invoice_id = invoice_id
        super().__init__(
            f"Invoice {invoice_id} is withholding-applicable but has no percentage"
        )


class UnexpectedWithholdingPercentageError(InvalidInputError):
    """Invoice carries a percentage but is not flagged withholding-applicable."""

    code: str = "UNEXPECTED_WITHHOLDING_PERCENTAGE"

    def __init__(self, invoice_id: str, percentage: str):
        self.invoice_id = invoice_id
        self.percentage = percentage
        super().__init__(
            f"Invoice {invoice_id} has withholding percentage {percentage} "
            "but withholding does not apply"
        )


class InvalidReportPeriodError(InvalidInputError):
    """Month/year pair does not name a calendar month."""

    code: str = "INVALID_REPORT_PERIOD"

    def __init__(self, month: int, year: int):
        self.month = month
        self.year = year
        super().__init__(f"Invalid report period {month}/{year}")


class UnsupportedEntryKindError(InvalidInputError):
    """Record is not one of the four source document kinds."""

    code: str = "UNSUPPORTED_ENTRY_KIND"

    def __init__(self, record_type: str):
        self.record_type = record_type
        super().__init__(f"Unsupported source record type: {record_type}")


class InvalidExportColumnError(InvalidInputError):
    """Export requested a column id the table does not have."""

    code: str = "INVALID_EXPORT_COLUMN"

    def __init__(self, column_ids: tuple[str, ...]):
        self.column_ids = column_ids
        super().__init__(f"Invalid column IDs: {', '.join(column_ids)}")


# Lifecycle / state conflicts


class StateConflictError(LedgerKernelError):
    """Transition attempted from a state that forbids it."""

    code: str = "STATE_CONFLICT"


class ReportAlreadyFinalizedError(StateConflictError):
    """Finalize attempted on a period that is finalized or submitted."""

    code: str = "REPORT_ALREADY_FINALIZED"

    def __init__(self, period_label: str, current_status: str):
        self.period_label = period_label
        self.current_status = current_status
        super().__init__(
            f"Report {period_label} is already {current_status}"
        )


class ReportNotFinalizedError(StateConflictError):
    """Submit or unfinalize attempted on a draft period."""

    code: str = "REPORT_NOT_FINALIZED"

    def __init__(self, period_label: str, operation: str):
        self.period_label = period_label
        self.operation = operation
        super().__init__(
            f"Report {period_label} must be finalized before {operation}"
        )


class ReportAlreadySubmittedError(StateConflictError):
    """Submit or unfinalize attempted on a submitted (terminal) period."""

    code: str = "REPORT_ALREADY_SUBMITTED"

    def __init__(self, period_label: str, operation: str):
        self.period_label = period_label
        self.operation = operation
        super().__init__(
            f"Report {period_label} is already submitted; cannot {operation}"
        )


class DocumentNoLongerPendingError(StateConflictError):
    """Approve/reject attempted on a document that left pending_approval."""

    code: str = "DOCUMENT_NO_LONGER_PENDING"

    def __init__(self, document_kind: str, document_id: str, current_status: str):
        self.document_kind = document_kind
        self.document_id = document_id
        self.current_status = current_status
        super().__init__(
            f"{document_kind} {document_id} is no longer pending "
            f"(status: {current_status})"
        )


class DocumentAlreadyArchivedError(StateConflictError):
    """Archive attempted on an invoice that is already archived."""

    code: str = "DOCUMENT_ALREADY_ARCHIVED"

    def __init__(self, document_id: str):
        self.document_id = document_id
        super().__init__(f"Invoice {document_id} is already archived")


# Not found


class NotFoundError(LedgerKernelError):
    """Referenced record does not exist."""

    code: str = "NOT_FOUND"


class ReportPeriodNotFoundError(NotFoundError):
    """No report period row for the given month/year."""

    code: str = "REPORT_PERIOD_NOT_FOUND"

    def __init__(self, period_label: str):
        self.period_label = period_label
        super().__init__(f"Report period not found: {period_label}")


class ReportSnapshotNotFoundError(NotFoundError):
    """The submitted view was requested for a period without a snapshot."""

    code: str = "REPORT_SNAPSHOT_NOT_FOUND"

    def __init__(self, period_label: str):
        self.period_label = period_label
        super().__init__(f"No finalized snapshot for report {period_label}")


class DocumentNotFoundError(NotFoundError):
    """Invoice, payment, credit note, advance payment or vendor not found."""

    code: str = "DOCUMENT_NOT_FOUND"

    def __init__(self, document_kind: str, document_id: str):
        self.document_kind = document_kind
        self.document_id = document_id
        super().__init__(f"{document_kind} not found: {document_id}")


class ProfileNotFoundError(NotFoundError):
    """Billing profile has no documents at all."""

    code: str = "PROFILE_NOT_FOUND"

    def __init__(self, profile_id: str):
        self.profile_id = profile_id
        super().__init__(f"Invoice profile not found: {profile_id}")


# Permissions


class PermissionDeniedError(LedgerKernelError):
    """Actor's role does not allow the operation."""

    code: str = "PERMISSION_DENIED"


class ReportPermissionError(PermissionDeniedError):
    """Actor may not finalize, submit or unfinalize a report."""

    code: str = "REPORT_PERMISSION_DENIED"

    def __init__(self, operation: str, actor_role: str, required_roles: tuple[str, ...]):
        self.operation = operation
        self.actor_role = actor_role
        self.required_roles = required_roles
        super().__init__(
            f"Role {actor_role!r} may not {operation} reports "
            f"(requires one of: {', '.join(required_roles)})"
        )


class DocumentPermissionError(PermissionDeniedError):
    """Actor may not approve, reject, archive or delete documents."""

    code: str = "DOCUMENT_PERMISSION_DENIED"

    def __init__(self, operation: str, actor_role: str):
        self.operation = operation
        self.actor_role = actor_role
        super().__init__(f"Role {actor_role!r} may not {operation} documents")


# Integrity


class LedgerIntegrityError(LedgerKernelError):
    """Stored data failed an integrity check."""

    code: str = "LEDGER_INTEGRITY_ERROR"


class SnapshotTamperedError(LedgerIntegrityError):
    """Stored snapshot no longer matches the checksum taken at finalize."""

    code: str = "SNAPSHOT_TAMPERED"

    def __init__(self, period_label: str, expected: str, actual: str):
        self.period_label = period_label
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Snapshot for {period_label} failed checksum verification: "
            f"expected {expected}, got {actual}"
        )


# Configuration


class ConfigurationError(LedgerKernelError):
    """Configuration file is structurally or semantically invalid."""

    code: str = "CONFIGURATION_ERROR"

    def __init__(self, message: str, source: str | None = None):
        self.source = source
        super().__init__(message if source is None else f"{source}: {message}")
