"""
ledger_services -- Package init and public API.

Responsibility:
    Stateful orchestration that composes the pure calculation engines
    (``ledger_engines``) with database sessions, the clock and the active
    configuration.  This is the only layer that wires selectors, kernel
    services and engines together.

Architecture position:
    Services -- stateful orchestration over engines + kernel.

    Dependency direction:
        ledger_services/ -> ledger_engines/  (allowed)
        ledger_services/ -> ledger_kernel/   (allowed)
        ledger_services/ -> ledger_config/   (allowed)
        ledger_engines/  -> ledger_services/ (FORBIDDEN)
        ledger_kernel/   -> ledger_services/ (FORBIDDEN)

Invariants enforced:
    - Services flush, never commit; the caller owns the transaction.
    - Every service takes its clock and configuration by injection and
      falls back to ``SystemClock`` and ``get_active_config()``.
"""

from ledger_kernel.logging_config import get_logger

logger = get_logger("services")

from ledger_services.bulk_operations import BulkOperationService  # noqa: E402
from ledger_services.entry_source import EntrySource, EntryStream  # noqa: E402
from ledger_services.feed_service import FeedService, FeedView  # noqa: E402
from ledger_services.ledger_service import LedgerService  # noqa: E402
from ledger_services.monthly_report_service import (  # noqa: E402
    MonthlyReportService,
    ReportView,
)

__all__ = [
    "BulkOperationService",
    "EntrySource",
    "EntryStream",
    "FeedService",
    "FeedView",
    "LedgerService",
    "MonthlyReportService",
    "ReportView",
]
