"""
Module: ledger_engines
Responsibility:
    Package entrypoint that re-exports the public symbols of the pure
    calculation engines.  This is the import surface for
    ``ledger_services``.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import ``ledger_kernel.domain``, ``ledger_kernel.exceptions``,
    ``ledger_kernel.logging_config`` and sibling engine modules.
    MUST NOT import ``ledger_services`` or ``ledger_config``.

Invariants enforced:
    - Purity: engines never call ``datetime.now()`` or ``date.today()``.
      Timestamps and "as of" dates are passed in by the caller.
    - Decimal-only arithmetic: floats are rejected at the boundary.
    - Determinism: identical inputs always produce identical outputs.

Failure modes:
    - Single-value functions (``withhold``, ``EntryNormalizer.normalize``)
      raise typed ``LedgerKernelError`` subclasses.
    - Aggregations (``normalize_all``, ``build_ledger``, ``build_report``)
      never raise for one bad record; they return ``EntryFailure`` values.

Audit relevance:
    Aggregations are traced via ``@traced_engine``, emitting
    LEDGER_ENGINE_TRACE records with engine name, version, input
    fingerprint and duration.
"""

from ledger_kernel.logging_config import get_logger

logger = get_logger("engines")

from ledger_engines.export import (  # noqa: E402
    INVOICE_COLUMNS,
    LEDGER_COLUMNS,
    REPORT_COLUMNS,
    ExportColumn,
    ExportRow,
    invoice_rows,
    ledger_rows,
    report_rows,
    select_columns,
)
from ledger_engines.feed import (  # noqa: E402
    PENDING_ACTIONS,
    FeedFilter,
    FeedPage,
    FeedSort,
    FeedSortKey,
    count_by_kind,
    paginate,
    query,
)
from ledger_engines.ledger import (  # noqa: E402
    LedgerEntry,
    LedgerFilter,
    LedgerResult,
    LedgerSummary,
    ProfileBalance,
    build_ledger,
    profile_overview,
)
from ledger_engines.normalizer import (  # noqa: E402
    EntryNormalizer,
    NormalizationResult,
    derive_invoice_status,
)
from ledger_engines.report import build_report, payment_status  # noqa: E402
from ledger_engines.tracer import traced_engine  # noqa: E402
from ledger_engines.withholding import (  # noqa: E402
    WithholdingResult,
    rounding_difference,
    withhold,
    would_rounding_change,
)

__all__ = [
    "INVOICE_COLUMNS",
    "LEDGER_COLUMNS",
    "PENDING_ACTIONS",
    "REPORT_COLUMNS",
    "EntryNormalizer",
    "ExportColumn",
    "ExportRow",
    "FeedFilter",
    "FeedPage",
    "FeedSort",
    "FeedSortKey",
    "LedgerEntry",
    "LedgerFilter",
    "LedgerResult",
    "LedgerSummary",
    "NormalizationResult",
    "ProfileBalance",
    "WithholdingResult",
    "build_ledger",
    "build_report",
    "count_by_kind",
    "derive_invoice_status",
    "invoice_rows",
    "ledger_rows",
    "paginate",
    "payment_status",
    "profile_overview",
    "query",
    "report_rows",
    "rounding_difference",
    "select_columns",
    "traced_engine",
    "withhold",
    "would_rounding_change",
]
