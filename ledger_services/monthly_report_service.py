"""
ledger_services.monthly_report_service -- Monthly report end to end.

Responsibility:
    Builds the monthly payment report for a period in any of its three
    views and drives the report lifecycle (finalize, submit, unfinalize).
    Fetching and normalizing is ``EntrySource``; grouping is the pure
    ``build_report`` engine; persistence and the single-writer guarantee
    belong to ``ReportPeriodService``.  This service sequences them and
    supplies the clock and configuration.

Architecture position:
    Services -- stateful orchestration over engines + kernel.

Invariants enforced:
    - The ``live`` and ``invoice_date`` views are always recomputed from the
      current documents; nothing is cached between calls.
    - The ``submitted`` view renders the stored snapshot and never the
      current data, so back-dated documents cannot change a finalized
      report.
    - ``finalize_report`` snapshots exactly the live view a caller would
      have seen at the same instant (same clock reading, same config).

Failure modes:
    - ReportSnapshotNotFoundError: submitted view of a period with no
      snapshot.
    - ReportPermissionError, ReportAlreadyFinalizedError,
      ReportNotFinalizedError, ReportAlreadySubmittedError,
      SnapshotTamperedError: propagated unchanged from
      ``ReportPeriodService``.

Audit relevance:
    Every lifecycle call runs inside a ``LogContext`` bound to the period
    and actor, so the kernel's ``report_finalized`` / ``report_submitted`` /
    ``report_unfinalized`` records carry both.
"""

from __future__ import annotations

from dataclasses import replace
from enum import Enum

from sqlalchemy.orm import Session

from ledger_config import LedgerConfig, get_active_config
from ledger_engines.report import build_report
from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.domain.documents import Actor
from ledger_kernel.domain.entries import EntryFailure
from ledger_kernel.domain.report import MonthlyReport, ReportMode
from ledger_kernel.domain.report_period import ReportPeriodInfo, ReportSnapshot
from ledger_kernel.domain.values import ReportPeriodKey
from ledger_kernel.exceptions import ReportSnapshotNotFoundError
from ledger_kernel.logging_config import LogContext, get_logger
from ledger_kernel.services.report_period_service import ReportPeriodService
from ledger_services.entry_source import EntrySource

logger = get_logger("services.monthly_report")


class ReportView(str, Enum):
    LIVE = "live"
    INVOICE_DATE = "invoice_date"
    SUBMITTED = "submitted"


_VIEW_MODES: dict[ReportView, ReportMode] = {
    ReportView.LIVE: ReportMode.LIVE,
    ReportView.INVOICE_DATE: ReportMode.INVOICE_DATE,
}


class MonthlyReportService:
    """
    Report views and lifecycle for one (month, year) at a time.

    Contract:
        Receives the session, clock and configuration by injection; never
        commits.
    Guarantees:
        - ``get_report`` is read-only; it does not create the period row.
        - Lifecycle calls create the period lazily in draft.
    Non-goals:
        - File rendering of the report (see ``ledger_engines.export``).
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        config: LedgerConfig | None = None,
    ):
        self._clock = clock or SystemClock()
        self._config = config or get_active_config()
        self._entries = EntrySource(session, self._config)
        self._periods = ReportPeriodService(
            session,
            clock=self._clock,
            action_roles=self._config.roles.report_action_roles(),
        )

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    def get_report(
        self,
        month: int,
        year: int,
        view: ReportView | str = ReportView.LIVE,
    ) -> MonthlyReport:
        """
        The report for a period in the requested view.

        Raises:
            InvalidReportPeriodError: month or year out of range.
            ReportSnapshotNotFoundError: submitted view without a snapshot.
        """
        view = ReportView(view)
        key = ReportPeriodKey.of(month, year)

        if view == ReportView.SUBMITTED:
            return self._stored_snapshot(key).report
        return self._compute(key, _VIEW_MODES[view])

    def render_submitted(self, month: int, year: int) -> str:
        """Byte-stable JSON of the stored report."""
        return self._stored_snapshot(ReportPeriodKey.of(month, year)).report.canonical_json()

    def get_period(self, month: int, year: int) -> ReportPeriodInfo:
        """Lifecycle state of a period, created in draft on first access."""
        return self._periods.get_or_create(month, year)

    def list_periods(self, year: int | None = None) -> list[ReportPeriodInfo]:
        return self._periods.list_periods(year)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def finalize_report(
        self,
        month: int,
        year: int,
        actor: Actor,
        notes: str | None = None,
    ) -> ReportPeriodInfo:
        """Freeze the current live view of the period."""
        key = ReportPeriodKey.of(month, year)
        with LogContext.bind(report_period=key.label, actor_id=str(actor.id)):
            report = self._compute(key, ReportMode.LIVE)
            if report.failures:
                logger.warning(
                    "report_finalized_with_flagged_entries",
                    extra={"failure_count": len(report.failures)},
                )
            snapshot = ReportSnapshot(
                version=self._config.report.snapshot_version,
                report=report,
                finalized_at=report.generated_at,
                finalized_by_name=actor.name,
            )
            return self._periods.finalize(month, year, snapshot, actor, notes=notes)

    def submit_report(
        self,
        month: int,
        year: int,
        submitted_to: str,
        actor: Actor,
    ) -> ReportPeriodInfo:
        return self._periods.submit(month, year, submitted_to, actor)

    def unfinalize_report(self, month: int, year: int, actor: Actor) -> ReportPeriodInfo:
        return self._periods.unfinalize(month, year, actor)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _compute(self, key: ReportPeriodKey, mode: ReportMode) -> MonthlyReport:
        now = self._clock.now()
        stream = self._entries.load(as_of=now.date())
        report = build_report(
            stream.entries,
            key,
            mode,
            stream.payment_methods,
            generated_at=now,
            places=self._config.engine.currency_places,
            unpaid_label=self._config.report.unpaid_section_label,
            currency=self._config.engine.default_currency,
        )
        if stream.normalized.has_failures:
            # Records that never reached the grouper are flagged alongside its own
            report = _with_failures(report, stream.normalized.failures)
        return report

    def _stored_snapshot(self, key: ReportPeriodKey) -> ReportSnapshot:
        snapshot = self._periods.get_snapshot(key.month, key.year)
        if snapshot is None:
            raise ReportSnapshotNotFoundError(key.label)
        return snapshot


def _with_failures(
    report: MonthlyReport, failures: tuple[EntryFailure, ...]
) -> MonthlyReport:
    return replace(report, failures=tuple(failures) + report.failures)
