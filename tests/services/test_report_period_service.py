"""
Tests for ReportPeriodService persistence, transitions and tamper checks.
"""

from datetime import datetime, timezone
from decimal import Decimal

import pytest
from sqlalchemy import update

from ledger_kernel.domain.report import MonthlyReport, ReportMode
from ledger_kernel.domain.report_period import ReportAction, ReportSnapshot, ReportStatus
from ledger_kernel.domain.values import ReportPeriodKey
from ledger_kernel.exceptions import (
    ReportAlreadyFinalizedError,
    ReportAlreadySubmittedError,
    ReportNotFinalizedError,
    ReportPeriodNotFoundError,
    ReportPermissionError,
    SnapshotTamperedError,
)
from ledger_kernel.models.report_period import ReportPeriodModel
from ledger_kernel.services.report_period_service import ReportPeriodService


def _snapshot(total: str = "0", month: int = 3) -> ReportSnapshot:
    report = MonthlyReport(
        period=ReportPeriodKey.of(month, 2026),
        mode=ReportMode.LIVE,
        sections=(),
        grand_total=Decimal(total),
        generated_at=datetime(2026, 4, 15, 9, 0, tzinfo=timezone.utc),
    )
    return ReportSnapshot(
        version=1,
        report=report,
        finalized_at=report.generated_at,
        finalized_by_name="Asha Admin",
    )


@pytest.fixture
def periods(session, clock):
    return ReportPeriodService(session, clock=clock)


class TestReads:
    def test_get_or_create_is_lazy_and_stable(self, periods):
        first = periods.get_or_create(3, 2026)
        second = periods.get_or_create(3, 2026)

        assert first.status == ReportStatus.DRAFT
        assert first.id == second.id
        assert not first.has_snapshot

    def test_get_period_requires_existing(self, periods):
        with pytest.raises(ReportPeriodNotFoundError):
            periods.get_period(3, 2026)

    def test_list_periods_newest_first(self, periods):
        for month, year in [(1, 2026), (11, 2025), (3, 2026)]:
            periods.get_or_create(month, year)

        assert [p.label for p in periods.list_periods()] == ["2026-03", "2026-01", "2025-11"]
        assert [p.label for p in periods.list_periods(2025)] == ["2025-11"]

    def test_no_snapshot_for_draft(self, periods):
        periods.get_or_create(3, 2026)

        assert periods.get_snapshot(3, 2026) is None
        assert periods.get_snapshot(4, 2026) is None


class TestLifecycle:
    def test_finalize_stores_snapshot(self, periods, admin, clock):
        snapshot = _snapshot("1500")

        info = periods.finalize(3, 2026, snapshot, admin, notes="Reviewed")

        assert info.status == ReportStatus.FINALIZED
        assert info.finalized_by_id == admin.id
        assert info.notes == "Reviewed"
        assert info.has_snapshot
        assert periods.get_snapshot(3, 2026) == snapshot

    def test_finalize_creates_period_on_demand(self, periods, admin):
        periods.finalize(5, 2026, _snapshot(month=5), admin)

        assert periods.get_period(5, 2026).status == ReportStatus.FINALIZED

    def test_second_finalize_rejected_and_first_snapshot_kept(self, periods, admin):
        first = _snapshot("100")
        periods.finalize(3, 2026, first, admin)

        with pytest.raises(ReportAlreadyFinalizedError):
            periods.finalize(3, 2026, _snapshot("999"), admin)

        assert periods.get_snapshot(3, 2026) == first

    def test_submit_keeps_snapshot(self, periods, admin):
        snapshot = _snapshot("100")
        periods.finalize(3, 2026, snapshot, admin)

        info = periods.submit(3, 2026, "Finance team", admin)

        assert info.status == ReportStatus.SUBMITTED
        assert info.submitted_to == "Finance team"
        assert info.submitted_at is not None
        assert info.is_terminal
        assert periods.get_snapshot(3, 2026) == snapshot

    def test_submitted_is_terminal(self, periods, admin, super_admin):
        periods.finalize(3, 2026, _snapshot(), admin)
        periods.submit(3, 2026, "Finance team", admin)

        with pytest.raises(ReportAlreadySubmittedError):
            periods.unfinalize(3, 2026, super_admin)
        with pytest.raises(ReportAlreadySubmittedError):
            periods.submit(3, 2026, "Again", admin)
        with pytest.raises(ReportAlreadyFinalizedError):
            periods.finalize(3, 2026, _snapshot(), admin)

    def test_submit_requires_finalized(self, periods, admin):
        periods.get_or_create(3, 2026)

        with pytest.raises(ReportNotFinalizedError):
            periods.submit(3, 2026, "Finance team", admin)

    def test_submit_unknown_period(self, periods, admin):
        with pytest.raises(ReportPeriodNotFoundError):
            periods.submit(7, 2026, "Finance team", admin)

    def test_unfinalize_clears_snapshot(self, periods, admin, super_admin):
        periods.finalize(3, 2026, _snapshot(), admin)

        info = periods.unfinalize(3, 2026, super_admin)

        assert info.status == ReportStatus.DRAFT
        assert not info.has_snapshot
        assert info.finalized_at is None
        assert periods.get_snapshot(3, 2026) is None

    def test_refinalize_after_unfinalize(self, periods, admin, super_admin):
        periods.finalize(3, 2026, _snapshot("1"), admin)
        periods.unfinalize(3, 2026, super_admin)

        periods.finalize(3, 2026, _snapshot("2"), admin)

        assert periods.get_snapshot(3, 2026).report.grand_total == Decimal("2")


class TestPermissions:
    def test_admin_cannot_unfinalize(self, periods, admin):
        periods.finalize(3, 2026, _snapshot(), admin)

        with pytest.raises(ReportPermissionError):
            periods.unfinalize(3, 2026, admin)

        assert periods.get_period(3, 2026).status == ReportStatus.FINALIZED

    def test_role_checked_before_state(self, periods, standard_user):
        # No period exists; the caller still only learns about permission
        with pytest.raises(ReportPermissionError):
            periods.submit(3, 2026, "Finance team", standard_user)


class TestTamperDetection:
    def test_modified_snapshot_detected(self, periods, admin, session, captured_logs):
        periods.finalize(3, 2026, _snapshot("100"), admin)
        stored = session.query(ReportPeriodModel).one()
        payload = dict(stored.snapshot)
        payload["finalized_by_name"] = "Someone Else"
        session.execute(
            update(ReportPeriodModel)
            .where(ReportPeriodModel.id == stored.id)
            .values(snapshot=payload)
        )

        with pytest.raises(SnapshotTamperedError) as exc_info:
            periods.get_snapshot(3, 2026)

        assert exc_info.value.period_label == "2026-03"
        assert any(r["message"] == "report_snapshot_tampered" for r in captured_logs())


class TestCompareAndSwap:
    def test_stale_expectation_raises_current_conflict(self, periods, admin):
        periods.finalize(3, 2026, _snapshot(), admin)
        periods.submit(3, 2026, "Finance team", admin)
        key = ReportPeriodKey.of(3, 2026)
        period = periods._lock(key, create=False)

        # A writer that still believes the period is finalized
        with pytest.raises(ReportAlreadySubmittedError):
            periods._compare_and_swap(
                period, key, ReportAction.UNFINALIZE,
                expected=ReportStatus.FINALIZED,
                values={"status": ReportStatus.DRAFT.value},
            )

        assert periods.get_period(3, 2026).status == ReportStatus.SUBMITTED
