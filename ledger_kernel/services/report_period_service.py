"""
ReportPeriodService -- report period persistence with a single writer.

Responsibility:
    Persists the report lifecycle (draft -> finalized -> submitted, plus
    admin-only unfinalize) and the frozen snapshot captured at finalize.
    Transition rules come from ``ledger_kernel.domain.report_period``; this
    service adds locking, role checks, timestamps and logging.

Architecture position:
    Kernel > Services -- imperative shell.  Called by
    ``ledger_services.monthly_report_service``.

Invariants enforced:
    - Lazy creation: the first access to a (month, year) creates it in draft.
    - Single writer: the period row is read with SELECT ... FOR UPDATE and
      every transition is a compare-and-swap
      ``UPDATE ... WHERE status = :expected``.  A caller that loses the race
      gets the named conflict and the winner's snapshot is left intact.
    - Snapshot immutability: submit never touches the snapshot; only
      finalize (from draft) writes it and only unfinalize clears it.
    - Tamper evidence: the snapshot's SHA-256 is stored at finalize and
      verified on every read.
    - Flush-only: never commits or rolls back the caller's transaction.

Failure modes:
    - ReportPermissionError: actor's role may not run the transition.
    - ReportAlreadyFinalizedError / ReportNotFinalizedError /
      ReportAlreadySubmittedError: transition forbidden from current status.
    - ReportPeriodNotFoundError: read of a period that was never created.
    - SnapshotTamperedError: stored snapshot no longer matches its checksum.
"""

from __future__ import annotations

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.domain.documents import Actor, ActorRole
from ledger_kernel.domain.report_period import (
    ReportAction,
    ReportPeriodInfo,
    ReportSnapshot,
    ReportStatus,
    check_permission,
    resolve_transition,
)
from ledger_kernel.domain.values import ReportPeriodKey
from ledger_kernel.exceptions import (
    ReportAlreadyFinalizedError,
    ReportAlreadySubmittedError,
    ReportNotFinalizedError,
    ReportPeriodNotFoundError,
    SnapshotTamperedError,
)
from ledger_kernel.logging_config import LogContext, get_logger
from ledger_kernel.models.report_period import ReportPeriodModel
from ledger_kernel.services.base import BaseService
from ledger_kernel.utils.hashing import hash_payload

logger = get_logger("services.report_period")


class ReportPeriodService(BaseService):
    """
    Report period lifecycle persistence.

    ``action_roles`` overrides which roles may run each transition (loaded
    from configuration by the caller); defaults to admin/super_admin for
    finalize and submit and super_admin alone for unfinalize.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        action_roles: dict[ReportAction, tuple[ActorRole, ...]] | None = None,
    ):
        super().__init__(session)
        self._clock = clock or SystemClock()
        self._action_roles = action_roles

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_or_create(self, month: int, year: int) -> ReportPeriodInfo:
        """Return the period, creating it in draft on first access."""
        key = ReportPeriodKey.of(month, year)
        period = self._get_orm(key)
        if period is None:
            period = self._create(key)
        return self._to_dto(period)

    def get_period(self, month: int, year: int) -> ReportPeriodInfo:
        """
        Raises:
            ReportPeriodNotFoundError: If the period was never created.
        """
        key = ReportPeriodKey.of(month, year)
        period = self._get_orm(key)
        if period is None:
            raise ReportPeriodNotFoundError(key.label)
        return self._to_dto(period)

    def list_periods(self, year: int | None = None) -> list[ReportPeriodInfo]:
        stmt = select(ReportPeriodModel)
        if year is not None:
            stmt = stmt.where(ReportPeriodModel.year == year)
        stmt = stmt.order_by(ReportPeriodModel.year.desc(), ReportPeriodModel.month.desc())
        return [self._to_dto(p) for p in self.session.scalars(stmt)]

    def get_snapshot(self, month: int, year: int) -> ReportSnapshot | None:
        """
        Load and verify the stored snapshot, or None when there is none.

        Raises:
            SnapshotTamperedError: If the stored payload fails its checksum.
        """
        key = ReportPeriodKey.of(month, year)
        period = self._get_orm(key)
        if period is None or period.snapshot is None:
            return None

        actual = hash_payload(period.snapshot)
        if actual != period.snapshot_checksum:
            logger.error(
                "report_snapshot_tampered",
                extra={
                    "report_period": key.label,
                    "expected_checksum": period.snapshot_checksum,
                    "actual_checksum": actual,
                },
            )
            raise SnapshotTamperedError(key.label, period.snapshot_checksum or "", actual)

        return ReportSnapshot.from_payload(period.snapshot)

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def finalize(
        self,
        month: int,
        year: int,
        snapshot: ReportSnapshot,
        actor: Actor,
        notes: str | None = None,
    ) -> ReportPeriodInfo:
        """
        Freeze ``snapshot`` onto a draft period.

        Postconditions:
            - status is finalized; snapshot, checksum, finalized_at,
              finalized_by_id and notes are stored.
        """
        key = ReportPeriodKey.of(month, year)
        check_permission(ReportAction.FINALIZE, actor, self._action_roles)

        with LogContext.bind(report_period=key.label, actor_id=str(actor.id)):
            period = self._lock(key, create=True)
            resolve_transition(_status(period), ReportAction.FINALIZE, key.label)

            payload = snapshot.to_payload()
            checksum = hash_payload(payload)
            now = self._clock.now()

            self._compare_and_swap(
                period,
                key,
                ReportAction.FINALIZE,
                expected=ReportStatus.DRAFT,
                values={
                    "status": ReportStatus.FINALIZED.value,
                    "snapshot": payload,
                    "snapshot_checksum": checksum,
                    "finalized_at": now,
                    "finalized_by_id": actor.id,
                    "notes": notes,
                    "updated_by_id": actor.id,
                },
            )

            logger.info(
                "report_finalized",
                extra={
                    "grand_total": payload["report_data"]["grand_total"],
                    "total_entries": payload["report_data"]["total_entries"],
                    "snapshot_checksum": checksum,
                },
            )
            return self._to_dto(period)

    def submit(
        self,
        month: int,
        year: int,
        submitted_to: str,
        actor: Actor,
    ) -> ReportPeriodInfo:
        """Mark a finalized period submitted; the snapshot is not touched."""
        key = ReportPeriodKey.of(month, year)
        check_permission(ReportAction.SUBMIT, actor, self._action_roles)

        with LogContext.bind(report_period=key.label, actor_id=str(actor.id)):
            period = self._lock(key, create=False)
            resolve_transition(_status(period), ReportAction.SUBMIT, key.label)

            self._compare_and_swap(
                period,
                key,
                ReportAction.SUBMIT,
                expected=ReportStatus.FINALIZED,
                values={
                    "status": ReportStatus.SUBMITTED.value,
                    "submitted_at": self._clock.now(),
                    "submitted_to": submitted_to,
                    "updated_by_id": actor.id,
                },
            )

            logger.info("report_submitted", extra={"submitted_to": submitted_to})
            return self._to_dto(period)

    def unfinalize(self, month: int, year: int, actor: Actor) -> ReportPeriodInfo:
        """Discard the snapshot of a finalized period and return it to draft."""
        key = ReportPeriodKey.of(month, year)
        check_permission(ReportAction.UNFINALIZE, actor, self._action_roles)

        with LogContext.bind(report_period=key.label, actor_id=str(actor.id)):
            period = self._lock(key, create=False)
            resolve_transition(_status(period), ReportAction.UNFINALIZE, key.label)

            self._compare_and_swap(
                period,
                key,
                ReportAction.UNFINALIZE,
                expected=ReportStatus.FINALIZED,
                values={
                    "status": ReportStatus.DRAFT.value,
                    "snapshot": None,
                    "snapshot_checksum": None,
                    "finalized_at": None,
                    "finalized_by_id": None,
                    "updated_by_id": actor.id,
                },
            )

            logger.warning("report_unfinalized")
            return self._to_dto(period)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _get_orm(self, key: ReportPeriodKey) -> ReportPeriodModel | None:
        return self.session.scalars(
            select(ReportPeriodModel).where(
                ReportPeriodModel.month == key.month,
                ReportPeriodModel.year == key.year,
            )
        ).one_or_none()

    def _create(self, key: ReportPeriodKey) -> ReportPeriodModel:
        """Insert a draft row; a concurrent creator wins and we re-read theirs."""
        try:
            with self.session.begin_nested():
                period = ReportPeriodModel(
                    month=key.month,
                    year=key.year,
                    status=ReportStatus.DRAFT.value,
                )
                self.session.add(period)
            logger.info("report_period_created", extra={"report_period": key.label})
            return period
        except IntegrityError:
            logger.info(
                "report_period_create_race_lost",
                extra={"report_period": key.label},
            )
            existing = self._get_orm(key)
            if existing is None:
                raise
            return existing

    def _lock(self, key: ReportPeriodKey, create: bool) -> ReportPeriodModel:
        """SELECT ... FOR UPDATE with fresh attribute values."""
        if create and self._get_orm(key) is None:
            self._create(key)

        period = self.session.scalars(
            select(ReportPeriodModel)
            .where(
                ReportPeriodModel.month == key.month,
                ReportPeriodModel.year == key.year,
            )
            .with_for_update()
            .execution_options(populate_existing=True)
        ).one_or_none()

        if period is None:
            raise ReportPeriodNotFoundError(key.label)
        return period

    def _compare_and_swap(
        self,
        period: ReportPeriodModel,
        key: ReportPeriodKey,
        action: ReportAction,
        expected: ReportStatus,
        values: dict,
    ) -> None:
        """
        Apply ``values`` only if the stored status still equals ``expected``.

        Raises the conflict the current status implies when another writer
        got there first.
        """
        result = self.session.execute(
            update(ReportPeriodModel)
            .where(
                ReportPeriodModel.id == period.id,
                ReportPeriodModel.status == expected.value,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        self.session.refresh(period)

        if result.rowcount == 1:
            return

        current = _status(period)
        logger.warning(
            "report_transition_conflict",
            extra={
                "action": action.value,
                "expected_status": expected.value,
                "current_status": current.value,
            },
        )
        if action == ReportAction.FINALIZE:
            raise ReportAlreadyFinalizedError(key.label, current.value)
        if current == ReportStatus.SUBMITTED:
            raise ReportAlreadySubmittedError(key.label, action.value)
        raise ReportNotFinalizedError(key.label, action.value)

    def _to_dto(self, period: ReportPeriodModel) -> ReportPeriodInfo:
        return ReportPeriodInfo(
            id=period.id,
            month=period.month,
            year=period.year,
            status=_status(period),
            finalized_at=period.finalized_at,
            finalized_by_id=period.finalized_by_id,
            submitted_at=period.submitted_at,
            submitted_to=period.submitted_to,
            notes=period.notes,
            has_snapshot=period.snapshot is not None,
        )


def _status(period: ReportPeriodModel) -> ReportStatus:
    return ReportStatus(period.status)
