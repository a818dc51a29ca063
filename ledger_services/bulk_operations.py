"""
ledger_services.bulk_operations -- Archive, delete and export many invoices.

Responsibility:
    Applies a ``DocumentService`` command to each selected invoice and
    reports the per-item outcome, or flattens the selection into export
    rows.  Non-admin archive requests are queued for an admin instead of
    being applied.

Architecture position:
    Services -- orchestration over ``DocumentService`` (writes),
    ``EntrySource`` (reads) and ``ledger_engines.export``.

Invariants enforced:
    - Per-item isolation: every item runs inside its own SAVEPOINT
      (``session.begin_nested()``).  A failing item is rolled back alone
      and reported; the items around it still apply.
    - Duplicate ids in one request are applied once.
    - Partial failure is a value (``BulkOperationResult``), never an
      exception.
    - Flush-only: the caller commits.

Failure modes:
    - Per item, as ``ItemError.code``: DOCUMENT_NOT_FOUND,
      DOCUMENT_ALREADY_ARCHIVED, DOCUMENT_PERMISSION_DENIED.
    - InvalidExportColumnError from ``bulk_export`` for unknown columns.

Audit relevance:
    ``bulk_archive_completed`` / ``bulk_delete_completed`` record the
    counts and failed ids; queued requests log ``archive_request_queued``.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Sequence
from uuid import UUID

from sqlalchemy.orm import Session

from ledger_config import LedgerConfig, get_active_config
from ledger_engines.export import INVOICE_COLUMNS, ExportRow, invoice_rows, select_columns
from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.domain.documents import Actor
from ledger_kernel.domain.results import BulkArchiveOutcome, BulkOperationResult, ItemError
from ledger_kernel.exceptions import LedgerKernelError
from ledger_kernel.logging_config import LogContext, get_logger
from ledger_kernel.models.archive_request import ArchiveRequestModel
from ledger_kernel.selectors.document_selector import DocumentFilter, DocumentSelector
from ledger_kernel.services.document_service import DocumentService
from ledger_services.entry_source import EntrySource

logger = get_logger("services.bulk")


class BulkOperationService:
    """
    Bulk commands over invoices.

    Archive and delete roles come from ``config.roles.archive``; approval
    roles from ``config.roles.approve``.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        config: LedgerConfig | None = None,
    ):
        self.session = session
        self._clock = clock or SystemClock()
        self._config = config or get_active_config()
        self._documents = DocumentService(
            session,
            clock=self._clock,
            approver_roles=self._config.roles.approve,
            archive_roles=self._config.roles.archive,
        )
        self._entries = EntrySource(session, self._config)
        self._selector = DocumentSelector(session)

    def bulk_archive(
        self,
        invoice_ids: Iterable[UUID],
        reason: str | None,
        actor: Actor,
    ) -> BulkArchiveOutcome:
        """
        Archive every invoice an archiver may archive; queue the request
        otherwise.
        """
        ids = _unique(invoice_ids)
        with LogContext.bind(actor_id=str(actor.id), operation="bulk_archive"):
            if actor.role not in self._config.roles.archive:
                return BulkArchiveOutcome(pending_request_id=self._queue_archive(ids, reason, actor))

            result = self._each(
                ids, lambda invoice_id: self._documents.archive_or_raise(invoice_id, reason, actor)
            )
            _log_completed("bulk_archive_completed", result)
            return BulkArchiveOutcome(result=result)

    def bulk_delete(self, invoice_ids: Iterable[UUID], actor: Actor) -> BulkOperationResult:
        """Soft-delete each invoice."""
        ids = _unique(invoice_ids)
        with LogContext.bind(actor_id=str(actor.id), operation="bulk_delete"):
            result = self._each(
                ids, lambda invoice_id: self._documents.delete_or_raise(invoice_id, actor)
            )
            _log_completed("bulk_delete_completed", result)
            return result

    def bulk_export(
        self,
        invoice_ids: Iterable[UUID],
        column_ids: Sequence[str] | None = None,
    ) -> list[ExportRow]:
        """
        Invoice export rows in the order the ids were given.

        Ids that match no live invoice are skipped and logged.

        Raises:
            InvalidExportColumnError: any requested column is unknown.
        """
        ids = _unique(invoice_ids)
        stream = self._entries.load(as_of=self._clock.today(), invoice_ids=ids)
        invoices = self._selector.list_invoices(
            DocumentFilter(invoice_ids=ids, include_archived=True)
        )
        extras = {inv.id: {"created_at": inv.created_at} for inv in invoices}

        position = {invoice_id: i for i, invoice_id in enumerate(ids)}
        entries = sorted(
            (e for e in stream.entries if e.id in position),
            key=lambda e: position[e.id],
        )
        rows = invoice_rows(entries, extras)

        missing = len(ids) - len(rows)
        if missing:
            logger.warning("bulk_export_invoices_skipped", extra={"skipped_count": missing})

        if column_ids is None:
            return rows
        return select_columns(rows, column_ids, available=INVOICE_COLUMNS)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _each(
        self,
        ids: tuple[UUID, ...],
        command: Callable[[UUID], object],
    ) -> BulkOperationResult:
        succeeded: list[UUID] = []
        errors: list[ItemError] = []
        for item_id in ids:
            try:
                with self.session.begin_nested():
                    command(item_id)
            except LedgerKernelError as exc:
                errors.append(ItemError(item_id=item_id, code=exc.code, message=str(exc)))
            else:
                succeeded.append(item_id)
        return BulkOperationResult(
            succeeded=len(succeeded),
            failed=len(errors),
            succeeded_ids=tuple(succeeded),
            errors=tuple(errors),
        )

    def _queue_archive(
        self,
        ids: tuple[UUID, ...],
        reason: str | None,
        actor: Actor,
    ) -> UUID:
        request = ArchiveRequestModel(
            requested_by_id=actor.id,
            invoice_ids={"invoice_ids": [str(i) for i in ids]},
            reason=reason,
            created_by_id=actor.id,
        )
        self.session.add(request)
        self.session.flush()
        logger.info(
            "archive_request_queued",
            extra={"request_id": str(request.id), "invoice_count": len(ids)},
        )
        return request.id


def _unique(ids: Iterable[UUID]) -> tuple[UUID, ...]:
    return tuple(dict.fromkeys(ids))


def _log_completed(event: str, result: BulkOperationResult) -> None:
    logger.info(
        event,
        extra={
            "succeeded": result.succeeded,
            "failed": result.failed,
            "failed_ids": [str(i) for i in result.failed_ids],
        },
    )
