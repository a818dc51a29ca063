"""
DocumentService -- approve, reject, archive and delete source documents.

Responsibility:
    Owns the single-document mutations the approval screens call.  Every
    public method returns a ``MutationResult``; business failures (not
    found, not permitted, no longer pending, already archived) are values,
    not exceptions, so a caller can sequence independent operations (vendor
    approval, then invoice approval) and handle partial success.

Architecture position:
    Kernel > Services -- imperative shell.  Used directly by callers and by
    ``ledger_services.bulk_operations`` once per item.

Invariants enforced:
    - Approve/reject are mutually exclusive: both are compare-and-swap
      UPDATEs guarded by ``status = 'pending_approval'``.  The loser of a
      race observes the winner's status and fails with "no longer pending".
    - Idempotency: approving an approved document (or rejecting a rejected
      one) succeeds with ``already_applied=True`` and changes nothing.
    - Archive/delete are guarded the same way on ``is_archived`` /
      ``deleted_at`` so a repeated call fails instead of re-stamping.
    - Flush-only: never commits or rolls back.

Failure modes (as MutationResult.error_code):
    DOCUMENT_NOT_FOUND, DOCUMENT_PERMISSION_DENIED, DOCUMENT_NO_LONGER_PENDING,
    DOCUMENT_ALREADY_ARCHIVED.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.domain.documents import (
    INVOICE_APPROVED_STATUS,
    Actor,
    ActorRole,
    ApprovalStatus,
)
from ledger_kernel.domain.entries import EntryKind, require_exhaustive
from ledger_kernel.domain.results import MutationResult
from ledger_kernel.exceptions import (
    DocumentAlreadyArchivedError,
    DocumentNoLongerPendingError,
    DocumentNotFoundError,
    DocumentPermissionError,
    LedgerKernelError,
)
from ledger_kernel.logging_config import LogContext, get_logger
from ledger_kernel.models.documents import (
    AdvancePaymentModel,
    CreditNoteModel,
    InvoiceModel,
    PaymentModel,
    VendorModel,
)
from ledger_kernel.services.base import BaseService

logger = get_logger("services.document")

PENDING = ApprovalStatus.PENDING_APPROVAL.value
REJECTED = ApprovalStatus.REJECTED.value

DEFAULT_MUTATION_ROLES: tuple[ActorRole, ...] = (ActorRole.ADMIN, ActorRole.SUPER_ADMIN)


@dataclass(frozen=True)
class _ApprovalTarget:
    model: type
    label: str
    approved_status: str


_APPROVAL_TARGETS = require_exhaustive(
    {
        EntryKind.INVOICE: _ApprovalTarget(
            InvoiceModel, "invoice", INVOICE_APPROVED_STATUS.value
        ),
        EntryKind.PAYMENT: _ApprovalTarget(
            PaymentModel, "payment", ApprovalStatus.APPROVED.value
        ),
        EntryKind.CREDIT_NOTE: _ApprovalTarget(
            CreditNoteModel, "credit_note", ApprovalStatus.APPROVED.value
        ),
        EntryKind.ADVANCE_PAYMENT: _ApprovalTarget(
            AdvancePaymentModel, "advance_payment", ApprovalStatus.APPROVED.value
        ),
    },
    "DocumentService",
)

_VENDOR_TARGET = _ApprovalTarget(VendorModel, "vendor", ApprovalStatus.APPROVED.value)


class DocumentService(BaseService):
    """
    Single-document mutations with command/result semantics.

    ``approver_roles`` covers approve/reject; ``archive_roles`` covers
    archive and delete.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        approver_roles: tuple[ActorRole, ...] = DEFAULT_MUTATION_ROLES,
        archive_roles: tuple[ActorRole, ...] = DEFAULT_MUTATION_ROLES,
    ):
        super().__init__(session)
        self._clock = clock or SystemClock()
        self._approver_roles = approver_roles
        self._archive_roles = archive_roles

    # ------------------------------------------------------------------
    # Public commands
    # ------------------------------------------------------------------

    def approve(self, kind: EntryKind, document_id: UUID, actor: Actor) -> MutationResult:
        target = _APPROVAL_TARGETS[kind]
        return self._run(
            "approve",
            actor,
            lambda: self._decide(target, document_id, actor, target.approved_status, None),
        )

    def reject(
        self,
        kind: EntryKind,
        document_id: UUID,
        reason: str,
        actor: Actor,
    ) -> MutationResult:
        target = _APPROVAL_TARGETS[kind]
        return self._run(
            "reject",
            actor,
            lambda: self._decide(target, document_id, actor, REJECTED, reason),
        )

    def approve_vendor(self, vendor_id: UUID, actor: Actor) -> MutationResult:
        """Vendor approval; independent of approving the vendor's invoices."""
        return self._run(
            "approve_vendor",
            actor,
            lambda: self._decide(
                _VENDOR_TARGET, vendor_id, actor, _VENDOR_TARGET.approved_status, None
            ),
        )

    def archive(self, invoice_id: UUID, reason: str | None, actor: Actor) -> MutationResult:
        return self._run("archive", actor, lambda: self.archive_or_raise(invoice_id, reason, actor))

    def delete(self, invoice_id: UUID, actor: Actor) -> MutationResult:
        return self._run("delete", actor, lambda: self.delete_or_raise(invoice_id, actor))

    # ------------------------------------------------------------------
    # Raising variants (used by bulk operations for per-item error codes)
    # ------------------------------------------------------------------

    def archive_or_raise(
        self, invoice_id: UUID, reason: str | None, actor: Actor
    ) -> MutationResult:
        """
        Raises:
            DocumentPermissionError, DocumentNotFoundError,
            DocumentAlreadyArchivedError.
        """
        self._require_role(actor, self._archive_roles, "archive")
        self._load(InvoiceModel, "invoice", invoice_id)

        result = self.session.execute(
            update(InvoiceModel)
            .where(
                InvoiceModel.id == invoice_id,
                InvoiceModel.is_archived.is_(False),
                InvoiceModel.deleted_at.is_(None),
            )
            .values(
                is_archived=True,
                archived_at=self._clock.now(),
                archived_by_id=actor.id,
                archive_reason=reason,
                updated_by_id=actor.id,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise DocumentAlreadyArchivedError(str(invoice_id))

        self.session.flush()
        logger.info("invoice_archived", extra={"invoice_id": str(invoice_id)})
        return MutationResult.ok()

    def delete_or_raise(self, invoice_id: UUID, actor: Actor) -> MutationResult:
        """
        Soft-delete an invoice.

        Raises:
            DocumentPermissionError, DocumentNotFoundError.
        """
        self._require_role(actor, self._archive_roles, "delete")

        result = self.session.execute(
            update(InvoiceModel)
            .where(InvoiceModel.id == invoice_id, InvoiceModel.deleted_at.is_(None))
            .values(
                deleted_at=self._clock.now(),
                deleted_by_id=actor.id,
                updated_by_id=actor.id,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise DocumentNotFoundError("invoice", str(invoice_id))

        self.session.flush()
        logger.info("invoice_deleted", extra={"invoice_id": str(invoice_id)})
        return MutationResult.ok()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _run(
        self,
        operation: str,
        actor: Actor,
        command: Callable[[], MutationResult],
    ) -> MutationResult:
        with LogContext.bind(actor_id=str(actor.id), operation=operation):
            try:
                return command()
            except LedgerKernelError as exc:
                logger.warning(
                    "document_mutation_failed",
                    extra={"error_code": exc.code, "error": str(exc)},
                )
                return MutationResult.failure(str(exc), exc.code)

    def _decide(
        self,
        target: _ApprovalTarget,
        document_id: UUID,
        actor: Actor,
        new_status: str,
        reason: str | None,
    ) -> MutationResult:
        self._require_role(actor, self._approver_roles, "approve or reject")
        current = self._load(target.model, target.label, document_id).status

        if current != PENDING:
            return self._settled(target, document_id, current, new_status)

        values: dict = {"status": new_status, "updated_by_id": actor.id}
        if new_status == REJECTED:
            values["rejection_reason"] = reason

        result = self.session.execute(
            update(target.model)
            .where(target.model.id == document_id, target.model.status == PENDING)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            # Another writer decided between our read and our update
            current = self._load(target.model, target.label, document_id).status
            return self._settled(target, document_id, current, new_status)

        self.session.flush()
        logger.info(
            f"{target.label}_{'rejected' if new_status == REJECTED else 'approved'}",
            extra={"document_id": str(document_id), "new_status": new_status},
        )
        return MutationResult.ok()

    def _settled(
        self,
        target: _ApprovalTarget,
        document_id: UUID,
        current: str,
        requested: str,
    ) -> MutationResult:
        """Outcome for a document that has already left pending_approval."""
        if _same_decision(target, current, requested):
            logger.info(
                "document_decision_already_applied",
                extra={"document_id": str(document_id), "status": current},
            )
            return MutationResult.ok(already_applied=True)
        raise DocumentNoLongerPendingError(target.label, str(document_id), current)

    def _load(self, model: type, label: str, document_id: UUID):
        stmt = select(model).where(model.id == document_id)
        if model is InvoiceModel:
            stmt = stmt.where(InvoiceModel.deleted_at.is_(None))
        stmt = stmt.execution_options(populate_existing=True)
        row = self.session.scalars(stmt).one_or_none()
        if row is None:
            raise DocumentNotFoundError(label, str(document_id))
        return row

    @staticmethod
    def _require_role(actor: Actor, allowed: tuple[ActorRole, ...], operation: str) -> None:
        if actor.role not in allowed:
            raise DocumentPermissionError(operation, actor.role.value)


def _same_decision(target: _ApprovalTarget, current: str, requested: str) -> bool:
    if requested == REJECTED:
        return current == REJECTED
    if target.model is InvoiceModel:
        # Approved invoices move on through unpaid/partial/paid/...
        return current not in (PENDING, REJECTED)
    return current == requested
