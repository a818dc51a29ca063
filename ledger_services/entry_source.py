"""
ledger_services.entry_source -- Fetch and normalize the document stream.

Responsibility:
    The one place that turns stored documents into ``NormalizedEntry``
    values.  Reads every live document through ``DocumentSelector``, builds
    an ``EntryNormalizer`` with the configured currency settings and returns
    the entries together with any records that could not be normalized.

Architecture position:
    Services -- read-side helper shared by the report, ledger and bulk
    services.  Holds a session; never writes.

Invariants enforced:
    - Archived invoices are always loaded so that payments and credit notes
      against them still resolve their parent; consumers decide whether
      archived documents are shown.
    - Soft-deleted invoices are never loaded, and neither are the payments
      and credit notes recorded against them.
    - Records are normalized in a fixed order (invoices, credit notes,
      payments, advances; each in selector order), so ``sequence`` values
      are reproducible.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from uuid import UUID

from sqlalchemy.orm import Session

from ledger_config import LedgerConfig
from ledger_engines.normalizer import EntryNormalizer, NormalizationResult
from ledger_kernel.domain.documents import PaymentMethod
from ledger_kernel.domain.entries import EntryKind, NormalizedEntry
from ledger_kernel.logging_config import get_logger
from ledger_kernel.selectors.document_selector import DocumentFilter, DocumentSelector

logger = get_logger("services.entry_source")


@dataclass(frozen=True)
class EntryStream:
    """Normalized entries plus the payment methods they were resolved against."""

    normalized: NormalizationResult
    payment_methods: tuple[PaymentMethod, ...]

    @property
    def entries(self) -> tuple[NormalizedEntry, ...]:
        return self.normalized.entries

    def archived_invoice_ids(self) -> frozenset[UUID]:
        return frozenset(
            e.id
            for e in self.entries
            if e.kind == EntryKind.INVOICE and e.payload.is_archived
        )

    def without_archived(self) -> tuple[NormalizedEntry, ...]:
        """Entries minus archived invoices and the documents recorded against them."""
        archived = self.archived_invoice_ids()
        if not archived:
            return self.entries
        return tuple(e for e in self.entries if _parent_invoice_id(e) not in archived)


def _parent_invoice_id(entry: NormalizedEntry) -> UUID | None:
    if entry.kind == EntryKind.INVOICE:
        return entry.id
    if entry.kind in (EntryKind.PAYMENT, EntryKind.CREDIT_NOTE):
        return entry.payload.invoice_id
    return None


class EntrySource:
    """Loads documents and normalizes them as of a given day."""

    def __init__(self, session: Session, config: LedgerConfig):
        self._selector = DocumentSelector(session)
        self._config = config

    def load(
        self,
        as_of: date,
        profile_id: UUID | None = None,
        invoice_ids: tuple[UUID, ...] | None = None,
    ) -> EntryStream:
        """
        Load and normalize documents.

        ``profile_id`` and ``invoice_ids`` narrow the invoices fetched; the
        payments and credit notes follow their invoices.  Advances are only
        loaded for unrestricted and profile-scoped loads.
        """
        doc_filter = DocumentFilter(
            profile_id=profile_id,
            invoice_ids=invoice_ids,
            include_archived=True,
        )
        invoices = self._selector.list_invoices(doc_filter)
        ids = tuple(inv.id for inv in invoices)
        payments = self._selector.list_payments(ids)
        credit_notes = self._selector.list_credit_notes(DocumentFilter(invoice_ids=ids))
        advances = (
            []
            if invoice_ids is not None
            else self._selector.list_advance_payments(DocumentFilter(profile_id=profile_id))
        )
        # Inactive methods still label historical payments
        methods = tuple(self._selector.list_payment_methods(active_only=False))

        engine = self._config.engine
        normalizer = EntryNormalizer(
            invoices,
            payments=payments,
            payment_methods=methods,
            as_of=as_of,
            credit_notes=credit_notes,
            places=engine.currency_places,
            rounding=engine.decimal_rounding,
        )
        result = normalizer.normalize_all([*invoices, *credit_notes, *payments, *advances])

        logger.info(
            "entries_loaded",
            extra={
                "invoice_count": len(invoices),
                "payment_count": len(payments),
                "credit_note_count": len(credit_notes),
                "advance_payment_count": len(advances),
                "failure_count": len(result.failures),
            },
        )
        return EntryStream(normalized=result, payment_methods=methods)
