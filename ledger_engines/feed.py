"""
Unified Feed -- filter, sort and page the normalized entry stream.

Responsibility:
    One query surface over all four entry kinds: a conjunction of filters,
    a single stable sort key, badge counts per kind and pagination.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - Filtering never inspects the kind-specific payload except through
      ``NormalizedEntry.remaining_balance``; raw ``status`` is what status
      filters match.
    - Sorting is stable in both directions: entries with equal keys keep
      their input order, so repeated queries page identically.
    - The composite ``pending_actions`` status expands per entry kind.
"""

from __future__ import annotations

import math
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Any
from uuid import UUID

from ledger_engines.tracer import traced_engine
from ledger_kernel.domain.documents import ApprovalStatus, InvoiceStatus
from ledger_kernel.domain.entries import EntryKind, NormalizedEntry

PENDING_ACTIONS = "pending_actions"

DEFAULT_PENDING_ACTION_STATUSES: dict[EntryKind, frozenset[str]] = {
    EntryKind.INVOICE: frozenset({
        InvoiceStatus.PENDING_APPROVAL.value,
        InvoiceStatus.UNPAID.value,
        InvoiceStatus.PARTIAL.value,
        InvoiceStatus.OVERDUE.value,
        InvoiceStatus.ON_HOLD.value,
    }),
    EntryKind.PAYMENT: frozenset({ApprovalStatus.PENDING_APPROVAL.value}),
    EntryKind.CREDIT_NOTE: frozenset({ApprovalStatus.PENDING_APPROVAL.value}),
    EntryKind.ADVANCE_PAYMENT: frozenset({ApprovalStatus.PENDING_APPROVAL.value}),
}


class FeedSortKey(str, Enum):
    DATE = "date"
    AMOUNT = "amount"
    STATUS = "status"
    REMAINING_BALANCE = "remaining_balance"


_SORT_KEYS: dict[FeedSortKey, Callable[[NormalizedEntry], Any]] = {
    FeedSortKey.DATE: lambda e: e.date,
    FeedSortKey.AMOUNT: lambda e: e.gross_amount,
    FeedSortKey.STATUS: lambda e: e.status,
    FeedSortKey.REMAINING_BALANCE: lambda e: e.remaining_balance,
}


@dataclass(frozen=True)
class FeedSort:
    key: FeedSortKey = FeedSortKey.DATE
    descending: bool = True


@dataclass(frozen=True)
class FeedFilter:
    """
    Every set field must match; ``None`` means "no constraint".

    ``statuses`` may include ``PENDING_ACTIONS``.
    """

    kinds: frozenset[EntryKind] | None = None
    statuses: frozenset[str] | None = None
    date_from: date | None = None
    date_to: date | None = None
    profile_ids: frozenset[UUID] | None = None
    vendor_ids: frozenset[UUID] | None = None
    category_ids: frozenset[UUID] | None = None
    entity_ids: frozenset[UUID] | None = None
    payment_method_ids: frozenset[UUID] | None = None
    search: str | None = None

    def matches(
        self,
        entry: NormalizedEntry,
        pending_statuses: Mapping[EntryKind, frozenset[str]] = DEFAULT_PENDING_ACTION_STATUSES,
    ) -> bool:
        if self.kinds is not None and entry.kind not in self.kinds:
            return False
        if self.statuses is not None and not _status_matches(self.statuses, entry, pending_statuses):
            return False
        if self.date_from is not None and entry.date < self.date_from:
            return False
        if self.date_to is not None and entry.date > self.date_to:
            return False
        for allowed, value in (
            (self.profile_ids, entry.profile_id),
            (self.vendor_ids, entry.vendor_id),
            (self.category_ids, entry.category_id),
            (self.entity_ids, entry.entity_id),
            (self.payment_method_ids, entry.payment_method_id),
        ):
            if allowed is not None and value not in allowed:
                return False
        if self.search:
            needle = self.search.strip().casefold()
            if needle and not (
                needle in entry.reference_number.casefold()
                or needle in (entry.description or "").casefold()
            ):
                return False
        return True


def _status_matches(
    statuses: frozenset[str],
    entry: NormalizedEntry,
    pending_statuses: Mapping[EntryKind, frozenset[str]],
) -> bool:
    if entry.status in statuses:
        return True
    return PENDING_ACTIONS in statuses and entry.status in pending_statuses.get(entry.kind, ())


@dataclass(frozen=True)
class FeedPage:
    items: tuple[NormalizedEntry, ...]
    page: int
    per_page: int
    total: int

    @property
    def total_pages(self) -> int:
        return max(1, math.ceil(self.total / self.per_page))

    @property
    def has_next(self) -> bool:
        return self.page < self.total_pages


@traced_engine("feed", "1.0", fingerprint_fields=("feed_filter", "feed_sort"))
def query(
    entries: Iterable[NormalizedEntry],
    feed_filter: FeedFilter | None = None,
    feed_sort: FeedSort | None = None,
    pending_statuses: Mapping[EntryKind, frozenset[str]] | None = None,
) -> list[NormalizedEntry]:
    """Filter then stably sort ``entries``."""
    feed_filter = feed_filter or FeedFilter()
    feed_sort = feed_sort or FeedSort()
    pending = pending_statuses or DEFAULT_PENDING_ACTION_STATUSES

    selected = [e for e in entries if feed_filter.matches(e, pending)]
    # sorted() keeps equal keys in input order even with reverse=True
    return sorted(selected, key=_SORT_KEYS[feed_sort.key], reverse=feed_sort.descending)


def count_by_kind(entries: Iterable[NormalizedEntry]) -> dict[EntryKind, int]:
    """Badge counts; every kind is present, zero when absent."""
    counts = dict.fromkeys(EntryKind, 0)
    for entry in entries:
        counts[entry.kind] += 1
    return counts


def paginate(
    entries: Sequence[NormalizedEntry],
    page: int = 1,
    per_page: int = 25,
    max_per_page: int = 100,
) -> FeedPage:
    """Slice one page; out-of-range page numbers are clamped."""
    per_page = min(max(per_page, 1), max_per_page)
    total = len(entries)
    last_page = max(1, math.ceil(total / per_page))
    page = min(max(page, 1), last_page)
    start = (page - 1) * per_page
    return FeedPage(
        items=tuple(entries[start:start + per_page]),
        page=page,
        per_page=per_page,
        total=total,
    )
