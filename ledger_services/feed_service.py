"""
ledger_services.feed_service -- Unified activity feed.

Responsibility:
    One paged list over invoices, payments, credit notes and advance
    payments with the feed engine's filters and sort, plus per-kind badge
    counts for the current filter.

Architecture position:
    Services -- read-side orchestration over ``EntrySource`` and
    ``ledger_engines.feed``.

Invariants enforced:
    - Archived invoices, and the documents recorded against them, are
      hidden unless ``include_archived`` is set.
    - Badge counts ignore the kind filter so every tab shows how many rows
      it would hold.
    - Page size defaults and limits come from configuration.
"""

from __future__ import annotations

from dataclasses import dataclass, replace

from sqlalchemy.orm import Session

from ledger_config import LedgerConfig, get_active_config
from ledger_engines.feed import FeedFilter, FeedPage, FeedSort, count_by_kind, paginate, query
from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.domain.entries import EntryFailure, EntryKind
from ledger_kernel.logging_config import get_logger
from ledger_services.entry_source import EntrySource

logger = get_logger("services.feed")


@dataclass(frozen=True)
class FeedView:
    page: FeedPage
    counts: dict[EntryKind, int]
    failures: tuple[EntryFailure, ...] = ()


class FeedService:
    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        config: LedgerConfig | None = None,
    ):
        self._clock = clock or SystemClock()
        self._config = config or get_active_config()
        self._entries = EntrySource(session, self._config)

    def get_feed(
        self,
        feed_filter: FeedFilter | None = None,
        feed_sort: FeedSort | None = None,
        page: int = 1,
        per_page: int | None = None,
        include_archived: bool = False,
    ) -> FeedView:
        feed_filter = feed_filter or FeedFilter()
        settings = self._config.feed
        pending = settings.pending_action_statuses or None

        stream = self._entries.load(as_of=self._clock.today())
        entries = stream.entries if include_archived else stream.without_archived()

        rows = query(entries, feed_filter, feed_sort, pending)
        counts = count_by_kind(query(entries, replace(feed_filter, kinds=None), feed_sort, pending))

        feed_page = paginate(
            rows,
            page=page,
            per_page=per_page or settings.default_page_size,
            max_per_page=settings.max_page_size,
        )
        logger.debug(
            "feed_queried",
            extra={"total": feed_page.total, "page": feed_page.page, "per_page": feed_page.per_page},
        )
        return FeedView(
            page=feed_page,
            counts=counts,
            failures=stream.normalized.failures,
        )
