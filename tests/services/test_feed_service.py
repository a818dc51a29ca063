"""
Tests for FeedService: archived handling, badge counts and paging.
"""

from datetime import date

import pytest

from ledger_engines.feed import PENDING_ACTIONS, FeedFilter, FeedSort, FeedSortKey
from ledger_kernel.domain.entries import EntryKind
from ledger_services.feed_service import FeedService


@pytest.fixture
def feed(session, clock, config):
    return FeedService(session, clock=clock, config=config)


@pytest.fixture
def activity(seed):
    vendor = seed.vendor()
    neft = seed.payment_method("NEFT")
    live = seed.invoice(vendor, "1000", issue_date=date(2026, 3, 1))
    seed.payment(live, "400", payment_date=date(2026, 3, 10), method=neft)
    seed.payment(live, "100", payment_date=date(2026, 3, 12), method=neft, status="pending_approval")
    archived = seed.invoice(vendor, "700", issue_date=date(2026, 2, 1), is_archived=True)
    seed.payment(archived, "700", payment_date=date(2026, 2, 5), method=neft)
    seed.advance(vendor, "250", payment_date=date(2026, 3, 15), method=neft)
    return live, archived


class TestArchived:
    def test_hidden_by_default(self, feed, activity):
        view = feed.get_feed()

        assert view.page.total == 4
        assert activity[1].id not in {e.id for e in view.page.items}

    def test_included_on_request(self, feed, activity):
        view = feed.get_feed(include_archived=True)

        assert view.page.total == 6
        assert view.counts[EntryKind.PAYMENT] == 3


class TestFilteringAndCounts:
    def test_default_sort_is_newest_first(self, feed, activity):
        dates = [e.date for e in feed.get_feed().page.items]

        assert dates == sorted(dates, reverse=True)

    def test_counts_ignore_kind_filter(self, feed, activity):
        view = feed.get_feed(FeedFilter(kinds=frozenset({EntryKind.PAYMENT})))

        assert view.page.total == 2
        assert view.counts == {
            EntryKind.INVOICE: 1,
            EntryKind.PAYMENT: 2,
            EntryKind.CREDIT_NOTE: 0,
            EntryKind.ADVANCE_PAYMENT: 1,
        }

    def test_counts_follow_other_filters(self, feed, activity):
        view = feed.get_feed(FeedFilter(date_from=date(2026, 3, 11)))

        assert view.counts[EntryKind.PAYMENT] == 1
        assert view.counts[EntryKind.INVOICE] == 0

    def test_pending_actions_use_configured_statuses(self, feed, activity):
        view = feed.get_feed(FeedFilter(statuses=frozenset({PENDING_ACTIONS})))

        kinds = sorted(e.kind.value for e in view.page.items)
        assert kinds == ["invoice", "payment"]

    def test_amount_sort(self, feed, activity):
        view = feed.get_feed(feed_sort=FeedSort(FeedSortKey.AMOUNT, descending=False))

        amounts = [e.gross_amount for e in view.page.items]
        assert amounts == sorted(amounts)


class TestPaging:
    def test_explicit_page_size(self, feed, activity):
        first = feed.get_feed(per_page=3)
        second = feed.get_feed(page=2, per_page=3)

        assert len(first.page.items) == 3
        assert first.page.has_next
        assert len(second.page.items) == 1
        assert not second.page.has_next

    def test_configured_default_page_size(self, feed, config, activity):
        view = feed.get_feed()

        assert view.page.per_page == config.feed.default_page_size

    def test_page_size_capped(self, feed, config, activity):
        view = feed.get_feed(per_page=10_000)

        assert view.page.per_page == config.feed.max_page_size

    def test_empty_feed(self, feed):
        view = feed.get_feed()

        assert view.page.items == ()
        assert view.page.total_pages == 1
        assert set(view.counts.values()) == {0}
