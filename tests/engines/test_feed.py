"""
Tests for the Unified Feed query engine.
"""

from datetime import date
from decimal import Decimal

import pytest

from ledger_engines.feed import (
    PENDING_ACTIONS,
    FeedFilter,
    FeedSort,
    FeedSortKey,
    count_by_kind,
    paginate,
    query,
)
from ledger_engines.normalizer import EntryNormalizer
from ledger_kernel.domain.documents import ApprovalStatus, InvoiceStatus
from ledger_kernel.domain.entries import EntryKind


@pytest.fixture
def stream(documents):
    neft = documents.method("NEFT")
    rent = documents.invoice("5000", issue_date=date(2026, 3, 1), description="Office rent")
    power = documents.invoice("1200", issue_date=date(2026, 3, 8), description="Electricity")
    draft = documents.invoice(
        "800", issue_date=date(2026, 3, 8), status=InvoiceStatus.PENDING_APPROVAL
    )
    paid = documents.invoice("300", issue_date=date(2026, 2, 1), status=InvoiceStatus.PAID)
    payment = documents.payment(rent, "5000", payment_date=date(2026, 3, 9), method=neft)
    pending = documents.payment(
        power, "100", payment_date=date(2026, 3, 10), status=ApprovalStatus.PENDING_APPROVAL
    )
    advance = documents.advance("2500", payment_date=date(2026, 3, 2))
    records = [rent, power, draft, paid, payment, pending, advance]
    entries = EntryNormalizer(
        [rent, power, draft, paid], [payment, pending], [neft]
    ).normalize_all(records).entries
    return {
        "entries": entries,
        "rent": rent,
        "power": power,
        "draft": draft,
        "paid": paid,
        "payment": payment,
        "pending": pending,
        "advance": advance,
        "neft": neft,
    }


def _ids(entries):
    return [e.id for e in entries]


class TestFiltering:
    def test_no_filter_returns_everything(self, stream):
        assert len(query(stream["entries"])) == 7

    def test_kind_filter(self, stream):
        result = query(stream["entries"], FeedFilter(kinds=frozenset({EntryKind.PAYMENT})))

        assert set(_ids(result)) == {stream["payment"].id, stream["pending"].id}

    def test_raw_status_filter(self, stream):
        result = query(stream["entries"], FeedFilter(statuses=frozenset({"paid"})))

        assert _ids(result) == [stream["paid"].id]

    def test_pending_actions_expands_per_kind(self, stream):
        result = query(stream["entries"], FeedFilter(statuses=frozenset({PENDING_ACTIONS})))

        assert set(_ids(result)) == {
            stream["rent"].id,
            stream["power"].id,
            stream["draft"].id,
            stream["pending"].id,
        }

    def test_custom_pending_statuses(self, stream):
        pending = {EntryKind.INVOICE: frozenset({"pending_approval"})}

        result = query(
            stream["entries"],
            FeedFilter(statuses=frozenset({PENDING_ACTIONS})),
            pending_statuses=pending,
        )

        assert _ids(result) == [stream["draft"].id]

    def test_date_range_is_inclusive(self, stream):
        result = query(
            stream["entries"],
            FeedFilter(date_from=date(2026, 3, 8), date_to=date(2026, 3, 9)),
        )

        assert set(_ids(result)) == {stream["power"].id, stream["draft"].id, stream["payment"].id}

    def test_search_matches_reference_or_description(self, stream):
        by_text = query(stream["entries"], FeedFilter(search="  electric "))
        by_ref = query(stream["entries"], FeedFilter(search=stream["paid"].invoice_number.lower()))

        assert _ids(by_text) == [stream["power"].id]
        assert _ids(by_ref) == [stream["paid"].id]

    def test_payment_method_filter(self, stream):
        result = query(
            stream["entries"],
            FeedFilter(payment_method_ids=frozenset({stream["neft"].id})),
        )

        assert _ids(result) == [stream["payment"].id]

    def test_filters_are_conjunctive(self, stream):
        result = query(
            stream["entries"],
            FeedFilter(kinds=frozenset({EntryKind.INVOICE}), statuses=frozenset({"paid"}),
                       date_from=date(2026, 3, 1)),
        )

        assert result == []


class TestSorting:
    def test_default_is_newest_first(self, stream):
        dates = [e.date for e in query(stream["entries"])]

        assert dates == sorted(dates, reverse=True)

    def test_amount_ascending(self, stream):
        result = query(stream["entries"], feed_sort=FeedSort(FeedSortKey.AMOUNT, descending=False))

        assert [e.gross_amount for e in result][:2] == [Decimal("100"), Decimal("300")]

    def test_remaining_balance(self, stream):
        result = query(stream["entries"], feed_sort=FeedSort(FeedSortKey.REMAINING_BALANCE))

        assert result[0].id == stream["power"].id

    @pytest.mark.parametrize("descending", [True, False])
    def test_equal_keys_keep_input_order(self, stream, descending):
        result = query(stream["entries"], feed_sort=FeedSort(FeedSortKey.DATE, descending))

        same_day = [e.id for e in result if e.date == date(2026, 3, 8)]
        assert same_day == [stream["power"].id, stream["draft"].id]


class TestCountsAndPaging:
    def test_counts_cover_every_kind(self, stream):
        counts = count_by_kind(stream["entries"])

        assert counts == {
            EntryKind.INVOICE: 4,
            EntryKind.PAYMENT: 2,
            EntryKind.CREDIT_NOTE: 0,
            EntryKind.ADVANCE_PAYMENT: 1,
        }

    def test_pages(self, stream):
        ordered = query(stream["entries"])

        first = paginate(ordered, page=1, per_page=3)
        last = paginate(ordered, page=3, per_page=3)

        assert first.total == 7
        assert first.total_pages == 3
        assert first.has_next
        assert len(last.items) == 1
        assert not last.has_next

    def test_out_of_range_values_are_clamped(self, stream):
        ordered = query(stream["entries"])

        assert paginate(ordered, page=99, per_page=3).page == 3
        assert paginate(ordered, page=0).page == 1
        assert paginate(ordered, per_page=500, max_per_page=50).per_page == 50
        assert paginate(ordered, per_page=0).per_page == 1

    def test_empty_feed_has_one_page(self):
        page = paginate([], page=4)

        assert page.page == 1
        assert page.total_pages == 1
        assert page.items == ()
