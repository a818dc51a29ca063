"""
Tests for LedgerService: per-profile ledgers and the profile overview.
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from ledger_engines.ledger import LedgerFilter
from ledger_kernel.domain.entries import EntryKind
from ledger_kernel.exceptions import ProfileNotFoundError
from ledger_services.ledger_service import LedgerService

RETAINER = uuid4()
HOSTING = uuid4()


@pytest.fixture
def ledgers(session, clock, config):
    return LedgerService(session, clock=clock, config=config)


@pytest.fixture
def profiles(seed):
    vendor = seed.vendor()
    neft = seed.payment_method("NEFT")
    retainer = seed.invoice(
        vendor, "10000", issue_date=date(2026, 2, 1), percentage="10",
        profile_id=RETAINER, profile_name="Retainer",
    )
    seed.payment(retainer, "9000", payment_date=date(2026, 2, 20), method=neft)
    seed.invoice(
        vendor, "500", issue_date=date(2026, 3, 1),
        profile_id=HOSTING, profile_name="Hosting",
    )
    seed.invoice(vendor, "250", issue_date=date(2026, 3, 2))
    return vendor


class TestGetLedger:
    def test_profile_ledger_with_running_balance(self, ledgers, profiles):
        result = ledgers.get_ledger(RETAINER)

        assert [r.kind for r in result.entries] == [EntryKind.INVOICE, EntryKind.PAYMENT]
        assert [r.running_balance for r in result.entries] == [Decimal("9000"), Decimal("0")]
        assert result.summary.total_invoiced == Decimal("10000")
        assert result.summary.total_withheld == Decimal("1000")
        assert result.summary.outstanding_balance == Decimal("0")

    def test_documents_without_profile(self, ledgers, profiles):
        result = ledgers.get_ledger(None)

        (row,) = result.entries
        assert row.payable_amount == Decimal("250")
        assert result.summary.unpaid_invoice_count == 1

    def test_filter_hides_rows_only(self, ledgers, profiles):
        result = ledgers.get_ledger(
            RETAINER, LedgerFilter(kinds=frozenset({EntryKind.PAYMENT}))
        )

        (row,) = result.entries
        assert row.running_balance == Decimal("0")
        assert result.total_rows == 2
        assert result.summary.invoice_count == 1

    def test_unknown_profile(self, ledgers, profiles):
        with pytest.raises(ProfileNotFoundError):
            ledgers.get_ledger(uuid4())

    def test_archived_invoice_stays_in_ledger(self, ledgers, seed, profiles):
        seed.invoice(
            profiles, "300", issue_date=date(2026, 3, 10),
            profile_id=HOSTING, profile_name="Hosting", is_archived=True,
        )

        result = ledgers.get_ledger(HOSTING)

        assert result.summary.invoice_count == 2
        assert result.summary.outstanding_balance == Decimal("800")

    def test_unnormalizable_documents_reported(self, ledgers, seed, profiles):
        bad = seed.invoice(
            profiles, "100", profile_id=HOSTING, withholding_applicable=True,
        )

        result = ledgers.get_ledger(HOSTING)

        assert [f.record_id for f in result.failures] == [bad.id]
        assert result.summary.invoice_count == 1


class TestProfiles:
    def test_overview_sorted_by_name(self, ledgers, profiles):
        overview = ledgers.profiles()

        assert [p.profile_name for p in overview] == ["Hosting", "Retainer"]
        hosting, retainer = overview
        assert hosting.outstanding_balance == Decimal("500")
        assert hosting.unpaid_count == 1
        assert retainer.outstanding_balance == Decimal("0")
        assert retainer.unpaid_count == 0

    def test_archived_invoice_not_outstanding(self, ledgers, seed, profiles):
        seed.invoice(
            profiles, "300", profile_id=HOSTING, profile_name="Hosting", is_archived=True,
        )

        (hosting, _) = ledgers.profiles()

        assert hosting.outstanding_balance == Decimal("500")

    def test_empty_database(self, ledgers):
        assert ledgers.profiles() == ()
