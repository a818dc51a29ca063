"""
Hypothesis property tests for the pure engines.

Properties:
- Withholding: withheld + payable == gross in every mode
- Standard withholding stays within half a minor unit of the exact product
- Round-up withholding is a whole unit, never below the exact product and
  less than one unit above it; it is monotonic in the gross amount
- Round-up never withholds less than standard rounding for g, p >= 0
- Both modes are sign-symmetric
- Ledger: each running balance is the previous one plus payable minus paid,
  and the last one is the summary's outstanding balance
- Feed: sorting is stable in both directions
"""

from datetime import date, timedelta
from decimal import Decimal
from uuid import uuid4

from hypothesis import given, settings
from hypothesis import strategies as st

from ledger_engines.feed import FeedSort, FeedSortKey, query
from ledger_engines.ledger import build_ledger
from ledger_engines.normalizer import EntryNormalizer
from ledger_engines.withholding import withhold
from ledger_kernel.domain.documents import (
    ApprovalStatus,
    Invoice,
    InvoiceStatus,
    Payment,
)

VENDOR_ID = uuid4()
START = date(2026, 1, 1)

amounts = st.decimals(min_value=Decimal("0.01"), max_value=Decimal("10000000"), places=2)
percentages = st.decimals(min_value=Decimal("0"), max_value=Decimal("100"), places=2)


def _invoice(gross: Decimal, day: int, status: InvoiceStatus = InvoiceStatus.UNPAID, pct=None) -> Invoice:
    return Invoice(
        id=uuid4(),
        invoice_number=f"INV-{uuid4().hex[:6]}",
        vendor_id=VENDOR_ID,
        vendor_name="Acme Supplies",
        gross_amount=gross,
        issue_date=START + timedelta(days=day),
        status=status,
        withholding_applicable=pct is not None,
        withholding_percentage=pct,
    )


class TestWithholdingProperties:
    @given(gross=amounts, pct=percentages, round_up=st.booleans())
    def test_parts_sum_to_gross(self, gross, pct, round_up):
        result = withhold(gross, pct, round_up)

        assert result.withheld_amount + result.payable_amount == gross

    @given(gross=amounts, pct=percentages)
    def test_standard_within_half_minor_unit(self, gross, pct):
        result = withhold(gross, pct)

        assert abs(result.withheld_amount - result.exact_withholding) <= Decimal("0.005")

    @given(gross=amounts, pct=percentages)
    def test_round_up_is_a_ceiling(self, gross, pct):
        result = withhold(gross, pct, round_up=True)

        assert result.withheld_amount == result.withheld_amount.to_integral_value()
        assert result.withheld_amount >= result.exact_withholding
        assert result.withheld_amount - result.exact_withholding < 1

    @given(gross=amounts, pct=percentages)
    def test_round_up_never_below_standard(self, gross, pct):
        standard = withhold(gross, pct)
        rounded_up = withhold(gross, pct, round_up=True)

        assert rounded_up.withheld_amount >= standard.withheld_amount
        assert rounded_up.payable_amount <= standard.payable_amount

    @given(a=amounts, b=amounts, pct=percentages)
    def test_round_up_monotonic_in_gross(self, a, b, pct):
        low, high = sorted((a, b))

        assert withhold(low, pct, True).withheld_amount <= withhold(high, pct, True).withheld_amount

    @given(gross=amounts, pct=percentages, round_up=st.booleans())
    def test_sign_symmetric(self, gross, pct, round_up):
        positive = withhold(gross, pct, round_up)
        negative = withhold(-gross, pct, round_up)

        assert negative.withheld_amount == -positive.withheld_amount
        assert negative.payable_amount == -positive.payable_amount


@st.composite
def invoice_histories(draw):
    """Invoices with approved payments that never exceed their gross."""
    records = []
    for _ in range(draw(st.integers(min_value=1, max_value=6))):
        gross = draw(st.decimals(min_value=Decimal("1"), max_value=Decimal("100000"), places=2))
        pct = draw(st.one_of(st.none(), st.sampled_from([Decimal("2"), Decimal("10")])))
        invoice = _invoice(gross, draw(st.integers(min_value=0, max_value=60)), pct=pct)
        records.append(invoice)
        remaining = gross
        for _ in range(draw(st.integers(min_value=0, max_value=3))):
            if remaining < Decimal("0.01"):
                break
            amount = draw(st.decimals(min_value=Decimal("0.01"), max_value=remaining, places=2))
            remaining -= amount
            records.append(Payment(
                id=uuid4(),
                invoice_id=invoice.id,
                amount=amount,
                payment_date=invoice.issue_date + timedelta(days=draw(st.integers(0, 30))),
                status=ApprovalStatus.APPROVED,
            ))
    return records


class TestLedgerProperties:
    @settings(max_examples=50, deadline=None)
    @given(records=invoice_histories())
    def test_running_balance_folds_rows(self, records):
        invoices = [r for r in records if isinstance(r, Invoice)]
        payments = [r for r in records if isinstance(r, Payment)]
        entries = EntryNormalizer(invoices, payments).normalize_all(records).entries

        result = build_ledger(None, entries)

        balance = Decimal("0")
        for row in result.entries:
            balance = balance + row.payable_amount - row.paid_amount
            assert row.running_balance == balance
        assert result.summary.outstanding_balance == balance
        assert result.total_rows == len(records)
        assert result.failures == ()


class TestFeedProperties:
    @settings(max_examples=50, deadline=None)
    @given(
        statuses=st.lists(
            st.sampled_from([InvoiceStatus.UNPAID, InvoiceStatus.PAID, InvoiceStatus.ON_HOLD]),
            min_size=1,
            max_size=12,
        ),
        descending=st.booleans(),
    )
    def test_sort_is_stable(self, statuses, descending):
        invoices = [_invoice(Decimal("100"), 0, status) for status in statuses]
        entries = EntryNormalizer(invoices).normalize_all(invoices).entries

        ordered = query(entries, feed_sort=FeedSort(FeedSortKey.STATUS, descending))

        position = {e.id: i for i, e in enumerate(entries)}
        for status in set(statuses):
            same = [position[e.id] for e in ordered if e.status == status.value]
            assert same == sorted(same)
