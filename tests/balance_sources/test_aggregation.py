"""
Tests for Deduplication and Aggregation.

============================================================
PURPOSE
============================================================
Deduplication must be idempotent and order-preserving;
totals must be exact per currency.

============================================================
"""

from decimal import Decimal

from hypothesis import given
from hypothesis import strategies as st

from balance_sources.aggregation import currency_totals, non_zero
from balance_sources.dedup import deduplicate, deduplicate_records
from balance_sources.models import CanonicalBalanceRecord, CurrencyTotal, Provider


def record(identifier, amount="1", currency="UAH", provider=Provider.PRIVATBANK):
    return CanonicalBalanceRecord(
        identifier=identifier,
        title=identifier,
        currency_code=currency,
        amount=Decimal(amount),
        provider=provider,
    )


# ============================================================
# DEDUPLICATION
# ============================================================

class TestDeduplicate:
    """First occurrence wins."""

    def test_first_occurrence_kept(self):
        records = [record("A", "1"), record("B", "2"), record("A", "3")]

        result = deduplicate_records(records)

        assert [(r.identifier, r.amount) for r in result] == [("A", Decimal("1")), ("B", Decimal("2"))]

    @given(st.lists(st.integers(min_value=0, max_value=5)))
    def test_idempotent(self, items):
        once = deduplicate(items, key=lambda x: x)

        assert deduplicate(once, key=lambda x: x) == once

    @given(st.lists(st.integers(min_value=0, max_value=5)))
    def test_order_of_first_appearance(self, items):
        result = deduplicate(items, key=lambda x: x)

        assert result == list(dict.fromkeys(items))


# ============================================================
# AGGREGATION
# ============================================================

class TestAggregation:
    """Totals across providers."""

    def test_currency_totals(self):
        records = [
            record("A", "100.50", "UAH"),
            record("B", "0.10", "USD", Provider.WISE),
            record("C", "0.20", "USD", Provider.WISE),
            record("D", "-0.50", "UAH"),
        ]

        assert currency_totals(records) == [
            CurrencyTotal("UAH", Decimal("100.00")),
            CurrencyTotal("USD", Decimal("0.30")),
        ]

    def test_non_zero(self):
        records = [record("A", "0"), record("B", "0.00"), record("C", "-1")]

        assert [r.identifier for r in non_zero(records)] == ["C"]

    def test_empty(self):
        assert currency_totals([]) == []
        assert non_zero([]) == []
