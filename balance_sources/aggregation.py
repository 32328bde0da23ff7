"""
Aggregation - Totals across providers.

Zero balances are valid records (an API version may expose no balance
field at all); they are removed here, not during decoding.
"""

from decimal import Decimal
from typing import Iterable

from balance_sources.models import CanonicalBalanceRecord, CurrencyTotal


def non_zero(records: Iterable[CanonicalBalanceRecord]) -> list[CanonicalBalanceRecord]:
    return [record for record in records if record.amount != 0]


def currency_totals(records: Iterable[CanonicalBalanceRecord]) -> list[CurrencyTotal]:
    """Sum amounts per currency code, sorted by code."""
    totals: dict[str, Decimal] = {}
    for record in records:
        totals[record.currency_code] = totals.get(record.currency_code, Decimal("0")) + record.amount
    return [CurrencyTotal(currency_code=code, total_amount=totals[code]) for code in sorted(totals)]
