"""
Providers package - Balance source implementations.
"""

from balance_sources.providers.privatbank import (
    LedgerAccountEntry,
    LedgerAccountProjection,
    PrivatBankBalanceSource,
)
from balance_sources.providers.wise import (
    WalletAmount,
    WalletBalanceEntry,
    WalletBalanceProjection,
    WiseBalanceSource,
    select_profile_id,
)


__all__ = [
    "LedgerAccountEntry",
    "LedgerAccountProjection",
    "PrivatBankBalanceSource",
    "WalletAmount",
    "WalletBalanceEntry",
    "WalletBalanceProjection",
    "WiseBalanceSource",
    "select_profile_id",
]
