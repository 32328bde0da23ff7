"""
Balance Sources Package - Tolerant multi-schema balance normalization.

Turns unpredictable JSON from bank and wallet providers into a small,
typed, deduplicated set of balance records.

Features:
- Schema cascade: strict, wrapped-array, untyped search, empty body
- Alias-based field resolution with nested search
- Exact Decimal amounts from strings, numbers and wrappers
- Flat, classified failure taxonomy
- Concurrent per-provider fetching with failure isolation

Quick Start:
    from balance_sources import (
        BalanceSourcesConfig,
        EnvironmentCredentialStore,
        create_default_registry,
    )

    async def refresh():
        async with create_default_registry() as registry:
            snapshot = await registry.fetch_snapshot()

        for record in snapshot.all_balances():
            print(f"{record.title}: {record.amount} {record.currency_code}")

Offline normalization of a saved payload:
    from balance_sources import LedgerAccountProjection

    records = LedgerAccountProjection().normalize(body_bytes)

Adding New Providers:
    1. Write a projection with decode(), project() and normalize()
    2. Create a class extending BaseBalanceSource with fetch_raw() and metadata()
    3. Register it with SourceRegistry
"""

from balance_sources.aggregation import currency_totals, non_zero
from balance_sources.aliases import resolve, resolve_decimal, resolve_string
from balance_sources.base import BalanceProjection, BaseBalanceSource, BaseHttpSource
from balance_sources.cascade import CascadeRules, SchemaCascade, extract_error_message
from balance_sources.coercion import coerce_decimal
from balance_sources.config import BalanceSourcesConfig
from balance_sources.credentials import (
    CredentialStore,
    EnvironmentCredentialStore,
    InMemoryCredentialStore,
)
from balance_sources.dedup import deduplicate, deduplicate_records
from balance_sources.exceptions import (
    BalanceSourceError,
    DecodingFailedError,
    EmptyResponseError,
    ErrorKind,
    InvalidRequestTargetError,
    MissingCredentialError,
    ProviderMessageError,
    UnexpectedStatusError,
)
from balance_sources.models import (
    BalanceSnapshot,
    CanonicalBalanceRecord,
    CurrencyTotal,
    ExchangeRateRecord,
    Provider,
    SourceMetadata,
)
from balance_sources.providers import (
    LedgerAccountProjection,
    PrivatBankBalanceSource,
    WalletBalanceProjection,
    WiseBalanceSource,
)
from balance_sources.rates import ExchangeRateSource
from balance_sources.registry import SourceRegistry, create_default_registry


__version__ = "1.0.0"

__all__ = [
    # Base
    "BalanceProjection",
    "BaseBalanceSource",
    "BaseHttpSource",

    # Normalization
    "coerce_decimal",
    "resolve",
    "resolve_string",
    "resolve_decimal",
    "CascadeRules",
    "SchemaCascade",
    "extract_error_message",
    "deduplicate",
    "deduplicate_records",

    # Models
    "Provider",
    "CanonicalBalanceRecord",
    "ExchangeRateRecord",
    "CurrencyTotal",
    "SourceMetadata",
    "BalanceSnapshot",

    # Exceptions
    "ErrorKind",
    "BalanceSourceError",
    "MissingCredentialError",
    "InvalidRequestTargetError",
    "UnexpectedStatusError",
    "DecodingFailedError",
    "EmptyResponseError",
    "ProviderMessageError",

    # Configuration
    "BalanceSourcesConfig",
    "CredentialStore",
    "EnvironmentCredentialStore",
    "InMemoryCredentialStore",

    # Providers
    "LedgerAccountProjection",
    "PrivatBankBalanceSource",
    "WalletBalanceProjection",
    "WiseBalanceSource",
    "ExchangeRateSource",

    # Registry
    "SourceRegistry",
    "create_default_registry",
    "non_zero",
    "currency_totals",
]
