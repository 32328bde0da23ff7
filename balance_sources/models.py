"""
Balance Source Models - Canonical balance structures.

Provides strict typing for balance normalization across all providers.
Provider-native (intermediate) records live next to the provider that
decodes them; only the provider-agnostic shapes are defined here.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional


class Provider(Enum):
    """Upstream balance providers."""
    PRIVATBANK = "privatbank"
    WISE = "wise"

    @property
    def display_name(self) -> str:
        return _DISPLAY_NAMES[self]


_DISPLAY_NAMES = {
    Provider.PRIVATBANK: "PrivatBank",
    Provider.WISE: "Wise",
}


@dataclass(frozen=True)
class CanonicalBalanceRecord:
    """
    Normalized balance output - STRICT schema.

    All providers MUST project their records to this format.
    No downstream aggregation depends on provider-specific fields.
    """
    identifier: str
    title: str
    currency_code: str
    amount: Decimal
    provider: Provider

    def __post_init__(self) -> None:
        if not isinstance(self.amount, Decimal):
            raise TypeError(f"amount must be Decimal, got {type(self.amount).__name__}")
        code = (self.currency_code or "").strip().upper()
        if not code:
            raise ValueError("currency_code must not be empty")
        object.__setattr__(self, "currency_code", code)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "identifier": self.identifier,
            "title": self.title,
            "currency_code": self.currency_code,
            "amount": str(self.amount),
            "provider": self.provider.value,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CanonicalBalanceRecord":
        """Create from dictionary."""
        return cls(
            identifier=data["identifier"],
            title=data["title"],
            currency_code=data["currency_code"],
            amount=Decimal(data["amount"]),
            provider=Provider(data["provider"]),
        )


@dataclass(frozen=True)
class ExchangeRateRecord:
    """One quoted currency pair."""
    source_currency: str
    target_currency: str
    rate: Decimal

    @property
    def pair_description(self) -> str:
        return f"{self.source_currency} -> {self.target_currency}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "source_currency": self.source_currency,
            "target_currency": self.target_currency,
            "rate": str(self.rate),
        }


@dataclass(frozen=True)
class CurrencyTotal:
    """Sum of all balances held in one currency."""
    currency_code: str
    total_amount: Decimal

    def to_dict(self) -> dict[str, Any]:
        return {
            "currency_code": self.currency_code,
            "total_amount": str(self.total_amount),
        }


@dataclass
class SourceMetadata:
    """Metadata about a balance provider."""
    name: str
    display_name: str
    version: str
    base_url: str = ""
    documentation_url: str = ""
    requires_auth: bool = True
    home_currency: Optional[str] = None
    tags: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "name": self.name,
            "display_name": self.display_name,
            "version": self.version,
            "base_url": self.base_url,
            "documentation_url": self.documentation_url,
            "requires_auth": self.requires_auth,
            "home_currency": self.home_currency,
            "tags": self.tags,
        }


@dataclass
class BalanceSnapshot:
    """Result of one refresh cycle across all enabled providers."""
    balances: dict[Provider, list[CanonicalBalanceRecord]] = field(default_factory=dict)
    exchange_rates: list[ExchangeRateRecord] = field(default_factory=list)
    errors: list[Any] = field(default_factory=list)
    missing_credentials: set[Provider] = field(default_factory=set)
    fetched_at: datetime = field(default_factory=datetime.utcnow)

    def all_balances(self) -> list[CanonicalBalanceRecord]:
        """Flatten balances in provider declaration order."""
        result: list[CanonicalBalanceRecord] = []
        for provider in Provider:
            result.extend(self.balances.get(provider, []))
        return result

    def is_empty(self) -> bool:
        return not self.all_balances() and not self.exchange_rates

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "balances": {
                provider.value: [record.to_dict() for record in records]
                for provider, records in self.balances.items()
            },
            "exchange_rates": [rate.to_dict() for rate in self.exchange_rates],
            "errors": [error.to_dict() for error in self.errors],
            "missing_credentials": sorted(p.value for p in self.missing_credentials),
            "fetched_at": self.fetched_at.isoformat(),
        }
