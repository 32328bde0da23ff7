"""
Balance Sources Configuration - Environment-driven settings.

Usage:
    config = BalanceSourcesConfig.from_env()
    problems = config.validate()
"""

import os
from dataclasses import dataclass
from typing import List, Optional

from dotenv import load_dotenv

from balance_sources.models import Provider


DEFAULT_RATE_PAIRS: tuple[tuple[str, str], ...] = (
    ("USD", "UAH"),
    ("EUR", "UAH"),
    ("GBP", "UAH"),
    ("PLN", "UAH"),
)


def parse_rate_pairs(raw: Optional[str]) -> tuple[tuple[str, str], ...]:
    """Parse ``"USD:UAH,EUR:UAH"``; blank input yields the default pairs."""
    if not raw or not raw.strip():
        return DEFAULT_RATE_PAIRS

    pairs = []
    for chunk in raw.split(","):
        chunk = chunk.strip()
        if not chunk:
            continue
        source, sep, target = chunk.partition(":")
        if not sep:
            raise ValueError(f"Rate pair must look like SRC:DST, got '{chunk}'")
        pairs.append((source.strip().upper(), target.strip().upper()))
    return tuple(pairs)


def _flag(name: str, default: str = "true") -> bool:
    return os.getenv(name, default).lower() == "true"


@dataclass
class BalanceSourcesConfig:
    """Settings shared by all balance sources."""

    privatbank_base_url: str = "https://acp.privatbank.ua"
    """PrivatBank business API root."""

    wise_base_url: str = "https://api.transferwise.com"
    """Wise API root (balances, profiles and rates)."""

    request_timeout_seconds: float = 30.0
    """Total timeout for a single HTTP call."""

    privatbank_enabled: bool = True
    wise_enabled: bool = True

    exchange_rate_pairs: tuple[tuple[str, str], ...] = DEFAULT_RATE_PAIRS
    """Currency pairs quoted on every refresh."""

    user_agent: str = "BalanceSources/1.0"
    log_level: str = "INFO"

    def is_enabled(self, provider: Provider) -> bool:
        if provider is Provider.PRIVATBANK:
            return self.privatbank_enabled
        return self.wise_enabled

    @classmethod
    def from_env(cls) -> "BalanceSourcesConfig":
        """Load configuration from environment variables (and a .env file)."""
        load_dotenv()
        return cls(
            privatbank_base_url=os.getenv("PRIVATBANK_BASE_URL", "https://acp.privatbank.ua"),
            wise_base_url=os.getenv("WISE_BASE_URL", "https://api.transferwise.com"),
            request_timeout_seconds=float(os.getenv("REQUEST_TIMEOUT_SECONDS", "30")),
            privatbank_enabled=_flag("PRIVATBANK_ENABLED"),
            wise_enabled=_flag("WISE_ENABLED"),
            exchange_rate_pairs=parse_rate_pairs(os.getenv("EXCHANGE_RATE_PAIRS")),
            user_agent=os.getenv("BALANCE_SOURCES_USER_AGENT", "BalanceSources/1.0"),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
        )

    def validate(self) -> List[str]:
        """Validate configuration, return list of errors."""
        errors = []

        for name in ("privatbank_base_url", "wise_base_url"):
            value = getattr(self, name)
            if not value.startswith(("http://", "https://")):
                errors.append(f"{name} must be an http(s) URL")

        if self.request_timeout_seconds <= 0:
            errors.append("request_timeout_seconds must be positive")

        for source, target in self.exchange_rate_pairs:
            if len(source) != 3 or len(target) != 3:
                errors.append(f"Invalid currency pair {source}:{target}")

        return errors
