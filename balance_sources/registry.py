"""
Source Registry - Runs every enabled balance source for one refresh.

Provides:
- Source registration per provider
- Concurrent fetching (one pipeline per provider plus the rate pipeline)
- Failure isolation: a provider error lands in the snapshot, it never
  hides other providers' results
- Missing tokens reported separately so the caller can ask for them
"""

import asyncio
import logging
from typing import Callable, Optional

import aiohttp

from balance_sources.base import BaseBalanceSource
from balance_sources.config import BalanceSourcesConfig
from balance_sources.credentials import CredentialStore, EnvironmentCredentialStore
from balance_sources.exceptions import BalanceSourceError, DecodingFailedError, MissingCredentialError
from balance_sources.models import (
    BalanceSnapshot,
    CanonicalBalanceRecord,
    ExchangeRateRecord,
    Provider,
    SourceMetadata,
)
from balance_sources.rates import ExchangeRateSource


logger = logging.getLogger(__name__)


class SourceRegistry:
    """
    Central registry for balance sources.

    Usage:
        registry = SourceRegistry(config)
        registry.register(PrivatBankBalanceSource(credentials, config))
        registry.register(WiseBalanceSource(credentials, config))
        registry.set_rate_source(ExchangeRateSource(config))

        snapshot = await registry.fetch_snapshot()
    """

    def __init__(self, config: Optional[BalanceSourcesConfig] = None) -> None:
        self._config = config or BalanceSourcesConfig()
        self._sources: dict[Provider, BaseBalanceSource] = {}
        self._rate_source: Optional[ExchangeRateSource] = None
        self._on_error_callbacks: list[Callable[[BalanceSourceError], None]] = []

    def register(self, source: BaseBalanceSource) -> None:
        """Register a balance source, replacing any source for the same provider."""
        if source.provider in self._sources:
            logger.warning(f"Source '{source.name}' already registered, replacing")
        self._sources[source.provider] = source
        logger.info(f"Registered source '{source.name}'")

    def unregister(self, provider: Provider) -> Optional[BaseBalanceSource]:
        """Unregister a balance source."""
        source = self._sources.pop(provider, None)
        if source is not None:
            logger.info(f"Unregistered source '{source.name}'")
        return source

    def set_rate_source(self, source: Optional[ExchangeRateSource]) -> None:
        self._rate_source = source

    def get_source(self, provider: Provider) -> Optional[BaseBalanceSource]:
        """Get a specific source by provider."""
        return self._sources.get(provider)

    def list_sources(self) -> list[Provider]:
        """List registered providers in declaration order."""
        return [p for p in Provider if p in self._sources]

    def get_all_metadata(self) -> dict[Provider, SourceMetadata]:
        """Get metadata for all registered sources."""
        return {provider: source.metadata() for provider, source in self._sources.items()}

    def enabled_sources(self) -> list[BaseBalanceSource]:
        return [self._sources[p] for p in self.list_sources() if self._config.is_enabled(p)]

    def on_error(self, callback: Callable[[BalanceSourceError], None]) -> None:
        """Register callback for classified provider failures."""
        self._on_error_callbacks.append(callback)

    async def fetch_snapshot(self) -> BalanceSnapshot:
        """
        Fetch every enabled provider and the exchange rates concurrently.

        Note:
            Never raises classified errors - they are collected in the snapshot
        """
        sources = self.enabled_sources()
        results = await asyncio.gather(
            *(self._fetch_source(source) for source in sources),
            self._fetch_rates(),
        )

        snapshot = BalanceSnapshot()
        for source, (records, error) in zip(sources, results[:-1]):
            snapshot.balances[source.provider] = records
            if isinstance(error, MissingCredentialError):
                snapshot.missing_credentials.add(source.provider)
            elif error is not None:
                snapshot.errors.append(error)

        snapshot.exchange_rates = results[-1]

        logger.info(
            f"Snapshot: {sum(len(r) for r in snapshot.balances.values())} balances, "
            f"{len(snapshot.exchange_rates)} rates, {len(snapshot.errors)} errors"
        )
        return snapshot

    async def _fetch_source(
        self,
        source: BaseBalanceSource,
    ) -> tuple[list[CanonicalBalanceRecord], Optional[BalanceSourceError]]:
        try:
            return await source.fetch(), None
        except MissingCredentialError as e:
            return [], e
        except BalanceSourceError as e:
            logger.warning(f"[{source.name}] Failed: {e}")
            self._notify(e)
            return [], e
        except Exception as e:
            error = DecodingFailedError(source.provider, f"Unexpected error: {e}", original_error=e)
            logger.exception(f"[{source.name}] Unexpected failure")
            self._notify(error)
            return [], error

    async def _fetch_rates(self) -> list[ExchangeRateRecord]:
        # Rates are quoted by the wallet provider and follow its toggle
        if self._rate_source is None or not self._config.is_enabled(self._rate_source.provider):
            return []
        # Failed pairs are dropped inside the rate source
        return await self._rate_source.fetch()

    def _notify(self, error: BalanceSourceError) -> None:
        for callback in self._on_error_callbacks:
            try:
                callback(error)
            except Exception as e:
                logger.error(f"Error callback failed: {e}")

    async def close(self) -> None:
        """Close all resources."""
        for source in self._sources.values():
            await source.close()
        if self._rate_source is not None:
            await self._rate_source.close()
        logger.info("Registry closed")

    async def __aenter__(self) -> "SourceRegistry":
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit."""
        await self.close()


def create_default_registry(
    config: Optional[BalanceSourcesConfig] = None,
    credentials: Optional[CredentialStore] = None,
    session: Optional[aiohttp.ClientSession] = None,
) -> SourceRegistry:
    """
    Set up a registry with the standard sources.

    Returns registry with PrivatBank, Wise and the Wise rate source.
    """
    from balance_sources.providers.privatbank import PrivatBankBalanceSource
    from balance_sources.providers.wise import WiseBalanceSource

    config = config or BalanceSourcesConfig.from_env()
    credentials = credentials or EnvironmentCredentialStore()

    registry = SourceRegistry(config)
    registry.register(PrivatBankBalanceSource(credentials, config, session=session))
    registry.register(WiseBalanceSource(credentials, config, session=session))
    registry.set_rate_source(ExchangeRateSource(config, session=session))
    return registry
