"""
Tests for the Source Registry.

============================================================
PURPOSE
============================================================
Verify that one refresh runs every enabled provider plus the
rate pipeline, and that one provider's failure never hides
another provider's results.

============================================================
"""

import json
from decimal import Decimal

import pytest

from balance_sources.config import BalanceSourcesConfig
from balance_sources.credentials import InMemoryCredentialStore
from balance_sources.exceptions import DecodingFailedError, UnexpectedStatusError
from balance_sources.models import Provider
from balance_sources.providers.privatbank import PrivatBankBalanceSource
from balance_sources.providers.wise import WiseBalanceSource
from balance_sources.registry import SourceRegistry, create_default_registry
from tests.balance_sources.fakes import FakeSession, as_body


class UpstreamStub:
    """Routes requests to canned PrivatBank and Wise responses."""

    def __init__(self, privatbank_status=200):
        self.privatbank_status = privatbank_status

    def __call__(self, url, headers):
        if url.host == "acp.privatbank.ua":
            if self.privatbank_status != 200:
                return self.privatbank_status, b""
            return 200, as_body({"balances": [{"acc": "UA01", "balance": "1000,00", "currency": "UAH"}]})
        if url.path == "/v1/profiles":
            return 200, as_body([{"id": 9, "type": "personal"}])
        if url.path == "/v1/rates":
            return 200, as_body([{"rate": 40, "source": url.query["source"], "target": url.query["target"]}])
        return 200, as_body([{"id": 1, "currency": "EUR", "amount": {"value": 12.5, "currency": "EUR"}}])


def make_registry(config=None, credentials=None, privatbank_status=200):
    session = FakeSession(UpstreamStub(privatbank_status))
    credentials = credentials or InMemoryCredentialStore({
        "privatbank_token": "privat-token",
        "wise_token": "wise-token",
    })
    registry = create_default_registry(config or BalanceSourcesConfig(), credentials, session=session)
    return registry, session


# ============================================================
# SNAPSHOT
# ============================================================

class TestFetchSnapshot:
    """One refresh cycle."""

    @pytest.mark.asyncio
    async def test_all_providers(self):
        registry, session = make_registry()

        async with registry:
            snapshot = await registry.fetch_snapshot()

        assert [r.identifier for r in snapshot.balances[Provider.PRIVATBANK]] == ["UA01"]
        assert [r.amount for r in snapshot.balances[Provider.WISE]] == [Decimal("12.5")]
        assert [r.provider for r in snapshot.all_balances()] == [Provider.PRIVATBANK, Provider.WISE]
        assert [r.source_currency for r in snapshot.exchange_rates] == ["EUR", "GBP", "PLN", "USD"]
        assert snapshot.errors == []
        assert snapshot.missing_credentials == set()
        assert not snapshot.is_empty()
        assert not session.closed

    @pytest.mark.asyncio
    async def test_missing_token_is_reported_separately(self):
        credentials = InMemoryCredentialStore({"privatbank_token": "privat-token"})
        registry, session = make_registry(credentials=credentials)

        snapshot = await registry.fetch_snapshot()

        assert snapshot.missing_credentials == {Provider.WISE}
        assert snapshot.errors == []
        assert snapshot.balances[Provider.WISE] == []
        assert len(snapshot.balances[Provider.PRIVATBANK]) == 1
        assert "/v1/profiles" not in session.paths()

    @pytest.mark.asyncio
    async def test_failure_isolation(self):
        registry, _ = make_registry(privatbank_status=503)
        seen = []
        registry.on_error(seen.append)

        snapshot = await registry.fetch_snapshot()

        assert snapshot.balances[Provider.PRIVATBANK] == []
        assert len(snapshot.balances[Provider.WISE]) == 1
        assert len(snapshot.exchange_rates) == 4
        assert len(snapshot.errors) == 1
        assert isinstance(snapshot.errors[0], UnexpectedStatusError)
        assert seen == snapshot.errors

    @pytest.mark.asyncio
    async def test_unexpected_provider_error_is_classified(self, monkeypatch):
        registry, _ = make_registry()
        seen = []
        registry.on_error(seen.append)

        def broken_normalize(raw):
            raise RuntimeError("projection bug")

        monkeypatch.setattr(registry.get_source(Provider.PRIVATBANK), "normalize", broken_normalize)

        snapshot = await registry.fetch_snapshot()

        assert snapshot.balances[Provider.PRIVATBANK] == []
        assert len(snapshot.balances[Provider.WISE]) == 1
        assert len(snapshot.exchange_rates) == 4
        assert len(snapshot.errors) == 1
        error = snapshot.errors[0]
        assert isinstance(error, DecodingFailedError)
        assert error.provider is Provider.PRIVATBANK
        assert isinstance(error.original_error, RuntimeError)
        assert "projection bug" in str(error)
        assert seen == [error]

    @pytest.mark.asyncio
    async def test_failing_callback_does_not_break_refresh(self):
        registry, _ = make_registry(privatbank_status=500)

        def explode(error):
            raise RuntimeError("callback bug")

        registry.on_error(explode)

        snapshot = await registry.fetch_snapshot()

        assert len(snapshot.errors) == 1

    @pytest.mark.asyncio
    async def test_disabled_provider_is_not_fetched(self):
        registry, session = make_registry(config=BalanceSourcesConfig(privatbank_enabled=False))

        snapshot = await registry.fetch_snapshot()

        assert Provider.PRIVATBANK not in snapshot.balances
        assert all(url.host != "acp.privatbank.ua" for url, _ in session.calls)

    @pytest.mark.asyncio
    async def test_wise_disabled_skips_rates(self):
        registry, session = make_registry(config=BalanceSourcesConfig(wise_enabled=False))

        snapshot = await registry.fetch_snapshot()

        assert snapshot.exchange_rates == []
        assert Provider.WISE not in snapshot.balances
        assert all(url.host == "acp.privatbank.ua" for url, _ in session.calls)

    @pytest.mark.asyncio
    async def test_snapshot_serializes(self):
        registry, _ = make_registry(privatbank_status=500)

        snapshot = await registry.fetch_snapshot()
        data = json.loads(json.dumps(snapshot.to_dict()))

        assert data["balances"]["wise"][0]["amount"] == "12.5"
        assert data["errors"][0]["kind"] == "unexpected_status"
        assert data["errors"][0]["status_code"] == 500
        assert data["missing_credentials"] == []


# ============================================================
# REGISTRATION
# ============================================================

class TestRegistration:
    """Registering and looking up sources."""

    def test_list_sources_in_provider_order(self, credentials, config):
        registry = SourceRegistry(config)
        registry.register(WiseBalanceSource(credentials, config))
        registry.register(PrivatBankBalanceSource(credentials, config))

        assert registry.list_sources() == [Provider.PRIVATBANK, Provider.WISE]
        assert set(registry.get_all_metadata()) == {Provider.PRIVATBANK, Provider.WISE}

    def test_register_replaces(self, credentials, config):
        registry = SourceRegistry(config)
        first = PrivatBankBalanceSource(credentials, config)
        second = PrivatBankBalanceSource(credentials, config)

        registry.register(first)
        registry.register(second)

        assert registry.get_source(Provider.PRIVATBANK) is second

    def test_unregister(self, credentials, config):
        registry = SourceRegistry(config)
        source = WiseBalanceSource(credentials, config)
        registry.register(source)

        assert registry.unregister(Provider.WISE) is source
        assert registry.unregister(Provider.WISE) is None
        assert registry.list_sources() == []

    def test_enabled_sources_follow_config(self, credentials):
        config = BalanceSourcesConfig(wise_enabled=False)
        registry = SourceRegistry(config)
        registry.register(PrivatBankBalanceSource(credentials, config))
        registry.register(WiseBalanceSource(credentials, config))

        assert [s.provider for s in registry.enabled_sources()] == [Provider.PRIVATBANK]

    @pytest.mark.asyncio
    async def test_empty_registry(self, config):
        registry = SourceRegistry(config)

        snapshot = await registry.fetch_snapshot()

        assert snapshot.is_empty()
        assert snapshot.balances == {}
