"""
Tests for the Exchange Rate Source.

============================================================
PURPOSE
============================================================
Verify rate parsing and that a failing pair is left out of
the batch instead of aborting it.

============================================================
"""

from decimal import Decimal

import aiohttp
import pytest

from balance_sources.config import BalanceSourcesConfig
from balance_sources.exceptions import DecodingFailedError, InvalidRequestTargetError
from balance_sources.models import ExchangeRateRecord
from balance_sources.rates import ExchangeRateSource, parse_rate
from tests.balance_sources.fakes import FakeSession, as_body


# ============================================================
# PARSING
# ============================================================

class TestParseRate:
    """Reading a /v1/rates body."""

    def test_exact_rate(self):
        body = b'[{"rate": 41.25, "source": "USD", "target": "UAH", "time": "2024-03-05T10:00:00+0000"}]'

        rate = parse_rate(body, "USD", "UAH")

        assert rate == ExchangeRateRecord("USD", "UAH", Decimal("41.25"))
        assert str(rate.rate) == "41.25"
        assert rate.pair_description == "USD -> UAH"

    def test_missing_codes_fall_back_to_query(self):
        rate = parse_rate(as_body([{"rate": 4.3}]), "eur", "pln")

        assert (rate.source_currency, rate.target_currency) == ("EUR", "PLN")

    def test_first_entry_wins(self):
        body = as_body([{"rate": 1, "source": "USD", "target": "UAH"}, {"rate": 2, "source": "USD", "target": "UAH"}])

        assert parse_rate(body, "USD", "UAH").rate == Decimal("1")

    @pytest.mark.parametrize("body", [b"", b"  ", b"[]"])
    def test_empty(self, body):
        assert parse_rate(body, "USD", "UAH") is None

    @pytest.mark.parametrize("body", [
        b"<html>",
        b'{"rate": 1}',
        b'[{"source": "USD"}]',
        b'[{"rate": "abc"}]',
    ])
    def test_invalid(self, body):
        with pytest.raises(DecodingFailedError, match="rates USD/UAH"):
            parse_rate(body, "USD", "UAH")


# ============================================================
# FETCHING
# ============================================================

class TestExchangeRateSource:
    """Batch fetch with per-pair failure isolation."""

    @pytest.mark.asyncio
    async def test_fetch_skips_failed_pairs(self, config):
        def handler(url, headers):
            source = url.query["source"]
            if source == "USD":
                return 200, as_body([{"rate": 41.25, "source": "USD", "target": "UAH"}])
            if source == "PLN":
                return 200, as_body([{"rate": 10.1, "source": "PLN", "target": "UAH"}])
            if source == "EUR":
                return 500, b""
            raise aiohttp.ClientConnectionError("reset")

        session = FakeSession(handler)
        rates = ExchangeRateSource(config, session=session)

        result = await rates.fetch()

        assert [r.pair_description for r in result] == ["PLN -> UAH", "USD -> UAH"]
        assert len(session.calls) == 4

    @pytest.mark.asyncio
    async def test_invalid_pair_is_omitted(self, config):
        session = FakeSession(lambda url, headers: (200, as_body([{"rate": 2}])))
        rates = ExchangeRateSource(config, session=session)

        result = await rates.fetch([("US", "UAH"), ("EUR", "UAH")])

        assert [r.pair_description for r in result] == ["EUR -> UAH"]
        assert len(session.calls) == 1

    @pytest.mark.asyncio
    async def test_fetch_rate_rejects_bad_code(self, config):
        rates = ExchangeRateSource(config, session=FakeSession(lambda url, headers: (200, b"[]")))

        with pytest.raises(InvalidRequestTargetError):
            await rates.fetch_rate("USD", "U$D")

    @pytest.mark.parametrize("code", ["USD\n", " USD", "USDT", ""])
    @pytest.mark.asyncio
    async def test_fetch_rate_requires_exactly_three_letters(self, config, code):
        session = FakeSession(lambda url, headers: (200, b"[]"))
        rates = ExchangeRateSource(config, session=session)

        with pytest.raises(InvalidRequestTargetError):
            await rates.fetch_rate(code, "UAH")

        assert session.calls == []

    @pytest.mark.asyncio
    async def test_request(self, config):
        session = FakeSession(lambda url, headers: (200, b"[]"))
        rates = ExchangeRateSource(config, session=session)

        assert await rates.fetch_rate("usd", "uah") is None

        url, _ = session.calls[0]
        assert url.path == "/v1/rates"
        assert url.query["source"] == "USD"
        assert url.query["target"] == "UAH"

    @pytest.mark.asyncio
    async def test_configured_pairs(self):
        config = BalanceSourcesConfig(exchange_rate_pairs=(("GBP", "EUR"),))
        session = FakeSession(lambda url, headers: (200, as_body([{"rate": 1.17}])))

        result = await ExchangeRateSource(config, session=session).fetch()

        assert result == [ExchangeRateRecord("GBP", "EUR", Decimal("1.17"))]
