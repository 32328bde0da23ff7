"""
Exchange Rate Source - Mid-market rates for a fixed set of currency pairs.

One request per pair. A pair that cannot be fetched or decoded is logged
and left out; it never aborts the rest of the batch.
"""

import asyncio
import logging
import re
from decimal import Decimal
from typing import Optional, Sequence

import aiohttp
from pydantic import BaseModel, StrictStr, TypeAdapter, ValidationError

from balance_sources.base import BaseHttpSource
from balance_sources.cascade import ParsedPayload
from balance_sources.config import BalanceSourcesConfig
from balance_sources.exceptions import BalanceSourceError, DecodingFailedError, InvalidRequestTargetError
from balance_sources.models import ExchangeRateRecord, Provider


logger = logging.getLogger(__name__)

_CURRENCY_CODE = re.compile(r"[A-Za-z]{3}")


class RateEntry(BaseModel):
    """Entry of the /v1/rates response."""
    source: Optional[StrictStr] = None
    target: Optional[StrictStr] = None
    rate: Decimal


_RATES = TypeAdapter(list[RateEntry])


def parse_rate(raw: bytes, source: str, target: str) -> Optional[ExchangeRateRecord]:
    """
    Read the first quote of a /v1/rates body.

    Returns:
        The rate, or None for an empty body or an empty list

    Raises:
        DecodingFailedError: body is not a list of rates
    """
    payload = ParsedPayload.from_bytes(raw)
    if payload.is_blank:
        return None
    if not payload.is_json:
        raise DecodingFailedError(Provider.WISE, f"rates {source}/{target}: response is not JSON")

    try:
        entries = _RATES.validate_python(payload.value)
    except ValidationError as e:
        raise DecodingFailedError(
            Provider.WISE,
            f"rates {source}/{target}: {e}",
            raw_data=payload.text,
            original_error=e,
        ) from e

    if not entries:
        return None
    first = entries[0]
    return ExchangeRateRecord(
        source_currency=(first.source or source).upper(),
        target_currency=(first.target or target).upper(),
        rate=first.rate,
    )


class ExchangeRateSource(BaseHttpSource):
    """
    Wise public rates source.

    Endpoints used:
    - /v1/rates?source=XXX&target=YYY - Current rate for one pair
    """

    def __init__(
        self,
        config: Optional[BalanceSourcesConfig] = None,
        session: Optional[aiohttp.ClientSession] = None,
    ) -> None:
        super().__init__(config, session)

    @property
    def name(self) -> str:
        return "wise_rates"

    @property
    def provider(self) -> Provider:
        return Provider.WISE

    async def fetch_rate(self, source: str, target: str) -> Optional[ExchangeRateRecord]:
        """
        Fetch one pair.

        Raises:
            BalanceSourceError: invalid pair, transport, status or decoding failure
        """
        for code in (source, target):
            if not _CURRENCY_CODE.fullmatch(code or ""):
                target_url = f"{self._config.wise_base_url}/v1/rates?source={source}&target={target}"
                raise InvalidRequestTargetError(target_url, self.provider)

        url = self._build_url(
            self._config.wise_base_url,
            ("v1", "rates"),
            query={"source": source.upper(), "target": target.upper()},
        )
        response = await self._request(url)
        return parse_rate(self._checked_body(response), source, target)

    async def _fetch_or_skip(self, source: str, target: str) -> Optional[ExchangeRateRecord]:
        try:
            return await self.fetch_rate(source, target)
        except BalanceSourceError as e:
            logger.warning(f"[{self.name}] Skipping {source}/{target}: {e}")
            return None

    async def fetch(self, pairs: Optional[Sequence[tuple[str, str]]] = None) -> list[ExchangeRateRecord]:
        """
        Fetch all pairs concurrently.

        Returns:
            Rates sorted by (source, target); failed pairs are omitted
        """
        pairs = list(pairs) if pairs is not None else list(self._config.exchange_rate_pairs)
        results = await asyncio.gather(*(self._fetch_or_skip(s, t) for s, t in pairs))
        rates = [rate for rate in results if rate is not None]
        rates.sort(key=lambda r: (r.source_currency, r.target_currency))
        logger.info(f"[{self.name}] Fetched {len(rates)}/{len(pairs)} rates")
        return rates
