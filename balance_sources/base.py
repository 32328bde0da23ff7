"""
Base Balance Source - Shared transport and the projection capability set.

A provider is two independent pieces:

- a projection (BalanceProjection): pure decode + project logic over
  already-fetched bytes, no I/O, safe to run anywhere;
- a source (BaseBalanceSource subclass): builds requests, talks HTTP
  and hands the body to its projection.

Projections do not share a base class; the ledger and wallet rules have
nothing in common beyond the capability set below.
"""

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Optional, Protocol, Sequence, TypeVar

import aiohttp
from yarl import URL

from balance_sources.cascade import extract_error_message
from balance_sources.config import BalanceSourcesConfig
from balance_sources.credentials import CredentialStore, require_token
from balance_sources.exceptions import (
    EmptyResponseError,
    InvalidRequestTargetError,
    ProviderMessageError,
    UnexpectedStatusError,
)
from balance_sources.models import CanonicalBalanceRecord, Provider, SourceMetadata


logger = logging.getLogger(__name__)

N = TypeVar("N")


class BalanceProjection(Protocol[N]):
    """Decode provider bytes and project native records to canonical ones."""

    provider: Provider

    def decode(self, raw: bytes) -> list[N]:
        ...

    def project(self, entry: N) -> Optional[CanonicalBalanceRecord]:
        ...

    def normalize(self, raw: bytes) -> list[CanonicalBalanceRecord]:
        ...


@dataclass(frozen=True)
class HttpResponse:
    """Status and body of a completed request."""
    status: int
    body: bytes
    url: str

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300


class BaseHttpSource(ABC):
    """
    HTTP plumbing shared by balance and rate sources.

    Features:
    - Lazily created aiohttp session (or an injected one)
    - Transport failures mapped to EmptyResponseError
    - Non-success statuses mapped to classified errors
    """

    def __init__(
        self,
        config: Optional[BalanceSourcesConfig] = None,
        session: Optional[aiohttp.ClientSession] = None,
    ) -> None:
        self._config = config or BalanceSourcesConfig()
        self._session = session
        self._owns_session = session is None

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique identifier for this source."""
        pass

    @property
    @abstractmethod
    def provider(self) -> Provider:
        """Upstream provider this source talks to."""
        pass

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create HTTP session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self._config.request_timeout_seconds),
                headers=self._get_default_headers(),
            )
            self._owns_session = True
        return self._session

    def _get_default_headers(self) -> dict[str, str]:
        """Get default HTTP headers."""
        return {
            "Accept": "application/json",
            "User-Agent": self._config.user_agent,
        }

    def _build_url(
        self,
        base_url: str,
        segments: Sequence[Any],
        query: Optional[dict[str, str]] = None,
    ) -> URL:
        """
        Join path segments onto a base URL.

        Raises:
            InvalidRequestTargetError: base is not absolute http(s) or a
                segment cannot be used as a path component
        """
        target = "/".join([base_url.rstrip("/")] + [str(s) for s in segments])
        try:
            url = URL(base_url)
            if not url.is_absolute() or url.scheme not in ("http", "https"):
                raise ValueError("URL must be absolute http(s)")
            for segment in segments:
                text = str(segment)
                if not text or "/" in text:
                    raise ValueError(f"Bad path segment '{text}'")
                url = url / text
            if query:
                url = url.with_query(query)
        except (ValueError, TypeError) as e:
            raise InvalidRequestTargetError(target, self.provider, original_error=e) from e
        return url

    async def _request(
        self,
        url: URL,
        headers: Optional[dict[str, str]] = None,
    ) -> HttpResponse:
        """GET a URL and return status and body, whatever the status."""
        session = await self._get_session()

        start_time = time.time()
        try:
            async with session.get(url, headers=headers) as response:
                body = await response.read()
                latency_ms = (time.time() - start_time) * 1000
                logger.debug(f"[{self.name}] GET {url.path} -> {response.status} in {latency_ms:.1f}ms")
                return HttpResponse(status=response.status, body=body, url=str(url))
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.warning(f"[{self.name}] Request to {url.path} failed: {e!r}")
            raise EmptyResponseError(self.provider, original_error=e) from e

    def _checked_body(self, response: HttpResponse) -> bytes:
        """
        Return the body of a successful response.

        Raises:
            ProviderMessageError: failed response carrying an error message
            UnexpectedStatusError: failed response without a message
        """
        if response.ok:
            return response.body

        message = extract_error_message(response.body)
        if message:
            raise ProviderMessageError(message, self.provider, status_code=response.status)
        raise UnexpectedStatusError(self.provider, response.status, request_url=response.url)

    async def close(self) -> None:
        """Close resources."""
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()

    async def __aenter__(self) -> "BaseHttpSource":
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit."""
        await self.close()

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}(name={self.name})>"


class BaseBalanceSource(BaseHttpSource):
    """
    Abstract base class for all balance sources.

    Each balance source must:
    1. Implement fetch_raw() - Get the balances body from the provider
    2. Implement metadata() - Return provider metadata
    3. Provide a projection - Turn the body into canonical records
    """

    def __init__(
        self,
        credentials: CredentialStore,
        config: Optional[BalanceSourcesConfig] = None,
        session: Optional[aiohttp.ClientSession] = None,
    ) -> None:
        super().__init__(config, session)
        self._credentials = credentials

    @property
    def name(self) -> str:
        return self.provider.value

    @property
    @abstractmethod
    def projection(self) -> BalanceProjection:
        """Pure decode/project logic for this provider."""
        pass

    @abstractmethod
    async def fetch_raw(self, token: str) -> bytes:
        """
        Fetch the raw balances body.

        Raises:
            BalanceSourceError: any classified transport or status failure
        """
        pass

    @abstractmethod
    def metadata(self) -> SourceMetadata:
        """Return provider metadata."""
        pass

    def _token(self) -> str:
        return require_token(self._credentials, self.provider)

    def normalize(self, raw: bytes) -> list[CanonicalBalanceRecord]:
        """Run the provider projection over a body."""
        return self.projection.normalize(raw)

    async def fetch(self) -> list[CanonicalBalanceRecord]:
        """
        Fetch and normalize balances (main entry point).

        Raises:
            BalanceSourceError: classified failure, never a bare exception
                from decoding
        """
        token = self._token()
        raw = await self.fetch_raw(token)
        records = self.normalize(raw)
        logger.info(f"[{self.name}] Normalized {len(records)} balance records")
        return records
