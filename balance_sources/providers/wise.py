"""
Wise Balance Source - Multi-currency wallet adapter.

Implements balance fetching from the Wise API. Balances hang off a
profile, so every fetch is two sequential calls:

1. /v1/profiles - pick the personal profile (or the first one)
2. /v4/profiles/{profileId}/balances?types=STANDARD

Each wallet record may carry several amount sub-objects; the projection
picks one by fixed priority and drops records that carry none.
"""

import logging
import uuid
from decimal import Decimal
from typing import Any, Optional

import aiohttp
from pydantic import BaseModel, ConfigDict, Field, StrictInt, StrictStr, TypeAdapter, ValidationError, model_validator

from balance_sources.base import BaseBalanceSource
from balance_sources.cascade import CascadeRules, ParsedPayload, SchemaCascade
from balance_sources.coercion import coerce_decimal
from balance_sources.config import BalanceSourcesConfig
from balance_sources.credentials import CredentialStore
from balance_sources.exceptions import DecodingFailedError
from balance_sources.models import CanonicalBalanceRecord, Provider, SourceMetadata


logger = logging.getLogger(__name__)

PLACEHOLDER_TITLE = "Wise balance"

WALLET_RULES = CascadeRules(
    strict_keys=("balances",),
    wrapper_keys=("balances", "content", "items", "data", "list", "response"),
    single_keys=("balance",),
)


class WalletAmount(BaseModel):
    """A ``{value, currency}`` pair; currency may be empty."""

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    value: Decimal
    currency: str = ""

    @model_validator(mode="before")
    @classmethod
    def _accept_loose_shapes(cls, data: Any) -> Any:
        if isinstance(data, WalletAmount):
            return {"value": data.value, "currency": data.currency}
        # Strict decoding: unreadable value means zero, like an absent one
        if isinstance(data, dict):
            value = coerce_decimal(data.get("value"))
            currency = data.get("currency")
            return {
                "value": value if value is not None else Decimal("0"),
                "currency": currency if isinstance(currency, str) else "",
            }
        value = coerce_decimal(data)
        if value is None:
            raise ValueError(f"Not an amount: {data!r}")
        return {"value": value, "currency": ""}

    @classmethod
    def from_raw(cls, data: Any) -> Optional["WalletAmount"]:
        """Tolerant read: None unless a numeric value is present."""
        if data is None:
            return None
        if isinstance(data, dict):
            value = coerce_decimal(data.get("value"))
            if value is None:
                return None
            currency = data.get("currency")
            return cls(value=value, currency=currency if isinstance(currency, str) else "")
        value = coerce_decimal(data)
        if value is None:
            return None
        return cls(value=value)


class WalletBalanceEntry(BaseModel):
    """One Wise balance as found in the payload."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, str_strip_whitespace=True)

    id: Optional[StrictInt] = None
    balance_type: Optional[StrictStr] = Field(default=None, alias="balanceType")
    currency: Optional[StrictStr] = None
    amount: Optional[WalletAmount] = None
    total_worth: Optional[WalletAmount] = Field(default=None, alias="totalWorth")
    reserved_amount: Optional[WalletAmount] = Field(default=None, alias="reservedAmount")
    name: Optional[StrictStr] = None
    type: Optional[StrictStr] = None
    alias: Optional[StrictStr] = None

    @classmethod
    def from_mapping(cls, data: dict[str, Any]) -> Optional["WalletBalanceEntry"]:
        """
        Tolerant read of an untyped object.

        Returns None when the object has neither a currency nor any
        amount sub-object, i.e. it is not a balance at all.
        """
        amount = WalletAmount.from_raw(data.get("amount"))
        total_worth = WalletAmount.from_raw(data.get("totalWorth"))
        reserved = WalletAmount.from_raw(data.get("reservedAmount"))

        currency = _text(data.get("currency"))
        if currency is None:
            nested = (_text(_nested(data, key, "currency")) for key in ("amount", "totalWorth", "reservedAmount"))
            currency = next((c for c in nested if c), None)
        if currency is not None:
            currency = currency.upper()

        if currency is None and amount is None and total_worth is None and reserved is None:
            return None

        identifier = data.get("id")
        if not _is_int(identifier):
            identifier = data.get("profileId")
        return cls(
            id=identifier if _is_int(identifier) else None,
            balance_type=_text(data.get("balanceType")) or _text(data.get("type")),
            currency=currency,
            amount=amount,
            total_worth=total_worth,
            reserved_amount=reserved,
            name=_text(data.get("name")),
            type=_text(data.get("type")),
            alias=_text(data.get("alias")),
        )

    @property
    def amount_candidates(self) -> list[Optional[WalletAmount]]:
        """Amount sub-objects in priority order."""
        return [self.amount, self.total_worth, self.reserved_amount]

    @property
    def display_name(self) -> str:
        if self.alias:
            return self.alias
        if self.name:
            return self.name
        if self.type:
            return self.type.upper()
        if self.balance_type:
            return self.balance_type.upper()
        if self.currency:
            return self.currency.upper()
        return PLACEHOLDER_TITLE


class WalletProfile(BaseModel):
    """Entry of the /v1/profiles response."""
    id: StrictInt
    type: str


_PROFILES = TypeAdapter(list[WalletProfile])


def _text(value: Any) -> Optional[str]:
    return value.strip() if isinstance(value, str) and value.strip() else None


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _nested(data: dict[str, Any], key: str, field: str) -> Any:
    inner = data.get(key)
    return inner.get(field) if isinstance(inner, dict) else None


def select_profile_id(raw: bytes) -> int:
    """
    Pick the wallet holder's profile from a /v1/profiles body.

    The profile typed ``personal`` wins, otherwise the first one.

    Raises:
        DecodingFailedError: body is not a profile list, or the list is empty
    """
    payload = ParsedPayload.from_bytes(raw)
    if not payload.is_json:
        raise DecodingFailedError(Provider.WISE, "profiles response is not JSON", raw_data=payload.text)

    try:
        profiles = _PROFILES.validate_python(payload.value)
    except ValidationError as e:
        raise DecodingFailedError(Provider.WISE, str(e), raw_data=payload.text, original_error=e) from e

    for profile in profiles:
        if profile.type == "personal":
            return profile.id
    if profiles:
        return profiles[0].id

    raise DecodingFailedError(Provider.WISE, "could not find a Wise profile")


class WalletBalanceProjection:
    """
    Wise wallet projection.

    Amount priority: amount, totalWorth, reservedAmount. The currency is
    taken from the chosen sub-object, then the record, then the other
    sub-objects in priority order.
    """

    provider = Provider.WISE

    def __init__(self) -> None:
        self._cascade: SchemaCascade[WalletBalanceEntry] = SchemaCascade(
            self.provider,
            WALLET_RULES,
            validate_strict=WalletBalanceEntry.model_validate,
            parse_tolerant=WalletBalanceEntry.from_mapping,
            failure_detail="could not recognise the Wise response structure",
        )

    def decode(self, raw: bytes) -> list[WalletBalanceEntry]:
        return self._cascade.decode(raw)

    def project(self, entry: WalletBalanceEntry) -> Optional[CanonicalBalanceRecord]:
        candidates = entry.amount_candidates
        chosen = next((c for c in candidates if c is not None), None)
        if chosen is None:
            return None

        currency_options = [chosen.currency, entry.currency] + [c.currency for c in candidates if c is not None]
        currency = next((c for c in currency_options if c), None)
        if currency is None:
            logger.debug(f"[{self.provider.value}] Dropping balance {entry.id} without currency")
            return None

        return CanonicalBalanceRecord(
            identifier=str(entry.id) if entry.id is not None else str(uuid.uuid4()),
            title=entry.display_name,
            currency_code=currency.upper(),
            amount=chosen.value,
            provider=self.provider,
        )

    def normalize(self, raw: bytes) -> list[CanonicalBalanceRecord]:
        records = []
        for entry in self.decode(raw):
            record = self.project(entry)
            if record is not None:
                records.append(record)
        return records


class WiseBalanceSource(BaseBalanceSource):
    """
    Wise API balance source.

    Endpoints used:
    - /v1/profiles - Profile lookup
    - /v4/profiles/{profileId}/balances?types=STANDARD - Balances

    Authentication: ``Authorization: Bearer <token>``.
    """

    def __init__(
        self,
        credentials: CredentialStore,
        config: Optional[BalanceSourcesConfig] = None,
        session: Optional[aiohttp.ClientSession] = None,
    ) -> None:
        super().__init__(credentials, config, session)
        self._projection = WalletBalanceProjection()

    @property
    def provider(self) -> Provider:
        return Provider.WISE

    @property
    def projection(self) -> WalletBalanceProjection:
        return self._projection

    def metadata(self) -> SourceMetadata:
        """Return provider metadata."""
        return SourceMetadata(
            name=self.name,
            display_name=self.provider.display_name,
            version="1.0.0",
            base_url=self._config.wise_base_url,
            documentation_url="https://docs.wise.com/api-docs/api-reference",
            requires_auth=True,
            tags=["wallet", "multi-currency"],
        )

    @staticmethod
    def _auth_headers(token: str) -> dict[str, str]:
        return {"Authorization": f"Bearer {token}"}

    async def fetch_profile_id(self, token: str) -> int:
        """Resolve the profile that owns the balances."""
        url = self._build_url(self._config.wise_base_url, ("v1", "profiles"))
        response = await self._request(url, headers=self._auth_headers(token))
        profile_id = select_profile_id(self._checked_body(response))
        logger.debug(f"[{self.name}] Using profile {profile_id}")
        return profile_id

    async def fetch_raw(self, token: str) -> bytes:
        """Fetch the balances body for the primary profile."""
        profile_id = await self.fetch_profile_id(token)
        url = self._build_url(
            self._config.wise_base_url,
            ("v4", "profiles", profile_id, "balances"),
            query={"types": "STANDARD"},
        )
        response = await self._request(url, headers=self._auth_headers(token))
        return self._checked_body(response)
