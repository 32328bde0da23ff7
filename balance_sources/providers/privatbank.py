"""
PrivatBank Balance Source - Business API ledger-account adapter.

Implements balance fetching from the PrivatBank "statements/balance"
endpoint. The payload layout differs between API versions and account
types, so decoding goes through the schema cascade and every field is
resolved through an alias list.
"""

import logging
import uuid
from datetime import date
from decimal import Decimal
from typing import Any, Callable, Optional

import aiohttp
from pydantic import BaseModel, ConfigDict, ValidationInfo, model_validator

from balance_sources.aliases import resolve_decimal, resolve_string
from balance_sources.base import BaseBalanceSource
from balance_sources.cascade import CascadeRules, SchemaCascade
from balance_sources.config import BalanceSourcesConfig
from balance_sources.credentials import CredentialStore
from balance_sources.dedup import deduplicate_records
from balance_sources.models import CanonicalBalanceRecord, Provider, SourceMetadata


logger = logging.getLogger(__name__)

HOME_CURRENCY = "UAH"

IDENTIFIER_KEYS = (
    "id", "account", "accountNumber", "cardNumber", "cardNum", "cardnum",
    "pan", "card", "acc", "internalId", "cardmask", "iban", "ibanNumber",
)
TITLE_KEYS = (
    "title", "description", "alias", "cardmask", "name", "type",
    "accountName", "product", "cardType", "nameACC", "brnm",
)
CURRENCY_KEYS = ("currency", "ccy", "curr", "currencyCode", "currency_code", "mainCurrency")
AMOUNT_KEYS = (
    "balance", "rest", "available", "amount", "funds", "value",
    "availableBalance", "balanceValue", "balanceSum", "balanceOut", "remain", "balanceIn",
)

LEDGER_RULES = CascadeRules(
    strict_keys=("accounts", "cards", "balances", "list", "data", "items"),
    wrapper_keys=(
        "accounts", "cards", "balances", "list", "data", "items",
        "statements", "cardBalances", "cardbalance", "accountsList",
        "response", "res", "result", "body",
    ),
)


def mask_identifier(identifier: str) -> str:
    """``UA213223130000026007233566001`` -> ``****6001``; short ids stay as is."""
    if len(identifier) > 6:
        return f"****{identifier[-4:]}"
    return identifier


class LedgerAccountEntry(BaseModel):
    """One PrivatBank account as found in the payload, before defaults."""

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    identifier: Optional[str] = None
    title: Optional[str] = None
    currency: Optional[str] = None
    amount: Optional[Decimal] = None

    @model_validator(mode="before")
    @classmethod
    def _read_raw_element(cls, data: Any, info: ValidationInfo) -> Any:
        # Only payload elements are resolved here; keyword construction passes through
        if not (info.context or {}).get("raw_element"):
            return data
        if not isinstance(data, dict):
            raise ValueError(f"Expected object, got {type(data).__name__}")

        for key in IDENTIFIER_KEYS + TITLE_KEYS + CURRENCY_KEYS:
            value = data.get(key)
            if value is not None and not isinstance(value, str):
                raise ValueError(f"Field '{key}' must be a string")

        return {
            "identifier": resolve_string(data, IDENTIFIER_KEYS, shallow=True),
            "title": resolve_string(data, TITLE_KEYS, shallow=True),
            "currency": resolve_string(data, CURRENCY_KEYS, shallow=True),
            "amount": resolve_decimal(data, AMOUNT_KEYS, shallow=True),
        }

    @classmethod
    def from_strict(cls, element: Any) -> "LedgerAccountEntry":
        """
        Read an element using its own keys only.

        Raises:
            ValidationError: element is not an object, or a text field
                holds a non-text value
        """
        return cls.model_validate(element, context={"raw_element": True})

    @classmethod
    def from_mapping(cls, element: dict[str, Any]) -> Optional["LedgerAccountEntry"]:
        """Tolerant read with nested search; objects without any amount are not accounts."""
        amount = resolve_decimal(element, AMOUNT_KEYS)
        if amount is None:
            return None
        return cls(
            identifier=resolve_string(element, IDENTIFIER_KEYS),
            title=resolve_string(element, TITLE_KEYS),
            currency=resolve_string(element, CURRENCY_KEYS),
            amount=amount,
        )


class LedgerAccountProjection:
    """
    PrivatBank ledger projection.

    Precedence:
    - identifier: first alias, else a random UUID
    - title: first alias, else the masked identifier
    - currency: first alias upper-cased, else the home currency
    - amount: first of twelve amount aliases, else zero
    """

    provider = Provider.PRIVATBANK

    def __init__(self, home_currency: str = HOME_CURRENCY) -> None:
        self._home_currency = home_currency
        self._cascade: SchemaCascade[LedgerAccountEntry] = SchemaCascade(
            self.provider,
            LEDGER_RULES,
            validate_strict=LedgerAccountEntry.from_strict,
            parse_tolerant=LedgerAccountEntry.from_mapping,
            failure_detail="could not find a list of accounts",
        )

    def decode(self, raw: bytes) -> list[LedgerAccountEntry]:
        return self._cascade.decode(raw)

    def project(self, entry: LedgerAccountEntry) -> CanonicalBalanceRecord:
        identifier = entry.identifier or str(uuid.uuid4())
        return CanonicalBalanceRecord(
            identifier=identifier,
            title=entry.title or mask_identifier(identifier),
            currency_code=(entry.currency or self._home_currency).upper(),
            amount=entry.amount if entry.amount is not None else Decimal("0"),
            provider=self.provider,
        )

    def normalize(self, raw: bytes) -> list[CanonicalBalanceRecord]:
        records = [self.project(entry) for entry in self.decode(raw)]
        unique = deduplicate_records(records)
        if len(unique) != len(records):
            logger.debug(f"[{self.provider.value}] Dropped {len(records) - len(unique)} duplicate accounts")
        return unique


class PrivatBankBalanceSource(BaseBalanceSource):
    """
    PrivatBank business API balance source.

    Endpoints used:
    - /api/statements/balance?startDate=DD-MM-YYYY - Account balances

    Authentication: raw token in the ``token`` header.
    """

    BALANCE_PATH = ("api", "statements", "balance")

    def __init__(
        self,
        credentials: CredentialStore,
        config: Optional[BalanceSourcesConfig] = None,
        session: Optional[aiohttp.ClientSession] = None,
        today: Callable[[], date] = date.today,
    ) -> None:
        super().__init__(credentials, config, session)
        self._projection = LedgerAccountProjection()
        self._today = today

    @property
    def provider(self) -> Provider:
        return Provider.PRIVATBANK

    @property
    def projection(self) -> LedgerAccountProjection:
        return self._projection

    def metadata(self) -> SourceMetadata:
        """Return provider metadata."""
        return SourceMetadata(
            name=self.name,
            display_name=self.provider.display_name,
            version="1.0.0",
            base_url=self._config.privatbank_base_url,
            documentation_url="https://api.privatbank.ua/",
            requires_auth=True,
            home_currency=HOME_CURRENCY,
            tags=["bank", "ledger", "uah"],
        )

    async def fetch_raw(self, token: str) -> bytes:
        """Fetch the balances body for today."""
        url = self._build_url(
            self._config.privatbank_base_url,
            self.BALANCE_PATH,
            query={"startDate": self._today().strftime("%d-%m-%Y")},
        )
        response = await self._request(url, headers={"token": token})
        return self._checked_body(response)
