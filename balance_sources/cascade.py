"""
Schema Cascade Decoder - Ordered structural interpretations of a payload.

Provider payloads are not contractually fixed, so a raw body is tried
against four interpretations in a fixed order. Each attempt is a pure
function ``ParsedPayload -> list | None``; the first non-None result wins.

1. Strict shape        - bare array, or the array under the first strict
                         wrapper key; every element must validate.
2. Wrapped-array shape - array under any known wrapper key; elements are
                         validated one by one and failures skipped.
3. Untyped search      - breadth-first walk over the whole JSON tree that
                         gathers every candidate object first, then
                         filters through the tolerant parser. An explicit
                         top-level error message wins over "not found".
4. Empty shape         - blank body or an explicitly empty array.

When all four fall through the decoder raises DecodingFailedError.
"""

import json
import logging
from collections import deque
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Callable, Generic, Optional, TypeVar

from balance_sources.exceptions import DecodingFailedError, ProviderMessageError
from balance_sources.models import Provider


logger = logging.getLogger(__name__)

T = TypeVar("T")

Attempt = Callable[["ParsedPayload"], Optional[list]]

ERROR_MESSAGE_KEYS = ("message", "error")


@dataclass(frozen=True)
class ParsedPayload:
    """Raw body plus its JSON interpretation, parsed once per decode."""
    raw: bytes
    text: str
    value: Any = None
    is_json: bool = False

    @property
    def is_blank(self) -> bool:
        return not self.text.strip()

    @classmethod
    def from_bytes(cls, raw: bytes) -> "ParsedPayload":
        try:
            text = raw.decode("utf-8-sig")
        except UnicodeDecodeError:
            # Undecodable bytes are garbage, not an empty body
            return cls(raw=raw, text=raw.decode("utf-8", errors="replace"))
        if not text.strip():
            return cls(raw=raw, text=text)
        try:
            value = json.loads(text, parse_float=Decimal, parse_constant=Decimal)
        except ValueError:
            return cls(raw=raw, text=text)
        return cls(raw=raw, text=text, value=value, is_json=True)


@dataclass(frozen=True)
class CascadeRules:
    """Per-provider structural vocabulary."""
    strict_keys: tuple[str, ...]
    wrapper_keys: tuple[str, ...]
    single_keys: tuple[str, ...] = ()
    error_keys: tuple[str, ...] = ERROR_MESSAGE_KEYS


class SchemaCascade(Generic[T]):
    """
    Decode raw bytes into provider-native records.

    Usage:
        cascade = SchemaCascade(
            Provider.PRIVATBANK,
            rules,
            validate_strict=LedgerAccountEntry.model_validate,
            parse_tolerant=LedgerAccountEntry.from_mapping,
        )
        entries = cascade.decode(body)
    """

    def __init__(
        self,
        provider: Provider,
        rules: CascadeRules,
        validate_strict: Callable[[Any], T],
        parse_tolerant: Callable[[dict[str, Any]], Optional[T]],
        failure_detail: str = "could not find a list of records",
    ) -> None:
        self._provider = provider
        self._rules = rules
        self._validate_strict = validate_strict
        self._parse_tolerant = parse_tolerant
        self._failure_detail = failure_detail

    @property
    def attempts(self) -> list[tuple[str, Attempt]]:
        return [
            ("strict", self.strict_shape),
            ("wrapped_array", self.wrapped_array_shape),
            ("untyped_search", self.untyped_search),
            ("empty", self.empty_shape),
        ]

    def decode(self, raw: bytes) -> list[T]:
        """
        Run the cascade over a response body.

        Raises:
            ProviderMessageError: body carries an upstream error message
            DecodingFailedError: no interpretation produced records
        """
        payload = ParsedPayload.from_bytes(raw)

        for name, attempt in self.attempts:
            result = attempt(payload)
            if result is not None:
                logger.debug(f"[{self._provider.value}] Decoded {len(result)} records via {name} shape")
                return result

        raise DecodingFailedError(
            self._provider,
            self._failure_detail,
            raw_data=payload.text or payload.raw,
        )

    # =========================================================
    # ATTEMPTS
    # =========================================================

    def strict_shape(self, payload: ParsedPayload) -> Optional[list[T]]:
        if not payload.is_json:
            return None

        value = payload.value
        if isinstance(value, dict):
            key = next((k for k in self._rules.strict_keys if k in value), None)
            if key is None:
                return None
            value = value[key]

        if not isinstance(value, list) or not value:
            return None

        try:
            return [self._validate_strict(element) for element in value]
        except (ValueError, TypeError) as e:
            logger.debug(f"[{self._provider.value}] Strict shape rejected: {e}")
            return None

    def wrapped_array_shape(self, payload: ParsedPayload) -> Optional[list[T]]:
        if not payload.is_json or not isinstance(payload.value, dict):
            return None

        for key in self._rules.wrapper_keys:
            elements = payload.value.get(key)
            if not isinstance(elements, list):
                continue

            records = []
            for element in elements:
                try:
                    records.append(self._validate_strict(element))
                except (ValueError, TypeError):
                    continue

            if records:
                skipped = len(elements) - len(records)
                if skipped:
                    logger.debug(f"[{self._provider.value}] Skipped {skipped} invalid elements under '{key}'")
                return records

        return None

    def untyped_search(self, payload: ParsedPayload) -> Optional[list[T]]:
        if not payload.is_json:
            return None

        candidates = self._gather_candidates(payload.value)
        records = []
        for candidate in candidates:
            record = self._parse_tolerant(candidate)
            if record is not None:
                records.append(record)

        if records:
            return records

        if isinstance(payload.value, dict):
            message = _first_string(payload.value, self._rules.error_keys)
            if message:
                raise ProviderMessageError(message, self._provider)

        return None

    def empty_shape(self, payload: ParsedPayload) -> Optional[list[T]]:
        if payload.is_blank:
            return []
        if not payload.is_json:
            return None

        value = payload.value
        if value == []:
            return []
        if isinstance(value, dict):
            for key in self._rules.strict_keys + self._rules.wrapper_keys:
                if value.get(key) == []:
                    return []
        return None

    # =========================================================
    # HELPERS
    # =========================================================

    def _gather_candidates(self, root: Any) -> list[dict[str, Any]]:
        """Collect every candidate object before any of them is validated."""
        collection_keys = self._rules.strict_keys + tuple(
            k for k in self._rules.wrapper_keys if k not in self._rules.strict_keys
        )
        collected: list[dict[str, Any]] = []
        collected_ids: set[int] = set()
        visited: set[int] = set()
        queue: deque[Any] = deque([root])

        def collect(obj: dict[str, Any]) -> None:
            if id(obj) not in collected_ids:
                collected_ids.add(id(obj))
                collected.append(obj)

        if isinstance(root, list):
            for element in root:
                if isinstance(element, dict):
                    collect(element)

        while queue:
            node = queue.popleft()
            if id(node) in visited:
                continue
            visited.add(id(node))

            if isinstance(node, dict):
                for key in collection_keys:
                    elements = node.get(key)
                    if isinstance(elements, list):
                        for element in elements:
                            if isinstance(element, dict):
                                collect(element)
                for key in self._rules.single_keys:
                    single = node.get(key)
                    if isinstance(single, dict):
                        collect(single)
                queue.extend(v for v in node.values() if isinstance(v, (dict, list)))
            elif isinstance(node, list):
                queue.extend(v for v in node if isinstance(v, (dict, list)))

        return collected


def _first_string(mapping: dict[str, Any], keys: tuple[str, ...]) -> Optional[str]:
    for key in keys:
        value = mapping.get(key)
        if isinstance(value, str) and value.strip():
            return value
    return None


def extract_error_message(raw: bytes) -> Optional[str]:
    """
    Pull an upstream error string out of a failed response body.

    Looks at ``message``, ``error``, ``description`` and finally a list of
    strings under ``errors`` (joined with newlines).
    """
    payload = ParsedPayload.from_bytes(raw)
    if not payload.is_json or not isinstance(payload.value, dict):
        return None

    message = _first_string(payload.value, ERROR_MESSAGE_KEYS + ("description",))
    if message:
        return message

    errors = payload.value.get("errors")
    if isinstance(errors, list):
        lines = [e for e in errors if isinstance(e, str) and e]
        if lines:
            return "\n".join(lines)

    return None
