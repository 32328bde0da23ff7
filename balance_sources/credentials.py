"""
Credential Store - Opaque keyed storage for provider tokens.

The desktop app keeps tokens in the OS keychain; this package only needs
get/set/delete, so any object with those three methods can be plugged in.
"""

import logging
import os
from typing import Optional, Protocol

from balance_sources.exceptions import MissingCredentialError
from balance_sources.models import Provider


logger = logging.getLogger(__name__)

CREDENTIAL_KEYS = {
    Provider.PRIVATBANK: "privatbank_token",
    Provider.WISE: "wise_token",
}


class CredentialStore(Protocol):
    """Keyed secret storage."""

    def get(self, key: str) -> Optional[str]:
        ...

    def set(self, key: str, value: str) -> None:
        ...

    def delete(self, key: str) -> None:
        ...


class InMemoryCredentialStore:
    """Process-local store, used for embedding and tests."""

    def __init__(self, initial: Optional[dict[str, str]] = None) -> None:
        self._values: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._values.get(key)

    def set(self, key: str, value: str) -> None:
        self._values[key] = value

    def delete(self, key: str) -> None:
        self._values.pop(key, None)


class EnvironmentCredentialStore:
    """
    Tokens from environment variables.

    Keys map to upper-cased variable names: ``privatbank_token`` is read
    from ``PRIVATBANK_TOKEN``. Writes only affect the current process.
    """

    def __init__(self, prefix: str = "") -> None:
        self._prefix = prefix

    def _env_name(self, key: str) -> str:
        return f"{self._prefix}{key}".upper()

    def get(self, key: str) -> Optional[str]:
        return os.environ.get(self._env_name(key))

    def set(self, key: str, value: str) -> None:
        os.environ[self._env_name(key)] = value

    def delete(self, key: str) -> None:
        os.environ.pop(self._env_name(key), None)


def require_token(store: CredentialStore, provider: Provider) -> str:
    """
    Return the trimmed token for a provider.

    Raises:
        MissingCredentialError: token absent or blank
    """
    key = CREDENTIAL_KEYS[provider]
    token = (store.get(key) or "").strip()
    if not token:
        logger.info(f"[{provider.value}] No token configured")
        raise MissingCredentialError(provider, credential_key=key)
    return token
