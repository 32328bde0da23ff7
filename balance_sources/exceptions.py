"""
Balance Source Exceptions - Flat failure taxonomy for balance providers.

Every failure the normalization pipeline can report is one of six kinds.
Callers branch on ``error.kind`` (or the concrete class) to decide how to
react, e.g. prompting for a token only on MISSING_CREDENTIAL.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from balance_sources.models import Provider


class ErrorKind(Enum):
    """Kinds of classified failures."""
    MISSING_CREDENTIAL = "missing_credential"
    INVALID_REQUEST_TARGET = "invalid_request_target"
    UNEXPECTED_STATUS = "unexpected_status"
    DECODING_FAILED = "decoding_failed"
    EMPTY_RESPONSE = "empty_response"
    GENERIC_MESSAGE = "generic_message"


class BalanceSourceError(Exception):
    """Base exception for all classified balance source failures."""

    kind: ErrorKind = ErrorKind.GENERIC_MESSAGE

    def __init__(
        self,
        message: str,
        provider: Optional[Provider] = None,
        original_error: Optional[Exception] = None,
        context: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.provider = provider
        self.original_error = original_error
        self.context = context or {}
        self.timestamp = datetime.utcnow()

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging/serialization."""
        return {
            "kind": self.kind.value,
            "error_type": self.__class__.__name__,
            "message": self.message,
            "provider": self.provider.value if self.provider else None,
            "original_error": str(self.original_error) if self.original_error else None,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
        }

    def __str__(self) -> str:
        return self.message

    def __repr__(self) -> str:
        provider = self.provider.value if self.provider else None
        return f"<{self.__class__.__name__}(provider={provider}, message={self.message!r})>"


class MissingCredentialError(BalanceSourceError):
    """No token is configured for the provider."""

    kind = ErrorKind.MISSING_CREDENTIAL

    def __init__(self, provider: Provider, credential_key: Optional[str] = None) -> None:
        super().__init__(
            f"No token configured for {provider.display_name}. Add it in the settings.",
            provider,
        )
        self.credential_key = credential_key

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["credential_key"] = self.credential_key
        return data


class InvalidRequestTargetError(BalanceSourceError):
    """A request URL could not be constructed."""

    kind = ErrorKind.INVALID_REQUEST_TARGET

    def __init__(
        self,
        target: str,
        provider: Optional[Provider] = None,
        original_error: Optional[Exception] = None,
    ) -> None:
        super().__init__(f"Invalid request address: {target}", provider, original_error)
        self.target = target

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["target"] = self.target
        return data


class UnexpectedStatusError(BalanceSourceError):
    """HTTP response outside the success range."""

    kind = ErrorKind.UNEXPECTED_STATUS

    def __init__(self, provider: Provider, status_code: int, request_url: Optional[str] = None) -> None:
        super().__init__(
            f"{provider.display_name} server returned an error ({status_code}). Try again later.",
            provider,
        )
        self.status_code = status_code
        self.request_url = request_url

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data.update({
            "status_code": self.status_code,
            "request_url": self.request_url,
        })
        return data

    def is_server_error(self) -> bool:
        """Check if error is server-side."""
        return 500 <= self.status_code < 600

    def is_client_error(self) -> bool:
        """Check if error is client-side."""
        return 400 <= self.status_code < 500


class DecodingFailedError(BalanceSourceError):
    """Every structural interpretation of a payload was exhausted."""

    kind = ErrorKind.DECODING_FAILED

    def __init__(
        self,
        provider: Provider,
        detail: str,
        raw_data: Optional[Any] = None,
        original_error: Optional[Exception] = None,
    ) -> None:
        super().__init__(
            f"Could not process the response from {provider.display_name}: {detail}",
            provider,
            original_error,
        )
        self.detail = detail
        self.raw_data = raw_data

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data.update({
            "detail": self.detail,
            "raw_data": str(self.raw_data)[:500] if self.raw_data else None,  # Truncate
        })
        return data


class EmptyResponseError(BalanceSourceError):
    """Transport produced no response object at all."""

    kind = ErrorKind.EMPTY_RESPONSE

    def __init__(self, provider: Provider, original_error: Optional[Exception] = None) -> None:
        super().__init__(f"Empty response from {provider.display_name}.", provider, original_error)


class ProviderMessageError(BalanceSourceError):
    """Upstream-supplied error text, surfaced verbatim."""

    kind = ErrorKind.GENERIC_MESSAGE

    def __init__(
        self,
        message: str,
        provider: Optional[Provider] = None,
        status_code: Optional[int] = None,
    ) -> None:
        super().__init__(message, provider)
        self.status_code = status_code

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["status_code"] = self.status_code
        return data
