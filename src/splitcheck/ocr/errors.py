"""Receipt extraction error taxonomy and failure classification."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Optional, Sequence


class FailureKind(str, enum.Enum):
    """Why a provider attempt failed; every kind currently falls through to the next provider."""

    QUOTA = "quota"
    CONFIGURATION = "configuration"
    NO_DATA = "no_data"
    OTHER = "other"


_QUOTA_MARKERS = ("quota", "rate limit", "too many requests", "429", "exceeded")
_CONFIGURATION_MARKERS = ("not configured", "credentials", "unauthorized", "401")


class ReceiptExtractionError(RuntimeError):
    """Raised when a provider cannot turn an image into receipt data."""

    kind: FailureKind = FailureKind.OTHER

    def __init__(
        self,
        message: str,
        *,
        provider: Optional[str] = None,
        status_code: Optional[int] = None,
        fallback: bool = True,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.provider = provider
        self.status_code = status_code
        self.fallback = fallback


class ProviderNotConfiguredError(ReceiptExtractionError):
    """Raised before any network call when a provider lacks endpoint or credentials."""

    kind = FailureKind.CONFIGURATION


class QuotaExceededError(ReceiptExtractionError):
    """Raised when a provider reports rate limiting or an exhausted quota."""

    kind = FailureKind.QUOTA


class NoReceiptDataError(ReceiptExtractionError):
    """Raised when a provider ran but found nothing usable."""

    kind = FailureKind.NO_DATA


class UnsupportedReceiptError(ReceiptExtractionError):
    """Raised when an image cannot be decoded for local recognition."""


@dataclass(frozen=True)
class ProviderFailure:
    provider: str
    kind: FailureKind
    message: str


class AllProvidersFailedError(ReceiptExtractionError):
    """Raised by the fallback chain once every provider has failed."""

    def __init__(self, failures: Sequence[ProviderFailure]) -> None:
        last_message = failures[-1].message if failures else "Unknown error"
        super().__init__(
            f"All OCR providers failed. Last error: {last_message}",
            provider="fallback",
            fallback=False,
        )
        self.failures = list(failures)


def is_quota_message(message: str) -> bool:
    lowered = message.lower()
    return any(marker in lowered for marker in _QUOTA_MARKERS)


def is_configuration_message(message: str) -> bool:
    lowered = message.lower()
    return any(marker in lowered for marker in _CONFIGURATION_MARKERS)


def classify_failure(exc: BaseException) -> FailureKind:
    """Map an exception raised by a provider onto a :class:`FailureKind`."""

    if isinstance(exc, ReceiptExtractionError) and exc.kind is not FailureKind.OTHER:
        return exc.kind
    message = str(exc)
    if is_quota_message(message):
        return FailureKind.QUOTA
    if is_configuration_message(message):
        return FailureKind.CONFIGURATION
    return FailureKind.OTHER


__all__ = [
    "AllProvidersFailedError",
    "FailureKind",
    "NoReceiptDataError",
    "ProviderFailure",
    "ProviderNotConfiguredError",
    "QuotaExceededError",
    "ReceiptExtractionError",
    "UnsupportedReceiptError",
    "classify_failure",
    "is_configuration_message",
    "is_quota_message",
]
