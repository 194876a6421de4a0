"""Provider chain that falls back to the next extractor on failure."""

from __future__ import annotations

import asyncio
import logging
from time import perf_counter
from typing import List, Optional, Sequence

from splitcheck import metrics
from splitcheck.models.receipt import ReceiptData
from splitcheck.ocr.base import ReceiptProvider
from splitcheck.ocr.errors import (
    AllProvidersFailedError,
    FailureKind,
    ProviderFailure,
    classify_failure,
)

logger = logging.getLogger(__name__)


class FallbackReceiptProvider:
    """Try providers strictly in order and return the first successful extraction.

    Every provider failure (quota, configuration, missing data or anything else) moves on to
    the next provider; the kinds are kept apart only for logs and metrics. Providers are never
    raced and never retried. Cancellation of the caller is not a provider failure and stops the
    chain immediately.
    """

    name = "fallback"

    def __init__(
        self,
        providers: Sequence[ReceiptProvider],
        *,
        attempt_timeout: Optional[float] = None,
    ) -> None:
        if not providers:
            raise ValueError("FallbackReceiptProvider requires at least one provider")
        self._providers: List[ReceiptProvider] = list(providers)
        self._attempt_timeout = attempt_timeout

    @property
    def providers(self) -> List[ReceiptProvider]:
        return list(self._providers)

    async def extract_receipt(self, image: bytes) -> ReceiptData:
        failures: List[ProviderFailure] = []

        for provider in self._providers:
            logger.info("Attempting receipt extraction with %s", provider.name)
            start = perf_counter()
            try:
                result = await self._attempt(provider, image)
            except Exception as exc:
                kind = classify_failure(exc)
                message = _failure_message(exc, self._attempt_timeout)
                failures.append(ProviderFailure(provider=provider.name, kind=kind, message=message))
                metrics.EXTRACTION_ATTEMPTS.labels(provider=provider.name, outcome="failed").inc()
                metrics.EXTRACTION_FAILURES.labels(provider=provider.name, kind=kind.value).inc()
                logger.warning(
                    "%s failed kind=%s: %s",
                    provider.name,
                    kind.value,
                    message,
                    extra={"provider": provider.name},
                )
                if kind is FailureKind.QUOTA:
                    logger.info("Quota exceeded for %s, trying next provider", provider.name)
                elif kind is FailureKind.CONFIGURATION:
                    logger.info("%s not configured, trying next provider", provider.name)
                continue
            finally:
                metrics.EXTRACTION_LATENCY.labels(provider=provider.name).observe(
                    perf_counter() - start
                )

            metrics.EXTRACTION_ATTEMPTS.labels(provider=provider.name, outcome="succeeded").inc()
            logger.info(
                "Extracted receipt with %s items=%s", provider.name, len(result.items)
            )
            if result.provider is None:
                result = result.model_copy(update={"provider": provider.name})
            return result

        error = AllProvidersFailedError(failures)
        logger.error("%s", error)
        raise error

    async def _attempt(self, provider: ReceiptProvider, image: bytes) -> ReceiptData:
        if self._attempt_timeout is None:
            return await provider.extract_receipt(image)
        return await asyncio.wait_for(provider.extract_receipt(image), self._attempt_timeout)


def _failure_message(exc: Exception, timeout: Optional[float]) -> str:
    if isinstance(exc, asyncio.TimeoutError) and not str(exc):
        return f"timed out after {timeout:g}s" if timeout is not None else "timed out"
    return str(exc) or exc.__class__.__name__


__all__ = ["FallbackReceiptProvider"]
