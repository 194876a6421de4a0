"""Build receipt providers from application settings."""

from __future__ import annotations

import logging
from typing import List, Optional

from splitcheck.config import Settings, get_settings
from splitcheck.ocr.azure import AzureReceiptProvider
from splitcheck.ocr.base import ProgressCallback, ReceiptProvider
from splitcheck.ocr.fallback import FallbackReceiptProvider
from splitcheck.ocr.service_client import ServiceReceiptProvider
from splitcheck.ocr.tesseract import TesseractReceiptProvider

logger = logging.getLogger(__name__)


def build_azure_provider(settings: Optional[Settings] = None) -> AzureReceiptProvider:
    """Return the Document Intelligence provider, configured or not."""

    settings = settings or get_settings()
    return AzureReceiptProvider(
        endpoint=settings.azure_endpoint,
        key=settings.azure_key,
        model_id=settings.azure_model_id,
        api_version=settings.azure_api_version,
        poll_interval=settings.azure_poll_interval,
        max_polls=settings.azure_max_polls,
        timeout=settings.azure_timeout,
    )


def build_remote_provider(settings: Optional[Settings] = None) -> ReceiptProvider:
    """Return the remote step of the chain: a splitcheck server when one is set, else Azure."""

    settings = settings or get_settings()
    if settings.ocr_service_url:
        return ServiceReceiptProvider(
            base_url=settings.ocr_service_url,
            api_token=settings.api_token,
        )
    return build_azure_provider(settings)


def build_receipt_provider(
    settings: Optional[Settings] = None,
    *,
    progress: Optional[ProgressCallback] = None,
) -> FallbackReceiptProvider:
    """Assemble the configured provider chain in priority order."""

    settings = settings or get_settings()
    providers: List[ReceiptProvider] = []
    for name in settings.ocr_providers:
        if name == "azure":
            providers.append(build_remote_provider(settings))
        elif name == "tesseract":
            providers.append(
                TesseractReceiptProvider(lang=settings.ocr_default_lang, progress=progress)
            )
        else:
            raise ValueError(f"Unknown receipt provider: {name}")

    logger.debug("Receipt provider chain: %s", [provider.name for provider in providers])
    return FallbackReceiptProvider(providers, attempt_timeout=settings.ocr_attempt_timeout)


__all__ = ["build_azure_provider", "build_receipt_provider", "build_remote_provider"]
