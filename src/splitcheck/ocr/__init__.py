"""Receipt extraction providers and pipeline."""

from .azure import AzureReceiptProvider
from .base import ProgressCallback, ReceiptProvider
from .errors import (
    AllProvidersFailedError,
    FailureKind,
    NoReceiptDataError,
    ProviderNotConfiguredError,
    QuotaExceededError,
    ReceiptExtractionError,
    UnsupportedReceiptError,
    classify_failure,
)
from .factory import build_azure_provider, build_receipt_provider, build_remote_provider
from .fallback import FallbackReceiptProvider
from .parser import ReceiptTextParser, parse_receipt_text
from .pipeline import MANUAL_ENTRY_MESSAGE, ReceiptScanner
from .reconcile import build_line_items, reconcile_receipt
from .service_client import ServiceReceiptProvider
from .tesseract import TesseractReceiptProvider

__all__ = [
    "AllProvidersFailedError",
    "AzureReceiptProvider",
    "FailureKind",
    "FallbackReceiptProvider",
    "MANUAL_ENTRY_MESSAGE",
    "NoReceiptDataError",
    "ProgressCallback",
    "ProviderNotConfiguredError",
    "QuotaExceededError",
    "ReceiptExtractionError",
    "ReceiptProvider",
    "ReceiptScanner",
    "ReceiptTextParser",
    "ServiceReceiptProvider",
    "TesseractReceiptProvider",
    "UnsupportedReceiptError",
    "build_azure_provider",
    "build_line_items",
    "build_receipt_provider",
    "build_remote_provider",
    "classify_failure",
    "parse_receipt_text",
    "reconcile_receipt",
]
