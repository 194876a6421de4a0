"""Tests for the end-to-end scanning pipeline with stubbed providers."""

from __future__ import annotations

import asyncio

import pytest

from splitcheck.models.receipt import ReceiptData, ReceiptItem
from splitcheck.ocr.errors import AllProvidersFailedError, NoReceiptDataError, QuotaExceededError
from splitcheck.ocr.fallback import FallbackReceiptProvider
from splitcheck.ocr.pipeline import ReceiptScanner


def _receipt(subtotal: float) -> ReceiptData:
    return ReceiptData(
        items=[ReceiptItem(name="Coffee", price=4.50), ReceiptItem(name="Sandwich", price=12.99)],
        subtotal=subtotal,
        total=18.89,
        provider="tesseract",
    )


def test_scan_returns_receipt_reconciliation_and_line_items(stub_provider_cls):
    scanner = ReceiptScanner(provider=stub_provider_cls("stub", result=_receipt(17.49)), tolerance=0.02)

    scan = asyncio.run(scanner.scan(b"image", starting_order=2))

    assert scan.receipt.provider == "tesseract"
    assert scan.reconciliation.status == "accepted"
    assert [(item.name, item.order) for item in scan.line_items] == [("Coffee", 2), ("Sandwich", 3)]


def test_scan_flags_mismatch_without_failing(stub_provider_cls):
    scanner = ReceiptScanner(provider=stub_provider_cls("stub", result=_receipt(18.00)), tolerance=0.02)

    scan = asyncio.run(scanner.scan(b"image"))

    assert scan.reconciliation.requires_review
    assert len(scan.line_items) == 2


def test_scan_without_items_raises(stub_provider_cls):
    empty = ReceiptData(items=[], raw="THANK YOU")
    scanner = ReceiptScanner(provider=stub_provider_cls("stub", result=empty), tolerance=0.02)

    with pytest.raises(NoReceiptDataError, match="No items found in receipt"):
        asyncio.run(scanner.scan(b"image"))


def test_scan_through_fallback_chain(stub_provider_cls):
    chain = FallbackReceiptProvider(
        [
            stub_provider_cls("azure-doc-intel", error=QuotaExceededError("Azure quota exceeded")),
            stub_provider_cls("tesseract", result=_receipt(17.49)),
        ]
    )
    scanner = ReceiptScanner(provider=chain, tolerance=0.02)

    scan = asyncio.run(scanner.scan(b"image"))

    assert scan.receipt.provider == "tesseract"


def test_scan_propagates_exhausted_chain(stub_provider_cls):
    chain = FallbackReceiptProvider([stub_provider_cls("only", error=RuntimeError("engine crashed"))])
    scanner = ReceiptScanner(provider=chain, tolerance=0.02)

    with pytest.raises(AllProvidersFailedError, match="engine crashed"):
        asyncio.run(scanner.scan(b"image"))


def test_scanner_defaults_come_from_settings(monkeypatch):
    monkeypatch.setenv("SPLITCHECK_OCR_PROVIDERS", "tesseract")
    monkeypatch.setenv("SPLITCHECK_RECONCILIATION_TOLERANCE", "0.5")

    scanner = ReceiptScanner()

    assert scanner._tolerance == 0.5
    assert [provider.name for provider in scanner._provider.providers] == ["tesseract"]
