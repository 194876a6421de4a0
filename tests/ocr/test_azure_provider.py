"""Tests for the Azure Document Intelligence provider."""

from __future__ import annotations

import asyncio
from typing import Callable, List

import httpx
import pytest

from splitcheck.ocr.azure import AzureReceiptProvider
from splitcheck.ocr.errors import (
    FailureKind,
    NoReceiptDataError,
    ProviderNotConfiguredError,
    QuotaExceededError,
    ReceiptExtractionError,
)

ENDPOINT = "https://splitcheck.cognitiveservices.azure.com/"
OPERATION_URL = (
    "https://splitcheck.cognitiveservices.azure.com/documentintelligence/documentModels/"
    "prebuilt-receipt/analyzeResults/op-123?api-version=2024-11-30"
)


def _currency(amount: float) -> dict:
    return {"type": "currency", "valueCurrency": {"amount": amount, "currencyCode": "USD"}}


def _item(description: str, price: dict) -> dict:
    return {
        "type": "object",
        "valueObject": {
            "Description": {"type": "string", "valueString": description},
            "TotalPrice": price,
        },
    }


def _analyze_result(items: List[dict], **fields: dict) -> dict:
    return {
        "status": "succeeded",
        "analyzeResult": {
            "content": "COFFEE 4.50\nSANDWICH 12.99",
            "documents": [
                {
                    "docType": "receipt.retailMeal",
                    "fields": {"Items": {"type": "array", "valueArray": items}, **fields},
                }
            ],
        },
    }


def _provider(handler: Callable[[httpx.Request], httpx.Response], **kwargs) -> AzureReceiptProvider:
    options = {"endpoint": ENDPOINT, "key": "secret-key", "poll_interval": 0}
    options.update(kwargs)
    return AzureReceiptProvider(transport=httpx.MockTransport(handler), **options)


def _submit_then(poll_bodies: List[dict], requests: List[httpx.Request]):
    bodies = iter(poll_bodies)

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        if request.method == "POST":
            return httpx.Response(202, headers={"Operation-Location": OPERATION_URL})
        return httpx.Response(200, json=next(bodies))

    return handler


def test_extracts_items_and_amounts_after_polling():
    requests: List[httpx.Request] = []
    final = _analyze_result(
        [_item("Coffee", _currency(4.5)), _item("Sandwich", _currency(12.99))],
        Subtotal=_currency(17.49),
        Total=_currency(18.89),
    )
    provider = _provider(_submit_then([{"status": "running"}, final], requests))

    result = asyncio.run(provider.extract_receipt(b"jpeg-bytes"))

    assert [(item.name, item.price) for item in result.items] == [
        ("Coffee", 4.5),
        ("Sandwich", 12.99),
    ]
    assert result.subtotal == 17.49
    assert result.total == 18.89
    assert result.raw == "COFFEE 4.50\nSANDWICH 12.99"
    assert result.provider == "azure-doc-intel"
    assert [request.method for request in requests] == ["POST", "GET", "GET"]


def test_submits_image_to_prebuilt_receipt_model():
    requests: List[httpx.Request] = []
    final = _analyze_result([_item("Coffee", _currency(4.5))])
    provider = _provider(_submit_then([final], requests))

    asyncio.run(provider.extract_receipt(b"jpeg-bytes"))

    submit = requests[0]
    assert submit.url.path == "/documentintelligence/documentModels/prebuilt-receipt:analyze"
    assert submit.url.params["api-version"] == "2024-11-30"
    assert submit.headers["Ocp-Apim-Subscription-Key"] == "secret-key"
    assert submit.headers["Content-Type"] == "application/octet-stream"
    assert submit.content == b"jpeg-bytes"
    assert str(requests[1].url) == OPERATION_URL


def test_subtotal_defaults_to_item_sum_when_missing():
    final = _analyze_result(
        [_item("Coffee", _currency(4.5)), _item("Sandwich", _currency(12.99))]
    )
    provider = _provider(_submit_then([final], []))

    result = asyncio.run(provider.extract_receipt(b"img"))

    assert result.subtotal == 17.49
    assert result.total is None


def test_items_without_description_or_positive_price_are_skipped():
    items = [
        _item("Coffee", _currency(4.5)),
        _item("Refund", _currency(-2.0)),
        _item("Free water", _currency(0)),
        {"type": "object", "valueObject": {"TotalPrice": _currency(3.0)}},
        {
            "type": "object",
            "valueObject": {
                "Description": {"type": "string", "valueString": "  Iced   Tea "},
                "Price": {"type": "number", "valueNumber": 3.25},
            },
        },
        {"type": "string", "valueString": "not an item"},
    ]
    provider = _provider(_submit_then([_analyze_result(items)], []))

    result = asyncio.run(provider.extract_receipt(b"img"))

    assert [(item.name, item.price) for item in result.items] == [
        ("Coffee", 4.5),
        ("Iced Tea", 3.25),
    ]


def test_not_configured_raises_before_any_request():
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("no request expected")

    provider = AzureReceiptProvider(
        endpoint=None, key=None, transport=httpx.MockTransport(handler)
    )

    with pytest.raises(ProviderNotConfiguredError) as excinfo:
        asyncio.run(provider.extract_receipt(b"img"))

    assert str(excinfo.value) == "Azure Document Intelligence not configured"
    assert excinfo.value.kind is FailureKind.CONFIGURATION
    assert excinfo.value.status_code == 503


def test_missing_key_counts_as_not_configured():
    provider = AzureReceiptProvider(endpoint=ENDPOINT, key="   ")

    assert not provider.configured


def test_rate_limit_maps_to_quota_error():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            429,
            json={"error": {"code": "429", "message": "Rate limit is exceeded. Try again later."}},
        )

    with pytest.raises(QuotaExceededError) as excinfo:
        asyncio.run(_provider(handler).extract_receipt(b"img"))

    assert "Rate limit is exceeded" in str(excinfo.value)
    assert excinfo.value.kind is FailureKind.QUOTA


@pytest.mark.parametrize("status_code", [401, 403])
def test_rejected_credentials_map_to_configuration_error(status_code):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status_code, json={"error": {"message": "Access denied"}})

    with pytest.raises(ProviderNotConfiguredError) as excinfo:
        asyncio.run(_provider(handler).extract_receipt(b"img"))

    assert "unauthorized" in str(excinfo.value)
    assert excinfo.value.status_code == status_code


def test_server_error_maps_to_generic_error():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, text="upstream exploded")

    with pytest.raises(ReceiptExtractionError) as excinfo:
        asyncio.run(_provider(handler).extract_receipt(b"img"))

    assert excinfo.value.kind is FailureKind.OTHER
    assert "HTTP 500" in str(excinfo.value)
    assert "upstream exploded" in str(excinfo.value)


def test_no_documents_maps_to_no_data_error():
    final = {"status": "succeeded", "analyzeResult": {"content": "", "documents": []}}
    provider = _provider(_submit_then([final], []))

    with pytest.raises(NoReceiptDataError) as excinfo:
        asyncio.run(provider.extract_receipt(b"img"))

    assert str(excinfo.value) == "No receipt data found in image"


def test_failed_analysis_raises_with_service_message():
    failed = {"status": "failed", "error": {"code": "InvalidContent", "message": "Corrupt image"}}
    provider = _provider(_submit_then([failed], []))

    with pytest.raises(ReceiptExtractionError, match="Corrupt image"):
        asyncio.run(provider.extract_receipt(b"img"))


def test_missing_operation_location_is_an_error():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(202)

    with pytest.raises(ReceiptExtractionError, match="Operation-Location"):
        asyncio.run(_provider(handler).extract_receipt(b"img"))


def test_polling_gives_up_after_max_polls():
    requests: List[httpx.Request] = []
    provider = _provider(
        _submit_then([{"status": "running"}] * 5, requests),
        max_polls=3,
    )

    with pytest.raises(ReceiptExtractionError, match="after 3 polls"):
        asyncio.run(provider.extract_receipt(b"img"))

    assert len(requests) == 4


def test_overall_timeout_bounds_polling():
    provider = _provider(_submit_then([{"status": "running"}], []), poll_interval=5, timeout=0.05)

    with pytest.raises(ReceiptExtractionError, match="did not finish"):
        asyncio.run(provider.extract_receipt(b"img"))


def test_transport_errors_are_wrapped():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(ReceiptExtractionError, match="connection refused"):
        asyncio.run(_provider(handler).extract_receipt(b"img"))
