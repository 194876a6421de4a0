"""Integration tests for metrics endpoint."""

from __future__ import annotations

from prometheus_client import REGISTRY

from splitcheck.ocr.fallback import FallbackReceiptProvider
from splitcheck.ocr.pipeline import ReceiptScanner
from splitcheck.server import deps

_ATTEMPT_LABELS = {"provider": "metrics-stub", "outcome": "succeeded"}
_ACCEPTED_LABELS = {"status": "accepted"}


def _sample(name: str, labels: dict[str, str]) -> float:
    return REGISTRY.get_sample_value(name, labels) or 0.0


def test_metrics_endpoint_available(client):
    client.get("/healthz")
    response = client.get("/metrics")
    assert response.status_code == 200
    body = response.content.decode()
    assert "splitcheck_http_requests_total" in body


def test_extraction_metrics_exported_after_scan(app, client, stub_provider_cls, sample_receipt):
    attempts_before = _sample("splitcheck_extraction_attempts_total", _ATTEMPT_LABELS)
    accepted_before = _sample("splitcheck_reconciliations_total", _ACCEPTED_LABELS)
    chain = FallbackReceiptProvider([stub_provider_cls("metrics-stub", result=sample_receipt)])
    app.dependency_overrides[deps.get_receipt_scanner] = lambda: ReceiptScanner(
        provider=chain, tolerance=0.02
    )

    response = client.post("/receipts/scan", files={"file": ("r.jpg", b"bytes", "image/jpeg")})
    assert response.status_code == 200

    assert _sample("splitcheck_extraction_attempts_total", _ATTEMPT_LABELS) == attempts_before + 1
    assert _sample("splitcheck_reconciliations_total", _ACCEPTED_LABELS) == accepted_before + 1

    body = client.get("/metrics").content.decode()
    assert 'provider="metrics-stub"' in body
    assert 'outcome="succeeded"' in body
