"""Remote receipt extraction through Azure Document Intelligence."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, List, Mapping, Optional

import httpx

from splitcheck.models.receipt import ReceiptData, ReceiptItem
from splitcheck.ocr.errors import (
    NoReceiptDataError,
    ProviderNotConfiguredError,
    QuotaExceededError,
    ReceiptExtractionError,
    is_quota_message,
)

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 30.0
_TERMINAL_STATES = {"succeeded", "failed", "canceled"}


class AzureReceiptProvider:
    """Analyze receipt images with the ``prebuilt-receipt`` Document Intelligence model.

    The service is asynchronous: the image is submitted once and the returned
    ``Operation-Location`` is polled until the analysis reaches a terminal state. Polling is
    bounded both by ``max_polls`` and by ``timeout`` seconds overall.
    """

    name = "azure-doc-intel"

    def __init__(
        self,
        *,
        endpoint: Optional[str],
        key: Optional[str],
        model_id: str = "prebuilt-receipt",
        api_version: str = "2024-11-30",
        poll_interval: float = 1.0,
        max_polls: int = 60,
        timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._endpoint = (endpoint or "").strip().rstrip("/")
        self._key = (key or "").strip()
        self._model_id = model_id
        self._api_version = api_version
        self._poll_interval = max(0.0, float(poll_interval))
        self._max_polls = max(1, int(max_polls))
        self._timeout = float(timeout)
        self._transport = transport

    @property
    def configured(self) -> bool:
        return bool(self._endpoint and self._key)

    @property
    def analyze_url(self) -> str:
        return (
            f"{self._endpoint}/documentintelligence/documentModels/"
            f"{self._model_id}:analyze"
        )

    async def extract_receipt(self, image: bytes) -> ReceiptData:
        if not self.configured:
            raise ProviderNotConfiguredError(
                "Azure Document Intelligence not configured",
                provider=self.name,
                status_code=503,
            )

        try:
            result = await asyncio.wait_for(self._analyze(image), timeout=self._timeout)
        except asyncio.TimeoutError as exc:
            raise ReceiptExtractionError(
                f"Azure analysis did not finish within {self._timeout:g}s",
                provider=self.name,
            ) from exc
        except httpx.HTTPStatusError as exc:
            raise self._translate_status_error(exc.response) from exc
        except httpx.HTTPError as exc:
            raise ReceiptExtractionError(
                f"Azure request failed: {exc}", provider=self.name
            ) from exc

        return self._map_result(result)

    async def _analyze(self, image: bytes) -> Mapping[str, Any]:
        headers = {
            "Ocp-Apim-Subscription-Key": self._key,
            "Content-Type": "application/octet-stream",
        }
        async with httpx.AsyncClient(timeout=REQUEST_TIMEOUT, transport=self._transport) as client:
            response = await client.post(
                self.analyze_url,
                params={"api-version": self._api_version},
                content=image,
                headers=headers,
            )
            response.raise_for_status()
            operation_url = response.headers.get("Operation-Location")
            if not operation_url:
                raise ReceiptExtractionError(
                    "Azure response did not include an Operation-Location header.",
                    provider=self.name,
                )
            logger.debug("Azure analysis submitted operation=%s", operation_url.split("?")[0])
            delay = self._retry_after(response)

            for attempt in range(1, self._max_polls + 1):
                await asyncio.sleep(delay)
                poll = await client.get(
                    operation_url,
                    headers={"Ocp-Apim-Subscription-Key": self._key},
                )
                poll.raise_for_status()
                body = poll.json()
                status = str(body.get("status") or "").lower()
                if status in _TERMINAL_STATES:
                    logger.debug("Azure analysis finished status=%s polls=%s", status, attempt)
                    if status != "succeeded":
                        raise self._translate_analysis_error(body)
                    return body.get("analyzeResult") or {}
                delay = self._retry_after(poll)

        raise ReceiptExtractionError(
            f"Azure analysis still running after {self._max_polls} polls",
            provider=self.name,
        )

    def _retry_after(self, response: httpx.Response) -> float:
        raw = response.headers.get("Retry-After")
        if raw:
            try:
                return max(0.0, min(float(raw), self._timeout))
            except ValueError:
                pass
        return self._poll_interval

    def _translate_status_error(self, response: httpx.Response) -> ReceiptExtractionError:
        message = _error_message(response)
        status_code = response.status_code
        if status_code == 429 or is_quota_message(message):
            return QuotaExceededError(
                f"Azure quota exceeded: {message}", provider=self.name, status_code=status_code
            )
        if status_code in (401, 403):
            return ProviderNotConfiguredError(
                f"Azure credentials rejected (unauthorized): {message}",
                provider=self.name,
                status_code=status_code,
            )
        return ReceiptExtractionError(
            f"Azure request failed with HTTP {status_code}: {message}",
            provider=self.name,
            status_code=status_code,
        )

    def _translate_analysis_error(self, body: Mapping[str, Any]) -> ReceiptExtractionError:
        error = body.get("error") or {}
        message = error.get("message") or f"analysis {body.get('status')}"
        if is_quota_message(message):
            return QuotaExceededError(f"Azure quota exceeded: {message}", provider=self.name)
        return ReceiptExtractionError(f"Azure analysis failed: {message}", provider=self.name)

    def _map_result(self, result: Mapping[str, Any]) -> ReceiptData:
        documents = result.get("documents") or []
        if not documents:
            raise NoReceiptDataError(
                "No receipt data found in image", provider=self.name, status_code=422
            )

        fields = documents[0].get("fields") or {}
        items = _extract_items(fields.get("Items") or fields.get("LineItems"))
        subtotal = _field_amount(fields.get("Subtotal"))
        total = _field_amount(fields.get("Total"))
        logger.info(
            "Azure extracted receipt items=%s subtotal=%s total=%s", len(items), subtotal, total
        )
        return ReceiptData(
            items=items,
            subtotal=subtotal,
            total=total,
            raw=result.get("content") or "",
            provider=self.name,
        )


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text.strip() or response.reason_phrase
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if isinstance(error, str):
            return error
    return response.reason_phrase


def _field_amount(field: Optional[Mapping[str, Any]]) -> Optional[float]:
    if not isinstance(field, Mapping):
        return None
    kind = field.get("type")
    value: Any = None
    if kind == "currency":
        value = (field.get("valueCurrency") or {}).get("amount")
    elif kind in ("number", "integer"):
        value = field.get("valueNumber", field.get("valueInteger"))
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return round(float(value), 2)


def _field_string(field: Optional[Mapping[str, Any]]) -> Optional[str]:
    if not isinstance(field, Mapping) or field.get("type") != "string":
        return None
    value = field.get("valueString") or field.get("content") or ""
    value = " ".join(str(value).split())
    return value or None


def _extract_items(field: Optional[Mapping[str, Any]]) -> List[ReceiptItem]:
    if not isinstance(field, Mapping) or field.get("type") != "array":
        return []

    items: List[ReceiptItem] = []
    for entry in field.get("valueArray") or []:
        if not isinstance(entry, Mapping) or entry.get("type") != "object":
            continue
        properties = entry.get("valueObject") or {}
        description = _field_string(properties.get("Description"))
        price = _field_amount(properties.get("TotalPrice") or properties.get("Price"))
        if description is None or price is None or price <= 0:
            continue
        items.append(ReceiptItem(name=description, price=price))
    return items


__all__ = ["AzureReceiptProvider"]
