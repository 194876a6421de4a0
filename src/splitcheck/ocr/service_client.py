"""Client for the splitcheck ``/ocr`` HTTP endpoint."""

from __future__ import annotations

import logging
from typing import Any, Optional

import httpx
from pydantic import ValidationError

from splitcheck.models.receipt import ReceiptData
from splitcheck.ocr.errors import (
    NoReceiptDataError,
    ProviderNotConfiguredError,
    QuotaExceededError,
    ReceiptExtractionError,
)

logger = logging.getLogger(__name__)

SERVICE_TIMEOUT = 90.0


class ServiceReceiptProvider:
    """Send the image to a splitcheck server and map its error statuses back to exceptions."""

    name = "ocr-service"

    def __init__(
        self,
        *,
        base_url: str,
        api_token: Optional[str] = None,
        timeout: float = SERVICE_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._api_token = api_token
        self._timeout = timeout
        self._transport = transport

    async def extract_receipt(self, image: bytes) -> ReceiptData:
        endpoint = self._base_url
        if not endpoint.endswith("/ocr"):
            endpoint = f"{endpoint}/ocr"
        headers = {"Authorization": f"Bearer {self._api_token}"} if self._api_token else {}
        files = {"image": ("receipt", image, "application/octet-stream")}

        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                response = await client.post(endpoint, files=files, headers=headers)
        except httpx.HTTPError as exc:
            raise ReceiptExtractionError(
                f"OCR service request failed: {exc}", provider=self.name
            ) from exc

        body = _json_body(response)
        if response.is_success:
            try:
                data = ReceiptData.model_validate(body)
            except ValidationError as exc:
                raise ReceiptExtractionError(
                    f"OCR service returned an invalid receipt payload: {exc.error_count()} error(s)",
                    provider=self.name,
                ) from exc
            if data.provider is None:
                data = data.model_copy(update={"provider": self.name})
            return data

        message = "OCR service request failed"
        fallback = response.status_code in (429, 503)
        if isinstance(body, dict):
            message = str(body.get("error") or body.get("detail") or message)
            fallback = bool(body.get("fallback", fallback))
        logger.debug(
            "OCR service responded status=%s fallback=%s error=%s",
            response.status_code,
            fallback,
            message,
        )

        error_cls = {
            401: ProviderNotConfiguredError,
            429: QuotaExceededError,
            503: ProviderNotConfiguredError,
            422: NoReceiptDataError,
        }.get(response.status_code, ReceiptExtractionError)
        raise error_cls(
            message,
            provider=self.name,
            status_code=response.status_code,
            fallback=fallback,
        )


def _json_body(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return None


__all__ = ["ServiceReceiptProvider"]
