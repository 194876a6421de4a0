"""Dependency definitions for the splitcheck API server."""

from __future__ import annotations

from fastapi import Depends, HTTPException, Request, status

from splitcheck.config import get_settings
from splitcheck.ocr.base import ReceiptProvider
from splitcheck.ocr.factory import build_azure_provider
from splitcheck.ocr.pipeline import ReceiptScanner


def get_remote_provider() -> ReceiptProvider:
    """Return the provider backing ``POST /ocr``.

    The endpoint is itself the remote service boundary, so it always talks to Document
    Intelligence directly rather than to another splitcheck server.
    """

    return build_azure_provider(get_settings())


def get_receipt_scanner() -> ReceiptScanner:
    """Return a scanner wired to the configured provider chain."""

    return ReceiptScanner()


def require_api_token(
    request: Request,
    settings = Depends(get_settings),
) -> None:
    """Ensure requests carry the configured API token when required."""

    token = settings.api_token
    if not token:
        return

    auth_header = request.headers.get("Authorization")
    if auth_header and auth_header.split("Bearer ")[-1].strip() == token:
        return

    if request.headers.get("X-API-Key") == token:
        return

    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
