"""Consumer-facing receipt scanning pipeline."""

from __future__ import annotations

import logging
from typing import Optional

from splitcheck.config import get_settings
from splitcheck.models.receipt import ReceiptScan
from splitcheck.ocr.base import ReceiptProvider
from splitcheck.ocr.errors import NoReceiptDataError
from splitcheck.ocr.factory import build_receipt_provider
from splitcheck.ocr.reconcile import build_line_items, reconcile_receipt

logger = logging.getLogger(__name__)

MANUAL_ENTRY_MESSAGE = "Failed to process receipt. Please try again or add items manually."


class ReceiptScanner:
    """Extract a receipt, run the reconciliation gate and number the items for storage."""

    def __init__(
        self,
        *,
        provider: Optional[ReceiptProvider] = None,
        tolerance: Optional[float] = None,
    ) -> None:
        if provider is None or tolerance is None:
            settings = get_settings()
            if provider is None:
                provider = build_receipt_provider(settings)
            if tolerance is None:
                tolerance = settings.reconciliation_tolerance
        self._provider = provider
        self._tolerance = tolerance

    async def scan(self, image: bytes, *, starting_order: int = 0) -> ReceiptScan:
        """Run one extraction; raises when no provider succeeds or nothing was found."""

        receipt = await self._provider.extract_receipt(image)
        reconciliation = reconcile_receipt(receipt, tolerance=self._tolerance)
        if reconciliation.status == "no_items":
            raise NoReceiptDataError(
                "No items found in receipt", provider=receipt.provider, status_code=422
            )

        logger.info(
            "Receipt scanned provider=%s items=%s status=%s",
            receipt.provider,
            len(receipt.items),
            reconciliation.status,
        )
        return ReceiptScan(
            receipt=receipt,
            reconciliation=reconciliation,
            line_items=build_line_items(receipt, starting_order=starting_order),
        )


__all__ = ["MANUAL_ENTRY_MESSAGE", "ReceiptScanner"]
