from __future__ import annotations

from typing import Callable, Protocol, runtime_checkable

from splitcheck.models.receipt import ReceiptData

ProgressCallback = Callable[[float], None]


@runtime_checkable
class ReceiptProvider(Protocol):
    """Anything that can turn receipt image bytes into :class:`ReceiptData`."""

    name: str

    async def extract_receipt(self, image: bytes) -> ReceiptData: ...
