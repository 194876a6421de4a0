"""Pydantic models defining shared data contracts."""

from splitcheck.models.receipt import (
    LineItemDraft,
    ReceiptData,
    ReceiptItem,
    ReceiptReconciliation,
    ReceiptScan,
    sum_prices,
)

__all__ = [
    "LineItemDraft",
    "ReceiptData",
    "ReceiptItem",
    "ReceiptReconciliation",
    "ReceiptScan",
    "sum_prices",
]
