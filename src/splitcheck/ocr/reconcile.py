"""Reconciliation gate and hand-off helpers for extracted receipts."""

from __future__ import annotations

import logging
from typing import List

from splitcheck import metrics
from splitcheck.models.receipt import LineItemDraft, ReceiptData, ReceiptReconciliation

logger = logging.getLogger(__name__)

DEFAULT_TOLERANCE = 0.02


def reconcile_receipt(
    data: ReceiptData, *, tolerance: float = DEFAULT_TOLERANCE
) -> ReceiptReconciliation:
    """Decide whether an extraction can be saved as-is or needs a human to confirm it."""

    items_sum = data.items_sum
    if not data.items:
        result = ReceiptReconciliation(
            status="no_items",
            items_sum=items_sum,
            subtotal=data.subtotal,
            tolerance=tolerance,
            message="No items found in receipt",
        )
    elif data.subtotal is None:
        result = ReceiptReconciliation(
            status="accepted", items_sum=items_sum, tolerance=tolerance
        )
    else:
        # Compare in cents so float noise never tips an exact match over the tolerance.
        difference = round(abs(items_sum - data.subtotal), 2)
        if difference > tolerance:
            result = ReceiptReconciliation(
                status="needs_review",
                items_sum=items_sum,
                subtotal=data.subtotal,
                difference=difference,
                tolerance=tolerance,
                message=(
                    f"Items sum to ${items_sum:.2f} but subtotal is ${data.subtotal:.2f}. "
                    "Please review and correct."
                ),
            )
        else:
            result = ReceiptReconciliation(
                status="accepted",
                items_sum=items_sum,
                subtotal=data.subtotal,
                difference=difference,
                tolerance=tolerance,
            )

    metrics.RECONCILIATIONS.labels(status=result.status).inc()
    if result.requires_review:
        logger.info("Receipt flagged for review: %s", result.message)
    return result


def build_line_items(data: ReceiptData, *, starting_order: int = 0) -> List[LineItemDraft]:
    """Number extracted items sequentially for the line-item store, unassigned."""

    return [
        LineItemDraft(name=item.name, price=item.price, order=starting_order + index)
        for index, item in enumerate(data.items)
    ]


__all__ = ["DEFAULT_TOLERANCE", "build_line_items", "reconcile_receipt"]
