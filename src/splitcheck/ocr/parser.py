"""Heuristic receipt text parser."""

from __future__ import annotations

import logging
import math
import re
from typing import List, Optional

from splitcheck.models.receipt import ReceiptData, ReceiptItem, sum_prices

logger = logging.getLogger(__name__)

_PRICE_PATTERN = re.compile(r"\$?\s*(\d+[.,]\d{2})\s*$")
_QUANTITY_PREFIX = re.compile(r"^\d+\s*(?:[xX]\s*|\s+|$)")
_SUBTOTAL_PATTERN = re.compile(r"sub\s*total", re.IGNORECASE)
_TOTAL_PATTERN = re.compile(r"^total|grand\s*total|amount\s*due|balance", re.IGNORECASE)
# Payment, tax and courtesy lines carry prices that must never become items or totals.
_SKIP_PATTERNS = [
    re.compile(pattern, re.IGNORECASE)
    for pattern in (
        r"^tax",
        r"^tip",
        r"^gratuity",
        r"^discount",
        r"^payment",
        r"^change",
        r"^cash",
        r"^credit",
        r"^debit",
        r"^card",
        r"^visa",
        r"^mastercard",
        r"^amex",
        r"thank\s*you",
    )
]


def _is_skipped(line: str) -> bool:
    return any(pattern.search(line) for pattern in _SKIP_PATTERNS)


def _parse_amount(token: str) -> Optional[float]:
    try:
        value = float(token.replace(",", "."))
    except ValueError:
        return None
    if not math.isfinite(value) or value <= 0:
        return None
    return round(value, 2)


def _strip_quantity(name: str) -> str:
    return _QUANTITY_PREFIX.sub("", name, count=1).strip()


class ReceiptTextParser:
    """Parse recognized receipt text into priced items, subtotal and total.

    Parsing is pure: lines that do not look like priced entries are dropped and never
    abort the document.
    """

    def parse(self, text: str) -> ReceiptData:
        lines = [line.strip() for line in text.splitlines()]
        lines = [line for line in lines if line]

        items: List[ReceiptItem] = []
        subtotal: Optional[float] = None
        total: Optional[float] = None
        skipped = 0

        for line in lines:
            if _is_skipped(line):
                skipped += 1
                continue

            match = _PRICE_PATTERN.search(line)
            if match is None:
                continue

            price = _parse_amount(match.group(1))
            if price is None:
                continue

            name = _strip_quantity(line[: match.start()].strip())
            if not name:
                continue

            if _SUBTOTAL_PATTERN.search(name):
                subtotal = price
                continue
            if _TOTAL_PATTERN.search(name):
                total = price
                continue

            items.append(ReceiptItem(name=name, price=price))

        if subtotal is None and items:
            subtotal = sum_prices(item.price for item in items)

        logger.debug(
            "Parsed receipt text lines=%s items=%s skipped=%s subtotal=%s total=%s",
            len(lines),
            len(items),
            skipped,
            subtotal,
            total,
        )
        return ReceiptData(items=items, subtotal=subtotal, total=total, raw=text)


def parse_receipt_text(text: str) -> ReceiptData:
    """Parse ``text`` with a default :class:`ReceiptTextParser`."""

    return ReceiptTextParser().parse(text)


__all__ = ["ReceiptTextParser", "parse_receipt_text"]
