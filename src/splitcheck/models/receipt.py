"""Pydantic models for extracted receipts."""

from __future__ import annotations

from typing import Any, Iterable, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


def sum_prices(prices: Iterable[float]) -> float:
    """Add currency amounts and round the result to cents."""

    return round(sum(float(price) for price in prices), 2)


class ReceiptItem(BaseModel):
    """A single priced line detected on a receipt."""

    name: str = Field(min_length=1)
    price: float = Field(gt=0)

    model_config = ConfigDict(frozen=True)

    @field_validator("name")
    @classmethod
    def strip_name(cls, value: str) -> str:
        stripped = value.strip()
        if not stripped:
            raise ValueError("name must not be blank")
        return stripped

    @field_validator("price")
    @classmethod
    def round_price(cls, value: float) -> float:
        return round(value, 2)


class ReceiptData(BaseModel):
    """Structured result of one receipt extraction.

    ``subtotal`` is filled from the item prices when the source did not state one;
    ``total`` is left unset when unknown.
    """

    items: list[ReceiptItem] = Field(default_factory=list)
    subtotal: Optional[float] = None
    total: Optional[float] = None
    raw: Optional[str] = None
    provider: Optional[str] = None

    model_config = ConfigDict(frozen=True)

    @model_validator(mode="before")
    @classmethod
    def default_subtotal(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        items = data.get("items") or []
        if data.get("subtotal") is None and items:
            prices = [
                item.get("price") if isinstance(item, dict) else getattr(item, "price", None)
                for item in items
            ]
            try:
                data = {**data, "subtotal": sum_prices(prices)}
            except (TypeError, ValueError):
                # Leave it to item validation to report the bad price.
                return data
        return data

    @property
    def items_sum(self) -> float:
        return sum_prices(item.price for item in self.items)


class ReceiptReconciliation(BaseModel):
    """Outcome of comparing the extracted item sum with the stated subtotal."""

    status: Literal["accepted", "needs_review", "no_items"]
    items_sum: float
    subtotal: Optional[float] = None
    difference: Optional[float] = None
    tolerance: float
    message: Optional[str] = None

    model_config = ConfigDict(frozen=True)

    @property
    def requires_review(self) -> bool:
        return self.status == "needs_review"


class LineItemDraft(BaseModel):
    """Line item ready to be persisted by the bill-splitting store."""

    name: str
    price: float
    order: int = Field(ge=0)
    assigned_to: list[str] = Field(default_factory=list)


class ReceiptScan(BaseModel):
    """Everything a caller needs after scanning one receipt image."""

    receipt: ReceiptData
    reconciliation: ReceiptReconciliation
    line_items: list[LineItemDraft] = Field(default_factory=list)
