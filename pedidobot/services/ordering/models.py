"""Order extraction models."""
from decimal import Decimal
from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field

from pedidobot.services.menu.base import MenuItem


class MatchSource(str, Enum):
    """Where a product match came from."""

    NAME = "name"
    DESCRIPTION = "description"
    CATEGORY = "category"
    FALLBACK = "fallback"

    def __str__(self) -> str:
        return self.value


class QuantityToken(BaseModel):
    """A quantity found in a message."""

    value: int = Field(gt=0)
    confidence: float = Field(ge=0.0, le=1.0)
    source_pattern: str
    matched_text: str = ""
    position: int = 0

    @property
    def is_default(self) -> bool:
        return self.source_pattern == "default"


class ProductCandidate(BaseModel):
    """A menu item that a message may refer to."""

    item: MenuItem
    confidence: float = Field(ge=0.0, le=1.0)
    matched_by: MatchSource = MatchSource.NAME
    position: int = 0  # Index of the earliest evidence in the normalized text


class OrderLineItem(BaseModel):
    """Structured order line."""

    item_id: str
    item_name: str
    quantity: int = Field(gt=0)
    unit_price: Decimal = Decimal("0")
    confidence: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    category: Optional[str] = None
    quantity_pending: bool = False  # Quantity was assumed, not stated

    @classmethod
    def from_menu_item(
        cls,
        item: MenuItem,
        quantity: int,
        confidence: Optional[float] = None,
        quantity_pending: bool = False,
    ) -> "OrderLineItem":
        return cls(
            item_id=item.id,
            item_name=item.name,
            quantity=quantity,
            unit_price=item.price,
            confidence=confidence,
            category=item.category,
            quantity_pending=quantity_pending,
        )

    @property
    def subtotal(self) -> Decimal:
        return self.unit_price * self.quantity

    def describe(self) -> str:
        return f"{self.quantity}x {self.item_name}"
