"""Conversation state models."""
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import List, Optional
from pydantic import BaseModel, Field, model_validator

from pedidobot.services.agent.stages import CustomerTier, PendingAction
from pedidobot.services.ordering.models import OrderLineItem

VIP_ORDER_COUNT = 10
RETURNING_WINDOW = timedelta(days=30)


def utcnow() -> datetime:
    """Timezone-aware current UTC time."""
    return datetime.now(timezone.utc)


def ensure_aware(value: datetime) -> datetime:
    """Treat naive datetimes (e.g. from SQLite) as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class OrderDraft(BaseModel):
    """A customer's in-progress order."""

    conversation_id: str
    lines: List[OrderLineItem] = []
    pending_action: PendingAction = PendingAction.NONE
    proposed_lines: List[OrderLineItem] = []
    last_activity_at: datetime = Field(default_factory=utcnow)
    last_added_item_id: Optional[str] = None

    @model_validator(mode="after")
    def _check_invariants(self) -> "OrderDraft":
        item_ids = [line.item_id for line in self.lines]
        if len(item_ids) != len(set(item_ids)):
            raise ValueError("draft lines must be unique per item_id")
        if (self.pending_action != PendingAction.NONE) != bool(self.proposed_lines):
            raise ValueError("pending_action and proposed_lines must be set together")
        return self

    @property
    def has_lines(self) -> bool:
        return bool(self.lines)

    @property
    def has_pending(self) -> bool:
        return self.pending_action != PendingAction.NONE

    @property
    def total(self) -> Decimal:
        return sum((line.subtotal for line in self.lines), Decimal("0"))

    def get_line(self, item_id: str) -> Optional[OrderLineItem]:
        for line in self.lines:
            if line.item_id == item_id:
                return line
        return None

    def get_order_summary(self) -> str:
        """Get a text summary of the current order."""
        if not self.lines:
            return "Tu pedido está vacío."
        return "\n".join(f"• {line.describe()} (${line.subtotal:.2f})" for line in self.lines)


class ConfirmedOrder(BaseModel):
    """Immutable snapshot of a draft taken at confirmation."""

    id: str
    conversation_id: str
    lines: List[OrderLineItem]
    total: Decimal
    created_at: datetime
    estimated_minutes: Optional[int] = None

    model_config = {"frozen": True}

    def get_order_summary(self) -> str:
        return " + ".join(line.describe() for line in self.lines)


class CustomerHistory(BaseModel):
    """What we know about a customer from previous orders."""

    conversation_id: str
    name: Optional[str] = None
    order_count: int = 0
    last_order_at: Optional[datetime] = None
    last_order_summary: Optional[str] = None

    def tier(self, now: Optional[datetime] = None) -> CustomerTier:
        """Derive the customer tier from order history."""
        if self.order_count <= 0:
            return CustomerTier.NEW
        if self.order_count >= VIP_ORDER_COUNT:
            return CustomerTier.VIP
        now = now or utcnow()
        if self.last_order_at and now - ensure_aware(self.last_order_at) <= RETURNING_WINDOW:
            return CustomerTier.RETURNING
        return CustomerTier.DORMANT


class ConversationContext(BaseModel):
    """Per-turn view of a conversation."""

    conversation_id: str
    draft: Optional[OrderDraft] = None
    customer: Optional[CustomerHistory] = None
    customer_tier: CustomerTier = CustomerTier.NEW
    last_activity_at: Optional[datetime] = None
