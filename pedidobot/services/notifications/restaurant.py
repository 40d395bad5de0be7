"""Restaurant staff notifications for confirmed orders."""
import logging
from abc import ABC, abstractmethod
from typing import Dict, List, Optional

from pedidobot.services.agent.state import ConfirmedOrder
from pedidobot.services.ordering.models import OrderLineItem

logger = logging.getLogger(__name__)


class NotificationSink(ABC):
    """Receives confirmed orders. Failures never affect the confirmation."""

    @abstractmethod
    async def order_confirmed(self, order: ConfirmedOrder) -> None:
        pass


def format_staff_message(order: ConfirmedOrder, restaurant_name: Optional[str] = None) -> str:
    """Staff-facing summary of an order, grouped by category."""
    groups: Dict[str, List[OrderLineItem]] = {}
    for line in order.lines:
        groups.setdefault(line.category or "Otros", []).append(line)

    lines = ["🔔 *NUEVO PEDIDO*"]
    if restaurant_name:
        lines[0] += f" - {restaurant_name}"
    lines.append(f"Pedido: #{order.id}")
    lines.append(f"Cliente: {order.conversation_id}")
    lines.append("")
    for category, items in groups.items():
        lines.append(f"*{category}*")
        for line in items:
            lines.append(f"• {line.describe()} (${line.subtotal:.2f})")
        lines.append("")
    lines.append(f"*Total: ${order.total:.2f}*")
    if order.estimated_minutes:
        lines.append(f"Tiempo estimado: {order.estimated_minutes} minutos")
    return "\n".join(lines)


class LoggingNotificationSink(NotificationSink):
    """Writes the staff message to the log. Used when no transport is wired."""

    def __init__(self, restaurant_name: Optional[str] = None):
        self.restaurant_name = restaurant_name
        self.sent: List[str] = []

    async def order_confirmed(self, order: ConfirmedOrder) -> None:
        message = format_staff_message(order, self.restaurant_name)
        self.sent.append(message)
        logger.info(f"[NOTIFY] Order {order.id} for {order.conversation_id}:\n{message}")
