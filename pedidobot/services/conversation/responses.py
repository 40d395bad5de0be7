"""Customer-facing reply texts (rioplatense Spanish)."""
from typing import Optional, Sequence

from pedidobot.services.agent.draft_machine import NotConfirmableError, NotConfirmableReason
from pedidobot.services.agent.stages import CustomerTier, Intent, PendingAction
from pedidobot.services.agent.state import ConfirmedOrder, CustomerHistory, OrderDraft
from pedidobot.services.menu.base import MenuItem
from pedidobot.services.ordering.models import OrderLineItem

TECHNICAL_ERROR = "Disculpá, tuve un problema técnico. ¿Podés intentar de nuevo en un momento? 🔧"

OFF_TOPIC = "Disculpá, solo puedo ayudarte con pedidos del restaurante. ¿Qué te gustaría ordenar?"

ORDER_EXAMPLE = 'Podés decirme algo como: "2 empanadas de carne" o "media docena de pollo".'


def greeting(restaurant_name: str, tier: CustomerTier, customer: Optional[CustomerHistory] = None) -> str:
    if tier == CustomerTier.VIP:
        name = f" {customer.name}" if customer and customer.name else ""
        usual = f"\n🔄 Lo de siempre: {customer.last_order_summary}" if customer and customer.last_order_summary else ""
        return f"¡Hola{name}! 🌟 Bienvenido de nuevo a *{restaurant_name}*{usual}\n\n¿Qué te provoca hoy?"
    if tier == CustomerTier.RETURNING:
        last = f"\n🔄 Tu último pedido: {customer.last_order_summary}" if customer and customer.last_order_summary else ""
        return f"¡Hola de nuevo! 😊 Bienvenido a *{restaurant_name}*{last}\n\n¿Qué vas a pedir hoy?"
    if tier == CustomerTier.DORMANT:
        return f"¡Hola! ¡Qué bueno verte otra vez por *{restaurant_name}*! ¿Qué te gustaría pedir hoy?"
    return (
        f"¡Hola! 👋 Bienvenido a *{restaurant_name}*\n\n"
        f"Decime qué querés y te ayudo a armar el pedido. Si querés ver el menú, escribí *menú*."
    )


def escalate(restaurant_name: str, phone: Optional[str] = None) -> str:
    contact = f" al {phone}" if phone else ""
    return f"Entendido, le aviso a alguien de *{restaurant_name}* para que te responda. También podés llamarnos{contact}."


def no_active_order(requested: Intent) -> str:
    verb = "cancelar" if requested == Intent.CANCEL else "confirmar"
    return f"No tenés ningún pedido activo para {verb}. ¿Qué te gustaría pedir?"


def cancelled() -> str:
    return "❌ Pedido cancelado. Cuando quieras, arrancamos uno nuevo."


def order_confirmed(order: ConfirmedOrder) -> str:
    lines = "\n".join(f"• {line.describe()} (${line.subtotal:.2f})" for line in order.lines)
    text = f"✅ ¡Pedido confirmado! #{order.id}\n\n{lines}\n\n*Total: ${order.total:.2f}*"
    if order.estimated_minutes:
        text += f"\n⏱️ Tiempo de preparación: {order.estimated_minutes} minutos"
    return text + "\n\n¡Gracias por tu pedido!"


def not_confirmable(error: NotConfirmableError) -> str:
    if error.reason == NotConfirmableReason.UNQUANTIFIED:
        names = ", ".join(line.item_name for line in error.lines)
        return f"Antes de confirmar decime cuántas querés de: {names}."
    return "Tu pedido está vacío. ¿Qué te gustaría pedir?"


def status(draft: Optional[OrderDraft]) -> str:
    if draft is None or not draft.has_lines:
        return "Todavía no tenés nada en tu pedido. ¿Qué te gustaría pedir?"
    return (
        f"📋 Tu pedido actual:\n{draft.get_order_summary()}\n\n*Total: ${draft.total:.2f}*\n\n"
        "Escribí *confirmar* para cerrarlo o seguí agregando."
    )


def menu(menu_text: str) -> str:
    return f"📋 *Nuestro menú*\n\n{menu_text}\n\n¿Qué te gustaría pedir?"


def menu_unavailable(restaurant_name: str) -> str:
    return f"El menú no está disponible en este momento. Por favor contactá a *{restaurant_name}* directamente."


def items_added(touched: Sequence[OrderLineItem], draft: OrderDraft, maybe: Sequence[MenuItem] = ()) -> str:
    added = "\n".join(f"• {line.describe()}" for line in touched)
    text = f"🛒 Anotado:\n{added}\n\n{status_line(draft)}"
    if maybe:
        options = "\n".join(f"• {item.name} (${item.price:.2f})" for item in maybe)
        text += f"\n\nNo pude anotar todo lo que pediste. ¿También querías alguno de estos?\n{options}"
    pending = [line for line in draft.lines if line.quantity_pending]
    if pending:
        return text + "\n\n" + quantity_needed(pending)
    return text + "\n\n¿Algo más? Si está todo, escribí *confirmar*."


def quantity_needed(lines: Sequence[OrderLineItem]) -> str:
    names = ", ".join(line.item_name for line in lines)
    return f"¿Cuántas querés de {names}? (por ejemplo: 3, media docena, una docena)"


def status_line(draft: OrderDraft) -> str:
    return f"Total parcial: ${draft.total:.2f}"


def removed(removed_lines: Sequence[OrderLineItem], draft: OrderDraft) -> str:
    gone = ", ".join(line.describe() for line in removed_lines)
    if not draft.has_lines:
        return f"Listo, saqué {gone}. Tu pedido quedó vacío. ¿Querés pedir otra cosa?"
    return f"Listo, saqué {gone}.\n\n📋 Tu pedido:\n{draft.get_order_summary()}\n\n{status_line(draft)}"


def nothing_to_remove() -> str:
    return "Todavía no tenés nada en tu pedido para quitar."


def pending_applied(action: PendingAction, draft: OrderDraft) -> str:
    if action == PendingAction.REPLACE_PROPOSED:
        return f"Listo, actualicé tu pedido:\n{draft.get_order_summary()}\n\n{status_line(draft)}"
    if not draft.has_lines:
        return "Listo, lo saqué. Tu pedido quedó vacío. ¿Querés pedir otra cosa?"
    return f"Listo, lo saqué.\n\n📋 Tu pedido:\n{draft.get_order_summary()}\n\n{status_line(draft)}"


def pending_rejected(draft: OrderDraft) -> str:
    if not draft.has_lines:
        return "Ok, no cambio nada. ¿Qué te gustaría pedir?"
    return f"Ok, dejo tu pedido como estaba:\n{draft.get_order_summary()}"


def no_match(suggestions: Sequence[MenuItem]) -> str:
    text = f"No entendí bien tu pedido. {ORDER_EXAMPLE}"
    if suggestions:
        options = "\n".join(f"• {item.name} (${item.price:.2f})" for item in suggestions)
        text += f"\n\nQuizás te interese:\n{options}"
    return text + "\n\nEscribí *menú* para ver todo."
