"""Dialogue engine: one inbound message in, one response descriptor out."""
import asyncio
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Awaitable, Callable, Dict, List, Mapping, Optional, Set

from pydantic import BaseModel

from pedidobot.services.agent.draft_machine import NotConfirmableError, OrderDraftStateMachine
from pedidobot.services.agent.fallback import FallbackClassifier
from pedidobot.services.agent.intents import DialogueIntentClassifier, IntentMatch
from pedidobot.services.agent.stages import CustomerTier, DraftStage, Intent, ModificationAction
from pedidobot.services.agent.state import ConfirmedOrder, ConversationContext, CustomerHistory, OrderDraft, utcnow
from pedidobot.services.conversation import responses
from pedidobot.services.conversation.locks import KeyedLock
from pedidobot.services.menu.base import Menu, MenuItem
from pedidobot.services.menu.repository import MenuRepository, format_menu
from pedidobot.services.notifications.restaurant import NotificationSink
from pedidobot.services.ordering.clarification import ClarificationPolicy, DecisionKind
from pedidobot.services.ordering.combiner import MIN_LINE_CONFIDENCE, QuantityProductCombiner, is_multi_flavor
from pedidobot.services.ordering.matcher import ProductMatcher
from pedidobot.services.ordering.models import OrderLineItem, ProductCandidate
from pedidobot.services.ordering.quantities import QuantityLexicon
from pedidobot.services.persistence.base import CustomerStore, DraftStore, OrderSink, StoreUnavailableError

logger = logging.getLogger(__name__)

# Intents that need the current menu
MENU_INTENTS = {Intent.ORDER, Intent.REMOVE, Intent.SHOW_MENU, Intent.CONFIRM, Intent.PENDING_ACCEPT, Intent.STATUS}


class MessageResponse(BaseModel):
    """What happened in a turn, for the transport layer to send."""

    intent: Intent
    response_text: str
    lines: Optional[List[OrderLineItem]] = None
    confirmed_order_id: Optional[str] = None
    total: Optional[Decimal] = None
    options: List[str] = []


@dataclass
class Turn:
    """Everything a handler needs for one message."""

    conversation_id: str
    text: str
    now: datetime
    machine: OrderDraftStateMachine
    match: IntentMatch
    menu: Optional[Menu] = None
    stored: Optional[OrderDraft] = None  # Draft as loaded, before this turn
    persisted: bool = False


class DialogueEngine:
    """Runs the classify, extract, combine, clarify and apply pipeline.

    Messages for the same conversation are processed one at a time; the draft
    is loaded once and written once per turn.
    """

    def __init__(
        self,
        menu_repository: MenuRepository,
        draft_store: DraftStore,
        order_sink: OrderSink,
        customer_store: Optional[CustomerStore] = None,
        notification_sink: Optional[NotificationSink] = None,
        fallback_classifier: Optional[FallbackClassifier] = None,
        intent_classifier: Optional[DialogueIntentClassifier] = None,
        restaurant_name: str = "Restaurante",
        restaurant_phone: Optional[str] = None,
        idle_timeout: timedelta = timedelta(minutes=15),
        fallback_timeout: float = 10.0,
        preparation_times: Optional[Mapping[str, int]] = None,
        default_preparation_minutes: int = 20,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.menu_repository = menu_repository
        self.draft_store = draft_store
        self.order_sink = order_sink
        self.customer_store = customer_store
        self.notification_sink = notification_sink
        self.fallback_classifier = fallback_classifier
        self.intent_classifier = intent_classifier or DialogueIntentClassifier()
        self.lexicon = QuantityLexicon()
        self.matcher = ProductMatcher()
        self.combiner = QuantityProductCombiner(self.lexicon)
        self.policy = ClarificationPolicy()
        self.restaurant_name = restaurant_name
        self.restaurant_phone = restaurant_phone
        self.idle_timeout = idle_timeout
        self.fallback_timeout = fallback_timeout
        self.preparation_times = dict(preparation_times or {})
        self.default_preparation_minutes = default_preparation_minutes
        self.clock = clock

        self._locks = KeyedLock()
        self._background: Set[asyncio.Task] = set()
        self._handlers: Dict[Intent, Callable[[Turn], Awaitable[MessageResponse]]] = {
            Intent.OFF_TOPIC: self._handle_off_topic,
            Intent.ESCALATE: self._handle_escalate,
            Intent.GREETING: self._handle_greeting,
            Intent.PENDING_ACCEPT: self._handle_pending_accept,
            Intent.PENDING_REJECT: self._handle_pending_reject,
            Intent.CONFIRM: self._handle_confirm,
            Intent.NO_ACTIVE_ORDER: self._handle_no_active_order,
            Intent.CANCEL: self._handle_cancel,
            Intent.STATUS: self._handle_status,
            Intent.SHOW_MENU: self._handle_menu,
            Intent.REMOVE: self._handle_remove,
            Intent.ORDER: self._handle_order,
        }

    async def process_message(self, conversation_id: str, raw_text: str) -> MessageResponse:
        """Process one inbound message and return the response descriptor."""
        async with self._locks.acquire(conversation_id):
            try:
                return await self._process(conversation_id, raw_text or "")
            except StoreUnavailableError as e:
                logger.error(
                    f"[ENGINE] Store unavailable - Conversation: {conversation_id}, Error: {e}",
                    exc_info=True,
                )
                return MessageResponse(intent=Intent.ERROR, response_text=responses.TECHNICAL_ERROR)

    async def wait_for_notifications(self) -> None:
        """Wait for pending background notifications (tests and shutdown)."""
        if self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    async def _process(self, conversation_id: str, raw_text: str) -> MessageResponse:
        now = self.clock()
        text = raw_text.strip()

        stored = await self.draft_store.get(conversation_id)
        if stored is not None and OrderDraftStateMachine(stored).is_expired(now, self.idle_timeout):
            logger.info(f"[ENGINE] Draft for {conversation_id} idle for over {self.idle_timeout}, discarding")
            machine = OrderDraftStateMachine(None, conversation_id)
        else:
            machine = OrderDraftStateMachine(stored, conversation_id)

        match = self.intent_classifier.classify(text, machine.draft)
        if match.discard_pending:
            logger.info(f"[ENGINE] Staged {machine.draft.pending_action} ignored, dropping it")
            machine.reject_pending()

        logger.info("=" * 80)
        logger.info(f"[ENGINE INPUT] Conversation: {conversation_id}")
        logger.info(f"[ENGINE INPUT] Message: '{text}'")
        logger.info(f"[ENGINE INPUT] Intent: {match.intent} (rule: {match.rule}, action: {match.action})")
        logger.info(f"[ENGINE INPUT] Draft: {[line.describe() for line in machine.draft.lines]}")
        logger.info("=" * 80)

        turn = Turn(conversation_id=conversation_id, text=text, now=now, machine=machine, match=match, stored=stored)
        if match.intent in MENU_INTENTS:
            turn.menu = await self.menu_repository.get_menu()
            if turn.menu.is_empty:
                logger.warning("[ENGINE] Menu is empty, cannot take orders")
                await self._persist(turn)
                return MessageResponse(
                    intent=Intent.NO_MENU,
                    response_text=responses.menu_unavailable(self.restaurant_name),
                )
            self._drop_unavailable_lines(turn)

        response = await self._handlers[match.intent](turn)
        if not turn.persisted:
            await self._persist(turn)

        logger.info(f"[ENGINE OUTPUT] Intent: {response.intent}, Draft stage: {machine.state}")
        return response

    async def _persist(self, turn: Turn) -> None:
        """Single write per turn: save the working draft, or clear it."""
        if turn.machine.state == DraftStage.EMPTY:
            if turn.stored is not None:
                await self.draft_store.clear(turn.conversation_id)
        else:
            turn.machine.touch(turn.now)
            await self.draft_store.save(turn.conversation_id, turn.machine.draft)
        turn.persisted = True

    async def _restore_draft(self, turn: Turn) -> None:
        """Put back the draft as it was before the turn."""
        try:
            if turn.stored is None:
                await self.draft_store.clear(turn.conversation_id)
            else:
                await self.draft_store.save(turn.conversation_id, turn.stored)
        except StoreUnavailableError as e:
            logger.error(f"[ENGINE] Could not restore draft for {turn.conversation_id}: {e}")

    def _drop_unavailable_lines(self, turn: Turn) -> None:
        """Draft lines must always point at items on the current menu."""
        draft = turn.machine.draft
        gone = [line for line in draft.lines if turn.menu.get_item(line.item_id) is None]
        for line in gone:
            logger.warning(f"[ENGINE] '{line.item_name}' is no longer on the menu, removing it from the draft")
            turn.machine.remove(line.item_id)
        if draft.has_pending and any(turn.menu.get_item(line.item_id) is None for line in draft.proposed_lines):
            turn.machine.reject_pending()

    def _reply(self, turn: Turn, intent: Intent, text: str, **extra) -> MessageResponse:
        draft = turn.machine.draft
        extra.setdefault("lines", [line.model_copy() for line in draft.lines] if draft.has_lines else None)
        extra.setdefault("total", draft.total if draft.has_lines else None)
        return MessageResponse(intent=intent, response_text=text, **extra)

    async def _handle_off_topic(self, turn: Turn) -> MessageResponse:
        return self._reply(turn, Intent.OFF_TOPIC, responses.OFF_TOPIC)

    async def _handle_escalate(self, turn: Turn) -> MessageResponse:
        logger.warning(f"[ENGINE] Escalation requested - Conversation: {turn.conversation_id}, Message: '{turn.text}'")
        return self._reply(turn, Intent.ESCALATE, responses.escalate(self.restaurant_name, self.restaurant_phone))

    async def _handle_greeting(self, turn: Turn) -> MessageResponse:
        # A greeting always starts a fresh session
        turn.machine.cancel()
        customer = await self._load_customer(turn.conversation_id)
        tier = customer.tier(turn.now) if customer else CustomerTier.NEW
        logger.info(f"[ENGINE] Greeting {turn.conversation_id} as {tier} customer")
        return self._reply(turn, Intent.GREETING, responses.greeting(self.restaurant_name, tier, customer))

    async def _handle_pending_accept(self, turn: Turn) -> MessageResponse:
        if not turn.machine.draft.has_pending:
            # The proposal referenced items that left the menu
            return self._reply(turn, Intent.PENDING_REJECT, responses.pending_rejected(turn.machine.draft))
        action = turn.machine.accept_pending()
        return self._reply(turn, Intent.PENDING_ACCEPT, responses.pending_applied(action, turn.machine.draft))

    async def _handle_pending_reject(self, turn: Turn) -> MessageResponse:
        turn.machine.reject_pending()
        return self._reply(turn, Intent.PENDING_REJECT, responses.pending_rejected(turn.machine.draft))

    async def _handle_confirm(self, turn: Turn) -> MessageResponse:
        lines = list(turn.machine.draft.lines)
        try:
            order = turn.machine.confirm(
                order_id=uuid.uuid4().hex[:10].upper(),
                now=turn.now,
                estimated_minutes=self._estimate_minutes(lines),
            )
        except NotConfirmableError as e:
            logger.info(f"[ENGINE] Draft not confirmable ({e.reason}) - Conversation: {turn.conversation_id}")
            return self._reply(
                turn,
                Intent.CLARIFICATION,
                responses.not_confirmable(e),
                options=[line.item_name for line in e.lines],
            )

        # Clear the draft first: a failure here must not leave a stored order behind
        await self._persist(turn)
        try:
            order_id = await self.order_sink.finalize(order)
        except Exception:
            logger.error(f"[ENGINE] Order for {turn.conversation_id} not stored, restoring draft")
            await self._restore_draft(turn)
            raise
        logger.info(f"[ENGINE] Order {order_id} confirmed - Conversation: {turn.conversation_id}, Total: {order.total}")
        await self._record_customer_order(order)
        self._notify(order)
        return MessageResponse(
            intent=Intent.CONFIRM,
            response_text=responses.order_confirmed(order),
            lines=list(order.lines),
            confirmed_order_id=order_id,
            total=order.total,
        )

    async def _handle_no_active_order(self, turn: Turn) -> MessageResponse:
        requested = Intent.CANCEL if turn.match.rule == "cancel" else Intent.CONFIRM
        return self._reply(turn, Intent.NO_ACTIVE_ORDER, responses.no_active_order(requested))

    async def _handle_cancel(self, turn: Turn) -> MessageResponse:
        turn.machine.cancel()
        return self._reply(turn, Intent.CANCEL, responses.cancelled())

    async def _handle_status(self, turn: Turn) -> MessageResponse:
        return self._reply(turn, Intent.STATUS, responses.status(turn.machine.draft))

    async def _handle_menu(self, turn: Turn) -> MessageResponse:
        return self._reply(
            turn,
            Intent.SHOW_MENU,
            responses.menu(format_menu(turn.menu)),
            options=[item.name for item in turn.menu.items],
        )

    async def _handle_remove(self, turn: Turn) -> MessageResponse:
        machine = turn.machine
        if not machine.draft.has_lines:
            return self._reply(turn, Intent.REMOVE, responses.nothing_to_remove())

        self.matcher.ensure_index(turn.menu)
        candidates = self.matcher.match(turn.text, item_ids=[line.item_id for line in machine.draft.lines])
        decision = self.policy.review_remove(
            machine.draft,
            candidates,
            self.lexicon.extract_quantities(turn.text),
            multi_flavor=is_multi_flavor(turn.text),
        )

        if decision.kind == DecisionKind.ACCEPT:
            removed = [machine.remove(line.item_id, line.quantity) for line in decision.lines]
            removed = [line for line in removed if line is not None]
            return self._reply(turn, Intent.REMOVE, responses.removed(removed, machine.draft))
        if decision.kind == DecisionKind.STAGE:
            machine.propose_remove(decision.lines)
            return self._reply(
                turn,
                Intent.PENDING_CONFIRMATION,
                decision.question,
                options=[line.item_name for line in decision.lines],
            )
        return self._reply(turn, Intent.CLARIFICATION, decision.question, options=decision.options)

    async def _handle_order(self, turn: Turn) -> MessageResponse:
        machine = turn.machine
        self.matcher.ensure_index(turn.menu)

        quantities = self.lexicon.extract_quantities(turn.text)
        candidates = self.matcher.match(turn.text)
        decision = self.policy.review_candidates(candidates, multi_flavor=is_multi_flavor(turn.text))
        if decision.kind == DecisionKind.ASK:
            return self._reply(turn, Intent.CLARIFICATION, decision.question, options=decision.options)

        lines = self.combiner.combine(quantities, decision.candidates, turn.text, draft=machine.draft, menu=turn.menu)
        if not lines:
            lines = await self._fallback_lines(turn)
        if not lines:
            suggestions = self.policy.suggest_alternatives(turn.text, turn.menu)
            return self._reply(
                turn,
                Intent.NO_MATCH,
                responses.no_match(suggestions),
                options=[item.name for item in suggestions],
            )

        if turn.match.action == ModificationAction.REPLACE_ALL:
            staged = self.policy.review_replace(lines)
            machine.propose_replace(staged.lines)
            return self._reply(
                turn,
                Intent.PENDING_CONFIRMATION,
                staged.question,
                options=[line.item_name for line in staged.lines],
            )

        touched = machine.add_or_update(lines, turn.match.action)
        maybe = self._missed_items(turn, decision.candidates, lines)
        return self._reply(
            turn,
            Intent.ORDER,
            responses.items_added(touched, machine.draft, maybe),
            options=[item.name for item in maybe],
        )

    def _missed_items(
        self, turn: Turn, candidates: List[ProductCandidate], lines: List[OrderLineItem]
    ) -> List[MenuItem]:
        """Menu items hinted at by words the accepted products do not cover."""
        if not candidates:
            return []
        leftovers = self.matcher.unmatched_words(turn.text, candidates)
        if not leftovers:
            return []
        added = {line.item_id for line in lines}
        maybe = [
            item
            for item in self.policy.suggest_alternatives(" ".join(leftovers), turn.menu, popular_fallback=False)
            if item.id not in added
        ]
        if maybe:
            logger.info(f"[ENGINE] Words {leftovers} not matched, suggesting {[item.name for item in maybe]}")
        return maybe

    async def _fallback_lines(self, turn: Turn) -> List[OrderLineItem]:
        """Ask the fallback classifier, bounded by a timeout. Failures mean no lines."""
        if self.fallback_classifier is None:
            return []
        try:
            customer = await self._load_customer(turn.conversation_id)
        except StoreUnavailableError as e:
            logger.warning(f"[FALLBACK] Customer history unavailable for {turn.conversation_id}: {e}")
            customer = None
        context = ConversationContext(
            conversation_id=turn.conversation_id,
            draft=turn.machine.draft,
            customer=customer,
            customer_tier=customer.tier(turn.now) if customer else CustomerTier.NEW,
            last_activity_at=turn.now,
        )
        try:
            result = await asyncio.wait_for(
                self.fallback_classifier.classify(turn.text, turn.menu, context),
                timeout=self.fallback_timeout,
            )
        except asyncio.TimeoutError:
            logger.warning(
                f"[FALLBACK] Timed out after {self.fallback_timeout}s - Conversation: {turn.conversation_id}"
            )
            return []
        except Exception as e:
            logger.warning(
                f"[FALLBACK] Classifier failed - Conversation: {turn.conversation_id}, "
                f"Error: {type(e).__name__}: {e}",
                exc_info=True,
            )
            return []

        lines = [
            OrderLineItem.from_menu_item(candidate.item, quantity.value, confidence=min(quantity.confidence, candidate.confidence))
            for quantity, candidate in result.to_pairs(turn.menu)
        ]
        lines = [line for line in lines if line.confidence > MIN_LINE_CONFIDENCE]
        logger.info(f"[FALLBACK] Extracted {[line.describe() for line in lines]}")
        return lines

    def _estimate_minutes(self, lines: List[OrderLineItem]) -> Optional[int]:
        """Slowest category wins."""
        if not lines:
            return None
        return max(
            self.preparation_times.get(line.category or "", self.default_preparation_minutes) for line in lines
        )

    async def _load_customer(self, conversation_id: str) -> Optional[CustomerHistory]:
        if self.customer_store is None:
            return None
        return await self.customer_store.get_profile(conversation_id)

    async def _record_customer_order(self, order: ConfirmedOrder) -> None:
        """Customer history is best effort once the order itself is stored."""
        if self.customer_store is None:
            return
        try:
            await self.customer_store.record_order(order.conversation_id, order.get_order_summary(), order.created_at)
        except StoreUnavailableError as e:
            logger.warning(f"[ENGINE] Could not update customer history for {order.conversation_id}: {e}")

    def _notify(self, order: ConfirmedOrder) -> None:
        if self.notification_sink is None:
            return
        task = asyncio.create_task(self._send_notification(order))
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def _send_notification(self, order: ConfirmedOrder) -> None:
        try:
            await self.notification_sink.order_confirmed(order)
        except Exception as e:
            logger.error(
                f"[NOTIFY] Failed to notify restaurant about order {order.id}: {type(e).__name__}: {e}",
                exc_info=True,
            )
