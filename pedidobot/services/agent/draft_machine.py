"""Lifecycle of a customer's in-progress order."""
import logging
from datetime import datetime, timedelta
from enum import Enum
from typing import List, Optional, Sequence

from pedidobot.services.agent.stages import DraftStage, ModificationAction, PendingAction
from pedidobot.services.agent.state import ConfirmedOrder, OrderDraft, ensure_aware, utcnow
from pedidobot.services.ordering.models import OrderLineItem

logger = logging.getLogger(__name__)


class NotConfirmableReason(str, Enum):
    EMPTY = "empty"
    UNQUANTIFIED = "unquantified"

    def __str__(self) -> str:
        return self.value


class NotConfirmableError(Exception):
    """The draft cannot be confirmed in its current state."""

    def __init__(self, reason: NotConfirmableReason, lines: Optional[List[OrderLineItem]] = None):
        self.reason = reason
        self.lines = lines or []
        super().__init__(f"draft not confirmable: {reason}")


class OrderDraftStateMachine:
    """Applies order operations to a working copy of a draft.

    The caller's draft object is never touched. Read ``draft`` back and store
    it once the whole turn has succeeded.
    """

    def __init__(self, draft: Optional[OrderDraft], conversation_id: Optional[str] = None):
        if draft is None:
            if conversation_id is None:
                raise ValueError("conversation_id is required when there is no draft")
            draft = OrderDraft(conversation_id=conversation_id)
        self.draft = draft.model_copy(deep=True)
        self.last_stage: Optional[DraftStage] = None

    @property
    def state(self) -> DraftStage:
        return DraftStage.ACCUMULATING if self.draft.has_lines or self.draft.has_pending else DraftStage.EMPTY

    def touch(self, now: Optional[datetime] = None) -> None:
        self.draft.last_activity_at = now or utcnow()

    def is_expired(self, now: datetime, timeout: timedelta) -> bool:
        """Whether the conversation has been idle for longer than ``timeout``."""
        return now - ensure_aware(self.draft.last_activity_at) > timeout

    def add_or_update(
        self,
        lines: Sequence[OrderLineItem],
        action: ModificationAction = ModificationAction.ADD_ITEM,
    ) -> List[OrderLineItem]:
        """Apply lines to the draft and return the resulting draft lines they touched.

        ADD_ITEM sums quantities into existing lines. CHANGE_QUANTITY sets them.
        REPLACE_ALL makes the incoming lines the whole order.
        """
        if action == ModificationAction.REPLACE_ALL:
            self.draft.lines = []
        touched = []
        for incoming in lines:
            existing = self.draft.get_line(incoming.item_id)
            if existing is None:
                existing = incoming.model_copy()
                self.draft.lines.append(existing)
            elif action == ModificationAction.CHANGE_QUANTITY or existing.quantity_pending:
                existing.quantity = incoming.quantity
                existing.quantity_pending = incoming.quantity_pending
            else:
                existing.quantity += incoming.quantity
            if incoming.confidence is not None:
                existing.confidence = (
                    incoming.confidence if existing.confidence is None else min(existing.confidence, incoming.confidence)
                )
            self.draft.last_added_item_id = incoming.item_id
            if all(existing is not t for t in touched):
                touched.append(existing)
        logger.debug(f"[DRAFT] {action}: {[line.describe() for line in touched]}")
        return touched

    def remove(self, item_id: str, quantity: Optional[int] = None) -> Optional[OrderLineItem]:
        """Remove a line, or part of it. Returns what was removed."""
        line = self.draft.get_line(item_id)
        if line is None:
            return None
        if quantity is None or quantity >= line.quantity:
            self.draft.lines = [kept for kept in self.draft.lines if kept.item_id != item_id]
            if self.draft.last_added_item_id == item_id:
                self.draft.last_added_item_id = self.draft.lines[-1].item_id if self.draft.lines else None
            return line
        line.quantity -= quantity
        return line.model_copy(update={"quantity": quantity})

    def propose_replace(self, lines: Sequence[OrderLineItem]) -> None:
        self._stage(PendingAction.REPLACE_PROPOSED, lines)

    def propose_remove(self, lines: Sequence[OrderLineItem]) -> None:
        self._stage(PendingAction.REMOVE_PROPOSED, lines)

    def _stage(self, action: PendingAction, lines: Sequence[OrderLineItem]) -> None:
        if not lines:
            raise ValueError("cannot stage an empty proposal")
        self.draft.pending_action = action
        self.draft.proposed_lines = [line.model_copy() for line in lines]

    def accept_pending(self) -> PendingAction:
        """Apply the staged proposal."""
        action = self.draft.pending_action
        proposed = self.draft.proposed_lines
        self.reject_pending()
        if action == PendingAction.REPLACE_PROPOSED:
            self.add_or_update(proposed, ModificationAction.REPLACE_ALL)
        elif action == PendingAction.REMOVE_PROPOSED:
            for line in proposed:
                self.remove(line.item_id, line.quantity)
        return action

    def reject_pending(self) -> None:
        """Drop the staged proposal, leaving the lines alone."""
        self.draft.pending_action = PendingAction.NONE
        self.draft.proposed_lines = []

    def confirm(
        self,
        order_id: str,
        now: Optional[datetime] = None,
        estimated_minutes: Optional[int] = None,
    ) -> ConfirmedOrder:
        """Snapshot the draft into a ConfirmedOrder and reset to EMPTY."""
        if not self.draft.lines:
            raise NotConfirmableError(NotConfirmableReason.EMPTY)
        unquantified = [line for line in self.draft.lines if line.quantity_pending]
        if unquantified:
            raise NotConfirmableError(NotConfirmableReason.UNQUANTIFIED, unquantified)

        order = ConfirmedOrder(
            id=order_id,
            conversation_id=self.draft.conversation_id,
            lines=[line.model_copy() for line in self.draft.lines],
            total=self.draft.total,
            created_at=now or utcnow(),
            estimated_minutes=estimated_minutes,
        )
        self._reset(DraftStage.CONFIRMED)
        return order

    def cancel(self) -> None:
        self._reset(DraftStage.CANCELLED)

    def _reset(self, terminal: DraftStage) -> None:
        self.draft = OrderDraft(conversation_id=self.draft.conversation_id)
        self.last_stage = terminal
        logger.info(f"[DRAFT] Conversation {self.draft.conversation_id} -> {terminal}, draft reset")
