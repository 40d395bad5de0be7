"""Storage interfaces used by the dialogue engine."""
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional

from pedidobot.services.agent.state import ConfirmedOrder, CustomerHistory, OrderDraft


class StoreUnavailableError(Exception):
    """A backing store (database, menu source) could not be reached."""


class DraftStore(ABC):
    """Keyed storage for in-progress drafts."""

    @abstractmethod
    async def get(self, conversation_id: str) -> Optional[OrderDraft]:
        """Load the draft for a conversation, if any."""
        pass

    @abstractmethod
    async def save(self, conversation_id: str, draft: OrderDraft) -> None:
        """Replace the stored draft in a single write."""
        pass

    @abstractmethod
    async def clear(self, conversation_id: str) -> None:
        """Delete the draft for a conversation."""
        pass


class OrderSink(ABC):
    """Destination for confirmed orders."""

    @abstractmethod
    async def finalize(self, order: ConfirmedOrder) -> str:
        """Store a confirmed order and return its id."""
        pass


class CustomerStore(ABC):
    """Customer history lookup."""

    @abstractmethod
    async def get_profile(self, conversation_id: str) -> Optional[CustomerHistory]:
        pass

    @abstractmethod
    async def record_order(self, conversation_id: str, summary: str, ordered_at: datetime) -> None:
        """Bump order count and remember the latest order."""
        pass
