"""Customer history persistence."""
import logging
from datetime import datetime
from typing import Dict, Optional
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker

from pedidobot.db.models import CustomerProfile
from pedidobot.services.agent.state import CustomerHistory
from pedidobot.services.persistence.base import CustomerStore, StoreUnavailableError

logger = logging.getLogger(__name__)


class SqlCustomerStore(CustomerStore):
    """Customer profiles keyed by conversation id."""

    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory

    async def get_profile(self, conversation_id: str) -> Optional[CustomerHistory]:
        try:
            async with self.session_factory() as session:
                result = await session.execute(
                    select(CustomerProfile).where(CustomerProfile.conversation_id == conversation_id)
                )
                profile = result.scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error(f"[CUSTOMERS] Failed to load profile {conversation_id}: {e}", exc_info=True)
            raise StoreUnavailableError("customer store unavailable") from e
        if profile is None:
            return None
        return CustomerHistory(
            conversation_id=profile.conversation_id,
            name=profile.name,
            order_count=profile.order_count,
            last_order_at=profile.last_order_at,
            last_order_summary=profile.last_order_summary,
        )

    async def record_order(self, conversation_id: str, summary: str, ordered_at: datetime) -> None:
        """Create the profile on first order, then bump its counters."""
        try:
            async with self.session_factory() as session:
                result = await session.execute(
                    select(CustomerProfile).where(CustomerProfile.conversation_id == conversation_id)
                )
                profile = result.scalar_one_or_none()
                if profile is None:
                    profile = CustomerProfile(conversation_id=conversation_id, order_count=0)
                    session.add(profile)
                profile.order_count = (profile.order_count or 0) + 1
                profile.last_order_at = ordered_at.replace(tzinfo=None)
                profile.last_order_summary = summary
                await session.commit()
        except SQLAlchemyError as e:
            logger.error(f"[CUSTOMERS] Failed to record order for {conversation_id}: {e}", exc_info=True)
            raise StoreUnavailableError("customer store unavailable") from e


class InMemoryCustomerStore(CustomerStore):
    """Customer profiles kept in a dict."""

    def __init__(self):
        self._profiles: Dict[str, CustomerHistory] = {}

    async def get_profile(self, conversation_id: str) -> Optional[CustomerHistory]:
        return self._profiles.get(conversation_id)

    async def record_order(self, conversation_id: str, summary: str, ordered_at: datetime) -> None:
        profile = self._profiles.get(conversation_id) or CustomerHistory(conversation_id=conversation_id)
        self._profiles[conversation_id] = profile.model_copy(
            update={
                "order_count": profile.order_count + 1,
                "last_order_at": ordered_at,
                "last_order_summary": summary,
            }
        )
