"""Draft storage implementations."""
import logging
from typing import Dict, Optional
from sqlalchemy import delete
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from pedidobot.db.models import OrderDraftRecord
from pedidobot.services.agent.state import OrderDraft, utcnow
from pedidobot.services.persistence.base import DraftStore, StoreUnavailableError

logger = logging.getLogger(__name__)


class InMemoryDraftStore(DraftStore):
    """Process-local draft storage. Each instance has its own drafts."""

    def __init__(self):
        self._drafts: Dict[str, OrderDraft] = {}

    async def get(self, conversation_id: str) -> Optional[OrderDraft]:
        draft = self._drafts.get(conversation_id)
        return draft.model_copy(deep=True) if draft else None

    async def save(self, conversation_id: str, draft: OrderDraft) -> None:
        self._drafts[conversation_id] = draft.model_copy(deep=True)

    async def clear(self, conversation_id: str) -> None:
        self._drafts.pop(conversation_id, None)


class SqlDraftStore(DraftStore):
    """Stores each draft as one JSON row."""

    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory

    async def get(self, conversation_id: str) -> Optional[OrderDraft]:
        try:
            async with self.session_factory() as session:
                record = await session.get(OrderDraftRecord, conversation_id)
                if record is None:
                    return None
                return OrderDraft.model_validate(record.payload)
        except SQLAlchemyError as e:
            logger.error(f"[DRAFTS] Failed to load draft for {conversation_id}: {e}", exc_info=True)
            raise StoreUnavailableError("draft store unavailable") from e

    async def save(self, conversation_id: str, draft: OrderDraft) -> None:
        payload = draft.model_dump(mode="json")
        try:
            async with self.session_factory() as session:
                await self._upsert(session, conversation_id, payload)
                await session.commit()
        except SQLAlchemyError as e:
            logger.error(f"[DRAFTS] Failed to save draft for {conversation_id}: {e}", exc_info=True)
            raise StoreUnavailableError("draft store unavailable") from e

    async def clear(self, conversation_id: str) -> None:
        try:
            async with self.session_factory() as session:
                await session.execute(
                    delete(OrderDraftRecord).where(OrderDraftRecord.conversation_id == conversation_id)
                )
                await session.commit()
        except SQLAlchemyError as e:
            logger.error(f"[DRAFTS] Failed to clear draft for {conversation_id}: {e}", exc_info=True)
            raise StoreUnavailableError("draft store unavailable") from e

    @staticmethod
    async def _upsert(session: AsyncSession, conversation_id: str, payload: dict) -> None:
        record = await session.get(OrderDraftRecord, conversation_id)
        if record is None:
            session.add(OrderDraftRecord(conversation_id=conversation_id, payload=payload))
        else:
            record.payload = payload
            record.updated_at = utcnow().replace(tzinfo=None)
