"""Order persistence service."""
import logging
from typing import List, Optional
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy import desc, select
from sqlalchemy.orm import selectinload

from pedidobot.db.models import Order, OrderItem
from pedidobot.services.agent.state import ConfirmedOrder
from pedidobot.services.persistence.base import OrderSink, StoreUnavailableError

logger = logging.getLogger(__name__)


class OrderPersistenceService:
    """Service for persisting order data."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create_order(self, confirmed: ConfirmedOrder) -> Order:
        """Store a confirmed order with its items."""
        order = Order(
            reference=confirmed.id,
            conversation_id=confirmed.conversation_id,
            status="confirmed",
            total=confirmed.total,
            estimated_minutes=confirmed.estimated_minutes,
            created_at=confirmed.created_at.replace(tzinfo=None),
            items=[
                OrderItem(
                    menu_item_id=line.item_id,
                    item_name=line.item_name,
                    quantity=line.quantity,
                    unit_price=line.unit_price,
                    category=line.category,
                )
                for line in confirmed.lines
            ],
        )
        self.db.add(order)
        await self.db.commit()
        await self.db.refresh(order, ["items"])
        return order

    async def get_order_by_reference(self, reference: str) -> Optional[Order]:
        """Get order by reference with items."""
        result = await self.db.execute(
            select(Order)
            .where(Order.reference == reference)
            .options(selectinload(Order.items))
        )
        return result.scalar_one_or_none()

    async def list_orders(self, limit: int = 100, conversation_id: Optional[str] = None) -> List[Order]:
        """Most recent orders first."""
        query = select(Order).options(selectinload(Order.items)).order_by(desc(Order.created_at)).limit(limit)
        if conversation_id:
            query = query.where(Order.conversation_id == conversation_id)
        result = await self.db.execute(query)
        return list(result.scalars().all())


class SqlOrderSink(OrderSink):
    """OrderSink backed by the orders tables."""

    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory

    async def finalize(self, order: ConfirmedOrder) -> str:
        try:
            async with self.session_factory() as session:
                record = await OrderPersistenceService(session).create_order(order)
        except SQLAlchemyError as e:
            logger.error(f"[ORDERS] Failed to store order {order.id}: {e}", exc_info=True)
            raise StoreUnavailableError("order store unavailable") from e
        logger.info(f"[ORDERS] Stored order {record.reference} (row {record.id}) for {order.conversation_id}")
        return record.reference
