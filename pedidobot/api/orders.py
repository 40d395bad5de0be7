"""Order history API endpoints."""
import logging
from decimal import Decimal
from typing import List, Optional
from fastapi import APIRouter, Depends, Request, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from pedidobot.db.database import get_db
from pedidobot.services.persistence.orders import OrderPersistenceService
from pydantic import BaseModel


router = APIRouter()
logger = logging.getLogger(__name__)


class OrderItemResponse(BaseModel):
    """Order item response model."""
    menu_item_id: str
    item_name: str
    quantity: int
    unit_price: Decimal
    category: Optional[str] = None

    class Config:
        from_attributes = True


class OrderResponse(BaseModel):
    """Order response model."""
    reference: str
    conversation_id: str
    status: str
    total: Decimal
    estimated_minutes: Optional[int] = None
    created_at: str
    items: List[OrderItemResponse] = []


@router.get("/api/orders/history", response_model=List[OrderResponse])
async def get_order_history(
    request: Request,
    limit: int = Query(100, ge=1, le=500),
    conversation_id: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
):
    """Get confirmed orders, newest first."""
    logger.info(
        f"[ORDERS HISTORY] Request received - limit: {limit}, conversation: {conversation_id}, "
        f"Client: {request.client.host if request.client else 'unknown'}"
    )

    try:
        orders = await OrderPersistenceService(db).list_orders(limit=limit, conversation_id=conversation_id)
        logger.info(f"[ORDERS HISTORY] Found {len(orders)} orders in database")

        return [
            OrderResponse(
                reference=order.reference,
                conversation_id=order.conversation_id,
                status=order.status,
                total=order.total,
                estimated_minutes=order.estimated_minutes,
                created_at=order.created_at.isoformat() if order.created_at else "",
                items=[OrderItemResponse.model_validate(item) for item in order.items],
            )
            for order in orders
        ]

    except Exception as e:
        logger.error(
            f"[ORDERS HISTORY] Error fetching order history - "
            f"limit: {limit}, Error: {type(e).__name__}: {str(e)}",
            exc_info=True
        )
        raise HTTPException(status_code=500, detail=f"Error fetching order history: {str(e)}")
