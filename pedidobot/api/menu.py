"""Menu API endpoints."""
import logging
from decimal import Decimal
from fastapi import APIRouter, Depends, HTTPException, Request
from pedidobot.core.dependencies import get_menu_repository
from pedidobot.services.menu.repository import MenuRepository
from pydantic import BaseModel, ConfigDict
from typing import List, Optional


router = APIRouter()
logger = logging.getLogger(__name__)


class MenuItemResponse(BaseModel):
    """Menu item response model."""
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    description: Optional[str] = None
    price: Decimal
    category: Optional[str] = None


class MenuResponse(BaseModel):
    """Menu response model."""
    model_config = ConfigDict(from_attributes=True)

    items: List[MenuItemResponse]
    categories: List[str] = []


@router.get("/api/menu", response_model=MenuResponse)
async def get_menu(
    request: Request,
    menu_repository: MenuRepository = Depends(get_menu_repository),
):
    """Get the full menu."""
    logger.info(
        f"[MENU] Request received - Client: {request.client.host if request.client else 'unknown'}"
    )

    try:
        menu = await menu_repository.get_menu()
        logger.info(f"[MENU] Menu loaded - {len(menu.items)} items, {len(menu.categories)} categories")
        return MenuResponse(
            items=[MenuItemResponse.model_validate(item) for item in menu.items],
            categories=menu.categories,
        )

    except Exception as e:
        logger.error(
            f"[MENU] Error fetching menu - Error: {type(e).__name__}: {str(e)}",
            exc_info=True
        )
        raise HTTPException(status_code=500, detail=f"Error fetching menu: {str(e)}")
