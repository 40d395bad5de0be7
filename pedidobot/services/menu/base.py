"""Menu provider interface."""
from abc import ABC, abstractmethod
from decimal import Decimal
from typing import List, Optional
from pydantic import BaseModel, field_validator, model_validator


class MenuItem(BaseModel):
    """Menu item model.

    Validation here is the only place raw menu data is normalized; the rest of
    the code works with typed values.
    """

    id: str
    name: str
    price: Decimal = Decimal("0")
    description: Optional[str] = None
    category: Optional[str] = None

    model_config = {"frozen": True}

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value):
        if isinstance(value, (int, float)):
            return str(int(value))
        return value

    @field_validator("name")
    @classmethod
    def _strip_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("menu item name cannot be empty")
        return value

    @field_validator("description", "category", mode="before")
    @classmethod
    def _blank_to_none(cls, value):
        if isinstance(value, str):
            value = value.strip()
            return value or None
        return value

    @field_validator("price", mode="before")
    @classmethod
    def _coerce_price(cls, value):
        if value is None or value == "":
            return Decimal("0")
        if isinstance(value, float):
            return Decimal(str(value))
        return value

    @field_validator("price")
    @classmethod
    def _non_negative_price(cls, value: Decimal) -> Decimal:
        if value < 0:
            raise ValueError("price must be >= 0")
        return value


class Menu(BaseModel):
    """Menu snapshot."""

    items: List[MenuItem] = []
    categories: List[str] = []

    @model_validator(mode="after")
    def _derive_categories(self) -> "Menu":
        if not self.categories:
            seen = []
            for item in self.items:
                if item.category and item.category not in seen:
                    seen.append(item.category)
            self.categories = seen
        return self

    @property
    def is_empty(self) -> bool:
        return not self.items

    def get_item(self, item_id: str) -> Optional[MenuItem]:
        """Get a menu item by id."""
        for item in self.items:
            if item.id == item_id:
                return item
        return None


class MenuProvider(ABC):
    """Abstract base class for menu providers."""

    @abstractmethod
    async def get_current_menu(self) -> Menu:
        """Get the current menu snapshot."""
        pass
