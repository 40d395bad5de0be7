"""Menu repository."""
import logging
import time
from typing import Callable, Optional

from pedidobot.services.menu.base import Menu, MenuItem, MenuProvider
from pedidobot.services.persistence.base import StoreUnavailableError

logger = logging.getLogger(__name__)


class MenuRepository:
    """Repository for menu operations, with a short-lived cache."""

    def __init__(
        self,
        provider: MenuProvider,
        ttl_seconds: float = 60,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.provider = provider
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._cached: Optional[Menu] = None
        self._fetched_at = 0.0

    async def get_menu(self) -> Menu:
        """Get the current menu, refreshing it when the cache is stale."""
        now = self._clock()
        if self._cached is not None and now - self._fetched_at < self.ttl_seconds:
            return self._cached
        try:
            menu = await self.provider.get_current_menu()
        except StoreUnavailableError:
            raise
        except Exception as e:
            logger.error(f"[MENU] Menu provider failed: {type(e).__name__}: {e}", exc_info=True)
            raise StoreUnavailableError("menu provider failed") from e
        self._cached = menu
        self._fetched_at = now
        logger.debug(f"[MENU] Menu refreshed - {len(menu.items)} items")
        return menu

    def invalidate(self) -> None:
        """Drop the cached menu."""
        self._cached = None

    async def get_item(self, item_id: str) -> Optional[MenuItem]:
        """Get item by id."""
        menu = await self.get_menu()
        return menu.get_item(item_id)

    async def get_menu_text(self) -> str:
        """Get menu as text, grouped by category."""
        menu = await self.get_menu()
        return format_menu(menu)


def format_menu(menu: Menu) -> str:
    """Render a menu grouped by category."""
    lines = []
    uncategorized = [item for item in menu.items if not item.category]
    for category in menu.categories:
        lines.append(f"*{category}*")
        for item in menu.items:
            if item.category == category:
                lines.append(_format_item(item))
        lines.append("")
    if uncategorized:
        if menu.categories:
            lines.append("*Otros*")
        lines.extend(_format_item(item) for item in uncategorized)
    return "\n".join(lines).strip()


def _format_item(item: MenuItem) -> str:
    desc_str = f" - {item.description}" if item.description else ""
    return f"• {item.name} ${item.price:.2f}{desc_str}"
