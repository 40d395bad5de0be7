"""In-memory menu provider."""
import logging
import yaml
from pathlib import Path
from typing import Optional
from pedidobot.services.menu.base import Menu, MenuItem, MenuProvider

logger = logging.getLogger(__name__)


class InMemoryMenuProvider(MenuProvider):
    """In-memory menu provider using YAML configuration."""

    def __init__(self, menu_file: Optional[str] = None):
        """Initialize with optional menu file path."""
        if menu_file is None:
            menu_file = Path(__file__).parent / "data" / "menu.yaml"
        self.menu_file = Path(menu_file)

    def _load_menu(self) -> Menu:
        """Load menu from YAML file."""
        if not self.menu_file.exists():
            logger.warning(f"[MENU] Menu file not found: {self.menu_file}")
            return Menu(items=[])

        with open(self.menu_file, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        items = [MenuItem(**item) for item in data.get("items", [])]
        return Menu(items=items, categories=data.get("categories", []))

    async def get_current_menu(self) -> Menu:
        """Read the menu file. Edits show up on the next cache refresh."""
        return self._load_menu()
