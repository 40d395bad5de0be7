"""Logging configuration."""
import logging
import sys
from typing import Optional

from pedidobot.core.config import settings

NOISY_LOGGERS = ("httpx", "httpcore", "openai", "sqlalchemy.engine", "aiosqlite")


def setup_logging(level: Optional[str] = None) -> None:
    """Configure application logging. ``level`` overrides LOG_LEVEL."""
    name = (level or settings.log_level).upper()
    logging.basicConfig(
        level=getattr(logging, name, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[
            logging.StreamHandler(sys.stdout),
        ],
    )

    for noisy in NOISY_LOGGERS:
        logging.getLogger(noisy).setLevel(logging.WARNING)
    logging.getLogger(__name__).debug(f"[STARTUP] Logging configured at {name} for {settings.restaurant_name}")
