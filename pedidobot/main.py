"""Main FastAPI application."""
import logging
from fastapi import FastAPI
from contextlib import asynccontextmanager

from pedidobot.core.dependencies import build_engine
from pedidobot.core.logging import setup_logging
from pedidobot.db.database import init_db
from pedidobot.api import health, menu, orders
from pedidobot.api.webhooks import messages

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    # Startup
    setup_logging()
    await init_db()
    app.state.engine = build_engine()
    logger.info("[STARTUP] Dialogue engine ready")
    yield
    # Shutdown
    await app.state.engine.wait_for_notifications()


app = FastAPI(
    title="Pedidobot",
    description="Conversational order taking for restaurants over chat",
    version="0.1.0",
    lifespan=lifespan,
)

app.include_router(health.router, tags=["health"])
app.include_router(messages.router, prefix="/webhooks", tags=["webhooks"])
app.include_router(orders.router, tags=["orders"])
app.include_router(menu.router, tags=["menu"])


@app.get("/")
async def root():
    return {"message": "Pedidobot API", "version": "0.1.0"}
