"""Health check endpoint."""
import logging
from fastapi import APIRouter, Request

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/health")
async def health_check(request: Request):
    """Health check endpoint. Reports whether the dialogue engine is wired."""
    engine_ready = getattr(request.app.state, "engine", None) is not None
    logger.debug(
        f"[HEALTH] Health check requested - engine ready: {engine_ready}, "
        f"Client: {request.client.host if request.client else 'unknown'}"
    )
    return {"status": "healthy" if engine_ready else "starting", "engine": engine_ready}
