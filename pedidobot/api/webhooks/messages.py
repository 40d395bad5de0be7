"""Inbound chat message webhook."""
import logging
from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel, Field

from pedidobot.core.dependencies import get_dialogue_engine
from pedidobot.services.conversation.engine import DialogueEngine, MessageResponse

router = APIRouter()
logger = logging.getLogger(__name__)


class InboundMessage(BaseModel):
    """A customer message delivered by the messaging gateway."""

    conversation_id: str = Field(..., min_length=1)
    text: str = ""


@router.post("/messages", response_model=MessageResponse)
async def handle_message(
    request: Request,
    message: InboundMessage,
    engine: DialogueEngine = Depends(get_dialogue_engine),
):
    """
    Handle one inbound customer message.

    Returns the reply text plus the structured outcome of the turn.
    """
    logger.info(
        f"[MESSAGE] Received message - Conversation: {message.conversation_id}, "
        f"Length: {len(message.text)}, "
        f"Client: {request.client.host if request.client else 'unknown'}"
    )

    try:
        response = await engine.process_message(message.conversation_id, message.text)
        logger.info(
            f"[MESSAGE] Processed - Conversation: {message.conversation_id}, Intent: {response.intent}"
        )
        return response

    except Exception as e:
        logger.error(
            f"[MESSAGE] Error processing message - Conversation: {message.conversation_id}, "
            f"Error: {type(e).__name__}: {str(e)}",
            exc_info=True
        )
        raise HTTPException(status_code=500, detail=f"Error processing message: {str(e)}")
