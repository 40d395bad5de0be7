"""LLM fallback for messages the rule pipeline cannot read."""
import json
import logging
from abc import ABC, abstractmethod
from typing import List, Optional
from openai import AsyncOpenAI
from pydantic import BaseModel, Field, ValidationError, field_validator

from pedidobot.services.agent.prompt import get_system_prompt, get_user_prompt
from pedidobot.services.agent.state import ConversationContext
from pedidobot.services.menu.base import Menu
from pedidobot.services.ordering.models import MatchSource, ProductCandidate, QuantityToken

logger = logging.getLogger(__name__)

# A guess from the model never counts as a strong match on its own
MAX_FALLBACK_CONFIDENCE = 0.79


class FallbackItem(BaseModel):
    item_id: str
    quantity: int = 1
    confidence: float = Field(default=0.5, ge=0.0, le=1.0)

    @field_validator("item_id", mode="before")
    @classmethod
    def _coerce_id(cls, value):
        return str(value) if isinstance(value, int) else value


class FallbackResult(BaseModel):
    """Best-effort structured guess."""

    items: List[FallbackItem] = []
    intent: Optional[str] = None
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)

    def to_pairs(self, menu: Menu) -> List[tuple]:
        """(QuantityToken, ProductCandidate) pairs for items that exist on the menu."""
        pairs = []
        for entry in self.items:
            item = menu.get_item(str(entry.item_id))
            if item is None or entry.quantity <= 0 or entry.quantity > 100:
                logger.info(f"[FALLBACK] Ignoring unusable item {entry.item_id} x{entry.quantity}")
                continue
            confidence = min(entry.confidence, self.confidence or entry.confidence, MAX_FALLBACK_CONFIDENCE)
            pairs.append(
                (
                    QuantityToken(value=entry.quantity, confidence=confidence, source_pattern="fallback"),
                    ProductCandidate(item=item, confidence=confidence, matched_by=MatchSource.FALLBACK),
                )
            )
        return pairs


class FallbackClassifier(ABC):
    """Pluggable best-effort extractor. Callers enforce the timeout."""

    @abstractmethod
    async def classify(self, message: str, menu: Menu, context: ConversationContext) -> FallbackResult:
        pass


class OpenAIFallbackClassifier(FallbackClassifier):
    """Fallback classifier backed by an OpenAI chat model."""

    def __init__(
        self,
        api_key: str,
        restaurant_name: str,
        model: str = "gpt-4o-mini",
        client: Optional[AsyncOpenAI] = None,
    ):
        self.client = client or AsyncOpenAI(api_key=api_key)
        self.restaurant_name = restaurant_name
        self.model = model

    async def classify(self, message: str, menu: Menu, context: ConversationContext) -> FallbackResult:
        menu_text = "\n".join(
            f"{item.id} | {item.name} | {item.price} | {item.category or '-'}" for item in menu.items
        )
        order_summary = context.draft.get_order_summary() if context.draft and context.draft.has_lines else None
        last_order = context.customer.last_order_summary if context.customer else None

        logger.info("=" * 80)
        logger.info(f"[FALLBACK INPUT] Conversation: {context.conversation_id}")
        logger.info(f"[FALLBACK INPUT] Message: '{message}'")
        logger.info(f"[FALLBACK INPUT] Customer tier: {context.customer_tier}")
        logger.info("=" * 80)

        response = await self.client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": get_system_prompt(self.restaurant_name, menu_text)},
                {"role": "user", "content": get_user_prompt(message, order_summary, last_order)},
            ],
            temperature=0.2,
            response_format={"type": "json_object"},
        )
        content = response.choices[0].message.content
        logger.info(f"[FALLBACK OUTPUT] Raw Response: {content}")

        try:
            return FallbackResult.model_validate(json.loads(content or "{}"))
        except (json.JSONDecodeError, ValidationError) as e:
            logger.warning(f"[FALLBACK OUTPUT] Unusable response: {type(e).__name__}: {e}")
            return FallbackResult()
