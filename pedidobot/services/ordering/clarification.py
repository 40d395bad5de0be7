"""Decides when to guess and when to ask."""
import logging
from enum import Enum
from typing import List, Optional, Sequence
from pydantic import BaseModel

from pedidobot.services.agent.state import OrderDraft
from pedidobot.services.menu.base import Menu, MenuItem
from pedidobot.services.ordering.models import OrderLineItem, ProductCandidate, QuantityToken
from pedidobot.services.ordering.text import ORDER_FILLER, keywords, normalize

logger = logging.getLogger(__name__)

STRONG_CONFIDENCE = 0.8
CLEAR_WINNER_MARGIN = 0.1


class DecisionKind(str, Enum):
    """Outcome of a clarification review."""

    ACCEPT = "accept"  # Use the candidates/lines as they are
    ASK = "ask"  # Ask the customer to pick, change nothing
    STAGE = "stage"  # Stage the change and ask for yes/no
    NO_MATCH = "no_match"

    def __str__(self) -> str:
        return self.value


class ClarificationDecision(BaseModel):
    kind: DecisionKind
    candidates: List[ProductCandidate] = []
    lines: List[OrderLineItem] = []
    question: Optional[str] = None
    options: List[str] = []


class ClarificationPolicy:
    """Additive ambiguity is guessed; destructive ambiguity is always confirmed."""

    def __init__(self, strong_confidence: float = STRONG_CONFIDENCE, clear_winner_margin: float = CLEAR_WINNER_MARGIN):
        self.strong_confidence = strong_confidence
        self.clear_winner_margin = clear_winner_margin

    def review_candidates(
        self, candidates: Sequence[ProductCandidate], multi_flavor: bool = False
    ) -> ClarificationDecision:
        """Prune candidates for an additive order, or ask which one was meant."""
        if not candidates:
            return ClarificationDecision(kind=DecisionKind.NO_MATCH)
        if len(candidates) == 1:
            return ClarificationDecision(kind=DecisionKind.ACCEPT, candidates=list(candidates))

        # Strong matches win; weaker siblings are dropped
        strong = [c for c in candidates if c.confidence >= self.strong_confidence]
        if strong:
            return ClarificationDecision(kind=DecisionKind.ACCEPT, candidates=strong)

        ranked = sorted(candidates, key=lambda c: -c.confidence)
        if not multi_flavor and ranked[0].confidence - ranked[1].confidence >= self.clear_winner_margin:
            logger.debug(f"[CLARIFY] Clear winner among weak candidates: {ranked[0].item.name}")
            return ClarificationDecision(kind=DecisionKind.ACCEPT, candidates=ranked[:1])

        names = _unique_names(c.item for c in ranked)
        logger.info(f"[CLARIFY] Ambiguous order, asking between {names}")
        return ClarificationDecision(
            kind=DecisionKind.ASK,
            candidates=ranked,
            question=flavor_question(names),
            options=names,
        )

    def review_replace(self, lines: Sequence[OrderLineItem]) -> ClarificationDecision:
        """Replacing the whole order always needs a yes/no."""
        summary = "\n".join(f"• {line.describe()}" for line in lines)
        return ClarificationDecision(
            kind=DecisionKind.STAGE,
            lines=list(lines),
            question=f"¿Querés que tu pedido quede solamente con esto?\n{summary}\n\nRespondé *sí* o *no*.",
        )

    def review_remove(
        self,
        draft: OrderDraft,
        candidates: Sequence[ProductCandidate],
        quantities: Sequence[QuantityToken] = (),
        multi_flavor: bool = False,
    ) -> ClarificationDecision:
        """Decide how to handle a removal request against the draft lines."""
        explicit = [q for q in quantities if not q.is_default]
        amount = explicit[0].value if explicit else None

        def removal_lines(chosen: Sequence[ProductCandidate]) -> List[OrderLineItem]:
            result = []
            for candidate in chosen:
                line = draft.get_line(candidate.item.id)
                if line is not None:
                    quantity = min(amount, line.quantity) if amount else line.quantity
                    result.append(line.model_copy(update={"quantity": quantity}))
            return result

        strong = [c for c in candidates if c.confidence >= self.strong_confidence]
        if len(strong) == 1 or (strong and multi_flavor):
            return ClarificationDecision(kind=DecisionKind.ACCEPT, candidates=strong, lines=removal_lines(strong))

        if len(candidates) == 1 or (not candidates and len(draft.lines) == 1):
            if candidates:
                lines = removal_lines(candidates)
            else:
                only = draft.lines[0]
                lines = [only.model_copy(update={"quantity": min(amount, only.quantity) if amount else only.quantity})]
            summary = "\n".join(f"• {line.describe()}" for line in lines)
            return ClarificationDecision(
                kind=DecisionKind.STAGE,
                candidates=list(candidates),
                lines=lines,
                question=f"¿Querés que quite esto de tu pedido?\n{summary}\n\nRespondé *sí* o *no*.",
            )

        names = [line.item_name for line in draft.lines]
        return ClarificationDecision(
            kind=DecisionKind.ASK,
            candidates=list(candidates),
            question=(
                "No pude identificar qué querés quitar. Tu pedido actual:\n"
                + draft.get_order_summary()
                + "\n\n¿Qué item querés quitar específicamente?"
            ),
            options=names,
        )

    def suggest_alternatives(
        self, text: str, menu: Menu, limit: int = 3, popular_fallback: bool = True
    ) -> List[MenuItem]:
        """Menu items loosely related to an unmatched message, else the first items."""
        words = {w for w in keywords(normalize(text)) if w not in ORDER_FILLER}
        suggestions = []
        for item in menu.items:
            item_words = set(keywords(normalize(f"{item.name} {item.category or ''}")))
            if words & item_words or any(
                len(w) >= 4 and any(iw.startswith(w[:4]) for iw in item_words) for w in words
            ):
                suggestions.append(item)
                if len(suggestions) >= limit:
                    break
        if not suggestions and popular_fallback:
            suggestions = list(menu.items[:limit])
        return suggestions


def flavor_question(names: Sequence[str]) -> str:
    options = "\n".join(f"• {name}" for name in names)
    return f"¿De qué sabor? Tenemos:\n{options}"


def _unique_names(items) -> List[str]:
    names = []
    for item in items:
        if item.name not in names:
            names.append(item.name)
    return names
