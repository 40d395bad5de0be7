"""Pairs extracted quantities with product candidates."""
import logging
import re
from typing import List, Optional, Sequence

from pedidobot.services.agent.state import OrderDraft
from pedidobot.services.menu.base import Menu
from pedidobot.services.ordering.models import OrderLineItem, ProductCandidate, QuantityToken
from pedidobot.services.ordering.quantities import DEFAULT_TOKEN, MAX_QUANTITY, QuantityLexicon
from pedidobot.services.ordering.text import normalize

logger = logging.getLogger(__name__)

MIN_LINE_CONFIDENCE = 0.4

DOZEN_PATTERNS = {"docena", "n_docenas"}
BARE_COUNT_PATTERNS = {"digits", "number_word"}
ELLIPSIS_RE = re.compile(r"\s+de\b")

MULTI_FLAVOR_PATTERNS = [
    re.compile(r"\bde\s+(\w+)\s+y\b.*\bde\s+(\w+)"),
    re.compile(r"\b(\w+)\s+y\s+(\w+)\b"),
    re.compile(r"\b(\w+)\s*,\s*(\w+)\b"),
]


def is_multi_flavor(text: str) -> bool:
    """Whether the message lists several things ("carne y pollo", "carne, pollo")."""
    normalized = normalize(text)
    return any(pattern.search(normalized) for pattern in MULTI_FLAVOR_PATTERNS)


class QuantityProductCombiner:
    """Turns quantities plus candidates into order lines."""

    def __init__(self, lexicon: Optional[QuantityLexicon] = None):
        self.lexicon = lexicon or QuantityLexicon()

    def combine(
        self,
        quantities: Sequence[QuantityToken],
        candidates: Sequence[ProductCandidate],
        raw_message: str,
        draft: Optional[OrderDraft] = None,
        menu: Optional[Menu] = None,
    ) -> List[OrderLineItem]:
        """Pair quantities with candidates.

        Lines whose combined confidence is at or below 0.4 are dropped.
        """
        quantities = list(quantities) or [DEFAULT_TOKEN]
        candidates = list(candidates)

        if len(candidates) > 1 and is_multi_flavor(raw_message):
            lines = self._split_flavors(quantities, candidates, raw_message)
        elif len(candidates) == 1 and len(quantities) == 1:
            lines = [_line(quantities[0], candidates[0])]
        elif len(candidates) > 1:
            lines = [_line(quantities[0], candidate) for candidate in candidates]
        elif len(candidates) == 1:
            largest = max(quantities, key=lambda q: q.value)
            lines = [_line(largest, candidates[0])]
        else:
            lines = self._carry_over(quantities, draft, menu)

        kept = [line for line in lines if line.confidence > MIN_LINE_CONFIDENCE]
        if len(kept) != len(lines):
            logger.debug(f"[COMBINER] Dropped {len(lines) - len(kept)} low-confidence lines")
        return kept

    def _split_flavors(
        self,
        quantities: List[QuantityToken],
        candidates: List[ProductCandidate],
        raw_message: str,
    ) -> List[OrderLineItem]:
        """Quantity phrases of one form, one per flavor, pair by position.

        Mixed forms ("dos docenas ... 9 de pollo") repeat the first quantity.
        """
        by_position = sorted(candidates, key=lambda c: c.position)
        occurrences = _inherit_dozens(self.lexicon.scan(raw_message), normalize(raw_message))
        same_form = len({_form(q) for q in occurrences}) == 1
        if len(occurrences) == len(by_position) and same_form:
            logger.debug("[COMBINER] Multi-flavor order, pairing quantities by position")
            return [_line(q, c) for q, c in zip(occurrences, by_position)]
        logger.debug("[COMBINER] Multi-flavor order, same quantity for every flavor")
        return [_line(quantities[0], c) for c in by_position]

    def _carry_over(
        self,
        quantities: List[QuantityToken],
        draft: Optional[OrderDraft],
        menu: Optional[Menu],
    ) -> List[OrderLineItem]:
        """Repeat the most recently added draft item ("2 más").

        Only an explicit quantity triggers this, so "gracias" adds nothing.
        """
        explicit = [q for q in quantities if not q.is_default]
        if draft is None or not draft.lines or not explicit:
            return []
        line = draft.get_line(draft.last_added_item_id or "") or draft.lines[-1]
        if menu is not None and menu.get_item(line.item_id) is None:
            return []
        quantity = explicit[0]
        return [
            line.model_copy(
                update={
                    "quantity": quantity.value,
                    "confidence": min(quantity.confidence, 1.0),
                    "quantity_pending": False,
                }
            )
        ]


def _inherit_dozens(occurrences: List[QuantityToken], normalized: str) -> List[QuantityToken]:
    """Elliptical counts after a dozen phrase are dozens too.

    In "dos docenas de carne y tres de pollo" the "tres de" means three dozen.
    Only a bare count directly followed by "de" is rewritten, so
    "una docena de carne y dos gaseosas" keeps its two drinks.
    """
    if not occurrences or occurrences[0].source_pattern not in DOZEN_PATTERNS:
        return occurrences
    unit = occurrences[0]
    inherited = [unit]
    for token in occurrences[1:]:
        follows = normalized[token.position + len(token.matched_text):]
        value = token.value * 12
        if token.source_pattern in BARE_COUNT_PATTERNS and ELLIPSIS_RE.match(follows) and value <= MAX_QUANTITY:
            token = token.model_copy(update={"value": value, "source_pattern": unit.source_pattern})
        inherited.append(token)
    return inherited


def _form(token: QuantityToken) -> str:
    """Phrase family: "2" and "dos" are both bare counts."""
    return "count" if token.source_pattern in BARE_COUNT_PATTERNS else token.source_pattern


def _line(quantity: QuantityToken, candidate: ProductCandidate) -> OrderLineItem:
    return OrderLineItem.from_menu_item(
        candidate.item,
        quantity=quantity.value,
        confidence=min(quantity.confidence, candidate.confidence),
        quantity_pending=quantity.is_default,
    )
