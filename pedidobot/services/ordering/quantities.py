"""Spanish quantity phrase parsing."""
import logging
import re
from typing import Callable, List, NamedTuple, Optional, Pattern

from pedidobot.services.ordering.models import QuantityToken
from pedidobot.services.ordering.text import normalize

logger = logging.getLogger(__name__)

NUMBER_WORDS = {
    "un": 1, "uno": 1, "una": 1,
    "dos": 2, "tres": 3, "cuatro": 4, "cinco": 5,
    "seis": 6, "siete": 7, "ocho": 8, "nueve": 9, "diez": 10,
}

MAX_QUANTITY = 100
DEFAULT_TOKEN = QuantityToken(value=1, confidence=0.5, source_pattern="default")

_COUNT = r"(\d+|dos|tres|cuatro|cinco|seis|siete|ocho|nueve|diez)"
_UNITS = r"(?:litros?|lts?|l|ml|cc|kg|grs?|g|hs|%)"


def _count(word: str) -> int:
    return int(word) if word.isdigit() else NUMBER_WORDS[word]


def _bounded(value: int) -> Optional[int]:
    return value if 0 < value <= MAX_QUANTITY else None


class QuantityRule(NamedTuple):
    """One row of the quantity rule table."""

    name: str
    pattern: Pattern
    value: Callable[["re.Match"], Optional[int]]
    confidence: float


# Longest phrases first: each match masks its span before later rules run
RULES: List[QuantityRule] = [
    QuantityRule(
        "n_docenas_y_media",
        re.compile(rf"\b{_COUNT}\s+docenas?\s+y\s+media\b"),
        lambda m: _bounded(_count(m.group(1)) * 12 + 6),
        1.0,
    ),
    QuantityRule(
        "docena_y_media",
        re.compile(r"\b(?:una?\s+)?docena\s+y\s+media\b"),
        lambda m: 18,
        1.0,
    ),
    QuantityRule(
        "n_docenas",
        re.compile(rf"\b{_COUNT}\s+docenas?\b"),
        lambda m: _bounded(_count(m.group(1)) * 12),
        1.0,
    ),
    QuantityRule("media_docena", re.compile(r"\bmedia\s+docena\b"), lambda m: 6, 1.0),
    QuantityRule("docena", re.compile(r"\b(?:una?\s+)?docena\b"), lambda m: 12, 1.0),
    QuantityRule("par", re.compile(r"\b(?:un\s+par|una\s+pareja|par)\b"), lambda m: 2, 0.9),
    QuantityRule("cuarto", re.compile(r"\bun\s+cuarto\b"), lambda m: 3, 0.9),
    # "de cada una" distributes the quantity, it is not a count
    QuantityRule("cada_uno", re.compile(r"\bcada\s+un[oa]\b"), lambda m: None, 0.0),
    QuantityRule(
        "digits",
        # Skip prices ($7), decimals (1.5) and measures (500ml)
        re.compile(rf"(?<![\w$])(?<!\d[.,])(\d+)(?![\w%]|[.,]\d|\s*{_UNITS}\b)"),
        lambda m: _bounded(int(m.group(1))),
        0.9,
    ),
    QuantityRule(
        "number_word",
        re.compile(r"\b(" + "|".join(NUMBER_WORDS) + r")\b"),
        lambda m: NUMBER_WORDS[m.group(1)],
        0.8,
    ),
]


class QuantityLexicon:
    """Maps quantity phrases ("media docena", "un par", "3") to integers."""

    def __init__(self, rules: Optional[List[QuantityRule]] = None):
        self.rules = rules if rules is not None else RULES

    def scan(self, text: str) -> List[QuantityToken]:
        """Every quantity occurrence in the text, in order of appearance.

        Matched spans are blanked out before the next rule runs, so a phrase
        inside a longer one ("docena" within "docena y media") is never
        counted twice.
        """
        masked = normalize(text)
        tokens: List[QuantityToken] = []
        for rule in self.rules:
            for match in rule.pattern.finditer(masked):
                start, end = match.span()
                value = rule.value(match)
                masked = masked[:start] + " " * (end - start) + masked[end:]
                if value is None:
                    logger.debug(f"[QUANTITY] Discarded '{match.group(0)}'")
                    continue
                tokens.append(
                    QuantityToken(
                        value=value,
                        confidence=rule.confidence,
                        source_pattern=rule.name,
                        matched_text=match.group(0),
                        position=start,
                    )
                )
        tokens.sort(key=lambda t: t.position)
        return tokens

    def extract_quantities(self, text: str) -> List[QuantityToken]:
        """Distinct quantities in the text, or the default token when none is found."""
        best = {}
        for token in self.scan(text):
            current = best.get(token.value)
            if current is None or token.confidence > current.confidence:
                best[token.value] = token
        if not best:
            return [DEFAULT_TOKEN]
        return sorted(best.values(), key=lambda t: t.position)
