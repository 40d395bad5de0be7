"""Fuzzy product matching against the menu."""
import logging
from difflib import SequenceMatcher
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

from pedidobot.services.menu.base import Menu, MenuItem
from pedidobot.services.ordering.models import MatchSource, ProductCandidate
from pedidobot.services.ordering.text import ORDER_FILLER, STOPWORDS, keywords, normalize, stem, tokenize

logger = logging.getLogger(__name__)

CONFIDENT_THRESHOLD = 0.5
NO_MATCH_THRESHOLD = 0.3

FULL_NAME_SCORE = 1.0
NAME_KEYWORD_SCORE = 0.4
DESCRIPTION_KEYWORD_SCORE = 0.2
DISTINGUISHING_BOOST = 0.5

FUZZY_EXACT = 0.6
FUZZY_PREFIX = 0.5
FUZZY_RATIO_MIN = 0.75
FUZZY_RATIO_WEIGHT = 0.6
FUZZY_EXTRA_HIT = 0.15
FUZZY_CAP = 0.8
FUZZY_MIN = 0.4

# Fillings and flavours: seeing one of these in both the item name and the
# message is strong evidence for that specific item
FILLING_WORDS = frozenset(stem(w) for w in (
    "pollo", "carne", "cerdo", "jamon", "queso", "chorizo", "bacon", "panceta",
    "pavo", "res", "pescado", "atun", "verdura", "humita", "choclo", "cebolla",
    "caprese", "roquefort", "fugazza", "muzzarella", "napolitana", "calabresa",
    "espinaca", "acelga", "hongo", "vegetariana", "vegana", "picante",
))


class IndexedItem:
    """Precomputed search data for one menu item."""

    def __init__(self, item: MenuItem):
        self.item = item
        name = normalize(item.name)
        self.name_sequence = " ".join(stem(token) for token, _ in tokenize(name))
        self.name_keywords: Set[str] = set(keywords(name, min_length=3))
        self.description_keywords: Set[str] = set(
            keywords(normalize(item.description or ""), min_length=4)
        )
        self.category_keywords: Set[str] = set(keywords(normalize(item.category or ""), min_length=3))
        self.head = keywords(name, min_length=3)[0] if self.name_keywords else ""
        self.distinguishing: Set[str] = self.name_keywords & FILLING_WORDS

    def searchable(self) -> Dict[str, MatchSource]:
        """All tokens of the item, tagged with where they came from (name wins)."""
        tokens: Dict[str, MatchSource] = {}
        for source, words in (
            (MatchSource.CATEGORY, self.category_keywords),
            (MatchSource.DESCRIPTION, self.description_keywords),
            (MatchSource.NAME, self.name_keywords),
        ):
            for word in words:
                tokens[word] = source
        return tokens


class MessageTerms:
    """Normalized view of a message used for scoring."""

    def __init__(self, text: str):
        self.normalized = normalize(text)
        pairs = [(stem(token), position) for token, position in tokenize(self.normalized)]
        self.sequence = " ".join(token for token, _ in pairs)
        self.positions: Dict[str, int] = {}
        for token, position in pairs:
            self.positions.setdefault(token, position)
        self.content_words: List[Tuple[str, int]] = [
            (token, position)
            for token, position in pairs
            if len(token) >= 3
            and token not in STOPWORDS
            and token not in ORDER_FILLER
            and not token.isdigit()
        ]

    def contains(self, word: str) -> bool:
        return word in self.positions


class ProductMatcher:
    """Scores free text against every menu item."""

    def __init__(self):
        self._menu: Optional[Menu] = None
        self._index: List[IndexedItem] = []

    @property
    def menu(self) -> Optional[Menu]:
        return self._menu

    def build_index(self, menu: Menu) -> List[IndexedItem]:
        """Index a menu snapshot. Call again whenever the menu changes."""
        index = [IndexedItem(item) for item in menu.items]
        by_head: Dict[str, List[IndexedItem]] = {}
        for entry in index:
            if entry.head:
                by_head.setdefault(entry.head, []).append(entry)
        for siblings in by_head.values():
            if len(siblings) < 2:
                continue
            shared = set.intersection(*(entry.name_keywords for entry in siblings))
            for entry in siblings:
                entry.distinguishing |= entry.name_keywords - shared
        self._menu = menu
        self._index = index
        logger.debug(f"[MATCHER] Indexed {len(index)} menu items")
        return index

    def ensure_index(self, menu: Menu) -> None:
        """Rebuild the index only if this is a different menu snapshot."""
        if menu is not self._menu:
            self.build_index(menu)

    def match(self, text: str, item_ids: Optional[Iterable[str]] = None) -> List[ProductCandidate]:
        """Ranked candidates for a message. An empty list means no match.

        ``item_ids`` restricts matching to a subset of the menu (e.g. the lines
        already in a draft).
        """
        terms = MessageTerms(text)
        allowed = set(item_ids) if item_ids is not None else None
        entries = [e for e in self._index if allowed is None or e.item.id in allowed]

        candidates = [c for c in (self._score(entry, terms) for entry in entries) if c]
        confident = [c for c in candidates if c.confidence > CONFIDENT_THRESHOLD]
        if confident:
            return sorted(confident, key=lambda c: -c.confidence)

        partial = [c for c in (self._fuzzy_score(entry, terms) for entry in entries) if c]
        partial = [c for c in partial if c.confidence > NO_MATCH_THRESHOLD]
        if partial:
            logger.debug(
                f"[MATCHER] Fuzzy matches for '{text}': "
                f"{[(c.item.name, round(c.confidence, 2)) for c in partial]}"
            )
        return sorted(partial, key=lambda c: -c.confidence)

    def unmatched_words(self, text: str, candidates: Sequence[ProductCandidate]) -> List[str]:
        """Content words of the message that none of the accepted candidates account for."""
        chosen = {c.item.id for c in candidates}
        explained: Set[str] = set()
        for entry in self._index:
            if entry.item.id in chosen:
                explained |= set(entry.searchable())
        return [word for word, _ in MessageTerms(text).content_words if word not in explained]

    def _score(self, entry: IndexedItem, terms: MessageTerms) -> Optional[ProductCandidate]:
        name_score = 0.0
        description_score = 0.0
        positions = []

        if entry.name_sequence and f" {entry.name_sequence} " in f" {terms.sequence} ":
            name_score += FULL_NAME_SCORE
        for word in entry.name_keywords:
            if terms.contains(word):
                name_score += NAME_KEYWORD_SCORE
                positions.append(terms.positions[word])
        for word in entry.description_keywords:
            if terms.contains(word):
                description_score += DESCRIPTION_KEYWORD_SCORE
                positions.append(terms.positions[word])
        if any(terms.contains(word) for word in entry.distinguishing):
            name_score += DISTINGUISHING_BOOST

        score = min(name_score + description_score, 1.0)
        if score <= 0:
            return None
        return ProductCandidate(
            item=entry.item,
            confidence=score,
            matched_by=MatchSource.NAME if name_score >= description_score else MatchSource.DESCRIPTION,
            position=min(positions) if positions else 0,
        )

    def _fuzzy_score(self, entry: IndexedItem, terms: MessageTerms) -> Optional[ProductCandidate]:
        searchable = entry.searchable()
        hits = []
        for word, position in terms.content_words:
            evidence = _best_evidence(word, searchable)
            if evidence:
                hits.append((evidence[0], evidence[1], position))
        if not hits:
            return None

        best_score, best_source, best_position = max(hits, key=lambda h: h[0])
        score = min(FUZZY_CAP, best_score + FUZZY_EXTRA_HIT * (len(hits) - 1))
        if score < FUZZY_MIN:
            return None
        return ProductCandidate(
            item=entry.item,
            confidence=score,
            matched_by=best_source,
            position=best_position,
        )


def _best_evidence(word: str, searchable: Dict[str, MatchSource]) -> Optional[Tuple[float, MatchSource]]:
    """How well one message word supports an item, if at all."""
    if word in searchable:
        return FUZZY_EXACT, searchable[word]

    best: Optional[Tuple[float, MatchSource]] = None
    for token, source in searchable.items():
        if len(word) >= 4 and len(token) >= 4 and (token.startswith(word) or word.startswith(token)):
            score = FUZZY_PREFIX
        else:
            ratio = SequenceMatcher(None, word, token).ratio()
            if ratio < FUZZY_RATIO_MIN:
                continue
            score = ratio * FUZZY_RATIO_WEIGHT
        if best is None or score > best[0]:
            best = (score, source)
    return best
