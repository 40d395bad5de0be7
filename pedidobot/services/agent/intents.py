"""Rule-based intent detection, run before order extraction."""
import logging
import re
from typing import Callable, Iterable, List, NamedTuple, Optional
from pydantic import BaseModel

from pedidobot.services.agent import constants
from pedidobot.services.agent.stages import Intent, ModificationAction
from pedidobot.services.agent.state import OrderDraft
from pedidobot.services.ordering.text import normalize

logger = logging.getLogger(__name__)

_WORD_RE = re.compile(r"[a-z0-9]+")


class IntentMatch(BaseModel):
    """Result of classifying one message."""

    intent: Intent
    rule: str
    action: ModificationAction = ModificationAction.ADD_ITEM
    discard_pending: bool = False  # A staged proposal was ignored by this message


class Message(NamedTuple):
    """A message prepared once for all rules."""

    text: str
    words: List[str]
    draft: Optional[OrderDraft]


class IntentRule(NamedTuple):
    """One row of the intent table: the first rule whose predicate holds wins."""

    name: str
    intent: Intent
    predicate: Callable[[Message], bool]


def _keyword_pattern(keywords: Iterable[str]) -> re.Pattern:
    escaped = sorted((re.escape(normalize(k)) for k in keywords if k.strip()), key=len, reverse=True)
    if not escaped:
        return re.compile(r"(?!x)x")
    return re.compile(r"\b(?:" + "|".join(escaped) + r")\b")


def _is_short_answer(message: Message, answer_words: set, phrases: Iterable[str] = ()) -> bool:
    """The whole message is a yes (or a no), possibly with filler words."""
    text = message.text
    for phrase in phrases:
        text = re.sub(rf"\b{phrase}\b", " si ", text)
    words = _WORD_RE.findall(text)
    if not words:
        return False
    allowed = answer_words | constants.ANSWER_FILLER
    return all(w in allowed for w in words) and any(w in answer_words for w in words)


class DialogueIntentClassifier:
    """Ordered, short-circuiting intent rules."""

    def __init__(
        self,
        off_topic_keywords: Optional[Iterable[str]] = None,
        escalation_keywords: Optional[Iterable[str]] = None,
    ):
        self._off_topic = _keyword_pattern(
            off_topic_keywords if off_topic_keywords is not None else constants.OFF_TOPIC_KEYWORDS
        )
        self._escalation = _keyword_pattern(
            escalation_keywords if escalation_keywords is not None else constants.ESCALATION_KEYWORDS
        )
        self._greeting = re.compile(
            r"^(?:" + "|".join(re.escape(p) for p in constants.GREETING_PHRASES) + r")\b"
        )
        self._confirm = re.compile(constants.EXPLICIT_CONFIRM_PATTERN)
        self._cancel = re.compile(constants.EXPLICIT_CANCEL_PATTERN)
        self._status = re.compile(constants.STATUS_PATTERN)
        self._menu = re.compile(constants.MENU_PATTERN)
        self._remove = re.compile(constants.REMOVE_PATTERN)
        self._replace_all = re.compile(constants.REPLACE_ALL_PATTERN)
        self._change_quantity = re.compile(constants.CHANGE_QUANTITY_PATTERN)

        self.rules: List[IntentRule] = [
            IntentRule("off_topic", Intent.OFF_TOPIC, lambda m: bool(self._off_topic.search(m.text))),
            IntentRule("escalation", Intent.ESCALATE, lambda m: bool(self._escalation.search(m.text))),
            IntentRule("greeting", Intent.GREETING, lambda m: bool(self._greeting.match(m.text))),
            IntentRule("confirm", Intent.CONFIRM, self._is_confirm),
            IntentRule("cancel", Intent.CANCEL, self._is_cancel),
            IntentRule("status", Intent.STATUS, lambda m: bool(self._status.search(m.text))),
            IntentRule("menu", Intent.SHOW_MENU, lambda m: bool(self._menu.search(m.text))),
            IntentRule("remove", Intent.REMOVE, lambda m: bool(self._remove.search(m.text))),
        ]

    def classify(self, text: str, draft: Optional[OrderDraft] = None) -> IntentMatch:
        """Classify a message. Falls through to ORDER when no rule matches."""
        normalized = normalize(text)
        message = Message(text=normalized, words=_WORD_RE.findall(normalized), draft=draft)
        discard_pending = False

        for rule in self.rules:
            # A staged replace/remove answer outranks a generic confirm/cancel
            if rule.intent == Intent.CONFIRM and draft is not None and draft.has_pending:
                pending = self._pending_answer(message)
                if pending is not None:
                    return self._result(pending, "pending_answer", message)
                discard_pending = True

            if rule.predicate(message):
                intent = rule.intent
                if intent in (Intent.CONFIRM, Intent.CANCEL) and not self._has_active_draft(draft, intent):
                    intent = Intent.NO_ACTIVE_ORDER
                return self._result(intent, rule.name, message, discard_pending)

        return self._result(Intent.ORDER, "order", message, discard_pending)

    def _result(self, intent: Intent, rule: str, message: Message, discard_pending: bool = False) -> IntentMatch:
        action = ModificationAction.ADD_ITEM
        if intent == Intent.ORDER:
            if self._replace_all.search(message.text):
                action = ModificationAction.REPLACE_ALL
            elif self._change_quantity.search(message.text):
                action = ModificationAction.CHANGE_QUANTITY
        elif intent == Intent.REMOVE:
            action = ModificationAction.REMOVE_ITEM
        logger.debug(f"[INTENT] '{message.text}' -> {intent} (rule: {rule}, action: {action})")
        return IntentMatch(intent=intent, rule=rule, action=action, discard_pending=discard_pending)

    def _pending_answer(self, message: Message) -> Optional[Intent]:
        if not message.words:
            return None
        first = message.words[0]
        if first in constants.AFFIRMATIVE_WORDS or self._confirm.match(message.text) or any(
            message.text.startswith(p) for p in constants.AFFIRMATIVE_PHRASES
        ):
            return Intent.PENDING_ACCEPT
        if first in constants.NEGATIVE_WORDS or self._cancel.match(message.text):
            return Intent.PENDING_REJECT
        return None

    def _is_confirm(self, message: Message) -> bool:
        if self._confirm.search(message.text):
            return True
        return _is_short_answer(message, constants.AFFIRMATIVE_WORDS, constants.AFFIRMATIVE_PHRASES)

    def _is_cancel(self, message: Message) -> bool:
        if self._cancel.search(message.text):
            return True
        if len(message.words) == 1 and message.words[0] in constants.BARE_CANCEL_WORDS:
            return True
        return _is_short_answer(message, constants.NEGATIVE_WORDS)

    @staticmethod
    def _has_active_draft(draft: Optional[OrderDraft], intent: Intent) -> bool:
        if draft is None:
            return False
        if intent == Intent.CANCEL:
            return draft.has_lines or draft.has_pending
        return draft.has_lines
