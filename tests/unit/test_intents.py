"""Unit tests for rule-based intent classification."""
import pytest

from pedidobot.services.agent.intents import DialogueIntentClassifier
from pedidobot.services.agent.stages import Intent, ModificationAction, PendingAction
from pedidobot.services.agent.state import OrderDraft
from pedidobot.services.ordering.models import OrderLineItem


@pytest.fixture
def classifier():
    return DialogueIntentClassifier()


@pytest.fixture
def draft():
    line = OrderLineItem(item_id="1", item_name="Empanada de carne", quantity=2, unit_price=7)
    return OrderDraft(conversation_id="c1", lines=[line])


@pytest.fixture
def pending_draft(draft):
    proposed = OrderLineItem(item_id="2", item_name="Empanada de pollo", quantity=6, unit_price=7)
    return draft.model_copy(
        update={"pending_action": PendingAction.REPLACE_PROPOSED, "proposed_lines": [proposed]}
    )


class TestRuleOrder:
    """First matching rule wins."""

    @pytest.mark.parametrize(
        "text,intent",
        [
            ("hola", Intent.GREETING),
            ("Buenas noches!", Intent.GREETING),
            ("quién gana las elecciones?", Intent.OFF_TOPIC),
            ("quiero hablar con el encargado", Intent.ESCALATE),
            ("qué tienen?", Intent.SHOW_MENU),
            ("mandame el menú", Intent.SHOW_MENU),
            ("2 empanadas de carne", Intent.ORDER),
        ],
    )
    def test_classify(self, classifier, text, intent):
        """Test each rule on a typical message."""
        assert classifier.classify(text).intent == intent

    def test_off_topic_outranks_greeting(self, classifier):
        """Test off-topic keywords win over a leading greeting."""
        assert classifier.classify("hola, viste el futbol?").intent == Intent.OFF_TOPIC

    def test_custom_keywords(self):
        """Test keyword lists can be configured."""
        classifier = DialogueIntentClassifier(off_topic_keywords=["bitcoin"], escalation_keywords=[])
        assert classifier.classify("compran bitcoin?").intent == Intent.OFF_TOPIC
        assert classifier.classify("quiero un humano").intent == Intent.ORDER


class TestConfirmAndCancel:
    """Confirm/cancel depend on whether there is an active draft."""

    def test_confirm_without_draft(self, classifier):
        """Test confirming with nothing to confirm."""
        match = classifier.classify("confirmar")

        assert match.intent == Intent.NO_ACTIVE_ORDER
        assert match.rule == "confirm"

    def test_confirm_with_draft(self, classifier, draft):
        """Test explicit and short confirmations."""
        assert classifier.classify("confirmar", draft).intent == Intent.CONFIRM
        assert classifier.classify("dale", draft).intent == Intent.CONFIRM
        assert classifier.classify("sí, así está bien", draft).intent == Intent.CONFIRM

    def test_affirmative_inside_order_is_not_confirm(self, classifier, draft):
        """Test 'dale' followed by more items is an order."""
        assert classifier.classify("dale, sumale 2 de pollo", draft).intent == Intent.ORDER

    def test_cancel_with_draft(self, classifier, draft):
        """Test cancellation phrases."""
        assert classifier.classify("cancelar", draft).intent == Intent.CANCEL
        assert classifier.classify("olvidalo", draft).intent == Intent.CANCEL
        assert classifier.classify("borrar", draft).intent == Intent.CANCEL

    def test_cancel_without_draft(self, classifier):
        """Test cancelling with nothing to cancel."""
        match = classifier.classify("cancelar")

        assert match.intent == Intent.NO_ACTIVE_ORDER
        assert match.rule == "cancel"


class TestPendingAnswers:
    """Yes/no answers to a staged change."""

    def test_yes_accepts(self, classifier, pending_draft):
        """Test an affirmative first word accepts the proposal."""
        assert classifier.classify("sí", pending_draft).intent == Intent.PENDING_ACCEPT
        assert classifier.classify("dale, cambialo", pending_draft).intent == Intent.PENDING_ACCEPT

    def test_no_rejects(self, classifier, pending_draft):
        """Test a negative first word rejects the proposal."""
        assert classifier.classify("no", pending_draft).intent == Intent.PENDING_REJECT
        assert classifier.classify("no, dejalo así", pending_draft).intent == Intent.PENDING_REJECT

    def test_other_message_discards_pending(self, classifier, pending_draft):
        """Test an unrelated message drops the proposal and is classified normally."""
        match = classifier.classify("agregá una gaseosa", pending_draft)

        assert match.intent == Intent.ORDER
        assert match.discard_pending

    def test_greeting_before_pending(self, classifier, pending_draft):
        """Test a greeting is still a greeting while something is staged."""
        assert classifier.classify("hola", pending_draft).intent == Intent.GREETING


class TestModificationAction:
    """How an order message should be applied."""

    def test_add_is_default(self, classifier):
        """Test plain orders add."""
        assert classifier.classify("2 de pollo").action == ModificationAction.ADD_ITEM

    def test_replace_all(self, classifier, draft):
        """Test 'solo' asks to replace the whole order."""
        assert classifier.classify("mejor solo media de pollo", draft).action == ModificationAction.REPLACE_ALL

    def test_change_quantity(self, classifier, draft):
        """Test 'que sean' sets the quantity."""
        assert classifier.classify("que sean 3", draft).action == ModificationAction.CHANGE_QUANTITY

    def test_remove(self, classifier, draft):
        """Test removal verbs."""
        match = classifier.classify("sacá la de carne", draft)

        assert match.intent == Intent.REMOVE
        assert match.action == ModificationAction.REMOVE_ITEM

    def test_status(self, classifier, draft):
        """Test order status questions."""
        assert classifier.classify("cuánto es el total?", draft).intent == Intent.STATUS
