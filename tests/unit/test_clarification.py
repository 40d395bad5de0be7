"""Unit tests for the clarification policy."""
import pytest

from pedidobot.services.agent.state import OrderDraft
from pedidobot.services.ordering.clarification import ClarificationPolicy, DecisionKind
from pedidobot.services.ordering.models import OrderLineItem, ProductCandidate, QuantityToken
from pedidobot.services.ordering.quantities import DEFAULT_TOKEN


@pytest.fixture
def policy():
    return ClarificationPolicy()


def candidate(menu, item_id, confidence):
    return ProductCandidate(item=menu.get_item(item_id), confidence=confidence)


def draft_with(menu, *items):
    lines = [OrderLineItem.from_menu_item(menu.get_item(item_id), qty) for item_id, qty in items]
    return OrderDraft(conversation_id="c1", lines=lines)


class TestAdditiveOrders:
    """Candidates for items being added."""

    def test_no_candidates(self, policy):
        """Test an empty candidate list is a no-match."""
        assert policy.review_candidates([]).kind == DecisionKind.NO_MATCH

    def test_single_candidate_accepted(self, policy, test_menu):
        """Test one candidate is accepted even when weak."""
        decision = policy.review_candidates([candidate(test_menu, "7", 0.5)])
        assert decision.kind == DecisionKind.ACCEPT

    def test_strong_candidates_prune_weak(self, policy, test_menu):
        """Test weak candidates are dropped when a strong one exists."""
        decision = policy.review_candidates([candidate(test_menu, "2", 1.0), candidate(test_menu, "1", 0.6)])

        assert decision.kind == DecisionKind.ACCEPT
        assert [c.item.id for c in decision.candidates] == ["2"]

    def test_equal_weak_candidates_ask(self, policy, test_menu):
        """Test tied weak candidates produce a flavor question."""
        decision = policy.review_candidates([candidate(test_menu, "1", 0.6), candidate(test_menu, "2", 0.6)])

        assert decision.kind == DecisionKind.ASK
        assert decision.options == ["Empanada de carne", "Empanada de pollo"]
        assert decision.question.startswith("¿De qué sabor?")
        assert "• Empanada de pollo" in decision.question

    def test_clear_weak_winner_accepted(self, policy, test_menu):
        """Test a weak candidate well ahead of the rest is accepted."""
        decision = policy.review_candidates([candidate(test_menu, "1", 0.45), candidate(test_menu, "7", 0.6)])

        assert decision.kind == DecisionKind.ACCEPT
        assert [c.item.id for c in decision.candidates] == ["7"]

    def test_multi_flavor_weak_candidates_ask(self, policy, test_menu):
        """Test weak candidates in a flavor list always ask."""
        decision = policy.review_candidates(
            [candidate(test_menu, "1", 0.45), candidate(test_menu, "2", 0.6)], multi_flavor=True
        )
        assert decision.kind == DecisionKind.ASK


class TestDestructiveChanges:
    """Replace and remove requests."""

    def test_replace_always_staged(self, policy, test_menu):
        """Test replacing the order is always confirmed first."""
        lines = [OrderLineItem.from_menu_item(test_menu.get_item("2"), 6)]

        decision = policy.review_replace(lines)

        assert decision.kind == DecisionKind.STAGE
        assert decision.lines == lines
        assert "6x Empanada de pollo" in decision.question

    def test_remove_strong_match_accepted(self, policy, test_menu):
        """Test a clearly identified line is removed without asking."""
        draft = draft_with(test_menu, ("1", 6), ("2", 6))

        decision = policy.review_remove(draft, [candidate(test_menu, "2", 1.0)], [DEFAULT_TOKEN])

        assert decision.kind == DecisionKind.ACCEPT
        assert [(l.item_id, l.quantity) for l in decision.lines] == [("2", 6)]

    def test_remove_partial_quantity(self, policy, test_menu):
        """Test an explicit quantity removes only part of the line."""
        draft = draft_with(test_menu, ("1", 6))
        quantity = QuantityToken(value=2, confidence=0.9, source_pattern="digits")

        decision = policy.review_remove(draft, [candidate(test_menu, "1", 1.0)], [quantity])

        assert [(l.item_id, l.quantity) for l in decision.lines] == [("1", 2)]

    def test_remove_weak_single_candidate_staged(self, policy, test_menu):
        """Test a weakly identified line is staged for yes/no."""
        draft = draft_with(test_menu, ("1", 6), ("2", 6))

        decision = policy.review_remove(draft, [candidate(test_menu, "1", 0.6)])

        assert decision.kind == DecisionKind.STAGE
        assert "Respondé *sí* o *no*" in decision.question

    def test_remove_only_line_staged(self, policy, test_menu):
        """Test 'sacalo' with a single-line draft proposes removing that line."""
        draft = draft_with(test_menu, ("5", 1))

        decision = policy.review_remove(draft, [])

        assert decision.kind == DecisionKind.STAGE
        assert [l.item_id for l in decision.lines] == ["5"]

    def test_remove_ambiguous_asks(self, policy, test_menu):
        """Test an unidentifiable removal lists the draft."""
        draft = draft_with(test_menu, ("1", 6), ("2", 6))

        decision = policy.review_remove(draft, [])

        assert decision.kind == DecisionKind.ASK
        assert decision.options == ["Empanada de carne", "Empanada de pollo"]
        assert "¿Qué item querés quitar específicamente?" in decision.question


class TestSuggestions:
    """Alternatives offered when nothing matched."""

    def test_related_items_suggested(self, policy, test_menu):
        """Test items loosely related to the message come first."""
        suggestions = policy.suggest_alternatives("tenes pizzetas?", test_menu)
        assert {item.id for item in suggestions} == {"5", "6"}

    def test_falls_back_to_first_items(self, policy, test_menu):
        """Test unrelated text still gets a few suggestions."""
        suggestions = policy.suggest_alternatives("sushi", test_menu)
        assert [item.id for item in suggestions] == ["1", "2", "3"]

    def test_no_popular_items_when_asked_not_to(self, policy, test_menu):
        """Test unrelated text gets nothing when the first-items fallback is off."""
        assert policy.suggest_alternatives("sushi", test_menu, popular_fallback=False) == []
