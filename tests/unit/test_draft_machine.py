"""Unit tests for the order draft state machine."""
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from pedidobot.services.agent.draft_machine import (
    NotConfirmableError,
    NotConfirmableReason,
    OrderDraftStateMachine,
)
from pedidobot.services.agent.stages import DraftStage, ModificationAction, PendingAction
from pedidobot.services.agent.state import OrderDraft
from pedidobot.services.ordering.models import OrderLineItem

NOW = datetime(2026, 3, 14, 20, 0, tzinfo=timezone.utc)


def line(item_id, quantity, pending=False, name=None, price=7, category="Empanadas"):
    return OrderLineItem(
        item_id=item_id,
        item_name=name or f"Item {item_id}",
        quantity=quantity,
        unit_price=Decimal(price),
        confidence=1.0,
        category=category,
        quantity_pending=pending,
    )


@pytest.fixture
def machine():
    return OrderDraftStateMachine(None, "c1")


def quantities(machine):
    return [(l.item_id, l.quantity) for l in machine.draft.lines]


class TestLifecycle:
    """EMPTY -> ACCUMULATING -> CONFIRMED/CANCELLED -> EMPTY."""

    def test_starts_empty(self, machine):
        """Test a new machine has an empty draft."""
        assert machine.state == DraftStage.EMPTY
        assert machine.draft.conversation_id == "c1"

    def test_requires_conversation_id_without_draft(self):
        """Test a conversation id is needed to create a fresh draft."""
        with pytest.raises(ValueError):
            OrderDraftStateMachine(None)

    def test_does_not_mutate_input_draft(self):
        """Test the caller's draft is left untouched."""
        original = OrderDraft(conversation_id="c1", lines=[line("1", 2)])
        machine = OrderDraftStateMachine(original)

        machine.add_or_update([line("1", 3)])

        assert original.lines[0].quantity == 2
        assert machine.draft.lines[0].quantity == 5

    def test_add_moves_to_accumulating(self, machine):
        """Test adding lines starts accumulating."""
        machine.add_or_update([line("1", 2)])
        assert machine.state == DraftStage.ACCUMULATING

    def test_confirm_snapshots_and_resets(self, machine):
        """Test confirmation produces an order and empties the draft."""
        machine.add_or_update([line("1", 6), line("2", 6)])

        order = machine.confirm("ABC123", now=NOW, estimated_minutes=15)

        assert order.id == "ABC123"
        assert order.total == Decimal("84")
        assert order.created_at == NOW
        assert order.estimated_minutes == 15
        assert len(order.lines) == 2
        assert machine.state == DraftStage.EMPTY
        assert machine.last_stage == DraftStage.CONFIRMED

    def test_confirm_empty_rejected(self, machine):
        """Test an empty draft cannot be confirmed."""
        with pytest.raises(NotConfirmableError) as exc_info:
            machine.confirm("X")
        assert exc_info.value.reason == NotConfirmableReason.EMPTY

    def test_confirm_with_unquantified_line_rejected(self, machine):
        """Test a line with an assumed quantity blocks confirmation."""
        machine.add_or_update([line("1", 1, pending=True)])

        with pytest.raises(NotConfirmableError) as exc_info:
            machine.confirm("X")

        assert exc_info.value.reason == NotConfirmableReason.UNQUANTIFIED
        assert [l.item_id for l in exc_info.value.lines] == ["1"]
        assert machine.state == DraftStage.ACCUMULATING

    def test_cancel_resets(self, machine):
        """Test cancelling empties the draft."""
        machine.add_or_update([line("1", 2)])
        machine.cancel()

        assert machine.state == DraftStage.EMPTY
        assert machine.last_stage == DraftStage.CANCELLED

    def test_idle_expiry(self, machine):
        """Test inactivity beyond the timeout expires the draft."""
        machine.touch(NOW)
        timeout = timedelta(minutes=15)

        assert not machine.is_expired(NOW + timedelta(minutes=15), timeout)
        assert machine.is_expired(NOW + timedelta(minutes=16), timeout)


class TestModifications:
    """Adding, changing and removing lines."""

    def test_add_sums_quantities(self, machine):
        """Test adding an existing item increases its quantity."""
        machine.add_or_update([line("1", 2)])
        touched = machine.add_or_update([line("1", 3)])

        assert quantities(machine) == [("1", 5)]
        assert [l.quantity for l in touched] == [5]
        assert machine.draft.last_added_item_id == "1"

    def test_change_quantity_sets(self, machine):
        """Test CHANGE_QUANTITY replaces the quantity."""
        machine.add_or_update([line("1", 2)])
        machine.add_or_update([line("1", 3)], ModificationAction.CHANGE_QUANTITY)
        assert quantities(machine) == [("1", 3)]

    def test_stated_quantity_overrides_assumed(self, machine):
        """Test a real quantity replaces an assumed one instead of adding to it."""
        machine.add_or_update([line("1", 1, pending=True)])
        machine.add_or_update([line("1", 6)])

        assert quantities(machine) == [("1", 6)]
        assert not machine.draft.lines[0].quantity_pending

    def test_replace_all(self, machine):
        """Test REPLACE_ALL keeps only the incoming lines."""
        machine.add_or_update([line("1", 2), line("2", 2)])
        machine.add_or_update([line("3", 1)], ModificationAction.REPLACE_ALL)
        assert quantities(machine) == [("3", 1)]

    def test_remove_whole_line(self, machine):
        """Test removing a line entirely."""
        machine.add_or_update([line("1", 2), line("2", 3)])

        removed = machine.remove("2")

        assert removed.quantity == 3
        assert quantities(machine) == [("1", 2)]
        assert machine.draft.last_added_item_id == "1"

    def test_remove_part_of_line(self, machine):
        """Test removing fewer units than the line holds."""
        machine.add_or_update([line("1", 6)])

        removed = machine.remove("1", 2)

        assert removed.quantity == 2
        assert quantities(machine) == [("1", 4)]

    def test_remove_unknown_item(self, machine):
        """Test removing an item that is not in the draft does nothing."""
        assert machine.remove("9") is None


class TestPendingActions:
    """Staged replace/remove proposals."""

    def test_accept_replace(self, machine):
        """Test accepting a staged replace applies it."""
        machine.add_or_update([line("1", 2)])
        machine.propose_replace([line("2", 6)])

        assert machine.draft.has_pending
        assert quantities(machine) == [("1", 2)]

        action = machine.accept_pending()

        assert action == PendingAction.REPLACE_PROPOSED
        assert quantities(machine) == [("2", 6)]
        assert not machine.draft.has_pending

    def test_accept_remove(self, machine):
        """Test accepting a staged removal applies it."""
        machine.add_or_update([line("1", 2), line("2", 6)])
        machine.propose_remove([line("2", 6)])

        machine.accept_pending()

        assert quantities(machine) == [("1", 2)]

    def test_reject_keeps_lines(self, machine):
        """Test rejecting a proposal leaves the draft as it was."""
        machine.add_or_update([line("1", 2)])
        machine.propose_replace([line("2", 6)])

        machine.reject_pending()

        assert quantities(machine) == [("1", 2)]
        assert machine.draft.pending_action == PendingAction.NONE
        assert machine.draft.proposed_lines == []

    def test_empty_proposal_rejected(self, machine):
        """Test staging nothing is an error."""
        with pytest.raises(ValueError):
            machine.propose_remove([])

    def test_pending_only_draft_is_accumulating(self, machine):
        """Test a staged replace on an empty draft keeps the draft alive."""
        machine.propose_replace([line("2", 6)])
        assert machine.state == DraftStage.ACCUMULATING


class TestDraftInvariants:
    """Validation on the draft model itself."""

    def test_duplicate_item_ids_rejected(self):
        """Test a draft cannot hold two lines for the same item."""
        with pytest.raises(ValueError):
            OrderDraft(conversation_id="c1", lines=[line("1", 1), line("1", 2)])

    def test_pending_requires_lines(self):
        """Test a pending action without proposed lines is invalid."""
        with pytest.raises(ValueError):
            OrderDraft(conversation_id="c1", pending_action=PendingAction.REMOVE_PROPOSED)
