"""Conversation enumerations."""
from enum import Enum


class Intent(str, Enum):
    """What a turn was about. Returned to the caller with every response."""

    GREETING = "greeting"
    OFF_TOPIC = "off_topic"
    ESCALATE = "escalate"
    PENDING_ACCEPT = "pending_accept"
    PENDING_REJECT = "pending_reject"
    CONFIRM = "confirm"
    CANCEL = "cancel"
    NO_ACTIVE_ORDER = "no_active_order"  # Confirm/cancel with nothing to act on
    STATUS = "status"
    SHOW_MENU = "show_menu"
    REMOVE = "remove"
    ORDER = "order"
    CLARIFICATION = "clarification"
    PENDING_CONFIRMATION = "pending_confirmation"  # Destructive change staged, waiting for yes/no
    NO_MATCH = "no_match"
    NO_MENU = "no_menu"
    ERROR = "error"

    def __str__(self) -> str:
        """Return the string value of the intent."""
        return self.value


class DraftStage(str, Enum):
    """Top-level draft states. Terminal states immediately become EMPTY."""

    EMPTY = "empty"
    ACCUMULATING = "accumulating"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"

    def __str__(self) -> str:
        return self.value


class PendingAction(str, Enum):
    """Staged destructive change awaiting a yes/no."""

    NONE = "none"
    REPLACE_PROPOSED = "replace_proposed"
    REMOVE_PROPOSED = "remove_proposed"

    def __str__(self) -> str:
        return self.value


class ModificationAction(str, Enum):
    """How incoming lines are applied to a draft."""

    ADD_ITEM = "add_item"
    REPLACE_ALL = "replace_all"
    REMOVE_ITEM = "remove_item"
    CHANGE_QUANTITY = "change_quantity"

    def __str__(self) -> str:
        return self.value


class CustomerTier(str, Enum):
    """Customer segment derived from order history."""

    NEW = "new"
    RETURNING = "returning"
    VIP = "vip"
    DORMANT = "dormant"

    def __str__(self) -> str:
        return self.value
