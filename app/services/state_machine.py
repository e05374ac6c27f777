"""
Order and Preorder State Machines

All order and preorder status changes go through this module. Each workflow
is a plain transition table: current_status -> [allowed next statuses].
"""

from typing import List, Dict

from app.core.exceptions import InvalidStateTransitionError
from app.models.order import OrderStatus
from app.models.preorder import PreorderStatus


# =============================================================================
# TRANSITION RULES
# =============================================================================

ORDER_TRANSITIONS: Dict[str, List[str]] = {
    OrderStatus.PENDING.value: [
        OrderStatus.CONFIRMED.value,
        OrderStatus.CANCELLED.value,
    ],
    OrderStatus.CONFIRMED.value: [
        OrderStatus.PROCESSING.value,
        OrderStatus.CANCELLED.value,
    ],
    OrderStatus.PROCESSING.value: [
        OrderStatus.SHIPPED.value,
    ],
    OrderStatus.SHIPPED.value: [
        OrderStatus.DELIVERED.value,
    ],
    OrderStatus.DELIVERED.value: [],    # Terminal
    OrderStatus.CANCELLED.value: [],    # Terminal
}

PREORDER_TRANSITIONS: Dict[str, List[str]] = {
    PreorderStatus.PENDING.value: [
        PreorderStatus.CONFIRMED.value,
        PreorderStatus.CANCELLED.value,
        PreorderStatus.EXPIRED.value,
    ],
    PreorderStatus.CONFIRMED.value: [
        PreorderStatus.READY.value,
        PreorderStatus.CANCELLED.value,
    ],
    PreorderStatus.READY.value: [
        PreorderStatus.SHIPPED.value,
        PreorderStatus.CANCELLED.value,
    ],
    PreorderStatus.SHIPPED.value: [
        PreorderStatus.DELIVERED.value,
    ],
    PreorderStatus.DELIVERED.value: [],  # Terminal
    PreorderStatus.CANCELLED.value: [],  # Terminal
    PreorderStatus.EXPIRED.value: [],    # Terminal
}

_TABLES: Dict[str, Dict[str, List[str]]] = {
    "order": ORDER_TRANSITIONS,
    "preorder": PREORDER_TRANSITIONS,
}


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def _table(entity: str) -> Dict[str, List[str]]:
    try:
        return _TABLES[entity]
    except KeyError:
        raise ValueError(f"Unknown workflow: {entity}")


def can_transition(entity: str, current_status: str, new_status: str) -> bool:
    """Check if a transition is allowed."""
    return new_status in _table(entity).get(current_status, [])


def get_allowed_transitions(entity: str, current_status: str) -> List[str]:
    """Get list of statuses that can be transitioned to from current status."""
    return list(_table(entity).get(current_status, []))


def is_terminal(entity: str, status: str) -> bool:
    """Is this a terminal (final) state?"""
    return not _table(entity).get(status)


def validate_transition(entity: str, current_status: str, new_status: str) -> None:
    """
    Validate a status transition. Raises InvalidStateTransitionError if invalid.

    Requesting the current status again is not a transition and is rejected.
    """
    if current_status == new_status or not can_transition(entity, current_status, new_status):
        raise InvalidStateTransitionError(
            entity,
            current_status,
            new_status,
            get_allowed_transitions(entity, current_status),
        )
