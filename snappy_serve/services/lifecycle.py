"""
Order Lifecycle

    PENDING ──▶ PREPARING ──▶ READY ──▶ BILL_REQUESTED ──▶ COMPLETED
                                 │                            ▲
                                 └────────────────────────────┘

COMPLETED is terminal. Any transition not in the table is rejected.
Entering a new status stamps ``updatedAt``; nothing else happens (no
notification is tied to status changes).
"""

import enum
from typing import TYPE_CHECKING, Any

from snappy_serve.core.errors import InvalidTransition, ValidationFailed

if TYPE_CHECKING:
    from snappy_serve.schemas import Order


class OrderStatus(str, enum.Enum):
    """Order status workflow."""
    PENDING = "PENDING"
    PREPARING = "PREPARING"
    READY = "READY"
    BILL_REQUESTED = "BILL_REQUESTED"
    COMPLETED = "COMPLETED"


TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.PREPARING}),
    OrderStatus.PREPARING: frozenset({OrderStatus.READY}),
    OrderStatus.READY: frozenset({OrderStatus.BILL_REQUESTED, OrderStatus.COMPLETED}),
    OrderStatus.BILL_REQUESTED: frozenset({OrderStatus.COMPLETED}),
    OrderStatus.COMPLETED: frozenset(),
}

BILLABLE = frozenset({OrderStatus.READY, OrderStatus.BILL_REQUESTED})


def parse_status(value: Any) -> OrderStatus:
    """Parse a client status string (case-insensitive)."""
    if isinstance(value, OrderStatus):
        return value
    try:
        return OrderStatus(str(value).strip().upper())
    except ValueError:
        valid = [s.value for s in OrderStatus]
        raise ValidationFailed(f"Invalid status '{value}'. Options: {valid}")


def can_transition(current: OrderStatus, target: OrderStatus) -> bool:
    return target in TRANSITIONS[current]


def is_terminal(status: OrderStatus) -> bool:
    return not TRANSITIONS[status]


def is_billable(status: OrderStatus) -> bool:
    """Bills may only be generated for READY or BILL_REQUESTED orders."""
    return status in BILLABLE


def advance(order: "Order", target: OrderStatus, now: int) -> "Order":
    """
    Move an order to ``target``.

    Args:
        order: Current order record (left untouched)
        target: Requested status
        now: Current time in epoch milliseconds

    Returns:
        A copy of the order with the new status and updatedAt

    Raises:
        InvalidTransition: If the lifecycle forbids the change
    """
    if not can_transition(order.status, target):
        raise InvalidTransition(order.status.value, target.value)
    # updatedAt never moves backwards, even if the clock does
    updated_at = max(now, order.updated_at or 0, order.created_at)
    return order.model_copy(update={"status": target, "updated_at": updated_at}, deep=True)
