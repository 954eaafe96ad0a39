"""
Transition rules for the order lifecycle.

Pure and synchronous: this module only decides whether a move is legal and who
may make it. Applying the move (conditional update, notification, feed event)
lives in ``order_service``.

    pending  --accept-->     accepted --mark_ready--> ready --complete--> completed
    pending  --decline-->    declined
    pending|accepted|ready --cancel--> cancelled
"""
from enum import Enum
from typing import Dict, FrozenSet, Optional, Tuple

from app.core.errors import InvalidTransitionError, PermissionDeniedError
from app.core.identity import Identity, Role
from app.models.order import OrderStatus, TERMINAL_STATUSES, ACTIVE_STATUSES


class OrderEvent(str, Enum):
    ACCEPT = "accept"
    DECLINE = "decline"
    MARK_READY = "mark_ready"
    COMPLETE = "complete"
    CANCEL = "cancel"
    MARK_PAID = "mark_paid"


# event -> (allowed source statuses, target status); None target = status unchanged
TRANSITIONS: Dict[OrderEvent, Tuple[FrozenSet[OrderStatus], Optional[OrderStatus]]] = {
    OrderEvent.ACCEPT: (frozenset({OrderStatus.PENDING}), OrderStatus.ACCEPTED),
    OrderEvent.DECLINE: (frozenset({OrderStatus.PENDING}), OrderStatus.DECLINED),
    OrderEvent.MARK_READY: (frozenset({OrderStatus.ACCEPTED}), OrderStatus.READY),
    OrderEvent.COMPLETE: (frozenset({OrderStatus.READY}), OrderStatus.COMPLETED),
    OrderEvent.CANCEL: (ACTIVE_STATUSES, OrderStatus.CANCELLED),
    OrderEvent.MARK_PAID: (ACTIVE_STATUSES, None),
}

# Customer-facing message per status reached: (title, message, severity)
STATUS_NOTIFICATIONS = {
    OrderStatus.ACCEPTED: ("Order accepted", "Your order #{code} was accepted and is being prepared.", "success"),
    OrderStatus.DECLINED: ("Order declined", "Sorry, the restaurant declined your order #{code}.", "error"),
    OrderStatus.READY: ("Order ready", "Your order is ready! Show pickup code {code} at the counter.", "success"),
    OrderStatus.COMPLETED: ("Order picked up", "Order #{code} has been picked up. Enjoy your meal!", "info"),
    OrderStatus.CANCELLED: ("Order cancelled", "Your order #{code} was cancelled.", "warning"),
}


def target_status(event: OrderEvent) -> Optional[OrderStatus]:
    return TRANSITIONS[event][1]


def allowed_sources(event: OrderEvent) -> FrozenSet[OrderStatus]:
    return TRANSITIONS[event][0]


def can_transition(current: OrderStatus, event: OrderEvent) -> bool:
    return current in allowed_sources(event)


def ensure_transition(order, event: OrderEvent) -> Optional[OrderStatus]:
    """Returns the target status, or raises InvalidTransitionError without touching the order."""
    current = OrderStatus(order.status)
    if current in TERMINAL_STATUSES:
        raise InvalidTransitionError(
            f"Order is already {current.value} and can no longer be updated.",
            details={"order_id": str(order.id), "status": current.value, "event": event.value},
        )
    if not can_transition(current, event):
        raise InvalidTransitionError(
            f"Cannot {event.value.replace('_', ' ')} an order that is {current.value}.",
            details={"order_id": str(order.id), "status": current.value, "event": event.value},
        )
    return target_status(event)


def ensure_can_transition(actor: Optional[Identity], event: OrderEvent, order, restaurant_owner_id: str) -> None:
    """
    Single authorization guard for order mutations.

    ``actor=None`` is the system itself (the watchdog), which may only cancel.
    Admins may do anything. The owning restaurant may drive its own orders.
    The ordering customer may only mark their own order paid.
    """
    if actor is None:
        if event == OrderEvent.CANCEL:
            return
        raise PermissionDeniedError(f"The system cannot {event.value} orders.")

    if actor.role == Role.ADMIN:
        return

    if actor.role == Role.RESTAURANT_OWNER and actor.id == restaurant_owner_id:
        return

    if actor.role == Role.CUSTOMER and event == OrderEvent.MARK_PAID and actor.id == order.customer_id:
        return

    raise PermissionDeniedError(
        "Only the restaurant that owns this order can update it.",
        details={"order_id": str(order.id), "event": event.value, "actor": actor.id},
    )
