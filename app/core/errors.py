"""
Domain exceptions raised by the order engine.

Every error carries a stable ``code`` and the HTTP status the API layer maps it
to, so routes never have to guess how to present a failure.
"""
from typing import Optional


class OrderEngineError(Exception):
    code = "order_engine_error"
    http_status = 400

    def __init__(self, message: str, *, details: Optional[dict] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ValidationError(OrderEngineError):
    """Bad input (empty cart, restaurant mismatch, malformed quantity). Nothing was persisted."""
    code = "validation_error"
    http_status = 400


class CartConflictError(ValidationError):
    """Item from a second restaurant added without confirming a new basket."""
    code = "cart_conflict"
    http_status = 409

    def __init__(self, current_restaurant_id: str, requested_restaurant_id: str):
        super().__init__(
            "Start a new basket? You can only order from one restaurant at a time.",
            details={
                "current_restaurant_id": current_restaurant_id,
                "requested_restaurant_id": requested_restaurant_id,
            },
        )


class NotFoundError(OrderEngineError):
    code = "not_found"
    http_status = 404


class OrderNotFound(NotFoundError):
    code = "order_not_found"

    def __init__(self, order_id):
        super().__init__(f"Order {order_id} not found.", details={"order_id": str(order_id)})


class PermissionDeniedError(OrderEngineError):
    code = "permission_denied"
    http_status = 403


class InvalidTransitionError(OrderEngineError):
    code = "invalid_transition"
    http_status = 409


class NotReadyForPickup(InvalidTransitionError):
    code = "not_ready_for_pickup"


class PaymentRequiredError(InvalidTransitionError):
    code = "payment_required"


class InvalidCode(OrderEngineError):
    code = "invalid_pickup_code"
    http_status = 422

    def __init__(self, order_id):
        super().__init__(
            "Invalid pickup code. Please ask the customer to check and try again.",
            details={"order_id": str(order_id)},
        )


class ConcurrencyConflict(OrderEngineError):
    """The conditional update matched no row: another actor changed the order first."""
    code = "concurrency_conflict"
    http_status = 409


class StoreUnavailable(OrderEngineError):
    code = "store_unavailable"
    http_status = 503
