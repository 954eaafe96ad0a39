import logging
import re
import secrets
from decimal import Decimal
from typing import Iterable, List, Optional
from uuid import UUID

from tortoise import timezone
from tortoise.exceptions import DBConnectionError, OperationalError
from tortoise.transactions import in_transaction

from app.core import config
from app.core.errors import (
    ConcurrencyConflict,
    InvalidCode,
    NotFoundError,
    NotReadyForPickup,
    OrderNotFound,
    PaymentRequiredError,
    PermissionDeniedError,
    StoreUnavailable,
    ValidationError,
)
from app.core.identity import Identity, Role
from app.models.order import ACTIVE_STATUSES, ORDER_MODELS, Order, OrderStatus, SandboxOrder
from app.models.restaurant import MenuItem, Restaurant
from app.schemas.order import CartItem, OrderLine
from app.services import admin_service
from app.services import state_machine
from app.services.cart import Cart
from app.services.context import EngineContext
from app.services.state_machine import OrderEvent

log = logging.getLogger("order_service")

CENT = Decimal("0.01")
PICKUP_TIME_RE = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


def _as_uuid(value, what: str) -> UUID:
    try:
        return value if isinstance(value, UUID) else UUID(str(value))
    except ValueError:
        raise ValidationError(f"Malformed {what} id: {value!r}")


# ----------- Lookups -----------

async def find_order(order_id):
    """Production orders first, then test-mode orders. Returns None when absent."""
    try:
        order_uuid = UUID(str(order_id))
    except ValueError:
        return None
    for model in ORDER_MODELS:
        order = await model.get_or_none(id=order_uuid)
        if order:
            return order
    return None


async def get_order(order_id):
    order = await find_order(order_id)
    if not order:
        raise OrderNotFound(order_id)
    return order


async def list_orders(
    restaurant_id=None,
    customer_id: Optional[str] = None,
    status: Optional[OrderStatus] = None,
    include_test: bool = False,
) -> list:
    """Re-queries the store; newest first."""
    filters = {}
    if restaurant_id is not None:
        filters["restaurant_id"] = _as_uuid(restaurant_id, "restaurant")
    if customer_id is not None:
        filters["customer_id"] = customer_id
    if status is not None:
        filters["status"] = status

    models = ORDER_MODELS if include_test else (Order,)
    orders = []
    for model in models:
        orders.extend(await model.filter(**filters))
    return sorted(orders, key=lambda o: o.created_at, reverse=True)


# ----------- Order Factory -----------

async def generate_pickup_code(restaurant_id, length: Optional[int] = None, attempts: Optional[int] = None) -> str:
    """
    Uniform random numeric code without a leading zero (1000-9999 for 4 digits).
    Avoids codes held by the restaurant's still-active orders when it can;
    after ``attempts`` tries a colliding code is accepted.
    """
    length = length or config.PICKUP_CODE_LENGTH
    attempts = attempts or config.PICKUP_CODE_ATTEMPTS
    low = 10 ** (length - 1)

    active_codes = set()
    for model in ORDER_MODELS:
        codes = await model.filter(
            restaurant_id=restaurant_id, status__in=list(ACTIVE_STATUSES)
        ).values_list("pickup_code", flat=True)
        active_codes.update(codes)

    code = str(low + secrets.randbelow(9 * low))
    for _ in range(attempts - 1):
        if code not in active_codes:
            break
        code = str(low + secrets.randbelow(9 * low))
    else:
        if code in active_codes:
            log.warning(f"Pickup code {code} reused for restaurant {restaurant_id} after {attempts} attempts.")
    return code


def _check_lines(restaurant_id: str, items: Iterable[CartItem]) -> List[CartItem]:
    items = list(items)
    if not items:
        raise ValidationError("Order must contain items.")

    for item in items:
        if str(item.restaurant_id) != restaurant_id:
            raise ValidationError(
                "All items must come from the restaurant being ordered from.",
                details={"menu_item_id": item.menu_item_id, "restaurant_id": str(item.restaurant_id)},
            )
        if isinstance(item.quantity, bool) or not isinstance(item.quantity, int) or item.quantity < 1:
            raise ValidationError(f"Invalid quantity {item.quantity!r} for item {item.name}.")
    return items


async def _price_lines(restaurant_uuid: UUID, items: List[CartItem], total) -> List[OrderLine]:
    """
    Builds order lines from the stored menu rows. Names and prices sent by the
    client are ignored; every id must belong to ``restaurant_uuid``.
    """
    item_ids = {_as_uuid(item.menu_item_id, "menu item") for item in items}
    menu = {
        m.id: m for m in await MenuItem.filter(id__in=list(item_ids), restaurant_id=restaurant_uuid)
    }
    unknown = sorted(str(i) for i in item_ids if i not in menu)
    if unknown:
        raise ValidationError(
            "Some items are not on this restaurant's menu.",
            details={"menu_item_ids": unknown, "restaurant_id": str(restaurant_uuid)},
        )

    lines = []
    for item in items:
        menu_item = menu[_as_uuid(item.menu_item_id, "menu item")]
        lines.append(OrderLine(
            menu_item_id=str(menu_item.id),
            name=menu_item.name,
            unit_price=Decimal(str(menu_item.price)),
            quantity=item.quantity,
        ))

    computed = sum((l.unit_price * l.quantity for l in lines), Decimal("0")).quantize(CENT)
    try:
        presented = Decimal(str(total)).quantize(CENT)
    except ArithmeticError:
        raise ValidationError(f"Malformed order total: {total!r}")
    if presented != computed:
        raise ValidationError(
            f"Order total {presented} does not match the menu prices ({computed}).",
            details={"total": str(presented), "expected": str(computed)},
        )
    return lines


def _check_pickup_time(pickup_time: Optional[str]) -> Optional[str]:
    if pickup_time is None:
        return None
    pickup_time = str(pickup_time).strip()
    if not PICKUP_TIME_RE.match(pickup_time):
        raise ValidationError(f"Pickup time must be HH:MM, got {pickup_time!r}.")
    return pickup_time


async def place_order(
    ctx: EngineContext,
    restaurant_id,
    items: Iterable[CartItem],
    total,
    customer: Identity,
    test_mode: Optional[bool] = None,
    pickup_time: Optional[str] = None,
):
    """
    Persists a cart snapshot as a new ``pending`` order and returns it with
    its id and pickup code. Lines are priced from the restaurant's stored menu
    and validated before anything is written; the insert runs in one
    transaction so a store failure leaves no row.
    """
    if customer.role != Role.CUSTOMER:
        raise PermissionDeniedError("Only customers can place orders.")
    restaurant_uuid = _as_uuid(restaurant_id, "restaurant")
    items = _check_lines(str(restaurant_uuid), items)
    pickup_time = _check_pickup_time(pickup_time)

    try:
        restaurant = await Restaurant.get_or_none(id=restaurant_uuid)
        if not restaurant:
            raise NotFoundError(f"Restaurant {restaurant_uuid} not found.")
        if not restaurant.is_open_for_orders:
            raise ValidationError(f"Restaurant {restaurant.name} is not accepting orders.")

        lines = await _price_lines(restaurant_uuid, items, total)
        order_total = sum((l.unit_price * l.quantity for l in lines), Decimal("0")).quantize(CENT)

        if test_mode is None:
            test_mode = await admin_service.is_test_mode()
        model = SandboxOrder if test_mode else Order

        pickup_code = await generate_pickup_code(restaurant.id)

        async with in_transaction() as conn:
            order = await model.create(
                restaurant=restaurant,
                customer_id=customer.id,
                customer_name=customer.name or "",
                items=[l.to_record() for l in lines],
                total=order_total,
                status=OrderStatus.PENDING,
                pickup_code=pickup_code,
                pickup_time=pickup_time,
                paid=bool(test_mode),  # Test orders auto-pay
                is_test=bool(test_mode),
                ready_at=None,
                using_db=conn,
            )
    except (OperationalError, DBConnectionError) as e:
        log.error(f"Store failure placing order for {customer.id}: {e}")
        raise StoreUnavailable("Could not save the order. Please try again.") from e

    log.info(f"Order {order.id} placed for {customer.id} at {restaurant.name} (test={order.is_test}).")
    await ctx.change_feed.publish(model._meta.db_table, order.id)
    return order


async def checkout(ctx: EngineContext, cart: Cart, customer: Identity, test_mode: Optional[bool] = None,
                   pickup_time: Optional[str] = None):
    """Places the cart as an order; the cart is cleared only once the order exists."""
    if cart.is_empty:
        raise ValidationError("Your cart is empty.")
    order = await place_order(ctx, cart.restaurant_id, cart.items, cart.total(), customer,
                              test_mode=test_mode, pickup_time=pickup_time)
    cart.clear()
    return order


# ----------- Order State Machine -----------

async def owner_of(order) -> str:
    """Owner id of the order's restaurant, or "" when the restaurant is gone."""
    restaurant = await Restaurant.get_or_none(id=order.restaurant_id)
    return restaurant.owner_id if restaurant else ""


async def _apply(ctx: EngineContext, order, event: OrderEvent, patch: Optional[dict] = None,
                 notification: Optional[tuple] = None):
    """
    Conditional update keyed on the status we validated against. Zero rows
    means another actor got there first: ConcurrencyConflict, nothing written.
    """
    model = type(order)
    expected = OrderStatus(order.status)
    target = state_machine.target_status(event)

    values = dict(patch or {})
    if target is not None:
        values["status"] = target
    values["updated_at"] = timezone.now()

    try:
        updated = await model.filter(id=order.id, status=expected).update(**values)
    except (OperationalError, DBConnectionError) as e:
        log.error(f"Store failure applying {event.value} to order {order.id}: {e}")
        raise StoreUnavailable("Could not update the order. Please try again.") from e

    if not updated:
        log.warning(f"Conflict: order {order.id} is no longer {expected.value}; {event.value} not applied.")
        raise ConcurrencyConflict(
            "Someone else already handled this order. Refresh and try again.",
            details={"order_id": str(order.id), "expected": expected.value, "event": event.value},
        )

    fresh = await model.get(id=order.id)
    if target is not None:
        log.info(f"Status UPDATE: Order {order.id} {expected.value} -> {target.value}.")
        title, message, severity = notification or state_machine.STATUS_NOTIFICATIONS[target]
        ctx.notifications.notify(
            fresh.customer_id, title, message.format(code=fresh.pickup_code), severity, order_id=fresh.id
        )
    await ctx.change_feed.publish(model._meta.db_table, fresh.id)
    return fresh


async def _prepare(order_id, event: OrderEvent, actor: Optional[Identity]):
    order = await get_order(order_id)
    state_machine.ensure_can_transition(actor, event, order, await owner_of(order))
    state_machine.ensure_transition(order, event)
    return order


async def accept_order(ctx: EngineContext, order_id, actor: Identity):
    order = await _prepare(order_id, OrderEvent.ACCEPT, actor)
    patch = {"paid": True} if config.ACCEPT_MARKS_PAID else None
    return await _apply(ctx, order, OrderEvent.ACCEPT, patch)


async def decline_order(ctx: EngineContext, order_id, actor: Identity):
    order = await _prepare(order_id, OrderEvent.DECLINE, actor)
    return await _apply(ctx, order, OrderEvent.DECLINE)


async def mark_ready(ctx: EngineContext, order_id, actor: Identity):
    order = await _prepare(order_id, OrderEvent.MARK_READY, actor)
    if config.REQUIRE_PAYMENT_BEFORE_READY and not order.paid:
        raise PaymentRequiredError(
            "Mark the order paid before marking it ready.", details={"order_id": str(order.id)}
        )
    return await _apply(ctx, order, OrderEvent.MARK_READY, {"ready_at": timezone.now()})


async def cancel_order(ctx: EngineContext, order_id, actor: Optional[Identity] = None,
                       notification: Optional[tuple] = None):
    """Explicit cancellation; ``actor=None`` is the watchdog."""
    order = await _prepare(order_id, OrderEvent.CANCEL, actor)
    return await _apply(ctx, order, OrderEvent.CANCEL, notification=notification)


async def mark_paid(ctx: EngineContext, order_id, actor: Identity):
    """Payment is its own axis: status is untouched and no notification fires."""
    order = await _prepare(order_id, OrderEvent.MARK_PAID, actor)
    if order.paid:
        return order
    return await _apply(ctx, order, OrderEvent.MARK_PAID, {"paid": True})


# ----------- Pickup Verification -----------

async def verify_and_complete(ctx: EngineContext, order_id, presented_code: str, actor: Identity):
    """
    Completes a ``ready`` order when the presented code matches exactly.

    A wrong code leaves the order untouched, so the operator can retry. The
    code is never rotated: it only stops working because the order leaves
    ``ready``. Someone who sees the code and beats the real customer to the
    counter can still collect the order. The code is a convenience check at
    the counter, not authentication.
    """
    order = await find_order(order_id)
    if not order:
        raise OrderNotFound(order_id)
    state_machine.ensure_can_transition(actor, OrderEvent.COMPLETE, order, await owner_of(order))

    if order.status != OrderStatus.READY:
        if order.is_terminal:
            message = f"Order is already {OrderStatus(order.status).value} and can no longer be updated."
        else:
            message = f"Order is {OrderStatus(order.status).value}, not ready for pickup yet."
        raise NotReadyForPickup(message, details={"order_id": str(order.id), "status": OrderStatus(order.status).value})

    if (presented_code or "").strip() != order.pickup_code:
        log.info(f"Invalid pickup code presented for order {order.id}.")
        raise InvalidCode(order.id)

    return await _apply(ctx, order, OrderEvent.COMPLETE)
