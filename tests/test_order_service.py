import asyncio
import pytest
from decimal import Decimal
from unittest.mock import MagicMock, patch

from tortoise.exceptions import OperationalError

from app.core import config
from app.core.errors import (
    ConcurrencyConflict,
    InvalidTransitionError,
    NotFoundError,
    PaymentRequiredError,
    PermissionDeniedError,
    StoreUnavailable,
    ValidationError,
)
from app.models.order import Order, OrderStatus, SandboxOrder
from app.schemas.order import CartItem
from app.services import order_service
from app.services.cart import Cart


class FailingTransaction:
    """Stands in for in_transaction() when the store is down."""
    async def __aenter__(self):
        raise OperationalError("connection refused")
    async def __aexit__(self, exc_type, exc_val, exc_tb):
        pass


# --- Order Factory ---

async def test_checkout_creates_pending_order_snapshot(engine, restaurant, burger, customer):
    cart = Cart()
    cart.add_item(burger)
    cart.add_item(burger)

    order = await order_service.checkout(engine, cart, customer)

    assert order.status == OrderStatus.PENDING
    assert order.paid is False
    assert order.is_test is False
    assert order.total == Decimal("17.00")
    assert order.ready_at is None
    assert len(order.pickup_code) == 4 and order.pickup_code.isdigit()
    assert order.items == [
        {"menu_item_id": str(burger.id), "name": "Campus Burger", "unit_price": "8.50", "quantity": 2}
    ]
    assert cart.is_empty


async def test_placed_order_survives_menu_price_change(engine, place, burger):
    order = await place()

    burger.price = Decimal("99.00")
    await burger.save()
    await burger.delete()

    stored = await order_service.get_order(order.id)
    assert stored.total == Decimal("17.00")
    assert stored.items[0]["unit_price"] == "8.50"


async def test_empty_order_rejected(engine, restaurant, customer):
    with pytest.raises(ValidationError):
        await order_service.place_order(engine, restaurant.id, [], Decimal("0"), customer)
    assert await Order.all().count() == 0


async def test_items_from_another_restaurant_rejected(engine, restaurant, wrap, customer):
    items = [CartItem.from_menu_item(wrap)]
    with pytest.raises(ValidationError):
        await order_service.place_order(engine, restaurant.id, items, Decimal("7.00"), customer)
    assert await Order.all().count() == 0


async def test_total_must_match_items(engine, restaurant, burger, customer):
    items = [CartItem.from_menu_item(burger, quantity=2)]
    with pytest.raises(ValidationError):
        await order_service.place_order(engine, restaurant.id, items, Decimal("1.00"), customer)


async def test_zero_quantity_rejected(engine, restaurant, burger, customer):
    items = [CartItem.from_menu_item(burger, quantity=0)]
    with pytest.raises(ValidationError):
        await order_service.place_order(engine, restaurant.id, items, Decimal("0"), customer)


async def test_lines_are_priced_from_the_stored_menu(engine, restaurant, burger, customer):
    forged = CartItem.from_menu_item(burger, quantity=2).model_copy(update={"name": "Free Lunch"})

    order = await order_service.place_order(engine, restaurant.id, [forged], Decimal("17.00"), customer)

    assert order.items[0]["name"] == "Campus Burger"
    assert order.items[0]["unit_price"] == "8.50"


async def test_client_price_is_not_trusted(engine, restaurant, burger, customer):
    cheap = CartItem.from_menu_item(burger, quantity=2).model_copy(update={"price": Decimal("0.01")})

    with pytest.raises(ValidationError):
        await order_service.place_order(engine, restaurant.id, [cheap], Decimal("0.02"), customer)
    assert await Order.all().count() == 0


async def test_item_relabelled_with_another_restaurant_rejected(engine, restaurant, wrap, customer):
    relabelled = CartItem.from_menu_item(wrap).model_copy(
        update={"restaurant_id": str(restaurant.id), "price": Decimal("0.01")}
    )

    with pytest.raises(ValidationError) as excinfo:
        await order_service.place_order(engine, restaurant.id, [relabelled], Decimal("0.01"), customer)
    assert excinfo.value.details["menu_item_ids"] == [str(wrap.id)]
    assert await Order.all().count() == 0


async def test_only_customers_place_orders(engine, restaurant, burger, owner):
    items = [CartItem.from_menu_item(burger)]
    with pytest.raises(PermissionDeniedError):
        await order_service.place_order(engine, restaurant.id, items, Decimal("8.50"), owner)


async def test_pickup_time_is_stored(engine, restaurant, burger, customer):
    cart = Cart()
    cart.add_item(burger)

    order = await order_service.checkout(engine, cart, customer, pickup_time="12:30")

    assert (await order_service.get_order(order.id)).pickup_time == "12:30"


@pytest.mark.parametrize("bad_time", ["noon", "25:00", "12:5", "12:60"])
async def test_malformed_pickup_time_rejected(engine, restaurant, burger, customer, bad_time):
    cart = Cart()
    cart.add_item(burger)

    with pytest.raises(ValidationError):
        await order_service.checkout(engine, cart, customer, pickup_time=bad_time)
    assert not cart.is_empty


async def test_unknown_restaurant_rejected(engine, db, customer):
    missing = "00000000-0000-0000-0000-000000000000"
    items = [CartItem(menu_item_id="x", restaurant_id=missing, name="Ghost", price=Decimal("1"), quantity=1)]
    with pytest.raises(NotFoundError):
        await order_service.place_order(engine, missing, items, Decimal("1"), customer)


async def test_unverified_restaurant_cannot_take_orders(engine, restaurant, burger, customer):
    restaurant.verified = False
    await restaurant.save()
    cart = Cart()
    cart.add_item(burger)

    with pytest.raises(ValidationError):
        await order_service.checkout(engine, cart, customer)
    assert not cart.is_empty


async def test_store_failure_keeps_cart_and_leaves_no_order(engine, restaurant, burger, customer):
    cart = Cart()
    cart.add_item(burger)

    with patch("app.services.order_service.in_transaction", MagicMock(return_value=FailingTransaction())):
        with pytest.raises(StoreUnavailable):
            await order_service.checkout(engine, cart, customer)

    assert cart.item_count() == 1
    assert await Order.all().count() == 0


async def test_test_mode_orders_are_paid_and_stored_separately(engine, place):
    order = await place(test_mode=True)

    assert isinstance(order, SandboxOrder)
    assert order.paid is True
    assert order.is_test is True
    assert await Order.all().count() == 0
    assert (await order_service.find_order(order.id)).id == order.id


async def test_pickup_code_avoids_active_codes(restaurant, monkeypatch):
    # Draws map to 1000 + n
    draws = iter([0, 0, 0, 1])
    monkeypatch.setattr(order_service.secrets, "randbelow", lambda n: next(draws))
    await Order.create(restaurant=restaurant, customer_id="c", items=[], total=Decimal("1"),
                       pickup_code="1000", status=OrderStatus.READY)

    code = await order_service.generate_pickup_code(restaurant.id, length=4, attempts=5)

    assert code == "1001"


async def test_pickup_code_ignores_finished_orders(restaurant, monkeypatch):
    monkeypatch.setattr(order_service.secrets, "randbelow", lambda n: 0)
    await Order.create(restaurant=restaurant, customer_id="c", items=[], total=Decimal("1"),
                       pickup_code="1000", status=OrderStatus.COMPLETED)

    assert await order_service.generate_pickup_code(restaurant.id, length=4) == "1000"


async def test_five_digit_codes(restaurant):
    code = await order_service.generate_pickup_code(restaurant.id, length=5)
    assert len(code) == 5 and 10000 <= int(code) <= 99999


# --- State transitions ---

async def test_full_lifecycle_notifies_once_per_status_change(engine, place, owner, customer):
    order = await place()
    code = order.pickup_code

    order = await order_service.accept_order(engine, order.id, owner)
    assert order.status == OrderStatus.ACCEPTED
    order = await order_service.mark_ready(engine, order.id, owner)
    assert order.status == OrderStatus.READY
    assert order.ready_at is not None
    order = await order_service.verify_and_complete(engine, order.id, code, owner)
    assert order.status == OrderStatus.COMPLETED
    assert order.pickup_code == code

    titles = [n.title for n in reversed(engine.notifications.for_user(customer.id))]
    assert titles == ["Order accepted", "Order ready", "Order picked up"]


async def test_declined_order_cannot_be_marked_ready(engine, place, owner):
    order = await place()
    order = await order_service.decline_order(engine, order.id, owner)
    assert order.status == OrderStatus.DECLINED

    with pytest.raises(InvalidTransitionError):
        await order_service.mark_ready(engine, order.id, owner)
    assert (await order_service.get_order(order.id)).status == OrderStatus.DECLINED


async def test_ready_requires_accepted(engine, place, owner):
    order = await place()
    with pytest.raises(InvalidTransitionError):
        await order_service.mark_ready(engine, order.id, owner)
    stored = await order_service.get_order(order.id)
    assert stored.status == OrderStatus.PENDING
    assert stored.ready_at is None


async def test_only_owning_restaurant_may_accept(engine, place, other_owner, customer):
    order = await place()
    with pytest.raises(PermissionDeniedError):
        await order_service.accept_order(engine, order.id, other_owner)
    with pytest.raises(PermissionDeniedError):
        await order_service.accept_order(engine, order.id, customer)
    assert (await order_service.get_order(order.id)).status == OrderStatus.PENDING


async def test_mark_paid_is_independent_and_silent(engine, place, customer):
    order = await place()

    order = await order_service.mark_paid(engine, order.id, customer)

    assert order.paid is True
    assert order.status == OrderStatus.PENDING
    assert engine.notifications.for_user(customer.id) == []


async def test_accept_does_not_mark_paid_by_default(engine, place, owner):
    order = await place()
    order = await order_service.accept_order(engine, order.id, owner)
    assert order.paid is False


async def test_accept_can_be_configured_to_mark_paid(engine, place, owner, monkeypatch):
    monkeypatch.setattr(config, "ACCEPT_MARKS_PAID", True)
    order = await place()
    order = await order_service.accept_order(engine, order.id, owner)
    assert order.paid is True


async def test_ready_can_require_payment(engine, place, owner, monkeypatch):
    monkeypatch.setattr(config, "REQUIRE_PAYMENT_BEFORE_READY", True)
    order = await place()
    await order_service.accept_order(engine, order.id, owner)

    with pytest.raises(PaymentRequiredError):
        await order_service.mark_ready(engine, order.id, owner)

    await order_service.mark_paid(engine, order.id, owner)
    order = await order_service.mark_ready(engine, order.id, owner)
    assert order.status == OrderStatus.READY


async def test_cancel_from_terminal_state_rejected(engine, place, owner, admin):
    order = await place()
    await order_service.cancel_order(engine, order.id, admin)

    with pytest.raises(InvalidTransitionError) as excinfo:
        await order_service.cancel_order(engine, order.id, owner)
    assert "no longer be updated" in excinfo.value.message


async def test_concurrent_accept_and_decline_exactly_one_wins(engine, place, owner):
    order = await place()

    results = await asyncio.gather(
        order_service.accept_order(engine, order.id, owner),
        order_service.decline_order(engine, order.id, owner),
        return_exceptions=True,
    )

    failures = [r for r in results if isinstance(r, Exception)]
    successes = [r for r in results if not isinstance(r, Exception)]
    assert len(successes) == 1
    assert len(failures) == 1
    assert isinstance(failures[0], (ConcurrencyConflict, InvalidTransitionError))
    assert (await order_service.get_order(order.id)).status == successes[0].status


async def test_stale_read_loses_conditional_update(engine, place, owner):
    order = await place()
    stale = await order_service.get_order(order.id)
    await order_service.decline_order(engine, order.id, owner)

    with pytest.raises(ConcurrencyConflict):
        await order_service._apply(engine, stale, order_service.OrderEvent.ACCEPT)
    assert (await order_service.get_order(order.id)).status == OrderStatus.DECLINED


async def test_list_orders_excludes_test_orders_by_default(engine, place, restaurant):
    live = await place()
    sandbox = await place(test_mode=True)

    assert [o.id for o in await order_service.list_orders(restaurant_id=restaurant.id)] == [live.id]
    ids = {o.id for o in await order_service.list_orders(restaurant_id=restaurant.id, include_test=True)}
    assert ids == {live.id, sandbox.id}


async def test_change_feed_sees_every_write(engine, place, owner):
    seen = []

    async def on_change(table, record_id):
        seen.append((table, record_id))

    engine.change_feed.subscribe("orders", on_change)
    order = await place()
    await order_service.accept_order(engine, order.id, owner)
    await order_service.mark_paid(engine, order.id, owner)

    assert seen == [("orders", str(order.id))] * 3
