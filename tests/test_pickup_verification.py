import asyncio
import pytest
import uuid

from app.core.errors import (
    ConcurrencyConflict,
    InvalidCode,
    NotReadyForPickup,
    OrderNotFound,
    PermissionDeniedError,
)
from app.models.order import OrderStatus
from app.services import order_service


def wrong_code(code: str) -> str:
    return "9999" if code != "9999" else "1234"


async def test_wrong_code_then_right_code(engine, ready_order, owner):
    order = await ready_order()

    with pytest.raises(InvalidCode) as excinfo:
        await order_service.verify_and_complete(engine, order.id, wrong_code(order.pickup_code), owner)
    assert "try again" in excinfo.value.message
    assert (await order_service.get_order(order.id)).status == OrderStatus.READY

    completed = await order_service.verify_and_complete(engine, order.id, order.pickup_code, owner)
    assert completed.status == OrderStatus.COMPLETED


async def test_repeated_wrong_codes_never_change_status(engine, ready_order, owner):
    order = await ready_order()

    for _ in range(5):
        with pytest.raises(InvalidCode):
            await order_service.verify_and_complete(engine, order.id, wrong_code(order.pickup_code), owner)

    stored = await order_service.get_order(order.id)
    assert stored.status == OrderStatus.READY
    assert stored.pickup_code == order.pickup_code
    assert (await order_service.verify_and_complete(engine, order.id, order.pickup_code, owner)).status == OrderStatus.COMPLETED


async def test_code_is_trimmed_but_not_normalized(engine, ready_order, owner):
    order = await ready_order()

    with pytest.raises(InvalidCode):
        await order_service.verify_and_complete(engine, order.id, "0" + order.pickup_code, owner)

    completed = await order_service.verify_and_complete(engine, order.id, f"  {order.pickup_code}\n", owner)
    assert completed.status == OrderStatus.COMPLETED


async def test_unknown_order(engine, db, owner):
    with pytest.raises(OrderNotFound):
        await order_service.verify_and_complete(engine, uuid.uuid4(), "1234", owner)


async def test_premature_pickup_rejected(engine, place, owner):
    order = await place()
    with pytest.raises(NotReadyForPickup):
        await order_service.verify_and_complete(engine, order.id, order.pickup_code, owner)
    assert (await order_service.get_order(order.id)).status == OrderStatus.PENDING


async def test_second_completion_rejected(engine, ready_order, owner):
    order = await ready_order()
    await order_service.verify_and_complete(engine, order.id, order.pickup_code, owner)

    with pytest.raises(NotReadyForPickup) as excinfo:
        await order_service.verify_and_complete(engine, order.id, order.pickup_code, owner)
    assert "already completed" in excinfo.value.message


async def test_other_restaurant_cannot_complete(engine, ready_order, other_owner):
    order = await ready_order()
    with pytest.raises(PermissionDeniedError):
        await order_service.verify_and_complete(engine, order.id, order.pickup_code, other_owner)


async def test_concurrent_completion_succeeds_once(engine, ready_order, owner, customer):
    order = await ready_order()

    results = await asyncio.gather(
        order_service.verify_and_complete(engine, order.id, order.pickup_code, owner),
        order_service.verify_and_complete(engine, order.id, order.pickup_code, owner),
        return_exceptions=True,
    )

    successes = [r for r in results if not isinstance(r, Exception)]
    failures = [r for r in results if isinstance(r, Exception)]
    assert len(successes) == 1
    assert len(failures) == 1
    assert isinstance(failures[0], (ConcurrencyConflict, NotReadyForPickup))
    picked_up = [n for n in engine.notifications.for_user(customer.id) if n.title == "Order picked up"]
    assert len(picked_up) == 1


async def test_test_mode_order_can_be_verified(engine, ready_order, owner):
    order = await ready_order(test_mode=True)
    completed = await order_service.verify_and_complete(engine, order.id, order.pickup_code, owner)
    assert completed.status == OrderStatus.COMPLETED
    assert completed.is_test is True
