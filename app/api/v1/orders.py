import logging
from decimal import Decimal
from fastapi import APIRouter, Depends, HTTPException, Query, status
from typing import Optional
from uuid import UUID

from app.api.deps import get_engine
from app.core.errors import OrderEngineError, PermissionDeniedError
from app.core.identity import Identity, Role, current_identity
from app.models.order import OrderStatus
from app.models.restaurant import Restaurant
from app.schemas.order import CartItem, OrderRequest, OrderResponse, PaymentLinkResponse, VerifyPickupRequest
from app.schemas.response import SuccessResponse
from app.services import order_service
from app.services.context import EngineContext
from app.services.payments import build_upi_link

router = APIRouter()
log = logging.getLogger("uvicorn")


def _order_data(order) -> dict:
    return OrderResponse.from_order(order).model_dump(mode="json")


async def _ensure_can_view(order, identity: Identity) -> None:
    """Customers see their own orders, owners their restaurant's, admins everything."""
    if identity.role == Role.CUSTOMER and order.customer_id != identity.id:
        raise PermissionDeniedError("This order belongs to someone else.")
    if identity.role == Role.RESTAURANT_OWNER and await order_service.owner_of(order) != identity.id:
        raise PermissionDeniedError("You can only view your own restaurant's orders.")


@router.post("/", status_code=status.HTTP_201_CREATED, response_model=SuccessResponse)
async def create_order_endpoint(
    request_data: OrderRequest,
    identity: Identity = Depends(current_identity),
    engine: EngineContext = Depends(get_engine),
):
    """
    Places the customer's cart as a new pending order. The response carries
    the pickup code the customer shows at the counter.
    """
    try:
        if identity.role != Role.CUSTOMER:
            raise PermissionDeniedError("Only customers can place orders.")
        if not request_data.items:
            raise HTTPException(status_code=400, detail="Order must contain items.")

        items = [
            CartItem(
                menu_item_id=str(item.menu_item_id),
                restaurant_id=str(item.restaurant_id),
                name=item.name or "",
                price=item.price if item.price is not None else Decimal("0"),
                quantity=item.quantity,
            )
            for item in request_data.items
        ]
        order = await order_service.place_order(
            engine, request_data.restaurant_id, items, request_data.total, identity,
            pickup_time=request_data.pickup_time,
        )
        log.info(f"Order {order.id} placed successfully for user {identity.id}.")
        return SuccessResponse(data=_order_data(order))
    except OrderEngineError as e:
        log.error(f"Could not place order for {identity.id}: {e.message}")
        raise
    except HTTPException as he:
        log.error(f"HTTP error placing order: {he.detail}")
        raise he
    except Exception as e:
        log.error(f"Error placing order: {e}")
        raise HTTPException(status_code=500, detail="Server failed to place order.")


@router.get("/", response_model=SuccessResponse)
async def list_orders_endpoint(
    restaurant_id: Optional[UUID] = None,
    customer_id: Optional[str] = None,
    status_filter: Optional[OrderStatus] = Query(None, alias="status"),
    include_test: bool = False,
    identity: Identity = Depends(current_identity),
):
    """Re-queries orders for a dashboard. Customers only ever see their own."""
    if identity.role == Role.CUSTOMER:
        customer_id = identity.id
    elif identity.role == Role.RESTAURANT_OWNER:
        if restaurant_id is None:
            raise HTTPException(status_code=400, detail="restaurant_id is required.")
        restaurant = await Restaurant.get_or_none(id=restaurant_id)
        if not restaurant or restaurant.owner_id != identity.id:
            raise PermissionDeniedError("You can only view your own restaurant's orders.")

    orders = await order_service.list_orders(
        restaurant_id=restaurant_id, customer_id=customer_id, status=status_filter, include_test=include_test
    )
    return SuccessResponse(data=[_order_data(o) for o in orders])


@router.get("/{order_id}", response_model=SuccessResponse)
async def get_order_endpoint(order_id: UUID, identity: Identity = Depends(current_identity)):
    """Fetches details for a specific order."""
    order = await order_service.get_order(order_id)
    await _ensure_can_view(order, identity)
    return SuccessResponse(data=_order_data(order))


async def _transition(action, engine, order_id, identity, *args):
    try:
        order = await action(engine, order_id, *args, identity) if args else await action(engine, order_id, identity)
        return SuccessResponse(data=_order_data(order))
    except OrderEngineError as e:
        log.error(f"{action.__name__} rejected for order {order_id}: {e.message}")
        raise
    except Exception as e:
        log.error(f"Error in {action.__name__} for order {order_id}: {e}")
        raise HTTPException(status_code=500, detail="Server failed to update order status.")


@router.post("/{order_id}/accept", response_model=SuccessResponse)
async def accept_order_endpoint(order_id: UUID, identity: Identity = Depends(current_identity),
                                engine: EngineContext = Depends(get_engine)):
    return await _transition(order_service.accept_order, engine, order_id, identity)


@router.post("/{order_id}/decline", response_model=SuccessResponse)
async def decline_order_endpoint(order_id: UUID, identity: Identity = Depends(current_identity),
                                 engine: EngineContext = Depends(get_engine)):
    return await _transition(order_service.decline_order, engine, order_id, identity)


@router.post("/{order_id}/ready", response_model=SuccessResponse)
async def mark_ready_endpoint(order_id: UUID, identity: Identity = Depends(current_identity),
                              engine: EngineContext = Depends(get_engine)):
    return await _transition(order_service.mark_ready, engine, order_id, identity)


@router.post("/{order_id}/cancel", response_model=SuccessResponse)
async def cancel_order_endpoint(order_id: UUID, identity: Identity = Depends(current_identity),
                                engine: EngineContext = Depends(get_engine)):
    return await _transition(order_service.cancel_order, engine, order_id, identity)


@router.post("/{order_id}/paid", response_model=SuccessResponse)
async def mark_paid_endpoint(order_id: UUID, identity: Identity = Depends(current_identity),
                             engine: EngineContext = Depends(get_engine)):
    return await _transition(order_service.mark_paid, engine, order_id, identity)


@router.post("/{order_id}/verify", response_model=SuccessResponse)
async def verify_pickup_endpoint(order_id: UUID, payload: VerifyPickupRequest,
                                 identity: Identity = Depends(current_identity),
                                 engine: EngineContext = Depends(get_engine)):
    """Completes a ready order when the customer's pickup code matches."""
    return await _transition(order_service.verify_and_complete, engine, order_id, identity, payload.code)


@router.get("/{order_id}/payment-link", response_model=SuccessResponse)
async def payment_link_endpoint(order_id: UUID, identity: Identity = Depends(current_identity)):
    order = await order_service.get_order(order_id)
    await _ensure_can_view(order, identity)
    restaurant = await Restaurant.get(id=order.restaurant_id)
    data = PaymentLinkResponse(order_id=order.id, upi_link=build_upi_link(restaurant, order))
    return SuccessResponse(data=data.model_dump(mode="json"))
