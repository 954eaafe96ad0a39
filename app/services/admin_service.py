import logging
from decimal import Decimal
from typing import Dict, Any

from app.core.errors import NotFoundError, ValidationError
from app.models.order import Order, OrderStatus
from app.models.restaurant import Restaurant
from app.models.setting import AppSetting

log = logging.getLogger("admin_service")

TEST_MODE_KEY = "test_mode"

# Orders that never turned into a sale
NON_REVENUE_STATUSES = [OrderStatus.DECLINED, OrderStatus.CANCELLED]


async def is_test_mode() -> bool:
    setting = await AppSetting.get_or_none(key=TEST_MODE_KEY)
    return bool(setting.value) if setting else False


async def set_test_mode(enabled: bool) -> bool:
    await AppSetting.update_or_create(key=TEST_MODE_KEY, defaults={"value": bool(enabled)})
    log.info(f"Test mode {'enabled' if enabled else 'disabled'}.")
    return bool(enabled)


async def _get_restaurant(restaurant_id) -> Restaurant:
    try:
        restaurant = await Restaurant.get_or_none(id=restaurant_id)
    except ValueError:
        raise ValidationError(f"Malformed restaurant id: {restaurant_id!r}")
    if not restaurant:
        raise NotFoundError(f"Restaurant {restaurant_id} not found.")
    return restaurant


async def set_restaurant_verified(restaurant_id, verified: bool = True) -> Restaurant:
    """Admin approval: unverified restaurants are hidden from customers and cannot take orders."""
    restaurant = await _get_restaurant(restaurant_id)
    restaurant.verified = verified
    await restaurant.save(update_fields=["verified"])
    log.info(f"Restaurant {restaurant.id} verified={verified}.")
    return restaurant


async def set_restaurant_banned(restaurant_id, banned: bool = True) -> Restaurant:
    restaurant = await _get_restaurant(restaurant_id)
    restaurant.banned = banned
    await restaurant.save(update_fields=["banned"])
    log.info(f"Restaurant {restaurant.id} banned={banned}.")
    return restaurant


async def list_restaurants(visible_only: bool = False):
    if visible_only:
        return await Restaurant.filter(verified=True, banned=False).order_by("name")
    return await Restaurant.all().order_by("name")


async def get_stats() -> Dict[str, Any]:
    """
    Dashboard aggregates. Only the production ``orders`` table is read, so
    test-mode orders never count toward orders or revenue.
    """
    total_orders = await Order.all().count()
    revenue_totals = await Order.exclude(status__in=NON_REVENUE_STATUSES).values_list("total", flat=True)
    revenue = sum((Decimal(str(t)) for t in revenue_totals), Decimal("0"))
    by_status = {}
    for status in OrderStatus:
        by_status[status.value] = await Order.filter(status=status).count()

    return {
        "total_orders": total_orders,
        "total_revenue": revenue.quantize(Decimal("0.01")),
        "orders_by_status": by_status,
        "restaurants": await Restaurant.all().count(),
        "pending_approval": await Restaurant.filter(verified=False, banned=False).count(),
    }
