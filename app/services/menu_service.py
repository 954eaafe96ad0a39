import logging
from decimal import Decimal
from typing import Optional

from app.core.errors import NotFoundError, PermissionDeniedError, ValidationError
from app.core.identity import Identity
from app.models.restaurant import MenuItem, Restaurant

log = logging.getLogger("menu_service")


def _ensure_owner(actor: Identity, restaurant: Restaurant):
    if actor.is_admin or actor.id == restaurant.owner_id:
        return
    raise PermissionDeniedError("Only the restaurant owner can change its menu.")


async def add_menu_item(
    restaurant_id,
    actor: Identity,
    name: str,
    price,
    description: str = "",
    category: Optional[str] = None,
    photo_url: Optional[str] = None,
) -> MenuItem:
    restaurant = await Restaurant.get_or_none(id=restaurant_id)
    if not restaurant:
        raise NotFoundError(f"Restaurant with ID {restaurant_id} not found.")
    _ensure_owner(actor, restaurant)

    price = Decimal(str(price))
    if price < 0:
        raise ValidationError("Price cannot be negative.")

    item = await MenuItem.create(
        restaurant=restaurant,
        name=name,
        description=description,
        price=price,
        category=category,
        photo_url=photo_url,
    )
    log.info(f"Added '{name}' to {restaurant.name}.")
    return item


async def delete_menu_item(item_id, actor: Identity) -> None:
    """Existing orders keep their own copy of the line, so deleting is always safe."""
    item = await MenuItem.get_or_none(id=item_id).prefetch_related("restaurant")
    if not item:
        raise NotFoundError(f"Menu item {item_id} not found.")
    _ensure_owner(actor, item.restaurant)
    await item.delete()
    log.info(f"Deleted menu item {item_id} from {item.restaurant.name}.")


async def get_menu(restaurant_id):
    return await MenuItem.filter(restaurant_id=restaurant_id).order_by("category", "name")
