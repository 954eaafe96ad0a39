"""
Session-local basket. Pure, synchronous and never persisted: the only way a
cart reaches the store is through ``order_service.checkout``.
"""
from decimal import Decimal
from typing import List, Optional

from app.core.errors import CartConflictError, ValidationError
from app.schemas.order import CartItem, OrderLine


class Cart:
    def __init__(self):
        self._items: List[CartItem] = []

    @property
    def items(self) -> List[CartItem]:
        return [item.model_copy() for item in self._items]

    @property
    def restaurant_id(self) -> Optional[str]:
        return self._items[0].restaurant_id if self._items else None

    @property
    def is_empty(self) -> bool:
        return not self._items

    def _find(self, item_id: str) -> Optional[CartItem]:
        item_id = str(item_id)
        return next((i for i in self._items if i.menu_item_id == item_id), None)

    def add_item(self, menu_item, confirm_replace: bool = False) -> CartItem:
        """
        Adds one unit of ``menu_item``. A menu item from another restaurant
        replaces the whole basket only when ``confirm_replace`` is set;
        otherwise CartConflictError is raised and the cart is left untouched.
        """
        incoming = menu_item if isinstance(menu_item, CartItem) else CartItem.from_menu_item(menu_item)
        incoming = incoming.model_copy(update={"quantity": 1})

        current = self.restaurant_id
        if current is not None and current != incoming.restaurant_id:
            if not confirm_replace:
                raise CartConflictError(current, incoming.restaurant_id)
            self._items = [incoming]
            return incoming

        existing = self._find(incoming.menu_item_id)
        if existing:
            existing.quantity += 1
            return existing
        self._items.append(incoming)
        return incoming

    def update_quantity(self, item_id: str, delta: int) -> None:
        if isinstance(delta, bool) or not isinstance(delta, int):
            raise ValidationError(f"Quantity change must be a whole number, got {delta!r}.")
        item = self._find(item_id)
        if item is None:
            raise ValidationError(f"Item {item_id} is not in the cart.")
        item.quantity = max(0, item.quantity + delta)
        if item.quantity == 0:
            self.remove_item(item_id)

    def remove_item(self, item_id: str) -> None:
        item_id = str(item_id)
        self._items = [i for i in self._items if i.menu_item_id != item_id]

    def clear(self) -> None:
        self._items = []

    def total(self) -> Decimal:
        return sum((i.line_total for i in self._items), Decimal("0"))

    def item_count(self) -> int:
        return sum(i.quantity for i in self._items)

    def snapshot(self) -> List[OrderLine]:
        """Value copies of the basket in order-line form."""
        return [
            OrderLine(menu_item_id=i.menu_item_id, name=i.name, unit_price=i.price, quantity=i.quantity)
            for i in self._items
        ]
