from pydantic import BaseModel, Field
from typing import List, Optional
import uuid
from decimal import Decimal
from datetime import datetime

from app.models.order import OrderStatus


class CartItem(BaseModel):
    """A menu item copied into the basket, plus how many the customer wants."""
    menu_item_id: str
    restaurant_id: str
    name: str
    price: Decimal
    quantity: int = Field(1, ge=0)
    description: str = ""
    category: Optional[str] = None

    @classmethod
    def from_menu_item(cls, menu_item, quantity: int = 1) -> "CartItem":
        return cls(
            menu_item_id=str(menu_item.id),
            restaurant_id=str(menu_item.restaurant_id),
            name=menu_item.name,
            price=Decimal(str(menu_item.price)),
            quantity=quantity,
            description=getattr(menu_item, "description", "") or "",
            category=getattr(menu_item, "category", None),
        )

    @property
    def line_total(self) -> Decimal:
        return self.price * self.quantity


class OrderLine(BaseModel):
    """Immutable order line stored on the order (JSON column)."""
    menu_item_id: str
    name: str
    unit_price: Decimal
    quantity: int

    def to_record(self) -> dict:
        # Decimal is not JSON serializable; keep prices as exact strings
        return {
            "menu_item_id": self.menu_item_id,
            "name": self.name,
            "unit_price": str(self.unit_price),
            "quantity": self.quantity,
        }


class OrderItemRequest(BaseModel):
    """Schema for a single item in the order request."""
    menu_item_id: uuid.UUID
    restaurant_id: uuid.UUID
    # Display copies only; the server prices lines from the stored menu
    name: Optional[str] = None
    price: Optional[Decimal] = Field(None, ge=0)
    quantity: int = Field(..., ge=1)


class OrderRequest(BaseModel):
    """Schema for the full order placement request body (the cart snapshot)."""
    restaurant_id: uuid.UUID
    items: List[OrderItemRequest]
    total: Decimal
    pickup_time: Optional[str] = None


class VerifyPickupRequest(BaseModel):
    code: str


class OrderLineResponse(BaseModel):
    menu_item_id: str
    name: str
    unit_price: Decimal
    quantity: int


class OrderResponse(BaseModel):
    """Order as returned to customers and restaurant dashboards."""
    id: uuid.UUID
    restaurant_id: uuid.UUID
    customer_id: str
    customer_name: str
    items: List[OrderLineResponse]
    total: Decimal
    status: OrderStatus
    pickup_code: str
    pickup_time: Optional[str] = None
    paid: bool
    is_test: bool
    created_at: datetime
    ready_at: Optional[datetime] = None

    @classmethod
    def from_order(cls, order) -> "OrderResponse":
        return cls(
            id=order.id,
            restaurant_id=order.restaurant_id,
            customer_id=order.customer_id,
            customer_name=order.customer_name,
            items=order.items,
            total=order.total,
            status=order.status,
            pickup_code=order.pickup_code,
            pickup_time=order.pickup_time,
            paid=order.paid,
            is_test=order.is_test,
            created_at=order.created_at,
            ready_at=order.ready_at,
        )


class PaymentLinkResponse(BaseModel):
    order_id: uuid.UUID
    upi_link: str
