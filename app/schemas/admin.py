import uuid
from decimal import Decimal
from typing import Dict, Optional

from pydantic import BaseModel, Field


class ModeToggle(BaseModel):
    """Body for switching test mode on or off."""
    enabled: bool


class RestaurantFlagUpdate(BaseModel):
    value: bool = True


class RestaurantResponse(BaseModel):
    id: uuid.UUID
    owner_id: str
    name: str
    verified: bool
    banned: bool
    payment_method: str
    upi_id: Optional[str] = None

    @classmethod
    def from_restaurant(cls, restaurant) -> "RestaurantResponse":
        return cls(
            id=restaurant.id,
            owner_id=restaurant.owner_id,
            name=restaurant.name,
            verified=restaurant.verified,
            banned=restaurant.banned,
            payment_method=restaurant.payment_method.value if hasattr(restaurant.payment_method, "value") else restaurant.payment_method,
            upi_id=restaurant.upi_id,
        )


class StatsResponse(BaseModel):
    total_orders: int
    total_revenue: Decimal
    orders_by_status: Dict[str, int]
    restaurants: int
    pending_approval: int


class MenuItemRequest(BaseModel):
    name: str = Field(..., description="Name of the menu item (e.g., Campus Burger).")
    price: Decimal = Field(..., ge=0, description="Selling price of the item.")
    description: str = Field("", description="Short description shown on the menu.")
    category: Optional[str] = Field(None, description="Menu section, e.g. Mains, Sides, Drinks.")
    photo_url: Optional[str] = None
