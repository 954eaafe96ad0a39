# app/models/__init__.py
from .order import Order, SandboxOrder, OrderStatus, TERMINAL_STATUSES, ACTIVE_STATUSES
from .restaurant import Profile, Restaurant, MenuItem, PaymentMethod
from .setting import AppSetting

# Export all models
__all__ = [
    "Order",
    "SandboxOrder",
    "OrderStatus",
    "TERMINAL_STATUSES",
    "ACTIVE_STATUSES",
    "Profile",
    "Restaurant",
    "MenuItem",
    "PaymentMethod",
    "AppSetting",
]
