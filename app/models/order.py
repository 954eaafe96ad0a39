from enum import Enum
from tortoise import fields, models
import uuid


class OrderStatus(str, Enum):
    PENDING = "pending"      # Placed, waiting for the restaurant
    ACCEPTED = "accepted"
    DECLINED = "declined"
    READY = "ready"          # Waiting for pickup; starts the watchdog clock
    COMPLETED = "completed"  # Picked up with a verified code
    CANCELLED = "cancelled"


TERMINAL_STATUSES = frozenset({OrderStatus.DECLINED, OrderStatus.COMPLETED, OrderStatus.CANCELLED})
ACTIVE_STATUSES = frozenset({OrderStatus.PENDING, OrderStatus.ACCEPTED, OrderStatus.READY})


class OrderBase(models.Model):
    """
    Columns shared by production and test orders. Test orders live in their own
    table so they never leak into revenue or order counts.
    """
    id = fields.UUIDField(primary_key=True, default=uuid.uuid4)
    customer_id = fields.CharField(max_length=64)
    customer_name = fields.CharField(max_length=255, default="")
    # Value copy of the cart: [{menu_item_id, name, unit_price, quantity}]
    items = fields.JSONField()
    total = fields.DecimalField(max_digits=12, decimal_places=2)
    status = fields.CharEnumField(OrderStatus, default=OrderStatus.PENDING)
    pickup_code = fields.CharField(max_length=8)
    pickup_time = fields.CharField(max_length=5, null=True)  # Requested "HH:MM"
    paid = fields.BooleanField(default=False)
    is_test = fields.BooleanField(default=False)
    created_at = fields.DatetimeField(auto_now_add=True)
    updated_at = fields.DatetimeField(auto_now=True)
    ready_at = fields.DatetimeField(null=True)
    # Watchdog bookkeeping so each alert fires once
    warning_sent_at = fields.DatetimeField(null=True)
    expiry_sent_at = fields.DatetimeField(null=True)

    class Meta:
        abstract = True

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


class Order(OrderBase):
    restaurant = fields.ForeignKeyField("models.Restaurant", related_name="orders")

    class Meta:
        table = "orders"
        indexes = [
            ("restaurant_id",),          # Restaurant order queries
            ("status",),                 # Status-based filtering
            ("customer_id",),            # Customer order history
            ("restaurant_id", "status"), # Active-code collision checks
        ]


class SandboxOrder(OrderBase):
    """Orders placed while test mode is on."""
    restaurant = fields.ForeignKeyField("models.Restaurant", related_name="test_orders")

    class Meta:
        table = "test_orders"
        indexes = [
            ("restaurant_id",),
            ("status",),
        ]


ORDER_MODELS = (Order, SandboxOrder)
