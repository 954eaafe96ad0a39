from enum import Enum
from tortoise import fields, models
import uuid

from app.core.identity import Role


class PaymentMethod(str, Enum):
    UPI = "upi"
    RAZORPAY = "razorpay"


class Profile(models.Model):
    # Same id as the auth provider's user id
    id = fields.CharField(max_length=64, primary_key=True)
    name = fields.CharField(max_length=255)
    phone = fields.CharField(max_length=32, null=True)
    role = fields.CharEnumField(Role, default=Role.CUSTOMER)
    banned = fields.BooleanField(default=False)
    created_at = fields.DatetimeField(auto_now_add=True)

    class Meta:
        table = "profiles"


class Restaurant(models.Model):
    id = fields.UUIDField(primary_key=True, default=uuid.uuid4)
    owner_id = fields.CharField(max_length=64)
    name = fields.CharField(max_length=255)
    email = fields.CharField(max_length=255, null=True)
    verified = fields.BooleanField(default=False) # Admin approval gates customer visibility
    banned = fields.BooleanField(default=False)
    payment_method = fields.CharEnumField(PaymentMethod, default=PaymentMethod.UPI)
    upi_id = fields.CharField(max_length=128, null=True)
    created_at = fields.DatetimeField(auto_now_add=True)

    class Meta:
        table = "restaurants"
        indexes = [
            ("owner_id",),
            ("verified", "banned"),  # Customer-visible restaurants
        ]

    @property
    def is_open_for_orders(self) -> bool:
        return self.verified and not self.banned


class MenuItem(models.Model):
    id = fields.UUIDField(primary_key=True, default=uuid.uuid4)
    restaurant = fields.ForeignKeyField("models.Restaurant", related_name="menu_items")
    name = fields.CharField(max_length=255)
    description = fields.TextField(default="")
    price = fields.DecimalField(max_digits=12, decimal_places=2)
    category = fields.CharField(max_length=64, null=True)
    photo_url = fields.CharField(max_length=512, null=True)
    created_at = fields.DatetimeField(auto_now_add=True)

    class Meta:
        table = "menu_items"
        indexes = [
            ("restaurant_id",),  # Fast restaurant menu queries
        ]
