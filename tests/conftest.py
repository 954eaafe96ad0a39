import pytest
from decimal import Decimal
from tortoise import Tortoise

from app.core.db import MODELS_MODULES
from app.core.identity import Identity, Role
from app.models.restaurant import MenuItem, PaymentMethod, Restaurant
from app.services import order_service
from app.services.cart import Cart
from app.services.context import EngineContext


@pytest.fixture
async def db():
    """Fresh in-memory SQLite database per test."""
    await Tortoise.init(db_url="sqlite://:memory:", modules={"models": MODELS_MODULES}, use_tz=True)
    await Tortoise.generate_schemas()
    yield
    await Tortoise.close_connections()


@pytest.fixture
def engine():
    return EngineContext()


@pytest.fixture
def owner():
    return Identity(id="owner-1", role=Role.RESTAURANT_OWNER, name="Campus Grill")


@pytest.fixture
def other_owner():
    return Identity(id="owner-2", role=Role.RESTAURANT_OWNER, name="Green Leaf")


@pytest.fixture
def customer():
    return Identity(id="student-1", role=Role.CUSTOMER, name="Student")


@pytest.fixture
def admin():
    return Identity(id="admin", role=Role.ADMIN, name="Administrator")


@pytest.fixture
async def restaurant(db):
    return await Restaurant.create(
        owner_id="owner-1", name="Campus Grill", verified=True,
        payment_method=PaymentMethod.UPI, upi_id="campusgrill@okaxis",
    )


@pytest.fixture
async def other_restaurant(db):
    return await Restaurant.create(owner_id="owner-2", name="Green Leaf", verified=True)


@pytest.fixture
async def burger(restaurant):
    return await MenuItem.create(restaurant=restaurant, name="Campus Burger", price=Decimal("8.50"), category="Mains")


@pytest.fixture
async def fries(restaurant):
    return await MenuItem.create(restaurant=restaurant, name="Sweet Potato Fries", price=Decimal("4.50"), category="Sides")


@pytest.fixture
async def wrap(other_restaurant):
    return await MenuItem.create(restaurant=other_restaurant, name="Veggie Wrap", price=Decimal("7.00"), category="Mains")


@pytest.fixture
def place(engine, restaurant, burger, customer):
    """Places a two-burger order (17.00) and returns it."""
    async def _place(test_mode=False):
        cart = Cart()
        cart.add_item(burger)
        cart.add_item(burger)
        return await order_service.checkout(engine, cart, customer, test_mode=test_mode)
    return _place


@pytest.fixture
def ready_order(engine, place, owner):
    async def _ready(test_mode=False):
        order = await place(test_mode=test_mode)
        await order_service.accept_order(engine, order.id, owner)
        return await order_service.mark_ready(engine, order.id, owner)
    return _ready
