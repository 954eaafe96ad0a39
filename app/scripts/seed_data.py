# scripts/seed_data.py
import asyncio
from app.core.db import init_db, close_db
from app.core.identity import Role
from app.models.restaurant import Profile, Restaurant, MenuItem, PaymentMethod

RESTAURANTS = [
    ("owner-campus-grill", "Campus Grill", "campusgrill@okaxis", [
        ("Campus Burger", "Classic beef patty with cheddar.", "8.50", "Mains"),
        ("Sweet Potato Fries", "Served with spicy mayo.", "4.50", "Sides"),
    ]),
    ("owner-green-leaf", "Green Leaf", "greenleaf@okaxis", [
        ("Veggie Wrap", "Grilled vegetables with hummus.", "7.00", "Mains"),
    ]),
    ("owner-bean-there", "Bean There", "beanthere@okaxis", [
        ("Iced Matcha", "Organic matcha with oat milk.", "5.00", "Drinks"),
    ]),
]

async def seed():
    await Profile.get_or_create(id="admin", defaults={"name": "Administrator", "role": Role.ADMIN})
    await Profile.get_or_create(id="student-1", defaults={"name": "Student", "role": Role.CUSTOMER})

    for owner_id, name, upi_id, menu in RESTAURANTS:
        await Profile.get_or_create(id=owner_id, defaults={"name": name, "role": Role.RESTAURANT_OWNER})
        rest, _ = await Restaurant.get_or_create(
            owner_id=owner_id,
            name=name,
            defaults={"verified": True, "payment_method": PaymentMethod.UPI, "upi_id": upi_id},
        )
        print("Restaurant:", rest.name, rest.id)

        for item_name, description, price, category in menu:
            item, _ = await MenuItem.get_or_create(
                restaurant=rest,
                name=item_name,
                defaults={"description": description, "price": price, "category": category},
            )
            print("  Menu item:", item.name, str(item.id))

    print("Seed data loaded.")

async def main():
    await init_db()
    await seed()
    await close_db()

if __name__ == "__main__":
    asyncio.run(main())
