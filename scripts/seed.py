"""
Demo Data Seeder

Creates a restaurant with two branches, a small menu, add-ons and one
user per role, then prints a bearer token for each user.
Run from project root: python scripts/seed.py

Uses DATABASE_URL / JWT_SECRET_KEY from the environment or .env.
"""

import asyncio
import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from order_api.auth import create_access_token
from order_api.core.config import get_settings
from order_api.database import Database
from order_api.models import Addon, Branch, MenuItem, Restaurant, User, UserRole

MENU_ITEMS = [
    ("Pizza Margherita", 14.99),
    ("Pepperoni Pizza", 16.99),
    ("Caesar Salad", 8.99),
    ("Garlic Bread", 5.99),
    ("Tiramisu", 7.99),
]

ADDONS = [
    ("Extra Cheese", 1.50),
    ("Jalapeños", 0.75),
    ("Gluten-Free Crust", 2.50),
    ("Ranch Dip", 0.99),
]


async def seed() -> None:
    settings = get_settings()
    database = Database(settings.database_url, echo=settings.database_echo)
    await database.create_all()

    async with database.session_maker() as session:
        customer = User(name="Jane Customer", email="jane@example.com", role=UserRole.CUSTOMER)
        manager = User(name="Mike Manager", email="mike@example.com", role=UserRole.BRANCH_MANAGER)
        owner = User(name="Olivia Owner", email="olivia@example.com", role=UserRole.RESTAURANT_ADMIN)
        root = User(name="Sam Super", email="sam@example.com", role=UserRole.SUPER_ADMIN)
        session.add_all([customer, manager, owner, root])
        await session.flush()

        restaurant = Restaurant(name="AI Pizza Palace", admin_id=owner.id)
        session.add(restaurant)
        await session.flush()

        downtown = Branch(name="Downtown", restaurant_id=restaurant.id, managers=[manager])
        uptown = Branch(name="Uptown", restaurant_id=restaurant.id, managers=[])
        menu = [MenuItem(name=name, price=price, restaurant_id=restaurant.id) for name, price in MENU_ITEMS]
        addons = [Addon(name=name, price=price) for name, price in ADDONS]
        session.add_all([downtown, uptown, *menu, *addons])
        await session.commit()

        print("=" * 60)
        print(f"🏪 Restaurant #{restaurant.id}: {restaurant.name}")
        print(f"   Branches: #{downtown.id} {downtown.name}, #{uptown.id} {uptown.name}")
        print("   Menu: " + ", ".join(f"#{m.id} {m.name} ${m.price:.2f}" for m in menu))
        print("   Add-ons: " + ", ".join(f"#{a.id} {a.name} ${a.price:.2f}" for a in addons))
        print("=" * 60)
        for user in (customer, manager, owner, root):
            token = create_access_token(user.id, user.role, user.name, expires_minutes=24 * 60)
            print(f"{user.role.value:<18} #{user.id} {user.name}")
            print(f"   Bearer {token}")
        print("=" * 60)

    await database.dispose()


if __name__ == "__main__":
    asyncio.run(seed())
