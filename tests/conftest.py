from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import select
from sqlalchemy.exc import OperationalError
from sqlalchemy.pool import StaticPool

from order_api.auth import create_access_token
from order_api.database import Database, get_db
from order_api.main import app
from order_api.models import (
    Addon,
    Branch,
    DeliveryType,
    MenuItem,
    Order,
    OrderItem,
    PaymentStatus,
    Restaurant,
    User,
    UserRole,
)
from order_api.services.payment import MockPaymentService, get_payment_service


@pytest_asyncio.fixture
async def database():
    """In-memory SQLite shared by every session through StaticPool."""
    db = Database(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    await db.create_all()
    yield db
    await db.drop_all()
    await db.dispose()


@pytest_asyncio.fixture
async def seed(database):
    """
    Two restaurants:

    - "Pizza Palace" (owner) with branch "Downtown" (manager) and
      branch "Uptown" (no managers); menu: pizza 10.00, salad 6.50
    - "Burger Barn" (other_owner) with branch "Harbor" (other_manager);
      menu: burger 9.00

    Add-ons: cheese 1.25, bacon 2.00.
    """
    async with database.session_maker() as session:
        users = {
            "customer": User(name="Jane Customer", email="jane@example.com", role=UserRole.CUSTOMER),
            "other_customer": User(name="Bob Customer", email="bob@example.com", role=UserRole.CUSTOMER),
            "manager": User(name="Mike Manager", email="mike@example.com", role=UserRole.BRANCH_MANAGER),
            "other_manager": User(name="Nina Manager", email="nina@example.com", role=UserRole.BRANCH_MANAGER),
            "owner": User(name="Olivia Owner", email="olivia@example.com", role=UserRole.RESTAURANT_ADMIN),
            "other_owner": User(name="Oscar Owner", email="oscar@example.com", role=UserRole.RESTAURANT_ADMIN),
            "super_admin": User(name="Sam Super", email="sam@example.com", role=UserRole.SUPER_ADMIN),
        }
        session.add_all(users.values())
        await session.flush()

        restaurant = Restaurant(name="Pizza Palace", admin_id=users["owner"].id)
        other_restaurant = Restaurant(name="Burger Barn", admin_id=users["other_owner"].id)
        session.add_all([restaurant, other_restaurant])
        await session.flush()

        downtown = Branch(name="Downtown", restaurant_id=restaurant.id, managers=[users["manager"]])
        uptown = Branch(name="Uptown", restaurant_id=restaurant.id, managers=[])
        harbor = Branch(name="Harbor", restaurant_id=other_restaurant.id, managers=[users["other_manager"]])
        pizza = MenuItem(name="Pizza", price=10.00, restaurant_id=restaurant.id)
        salad = MenuItem(name="Salad", price=6.50, restaurant_id=restaurant.id)
        burger = MenuItem(name="Burger", price=9.00, restaurant_id=other_restaurant.id)
        cheese = Addon(name="Extra Cheese", price=1.25)
        bacon = Addon(name="Bacon", price=2.00)
        session.add_all([downtown, uptown, harbor, pizza, salad, burger, cheese, bacon])
        await session.commit()

        return SimpleNamespace(
            **{f"{key}_id": user.id for key, user in users.items()},
            users={key: user for key, user in users.items()},
            restaurant_id=restaurant.id,
            other_restaurant_id=other_restaurant.id,
            downtown_id=downtown.id,
            uptown_id=uptown.id,
            harbor_id=harbor.id,
            pizza_id=pizza.id,
            salad_id=salad.id,
            burger_id=burger.id,
            cheese_id=cheese.id,
            bacon_id=bacon.id,
        )


class RecordingPaymentService(MockPaymentService):
    """Mock gateway that keeps every intent it issues."""

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.created_intents: list[dict] = []

    async def create_payment_intent(self, amount, currency="usd", metadata=None):
        result = await super().create_payment_intent(amount, currency, metadata)
        if result.success:
            self.created_intents.append({
                "id": result.payment_intent_id,
                "amount": amount,
                "currency": currency,
                "metadata": dict(metadata or {}),
            })
        return result


@pytest.fixture
def payment_gateway():
    return RecordingPaymentService(failure_rate=0.0)


@pytest_asyncio.fixture
async def client(database, payment_gateway):
    app.state.database = database
    app.dependency_overrides[get_payment_service] = lambda: payment_gateway

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
    app.state.database = None


class FailingSession:
    """Session whose every query fails as if the database went away."""

    async def _fail(self, *args, **kwargs):
        raise OperationalError("SELECT ...", {}, Exception("database is locked"))

    execute = _fail
    get = _fail

    async def rollback(self):
        pass

    async def close(self):
        pass


@pytest.fixture
def failing_database(client):
    """Route every request to a FailingSession; cleared with the client."""

    async def _failing_db():
        yield FailingSession()

    app.dependency_overrides[get_db] = _failing_db


@pytest.fixture
def auth_headers(seed):
    """auth_headers("owner") -> Authorization header for that seeded user."""

    def _headers(key: str) -> dict[str, str]:
        user = seed.users[key]
        token = create_access_token(user.id, user.role, user.name)
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest.fixture
def order_payload(seed):
    """
    Valid order for Downtown:

        2 x (pizza 10.00 + cheese 1.25) = 22.50
        1 x salad                       =  6.50
        subtotal 29.00 - discount 2.00 + platform 1.50 + payment 0.50 = 29.00
    """

    def _payload(**overrides) -> dict:
        payload = {
            "restaurantId": seed.restaurant_id,
            "branchId": seed.downtown_id,
            "items": [
                {
                    "menuItem": {"id": seed.pizza_id},
                    "quantity": 2,
                    "addons": [{"name": "Toppings", "items": [{"id": seed.cheese_id}]}],
                },
                {"menuItem": {"id": seed.salad_id}, "quantity": 1},
            ],
            "deliveryType": "DELIVERY",
            "subtotal": 29.00,
            "discount": 2.00,
            "platformFee": 1.50,
            "paymentFee": 0.50,
            "total": 29.00,
        }
        payload.update(overrides)
        return payload

    return _payload


@pytest.fixture
def make_order(database, seed):
    """Insert an order directly, bypassing the API."""
    base_time = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)

    async def _make(user_key: str, branch_id: int, minutes: int = 0, status: str = "PENDING") -> int:
        async with database.session_maker() as session:
            branch = await session.get(Branch, branch_id)
            menu_item_id = seed.pizza_id if branch.restaurant_id == seed.restaurant_id else seed.burger_id
            order = Order(
                restaurant_id=branch.restaurant_id,
                branch_id=branch_id,
                user_id=seed.users[user_key].id,
                customer_name=seed.users[user_key].name,
                status=status,
                payment_status=PaymentStatus.PAYMENT_INITIATED,
                delivery_type=DeliveryType.PICKUP,
                subtotal=10.0,
                total=10.0,
                created_at=base_time + timedelta(minutes=minutes),
                order_items=[OrderItem(menu_item_id=menu_item_id, quantity=1)],
            )
            session.add(order)
            await session.commit()
            return order.id

    return _make


@pytest.fixture
def fetch_order(database):
    """Read an order's current row straight from the database."""

    async def _fetch(order_id: int) -> Order:
        async with database.session_maker() as session:
            result = await session.execute(select(Order).where(Order.id == order_id))
            return result.scalar_one_or_none()

    return _fetch
