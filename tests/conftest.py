"""Test configuration and fixtures"""

from datetime import datetime, date, time, timedelta, timezone
from uuid import uuid4

import httpx
import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

from app.main import app
from app.database import Base, get_db
from app.integrations.nova import NovaClient, SMS_PATH, get_nova_client
from app.models.restaurant import Restaurant
from app.models.reservation import Reservation
from app.models.user import User, UserRole
from app.api.auth import get_password_hash, create_access_token
from app.services.capacity import create_default_time_slots
from app.services.restaurant_settings import default_settings


# Test database URL (use in-memory SQLite for tests)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


def future_date(days: int = 3) -> date:
    """A date comfortably inside the booking window"""
    return datetime.now(timezone.utc).date() + timedelta(days=days)


class FakeNova:
    """
    In-process Nova API served through httpx.MockTransport.

    Tests tweak the canned responses and inspect `requests` afterwards.
    """

    def __init__(self):
        self.requests = []
        self.areas = []
        self.customer_ref = "cust-1"
        self.sms_status = 200
        # plain-text bodies instead of JSON when set
        self.sms_text = None
        self.book_text = None
        self.book_status = 200
        self.book_body = {"status": "booked"}
        self.merchant = {"gatewayId": "stripe", "merchantId": "merchant-1"}
        self.checkout_url = "https://checkout.test/session/abc"

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        if path.endswith("/customer"):
            return httpx.Response(200, json={"refId": self.customer_ref})
        if path.endswith("/table-status"):
            return httpx.Response(200, json=self.areas)
        if path.endswith("/book-table"):
            if self.book_text is not None:
                return httpx.Response(self.book_status, text=self.book_text)
            return httpx.Response(self.book_status, json=self.book_body)
        if path == SMS_PATH:
            if self.sms_text is not None:
                return httpx.Response(self.sms_status, text=self.sms_text)
            return httpx.Response(self.sms_status, json={"sent": self.sms_status == 200})
        if path.endswith("/merchant"):
            return httpx.Response(200, json=self.merchant)
        if "/checkout/" in path:
            return httpx.Response(200, json={"url": self.checkout_url})
        return httpx.Response(404, json={"message": "not found"})

    def calls(self, suffix: str):
        return [r for r in self.requests if r.url.path.endswith(suffix)]

    @property
    def sms(self):
        return self.calls(SMS_PATH)


@pytest.fixture
async def test_db():
    """Create test database"""
    engine = create_async_engine(TEST_DATABASE_URL, echo=False, poolclass=StaticPool)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async with session_factory() as session:
        yield session

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
def fake_nova():
    return FakeNova()


@pytest.fixture
def nova_client(fake_nova):
    """Nova client wired to the fake"""
    return NovaClient(
        base_url="http://nova.test",
        api_key="test-key",
        timeout=1,
        max_retries=1,
        transport=httpx.MockTransport(fake_nova.handler),
    )


def _settings(**reservation_settings):
    document = default_settings()
    document["manager_settings"]["timezone"] = "UTC"
    document["reservation_settings"].update(reservation_settings)
    return document


@pytest.fixture
async def test_restaurant(test_db):
    """Restaurant without a Nova reference: local tables, UTC clock"""
    restaurant = Restaurant(
        id=uuid4(),
        name="Test Bistro",
        subdomain="testbistro",
        slug="testbistro",
        address="123 Test St",
        settings=_settings(),
        is_active=True,
    )
    test_db.add(restaurant)
    await test_db.commit()

    await create_default_time_slots(test_db, restaurant.id)
    return restaurant


@pytest.fixture
async def nova_restaurant(test_db):
    """Restaurant linked to Nova, taking a flat deposit"""
    restaurant = Restaurant(
        id=uuid4(),
        name="Nova Grill",
        subdomain="novagrill",
        slug="novagrill",
        novaref_id=str(uuid4()),
        settings=_settings(
            require_payment=True,
            payment_settings={**default_settings()["reservation_settings"]["payment_settings"],
                              "base_payment_amount": 25},
        ),
        is_active=True,
    )
    test_db.add(restaurant)
    await test_db.commit()

    await create_default_time_slots(test_db, restaurant.id)
    return restaurant


@pytest.fixture
def make_reservation(test_db, test_restaurant):
    """Factory for reservations inserted directly, 18:00 three days out by default"""
    async def _make(restaurant=None, **overrides):
        restaurant = restaurant or test_restaurant
        fields = {
            "tenant_id": restaurant.id,
            "name": "Jane Guest",
            "phone": "4155551234",
            "email": "jane@example.com",
            "party_size": 2,
            "date_time": datetime.combine(future_date(), time(18, 0)),
            "slot_start_time": "18:00:00",
            "slot_end_time": "18:30:00",
            "status": "confirmed",
        }
        fields.update(overrides)
        reservation = Reservation(**fields)
        test_db.add(reservation)
        await test_db.commit()
        await test_db.refresh(reservation)
        return reservation
    return _make


async def _make_user(test_db, email, role, tenant_id=None):
    user = User(
        id=uuid4(),
        tenant_id=tenant_id,
        email=email,
        hashed_password=get_password_hash("testpass123"),
        full_name=email.split("@")[0].title(),
        role=role,
        is_active=True,
    )
    test_db.add(user)
    await test_db.commit()
    return user


@pytest.fixture
async def test_user(test_db, test_restaurant):
    """Manager of the test restaurant"""
    return await _make_user(test_db, "manager@example.com", UserRole.MANAGER, test_restaurant.id)


@pytest.fixture
async def test_staff_user(test_db, test_restaurant):
    return await _make_user(test_db, "host@example.com", UserRole.STAFF, test_restaurant.id)


@pytest.fixture
async def test_admin_user(test_db):
    """Create a super admin user"""
    return await _make_user(test_db, "admin@example.com", UserRole.SUPER_ADMIN)


@pytest.fixture
async def client(test_db, nova_client):
    """Create test client with overridden database and Nova client"""
    async def override_get_db():
        yield test_db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_nova_client] = lambda: nova_client

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture
async def authenticated_client(client, test_user):
    """Client logged in as the test restaurant's manager"""
    client.headers["Authorization"] = f"Bearer {create_access_token(test_user)}"
    return client


@pytest.fixture
async def staff_client(client, test_staff_user):
    client.headers["Authorization"] = f"Bearer {create_access_token(test_staff_user)}"
    return client


@pytest.fixture
async def admin_client(client, test_admin_user):
    """Create admin authenticated test client"""
    client.headers["Authorization"] = f"Bearer {create_access_token(test_admin_user)}"
    return client
