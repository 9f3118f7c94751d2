"""Test configuration and fixtures."""

import os
import tempfile

# Settings are read at import time, so the environment must be prepared first
os.environ.update({
    "DATABASE_URL": "sqlite+aiosqlite:///:memory:",
    "ENVIRONMENT": "development",
    "JWT_SECRET": "test-secret-key-that-is-long-enough-for-hs256-signing",
    "PASSWORD_HASH_ROUNDS": "4",
    "RAZORPAY_KEY_ID": "rzp_test_key",
    "RAZORPAY_KEY_SECRET": "rzp_test_secret",
    "SENDGRID_API_KEY": "",
    "FRONTEND_URL": "http://frontend.test",
    "STATIC_DIR": tempfile.mkdtemp(prefix="natours-static-"),
})

from datetime import datetime, timezone  # noqa: E402
from uuid import uuid4  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy import event  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from natours.core import database  # noqa: E402
from natours.core.database import Base  # noqa: E402
from natours.core.dependencies import get_email_service, get_payment_gateway  # noqa: E402
from natours.core.exceptions import PaymentGatewayError  # noqa: E402
from natours.core.security import create_access_token  # noqa: E402
from natours.models import Tour, User  # noqa: E402
from natours.services.email_service import EmailMessage, EmailService  # noqa: E402
from natours.services.payment_gateway import RazorpayGateway  # noqa: E402

# Test database URL (in-memory SQLite for speed)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

DEFAULT_PASSWORD = "pass1234"


class FakePaymentGateway(RazorpayGateway):
    """Real signature checks; orders are answered locally."""

    def __init__(self):
        super().__init__(key_id="rzp_test_key", key_secret="rzp_test_secret", api_url="https://payments.invalid/v1")
        self.orders = []

    async def create_order(self, amount, currency, receipt, notes=None):
        order = {
            "id": f"order_test_{len(self.orders) + 1}",
            "entity": "order",
            "amount": amount,
            "currency": currency,
            "receipt": receipt,
            "notes": notes or {},
            "status": "created",
        }
        self.orders.append(order)
        return order

    async def fetch_order(self, order_id):
        for order in self.orders:
            if order["id"] == order_id:
                return order
        raise PaymentGatewayError(detail="The payment provider rejected the request", provider_status=400)


class RecordingEmailService(EmailService):
    """Keeps sent messages in memory instead of calling SendGrid."""

    def __init__(self):
        super().__init__(api_key="test-key", sender="hello@natours.test")
        self.sent: list[EmailMessage] = []

    async def send(self, message: EmailMessage) -> None:
        self.sent.append(message)


@pytest_asyncio.fixture(scope="function")
async def test_engine():
    """Create a test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    @event.listens_for(engine.sync_engine, "connect")
    def _foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    # Create tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    # Drop tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    """Session factory bound to the test engine."""
    return async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture(scope="function")
async def test_session(session_factory):
    """Create a test database session."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def payment_gateway():
    return FakePaymentGateway()


@pytest.fixture
def email_service():
    return RecordingEmailService()


@pytest_asyncio.fixture(scope="function")
async def test_app(session_factory, payment_gateway, email_service):
    """Create a test FastAPI application backed by the test database."""
    from natours.main import create_app

    app = create_app()

    # Every request gets its own session, like in production
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[database.get_db] = override_get_db
    app.dependency_overrides[get_payment_gateway] = lambda: payment_gateway
    app.dependency_overrides[get_email_service] = lambda: email_service

    yield app

    # Clean up
    app.dependency_overrides.clear()


@pytest_asyncio.fixture(scope="function")
async def test_client(test_app):
    """Create a test HTTP client."""
    transport = ASGITransport(app=test_app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
def create_user(session_factory):
    """Factory inserting a user directly into the database."""
    async def _create(
        name: str = "Test User",
        email: str | None = None,
        password: str = DEFAULT_PASSWORD,
        role: str = "user",
        active: bool = True,
    ) -> User:
        async with session_factory() as session:
            user = User(
                name=name,
                email=email or f"user-{uuid4().hex[:10]}@example.com",
                role=role,
                active=active,
            )
            user.set_password(password, password)
            session.add(user)
            await session.commit()
            return user

    return _create


@pytest.fixture
def auth_headers():
    """Bearer header for a user, optionally with a back-dated ``iat``."""
    def _headers(user: User, issued_at: datetime | None = None) -> dict[str, str]:
        return {"Authorization": f"Bearer {create_access_token(user.id, issued_at=issued_at)}"}

    return _headers


@pytest_asyncio.fixture
async def admin(create_user):
    return await create_user(name="Ada Admin", email="admin@example.com", role="admin")


@pytest_asyncio.fixture
async def customer(create_user):
    return await create_user(name="Carla Customer", email="carla@example.com")


@pytest.fixture
def sample_tour_data():
    """Sample tour payload as a client would send it."""
    return {
        "name": "The Forest Hiker",
        "duration": 5,
        "max_group_size": 25,
        "difficulty": "easy",
        "price": 397,
        "summary": "Breathtaking hike through the Canadian Banff National Park",
        "description": "Five days of forest trails and glacier lakes",
        "image_cover": "tour-1-cover.jpg",
        "images": ["tour-1-1.jpg", "tour-1-2.jpg"],
        "start_dates": ["2027-04-25T09:00:00Z", "2027-07-20T09:00:00Z"],
        "start_location": {
            "type": "Point",
            "coordinates": [-115.570154, 51.178456],
            "address": "224 Banff Ave, Banff, AB, Canada",
            "description": "Banff, CAN",
        },
        "locations": [
            {"type": "Point", "coordinates": [-116.214531, 51.417611], "description": "Banff National Park", "day": 1},
        ],
    }


@pytest.fixture
def create_tour(session_factory):
    """Factory inserting a tour directly into the database."""
    async def _create(name: str = "The Sea Explorer", **overrides) -> Tour:
        values = {
            "name": name,
            "duration": 7,
            "max_group_size": 15,
            "difficulty": "medium",
            "price": 497,
            "summary": "Exploring the jaw-dropping US east coast",
            "image_cover": "tour-2-cover.jpg",
            "start_dates": [datetime(2027, 6, 19, 9, tzinfo=timezone.utc)],
            "start_location": {
                "type": "Point",
                "coordinates": [-80.185942, 25.774772],
                "description": "Miami, USA",
            },
        }
        values.update(overrides)
        async with session_factory() as session:
            tour = Tour(**values)
            session.add(tour)
            await session.commit()
            return tour

    return _create
