"""
Pytest fixtures for test database, client, collaborators and authentication.

Every test gets its own SQLite file, so sessions opened by concurrent
requests see each other's commits the way they would on PostgreSQL.
"""

import os

os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///./booking_engine_test.db"
os.environ["REDIS_ENABLED"] = "false"
os.environ["LOCK_STRATEGY"] = "local"
os.environ["PAYMENT_GATEWAY"] = "sandbox"
os.environ["NOTIFIER"] = "log"

import itertools
from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from booking_engine.core.security import create_access_token
from booking_engine.db.base import Base
from booking_engine.db.session import get_db
from booking_engine.main import app
from booking_engine.models.booking import Booking
from booking_engine.models.celebrity import Celebrity, FeeTier, Service, ServiceAddOn
from booking_engine.models.interval import ReservedInterval
from booking_engine.services.booking_service import generate_confirmation_code
from booking_engine.services.interfaces.local_lock import LocalReservationLock
from booking_engine.services.interfaces.notifier import Notifier
from booking_engine.services.interval_store import IntervalStore
from booking_engine.services.notification_service import get_notifier
from booking_engine.services.payment_service import SandboxPaymentGateway, get_payment_gateway
from booking_engine.services.pricing_service import quote
from booking_engine.services.strategy_factory import get_interval_store

CLIENT_ID = "client-1"
OTHER_CLIENT_ID = "client-2"
MANAGER_ID = "manager-1"
REVIEWER_ID = "reviewer-1"

_email_counter = itertools.count(1)


class RecordingNotifier(Notifier):
    """Keeps published events in memory for assertions."""

    def __init__(self):
        self.events: list[tuple[str, dict]] = []

    async def publish(self, event_type: str, payload: dict) -> None:
        self.events.append((event_type, payload))

    def types(self) -> list[str]:
        return [event_type for event_type, _ in self.events]


def unique_email(domain: str = "acme-events.io") -> str:
    return f"planner{next(_email_counter)}@{domain}"


def future_slot(days: int = 60, hour: int = 14, minute: int = 0) -> datetime:
    """A UTC start time `days` from now, pinned to a wall-clock time."""
    day = datetime.now(timezone.utc) + timedelta(days=days)
    return day.replace(hour=hour, minute=minute, second=0, microsecond=0)


@pytest_asyncio.fixture(scope="function")
async def engine(tmp_path):
    test_engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'bookings.db'}", echo=False)
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield test_engine
    await test_engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture(scope="function")
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def intervals() -> IntervalStore:
    return IntervalStore(LocalReservationLock())


@pytest.fixture
def gateway() -> SandboxPaymentGateway:
    return SandboxPaymentGateway()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest_asyncio.fixture(scope="function")
async def client(session_factory, intervals, gateway, notifier) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client with one session per request, like production."""

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_interval_store] = lambda: intervals
    app.dependency_overrides[get_payment_gateway] = lambda: gateway
    app.dependency_overrides[get_notifier] = lambda: notifier

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


def _headers(subject: str, role: str) -> dict:
    token = create_access_token(data={"sub": subject, "role": role})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def client_headers() -> dict:
    return _headers(CLIENT_ID, "client")


@pytest.fixture
def other_client_headers() -> dict:
    return _headers(OTHER_CLIENT_ID, "client")


@pytest.fixture
def manager_headers() -> dict:
    return _headers(MANAGER_ID, "manager")


@pytest.fixture
def reviewer_headers() -> dict:
    return _headers(REVIEWER_ID, "reviewer")


@pytest_asyncio.fixture
async def celebrity(db_session: AsyncSession) -> Celebrity:
    """A celebrity whose typical fee tops out at $50,000."""
    celebrity = Celebrity(
        name="Jordan Vale",
        category="music",
        typical_fee_min=1_000_000,
        typical_fee_max=5_000_000,
    )
    db_session.add(celebrity)
    await db_session.commit()
    await db_session.refresh(celebrity)
    return celebrity


@pytest_asyncio.fixture
async def service(db_session: AsyncSession, celebrity: Celebrity) -> Service:
    """$25,000 keynote."""
    service = Service(celebrity_id=celebrity.id, name="Keynote appearance", base_price=2_500_000)
    db_session.add(service)
    await db_session.commit()
    await db_session.refresh(service)
    return service


@pytest_asyncio.fixture
async def add_on(db_session: AsyncSession, service: Service) -> ServiceAddOn:
    """$1,000 meet-and-greet on the keynote."""
    add_on = ServiceAddOn(service_id=service.id, name="Meet and greet", price=100_000)
    db_session.add(add_on)
    await db_session.commit()
    await db_session.refresh(add_on)
    return add_on


@pytest_asyncio.fixture
async def fee_tiers(db_session: AsyncSession) -> dict:
    tiers = {
        "regional": FeeTier(kind="travel", code="regional", amount=300_000),
        "enhanced": FeeTier(kind="security", code="enhanced", amount=200_000),
    }
    db_session.add_all(tiers.values())
    await db_session.commit()
    return tiers


@pytest.fixture
def booking_payload(celebrity, service, add_on, fee_tiers):
    """
    Request body factory. With the add-on selected the quote is
    2,500,000 + 100,000 + 300,000 + 200,000 + 130,000 fee = 3,230,000,
    deposit 1,615,000.
    """

    def make(event_start: datetime = None, duration: int = 30, **overrides) -> dict:
        payload = {
            "celebrity_id": celebrity.id,
            "service_id": service.id,
            "event_start": (event_start or future_slot()).isoformat(),
            "event_duration_minutes": duration,
            "event_type": "corporate",
            "location": "Lisbon",
            "client_contact": {"name": "Sam Rivera", "email": unique_email()},
            "additional_service_ids": [add_on.id],
            "distance_tier": "regional",
            "security_tier": "enhanced",
            "terms_accepted": True,
        }
        payload.update(overrides)
        return payload

    return make


@pytest.fixture
def insert_booking(session_factory, celebrity, service):
    """
    Write a booking straight to the database, bypassing admission.
    Occupying statuses also get their reserved interval.
    """

    async def make(
        event_start: datetime,
        duration: int = 30,
        status: str = "confirmed",
        client_id: str = CLIENT_ID,
        amount_paid: int = None,
        email: str = None,
    ) -> Booking:
        pricing = quote(base_price=service.base_price, add_on_prices=[], travel_expenses=0, security_fees=0)
        end = event_start + timedelta(minutes=duration)
        booking = Booking(
            confirmation_code=generate_confirmation_code(),
            celebrity_id=celebrity.id,
            service_id=service.id,
            client_id=client_id,
            event_start=event_start,
            event_end=end,
            event_duration_minutes=duration,
            contact_name="Existing Client",
            contact_email=email or unique_email(),
            terms_accepted=True,
            additional_service_ids=[],
            distance_tier="local",
            security_tier="standard",
            status=status,
            payment_state="deposit_paid" if status != "draft" else "pending",
            amount_paid=pricing.deposit if amount_paid is None else amount_paid,
            payment_reference="sandbox_seed",
            **pricing.column_values(),
        )
        async with session_factory() as session:
            session.add(booking)
            await session.flush()
            if status in ("confirmed", "in_progress"):
                session.add(ReservedInterval(
                    celebrity_id=celebrity.id,
                    booking_id=booking.id,
                    start_at=event_start,
                    end_at=end,
                ))
            await session.commit()
            await session.refresh(booking)
        return booking

    return make
