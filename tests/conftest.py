import os
from collections.abc import AsyncGenerator

import pytest
import pytest_asyncio
from dotenv import load_dotenv

# Tests never touch the configured database or Redis
os.environ["DATABASE_URL"] = "sqlite:///./medicare_test.db"
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")
os.environ.setdefault("LOG_FORMAT", "console")

load_dotenv()

from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from app.core.permissions import Role
from app.database import get_db, set_sqlite_pragma
from app.dependencies import get_cache_manager
from app.main import app
from app.models import metadata
from tests.factories import BOOKING_DAY, create_account, set_doctor_fee


@pytest_asyncio.fixture
async def db_session(tmp_path) -> AsyncGenerator[AsyncSession, None]:
    """Fresh SQLite database per test."""
    test_engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        poolclass=NullPool,
    )
    event.listen(test_engine.sync_engine, "connect", set_sqlite_pragma)

    async with test_engine.begin() as conn:
        await conn.run_sync(metadata.create_all)

    session_factory = async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session

    await test_engine.dispose()


@pytest_asyncio.fixture
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Create a test HTTP client."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_cache_manager] = lambda: None

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def admin(db_session: AsyncSession) -> dict:
    return await create_account(db_session, Role.ADMIN, "admin@medicare.com", "Clinic Admin")


@pytest_asyncio.fixture
async def doctor(db_session: AsyncSession) -> dict:
    """Cardiologist charging 1500.00."""
    account = await create_account(db_session, Role.DOCTOR, "house@medicare.com", "Dr. House")
    await set_doctor_fee(db_session, account["profile"]["id"], "1500.00", "Cardiology")
    return account


@pytest_asyncio.fixture
async def other_doctor(db_session: AsyncSession) -> dict:
    account = await create_account(db_session, Role.DOCTOR, "wilson@medicare.com", "Dr. Wilson")
    await set_doctor_fee(db_session, account["profile"]["id"], "800.00", "Oncology")
    return account


@pytest_asyncio.fixture
async def patient(db_session: AsyncSession) -> dict:
    return await create_account(db_session, Role.PATIENT, "alice@mail.com", "Alice Patient")


@pytest_asyncio.fixture
async def other_patient(db_session: AsyncSession) -> dict:
    return await create_account(db_session, Role.PATIENT, "bob@mail.com", "Bob Patient")


@pytest.fixture
def booking_payload(doctor: dict) -> dict:
    """Self-service booking of the 10:00 slot."""
    return {
        "doctor_id": doctor["profile"]["id"],
        "appointment_date": BOOKING_DAY.isoformat(),
        "appointment_time": "10:00",
        "notes": "Chest pain on exertion",
    }


@pytest_asyncio.fixture
async def booked(client: AsyncClient, patient: dict, booking_payload: dict) -> dict:
    """An appointment booked by ``patient`` with ``doctor``."""
    response = await client.post(
        "/api/v1/appointments/book", json=booking_payload, headers=patient["headers"]
    )
    assert response.status_code == 201, response.text
    return response.json()
