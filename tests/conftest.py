'''
Pytest configuration for the FastAPI application.

This file sets up fixtures for:
1. Forcing the application into TEST_MODE before any code is imported.
2. A fresh in-memory database per test, seeded with a teacher, an hour
   rate and three students of known balance.
3. An async HTTP client bound to the app, using the test database.
4. Instances of all service classes, pre-injected with a test db session.
'''

import os

# Must happen before the settings are imported anywhere.
os.environ["TEST_MODE"] = "True"

import pytest
from typing import AsyncGenerator

# --- FastAPI & Testing Imports ---
import httpx
from sqlalchemy.ext.asyncio import AsyncSession, AsyncEngine, async_sessionmaker

# --- Constant Imports ----
from tests.constants import (
    TEST_TEACHER_ID,
    TEST_HOUR_RATE_ID,
    TEST_STUDENT_EMPTY_ID,
    TEST_STUDENT_RICH_ID,
    TEST_STUDENT_LOW_ID,
    TEST_STUDENT_EMPTY_BALANCE,
    TEST_STUDENT_RICH_BALANCE,
    TEST_STUDENT_LOW_BALANCE,
)
from tests.database.factories import TeacherFactory, TeacherHourRateFactory, StudentFactory

# --- Application Imports ---
from src.tutor_ledger_backend.main import app
from src.tutor_ledger_backend.common.config import settings
from src.tutor_ledger_backend.database.engine import get_db_session, build_engine, build_session_factory
from src.tutor_ledger_backend.database import models as db_models
from src.tutor_ledger_backend.services.debt_service import DebtCalculationService, ReconciliationService
from src.tutor_ledger_backend.services.class_session_service import ClassSessionService
from src.tutor_ledger_backend.services.student_service import StudentService
from src.tutor_ledger_backend.services.payment_service import PaymentService


@pytest.fixture(scope="session")
def anyio_backend():
    """
    Override the default 'anyio_backend' fixture.
    1. Forces the backend to 'asyncio'.
    2. Promotes the scope to 'session'.
    """
    return "asyncio"


# --- 1. Database Fixtures ---

@pytest.fixture(scope="function")
async def db_engine() -> AsyncGenerator[AsyncEngine, None]:
    """
    A brand new in-memory database for every test, with the schema created.
    """
    assert settings.TEST_MODE is True, \
        "TEST_MODE was not set to True! Check your .env file or environment."

    engine = build_engine(settings.DATABASE_URL_TEST)
    async with engine.begin() as conn:
        await conn.run_sync(db_models.Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture(scope="function")
def session_factory(db_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return build_session_factory(db_engine)


@pytest.fixture(scope="function")
async def seed_ledger(session_factory: async_sessionmaker[AsyncSession]) -> None:
    """
    Commits the base data every ledger test works with.
    """
    async with session_factory() as session:
        session.add_all([
            TeacherFactory.build(id=TEST_TEACHER_ID),
            TeacherHourRateFactory.build(id=TEST_HOUR_RATE_ID),
            StudentFactory.build(id=TEST_STUDENT_EMPTY_ID, hour_balance=TEST_STUDENT_EMPTY_BALANCE),
            StudentFactory.build(id=TEST_STUDENT_RICH_ID, hour_balance=TEST_STUDENT_RICH_BALANCE),
            StudentFactory.build(id=TEST_STUDENT_LOW_ID, hour_balance=TEST_STUDENT_LOW_BALANCE),
        ])
        await session.commit()


@pytest.fixture(scope="function")
async def db_session(
    session_factory: async_sessionmaker[AsyncSession],
    seed_ledger: None
) -> AsyncGenerator[AsyncSession, None]:
    """
    Provides a single database session for service-level tests. Anything
    the test does not commit is rolled back.
    """
    session = session_factory()
    try:
        yield session
    finally:
        await session.rollback()
        await session.close()


# --- 2. Client Fixture (For API Tests) ---

@pytest.fixture(scope="function")
async def client(
    session_factory: async_sessionmaker[AsyncSession],
    seed_ledger: None
) -> AsyncGenerator[httpx.AsyncClient, None]:
    """
    An async client talking to the app in-process. Each request gets its
    own session from the test database, committed on success and rolled
    back on error, the same way the production dependency behaves.
    """
    async def override_get_db_session() -> AsyncGenerator[AsyncSession, None]:
        session = session_factory()
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()

    app.dependency_overrides[get_db_session] = override_get_db_session

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as test_client:
        yield test_client

    app.dependency_overrides.clear()


# --- 3. SERVICE FIXTURES ---

@pytest.fixture(scope="function")
def debt_calculation_service(db_session: AsyncSession) -> DebtCalculationService:
    return DebtCalculationService(db=db_session)

@pytest.fixture(scope="function")
def reconciliation_service(db_session: AsyncSession) -> ReconciliationService:
    return ReconciliationService(db=db_session)

@pytest.fixture(scope="function")
def class_session_service(
    db_session: AsyncSession,
    debt_calculation_service: DebtCalculationService,
    reconciliation_service: ReconciliationService
) -> ClassSessionService:
    return ClassSessionService(
        db=db_session,
        debt_calculation_service=debt_calculation_service,
        reconciliation_service=reconciliation_service
    )

@pytest.fixture(scope="function")
def student_service(db_session: AsyncSession) -> StudentService:
    return StudentService(db=db_session)

@pytest.fixture(scope="function")
def payment_service(db_session: AsyncSession) -> PaymentService:
    return PaymentService(db=db_session)


# --- 4. DATA FIXTURES ---

@pytest.fixture(scope="function")
async def student_empty_orm(db_session: AsyncSession) -> db_models.Students:
    student = await db_session.get(db_models.Students, TEST_STUDENT_EMPTY_ID)
    assert student is not None, f"Test student {TEST_STUDENT_EMPTY_ID} not found in DB."
    return student

@pytest.fixture(scope="function")
async def student_rich_orm(db_session: AsyncSession) -> db_models.Students:
    student = await db_session.get(db_models.Students, TEST_STUDENT_RICH_ID)
    assert student is not None, f"Test student {TEST_STUDENT_RICH_ID} not found in DB."
    return student

@pytest.fixture(scope="function")
async def student_low_orm(db_session: AsyncSession) -> db_models.Students:
    student = await db_session.get(db_models.Students, TEST_STUDENT_LOW_ID)
    assert student is not None, f"Test student {TEST_STUDENT_LOW_ID} not found in DB."
    return student
