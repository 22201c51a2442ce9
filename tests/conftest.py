'''
Pytest configuration for the FastAPI application.

This file sets up fixtures for:
1. Forcing the application into TEST_MODE before any code is imported.
2. A fresh in-memory SQLite database, schema included, for each test.
3. An httpx AsyncClient wired to the app through ASGITransport.
4. Service instances pre-injected with the test db session.
5. A small college ("tenant A") with staff, students, a course and a fee,
   plus a second college ("tenant B") for isolation checks.
'''
import os

# Must run before any application module reads the settings.
from tests.constants import TEST_SECRET_KEY, TEST_DATABASE_URL
os.environ["TEST_MODE"] = "True"
os.environ["SECRET_KEY"] = TEST_SECRET_KEY
os.environ["DATABASE_URL"] = TEST_DATABASE_URL
os.environ["DATABASE_URL_TEST"] = TEST_DATABASE_URL
os.environ["BCRYPT_ROUNDS"] = "4"

import pytest
from typing import AsyncGenerator
from decimal import Decimal
from unittest.mock import MagicMock

import httpx
from sqlalchemy.ext.asyncio import AsyncSession

from campus_link_backend.main import app
from campus_link_backend.common.rate_limit import limiter
from campus_link_backend.database import engine as db_engine
from campus_link_backend.database.models import Base
from campus_link_backend.database import models as db_models
from campus_link_backend.services.security import AuthenticationService
from campus_link_backend.services.user_service import UserService
from campus_link_backend.services.tenant_service import TenantService
from campus_link_backend.services.auth_service import LoginService
from campus_link_backend.services.notification_service import NotificationService, get_notification_service
from campus_link_backend.services.fee_service import (
    FeeDefinitionService,
    FeeLedgerService,
    FeeReportService
)
from tests.database import factories


@pytest.fixture(scope="session")
def anyio_backend():
    """
    Override the default 'anyio_backend' fixture.
    1. Forces the backend to 'asyncio' (aiosqlite has no trio support).
    2. Promotes the scope to 'session' (solves 'ScopeMismatch').
    """
    return "asyncio"


# --- 1. Database Fixtures ---

@pytest.fixture(scope="function")
async def test_engine():
    """
    Creates the app's engine and session factory on a brand-new in-memory
    database and builds the schema. Requests made through 'client' use the
    same factory, so they see the same database.
    """
    engine = db_engine.create_db_engine_and_session_factory(TEST_DATABASE_URL)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await db_engine.dispose_db_engine()


@pytest.fixture(scope="function")
async def db_session(test_engine) -> AsyncGenerator[AsyncSession, None]:
    """
    The session the tests and factories write through.
    Data needed by HTTP requests must be committed first.
    """
    session = db_engine.AsyncSessionLocal()
    factories.test_db_session = session
    try:
        yield session
    finally:
        factories.test_db_session = None
        await session.rollback()
        await session.close()


# --- 2. HTTP Client ---

@pytest.fixture(scope="function")
def mock_notification_service() -> NotificationService:
    return MagicMock(spec=NotificationService)


@pytest.fixture(scope="function")
async def client(test_engine, mock_notification_service) -> AsyncGenerator[httpx.AsyncClient, None]:
    """
    Talks to the app in-process. The lifespan does not run; test_engine has
    already created what it would.
    """
    app.dependency_overrides[get_notification_service] = lambda: mock_notification_service
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture(autouse=True)
def reset_login_throttle():
    """Every request comes from the same test address; start each test with a clean slate."""
    limiter.reset()
    yield


# --- 3. SERVICE FIXTURES ---

@pytest.fixture(scope="function")
def user_service(db_session: AsyncSession) -> UserService:
    return UserService(db=db_session)

@pytest.fixture(scope="function")
def tenant_service(db_session: AsyncSession) -> TenantService:
    return TenantService(db=db_session)

@pytest.fixture(scope="function")
def auth_service(db_session: AsyncSession) -> AuthenticationService:
    return AuthenticationService(db=db_session)

@pytest.fixture(scope="function")
def login_service(user_service: UserService, auth_service: AuthenticationService) -> LoginService:
    return LoginService(user_service=user_service, auth_service=auth_service)

@pytest.fixture(scope="function")
def fee_definition_service(db_session: AsyncSession, mock_notification_service) -> FeeDefinitionService:
    return FeeDefinitionService(db=db_session, notification_service=mock_notification_service)

@pytest.fixture(scope="function")
def fee_ledger_service(
    db_session: AsyncSession,
    user_service: UserService,
    mock_notification_service
) -> FeeLedgerService:
    return FeeLedgerService(
        db=db_session,
        user_service=user_service,
        notification_service=mock_notification_service
    )

@pytest.fixture(scope="function")
def fee_report_service(db_session: AsyncSession) -> FeeReportService:
    return FeeReportService(db=db_session)


# --- 4. DATA FIXTURES ---

@pytest.fixture(scope="function")
async def tenant_a(db_session: AsyncSession) -> db_models.Tenants:
    tenant = factories.TenantFactory(name="Riverside College")
    await db_session.flush()
    return tenant

@pytest.fixture(scope="function")
async def tenant_b(db_session: AsyncSession) -> db_models.Tenants:
    tenant = factories.TenantFactory(name="Hilltop College")
    await db_session.flush()
    return tenant

@pytest.fixture(scope="function")
async def super_admin(db_session: AsyncSession) -> db_models.Users:
    user = factories.SuperAdminFactory(email="root@campuslink.io")
    await db_session.flush()
    return user

@pytest.fixture(scope="function")
async def admin_a(db_session: AsyncSession, tenant_a) -> db_models.Users:
    user = factories.CollegeAdminFactory(tenant=tenant_a, email="admin@riverside.edu")
    await db_session.flush()
    return user

@pytest.fixture(scope="function")
async def admin_b(db_session: AsyncSession, tenant_b) -> db_models.Users:
    user = factories.CollegeAdminFactory(tenant=tenant_b, email="admin@hilltop.edu")
    await db_session.flush()
    return user

@pytest.fixture(scope="function")
async def teacher_a(db_session: AsyncSession, tenant_a) -> db_models.Users:
    user = factories.TeacherFactory(tenant=tenant_a, email="teacher@riverside.edu")
    await db_session.flush()
    return user

@pytest.fixture(scope="function")
async def student_a1(db_session: AsyncSession, tenant_a) -> db_models.Users:
    user = factories.StudentFactory(tenant=tenant_a, email="student1@riverside.edu")
    await db_session.flush()
    return user

@pytest.fixture(scope="function")
async def student_a2(db_session: AsyncSession, tenant_a) -> db_models.Users:
    user = factories.StudentFactory(tenant=tenant_a, email="student2@riverside.edu")
    await db_session.flush()
    return user

@pytest.fixture(scope="function")
async def parent_a(db_session: AsyncSession, tenant_a, student_a1) -> db_models.Users:
    """A guardian of student_a1 only."""
    user = factories.ParentFactory(tenant=tenant_a, email="parent@riverside.edu")
    factories.GuardianLinkFactory(guardian=user, student=student_a1)
    await db_session.flush()
    return user

@pytest.fixture(scope="function")
async def course_a(db_session: AsyncSession, tenant_a) -> db_models.Courses:
    course = factories.CourseFactory(tenant=tenant_a, name="Computer Science")
    await db_session.flush()
    return course

@pytest.fixture(scope="function")
async def period_a(db_session: AsyncSession, tenant_a) -> db_models.AcademicPeriods:
    period = factories.AcademicPeriodFactory(tenant=tenant_a)
    await db_session.flush()
    return period

@pytest.fixture(scope="function")
async def admitted_students_a(
    db_session: AsyncSession, course_a, period_a, student_a1, student_a2
) -> list[db_models.Users]:
    """student_a1 and student_a2, both with an approved admission to course_a."""
    for student in (student_a1, student_a2):
        factories.AdmissionFactory(student=student, course=course_a, academic_period=period_a)
    await db_session.flush()
    return [student_a1, student_a2]

@pytest.fixture(scope="function")
async def fee_definition_a(db_session: AsyncSession, course_a, period_a, admin_a) -> db_models.FeeDefinitions:
    definition = factories.FeeDefinitionFactory(
        course=course_a,
        academic_period=period_a,
        amount=Decimal("1000.00"),
        created_by=admin_a.id
    )
    await db_session.flush()
    return definition

@pytest.fixture(scope="function")
async def obligation_a1(db_session: AsyncSession, fee_definition_a, student_a1) -> db_models.StudentFeeObligations:
    """student_a1 owes 1000.00, nothing paid yet."""
    obligation = factories.ObligationFactory(fee_definition=fee_definition_a, student=student_a1)
    await db_session.flush()
    return obligation

@pytest.fixture(scope="function")
async def obligation_a2(db_session: AsyncSession, fee_definition_a, student_a2) -> db_models.StudentFeeObligations:
    obligation = factories.ObligationFactory(fee_definition=fee_definition_a, student=student_a2)
    await db_session.flush()
    return obligation

@pytest.fixture(scope="function")
async def obligation_b(db_session: AsyncSession, tenant_b, admin_b) -> db_models.StudentFeeObligations:
    """An obligation owned by the other college."""
    course = factories.CourseFactory(tenant=tenant_b)
    period = factories.AcademicPeriodFactory(tenant=tenant_b)
    student = factories.StudentFactory(tenant=tenant_b)
    definition = factories.FeeDefinitionFactory(course=course, academic_period=period, created_by=admin_b.id)
    obligation = factories.ObligationFactory(fee_definition=definition, student=student)
    await db_session.flush()
    return obligation
