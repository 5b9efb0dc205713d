"""
Event Approval - Test Configuration and Fixtures
"""
import io
import os
from datetime import datetime, timedelta, timezone

# Set testing environment before the app reads its settings
os.environ['TESTING_MODE'] = 'true'
os.environ['JWT_SECRET_KEY'] = 'test-jwt-secret-key-for-testing'
os.environ['MONGODB_DB'] = 'event_approval_test'
os.environ['REPORT_STORAGE_BACKEND'] = 'local'

import pytest
import pytest_asyncio
from bson import ObjectId
from httpx import AsyncClient, ASGITransport
from mongomock_motor import AsyncMongoMockClient
from pypdf import PdfWriter

from event_approval.main import app
from event_approval.core.config import settings
from event_approval.core.roles import Role
from event_approval.core.security import create_access_token, get_db, get_password_hash
from event_approval.models.user import Actor
from event_approval.services.report_storage import LocalReportStorage, get_report_storage
from event_approval.services.request_store import RequestStore
from event_approval.services.workflow_engine import WorkflowEngine


class SteppingClock:
    """Deterministic clock: every call is one minute after the previous one."""

    def __init__(self, start: datetime = datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)):
        self.current = start

    def __call__(self) -> datetime:
        self.current = self.current + timedelta(minutes=1)
        return self.current


def make_actor(role: Role, name: str = None, department: str = None) -> Actor:
    return Actor(
        user_id=str(ObjectId()),
        role=role,
        name=name or f"{role.value.title()} User",
        department=department,
    )


def make_pdf(pages: int = 1) -> bytes:
    writer = PdfWriter()
    for _ in range(pages):
        writer.add_blank_page(width=200, height=200)
    buffer = io.BytesIO()
    writer.write(buffer)
    return buffer.getvalue()


# --- Database / Engine ---

@pytest.fixture
def db():
    """A fresh in-memory Motor database per test."""
    return AsyncMongoMockClient()[settings.MONGODB_DB]


@pytest.fixture
def store(db) -> RequestStore:
    return RequestStore(db)


@pytest.fixture
def clock() -> SteppingClock:
    return SteppingClock()


@pytest.fixture
def engine(store, clock) -> WorkflowEngine:
    return WorkflowEngine(store, clock=clock)


# --- Actors ---

@pytest.fixture
def staff() -> Actor:
    return make_actor(Role.STAFF, name="Priya", department="CSE")


@pytest.fixture
def other_staff() -> Actor:
    return make_actor(Role.STAFF, name="Arun", department="CSE")


@pytest.fixture
def hod() -> Actor:
    return make_actor(Role.HOD, department="CSE")


@pytest.fixture
def other_hod() -> Actor:
    return make_actor(Role.HOD, department="ECE")


@pytest.fixture
def iqac() -> Actor:
    return make_actor(Role.IQAC)


@pytest.fixture
def principal() -> Actor:
    return make_actor(Role.PRINCIPAL)


@pytest.fixture
def director() -> Actor:
    return make_actor(Role.DIRECTOR)


@pytest.fixture
def ao() -> Actor:
    return make_actor(Role.AO)


@pytest.fixture
def ceo() -> Actor:
    return make_actor(Role.CEO)


@pytest_asyncio.fixture
async def pending_request(engine, staff):
    """A freshly created request waiting on the CSE HOD."""
    return await engine.create(staff, "AI Workshop", "2024-04-10", "Hands-on session on machine learning basics")


# --- Reports ---

@pytest.fixture
def pdf_bytes() -> bytes:
    return make_pdf()


@pytest.fixture
def report_storage(tmp_path) -> LocalReportStorage:
    return LocalReportStorage(tmp_path / "uploads")


# --- HTTP ---

@pytest_asyncio.fixture
async def client(db, report_storage):
    """Test client with the database and report storage overridden."""
    async def override_get_db():
        return db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_report_storage] = lambda: report_storage

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url='http://test') as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def create_user(db):
    """
    Inserts an account and returns (user_id, auth headers).
    Only hashes a password when one is given, since bcrypt is slow.
    """
    async def _create(role: Role, name: str = None, department: str = None, password: str = None):
        now = datetime.now(timezone.utc)
        doc = {
            "name": name or f"{role.value.title()} User",
            "role": role.value,
            "hashed_password": get_password_hash(password) if password else "not-a-hash",
            "department": department,
            "email": None,
            "created_at": now,
            "updated_at": now,
        }
        result = await db[settings.MONGODB_COLLECTION_USERS].insert_one(doc)
        user_id = str(result.inserted_id)
        token = create_access_token({"sub": user_id, "role": role.value})
        return user_id, {"Authorization": f"Bearer {token}"}

    return _create
