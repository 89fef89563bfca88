"""
ReLive - Test Configuration and Fixtures
"""
import os
from datetime import date, time
from decimal import Decimal
from typing import Callable, Generator, Optional

# Set testing environment before the app module is imported
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["JWT_ACCESS_SECRET"] = "test-access-secret"
os.environ["JWT_REFRESH_SECRET"] = "test-refresh-secret"
os.environ["LOG_LEVEL"] = "WARNING"

import pytest
from faker import Faker
from fastapi.testclient import TestClient
from sqlalchemy.engine import Engine
from sqlmodel import Session

from config import Settings
from db import build_engine, create_db_and_tables
from main import create_app
from models import Request, Role, User, VolunteerOpportunity
from services.directory import Directory, Principal

fake = Faker()

TEST_SETTINGS = Settings(
    database_url="sqlite://",
    access_secret="test-access-secret",
    refresh_secret="test-refresh-secret",
    log_level="WARNING",
)

PASSWORD = "testpassword123"


@pytest.fixture
def settings() -> Settings:
    return TEST_SETTINGS


@pytest.fixture
def engine() -> Generator[Engine, None, None]:
    """Fresh in-memory database per test"""
    engine = build_engine("sqlite://")
    create_db_and_tables(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine: Engine) -> Generator[Session, None, None]:
    with Session(engine) as session:
        yield session


@pytest.fixture
def client(engine: Engine) -> Generator[TestClient, None, None]:
    """Test client bound to the per-test database"""
    app = create_app(TEST_SETTINGS, engine=engine)
    with TestClient(app) as c:
        yield c


# ---------------------------------------------------------------------------
# Service-level helpers
# ---------------------------------------------------------------------------

@pytest.fixture
def make_principal(session: Session) -> Callable[..., Principal]:
    """Create a user (and its role profile) directly in the database."""

    def _make(role: Role, with_profile: bool = True, **fields) -> Principal:
        user = User(
            name=fake.name(),
            email=fake.unique.email(),
            password_hash="not-a-real-hash",
            role=role.value,
        )
        session.add(user)
        session.flush()
        if with_profile:
            Directory(session).create_profile(user, **fields)
        session.commit()
        return Principal(id=user.id, role=role)

    return _make


@pytest.fixture
def shelter_id(session: Session, make_principal) -> int:
    principal = make_principal(Role.SHELTER, location="Downtown", capacity=40)
    return Directory(session).shelter_for(principal).id


@pytest.fixture
def make_request(session: Session, shelter_id: int) -> Callable[..., Request]:
    def _make(quantity="100", unit="kg", request_type="Rice", **fields) -> Request:
        request = Request(
            shelter_id=fields.pop("owner", shelter_id),
            request_type=request_type,
            quantity=Decimal(quantity),
            unit=unit,
            **fields,
        )
        session.add(request)
        session.commit()
        session.refresh(request)
        return request

    return _make


@pytest.fixture
def make_opportunity(session: Session, shelter_id: int) -> Callable[..., VolunteerOpportunity]:
    def _make(
        needed: int = 2,
        date_needed: Optional[date] = None,
        time_needed: Optional[time] = None,
        **fields,
    ) -> VolunteerOpportunity:
        opportunity = VolunteerOpportunity(
            shelter_id=shelter_id,
            title=fields.pop("title", "Sort pantry"),
            task_type=fields.pop("task_type", "Sorting"),
            volunteers_needed=needed,
            date_needed=date_needed,
            time_needed=time_needed,
            **fields,
        )
        session.add(opportunity)
        session.commit()
        session.refresh(opportunity)
        return opportunity

    return _make


# ---------------------------------------------------------------------------
# API helpers
# ---------------------------------------------------------------------------

@pytest.fixture
def register(client: TestClient) -> Callable[..., dict]:
    """Register through the API and return the response body plus auth headers."""

    def _register(role: str, **extra) -> dict:
        body = {
            "email": fake.unique.email(),
            "password": PASSWORD,
            "name": fake.name(),
            "role": role,
            **extra,
        }
        response = client.post("/auth/register", json=body)
        assert response.status_code == 201, response.text
        data = response.json()
        data["email"] = body["email"]
        data["headers"] = {"Authorization": f"Bearer {data['accessToken']}"}
        return data

    return _register
