"""
Shared pytest fixtures.

Provides:
    - engine / session: in-memory SQLite shared across threads (StaticPool)
    - client: TestClient with get_db pointed at the test session
    - make_user / make_project: factories for stored rows
    - auth_headers: bearer header for a stored user
"""
import os

# Cheap hashing for the test run; read when each hash is made
os.environ.setdefault("BCRYPT_ROUNDS", "4")

import itertools
from datetime import date

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from patentflow.core.security import create_session_token, get_password_hash
from patentflow.db.session import get_db, init_db
from patentflow.main import app
from patentflow.models.project import Project
from patentflow.models.user import Role, User
from patentflow.schemas.auth import SessionUser

PASSWORD = "correct-horse"


@pytest.fixture(name="engine")
def engine_fixture():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(engine)
    yield engine
    SQLModel.metadata.drop_all(engine)


@pytest.fixture(name="session")
def session_fixture(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture(name="client")
def client_fixture(session):
    def get_db_override():
        yield session

    app.dependency_overrides[get_db] = get_db_override
    # Not used as a context manager: the lifespan would create tables on the real engine
    client = TestClient(app)
    yield client
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(session):
    counter = itertools.count(1)

    def _make_user(name=None, roles=(Role.PROCESSOR,), email=None):
        n = next(counter)
        user = User(
            email=email or f"user{n}@example.com",
            name=name or f"User {n}",
            password=get_password_hash(PASSWORD),
            roles=[Role(role).value for role in roles],
        )
        session.add(user)
        session.commit()
        session.refresh(user)
        return user

    return _make_user


@pytest.fixture
def make_project(session):
    counter = itertools.count(1)

    def _make_project(**fields):
        n = next(counter)
        fields.setdefault("row_number", f"PF24{n:05d}")
        fields.setdefault("received_date", date(2024, 3, 1))
        project = Project(**fields)
        session.add(project)
        session.commit()
        session.refresh(project)
        return project

    return _make_project


def session_user(user: User) -> SessionUser:
    return SessionUser(id=user.id, email=user.email, name=user.name, roles=user.roles)


def bearer(user: User) -> dict:
    token = create_session_token(user.id, user.email, user.name, user.roles)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def auth_headers():
    return bearer


@pytest.fixture
def staff(make_user):
    """One user per role, plus a second processor."""
    return {
        "admin": make_user("Ada Admin", [Role.ADMIN]),
        "manager": make_user("Max Manager", [Role.MANAGER]),
        "processor": make_user("Pat Processor", [Role.PROCESSOR]),
        "other_processor": make_user("Olly Processor", [Role.PROCESSOR]),
        "qa": make_user("Quinn QA", [Role.QA]),
        "case_manager": make_user("Casey Manager", [Role.CASE_MANAGER]),
    }


@pytest.fixture
def assigned(staff):
    """Field values assigning a project to the staff processor, QA and case manager."""
    return {
        "processor": staff["processor"].name,
        "processorId": staff["processor"].id,
        "qa": staff["qa"].name,
        "qaId": staff["qa"].id,
        "case_manager": staff["case_manager"].name,
        "caseManagerId": staff["case_manager"].id,
    }
