from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient
from sqlmodel import SQLModel, create_engine
from sqlmodel.pool import StaticPool

import taskflow.models  # noqa: F401  (registers tables)
from taskflow.core.security import get_password_hash
from taskflow.core.session import SessionContext
from taskflow.db.session import get_store
from taskflow.db.store import EntityStore
from taskflow.main import app
from taskflow.models.user import Account, UserProfile
from taskflow.services.companies import CompanyService


def make_session(store: EntityStore, email: str, display_name: str) -> SessionContext:
    account_id = store.add(Account, {
        "email": email,
        "password": get_password_hash("password123"),
        "display_name": display_name,
    })
    return SessionContext.from_account(store.get(Account, account_id))


def refresh_session(store: EntityStore, session: SessionContext) -> SessionContext:
    return SessionContext.from_account(store.get(Account, session.uid), store.get(UserProfile, session.uid))


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def store(engine):
    return EntityStore(engine, retry_attempts=2, retry_delay=0)


@pytest.fixture
def workspace(store):
    """A company owned by alice, with bob as a second member."""
    companies = CompanyService(store)
    alice = make_session(store, "alice@example.com", "Alice")
    company = companies.create_company("Acme", alice)
    bob = make_session(store, "bob@example.com", "Bob")
    company = companies.join_company(company.id, bob)
    return SimpleNamespace(
        company=company,
        alice=refresh_session(store, alice),
        bob=refresh_session(store, bob),
    )


@pytest.fixture
def client(store):
    app.dependency_overrides[get_store] = lambda: store
    yield TestClient(app)
    app.dependency_overrides.clear()


def register_and_login(client: TestClient, email: str, display_name: str) -> dict:
    """Register an account through the API and return bearer headers for it."""
    response = client.post("/api/v1/auth/register", json={
        "email": email,
        "password": "password123",
        "display_name": display_name,
    })
    assert response.status_code == 200, response.text
    response = client.post("/api/v1/auth/login", data={"username": email, "password": "password123"})
    assert response.status_code == 200, response.text
    client.cookies.clear()
    return {"Authorization": f"Bearer {response.json()['access_token']}"}
