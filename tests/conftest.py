"""
Shared fixtures: in-memory SQLite, dependency overrides, users and signed webhooks.
"""
import hashlib
import hmac
import json
import os
import time
import uuid

# Settings are read at import time
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["STRIPE_WEBHOOK_SECRET"] = "whsec_test_secret"
os.environ["STRIPE_SECRET_KEY"] = ""
os.environ["OPENAI_API_KEY"] = ""
os.environ["ADMIN_SECRET_KEY"] = "admin-test-key"
os.environ["RATE_LIMIT_BACKEND"] = "memory"
os.environ["SECRET_KEY"] = "test-secret-key"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from car_reliability.main import app
from car_reliability.db.base import Base
import car_reliability.db.models  # noqa: F401
from car_reliability.db.models.user import User
from car_reliability.core.auth_dependency import get_db
from car_reliability.core.rate_limit import InMemoryRateLimiter, get_rate_limiter
from car_reliability.core.security import hash_password, create_access_token
from car_reliability.services import ledger_service, report_service

WEBHOOK_SECRET = "whsec_test_secret"
DEFAULT_PASSWORD = "pw123456"

# Setup in-memory SQLite database for testing
TEST_DATABASE_URL = "sqlite:///:memory:"
test_engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)


def override_get_db():
    """Override get_db dependency for testing."""
    db = TestSessionLocal()
    try:
        yield db
    finally:
        db.close()


# Override the database dependency
app.dependency_overrides[get_db] = override_get_db


@pytest.fixture(scope="function", autouse=True)
def setup_db():
    """Create and drop tables for each test."""
    Base.metadata.create_all(bind=test_engine)
    yield
    Base.metadata.drop_all(bind=test_engine)


@pytest.fixture(autouse=True)
def rate_limiter():
    """Fresh in-memory limiter per test."""
    limiter = InMemoryRateLimiter()
    app.dependency_overrides[get_rate_limiter] = lambda: limiter
    yield limiter
    app.dependency_overrides.pop(get_rate_limiter, None)


@pytest.fixture(autouse=True)
def no_llm(monkeypatch):
    """Reports use placeholder data unless a test installs a provider."""
    monkeypatch.setattr(report_service, "get_llm_provider", lambda: None)


@pytest.fixture
def db_session():
    """Provide a database session for tests."""
    db = TestSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def session_factory():
    """Sessions for reading committed state after a request."""
    return TestSessionLocal


@pytest.fixture
def client():
    """Create test client."""
    return TestClient(app)


@pytest.fixture
def make_user(db_session):
    """Factory creating a committed user with a default basic entitlement."""
    def _make_user(email: str = "a@x.com", password: str = DEFAULT_PASSWORD, with_default: bool = True) -> User:
        user = User(email=email, password_hash=hash_password(password))
        db_session.add(user)
        db_session.flush()
        if with_default:
            ledger_service.create_default_record(db_session, user.id)
        db_session.commit()
        db_session.refresh(user)
        return user
    return _make_user


@pytest.fixture
def auth_headers():
    def _auth_headers(user: User) -> dict:
        return {"Authorization": f"Bearer {create_access_token(user.id, user.email)}"}
    return _auth_headers


def sign_payload(payload: bytes, secret: str = WEBHOOK_SECRET, timestamp: int = None) -> str:
    """Stripe-Signature header for ``payload``."""
    timestamp = int(time.time()) if timestamp is None else timestamp
    signed = f"{timestamp}.".encode("utf-8") + payload
    signature = hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={signature}"


def build_event(event_type: str, data_object: dict, event_id: str = None) -> dict:
    return {
        "id": event_id or f"evt_{uuid.uuid4().hex}",
        "object": "event",
        "type": event_type,
        "data": {"object": data_object},
    }


@pytest.fixture
def send_event(client):
    """Post a correctly signed webhook event; returns the response."""
    def _send_event(event_type: str, data_object: dict, event_id: str = None, path: str = "/api/webhooks/stripe"):
        payload = json.dumps(build_event(event_type, data_object, event_id)).encode("utf-8")
        return client.post(
            path,
            content=payload,
            headers={"Stripe-Signature": sign_payload(payload), "Content-Type": "application/json"},
        )
    return _send_event


@pytest.fixture
def signer():
    return sign_payload


@pytest.fixture
def event_builder():
    return build_event
