"""
Pytest configuration and fixtures.
"""
import time
import uuid

import jwt
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from fastapi.testclient import TestClient
from unittest.mock import patch

from gitsum.core.config import settings
from gitsum.core.database import Base, get_db
from gitsum.main import app

# Import all models so their tables are created
from gitsum.models import User, APIKey

TEST_SESSION_SECRET = "test-session-secret-0123456789abcdef"

# Use file-based SQLite for testing (shared across threads and connections)
TEST_DATABASE_URL = "sqlite:///./test_gitsum.db"

test_engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False, "timeout": 30},
    pool_pre_ping=False,
)

TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)


@pytest.fixture(scope="session", autouse=True)
def setup_test_database():
    """Create all tables once per test session and drop them afterwards."""
    Base.metadata.drop_all(bind=test_engine)
    Base.metadata.create_all(bind=test_engine)
    yield
    Base.metadata.drop_all(bind=test_engine)


@pytest.fixture(scope="function", autouse=True)
def session_secret():
    """Sign and verify session cookies with a known secret."""
    with patch.object(settings, "SESSION_SECRET", TEST_SESSION_SECRET):
        yield TEST_SESSION_SECRET


@pytest.fixture(scope="function", autouse=True)
def disable_openai():
    """Summaries come from extraction unless a test opts in."""
    with patch.object(settings, "OPENAI_API_KEY", None):
        yield


def override_get_db():
    """Override get_db dependency to use test database session."""
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture(scope="function")
def client():
    """Test client backed by the test database."""
    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture(scope="function")
def db_session():
    """Database session for tests that need direct DB access."""
    db = TestingSessionLocal()
    try:
        yield db
        db.rollback()
    finally:
        db.close()


def make_session_token(email, secret=TEST_SESSION_SECRET, expires_in=3600, **claims):
    """Mint a session token the way the sign-in provider would."""
    now = int(time.time())
    payload = {"sub": str(uuid.uuid4()), "iat": now, "exp": now + expires_in, **claims}
    if email is not None:
        payload["email"] = email
    return jwt.encode(payload, secret, algorithm="HS256")


def session_headers(email, **kwargs):
    """Cookie header carrying a session token for ``email``."""
    return {"Cookie": f"next-auth.session-token={make_session_token(email, **kwargs)}"}


@pytest.fixture
def make_user(db_session):
    """Factory creating users with unique emails."""
    def _make_user(email=None, name="Test User"):
        user = User(
            email=email or f"user-{uuid.uuid4().hex[:12]}@example.com",
            name=name,
            provider="google",
            provider_account_id=uuid.uuid4().hex,
        )
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user
    return _make_user


@pytest.fixture
def user(make_user):
    return make_user()


@pytest.fixture
def auth_headers(user):
    """Session cookie headers for the default test user."""
    return session_headers(user.email)


@pytest.fixture
def make_key(db_session):
    """Factory inserting API keys directly."""
    def _make_key(owner, name="Test Key", key_type="dev", usage=0, limit=None, key=None):
        db_key = APIKey(
            user_id=owner.id,
            name=name,
            type=key_type,
            key=key or f"gitsum-{key_type}-{uuid.uuid4().hex[:24]}",
            usage=usage,
            usage_limit=limit,
        )
        db_session.add(db_key)
        db_session.commit()
        db_session.refresh(db_key)
        return db_key
    return _make_key


@pytest.fixture
def login():
    """Return a helper building session cookie headers for an email."""
    return session_headers


@pytest.fixture
def session_factory():
    """Session factory for tests that need one session per thread."""
    return TestingSessionLocal


@pytest.fixture
def session_token():
    """Return a helper minting signed session tokens."""
    return make_session_token
