from types import SimpleNamespace
from unittest.mock import patch
from urllib.parse import parse_qs, urlparse

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from chatty_auth.core.config import Settings
from chatty_auth.core.database import Base, get_db
from chatty_auth.core.security import get_password_hash
from chatty_auth.main import create_app
from chatty_auth.models.user import User
from chatty_auth.services.session_issuer import SessionIssuer

# SQLite in-memory database shared by the app and the test through StaticPool
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def settings():
    """Explicit settings so tests never depend on the environment or a .env file"""
    return Settings(
        _env_file=None,
        secret_key="test-secret-key",
        database_url="sqlite://",
        environment="development",
        frontend_url="http://localhost:5173",
        sendgrid_api_key=None,
        sendgrid_from_email=None,
        stream_api_key=None,
        stream_api_secret=None,
    )


@pytest.fixture(scope="function")
def db_session():
    """Fresh database session for each test"""
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def app(settings):
    return create_app(settings)


@pytest.fixture
def outbox():
    """Patch outbound email and presence calls made by the auth endpoints"""
    with patch("chatty_auth.api.v1.auth.send_verification_email") as mock_send_verify:
        with patch("chatty_auth.api.v1.auth.send_reset_email") as mock_send_reset:
            with patch("chatty_auth.api.v1.auth.sync_presence") as mock_presence:
                yield SimpleNamespace(
                    verification=mock_send_verify,
                    reset=mock_send_reset,
                    presence=mock_presence,
                )


@pytest.fixture(scope="function")
def client(app, db_session, outbox):
    """Test client with the database session override"""
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture
def emailed_token(outbox):
    """Return the raw token embedded in the most recent emailed link"""
    def _emailed_token(kind="verification"):
        if kind == "verification":
            url = outbox.verification.call_args.kwargs["verification_url"]
        else:
            url = outbox.reset.call_args.kwargs["reset_url"]
        return parse_qs(urlparse(url).query)["token"][0]

    return _emailed_token


@pytest.fixture
def create_test_user(db_session):
    """Factory fixture for persisted users"""
    def _create_user(
        email="test@example.com",
        password="secret1",
        full_name="Test User",
        verified=True,
        onboarded=False,
    ):
        user = User(
            email=email,
            full_name=full_name,
            password_hash=get_password_hash(password),
            is_email_verified=verified,
            is_onboarded=onboarded,
        )
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user

    return _create_user


@pytest.fixture
def auth_headers(settings):
    """Bearer header carrying a session credential for the given user"""
    def _auth_headers(user):
        token = SessionIssuer(settings).issue(user.id)
        return {"Authorization": f"Bearer {token}"}

    return _auth_headers
