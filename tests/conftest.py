"""Pytest configuration and fixtures."""

import os
import time
from unittest.mock import patch

# Settings are read at import time; keep the app from migrating a real database.
os.environ.setdefault("RUN_MIGRATIONS_ON_STARTUP", "false")
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("SESSION_SECRET_KEY", "test-session-secret")
os.environ.setdefault("SEED_DEFAULT_ACCOUNTS", "false")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import Session, sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from portal.database import Base, get_db  # noqa: E402
from portal.models.account import Account  # noqa: E402
from portal.models.audit_log import AuditLogEntry  # noqa: E402, F401
from portal.models.file_record import FileRecord  # noqa: E402, F401
from portal.models.session import PortalSession  # noqa: E402, F401
from portal.rate_limit import LoginRateLimiter  # noqa: E402
from portal.services.accounts import AccountManager, hash_password  # noqa: E402
from portal.services.mailer import Mailer  # noqa: E402
from portal.services.sessions import SessionStore  # noqa: E402


class RecordingMailer(Mailer):
    """Delivers synchronously into a list."""

    def __init__(self) -> None:
        super().__init__(sender="no-reply@ivory.example")
        self.messages: list[dict] = []

    def deliver(self, to_email: str, subject: str, body: str) -> None:
        self.messages.append({"to": to_email, "subject": subject, "body": body})

    def send(self, to_email: str, subject: str, body: str) -> None:
        self._deliver_quietly(to_email, subject, body)


class FakeClock:
    """Stands in for ``time.time`` so tests can step through rate-limit windows."""

    def __init__(self, start: float | None = None) -> None:
        self.now = float(int(time.time())) if start is None else start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture(name="db_session")
def db_session_fixture():
    """Create an in-memory SQLite database for tests."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    testing_session_local = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    session = testing_session_local()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(name="mailer")
def mailer_fixture() -> RecordingMailer:
    return RecordingMailer()


@pytest.fixture(name="clock")
def clock_fixture():
    clock = FakeClock()
    with patch("time.time", clock):
        yield clock


@pytest.fixture(name="login_limiter")
def login_limiter_fixture(clock: FakeClock) -> LoginRateLimiter:
    return LoginRateLimiter(max_attempts=10, window_seconds=15 * 60)


@pytest.fixture(name="manager")
def manager_fixture(db_session: Session, mailer: RecordingMailer, login_limiter: LoginRateLimiter) -> AccountManager:
    return AccountManager(
        db=db_session,
        mailer=mailer,
        sessions=SessionStore(db_session, secret_key="test-session-secret"),
        login_limiter=login_limiter,
    )


@pytest.fixture(name="client")
def client_fixture(db_session: Session, manager: AccountManager, tmp_path):
    """Create a test client with overridden dependencies and disabled slowapi limits."""
    from main import app
    from portal.dependencies import get_account_manager, get_file_service
    from portal.rate_limit import limiter
    from portal.services.files import FileService

    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_account_manager] = lambda: manager
    app.dependency_overrides[get_file_service] = lambda: FileService(db_session, upload_dir=str(tmp_path / "uploads"))
    limiter.enabled = False
    with TestClient(app) as c:
        yield c
    limiter.enabled = True
    app.dependency_overrides.clear()


def _create_account(db: Session, email: str, password: str, name: str, is_admin: bool, is_verified: bool = True):
    account = Account(
        email=email,
        password_hash=hash_password(password),
        display_name=name,
        is_admin=is_admin,
        is_verified=is_verified,
    )
    db.add(account)
    db.commit()
    db.refresh(account)
    return {"id": account.id, "email": email, "password": password, "name": name}


@pytest.fixture(name="test_user")
def test_user_fixture(db_session: Session) -> dict:
    """A verified client account."""
    return _create_account(db_session, "client@example.com", "password123", "Test Client", is_admin=False)


@pytest.fixture(name="admin_user")
def admin_user_fixture(db_session: Session) -> dict:
    """A verified admin account."""
    return _create_account(db_session, "admin@example.com", "adminpass123", "Test Admin", is_admin=True)


@pytest.fixture(name="login_as")
def login_as_fixture(client: TestClient):
    """Log a user in through the API; the session cookie stays on the client."""

    def _login(user: dict):
        response = client.post("/api/v1/auth/login", json={"email": user["email"], "password": user["password"]})
        assert response.status_code == 200, response.text
        return response

    return _login
