from __future__ import annotations

import os
import sys
import time
from collections import Counter
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Generator, Optional

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

# Ensure the project root (which exposes the ``backend`` package) is on ``sys.path``
PROJECT_ROOT = Path(__file__).resolve().parents[2]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

os.environ.setdefault("ENABLE_STARTUP_MIGRATIONS", "0")

from backend.app.database import Base, get_db
from backend.app.main import app
from backend.app.services.remote_backend import (
    AuthenticationError,
    AuthSession,
    AuthUser,
    ProfileNotFoundError,
    RemoteBackend,
    RemoteBackendError,
    SchemaNotProvisionedError,
    SignUpResult,
)


class FakeBackend(RemoteBackend):
    """In-memory stand-in for the hosted auth/profile/storage provider."""

    storage_url = "https://storage.test/app-assets"

    def __init__(self) -> None:
        super().__init__()
        self.accounts: dict[str, tuple[str, str]] = {}
        self.profiles: dict[str, dict[str, Any]] = {}
        self.session: Optional[AuthSession] = None
        self.calls: Counter = Counter()
        self.uploads: dict[str, bytes] = {}
        self.sign_ups: list[dict[str, Any]] = []
        self.password_resets: list[str] = []
        self.probe_error: Optional[RemoteBackendError] = None
        self.session_error: Optional[RemoteBackendError] = None
        self.read_error: Optional[RemoteBackendError] = None
        self.insert_error: Optional[RemoteBackendError] = None
        self.list_error: Optional[RemoteBackendError] = None
        self.upload_error: Optional[RemoteBackendError] = None
        self.read_gate = None

    def add_account(
        self,
        user_id: str,
        email: str,
        password: str = "secret123",
        *,
        name: Optional[str] = None,
        role: Optional[str] = "staff",
        with_profile: bool = True,
    ) -> None:
        self.accounts[email] = (user_id, password)
        if with_profile:
            self.profiles[user_id] = {"id": user_id, "email": email, "name": name or email, "role": role}

    @staticmethod
    def session_for(user_id: str, email: Optional[str]) -> AuthSession:
        return AuthSession(
            access_token=f"token-{user_id}",
            refresh_token=f"refresh-{user_id}",
            expires_at=int(time.time()) + 3600,
            user=AuthUser(id=user_id, email=email),
        )

    async def probe_schema(self) -> None:
        self.calls["probe_schema"] += 1
        if self.probe_error is not None:
            raise self.probe_error

    async def get_current_session(self) -> Optional[AuthSession]:
        self.calls["get_current_session"] += 1
        if self.session_error is not None:
            raise self.session_error
        return self.session

    async def sign_in_with_password(self, email: str, password: str) -> AuthSession:
        self.calls["sign_in_with_password"] += 1
        account = self.accounts.get(email)
        if account is None or account[1] != password:
            raise AuthenticationError("Invalid login credentials", status_code=400)
        self.session = self.session_for(account[0], email)
        await self._notify_session_change(self.session)
        return self.session

    async def sign_out(self) -> None:
        self.calls["sign_out"] += 1
        self.session = None
        await self._notify_session_change(None)

    async def sign_up(self, email: str, password: str, metadata: dict[str, Any]) -> SignUpResult:
        self.sign_ups.append({"email": email, "metadata": metadata})
        if email in self.accounts:
            return SignUpResult(user_id=self.accounts[email][0], already_registered=True)
        user_id = f"user-{len(self.accounts) + 1}"
        self.add_account(user_id, email, password, name=metadata.get("name"), role=metadata.get("role"))
        return SignUpResult(user_id=user_id)

    async def resend_confirmation(self, email: str) -> None:
        self.calls["resend_confirmation"] += 1

    async def reset_password(self, email: str) -> None:
        self.password_resets.append(email)

    async def read_profile(self, user_id: str) -> dict[str, Any]:
        self.calls["read_profile"] += 1
        if self.read_gate is not None:
            await self.read_gate.wait()
        if self.read_error is not None:
            raise self.read_error
        if user_id not in self.profiles:
            raise ProfileNotFoundError("JSON object requested, multiple (or no) rows returned", code="PGRST116")
        return dict(self.profiles[user_id])

    async def insert_profile(self, row: dict[str, Any]) -> dict[str, Any]:
        self.calls["insert_profile"] += 1
        if self.insert_error is not None:
            raise self.insert_error
        self.profiles[row["id"]] = dict(row)
        return dict(row)

    async def list_profiles(self) -> list[dict[str, Any]]:
        self.calls["list_profiles"] += 1
        if self.list_error is not None:
            raise self.list_error
        return [dict(row) for row in self.profiles.values()]

    async def update_profile(self, user_id: str, changes: dict[str, Any]) -> None:
        self.profiles[user_id].update(changes)

    async def delete_profile(self, user_id: str) -> None:
        self.profiles.pop(user_id, None)

    async def upload_asset(
        self,
        name: str,
        content: bytes,
        *,
        overwrite: bool = False,
        content_type: Optional[str] = None,
    ) -> str:
        if self.upload_error is not None:
            raise self.upload_error
        if name in self.uploads and not overwrite:
            raise RemoteBackendError("The resource already exists", status_code=409)
        self.uploads[name] = content
        return f"{self.storage_url}/{name}"


SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"
engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture(scope="session", autouse=True)
def setup_database() -> Generator[None, None, None]:
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db_session() -> Generator[Session, None, None]:
    connection = engine.connect()
    transaction = connection.begin()
    session = TestingSessionLocal(bind=connection)
    try:
        yield session
    finally:
        session.close()
        transaction.rollback()
        connection.close()


@pytest.fixture
def fake_backend() -> FakeBackend:
    return FakeBackend()


@contextmanager
def _client_for(db_session: Session, backend: FakeBackend) -> Generator[TestClient, None, None]:
    def override_get_db() -> Generator[Session, None, None]:
        try:
            yield db_session
        finally:
            db_session.expire_all()

    app.dependency_overrides[get_db] = override_get_db
    app.state.remote_backend = backend
    try:
        with TestClient(app) as test_client:
            yield test_client
    finally:
        app.dependency_overrides.pop(get_db, None)
        app.state.remote_backend = None


@pytest.fixture
def client(db_session: Session, fake_backend: FakeBackend) -> Generator[TestClient, None, None]:
    """Client started without a session, so the app is logged out."""

    with _client_for(db_session, fake_backend) as test_client:
        yield test_client


@pytest.fixture
def admin_client(db_session: Session, fake_backend: FakeBackend) -> Generator[TestClient, None, None]:
    fake_backend.add_account("admin-1", "admin@example.com", name="Ada Admin", role="admin")
    fake_backend.add_account("staff-1", "staff@example.com", name="Sam Staff", role="staff")
    fake_backend.session = fake_backend.session_for("admin-1", "admin@example.com")
    with _client_for(db_session, fake_backend) as test_client:
        yield test_client


@pytest.fixture
def staff_client(db_session: Session, fake_backend: FakeBackend) -> Generator[TestClient, None, None]:
    fake_backend.add_account("admin-1", "admin@example.com", name="Ada Admin", role="admin")
    fake_backend.add_account("staff-1", "staff@example.com", name="Sam Staff", role="staff")
    fake_backend.session = fake_backend.session_for("staff-1", "staff@example.com")
    with _client_for(db_session, fake_backend) as test_client:
        yield test_client


@pytest.fixture
def needs_setup_client(db_session: Session, fake_backend: FakeBackend) -> Generator[TestClient, None, None]:
    fake_backend.probe_error = SchemaNotProvisionedError('relation "public.profiles" does not exist', code="42P01")
    with _client_for(db_session, fake_backend) as test_client:
        yield test_client
