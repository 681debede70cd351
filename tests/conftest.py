import asyncio
import os
import tempfile
import time
from io import BytesIO
from typing import Dict, List, Optional, Tuple
from uuid import uuid4

os.environ.setdefault("SUPABASE_URL", "https://test-project.supabase.co")
os.environ.setdefault("SUPABASE_ANON_KEY", "test-anon-key")
os.environ.setdefault("SUPABASE_JWT_SECRET", "test-jwt-secret")
os.environ.setdefault("MEDIA_ROOT", tempfile.mkdtemp(prefix="pickup-plants-media-"))

import pytest
from fastapi.testclient import TestClient
from jose import JWTError, jwt
from PIL import Image
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from pickup_plants.app.api.deps import get_db_session, get_storage_provider
from pickup_plants.app.core.config import get_settings
from pickup_plants.app.core.errors import AuthProviderError
from pickup_plants.app.db import models  # noqa: F401
from pickup_plants.app.db.base import Base
from pickup_plants.app.main import create_app
from pickup_plants.app.services.auth_provider import (
    AuthChange,
    AuthChangeEvent,
    AuthProvider,
    ProviderSession,
    ProviderUser,
)
from pickup_plants.app.services.session_registry import SessionRegistry
from pickup_plants.app.services.storage.local import LocalStorageProvider


def make_token(user_id: str, email: str, settings, expires_in: int = 3600) -> str:
    payload = {
        "sub": str(user_id),
        "email": email,
        "aud": settings.auth_jwt_audience,
        "exp": int(time.time()) + expires_in,
    }
    return jwt.encode(payload, settings.auth_jwt_secret, algorithm=settings.auth_jwt_algorithm)


class FakeAuthBackend:
    """In-memory stand-in for the provider's user store, shared by all provider clients."""

    def __init__(self, settings):
        self.settings = settings
        self.users: Dict[str, Tuple[str, str]] = {}
        self.refresh_tokens: Dict[str, str] = {}
        self.reset_requests: List[Tuple[str, Optional[str]]] = []
        self.require_confirmation = False
        self.restore_gate: Optional[asyncio.Event] = None

    def add_user(self, email: str, password: str) -> str:
        user_id = uuid4().hex
        self.users[email] = (password, user_id)
        return user_id

    def issue_session(self, email: str) -> ProviderSession:
        _, user_id = self.users[email]
        refresh_token = uuid4().hex
        self.refresh_tokens[refresh_token] = email
        return ProviderSession(
            access_token=make_token(user_id, email, self.settings),
            refresh_token=refresh_token,
            expires_at=int(time.time()) + 3600,
            user=ProviderUser(id=user_id, email=email),
        )


class FakeAuthProvider(AuthProvider):
    def __init__(self, backend: FakeAuthBackend):
        super().__init__()
        self.backend = backend

    async def restore_session(self, refresh_token: Optional[str] = None) -> AuthChange:
        sequence = self._reserve_sequence()
        if self.backend.restore_gate is not None:
            await self.backend.restore_gate.wait()
        session = None
        email = self.backend.refresh_tokens.get(refresh_token) if refresh_token else None
        if email is not None:
            session = self.backend.issue_session(email)
        return self._emit(AuthChangeEvent.INITIAL_SESSION, session, sequence)

    async def get_session(self, refresh_margin_seconds: int = 60) -> Optional[ProviderSession]:
        return self._session

    async def sign_in_with_password(self, email: str, password: str) -> AuthChange:
        sequence = self._reserve_sequence()
        stored = self.backend.users.get(email)
        if stored is None or stored[0] != password:
            raise AuthProviderError("Invalid login credentials", 400, "invalid_credentials")
        return self._emit(AuthChangeEvent.SIGNED_IN, self.backend.issue_session(email), sequence)

    async def sign_up(self, email: str, password: str) -> Optional[AuthChange]:
        sequence = self._reserve_sequence()
        if email in self.backend.users:
            raise AuthProviderError("User already registered", 422, "user_already_exists")
        self.backend.add_user(email, password)
        if self.backend.require_confirmation:
            return None
        return self._emit(AuthChangeEvent.SIGNED_IN, self.backend.issue_session(email), sequence)

    async def sign_out(self) -> AuthChange:
        sequence = self._reserve_sequence()
        return self._emit(AuthChangeEvent.SIGNED_OUT, None, sequence)

    async def reset_password_for_email(self, email: str, redirect_to: Optional[str] = None) -> None:
        self.backend.reset_requests.append((email, redirect_to))

    async def update_user(self, password: str) -> AuthChange:
        session = self._session
        if session is None:
            raise AuthProviderError("Auth session missing!", 401, "session_not_found")
        sequence = self._reserve_sequence()
        _, user_id = self.backend.users[session.user.email]
        self.backend.users[session.user.email] = (password, user_id)
        return self._emit(AuthChangeEvent.USER_UPDATED, session, sequence)

    async def get_user(self, access_token: str) -> ProviderUser:
        settings = self.backend.settings
        try:
            claims = jwt.decode(
                access_token,
                settings.auth_jwt_secret,
                algorithms=[settings.auth_jwt_algorithm],
                audience=settings.auth_jwt_audience,
            )
        except JWTError:
            raise AuthProviderError("Invalid JWT", 401, "bad_jwt")
        return ProviderUser(id=claims["sub"], email=claims.get("email"))


@pytest.fixture(scope="session")
def engine():
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    Base.metadata.create_all(bind=engine)
    return engine


@pytest.fixture
def db_session(engine):
    connection = engine.connect()
    transaction = connection.begin()
    SessionLocal = sessionmaker(bind=connection, autocommit=False, autoflush=False, future=True)
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
        transaction.rollback()
        connection.close()


@pytest.fixture
def settings():
    return get_settings()


@pytest.fixture
def auth_backend(settings):
    return FakeAuthBackend(settings)


@pytest.fixture
def fake_provider(auth_backend):
    return FakeAuthProvider(auth_backend)


@pytest.fixture
def storage(tmp_path):
    return LocalStorageProvider(tmp_path / "media")


@pytest.fixture
def app(db_session, storage, auth_backend):
    app = create_app()
    app.state.session_registry = SessionRegistry(lambda: FakeAuthProvider(auth_backend))

    def override_db():
        yield db_session

    def override_storage():
        return storage

    app.dependency_overrides[get_db_session] = override_db
    app.dependency_overrides[get_storage_provider] = override_storage
    return app


@pytest.fixture
def client(app):
    with TestClient(app) as client:
        yield client


@pytest.fixture
def signed_in_client(client, auth_backend):
    auth_backend.add_user("cook@example.com", "green-pass")
    response = client.post(
        "/login",
        data={"email": "cook@example.com", "password": "green-pass", "next": "/"},
        follow_redirects=False,
    )
    assert response.status_code == 303
    return client


@pytest.fixture
def user_token(settings):
    return make_token("user-1", "user1@example.com", settings)


@pytest.fixture
def png_bytes():
    buf = BytesIO()
    Image.new("RGB", (4, 4), "green").save(buf, format="PNG")
    return buf.getvalue()
