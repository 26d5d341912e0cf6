"""
Test configuration and fixtures.

Provides:
- An in-memory SQLite application context per test (tables created fresh)
- JWT token minting for authenticated tests
- HTTPX AsyncClient with proper headers
"""
import os
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import AsyncGenerator, Generator

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.orm import Session

# Rate limiting is configured at import time; disable before importing the app
os.environ["RATE_LIMIT_ENABLED"] = "false"

from formdesk.core.config import Settings
from formdesk.core.context import AppContext
from formdesk.core.deps import COOKIE_NAME, CSRF_HEADER, CSRF_HEADER_VALUE
from formdesk.core.security import create_session_token
from formdesk.db.enums import Role
from formdesk.db.models import User
from formdesk.main import create_app
from formdesk.services import form_service


# =============================================================================
# Application Context
# =============================================================================

@pytest.fixture(scope="function")
def settings(tmp_path) -> Settings:
    return Settings(
        ENV="test",
        DATABASE_URL="sqlite+pysqlite:///:memory:",
        STORAGE_BACKEND="local",
        LOCAL_STORAGE_PATH=str(tmp_path / "uploads"),
        JWT_SECRET="test-secret",
        JWT_SECRET_PREVIOUS="",
        LOG_LEVEL="WARNING",
    )


@pytest.fixture(scope="function")
def app_context(settings: Settings) -> Generator[AppContext, None, None]:
    ctx = AppContext.from_settings(settings)
    ctx.create_all()
    yield ctx
    ctx.dispose()


@pytest.fixture(scope="function")
def db(app_context: AppContext) -> Generator[Session, None, None]:
    """Session on the test database; request handlers share the same database."""
    session = app_context.session_factory()
    yield session
    session.close()


@pytest.fixture(scope="function")
def file_store(app_context: AppContext):
    return app_context.file_store


@pytest.fixture(scope="function")
def app(app_context: AppContext):
    return create_app(context=app_context)


# =============================================================================
# Users
# =============================================================================

def _create_user(db: Session, role: Role, first_name: str, last_name: str) -> User:
    user = User(
        id=uuid.uuid4(),
        email=f"{role.value}-{uuid.uuid4().hex[:8]}@example.com",
        first_name=first_name,
        last_name=last_name,
        role=role.value,
        is_active=True,
        token_version=1,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture(scope="function")
def admin_user(db: Session) -> User:
    return _create_user(db, Role.ADMIN, "Ada", "Admin")


@pytest.fixture(scope="function")
def regular_user(db: Session) -> User:
    return _create_user(db, Role.USER, "Uma", "User")


@pytest.fixture(scope="function")
def other_user(db: Session) -> User:
    return _create_user(db, Role.USER, "Otto", "Other")


# =============================================================================
# Auth Fixtures
# =============================================================================

@dataclass
class TestAuth:
    """Test authentication context."""
    user: User
    token: str
    cookie_name: str = COOKIE_NAME


def _auth(user: User, settings: Settings) -> TestAuth:
    token = create_session_token(
        user_id=user.id,
        role=user.role,
        token_version=user.token_version,
        settings=settings,
    )
    return TestAuth(user=user, token=token)


@pytest.fixture(scope="function")
def admin_auth(admin_user: User, settings: Settings) -> TestAuth:
    return _auth(admin_user, settings)


@pytest.fixture(scope="function")
def user_auth(regular_user: User, settings: Settings) -> TestAuth:
    return _auth(regular_user, settings)


# =============================================================================
# Form Factory
# =============================================================================

@pytest.fixture(scope="function")
def make_form(db: Session, admin_user: User):
    """Create a form through the service. Settings keys override the defaults."""

    def _make_form(fields: list[dict] | None = None, title: str = "Feedback", **settings):
        return form_service.create_form(
            db,
            user_id=admin_user.id,
            title=title,
            description="Tell us what you think",
            settings=settings,
            fields=fields or [],
        )

    return _make_form


@pytest.fixture(scope="function")
def now() -> datetime:
    return datetime(2026, 6, 15, 12, 0, tzinfo=timezone.utc)


# =============================================================================
# Client Fixtures
# =============================================================================

def _client(app, auth: TestAuth | None = None) -> AsyncClient:
    cookies = {auth.cookie_name: auth.token} if auth else None
    return AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
        cookies=cookies,
        headers={CSRF_HEADER: CSRF_HEADER_VALUE},
    )


@pytest.fixture(scope="function")
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """Anonymous AsyncClient for public endpoints."""
    async with _client(app) as c:
        yield c


@pytest.fixture(scope="function")
async def admin_client(app, admin_auth: TestAuth) -> AsyncGenerator[AsyncClient, None]:
    """Admin AsyncClient with JWT cookie and CSRF header."""
    async with _client(app, admin_auth) as c:
        yield c


@pytest.fixture(scope="function")
async def user_client(app, user_auth: TestAuth) -> AsyncGenerator[AsyncClient, None]:
    """Regular-user AsyncClient with JWT cookie and CSRF header."""
    async with _client(app, user_auth) as c:
        yield c
