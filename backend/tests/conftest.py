"""Shared fixtures: temporary SQLite database, services and API client."""

from collections.abc import Awaitable, Callable

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from agora import models  # noqa: F401
from agora.core.config import Settings
from agora.core.database import Base, get_db
from agora.main import app, init_services
from agora.models.user import Role, User
from agora.modules.auth import AuthService, CredentialVerifier, Identity


class FakeMailer:
    """Records outgoing mail instead of sending it."""

    def __init__(self, succeed: bool = True) -> None:
        self.succeed = succeed
        self.sent: list[tuple[str, str, str]] = []

    async def send(self, to_address: str, subject: str, html_body: str) -> bool:
        self.sent.append((to_address, subject, html_body))
        return self.succeed


@pytest.fixture
def settings() -> Settings:
    return Settings(
        jwt_secret_key="test-secret",
        password_hash_rounds=4,
        database_url="sqlite+aiosqlite://",
        password_reset_url_base="http://test/reset-password",
        mail_api_url="",
    )


@pytest.fixture
def verifier(settings: Settings) -> CredentialVerifier:
    return CredentialVerifier.from_settings(settings)


@pytest.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'agora.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker:
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def make_user(session_factory, verifier) -> Callable[..., Awaitable[User]]:
    """Create and commit a user in its own session."""

    async def _make(
        username: str,
        role: Role = Role.COMMUNITY_MEMBER,
        password: str | None = "password123",
    ) -> User:
        async with session_factory() as session:
            auth = AuthService(session, verifier)
            user = await auth.create_user(
                username, f"{username}@example.com", password, role
            )
            await session.commit()
            return user

    return _make


@pytest.fixture
def identity() -> Callable[[User], Identity]:
    """Token-equivalent identity snapshot of a user."""

    def _identity(user: User) -> Identity:
        return Identity(user_id=user.id, role=user.role, permissions=user.permissions)

    return _identity


@pytest.fixture
def mailer() -> FakeMailer:
    return FakeMailer()


@pytest.fixture
async def client(settings, session_factory, mailer):
    init_services(app, settings, mailer=mailer)

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as ac:
        yield ac
    app.dependency_overrides.clear()
