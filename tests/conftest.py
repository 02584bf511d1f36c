"""pytest fixtures for promptcanvas tests.

Provides:
- utc_timezone: Autouse fixture enforcing UTC timezone
- session_factory: Function-scoped async session factory over a fresh on-disk SQLite database
- session: Function-scoped database session
- uow_factory: Function-scoped UnitOfWork factory
- gateway: Fake generation gateway (no network)
- orchestrator: GenerationOrchestrator wired to the fake gateway
- create_user: Helper to insert users with a known password and balance
- store_outage: Helper making a repository method fail like an unreachable database
"""

import asyncio
import os
from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator

# Settings are read at import time by promptcanvas.app
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("JWT_SECRET", "test-jwt-secret-with-enough-length-for-hs256")
os.environ.setdefault("BCRYPT_ROUNDS", "4")

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from sqlalchemy.exc import OperationalError  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker  # noqa: E402
from sqlmodel import SQLModel  # noqa: E402

import promptcanvas.models  # noqa: E402, F401
from promptcanvas.core.config import Settings  # noqa: E402
from promptcanvas.core.database import setup_db_session  # noqa: E402
from promptcanvas.models.user import User  # noqa: E402
from promptcanvas.services.auth import Authenticator, SessionClaims, hash_password  # noqa: E402
from promptcanvas.services.exceptions import UploadFailure  # noqa: E402
from promptcanvas.services.generation import GenerationOrchestrator  # noqa: E402
from promptcanvas.services.image_generation.replicate_client import (  # noqa: E402
    GenerationFailure,
    GenerationSuccess,
    settings_summary,
)
from promptcanvas.uow import create_uow_factory  # noqa: E402

TEST_PASSWORD = "correct horse battery staple"


class FakeGateway:
    """In-memory stand-in for GenerationGateway.

    Records every call. Set generate_failure / persist_failure to make the
    corresponding step fail, and delay_seconds to hold the provider call open.
    """

    model = "test/flux-model"

    def __init__(self):
        self.generate_calls: list[str] = []
        self.persist_calls: list[tuple[str, str]] = []
        self.generate_failure: GenerationFailure | None = None
        self.persist_failure: UploadFailure | None = None
        self.delay_seconds = 0.0

    @property
    def settings_summary(self) -> dict:
        return settings_summary()

    async def generate(self, prompt_text: str):
        self.generate_calls.append(prompt_text)
        if self.delay_seconds:
            await asyncio.sleep(self.delay_seconds)
        if self.generate_failure is not None:
            return self.generate_failure
        index = len(self.generate_calls)
        return GenerationSuccess(
            image_url=f"https://provider.example.com/tmp/{index}.png",
            request_id=f"req-{index}",
        )

    async def persist(self, temporary_url: str, destination_key: str) -> str:
        self.persist_calls.append((temporary_url, destination_key))
        if self.persist_failure is not None:
            raise self.persist_failure
        return f"https://storage.example.com/{destination_key}?signature=abc"


@pytest.fixture(scope="session", autouse=True)
def utc_timezone():
    """Enforce UTC timezone for all tests."""
    os.environ["TZ"] = "UTC"
    yield


@pytest.fixture
def settings() -> Settings:
    return Settings()  # type: ignore[call-arg]


@pytest_asyncio.fixture(scope="function")
async def session_factory(tmp_path) -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """Provide a session factory over a fresh database with all tables created.

    An on-disk file (not :memory:) so concurrent sessions see the same data.
    """
    db_url = f"sqlite+aiosqlite:///{tmp_path / 'test.db'}"
    factory = setup_db_session(db_url, pool_size=10)
    engine = factory.kw["bind"]

    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)

    yield factory

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Provide function-scoped database session."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest_asyncio.fixture(scope="function")
async def uow_factory(session_factory):
    """Provide function-scoped UnitOfWork factory."""
    return create_uow_factory(session_factory)


@pytest.fixture
def authenticator(settings) -> Authenticator:
    return Authenticator(settings)


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def orchestrator(uow_factory, gateway, authenticator) -> GenerationOrchestrator:
    return GenerationOrchestrator(
        uow_factory=uow_factory, gateway=gateway, authenticator=authenticator
    )


@pytest.fixture
def create_user(uow_factory, settings):
    """Return an async helper that inserts a user and returns it."""

    async def _create_user(
        email: str = "fox@example.com",
        credits: int = 10,
        name: str = "Fox",
        password: str = TEST_PASSWORD,
    ) -> User:
        async with await uow_factory() as uow:
            user = User(
                email=email,
                name=name,
                password_hash=hash_password(password, rounds=settings.bcrypt_rounds),
                credits=credits,
            )
            await uow.users.add(user)
        return user

    return _create_user


@pytest.fixture
def principal_for():
    """Return a helper building verified session claims for a user, as get_principal would."""

    def _principal_for(user: User) -> SessionClaims:
        return SessionClaims(
            user_id=user.id,
            email=user.email,
            expires_at=datetime.now(timezone.utc) + timedelta(hours=24),
        )

    return _principal_for


@pytest.fixture
def store_outage(monkeypatch):
    """Return a helper that makes a repository method raise OperationalError."""

    def _break(repository_cls, method_name: str) -> None:
        async def _unavailable(*args, **kwargs):
            raise OperationalError(
                "SELECT 1", {}, ConnectionRefusedError("connection refused: db:5432")
            )

        monkeypatch.setattr(repository_cls, method_name, _unavailable)

    return _break
