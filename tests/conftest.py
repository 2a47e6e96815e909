"""Shared pytest fixtures for all test suites."""

import os
import uuid
from collections.abc import AsyncGenerator, Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.pool import NullPool, StaticPool

from backend.notekit.config import Settings
from backend.notekit.db.context import RequestContext
from backend.notekit.db.engine import create_session_factory
from backend.notekit.db.inmemory import InMemoryNoteStore
from backend.notekit.db.models import Base
from backend.notekit.models.notes import Note, Section, SectionsContent


@dataclass
class GeneratorCall:
    """One recorded call to the scripted generator."""

    prompt: str
    system: str | None
    temperature: float
    max_tokens: int
    operation: str


@dataclass
class ScriptedGenerator:
    """TextGenerator fake that replays scripted responses in order.

    A response that is an exception instance is raised instead of returned.
    Running out of responses is a test error.
    """

    responses: list[str | BaseException] = field(default_factory=list)
    calls: list[GeneratorCall] = field(default_factory=list)

    async def generate(
        self,
        prompt: str,
        *,
        system: str | None = None,
        temperature: float = 0.7,
        max_tokens: int = 4096,
        operation: str = "generate",
    ) -> str:
        self.calls.append(GeneratorCall(prompt, system, temperature, max_tokens, operation))
        if not self.responses:
            raise AssertionError(f"Unexpected generator call (operation={operation})")
        response = self.responses.pop(0)
        if isinstance(response, BaseException):
            raise response
        return response


@pytest.fixture
def scripted() -> Callable[..., ScriptedGenerator]:
    """Factory for scripted generators.

    Usage:
        gen = scripted('{"title": "x"}', GenerationFailedError("down"))
    """

    def _make(*responses: str | BaseException) -> ScriptedGenerator:
        return ScriptedGenerator(responses=list(responses))

    return _make


@pytest.fixture
def settings() -> Settings:
    """Settings with defaults and no API key."""
    return Settings(openai_api_key=None)


@pytest.fixture
def store() -> InMemoryNoteStore:
    """Empty in-memory note store."""
    return InMemoryNoteStore()


@pytest.fixture
def ctx() -> RequestContext:
    """Request context for a fresh user."""
    return RequestContext(user_id=uuid.uuid4())


def build_note(
    owner_id: uuid.UUID,
    title: str = "Note",
    sections: list[Section] | None = None,
    tags: list[str] | None = None,
    *,
    is_public: bool = False,
) -> Note:
    """Build a note with sensible defaults."""
    now = datetime.now(UTC)
    return Note(
        id=uuid.uuid4(),
        owner_id=owner_id,
        title=title,
        content=SectionsContent(
            sections=sections or [Section(title=f"{title} intro", content=f"About {title}.")]
        ),
        tags=tags or [],
        is_public=is_public,
        created_at=now,
        updated_at=now,
    )


@pytest.fixture
def make_note() -> Callable[..., Note]:
    """Factory fixture for notes (see build_note)."""
    return build_note


@pytest_asyncio.fixture
async def sqlite_engine() -> AsyncGenerator[AsyncEngine, None]:
    """In-memory SQLite engine with all tables created.

    StaticPool keeps a single connection so the in-memory database survives
    across sessions.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def sqlite_session(sqlite_engine: AsyncEngine) -> AsyncGenerator[AsyncSession, None]:
    """Session on the in-memory SQLite engine."""
    async with create_session_factory(sqlite_engine)() as session:
        yield session


@pytest_asyncio.fixture
async def postgres_engine() -> AsyncGenerator[AsyncEngine, None]:
    """Create async engine for PostgreSQL integration tests.

    Requires DATABASE_URL to be set to a real PostgreSQL connection string.
    Tests using this fixture should be marked with @pytest.mark.postgres.
    """
    database_url = os.getenv("DATABASE_URL")
    if not database_url:
        pytest.skip("DATABASE_URL not set - skipping postgres test")

    if not database_url.startswith(("postgresql://", "postgresql+asyncpg://")):
        pytest.skip(f"DATABASE_URL is not PostgreSQL: {database_url}")

    if database_url.startswith("postgresql://"):
        database_url = database_url.replace("postgresql://", "postgresql+asyncpg://", 1)

    engine = create_async_engine(database_url, poolclass=NullPool, echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture
async def postgres_session(postgres_engine: AsyncEngine) -> AsyncGenerator[AsyncSession, None]:
    """Create async session for PostgreSQL integration tests."""
    async with create_session_factory(postgres_engine)() as session:
        yield session
        await session.rollback()
