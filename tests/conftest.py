"""Pytest configuration and fixtures for auditflow.

Every test gets its own SQLite database file (aiosqlite) with the full schema,
so repository, runtime and queue tests run without PostgreSQL or Redis. HTTP
tests build the app with create_app() and run its lifespan against the same
kind of throwaway database.
"""

import os
import random
from collections.abc import Callable
from contextlib import asynccontextmanager
from datetime import UTC, datetime, timedelta
from typing import Any

# Settings are validated on first use; point them at SQLite before any import.
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./.auditflow-test.db")
os.environ["REDIS_ENABLED"] = "false"
os.environ["TELEMETRY_ENABLED"] = "false"
os.environ["WORKER_ENABLED"] = "false"

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import create_async_engine

from auditflow.core.config import get_settings
from auditflow.domain.entities.workflow_graph import WorkflowGraph
from auditflow.infrastructure.persistence import database
from auditflow.infrastructure.persistence import models  # noqa: F401  registers tables
from auditflow.infrastructure.persistence.database import (
    Base,
    build_session_factory,
    configure_sqlite_engine,
)
from auditflow.infrastructure.persistence.repositories import (
    UserDirectoryRepository,
    WorkflowDefinitionRepository,
)
from auditflow.infrastructure.services import build_workflow_runtime

get_settings.cache_clear()


class FakeClock:
    """Settable clock injected wherever the code takes clock=."""

    def __init__(self, now: datetime | None = None) -> None:
        self.now = now or datetime(2026, 1, 5, 9, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


class RecordingNotifier:
    """IAssignmentNotifier that remembers what it was told.

    calls holds new assignments; events holds every call as (name, *args).
    """

    def __init__(self) -> None:
        self.calls: list[tuple[Any, Any]] = []
        self.events: list[tuple[Any, ...]] = []

    def named(self, name: str) -> list[tuple[Any, ...]]:
        return [event[1:] for event in self.events if event[0] == name]

    async def assignment_created(self, assignment, instance) -> None:
        self.calls.append((assignment, instance))
        self.events.append(("assignment_created", assignment, instance))

    async def assignment_escalated(self, assignment, instance) -> None:
        self.events.append(("assignment_escalated", assignment, instance))

    async def assignment_approved(self, assignment, instance, actor_id) -> None:
        self.events.append(("assignment_approved", assignment, instance, actor_id))

    async def assignment_rejected(self, assignment, instance, actor_id, comment) -> None:
        self.events.append(("assignment_rejected", assignment, instance, actor_id, comment))

    async def deadline_approaching(self, assignment, instance) -> None:
        self.events.append(("deadline_approaching", assignment, instance))


class FakeChannel:
    """IRealtimeChannel double; deliver=False simulates Redis being down."""

    def __init__(self, deliver: bool = True) -> None:
        self.deliver = deliver
        self.sent: list[tuple[str, dict[str, Any]]] = []

    async def send(self, channel: str, payload: dict[str, Any]) -> bool:
        self.sent.append((channel, payload))
        return self.deliver


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def channel() -> FakeChannel:
    return FakeChannel()


@pytest.fixture
async def engine(tmp_path):
    """Fresh SQLite database with every table created."""
    bind = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'auditflow.db'}")
    configure_sqlite_engine(bind)
    async with bind.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield bind
    await bind.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
def runtime_scope(session_factory, clock, notifier) -> Callable:
    """Async context manager yielding a WorkflowRuntime inside one committed transaction."""

    @asynccontextmanager
    async def scope():
        async with session_factory() as session:
            async with session.begin():
                yield build_workflow_runtime(
                    session,
                    get_settings(),
                    notifier=notifier,
                    clock=clock,
                    rng=random.Random(7),
                )

    return scope


@pytest.fixture
def seed_users(session_factory) -> Callable:
    """Create users with roles: {"alice@example.com": ["REVIEWER"], ...} -> {email: id}."""

    async def seed(users: dict[str, list[str]], inactive: tuple[str, ...] = ()) -> dict[str, str]:
        ids: dict[str, str] = {}
        async with session_factory() as session:
            async with session.begin():
                repo = UserDirectoryRepository(session)
                for email, roles in users.items():
                    user = await repo.create_user(
                        email, email.split("@")[0].title(), is_active=email not in inactive
                    )
                    for role in roles:
                        await repo.assign_role(user.id, role)
                    ids[email] = user.id
        return ids

    return seed


@pytest.fixture
def publish_definition(session_factory) -> Callable:
    """Store a graph as an active definition (no validation) and return it."""

    async def publish(
        graph: dict[str, Any] | WorkflowGraph,
        *,
        name: str = "Engagement approval",
        entity_type: str = "engagement",
    ):
        if isinstance(graph, dict):
            graph = WorkflowGraph.from_dict(graph)
        async with session_factory() as session:
            async with session.begin():
                return await WorkflowDefinitionRepository(session).create_definition(
                    name, entity_type, graph
                )

    return publish


@pytest.fixture
async def app(tmp_path, monkeypatch):
    """FastAPI app with its lifespan running against a throwaway SQLite file."""
    from auditflow.core.limiter import limiter
    from auditflow.main import create_app

    monkeypatch.setenv("DATABASE_URL", f"sqlite+aiosqlite:///{tmp_path / 'api.db'}")
    get_settings.cache_clear()
    await database.dispose_engine()
    database.get_session_factory()
    async with database.engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    limiter.reset()
    application = create_app()
    async with application.router.lifespan_context(application):
        yield application
    get_settings.cache_clear()


@pytest.fixture
async def client(app) -> AsyncClient:
    """Async HTTP client against the FastAPI app (ASGI)."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
