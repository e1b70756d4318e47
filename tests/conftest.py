"""
Shared pytest fixtures and test doubles.

Uses an in-memory SQLite database so no Postgres is required for tests.
Environment is set before the application is imported so Settings picks it up.
"""
import os

os.environ["DATABASE_URL"] = "sqlite:///./test_discord_counter.db"
os.environ["APIFY_TOKEN"] = "test-token"
os.environ["APIFY_ACTOR_ID"] = "test-actor"
os.environ["SCHEDULER_ENABLED"] = "false"

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

import discord_counter.models  # noqa: E402,F401
from discord_counter.db.base import Base, get_db  # noqa: E402
from discord_counter.dependencies import get_orchestrator, get_runner, get_store  # noqa: E402
from discord_counter.main import app  # noqa: E402
from discord_counter.models.server import DiscordServer  # noqa: E402
from discord_counter.services.batch import BatchCoordinator  # noqa: E402
from discord_counter.services.runner import SyncRunner  # noqa: E402
from discord_counter.services.store import SqlStore  # noqa: E402
from discord_counter.services.sync import SyncOrchestrator  # noqa: E402
from discord_counter.services.types import FetchFailure, ServerMetrics, TrackedServer  # noqa: E402

FIXED_NOW = 1_700_003_723  # 2023-11-14 23:15:23 UTC → bucket 1_700_002_800


# ---------------------------------------------------------------------------
# Test doubles
# ---------------------------------------------------------------------------

class SleepRecorder:
    """Async stand-in for asyncio.sleep that records requested durations."""

    def __init__(self):
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


class FakeFetcher:
    """
    Returns canned metrics per guild id. Guild ids listed in `failing`
    come back as FetchFailure (as RemoteFetcher does after exhausting retries).
    """

    def __init__(self, failing: frozenset = frozenset(), sleeper: SleepRecorder | None = None):
        self.failing = set(failing)
        self.sleeper = sleeper
        self.calls: list[tuple[str, int]] = []  # (guild_id, cooldowns seen so far)

    def with_context(self, **context) -> "FakeFetcher":
        return self

    async def fetch(self, server: TrackedServer):
        cooldowns = len(self.sleeper.calls) if self.sleeper is not None else 0
        self.calls.append((server.guild_id, cooldowns))
        if server.guild_id in self.failing:
            return FetchFailure(guild_id=server.guild_id, attempts=4, error="boom")
        return metrics_for(server.guild_id)


def metrics_for(guild_id: str) -> ServerMetrics:
    n = int("".join(ch for ch in guild_id if ch.isdigit()) or 0)
    return ServerMetrics(
        name=f"Server {guild_id}",
        icon=f"icon-{guild_id}",
        presence_count=n * 10,
        member_count=n * 100,
    )


def tracked(count: int, start: int = 1) -> list[TrackedServer]:
    return [
        TrackedServer(guild_id=f"{i:04d}", invite_code=f"inv{i}")
        for i in range(start, start + count)
    ]


def seed_servers(session_factory, servers, **columns) -> None:
    db = session_factory()
    try:
        for s in servers:
            db.add(DiscordServer(guild_id=s.guild_id, invite_code=s.invite_code, **columns))
        db.commit()
    finally:
        db.close()


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------

@pytest.fixture()
def engine():
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=eng)
    yield eng
    Base.metadata.drop_all(bind=eng)
    eng.dispose()


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture()
def db(session_factory):
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture()
def store(session_factory):
    return SqlStore(session_factory)


@pytest.fixture()
def sleeper():
    return SleepRecorder()


@pytest.fixture()
def fake_fetcher(sleeper):
    return FakeFetcher(sleeper=sleeper)


@pytest.fixture()
def orchestrator(store, fake_fetcher, sleeper):
    coordinator = BatchCoordinator(fake_fetcher, batch_size=10, cooldown=30.0, sleep=sleeper)
    return SyncOrchestrator(store=store, coordinator=coordinator, clock=lambda: FIXED_NOW)


# ---------------------------------------------------------------------------
# HTTP
# ---------------------------------------------------------------------------

@pytest.fixture()
def client(session_factory, store, orchestrator):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    runner = SyncRunner(lambda: orchestrator)
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_orchestrator] = lambda: orchestrator
    app.dependency_overrides[get_runner] = lambda: runner
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
