"""
Pytest Configuration and Fixtures for Life Physics Tests
=========================================================

Purpose
-------
Shared fixtures for the unit and integration suites.

Responsibilities
----------------
- Force the testing environment before any ``lifephysics`` import
- Scripted random sources and a fixed clock for deterministic rolls
- Testcontainers PostgreSQL for integration tests (skipped without Docker)
- Mocks for DatabaseService and EventBus in unit tests

Architecture Notes
------------------
- Unit tests use mocks (fast, isolated)
- Integration tests use testcontainers (real database)
- DatabaseService runs with NullPool in the testing environment, so every
  test gets fresh connections on its own event loop
"""

from __future__ import annotations

import os

os.environ["ENVIRONMENT"] = "testing"
os.environ.setdefault("LOG_LEVEL", "DEBUG")

from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator, Generator, Iterable, List

import pytest
import pytest_asyncio
from sqlalchemy import text

from lifephysics.core.config.manager import ConfigManager
from lifephysics.core.database.service import DatabaseService
from lifephysics.core.logging.logger import get_logger
from lifephysics.domain.rewards import RewardRoller
from lifephysics.services.tracker_service import TrackerService

logger = get_logger(__name__)


# ============================================================================
# DETERMINISTIC RANDOMNESS & TIME
# ============================================================================


class ScriptedRandom:
    """
    Random source that replays scripted draws.

    ``draws`` feed ``random()``; ``ints`` feed ``randrange()``. Running out of
    script fails the test loudly.
    """

    def __init__(self, draws: Iterable[float] = (), ints: Iterable[int] = ()) -> None:
        self.draws: List[float] = list(draws)
        self.ints: List[int] = list(ints)
        self.randrange_calls: List[tuple] = []

    def random(self) -> float:
        if not self.draws:
            raise AssertionError("ScriptedRandom ran out of random() draws")
        return self.draws.pop(0)

    def randrange(self, start: int, stop: int) -> int:
        self.randrange_calls.append((start, stop))
        if not self.ints:
            raise AssertionError("ScriptedRandom ran out of randrange() values")
        value = self.ints.pop(0)
        assert start <= value < stop
        return value


# A draw that never hits any chance in the default table.
MISS = 0.99


@pytest.fixture
def scripted_rng():
    """Factory: ``scripted_rng([0.1, 0.99], ints=[120])``."""

    def _factory(draws: Iterable[float] = (), ints: Iterable[int] = ()) -> ScriptedRandom:
        return ScriptedRandom(draws, ints)

    return _factory


@pytest.fixture
def no_luck_rng() -> ScriptedRandom:
    """Plenty of misses: every roll yields the plain base value."""
    return ScriptedRandom([MISS] * 100)


class FixedClock:
    """Callable clock that advances one second per call."""

    def __init__(self, start: datetime) -> None:
        self.current = start

    def __call__(self) -> datetime:
        self.current = self.current + timedelta(seconds=1)
        return self.current


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def tracker(no_luck_rng, clock) -> TrackerService:
    """Empty tracker for ``tester`` with a no-luck roller."""
    return TrackerService("tester", roller=RewardRoller(rng=no_luck_rng), clock=clock)


@pytest.fixture(autouse=True)
def reset_config_manager() -> Generator[None, None, None]:
    yield
    ConfigManager.reset()


# ============================================================================
# TESTCONTAINERS FIXTURES (Integration Tests)
# ============================================================================


@pytest.fixture(scope="session")
def postgres_container():
    """
    Start a PostgreSQL testcontainer for integration tests.

    Scope: session. Skips the dependent tests when Docker is unavailable.
    """
    from testcontainers.postgres import PostgresContainer

    container = PostgresContainer(image="postgres:17-alpine", driver="asyncpg")
    try:
        container.start()
    except Exception as exc:
        pytest.skip(f"PostgreSQL testcontainer unavailable: {exc}")

    logger.info("PostgreSQL testcontainer started")
    yield container

    logger.info("Stopping PostgreSQL testcontainer...")
    container.stop()


@pytest_asyncio.fixture
async def database(postgres_container) -> AsyncGenerator[type[DatabaseService], None]:
    """
    Initialized DatabaseService with a fresh schema.

    Scope: function. Tables are truncated after each test.
    """
    await DatabaseService.initialize(postgres_container.get_connection_url())
    await DatabaseService.create_schema()

    yield DatabaseService

    async with DatabaseService.get_transaction() as session:
        await session.execute(text("TRUNCATE TABLE tasks, progress, users CASCADE"))
    await DatabaseService.shutdown()


# ============================================================================
# MOCK FIXTURES (Unit Tests)
# ============================================================================


@pytest.fixture
def mock_session(mocker):
    """AsyncSession stand-in handed out by the mocked transaction."""
    session = mocker.AsyncMock()
    session.add = mocker.MagicMock()
    return session


@pytest.fixture
def mock_database_service(mocker, mock_session):
    """
    Patch DatabaseService where SyncService looks it up.

    ``get_transaction()`` and ``get_session()`` yield ``mock_session``;
    ``is_initialized()`` is True.
    """

    @asynccontextmanager
    async def _transaction():
        yield mock_session

    mock_service = mocker.patch("lifephysics.services.sync_service.DatabaseService")
    mock_service.is_initialized.return_value = True
    mock_service.get_transaction.side_effect = _transaction
    mock_service.get_session.side_effect = _transaction
    return mock_service


@pytest.fixture
def mock_event_bus(mocker):
    mock_bus = mocker.MagicMock()
    mock_bus.publish = mocker.AsyncMock(return_value=[])
    mock_bus.drain = mocker.AsyncMock()
    mock_bus.subscribe = mocker.MagicMock(return_value="listener-id")
    mock_bus.unsubscribe = mocker.MagicMock(return_value=True)
    return mock_bus
