"""Unit test fixtures with mocked dependencies.

FakeStore stands in for the PostgreSQL server: it counts how many tenant
pools are opened and keeps per-database counters behind a lock, the way
the real server's row lock serializes the increment statement.
"""

from __future__ import annotations

import threading
import time
from collections import defaultdict
from unittest.mock import MagicMock

import psycopg2
import pytest
from psycopg2 import pool as psycopg2_pool

from infrastructure.settings import SequenceSettings, StoreSettings


class FakeCursor:
    def __init__(self, store: FakeStore):
        self._store = store
        self.statements: list[str] = []

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def execute(self, statement, params=None):
        if self._store.unreachable:
            raise psycopg2.OperationalError("server closed the connection unexpectedly")
        self.statements.append(statement)

    def fetchone(self):
        return None if self._store.ping_returns_nothing else (1,)


class FakeRawConnection:
    def __init__(self, store: FakeStore):
        self._store = store
        self.commits = 0
        self.rollbacks = 0

    def cursor(self):
        return FakeCursor(self._store)

    def commit(self):
        if self._store.commit_error is not None:
            raise self._store.commit_error
        self.commits += 1

    def rollback(self):
        self.rollbacks += 1


class FakePool:
    """Mirrors ThreadedConnectionPool: raises PoolError past maxconn."""

    def __init__(self, store: FakeStore, database: str, maxconn: int = 4):
        self._store = store
        self._lock = threading.Lock()
        self.database = database
        self.maxconn = maxconn
        self.in_use = 0
        self.peak_in_use = 0
        self.closed = False
        self.close_error: Exception | None = None
        self.discarded = 0

    def getconn(self, key=None):
        with self._lock:
            if self.in_use >= self.maxconn:
                raise psycopg2_pool.PoolError("connection pool exhausted")
            self.in_use += 1
            self.peak_in_use = max(self.peak_in_use, self.in_use)
        return FakeRawConnection(self._store)

    def putconn(self, conn, key=None, close=False):
        with self._lock:
            self.in_use -= 1
            if close:
                self.discarded += 1

    def closeall(self):
        if self.close_error is not None:
            raise self.close_error
        self.closed = True


class FakeConnector:
    def __init__(self, store: FakeStore, settings: StoreSettings):
        self._store = store
        self.settings = settings

    def open(self, database_name: str) -> FakePool:
        return self._store.open(database_name, self.settings.pool_max_connections)


class FakeStore:
    """In-memory tenant store backend."""

    def __init__(self, open_delay: float = 0.0):
        self._lock = threading.Lock()
        self.open_delay = open_delay
        self.open_count = 0
        self.pools: list[FakePool] = []
        self.counters: dict[str, dict[str, int]] = defaultdict(dict)
        self.schemas: set[str] = set()
        self.missing_databases: set[str] = set()
        self.unreachable = False
        self.ping_returns_nothing = False
        self.failing_increments = 0
        self.commit_error: Exception | None = None

    def connector_factory(self, settings: StoreSettings) -> FakeConnector:
        return FakeConnector(self, settings)

    def open(self, database: str, maxconn: int = 4) -> FakePool:
        if self.open_delay:
            time.sleep(self.open_delay)
        with self._lock:
            if database in self.missing_databases:
                raise psycopg2.OperationalError(
                    f'FATAL:  database "{database}" does not exist'
                )
            if self.unreachable:
                raise psycopg2.OperationalError(
                    "could not connect to server: Connection refused"
                )
            self.open_count += 1
            pool = FakePool(self, database, maxconn)
            self.pools.append(pool)
            return pool

    def increment(self, database: str, kind: str, start: int) -> int:
        with self._lock:
            if self.failing_increments:
                self.failing_increments -= 1
                raise psycopg2.OperationalError(
                    "canceling statement due to statement timeout"
                )
            value = self.counters[database].get(kind, start) + 1
            self.counters[database][kind] = value
            return value


class FakeSequenceRepository:
    """SequenceRepository over FakeStore; each increment runs in a transaction."""

    def __init__(self, store: FakeStore):
        self._store = store
        self.timeouts: list[int] = []

    def ensure_schema(self, connection):
        with connection.transaction():
            self._store.schemas.add(connection.database_name)

    def increment(self, connection, kind, start_value, timeout_ms):
        self.timeouts.append(timeout_ms)
        with connection.transaction():
            return self._store.increment(connection.database_name, kind, start_value)

    def list_counters(self, connection):
        from tenancy.domain.value_objects import SequenceCounter

        counters = self._store.counters[connection.database_name]
        return [
            SequenceCounter(kind=kind, value=value)
            for kind, value in sorted(counters.items())
        ]


@pytest.fixture
def store_settings() -> StoreSettings:
    """Provide test store settings."""
    return StoreSettings(
        host="testhost",
        port=5432,
        username="testuser",
        password="testpass",
        pool_min_connections=1,
        pool_max_connections=4,
        connect_timeout_seconds=3,
        operation_timeout_ms=1500,
    )


@pytest.fixture
def sequence_settings() -> SequenceSettings:
    """Provide default sequence settings independent of the environment."""
    return SequenceSettings(
        start_value=0,
        pad_width=4,
        kind_tags={"admin": "A", "teacher": "T", "student": "S", "parent": "P"},
    )


@pytest.fixture
def fake_store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def slow_store_factory():
    """Build a FakeStore whose opens take long enough for callers to pile up."""

    def factory(open_delay: float = 0.05) -> FakeStore:
        return FakeStore(open_delay=open_delay)

    return factory


@pytest.fixture
def fake_repository(fake_store) -> FakeSequenceRepository:
    return FakeSequenceRepository(fake_store)


@pytest.fixture
def registry(fake_store, store_settings):
    """Initialized registry backed by the fake store."""
    from tenancy.infrastructure.registry import TenantConnectionRegistry

    registry = TenantConnectionRegistry(
        connector_factory=fake_store.connector_factory,
        probe=MagicMock(),
    )
    registry.initialize(store_settings)
    yield registry
    registry.close_all()


@pytest.fixture
def mock_psycopg2_connection():
    """Provide a mocked psycopg2 connection."""
    conn = MagicMock()
    conn.closed = False

    cursor = MagicMock()
    cursor.fetchall.return_value = []
    cursor.fetchone.return_value = (1,)

    # Set up context manager
    cursor.__enter__ = MagicMock(return_value=cursor)
    cursor.__exit__ = MagicMock(return_value=False)
    conn.cursor.return_value = cursor

    return conn, cursor
