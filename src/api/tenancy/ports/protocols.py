"""Protocols (ports) for the tenancy bounded context.

These protocols define the seams between the registry, the allocator and
the store. The psycopg2 implementations live in tenancy.infrastructure;
tests substitute in-memory fakes.
"""

from __future__ import annotations

from contextlib import AbstractContextManager
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from tenancy.domain.value_objects import SequenceCounter


@runtime_checkable
class StorePool(Protocol):
    """Pool of raw DB-API connections to one tenant database.

    Mirrors the psycopg2.pool API so ThreadedConnectionPool satisfies it.
    """

    def getconn(self, key: Any = None) -> Any:
        """Borrow a connection from the pool."""
        ...

    def putconn(self, conn: Any, key: Any = None, close: bool = False) -> None:
        """Return a connection to the pool, optionally discarding it."""
        ...

    def closeall(self) -> None:
        """Close every connection held by the pool."""
        ...


@runtime_checkable
class TenantConnector(Protocol):
    """Opens connection pools to tenant databases."""

    def open(self, database_name: str) -> StorePool:
        """Open a pool to the named database.

        Implementations must bound establishment by the configured connect
        timeout and raise the driver's error on failure.
        """
        ...


@runtime_checkable
class TenantHandle(Protocol):
    """What a repository needs from a tenant connection."""

    tenant_code: str
    database_name: str

    def transaction(self) -> AbstractContextManager[Any]:
        """Run statements in one transaction; yields a cursor."""
        ...


@runtime_checkable
class SequenceRepository(Protocol):
    """Persistent per-kind counters stored inside a tenant database."""

    def ensure_schema(self, connection: TenantHandle) -> None:
        """Create the counter table if it does not exist."""
        ...

    def increment(
        self,
        connection: TenantHandle,
        kind: str,
        start_value: int,
        timeout_ms: int,
    ) -> int:
        """Atomically increment the counter for ``kind`` and return the new value.

        A counter that does not exist yet is created at ``start_value`` and
        incremented in the same statement. A failure must leave the counter
        unchanged.
        """
        ...

    def list_counters(self, connection: TenantHandle) -> list[SequenceCounter]:
        """Return every counter in the tenant database, ordered by kind."""
        ...
