"""Live connection handle for one tenant database."""

from __future__ import annotations

import threading
from contextlib import contextmanager
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any, Iterator

import psycopg2
from psycopg2 import pool as psycopg2_pool

from tenancy.infrastructure.observability import (
    DefaultTenantRegistryProbe,
    TenantRegistryProbe,
)
from tenancy.ports.exceptions import ConnectionError

if TYPE_CHECKING:
    from tenancy.ports.protocols import StorePool

# Errors after which the underlying connection cannot be trusted again.
_CONNECTION_LEVEL_ERRORS = (psycopg2.OperationalError, psycopg2.InterfaceError)


class TenantConnection:
    """An opened, ready-to-use handle to one tenant database.

    Owned by the TenantConnectionRegistry. Callers borrow it to run
    transactions but never close it; the registry replaces it once it is
    marked broken.

    Attributes:
        tenant_code: Canonical code of the school this handle serves.
        database_name: Name of the tenant database.
        pool_min: Minimum pooled connections.
        pool_max: Maximum pooled connections.
        checkout_timeout: Seconds a caller waits for a free pooled
            connection before giving up.
        created_at: When the handle was opened (UTC).
    """

    def __init__(
        self,
        tenant_code: str,
        database_name: str,
        pool: StorePool,
        pool_min: int,
        pool_max: int,
        probe: TenantRegistryProbe | None = None,
        checkout_timeout: float = 5.0,
    ):
        self.tenant_code = tenant_code
        self.database_name = database_name
        self.pool_min = pool_min
        self.pool_max = pool_max
        self.checkout_timeout = checkout_timeout
        self.created_at = datetime.now(UTC)
        self._pool = pool
        # ThreadedConnectionPool raises instead of blocking once pool_max
        # connections are out; callers queue here instead.
        self._slots = threading.BoundedSemaphore(pool_max)
        self._alive = True
        self._probe = probe or DefaultTenantRegistryProbe()

    def __repr__(self) -> str:
        return (
            f"TenantConnection(tenant_code={self.tenant_code!r}, "
            f"database_name={self.database_name!r}, alive={self._alive})"
        )

    @property
    def alive(self) -> bool:
        """Whether the handle is still usable."""
        return self._alive

    def mark_broken(self, error: Exception | None = None) -> None:
        """Flag the handle as terminally broken.

        The registry evicts broken handles on the next get_connection.
        """
        if self._alive and error is not None:
            self._probe.connection_unhealthy(self.tenant_code, error)
        self._alive = False

    @contextmanager
    def transaction(self) -> Iterator[Any]:
        """Run statements in one transaction on a pooled connection.

        Waits up to ``checkout_timeout`` seconds for a free pooled
        connection. Commits when the block exits normally and rolls back
        otherwise. A connection-level driver error marks this handle broken
        and discards the pooled connection; the error itself is re-raised.

        Raises:
            ConnectionError: If the handle is broken or no pooled connection
                frees up in time.
        """
        if not self._alive:
            raise ConnectionError(
                f"Connection to {self.database_name} is broken",
                tenant_code=self.tenant_code,
            )

        if not self._slots.acquire(timeout=self.checkout_timeout):
            raise ConnectionError(
                f"Connection pool for {self.database_name} exhausted: no "
                f"connection free within {self.checkout_timeout:g}s",
                tenant_code=self.tenant_code,
            )

        try:
            try:
                conn = self._pool.getconn()
            except psycopg2_pool.PoolError as e:
                raise ConnectionError(
                    f"Connection pool for {self.database_name} exhausted: {e}",
                    tenant_code=self.tenant_code,
                ) from e
            except psycopg2.Error as e:
                self.mark_broken(e)
                raise ConnectionError(
                    f"Failed to connect to {self.database_name}: {e}",
                    tenant_code=self.tenant_code,
                ) from e

            discard = False
            try:
                with conn.cursor() as cursor:
                    yield cursor
                conn.commit()
            except _CONNECTION_LEVEL_ERRORS as e:
                discard = True
                self.mark_broken(e)
                self._rollback_quietly(conn)
                raise
            except BaseException:
                discard = not self._rollback_quietly(conn)
                raise
            finally:
                self._pool.putconn(conn, close=discard)
        finally:
            self._slots.release()

    def _rollback_quietly(self, conn: Any) -> bool:
        """Roll back while another error propagates; report success."""
        try:
            conn.rollback()
            return True
        except psycopg2.Error as e:
            self.mark_broken(e)
            return False

    def ping(self) -> bool:
        """Check the database answers ``SELECT 1``; mark broken if it does not."""
        try:
            with self.transaction() as cursor:
                cursor.execute("SELECT 1")
                row = cursor.fetchone()
        except ConnectionError:
            # Already marked if the pool itself failed; a busy pool is not broken
            return False
        except psycopg2.Error as e:
            self.mark_broken(e)
            return False

        healthy = row is not None and row[0] == 1
        if not healthy:
            self.mark_broken()
        return healthy

    def close(self) -> None:
        """Close every pooled connection. Only the registry calls this."""
        self._alive = False
        self._pool.closeall()
