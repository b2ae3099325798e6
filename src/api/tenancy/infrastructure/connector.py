"""Connection pools to tenant databases.

This module opens one psycopg2.pool.ThreadedConnectionPool per tenant
database using the process-wide store settings.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from psycopg2 import pool as psycopg2_pool

if TYPE_CHECKING:
    from infrastructure.settings import StoreSettings


class PsycopgTenantConnector:
    """Opens thread-safe connection pools to tenant databases.

    ThreadedConnectionPool connects ``pool_min_connections`` times on
    construction, so an unreachable server or a missing database surfaces
    as a psycopg2 error from ``open`` rather than on first use.
    """

    def __init__(self, settings: StoreSettings):
        self._settings = settings

    def open(self, database_name: str) -> psycopg2_pool.ThreadedConnectionPool:
        """Open a pool to ``database_name``.

        Raises:
            psycopg2.Error: If the server is unreachable within the connect
                timeout or rejects the handshake.
        """
        return psycopg2_pool.ThreadedConnectionPool(
            minconn=self._settings.pool_min_connections,
            maxconn=self._settings.pool_max_connections,
            host=self._settings.host,
            port=self._settings.port,
            dbname=database_name,
            user=self._settings.username,
            password=self._settings.password.get_secret_value(),
            connect_timeout=self._settings.connect_timeout_seconds,
            application_name=self._settings.application_name,
        )
