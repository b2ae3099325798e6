"""Tenant database provisioning.

Creates a school's database through the maintenance database, then goes
through the registry so the new tenant gets its sequence table.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import TYPE_CHECKING, Any, Iterator

import psycopg2
from psycopg2 import errors as pg_errors
from psycopg2 import sql

from tenancy.domain.resolver import namespace_for, normalize_tenant_code
from tenancy.domain.value_objects import TenantStats
from tenancy.infrastructure.observability import (
    DefaultProvisioningProbe,
    ProvisioningProbe,
)
from tenancy.ports.exceptions import ConnectionError

if TYPE_CHECKING:
    from tenancy.infrastructure.registry import TenantConnectionRegistry
    from tenancy.ports.protocols import SequenceRepository


class TenantProvisioner:
    """Creates tenant databases and reports on them.

    Example:
        provisioner = TenantProvisioner(registry, repository)
        created = provisioner.provision("NPS")
        stats = provisioner.stats("NPS")
    """

    def __init__(
        self,
        registry: TenantConnectionRegistry,
        repository: SequenceRepository,
        probe: ProvisioningProbe | None = None,
    ):
        self._registry = registry
        self._repository = repository
        self._probe = probe or DefaultProvisioningProbe()

    @contextmanager
    def _maintenance_cursor(self) -> Iterator[Any]:
        """Autocommit cursor on the maintenance database.

        CREATE DATABASE cannot run inside a transaction block.
        """
        settings = self._registry.settings
        try:
            conn = psycopg2.connect(
                host=settings.host,
                port=settings.port,
                dbname=settings.maintenance_database,
                user=settings.username,
                password=settings.password.get_secret_value(),
                connect_timeout=settings.connect_timeout_seconds,
                application_name=settings.application_name,
            )
        except psycopg2.Error as e:
            raise ConnectionError(
                "Failed to connect to maintenance database "
                f"{settings.connection_string(settings.maintenance_database)}: {e}"
            ) from e

        try:
            conn.autocommit = True
            with conn.cursor() as cursor:
                yield cursor
        finally:
            conn.close()

    def exists(self, tenant_code: str) -> bool:
        """Whether the tenant's database exists on the server.

        Raises:
            UnknownTenantError: If the tenant code is invalid.
            ConnectionError: If the server cannot be reached or the lookup fails.
        """
        code = normalize_tenant_code(tenant_code)
        database = namespace_for(code)
        try:
            with self._maintenance_cursor() as cursor:
                cursor.execute(
                    "SELECT 1 FROM pg_database WHERE datname = %s", (database,)
                )
                return cursor.fetchone() is not None
        except psycopg2.Error as e:
            raise ConnectionError(
                f"Failed to look up {database}: {e}", tenant_code=code
            ) from e

    def provision(self, tenant_code: str) -> bool:
        """Create the tenant database if needed and open it through the registry.

        Returns:
            True if the database was created, False if it already existed.

        Raises:
            UnknownTenantError: If the tenant code is invalid.
            ConnectionError: If the server cannot be reached.
        """
        code = normalize_tenant_code(tenant_code)
        database = namespace_for(code)

        try:
            with self._maintenance_cursor() as cursor:
                cursor.execute(
                    "SELECT 1 FROM pg_database WHERE datname = %s", (database,)
                )
                created = cursor.fetchone() is None
                if created:
                    try:
                        cursor.execute(
                            sql.SQL("CREATE DATABASE {}").format(
                                sql.Identifier(database)
                            )
                        )
                    except pg_errors.DuplicateDatabase:
                        created = False
        except psycopg2.Error as e:
            self._probe.provisioning_failed(code, e)
            raise ConnectionError(
                f"Failed to provision {database}: {e}", tenant_code=code
            ) from e

        if created:
            self._probe.tenant_database_created(code, database)
        else:
            self._probe.tenant_database_exists(code, database)

        connection = self._registry.get_connection(code)
        try:
            self._repository.ensure_schema(connection)
        except psycopg2.Error as e:
            self._probe.provisioning_failed(code, e)
            raise ConnectionError(
                f"Failed to create the sequence table in {database}: {e}",
                tenant_code=code,
            ) from e
        return created

    def stats(self, tenant_code: str) -> TenantStats:
        """Report table count, size and counters for a tenant database.

        Raises:
            UnknownTenantError: If the tenant code is invalid or unprovisioned.
            ConnectionError: If the store cannot be reached or a query fails.
        """
        connection = self._registry.get_connection(tenant_code)
        try:
            with connection.transaction() as cursor:
                cursor.execute(
                    "SELECT count(*) FROM information_schema.tables "
                    "WHERE table_schema = 'public'"
                )
                (table_count,) = cursor.fetchone()
                cursor.execute("SELECT pg_database_size(current_database())")
                (size_bytes,) = cursor.fetchone()
            counters = self._repository.list_counters(connection)
        except psycopg2.Error as e:
            raise ConnectionError(
                f"Failed to collect statistics for {connection.database_name}: {e}",
                tenant_code=connection.tenant_code,
            ) from e

        return TenantStats(
            tenant_code=connection.tenant_code,
            database_name=connection.database_name,
            table_count=int(table_count),
            size_bytes=int(size_bytes),
            counters=counters,
        )
