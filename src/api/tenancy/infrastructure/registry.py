"""Tenant connection registry.

Keeps exactly one live TenantConnection per school, shared by all callers
in the process. Connections are opened lazily on first use and closed
together on shutdown.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Callable

import psycopg2
from pydantic import ValidationError

from infrastructure.settings import StoreSettings
from tenancy.domain.resolver import namespace_for, normalize_tenant_code
from tenancy.infrastructure.connection import TenantConnection
from tenancy.infrastructure.connector import PsycopgTenantConnector
from tenancy.infrastructure.observability import (
    DefaultTenantRegistryProbe,
    TenantRegistryProbe,
)
from tenancy.ports.exceptions import (
    ConfigurationError,
    ConnectionError,
    RegistryNotInitializedError,
    UnknownTenantError,
)

if TYPE_CHECKING:
    from tenancy.ports.protocols import TenantConnector

ConnectorFactory = Callable[[StoreSettings], "TenantConnector"]
ConnectionInitializer = Callable[[TenantConnection], None]


@dataclass
class ShutdownReport:
    """Outcome of TenantConnectionRegistry.close_all.

    Attributes:
        closed: Tenant codes whose connections closed cleanly.
        failures: Tenant code to error message for closes that failed.
    """

    closed: list[str] = field(default_factory=list)
    failures: dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.failures


class TenantConnectionRegistry:
    """Process-wide cache of tenant connections.

    Create one instance at startup, call ``initialize`` once, inject it into
    request handlers and maintenance tooling, and call ``close_all`` on
    shutdown.

    First access to a tenant is serialized by a lock scoped to that tenant,
    so concurrent first requests open exactly one connection while other
    tenants proceed unblocked. ``_guard`` only protects the lock table, the
    cache dict and the lifecycle state; it is never held while a connection
    is being opened.

    Example:
        registry = TenantConnectionRegistry()
        registry.initialize(get_store_settings())
        conn = registry.get_connection("sb")
        with conn.transaction() as cursor:
            cursor.execute("SELECT 1")
        registry.close_all()
    """

    def __init__(
        self,
        connector_factory: ConnectorFactory | None = None,
        initializer: ConnectionInitializer | None = None,
        probe: TenantRegistryProbe | None = None,
    ):
        """Create an uninitialized registry.

        Args:
            connector_factory: Builds the connector from settings at
                initialize time. Defaults to PsycopgTenantConnector.
            initializer: Run once on every newly opened connection before it
                is cached (e.g. to ensure the sequence table exists).
            probe: Optional observability probe.
        """
        self._connector_factory = connector_factory or PsycopgTenantConnector
        self._initializer = initializer
        self._probe = probe or DefaultTenantRegistryProbe()

        self._guard = threading.Lock()
        self._tenant_locks: dict[str, threading.Lock] = {}
        self._connections: dict[str, TenantConnection] = {}
        self._settings: StoreSettings | None = None
        self._connector: TenantConnector | None = None

    @property
    def is_initialized(self) -> bool:
        return self._settings is not None

    @property
    def settings(self) -> StoreSettings:
        """Settings the registry was initialized with."""
        if self._settings is None:
            raise RegistryNotInitializedError("Tenant registry is not initialized")
        return self._settings

    def initialize(self, settings: StoreSettings | None = None) -> None:
        """Configure the registry. Opens no connections.

        Calling this again while initialized has no effect. After
        ``close_all`` it re-arms the registry.

        Args:
            settings: Store settings; loaded from the environment when omitted.

        Raises:
            ConfigurationError: If connection parameters are missing or invalid.
        """
        with self._guard:
            if self._settings is not None:
                self._probe.reinitialization_ignored(
                    config_changed=settings is not None and settings != self._settings
                )
                return

            resolved = self._load_settings(settings)
            try:
                connector = self._connector_factory(resolved)
            except (TypeError, ValueError) as e:
                raise ConfigurationError(f"Invalid store configuration: {e}") from e

            self._settings = resolved
            self._connector = connector

        self._probe.registry_initialized(
            host=resolved.host,
            port=resolved.port,
            pool_max=resolved.pool_max_connections,
        )

    @staticmethod
    def _load_settings(settings: StoreSettings | None) -> StoreSettings:
        if settings is None:
            try:
                return StoreSettings()
            except ValidationError as e:
                raise ConfigurationError(f"Invalid store configuration: {e}") from e

        if not isinstance(settings, StoreSettings):
            raise ConfigurationError(
                f"Expected StoreSettings, got {type(settings).__name__}"
            )
        if not settings.host or not settings.username:
            raise ConfigurationError("Store host and username are required")
        return settings

    def get_connection(self, tenant_code: str) -> TenantConnection:
        """Return the shared connection for a tenant, opening it if needed.

        Args:
            tenant_code: School code, case-insensitive.

        Returns:
            The cached TenantConnection; the same instance for every caller
            until it breaks or the registry is closed.

        Raises:
            UnknownTenantError: If the code is invalid or the tenant database
                does not exist.
            ConnectionError: If the store cannot be reached within the
                connect timeout.
            RegistryNotInitializedError: Before initialize or after close_all.
        """
        code = normalize_tenant_code(tenant_code)
        database = namespace_for(code)

        with self._guard:
            self._require_initialized()
            cached = self._connections.get(database)
            if cached is not None and cached.alive:
                self._probe.connection_reused(code)
                return cached
            tenant_lock = self._tenant_locks.setdefault(database, threading.Lock())

        with tenant_lock:
            # Double-check: another caller may have opened it while we waited
            with self._guard:
                self._require_initialized()
                cached = self._connections.get(database)
                if cached is not None and cached.alive:
                    self._probe.connection_reused(code)
                    return cached
                if cached is not None:
                    del self._connections[database]
                settings = self._settings
                connector = self._connector

            if cached is not None:
                self._probe.connection_evicted(code, database)
                self._close_quietly(cached)

            connection = self._open(code, database, settings, connector)

            with self._guard:
                if self._connector is not connector:
                    # close_all ran while we were connecting
                    self._close_quietly(connection)
                    raise RegistryNotInitializedError(
                        "Tenant registry was closed while connecting"
                    )
                self._connections[database] = connection
            return connection

    def _require_initialized(self) -> None:
        if self._settings is None or self._connector is None:
            raise RegistryNotInitializedError(
                "Tenant registry is not initialized; call initialize() first"
            )

    def _open(
        self,
        code: str,
        database: str,
        settings: StoreSettings,
        connector: TenantConnector,
    ) -> TenantConnection:
        """Open, verify and initialize a new connection. Never cached on failure.

        Works from the settings and connector captured under the guard, so a
        concurrent close_all cannot pull them away mid-open.
        """
        try:
            pool = connector.open(database)
        except psycopg2.Error as e:
            self._probe.connection_failed(code, database, e)
            if _is_missing_database(e):
                raise UnknownTenantError(
                    f"No database provisioned for tenant {code}",
                    tenant_code=code,
                ) from e
            raise ConnectionError(
                f"Failed to connect to {settings.connection_string(database)}: {e}",
                tenant_code=code,
            ) from e

        connection = TenantConnection(
            tenant_code=code,
            database_name=database,
            pool=pool,
            pool_min=settings.pool_min_connections,
            pool_max=settings.pool_max_connections,
            probe=self._probe,
            checkout_timeout=settings.operation_timeout_ms / 1000,
        )

        if not connection.ping():
            error = ConnectionError(
                f"Tenant database {database} did not answer a health check",
                tenant_code=code,
            )
            self._probe.connection_failed(code, database, error)
            self._close_quietly(connection)
            raise error

        if self._initializer is not None:
            try:
                self._initializer(connection)
            except Exception as e:
                self._probe.connection_failed(code, database, e)
                self._close_quietly(connection)
                raise ConnectionError(
                    f"Failed to initialize tenant database {database}: {e}",
                    tenant_code=code,
                ) from e

        self._probe.connection_opened(
            code, database, connection.pool_min, connection.pool_max
        )
        return connection

    def _close_quietly(self, connection: TenantConnection) -> None:
        try:
            connection.close()
        except Exception as e:
            self._probe.connection_close_failed(connection.tenant_code, e)

    def check_health(self) -> dict[str, bool]:
        """Ping every cached connection.

        Broken connections stay cached but are marked, so the next
        get_connection for that tenant opens a fresh one.

        Returns:
            Tenant code to health flag.
        """
        with self._guard:
            self._require_initialized()
            connections = list(self._connections.values())

        return {conn.tenant_code: conn.ping() for conn in connections}

    def cached_tenants(self) -> list[str]:
        """Return the codes of tenants with a cached connection, sorted."""
        with self._guard:
            return sorted(conn.tenant_code for conn in self._connections.values())

    def close_all(self) -> ShutdownReport:
        """Close every cached connection and clear the cache.

        Individual close failures are collected in the report and logged;
        they never stop the remaining connections from being closed. The
        registry must be initialized again before further use.
        """
        with self._guard:
            connections = list(self._connections.values())
            self._connections.clear()
            self._settings = None
            self._connector = None

        report = ShutdownReport()
        for connection in connections:
            try:
                connection.close()
                report.closed.append(connection.tenant_code)
            except Exception as e:
                self._probe.connection_close_failed(connection.tenant_code, e)
                report.failures[connection.tenant_code] = str(e)

        self._probe.registry_closed(
            closed=len(report.closed), failed=len(report.failures)
        )
        return report


def _is_missing_database(error: psycopg2.Error) -> bool:
    """Whether the server rejected the handshake because the database is absent."""
    if getattr(error, "pgcode", None) == "3D000":
        return True
    message = str(error)
    return 'database "' in message and "does not exist" in message
