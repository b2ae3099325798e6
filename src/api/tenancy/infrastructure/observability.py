"""Domain probes for tenant connection observability.

Domain probes provide a high-level instrumentation API oriented around
domain semantics, keeping the registry and provisioning code free of
logging details.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol

import structlog

if TYPE_CHECKING:
    from infrastructure.observability.context import ObservationContext


class TenantRegistryProbe(Protocol):
    """Domain probe for the tenant connection registry."""

    def registry_initialized(self, host: str, port: int, pool_max: int) -> None:
        """Record that the registry was initialized."""
        ...

    def reinitialization_ignored(self, config_changed: bool) -> None:
        """Record that initialize was called on an initialized registry."""
        ...

    def connection_opened(
        self, tenant_code: str, database: str, pool_min: int, pool_max: int
    ) -> None:
        """Record that a tenant connection was opened and cached."""
        ...

    def connection_reused(self, tenant_code: str) -> None:
        """Record that a cached tenant connection was handed out."""
        ...

    def connection_failed(
        self, tenant_code: str, database: str, error: Exception
    ) -> None:
        """Record that opening a tenant connection failed."""
        ...

    def connection_evicted(self, tenant_code: str, database: str) -> None:
        """Record that a broken tenant connection was evicted."""
        ...

    def connection_unhealthy(self, tenant_code: str, error: Exception) -> None:
        """Record that a tenant connection failed a health check or query."""
        ...

    def connection_close_failed(self, tenant_code: str, error: Exception) -> None:
        """Record that closing a tenant connection failed."""
        ...

    def registry_closed(self, closed: int, failed: int) -> None:
        """Record that the registry closed all connections."""
        ...

    def with_context(self, context: ObservationContext) -> TenantRegistryProbe:
        """Create a new probe with observation context bound."""
        ...


class DefaultTenantRegistryProbe:
    """Default implementation of TenantRegistryProbe using structlog."""

    def __init__(
        self,
        logger: structlog.stdlib.BoundLogger | None = None,
        context: ObservationContext | None = None,
    ):
        self._logger = logger or structlog.get_logger()
        self._context = context

    def _get_context_kwargs(self) -> dict[str, Any]:
        """Get context metadata as kwargs for logging."""
        if self._context is None:
            return {}
        return self._context.as_dict()

    def with_context(self, context: ObservationContext) -> DefaultTenantRegistryProbe:
        """Create a new probe with observation context bound."""
        return DefaultTenantRegistryProbe(logger=self._logger, context=context)

    def registry_initialized(self, host: str, port: int, pool_max: int) -> None:
        self._logger.info(
            "tenant_registry_initialized",
            host=host,
            port=port,
            pool_max_connections=pool_max,
            **self._get_context_kwargs(),
        )

    def reinitialization_ignored(self, config_changed: bool) -> None:
        log = self._logger.warning if config_changed else self._logger.debug
        log(
            "tenant_registry_reinitialization_ignored",
            config_changed=config_changed,
            **self._get_context_kwargs(),
        )

    def connection_opened(
        self, tenant_code: str, database: str, pool_min: int, pool_max: int
    ) -> None:
        self._logger.info(
            "tenant_connection_opened",
            tenant_code=tenant_code,
            database=database,
            pool_min_connections=pool_min,
            pool_max_connections=pool_max,
            **self._get_context_kwargs(),
        )

    def connection_reused(self, tenant_code: str) -> None:
        self._logger.debug(
            "tenant_connection_reused",
            tenant_code=tenant_code,
            **self._get_context_kwargs(),
        )

    def connection_failed(
        self, tenant_code: str, database: str, error: Exception
    ) -> None:
        self._logger.error(
            "tenant_connection_failed",
            tenant_code=tenant_code,
            database=database,
            error=str(error),
            **self._get_context_kwargs(),
        )

    def connection_evicted(self, tenant_code: str, database: str) -> None:
        self._logger.warning(
            "tenant_connection_evicted",
            tenant_code=tenant_code,
            database=database,
            **self._get_context_kwargs(),
        )

    def connection_unhealthy(self, tenant_code: str, error: Exception) -> None:
        self._logger.warning(
            "tenant_connection_unhealthy",
            tenant_code=tenant_code,
            error=str(error),
            **self._get_context_kwargs(),
        )

    def connection_close_failed(self, tenant_code: str, error: Exception) -> None:
        self._logger.error(
            "tenant_connection_close_failed",
            tenant_code=tenant_code,
            error=str(error),
            **self._get_context_kwargs(),
        )

    def registry_closed(self, closed: int, failed: int) -> None:
        self._logger.info(
            "tenant_registry_closed",
            closed=closed,
            failed=failed,
            **self._get_context_kwargs(),
        )


class ProvisioningProbe(Protocol):
    """Domain probe for tenant database provisioning."""

    def tenant_database_created(self, tenant_code: str, database: str) -> None:
        """Record that a tenant database was created."""
        ...

    def tenant_database_exists(self, tenant_code: str, database: str) -> None:
        """Record that provisioning found an existing database."""
        ...

    def provisioning_failed(self, tenant_code: str, error: Exception) -> None:
        """Record that provisioning failed."""
        ...

    def with_context(self, context: ObservationContext) -> ProvisioningProbe:
        """Create a new probe with observation context bound."""
        ...


class DefaultProvisioningProbe:
    """Default implementation of ProvisioningProbe using structlog."""

    def __init__(
        self,
        logger: structlog.stdlib.BoundLogger | None = None,
        context: ObservationContext | None = None,
    ):
        self._logger = logger or structlog.get_logger()
        self._context = context

    def _get_context_kwargs(self) -> dict[str, Any]:
        if self._context is None:
            return {}
        return self._context.as_dict()

    def with_context(self, context: ObservationContext) -> DefaultProvisioningProbe:
        return DefaultProvisioningProbe(logger=self._logger, context=context)

    def tenant_database_created(self, tenant_code: str, database: str) -> None:
        self._logger.info(
            "tenant_database_created",
            tenant_code=tenant_code,
            database=database,
            **self._get_context_kwargs(),
        )

    def tenant_database_exists(self, tenant_code: str, database: str) -> None:
        self._logger.debug(
            "tenant_database_exists",
            tenant_code=tenant_code,
            database=database,
            **self._get_context_kwargs(),
        )

    def provisioning_failed(self, tenant_code: str, error: Exception) -> None:
        self._logger.error(
            "tenant_provisioning_failed",
            tenant_code=tenant_code,
            error=str(error),
            **self._get_context_kwargs(),
        )
