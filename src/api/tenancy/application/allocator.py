"""Sequence allocator: collision-free entity identifiers per tenant.

The allocator keeps no state between calls and takes no locks. Uniqueness
comes entirely from the store's single-statement atomic increment, which
holds across threads, worker processes and maintenance scripts running
side by side.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import psycopg2

from infrastructure.settings import SequenceSettings
from tenancy.application.observability import (
    DefaultSequenceAllocatorProbe,
    SequenceAllocatorProbe,
)
from tenancy.domain.resolver import normalize_tenant_code
from tenancy.domain.value_objects import SequenceCounter, format_identifier
from tenancy.ports.exceptions import (
    AllocationError,
    ConnectionError,
    InvalidEntityKindError,
)

if TYPE_CHECKING:
    from infrastructure.observability.context import ObservationContext
    from tenancy.infrastructure.registry import TenantConnectionRegistry
    from tenancy.ports.protocols import SequenceRepository


class SequenceAllocator:
    """Allocates numbered identifiers such as ``NPS-S-0042``.

    Example:
        allocator = SequenceAllocator(registry, PostgresSequenceRepository())
        allocator.allocate_identifier("nps", "student")  # "NPS-S-0001"
    """

    def __init__(
        self,
        registry: TenantConnectionRegistry,
        repository: SequenceRepository,
        settings: SequenceSettings | None = None,
        probe: SequenceAllocatorProbe | None = None,
    ):
        self._registry = registry
        self._repository = repository
        self._settings = settings or SequenceSettings()
        self._probe = probe or DefaultSequenceAllocatorProbe()

    def with_context(self, context: ObservationContext) -> SequenceAllocator:
        """Return an allocator whose events carry ``context``.

        Shares the registry, repository and settings; only the probe differs.
        """
        return SequenceAllocator(
            self._registry,
            self._repository,
            settings=self._settings,
            probe=self._probe.with_context(context),
        )

    @property
    def kinds(self) -> list[str]:
        """Configured entity kinds, sorted."""
        return sorted(self._settings.kind_tags)

    def _resolve_kind(self, kind: str) -> str:
        key = kind.strip().lower() if isinstance(kind, str) else kind
        if key not in self._settings.kind_tags:
            raise InvalidEntityKindError(str(kind), self.kinds)
        return key

    def next_value(self, tenant_code: str, kind: str) -> int:
        """Atomically advance the (tenant, kind) counter and return the new value.

        The first allocation for a pair returns ``start_value + 1``.
        Concurrent callers always receive distinct consecutive values.

        Raises:
            InvalidEntityKindError: If ``kind`` is not configured.
            UnknownTenantError: If the tenant code is invalid or unprovisioned.
            ConnectionError: If the tenant connection cannot be obtained.
            AllocationError: If the increment fails; no value is consumed.
        """
        kind_key = self._resolve_kind(kind)
        code = normalize_tenant_code(tenant_code)
        connection = self._registry.get_connection(code)

        try:
            value = self._repository.increment(
                connection,
                kind_key,
                start_value=self._settings.start_value,
                timeout_ms=self._registry.settings.operation_timeout_ms,
            )
        except (psycopg2.Error, ConnectionError) as e:
            self._probe.allocation_failed(code, kind_key, e)
            raise AllocationError(
                f"Failed to allocate {kind_key} sequence for tenant {code}: {e}",
                tenant_code=code,
                kind=kind_key,
            ) from e

        self._probe.value_allocated(code, kind_key, value)
        return value

    def format_identifier(self, tenant_code: str, kind: str, value: int) -> str:
        """Render the external identifier, e.g. ``("P", "teacher", 7) -> "P-T-0007"``.

        Pure formatting; uniqueness comes only from next_value.
        """
        kind_key = self._resolve_kind(kind)
        return format_identifier(
            normalize_tenant_code(tenant_code),
            self._settings.kind_tags[kind_key],
            value,
            self._settings.pad_width,
        )

    def allocate_identifier(self, tenant_code: str, kind: str) -> str:
        """Allocate the next value and return it formatted as an identifier."""
        value = self.next_value(tenant_code, kind)
        identifier = self.format_identifier(tenant_code, kind, value)
        self._probe.identifier_allocated(
            normalize_tenant_code(tenant_code), kind.strip().lower(), identifier
        )
        return identifier

    def counters(self, tenant_code: str) -> list[SequenceCounter]:
        """Return the tenant's counters without advancing them.

        Raises:
            UnknownTenantError: If the tenant code is invalid or unprovisioned.
            ConnectionError: If the store cannot be reached or the read fails.
        """
        code = normalize_tenant_code(tenant_code)
        connection = self._registry.get_connection(code)
        try:
            return self._repository.list_counters(connection)
        except psycopg2.Error as e:
            raise ConnectionError(
                f"Failed to read sequences for tenant {code}: {e}",
                tenant_code=code,
            ) from e
