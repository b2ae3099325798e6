"""Observation context for domain-oriented observability.

Observation contexts collect contextual metadata for instrumentation,
following the Domain Oriented Observability pattern.

See: https://martinfowler.com/articles/domain-oriented-observability.html
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any


@dataclass(frozen=True)
class ObservationContext:
    """Immutable context containing metadata for observability.

    Attributes:
        request_id: Unique identifier for the current request/operation.
        tenant_code: Canonical code of the school being operated on.
        source: Where the operation originated (e.g. "http", "cli").
        extra: Additional contextual metadata.

    Example:
        context = ObservationContext(request_id="req-123", source="cli")
        probe = DefaultTenantRegistryProbe().with_context(context)
    """

    request_id: str | None = None
    tenant_code: str | None = None
    source: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def as_dict(self) -> dict[str, Any]:
        """Convert context to a dictionary for logging.

        Only includes non-None values to keep logs clean.
        """
        result: dict[str, Any] = {}
        if self.request_id is not None:
            result["request_id"] = self.request_id
        if self.tenant_code is not None:
            result["context_tenant_code"] = self.tenant_code
        if self.source is not None:
            result["source"] = self.source
        result.update(self.extra)
        return result

    def with_tenant(self, tenant_code: str) -> ObservationContext:
        """Create a new context scoped to a tenant."""
        return replace(self, tenant_code=tenant_code)

    def with_extra(self, **kwargs: Any) -> ObservationContext:
        """Create a new context with additional metadata."""
        return replace(self, extra={**self.extra, **kwargs})
