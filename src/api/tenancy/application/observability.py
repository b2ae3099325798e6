"""Protocol for sequence allocator observability."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol

import structlog

if TYPE_CHECKING:
    from infrastructure.observability.context import ObservationContext


class SequenceAllocatorProbe(Protocol):
    """Domain probe for identifier allocation."""

    def value_allocated(self, tenant_code: str, kind: str, value: int) -> None:
        """Record that a counter value was allocated."""
        ...

    def allocation_failed(self, tenant_code: str, kind: str, error: Exception) -> None:
        """Record that a counter increment failed."""
        ...

    def identifier_allocated(self, tenant_code: str, kind: str, identifier: str) -> None:
        """Record that a formatted identifier was handed out."""
        ...

    def with_context(self, context: ObservationContext) -> SequenceAllocatorProbe:
        """Create a new probe with observation context bound."""
        ...


class DefaultSequenceAllocatorProbe:
    """Default implementation of SequenceAllocatorProbe using structlog."""

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

    def with_context(
        self, context: ObservationContext
    ) -> DefaultSequenceAllocatorProbe:
        """Create a new probe with observation context bound."""
        return DefaultSequenceAllocatorProbe(logger=self._logger, context=context)

    def value_allocated(self, tenant_code: str, kind: str, value: int) -> None:
        """Record that a counter value was allocated."""
        self._logger.debug(
            "sequence_value_allocated",
            tenant_code=tenant_code,
            kind=kind,
            value=value,
            **self._get_context_kwargs(),
        )

    def allocation_failed(self, tenant_code: str, kind: str, error: Exception) -> None:
        """Record that a counter increment failed."""
        self._logger.error(
            "sequence_allocation_failed",
            tenant_code=tenant_code,
            kind=kind,
            error=str(error),
            **self._get_context_kwargs(),
        )

    def identifier_allocated(self, tenant_code: str, kind: str, identifier: str) -> None:
        """Record that a formatted identifier was handed out."""
        self._logger.info(
            "identifier_allocated",
            tenant_code=tenant_code,
            kind=kind,
            identifier=identifier,
            **self._get_context_kwargs(),
        )
