"""FastAPI dependencies for the tenancy bounded context.

The registry and allocator are created once by the application lifespan
and stored on ``app.state``; handlers receive them through these
dependencies rather than through module globals.
"""

from __future__ import annotations

from uuid import uuid4

from fastapi import Request

from infrastructure.observability import ObservationContext
from tenancy.application.allocator import SequenceAllocator
from tenancy.infrastructure.registry import TenantConnectionRegistry

REQUEST_ID_HEADER = "X-Request-ID"


def get_observation_context(request: Request) -> ObservationContext:
    """Build the observation context for one HTTP request.

    Reuses the caller's request id when one is sent so log lines can be
    joined across services.
    """
    request_id = request.headers.get(REQUEST_ID_HEADER) or uuid4().hex
    return ObservationContext(request_id=request_id, source="http")


def get_tenant_registry(request: Request) -> TenantConnectionRegistry:
    """Get the application-scoped tenant connection registry."""
    return request.app.state.tenant_registry


def get_sequence_allocator(request: Request) -> SequenceAllocator:
    """Get the application-scoped sequence allocator, bound to this request."""
    allocator: SequenceAllocator = request.app.state.sequence_allocator
    return allocator.with_context(get_observation_context(request))
