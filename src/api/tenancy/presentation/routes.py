"""HTTP routes for tenant identifier allocation and connection health."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status

from tenancy.application.allocator import SequenceAllocator
from tenancy.dependencies import get_sequence_allocator, get_tenant_registry
from tenancy.infrastructure.registry import TenantConnectionRegistry
from tenancy.ports.exceptions import (
    AllocationError,
    ConnectionError,
    InvalidEntityKindError,
    UnknownTenantError,
)
from tenancy.presentation.models import (
    CounterResponse,
    IdentifierResponse,
    TenantHealthResponse,
)

router = APIRouter(tags=["tenancy"])


def _unavailable(error: Exception) -> HTTPException:
    # Infrastructure faults are not the client's fault: 503, not 4xx
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail=str(error),
    )


@router.post(
    "/tenants/{tenant_code}/identifiers/{kind}",
    status_code=status.HTTP_201_CREATED,
)
def allocate_identifier(
    tenant_code: str,
    kind: str,
    allocator: Annotated[SequenceAllocator, Depends(get_sequence_allocator)],
) -> IdentifierResponse:
    """Allocate the next identifier for an entity kind in a school.

    Raises:
        HTTPException: 400 if the entity kind is not configured
        HTTPException: 404 if the school is unknown
        HTTPException: 503 if the store is unreachable or the increment failed
    """
    try:
        identifier = allocator.allocate_identifier(tenant_code, kind)
    except InvalidEntityKindError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e),
        ) from e
    except UnknownTenantError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(e),
        ) from e
    except (ConnectionError, AllocationError) as e:
        raise _unavailable(e) from e

    return IdentifierResponse(
        tenant_code=tenant_code.strip().upper(),
        kind=kind.strip().lower(),
        identifier=identifier,
    )


@router.get("/tenants/{tenant_code}/counters")
def list_counters(
    tenant_code: str,
    allocator: Annotated[SequenceAllocator, Depends(get_sequence_allocator)],
) -> list[CounterResponse]:
    """List a school's identifier counters without advancing them."""
    try:
        counters = allocator.counters(tenant_code)
    except UnknownTenantError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(e),
        ) from e
    except ConnectionError as e:
        raise _unavailable(e) from e

    return [CounterResponse.from_domain(counter) for counter in counters]


@router.get("/health/tenants")
def tenant_health(
    registry: Annotated[TenantConnectionRegistry, Depends(get_tenant_registry)],
) -> TenantHealthResponse:
    """Ping every cached tenant connection."""
    try:
        results = registry.check_health()
    except ConnectionError as e:
        raise _unavailable(e) from e

    return TenantHealthResponse(
        status="ok" if all(results.values()) else "degraded",
        tenants=results,
    )
