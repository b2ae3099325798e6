"""Request and response models for tenancy routes."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from tenancy.domain.value_objects import SequenceCounter


class IdentifierResponse(BaseModel):
    """A freshly allocated entity identifier."""

    tenant_code: str = Field(..., description="Canonical school code")
    kind: str = Field(..., description="Entity kind the identifier numbers")
    identifier: str = Field(..., description="Formatted identifier, e.g. NPS-S-0042")


class CounterResponse(BaseModel):
    """Current state of one identifier counter."""

    kind: str
    value: int
    updated_at: datetime | None = None

    @classmethod
    def from_domain(cls, counter: SequenceCounter) -> CounterResponse:
        return cls(kind=counter.kind, value=counter.value, updated_at=counter.updated_at)


class TenantHealthResponse(BaseModel):
    """Health of the cached tenant connections."""

    status: str = Field(..., description='"ok" or "degraded"')
    tenants: dict[str, bool] = Field(default_factory=dict)
