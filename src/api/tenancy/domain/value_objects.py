"""Value objects for the tenancy domain."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime


@dataclass(frozen=True)
class SequenceCounter:
    """Snapshot of one persistent counter inside a tenant database.

    Attributes:
        kind: Entity kind the counter numbers (e.g. "student").
        value: Last value handed out; the next allocation returns value + 1.
        updated_at: When the counter last changed.
    """

    kind: str
    value: int
    updated_at: datetime | None = None


@dataclass(frozen=True)
class TenantStats:
    """Storage statistics for one tenant database."""

    tenant_code: str
    database_name: str
    table_count: int
    size_bytes: int
    counters: list[SequenceCounter] = field(default_factory=list)


def format_identifier(tenant_code: str, tag: str, value: int, width: int) -> str:
    """Build the external identifier for an allocated counter value.

    ``format_identifier("P", "T", 7, 4)`` returns ``"P-T-0007"``. Values
    wider than ``width`` are rendered in full rather than truncated.

    Raises:
        ValueError: If value is negative.
    """
    if value < 0:
        raise ValueError(f"Sequence value must be non-negative, got {value}")
    return f"{tenant_code}-{tag}-{value:0{width}d}"
