"""Tenancy domain: tenant code resolution and identifier formatting.

Pure functions and value objects only; no store access.
"""

from tenancy.domain.resolver import (
    NAMESPACE_PREFIX,
    namespace_for,
    normalize_tenant_code,
)
from tenancy.domain.value_objects import (
    SequenceCounter,
    TenantStats,
    format_identifier,
)

__all__ = [
    "NAMESPACE_PREFIX",
    "SequenceCounter",
    "TenantStats",
    "format_identifier",
    "namespace_for",
    "normalize_tenant_code",
]
