"""Tenancy ports (interfaces) module.

Ports define the contracts between the application layer and infrastructure,
and the error taxonomy every caller of the data-access layer handles.
"""

from tenancy.ports.exceptions import (
    AllocationError,
    ConfigurationError,
    ConnectionError,
    InvalidEntityKindError,
    RegistryNotInitializedError,
    TenancyError,
    UnknownTenantError,
)
from tenancy.ports.protocols import (
    SequenceRepository,
    StorePool,
    TenantConnector,
    TenantHandle,
)

__all__ = [
    "AllocationError",
    "ConfigurationError",
    "ConnectionError",
    "InvalidEntityKindError",
    "RegistryNotInitializedError",
    "SequenceRepository",
    "StorePool",
    "TenancyError",
    "TenantConnector",
    "TenantHandle",
    "UnknownTenantError",
]
