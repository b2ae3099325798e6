"""Exceptions raised by the tenant data-access layer.

Every exception is reported to the immediate caller. Retry policy belongs
to the caller, which knows whether its own operation is safe to repeat.
"""


class TenancyError(Exception):
    """Base exception for tenant data-access failures."""

    pass


class ConfigurationError(TenancyError):
    """Raised when connection parameters are missing or malformed.

    Fatal at startup; retrying with the same configuration cannot succeed.
    """

    pass


class ConnectionError(TenancyError):
    """Raised when a tenant store is unreachable or the handshake fails.

    Recoverable: failed attempts are never cached, so a later call retries
    connection establishment.
    """

    def __init__(self, message: str, tenant_code: str | None = None):
        super().__init__(message)
        self.tenant_code = tenant_code


class RegistryNotInitializedError(ConnectionError):
    """Raised when the registry is used before initialize or after close_all."""

    pass


class AllocationError(TenancyError):
    """Raised when an atomic counter increment fails.

    A failed increment never consumes a counter value.
    """

    def __init__(
        self,
        message: str,
        tenant_code: str | None = None,
        kind: str | None = None,
    ):
        super().__init__(message)
        self.tenant_code = tenant_code
        self.kind = kind


class UnknownTenantError(TenancyError):
    """Raised when a tenant code is syntactically invalid or not provisioned."""

    def __init__(self, message: str, tenant_code: str | None = None):
        super().__init__(message)
        self.tenant_code = tenant_code


class InvalidEntityKindError(TenancyError, ValueError):
    """Raised when an identifier is requested for an unconfigured entity kind."""

    def __init__(self, kind: str, allowed: list[str]):
        super().__init__(
            f"Unknown entity kind {kind!r}; expected one of: {', '.join(allowed)}"
        )
        self.kind = kind
        self.allowed = allowed
