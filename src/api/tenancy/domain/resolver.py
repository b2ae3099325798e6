"""Tenant code resolution.

Maps a caller-supplied school code to the name of the school's database.
The mapping is an external contract (reporting and backup jobs locate
tenant databases by name) and must not change between versions.
"""

from __future__ import annotations

import re

from tenancy.ports.exceptions import UnknownTenantError

NAMESPACE_PREFIX = "school_"
MAX_TENANT_CODE_LENGTH = 32

_TENANT_CODE_PATTERN = re.compile(r"^[A-Z0-9]+$")


def normalize_tenant_code(tenant_code: str) -> str:
    """Return the canonical (upper-case, trimmed) form of a tenant code.

    Raises:
        UnknownTenantError: If the code is empty, too long, or contains
            anything other than ASCII letters and digits.
    """
    if not isinstance(tenant_code, str):
        raise UnknownTenantError(f"Tenant code must be a string, got {tenant_code!r}")

    code = tenant_code.strip().upper()
    if not code:
        raise UnknownTenantError("Tenant code must not be empty")
    if len(code) > MAX_TENANT_CODE_LENGTH:
        raise UnknownTenantError(
            f"Tenant code {code!r} exceeds {MAX_TENANT_CODE_LENGTH} characters",
            tenant_code=code,
        )
    if not _TENANT_CODE_PATTERN.match(code):
        raise UnknownTenantError(
            f"Tenant code {tenant_code!r} may only contain letters and digits",
            tenant_code=code,
        )
    return code


def namespace_for(tenant_code: str) -> str:
    """Return the database name for a tenant, e.g. ``"SB"`` -> ``"school_sb"``.

    Codes that differ only in case or surrounding whitespace map to the
    same name; distinct valid codes never do.
    """
    return f"{NAMESPACE_PREFIX}{normalize_tenant_code(tenant_code).lower()}"
