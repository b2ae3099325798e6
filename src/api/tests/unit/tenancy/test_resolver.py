"""Unit tests for tenant code resolution."""

import pytest

from tenancy.domain.resolver import (
    MAX_TENANT_CODE_LENGTH,
    NAMESPACE_PREFIX,
    namespace_for,
    normalize_tenant_code,
)
from tenancy.ports.exceptions import UnknownTenantError


class TestNormalizeTenantCode:
    """Tests for normalize_tenant_code."""

    def test_upper_cases_code(self):
        assert normalize_tenant_code("sb") == "SB"

    def test_strips_surrounding_whitespace(self):
        assert normalize_tenant_code("  demo001 ") == "DEMO001"

    def test_canonical_code_is_unchanged(self):
        assert normalize_tenant_code("NPS") == "NPS"

    @pytest.mark.parametrize("code", ["", "   "])
    def test_rejects_empty_code(self, code):
        with pytest.raises(UnknownTenantError) as exc_info:
            normalize_tenant_code(code)

        assert "empty" in str(exc_info.value)

    @pytest.mark.parametrize("code", ["S-B", "S_B", "s b", "sb;drop", "ÉCOLE"])
    def test_rejects_non_alphanumeric_code(self, code):
        with pytest.raises(UnknownTenantError):
            normalize_tenant_code(code)

    def test_rejects_overlong_code(self):
        with pytest.raises(UnknownTenantError) as exc_info:
            normalize_tenant_code("A" * (MAX_TENANT_CODE_LENGTH + 1))

        assert exc_info.value.tenant_code == "A" * (MAX_TENANT_CODE_LENGTH + 1)

    def test_rejects_non_string(self):
        with pytest.raises(UnknownTenantError):
            normalize_tenant_code(None)  # type: ignore[arg-type]


class TestNamespaceFor:
    """Tests for the tenant code to database name mapping."""

    def test_maps_code_to_prefixed_lower_case_name(self):
        assert namespace_for("SB") == "school_sb"

    def test_prefix_is_stable(self):
        assert NAMESPACE_PREFIX == "school_"
        assert namespace_for("DEMO001") == "school_demo001"

    def test_codes_differing_only_in_case_share_a_namespace(self):
        assert namespace_for("sb") == namespace_for("SB") == namespace_for(" Sb ")

    def test_distinct_codes_get_distinct_namespaces(self):
        codes = ["P", "SB", "NPS", "DEMO001", "SB1", "S1B"]
        assert len({namespace_for(code) for code in codes}) == len(codes)

    def test_is_deterministic(self):
        assert [namespace_for("nps") for _ in range(5)] == ["school_nps"] * 5
