"""Unit tests for the tenant maintenance script."""

import importlib.util
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from tenancy.domain.value_objects import SequenceCounter, TenantStats
from tenancy.infrastructure.registry import ShutdownReport
from tenancy.ports.exceptions import UnknownTenantError

SCRIPT_PATH = Path(__file__).resolve().parents[5] / "scripts" / "tenant_admin.py"


@pytest.fixture(scope="module")
def tenant_admin():
    spec = importlib.util.spec_from_file_location("tenant_admin", SCRIPT_PATH)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


@pytest.fixture
def allocator():
    return MagicMock()


@pytest.fixture
def provisioner():
    return MagicMock()


class TestRun:
    """Tests for command dispatch."""

    def test_allocate_repeats_count_times(self, tenant_admin, allocator, provisioner):
        allocator.allocate_identifier.side_effect = ["NPS-S-0001", "NPS-S-0002"]
        args = tenant_admin.parse_args(["allocate", "NPS", "student", "--count", "2"])

        tenant_admin.run(args, allocator, provisioner)

        assert allocator.allocate_identifier.call_count == 2
        allocator.allocate_identifier.assert_called_with("NPS", "student")

    def test_provision(self, tenant_admin, allocator, provisioner):
        provisioner.provision.return_value = True
        args = tenant_admin.parse_args(["provision", "nps"])

        tenant_admin.run(args, allocator, provisioner)

        provisioner.provision.assert_called_once_with("nps")

    def test_counters(self, tenant_admin, allocator, provisioner):
        allocator.counters.return_value = [SequenceCounter("student", 4)]
        args = tenant_admin.parse_args(["counters", "SB"])

        tenant_admin.run(args, allocator, provisioner)

        allocator.counters.assert_called_once_with("SB")

    def test_stats(self, tenant_admin, allocator, provisioner):
        provisioner.stats.return_value = TenantStats(
            tenant_code="SB",
            database_name="school_sb",
            table_count=1,
            size_bytes=8192,
        )
        args = tenant_admin.parse_args(["stats", "SB"])

        tenant_admin.run(args, allocator, provisioner)

        provisioner.stats.assert_called_once_with("SB")


class TestMain:
    """Tests for main."""

    def test_closes_registry_after_tenancy_error(self, tenant_admin):
        registry = MagicMock()
        registry.close_all.return_value = ShutdownReport()
        registry.initialize.side_effect = UnknownTenantError("nope")

        with patch.object(tenant_admin, "TenantConnectionRegistry", return_value=registry):
            exit_code = tenant_admin.main(["counters", "SB"])

        assert exit_code == 1
        registry.close_all.assert_called_once()

    def test_returns_zero_on_success(self, tenant_admin):
        registry = MagicMock()
        registry.close_all.return_value = ShutdownReport(closed=["SB"])

        with patch.object(tenant_admin, "TenantConnectionRegistry", return_value=registry):
            with patch.object(tenant_admin, "run") as run:
                exit_code = tenant_admin.main(["counters", "SB"])

        assert exit_code == 0
        run.assert_called_once()
        registry.initialize.assert_called_once_with()

    def test_binds_cli_context_to_every_component(self, tenant_admin):
        registry = MagicMock()
        registry.close_all.return_value = ShutdownReport()

        with patch.object(
            tenant_admin, "TenantConnectionRegistry", return_value=registry
        ) as registry_cls:
            with patch.object(tenant_admin, "run") as run:
                tenant_admin.main(["stats", "SB"])

        registry_context = registry_cls.call_args.kwargs["probe"]._context
        _, allocator, provisioner = run.call_args.args
        assert registry_context.source == "cli"
        assert registry_context.extra == {"command": "stats"}
        assert allocator._probe._context == registry_context
        assert provisioner._probe._context == registry_context
