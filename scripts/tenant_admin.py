#!/usr/bin/env python3
"""Tenant maintenance commands.

Provisions school databases, allocates identifiers and inspects counters.
Every command goes through the same TenantConnectionRegistry the API uses,
so scripts never open their own ad hoc connections.

Usage:
    ./scripts/tenant_admin.py provision NPS
    ./scripts/tenant_admin.py allocate NPS student --count 5
    ./scripts/tenant_admin.py counters NPS
    ./scripts/tenant_admin.py stats NPS

Environment Variables:
    SCHOOLHUB_DB_HOST: Database host (default: localhost)
    SCHOOLHUB_DB_PORT: Database port (default: 5432)
    SCHOOLHUB_DB_USERNAME: Database user (default: schoolhub)
    SCHOOLHUB_DB_PASSWORD: Database password
    SCHOOLHUB_SEQ_KIND_TAGS: JSON object mapping entity kind to tag
"""

import argparse
import sys
from pathlib import Path

from rich.console import Console
from rich.table import Table

root_path = Path(__file__).parent.parent
sys.path.insert(0, str(root_path / "src" / "api"))

from infrastructure.logging import configure_logging  # noqa: E402
from infrastructure.observability import ObservationContext  # noqa: E402
from infrastructure.settings import get_sequence_settings  # noqa: E402
from tenancy.application.allocator import SequenceAllocator  # noqa: E402
from tenancy.application.observability import (  # noqa: E402
    DefaultSequenceAllocatorProbe,
)
from tenancy.infrastructure.observability import (  # noqa: E402
    DefaultProvisioningProbe,
    DefaultTenantRegistryProbe,
)
from tenancy.infrastructure.provisioning import TenantProvisioner  # noqa: E402
from tenancy.infrastructure.registry import TenantConnectionRegistry  # noqa: E402
from tenancy.infrastructure.sequence_repository import (  # noqa: E402
    PostgresSequenceRepository,
)
from tenancy.ports.exceptions import TenancyError  # noqa: E402

console = Console()


def parse_args(argv=None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="SchoolHub tenant maintenance",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s provision NPS
  %(prog)s allocate NPS teacher --count 3
  %(prog)s counters SB
        """,
    )
    parser.add_argument("--debug", action="store_true", help="Verbose logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    provision = subparsers.add_parser("provision", help="Create a school database")
    provision.add_argument("tenant_code")

    allocate = subparsers.add_parser("allocate", help="Allocate identifiers")
    allocate.add_argument("tenant_code")
    allocate.add_argument("kind")
    allocate.add_argument("--count", type=int, default=1, help="How many to allocate")

    counters = subparsers.add_parser("counters", help="Show identifier counters")
    counters.add_argument("tenant_code")

    stats = subparsers.add_parser("stats", help="Show database statistics")
    stats.add_argument("tenant_code")

    return parser.parse_args(argv)


def show_counters(title, counters):
    table = Table(title=title)
    table.add_column("Kind")
    table.add_column("Value", justify="right")
    table.add_column("Updated")
    for counter in counters:
        table.add_row(counter.kind, str(counter.value), str(counter.updated_at or "-"))
    console.print(table)


def run(args, allocator, provisioner):
    if args.command == "provision":
        created = provisioner.provision(args.tenant_code)
        verb = "Created" if created else "Already provisioned:"
        console.print(f"[green]{verb}[/green] {args.tenant_code.upper()}")
    elif args.command == "allocate":
        for _ in range(max(args.count, 1)):
            console.print(allocator.allocate_identifier(args.tenant_code, args.kind))
    elif args.command == "counters":
        show_counters(
            f"Counters for {args.tenant_code.upper()}",
            allocator.counters(args.tenant_code),
        )
    elif args.command == "stats":
        stats = provisioner.stats(args.tenant_code)
        console.print(
            f"[bold]{stats.database_name}[/bold]: {stats.table_count} tables, "
            f"{stats.size_bytes:,} bytes"
        )
        show_counters("Counters", stats.counters)


def main(argv=None):
    args = parse_args(argv)
    configure_logging(debug=args.debug)

    context = ObservationContext(source="cli", extra={"command": args.command})
    repository = PostgresSequenceRepository()
    registry = TenantConnectionRegistry(
        initializer=repository.ensure_schema,
        probe=DefaultTenantRegistryProbe().with_context(context),
    )
    allocator = SequenceAllocator(
        registry,
        repository,
        settings=get_sequence_settings(),
        probe=DefaultSequenceAllocatorProbe().with_context(context),
    )
    provisioner = TenantProvisioner(
        registry,
        repository,
        probe=DefaultProvisioningProbe().with_context(context),
    )

    try:
        registry.initialize()
        run(args, allocator, provisioner)
    except TenancyError as e:
        console.print(f"[red]Error:[/red] {e}")
        return 1
    finally:
        report = registry.close_all()
        for tenant_code, error in report.failures.items():
            console.print(f"[yellow]Failed to close {tenant_code}:[/yellow] {error}")

    return 0


if __name__ == "__main__":
    sys.exit(main())
