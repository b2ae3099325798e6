"""Tenancy infrastructure: psycopg2 connections, registry, sequences, provisioning."""

from tenancy.infrastructure.connection import TenantConnection
from tenancy.infrastructure.connector import PsycopgTenantConnector
from tenancy.infrastructure.provisioning import TenantProvisioner
from tenancy.infrastructure.registry import ShutdownReport, TenantConnectionRegistry
from tenancy.infrastructure.sequence_repository import PostgresSequenceRepository

__all__ = [
    "PostgresSequenceRepository",
    "PsycopgTenantConnector",
    "ShutdownReport",
    "TenantConnection",
    "TenantConnectionRegistry",
    "TenantProvisioner",
]
