"""Main FastAPI application entry point."""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI

from infrastructure.logging import configure_logging
from infrastructure.settings import (
    get_sequence_settings,
    get_settings,
)
from infrastructure.version import __version__
from tenancy.application.allocator import SequenceAllocator
from tenancy.infrastructure.registry import TenantConnectionRegistry
from tenancy.infrastructure.sequence_repository import PostgresSequenceRepository
from tenancy.presentation import routes as tenancy_routes

logger = structlog.get_logger()


def build_tenancy(
    registry: TenantConnectionRegistry | None = None,
) -> tuple[TenantConnectionRegistry, SequenceAllocator]:
    """Wire the registry and allocator around one sequence repository.

    Every newly opened tenant connection gets its sequence table ensured
    before it is handed out.
    """
    repository = PostgresSequenceRepository()
    registry = registry or TenantConnectionRegistry(
        initializer=repository.ensure_schema
    )
    allocator = SequenceAllocator(
        registry,
        repository,
        settings=get_sequence_settings(),
    )
    return registry, allocator


@asynccontextmanager
async def schoolhub_lifespan(app: FastAPI):
    """Application lifespan context.

    Manages the tenant registry lifecycle: initialized on startup (no
    connections are opened until a tenant is first used), closed on
    shutdown.
    """
    configure_logging(debug=get_settings().debug)

    registry, allocator = build_tenancy()
    registry.initialize()
    app.state.tenant_registry = registry
    app.state.sequence_allocator = allocator

    yield

    report = registry.close_all()
    if not report.ok:
        logger.error("tenant_shutdown_incomplete", failures=report.failures)


app = FastAPI(
    title="SchoolHub API",
    description="Multi-tenant school administration: tenant data access",
    version=__version__,
    lifespan=schoolhub_lifespan,
)

app.include_router(tenancy_routes.router)


@app.get("/health")
def health():
    """Basic health check endpoint."""
    return {"status": "ok"}
