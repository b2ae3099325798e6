"""Tenancy presentation layer (HTTP routes)."""

from tenancy.presentation.routes import router

__all__ = ["router"]
