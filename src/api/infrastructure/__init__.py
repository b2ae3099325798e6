"""Shared infrastructure: settings, logging, observability."""
