"""Tenancy application layer."""

from tenancy.application.allocator import SequenceAllocator

__all__ = ["SequenceAllocator"]
