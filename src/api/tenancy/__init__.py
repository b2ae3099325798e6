"""Tenant data-access bounded context.

Maps school codes to isolated databases, shares one connection pool per
school, and allocates collision-free entity identifiers.
"""
