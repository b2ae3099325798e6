"""PostgreSQL storage for identifier sequences.

Each tenant database holds one ``id_sequences`` row per entity kind. The
increment is a single upsert statement, so PostgreSQL's row lock
serializes concurrent allocations across threads and processes alike.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from tenancy.domain.value_objects import SequenceCounter

if TYPE_CHECKING:
    from tenancy.infrastructure.connection import TenantConnection

SEQUENCE_TABLE = "id_sequences"

# Arbitrary key for pg_advisory_xact_lock; serializes schema creation across processes.
_SCHEMA_LOCK_KEY = 7_351_002

_CREATE_TABLE_SQL = f"""
    CREATE TABLE IF NOT EXISTS {SEQUENCE_TABLE} (
        kind TEXT PRIMARY KEY,
        value BIGINT NOT NULL CHECK (value >= 0),
        updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
    )
"""

_INCREMENT_SQL = f"""
    INSERT INTO {SEQUENCE_TABLE} AS seq (kind, value, updated_at)
    VALUES (%(kind)s, %(start)s + 1, now())
    ON CONFLICT (kind) DO UPDATE
        SET value = seq.value + 1,
            updated_at = now()
    RETURNING value
"""

_LIST_SQL = f"SELECT kind, value, updated_at FROM {SEQUENCE_TABLE} ORDER BY kind"


class PostgresSequenceRepository:
    """SequenceRepository backed by a table in each tenant database."""

    def ensure_schema(self, connection: TenantConnection) -> None:
        """Create the sequence table if it does not exist.

        CREATE TABLE IF NOT EXISTS can still fail with a unique violation
        when two sessions race, so the statement runs under an advisory
        lock held until the transaction ends.
        """
        with connection.transaction() as cursor:
            cursor.execute("SELECT pg_advisory_xact_lock(%s)", (_SCHEMA_LOCK_KEY,))
            cursor.execute(_CREATE_TABLE_SQL)

    def increment(
        self,
        connection: TenantConnection,
        kind: str,
        start_value: int,
        timeout_ms: int,
    ) -> int:
        """Increment the counter for ``kind`` and return the new value.

        Runs in its own transaction with a local statement timeout; any
        failure rolls the transaction back, leaving the counter unchanged.

        Raises:
            psycopg2.Error: If the statement fails or times out.
            ConnectionError: If no pooled connection is available.
        """
        with connection.transaction() as cursor:
            cursor.execute("SET LOCAL statement_timeout = %s", (int(timeout_ms),))
            cursor.execute(_INCREMENT_SQL, {"kind": kind, "start": start_value})
            (value,) = cursor.fetchone()

        return int(value)

    def list_counters(self, connection: TenantConnection) -> list[SequenceCounter]:
        """Return every counter in the tenant database, ordered by kind."""
        with connection.transaction() as cursor:
            cursor.execute(_LIST_SQL)
            rows = cursor.fetchall()

        return [
            SequenceCounter(kind=kind, value=int(value), updated_at=updated_at)
            for kind, value, updated_at in rows
        ]
