"""
PostgreSQL credential backend: asyncpg-compatible connection pool.

Table layout (one row per credential version):

    name TEXT, version TEXT, wrapped_key BYTEA, ciphertext BYTEA,
    integrity_tag BYTEA, created_at TIMESTAMPTZ, PRIMARY KEY (name, version)

The primary key is the only concurrency guard: a conditional write uses
``ON CONFLICT DO NOTHING`` and a zero row count means the version exists.

Security Note:
    Never log ciphertext values. Only log names, versions and row counts.
"""
import re
import logging
from typing import Any
from collections.abc import AsyncIterator

from ..credential import Credential
from ..exceptions import DuplicateCredentialVersionError
from .abstract import CredentialBackend

logger = logging.getLogger("navigator.credstash")

DEFAULT_TABLE = "credstash.credentials"

TABLE_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*(\.[A-Za-z_][A-Za-z0-9_]*)?$")

# ---------------------------------------------------------------------------
# SQL statements ({table} is validated against TABLE_PATTERN)
# ---------------------------------------------------------------------------

_CREATE_TABLE = """
CREATE TABLE IF NOT EXISTS {table} (
    name TEXT NOT NULL,
    version TEXT NOT NULL,
    wrapped_key BYTEA NOT NULL,
    ciphertext BYTEA NOT NULL,
    integrity_tag BYTEA NOT NULL,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    PRIMARY KEY (name, version)
)
"""

_CREATE_SCHEMA = "CREATE SCHEMA IF NOT EXISTS {schema}"

_INSERT_CONDITIONAL = """
INSERT INTO {table} (name, version, wrapped_key, ciphertext, integrity_tag)
VALUES ($1, $2, $3, $4, $5)
ON CONFLICT (name, version) DO NOTHING
"""

_UPSERT = """
INSERT INTO {table} (name, version, wrapped_key, ciphertext, integrity_tag)
VALUES ($1, $2, $3, $4, $5)
ON CONFLICT (name, version)
DO UPDATE SET wrapped_key = EXCLUDED.wrapped_key,
              ciphertext = EXCLUDED.ciphertext,
              integrity_tag = EXCLUDED.integrity_tag
"""

_SELECT_ONE = """
SELECT name, version, wrapped_key, ciphertext, integrity_tag
FROM {table}
WHERE name = $1 AND version = $2
"""

_SELECT_VERSIONS = """
SELECT version FROM {table} WHERE name = $1
"""

_SELECT_ALL = """
SELECT name, version, wrapped_key, ciphertext, integrity_tag
FROM {table}
ORDER BY name, version
"""

_DELETE_ALL_VERSIONS = """
DELETE FROM {table} WHERE name = $1
"""


def _row_count(status: str) -> int:
    """Parse the row count from a command status such as ``INSERT 0 1``."""
    try:
        return int(status.split()[-1])
    except (AttributeError, IndexError, ValueError):
        return 0


class PostgresBackend(CredentialBackend):
    """Credential backend over an asyncpg-compatible pool.

    Args:
        db_pool: Pool exposing ``acquire()`` as an async context manager.
        table: Table name, optionally schema qualified.
        scan_batch_size: Rows prefetched per round trip while scanning.
    """

    def __init__(
        self,
        db_pool: Any,
        table: str = DEFAULT_TABLE,
        scan_batch_size: int = 100,
    ):
        if not TABLE_PATTERN.match(table):
            raise ValueError(f"Invalid table name: {table!r}")
        if scan_batch_size < 1:
            raise ValueError("scan_batch_size must be at least 1")
        self._db = db_pool
        self._table = table
        self._batch_size = scan_batch_size

    @property
    def table(self) -> str:
        return self._table

    def _sql(self, statement: str) -> str:
        return statement.format(table=self._table)

    @staticmethod
    def _to_credential(row: Any) -> Credential:
        return Credential(
            name=row["name"],
            version=row["version"],
            wrapped_key=bytes(row["wrapped_key"]),
            ciphertext=bytes(row["ciphertext"]),
            integrity_tag=bytes(row["integrity_tag"]),
        )

    async def ensure_table(self) -> None:
        """Create the credentials table (and schema) if missing."""
        async with self._db.acquire() as conn:
            if "." in self._table:
                schema = self._table.split(".", 1)[0]
                await conn.execute(_CREATE_SCHEMA.format(schema=schema))
            await conn.execute(self._sql(_CREATE_TABLE))
        logger.info("CredStash table %s is ready", self._table)

    async def put_item(self, credential: Credential, conditional: bool = True) -> None:
        statement = _INSERT_CONDITIONAL if conditional else _UPSERT
        async with self._db.acquire() as conn:
            status = await conn.execute(
                self._sql(statement),
                credential.name,
                credential.version,
                credential.wrapped_key,
                credential.ciphertext,
                credential.integrity_tag,
            )
        if conditional and _row_count(status) == 0:
            raise DuplicateCredentialVersionError(
                credential.name, credential.version
            )

    async def get_item(self, name: str, version: str) -> Credential | None:
        async with self._db.acquire() as conn:
            row = await conn.fetchrow(self._sql(_SELECT_ONE), name, version)
        if row is None:
            return None
        return self._to_credential(row)

    async def query_versions(self, name: str) -> list[str]:
        async with self._db.acquire() as conn:
            rows = await conn.fetch(self._sql(_SELECT_VERSIONS), name)
        return [row["version"] for row in rows]

    async def scan_all(self) -> AsyncIterator[Credential]:
        # server-side cursors only live inside a transaction; leaving the
        # async-with blocks (normally, on error or on aclose) releases both
        async with self._db.acquire() as conn:
            async with conn.transaction():
                cursor = conn.cursor(
                    self._sql(_SELECT_ALL), prefetch=self._batch_size
                )
                async for row in cursor:
                    yield self._to_credential(row)

    async def delete_all_versions(self, name: str) -> int:
        async with self._db.acquire() as conn:
            status = await conn.execute(self._sql(_DELETE_ALL_VERSIONS), name)
        count = _row_count(status)
        logger.debug("Deleted %d version(s) of %s from %s", count, name, self._table)
        return count
