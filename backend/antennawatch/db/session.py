"""Short-lived asyncpg connections to the two stores.

- Materialize (tail side) serves reads of the antenna views.
- Postgres (write side) receives ordinary writes that feed those views.

Long-lived tail cursors do not use these helpers; they own their
connection through ``MaterializeCursorSource``.
"""

from contextlib import asynccontextmanager
from typing import AsyncIterator

import asyncpg

from antennawatch.core.config import settings
from antennawatch.core.exceptions import StoreUnavailableException


@asynccontextmanager
async def _connect(dsn: str, store: str) -> AsyncIterator[asyncpg.Connection]:
    try:
        connection = await asyncpg.connect(
            dsn,
            timeout=settings.CONNECT_TIMEOUT_SECONDS,
            command_timeout=settings.COMMAND_TIMEOUT_SECONDS,
        )
    except (OSError, TimeoutError, asyncpg.PostgresError, asyncpg.InterfaceError) as e:
        raise StoreUnavailableException(f"Could not connect to {store}: {e}") from e

    try:
        yield connection
    finally:
        await connection.close()


def get_materialize_context():
    """Connection to the Materialize views.

    Usage:
        async with get_materialize_context() as conn:
            rows = await conn.fetch("SELECT * FROM antennas")
    """
    return _connect(settings.materialize_dsn, "Materialize")


def get_store_context():
    """Connection to the write-side Postgres store."""
    return _connect(settings.postgres_dsn, "Postgres")
