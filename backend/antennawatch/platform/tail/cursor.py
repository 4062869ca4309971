"""Cursor sources for the change-feed tail.

A cursor source is the only piece that talks to the store. It exposes two
operations: ``fetch(count, timeout)`` returning up to ``count`` raw records,
and ``close()``. Materialize speaks the Postgres wire protocol, so the
production source is a thin asyncpg wrapper around a ``DECLARE ... CURSOR FOR
TAIL`` inside a transaction.
"""

import re
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Protocol, runtime_checkable
from uuid import uuid4

import asyncpg

from antennawatch.core.logging import ContextualLogger
from antennawatch.core.logging import logger as default_logger
from antennawatch.platform.tail.exceptions import FetchError

# Identifiers are interpolated into DECLARE/FETCH, so only plain names are accepted
_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_.]*$")

# Errors that mean the session is gone or the cursor is unusable
CURSOR_ERRORS = (
    asyncpg.PostgresError,
    asyncpg.InterfaceError,
    OSError,
)


@runtime_checkable
class CursorSource(Protocol):
    """Protocol for anything the CursorReader can pull rows from."""

    async def fetch(self, count: int, timeout: float) -> List[Mapping[str, Any]]:
        """Fetch up to ``count`` records, waiting at most ``timeout`` seconds.

        Returning an empty list is not an error; it means no data right now.

        Raises:
            FetchError: If the underlying cursor or connection failed
        """
        ...

    async def close(self) -> None:
        """Release the cursor and its connection."""
        ...


@dataclass
class CursorSession:
    """An open streaming cursor bound to one connection.

    Attributes:
        cursor_name: Server-side cursor identifier
        connection: The connection the cursor lives on
        transaction: Transaction holding the cursor open
    """

    cursor_name: str
    connection: asyncpg.Connection
    transaction: Any


def check_identifier(name: str) -> str:
    """Reject anything but a plain (optionally schema-qualified) SQL name."""
    if not _IDENTIFIER.match(name):
        raise ValueError(f"Invalid SQL identifier: {name!r}")
    return name


class MaterializeCursorSource:
    """Streams a Materialize view through ``TAIL ... WITH (PROGRESS)``."""

    def __init__(self, session: CursorSession, logger: Optional[ContextualLogger] = None):
        """Wrap an already declared cursor session.

        Args:
            session: The open cursor session
            logger: Optional contextual logger
        """
        self.session = session
        self.logger = logger or default_logger.with_context(
            component="cursor_source", cursor=session.cursor_name
        )
        self._closed = False

    @classmethod
    async def open(
        cls,
        dsn: str,
        view: str,
        connect_timeout: float = 30.0,
        logger: Optional[ContextualLogger] = None,
    ) -> "MaterializeCursorSource":
        """Connect and declare a tail cursor over ``view``.

        Args:
            dsn: Connection string for Materialize
            view: Materialized view to tail
            connect_timeout: Seconds to wait for the connection
            logger: Optional contextual logger

        Returns:
            A source ready to be fetched from

        Raises:
            FetchError: If the connection or the cursor declaration fails
        """
        check_identifier(view)
        cursor_name = f"antenna_tail_{uuid4().hex[:12]}"
        log = (logger or default_logger).with_context(component="cursor_source", cursor=cursor_name)

        try:
            connection = await asyncpg.connect(dsn, timeout=connect_timeout)
        except (*CURSOR_ERRORS, TimeoutError) as e:
            raise FetchError(f"Could not connect to tail store: {e}") from e

        try:
            transaction = connection.transaction()
            await transaction.start()
            await connection.execute(
                f"DECLARE {cursor_name} CURSOR FOR TAIL {view} WITH (PROGRESS)"
            )
        except CURSOR_ERRORS as e:
            await connection.close()
            raise FetchError(f"Could not declare tail cursor on {view}: {e}") from e

        log.info(f"Declared tail cursor on view '{view}'")
        return cls(CursorSession(cursor_name, connection, transaction), logger=log)

    @property
    def closed(self) -> bool:
        """Whether close() has been called."""
        return self._closed

    async def fetch(self, count: int, timeout: float) -> List[Dict[str, Any]]:
        """Issue one bounded FETCH against the cursor.

        Args:
            count: Maximum rows to fetch
            timeout: Seconds the server may wait for rows

        Returns:
            Fetched records as plain dictionaries

        Raises:
            FetchError: On any connection or cursor failure
        """
        if self._closed:
            raise FetchError(f"Cursor {self.session.cursor_name} is closed")

        query = (
            f"FETCH {int(count)} {self.session.cursor_name} "
            f"WITH (TIMEOUT='{float(timeout)}s')"
        )
        try:
            records = await self.session.connection.fetch(query)
        except CURSOR_ERRORS as e:
            raise FetchError(f"FETCH on {self.session.cursor_name} failed: {e}") from e

        return [dict(record) for record in records]

    async def close(self) -> None:
        """Roll back the cursor transaction and close the connection."""
        if self._closed:
            return
        self._closed = True

        connection = self.session.connection
        if connection.is_closed():
            return
        try:
            await self.session.transaction.rollback()
        except CURSOR_ERRORS as e:
            self.logger.warning(f"Cursor rollback failed, terminating connection: {e}")
            connection.terminate()
            return
        await connection.close()
        self.logger.debug("Cursor session closed")
