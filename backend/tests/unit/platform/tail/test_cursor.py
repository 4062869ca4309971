"""Tests for the Materialize cursor source."""

from unittest.mock import AsyncMock, MagicMock, patch

import asyncpg
import pytest
import pytest_asyncio

from antennawatch.platform.tail.cursor import (
    CursorSource,
    MaterializeCursorSource,
    check_identifier,
)
from antennawatch.platform.tail.exceptions import FetchError

CONNECT = "antennawatch.platform.tail.cursor.asyncpg.connect"


@pytest.fixture
def connection():
    """A mocked asyncpg connection with a transaction."""
    conn = MagicMock()
    conn.transaction.return_value = MagicMock(start=AsyncMock(), rollback=AsyncMock())
    conn.execute = AsyncMock()
    conn.fetch = AsyncMock(return_value=[])
    conn.close = AsyncMock()
    conn.is_closed.return_value = False
    return conn


@pytest_asyncio.fixture
async def source(connection):
    """An opened source over the mocked connection."""
    with patch(CONNECT, AsyncMock(return_value=connection)):
        return await MaterializeCursorSource.open("postgresql://mz", "antenna_view")


@pytest.mark.asyncio
async def test_open_declares_tail_cursor(source, connection):
    """Opening declares a progress-enabled tail inside a transaction."""
    connection.transaction.return_value.start.assert_awaited_once()
    statement = connection.execute.await_args.args[0]
    assert statement.startswith(f"DECLARE {source.session.cursor_name} CURSOR FOR TAIL")
    assert statement.endswith("antenna_view WITH (PROGRESS)")
    assert isinstance(source, CursorSource)


@pytest.mark.asyncio
async def test_open_rejects_invalid_view():
    """View names are validated before they reach SQL."""
    with patch(CONNECT, AsyncMock()) as connect:
        with pytest.raises(ValueError):
            await MaterializeCursorSource.open("postgresql://mz", "antennas; DROP TABLE x")
    connect.assert_not_called()


@pytest.mark.asyncio
async def test_open_wraps_connection_errors():
    """An unreachable store surfaces as a fetch error."""
    with patch(CONNECT, AsyncMock(side_effect=OSError("connection refused"))):
        with pytest.raises(FetchError):
            await MaterializeCursorSource.open("postgresql://mz", "antenna_view")


@pytest.mark.asyncio
async def test_open_closes_connection_when_declare_fails(connection):
    """A failed DECLARE releases the connection."""
    connection.execute.side_effect = asyncpg.PostgresError("unknown catalog item")

    with patch(CONNECT, AsyncMock(return_value=connection)):
        with pytest.raises(FetchError):
            await MaterializeCursorSource.open("postgresql://mz", "antenna_view")
    connection.close.assert_awaited_once()


@pytest.mark.asyncio
async def test_fetch_issues_bounded_fetch(source, connection):
    """FETCH carries the row count and the server-side timeout."""
    connection.fetch.return_value = [{"mz_timestamp": 1, "mz_progressed": True}]

    records = await source.fetch(500, 1.0)

    query = connection.fetch.await_args.args[0]
    assert query == f"FETCH 500 {source.session.cursor_name} WITH (TIMEOUT='1.0s')"
    assert records == [{"mz_timestamp": 1, "mz_progressed": True}]


@pytest.mark.asyncio
async def test_fetch_wraps_driver_errors(source, connection):
    """Driver failures surface as fetch errors."""
    connection.fetch.side_effect = asyncpg.InterfaceError("connection is closed")

    with pytest.raises(FetchError):
        await source.fetch(10, 1.0)


@pytest.mark.asyncio
async def test_fetch_after_close_fails(source):
    """A closed source cannot be fetched from."""
    await source.close()

    with pytest.raises(FetchError):
        await source.fetch(10, 1.0)


@pytest.mark.asyncio
async def test_close_rolls_back_and_is_idempotent(source, connection):
    """Closing ends the transaction and the connection exactly once."""
    await source.close()
    await source.close()

    connection.transaction.return_value.rollback.assert_awaited_once()
    connection.close.assert_awaited_once()
    assert source.closed


@pytest.mark.asyncio
async def test_close_terminates_when_rollback_fails(source, connection):
    """A broken session is terminated instead of closed gracefully."""
    connection.transaction.return_value.rollback.side_effect = asyncpg.InterfaceError("gone")

    await source.close()

    connection.terminate.assert_called_once()
    connection.close.assert_not_awaited()


@pytest.mark.parametrize("name", ["antennas", "public.antennas", "_view_2"])
def test_check_identifier_accepts_plain_names(name):
    """Plain and schema-qualified names pass."""
    assert check_identifier(name) == name


@pytest.mark.parametrize("name", ["", "1view", "view name", "view;--", "v'x"])
def test_check_identifier_rejects_others(name):
    """Anything else is refused."""
    with pytest.raises(ValueError):
        check_identifier(name)
