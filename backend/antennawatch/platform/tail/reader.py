"""Pull-based reader over a streaming cursor.

The reader keeps rows that were fetched but not yet delivered in
``pending_rows``. Every pull drains that buffer first, so a fetch result is
never dropped even when the downstream only accepted part of it. Only when
the buffer is empty does it issue a new bounded FETCH.
"""

from collections import deque
from typing import Callable, Deque, List, Optional

from antennawatch.core.logging import ContextualLogger
from antennawatch.core.logging import logger as default_logger
from antennawatch.core.shared_models import TailStatus
from antennawatch.platform.tail.cursor import CursorSource
from antennawatch.platform.tail.exceptions import FetchError, ParseError
from antennawatch.platform.tail.types import RawChangeRow, parse_row

# Downstream acceptance callback: True when the row was taken, False when refused
Accept = Callable[[RawChangeRow], bool]


class CursorReader:
    """Backpressure-aware adapter over a CursorSource.

    The reader is single-consumer: calls to ``next``/``pump`` must not overlap.
    """

    def __init__(
        self,
        source: CursorSource,
        fetch_timeout: float = 1.0,
        logger: Optional[ContextualLogger] = None,
    ):
        """Initialize the reader.

        Args:
            source: Cursor to pull from; owned by the reader from now on
            fetch_timeout: Seconds each FETCH may wait for rows
            logger: Optional contextual logger
        """
        self.source = source
        self.fetch_timeout = fetch_timeout
        self.logger = logger or default_logger.with_context(component="cursor_reader")

        self.pending_rows: Deque[RawChangeRow] = deque()
        self.status = TailStatus.OPEN
        self.error: Optional[FetchError] = None

        self.rows_fetched = 0
        self.rows_dropped = 0

    async def next(self, max_rows: int) -> List[RawChangeRow]:
        """Pull up to ``max_rows`` rows.

        May return fewer rows than asked for, including none, when the
        cursor has nothing available within the fetch timeout.

        Raises:
            FetchError: If the cursor failed now or on an earlier pull
        """
        rows: List[RawChangeRow] = []

        def _take(row: RawChangeRow) -> bool:
            rows.append(row)
            return True

        await self.pump(max_rows, _take)
        return rows

    async def pump(self, demand: int, accept: Accept) -> int:
        """Deliver up to ``demand`` rows into ``accept``.

        Buffered rows are delivered oldest first. If the buffer is empty a
        single FETCH for ``demand`` rows is issued. Delivery stops at the
        first refused row, which stays at the head of ``pending_rows`` for
        the next pull.

        Args:
            demand: Maximum rows to deliver
            accept: Downstream callback; returning False refuses the row

        Returns:
            Number of rows the downstream accepted

        Raises:
            FetchError: If the cursor failed now or on an earlier pull
        """
        self._ensure_readable()
        if demand <= 0:
            return 0

        if not self.pending_rows:
            await self._fetch(demand)

        delivered = 0
        while self.pending_rows and delivered < demand:
            row = self.pending_rows[0]
            if not accept(row):
                self.logger.debug(
                    f"Downstream refused row, holding {len(self.pending_rows)} pending"
                )
                break
            self.pending_rows.popleft()
            delivered += 1

        return delivered

    async def _fetch(self, count: int) -> None:
        try:
            records = await self.source.fetch(count, self.fetch_timeout)
        except FetchError as e:
            self._fail(e)
            raise
        except Exception as e:
            error = FetchError(f"Cursor fetch failed: {e}")
            self._fail(error)
            raise error from e

        self.rows_fetched += len(records)
        for record in records:
            try:
                self.pending_rows.append(parse_row(record))
            except ParseError as e:
                self.rows_dropped += 1
                self.logger.warning(f"Dropping undecodable row: {e}")

    def _fail(self, error: FetchError) -> None:
        self.status = TailStatus.FAILED
        self.error = error
        self.logger.error(f"Cursor session failed: {error}")

    def _ensure_readable(self) -> None:
        if self.status is TailStatus.FAILED:
            raise FetchError(f"Cursor reader already failed: {self.error}")
        if self.status is TailStatus.CLOSED:
            raise FetchError("Cursor reader is closed")

    @property
    def closed(self) -> bool:
        """Whether the reader was closed by its owner."""
        return self.status is TailStatus.CLOSED

    async def close(self) -> None:
        """Close the reader and release the underlying cursor.

        Safe to call more than once and after a failure.
        """
        if self.status is TailStatus.CLOSED:
            return
        self.status = TailStatus.CLOSED
        self.pending_rows.clear()
        await self.source.close()
        self.logger.debug(
            f"Cursor reader closed ({self.rows_fetched} fetched, {self.rows_dropped} dropped)"
        )
