"""Coalesce per-row changes into one batch per progress interval."""

from typing import AsyncIterable, AsyncIterator, Dict, Iterable, List, Optional

from antennawatch.core.logging import ContextualLogger
from antennawatch.core.logging import logger as default_logger
from antennawatch.platform.tail.types import ChangeBatch, RawChangeRow


class BatchCoalescer:
    """Groups rows between progress markers, keeping the latest row per key.

    Keys keep the position of their first appearance in the interval. A
    later row for the same key replaces the buffered one, whatever its
    sign or timestamp.
    """

    def __init__(self, logger: Optional[ContextualLogger] = None):
        """Initialize an empty coalescer.

        Args:
            logger: Optional contextual logger
        """
        self.logger = logger or default_logger.with_context(component="batch_coalescer")
        self._buffer: Dict[str, RawChangeRow] = {}
        self.batches_emitted = 0

    @property
    def buffered(self) -> int:
        """Number of keys waiting for the next progress marker."""
        return len(self._buffer)

    def push(self, row: RawChangeRow) -> Optional[ChangeBatch]:
        """Consume one row.

        Args:
            row: Next row from the cursor

        Returns:
            The completed batch when ``row`` is a progress marker, else None
        """
        if row.is_progress_marker:
            return self._emit(row.logical_timestamp)

        self._buffer[row.entity_key] = row
        return None

    def push_many(self, rows: Iterable[RawChangeRow]) -> List[ChangeBatch]:
        """Consume several rows, returning every batch they complete."""
        batches = []
        for row in rows:
            batch = self.push(row)
            if batch is not None:
                batches.append(batch)
        return batches

    def flush(self) -> Optional[ChangeBatch]:
        """Emit the remainder at stream end, or None when nothing is buffered."""
        if not self._buffer:
            return None
        return self._emit(None)

    async def coalesce(self, rows: AsyncIterable[RawChangeRow]) -> AsyncIterator[ChangeBatch]:
        """Turn an async row stream into a batch stream, flushing at the end."""
        async for row in rows:
            batch = self.push(row)
            if batch is not None:
                yield batch
        remainder = self.flush()
        if remainder is not None:
            yield remainder

    def _emit(self, progress_timestamp: Optional[int]) -> ChangeBatch:
        batch = ChangeBatch(
            rows=tuple(self._buffer.values()),
            progress_timestamp=progress_timestamp,
        )
        self._buffer = {}
        self.batches_emitted += 1
        if batch.rows:
            self.logger.debug(f"Emitting batch: {batch.summary()}")
        return batch
