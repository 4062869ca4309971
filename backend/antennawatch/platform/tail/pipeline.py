"""One live tail subscription.

``TailSubscription`` wires the stages together:

    CursorReader -> BatchCoalescer -> PushPullBridge -> StateReconciler

The producer task pulls rows from the reader and feeds the coalescer,
publishing each non-empty batch into the bridge. The consumer is whoever
iterates the subscription: every batch it takes is applied to the
reconciler and the resulting snapshot is yielded.

The bridge is the only place where the two sides run concurrently. Closing
the subscription cancels the producer, closes the reader and terminates the
bridge, so nothing is left waiting.
"""

import asyncio
from typing import AsyncIterator, Optional

from antennawatch.core.logging import ContextualLogger
from antennawatch.core.logging import logger as default_logger
from antennawatch.platform.tail.bridge import PushPullBridge
from antennawatch.platform.tail.coalescer import BatchCoalescer
from antennawatch.platform.tail.exceptions import BridgeTerminated, FetchError
from antennawatch.platform.tail.reader import CursorReader
from antennawatch.platform.tail.reconciler import EntitySnapshot, StateReconciler
from antennawatch.platform.tail.types import ChangeBatch


class TailSubscription:
    """Async-iterable stream of snapshots backed by one cursor session."""

    def __init__(
        self,
        reader: CursorReader,
        reconciler: StateReconciler,
        fetch_size: int = 1000,
        coalescer: Optional[BatchCoalescer] = None,
        bridge: Optional[PushPullBridge[ChangeBatch]] = None,
        logger: Optional[ContextualLogger] = None,
    ):
        """Initialize the subscription.

        Args:
            reader: Reader over an open cursor; closed with the subscription
            reconciler: Table the batches are applied to
            fetch_size: Rows requested per pull
            coalescer: Optional coalescer (a fresh one by default)
            bridge: Optional bridge (a fresh one by default)
            logger: Optional contextual logger
        """
        self.logger = logger or default_logger.with_context(component="tail_subscription")
        self.reader = reader
        self.reconciler = reconciler
        self.fetch_size = fetch_size
        self.coalescer = coalescer or BatchCoalescer(logger=self.logger)
        self.bridge: PushPullBridge[ChangeBatch] = bridge or PushPullBridge(logger=self.logger)

        self.error: Optional[Exception] = None
        self._producer: Optional[asyncio.Task] = None
        self._closed = False

    def start(self) -> None:
        """Start the producer task. Idempotent."""
        if self._producer is None and not self._closed:
            self._producer = asyncio.create_task(self._produce(), name="antenna-tail-producer")

    async def _produce(self) -> None:
        """Pull rows until the subscription closes or the cursor fails."""
        try:
            while not self.reader.closed:
                rows = await self.reader.next(self.fetch_size)
                for batch in self.coalescer.push_many(rows):
                    if batch.rows:
                        self.bridge.publish(batch)
                # A source may answer a pull without ever suspending
                await asyncio.sleep(0)
        except FetchError as e:
            self.error = e
            self.logger.error(f"Tail session lost: {e}")
        except Exception as e:
            self.error = e
            self.logger.exception(f"Tail producer crashed: {e}")
        finally:
            self.bridge.close(self.error)

    async def snapshots(self) -> AsyncIterator[EntitySnapshot]:
        """Apply batches as they arrive and yield each new snapshot.

        Ends when the producer terminates, cleanly or not; check ``error``
        afterwards to tell a lost session from a closed one.
        """
        self.start()
        while True:
            try:
                batch = await self.bridge.get()
            except BridgeTerminated:
                return
            before = self.reconciler.snapshot
            snapshot = self.reconciler.apply(batch)
            if snapshot is not before:
                yield snapshot

    def __aiter__(self) -> AsyncIterator[EntitySnapshot]:
        """Iterate snapshots."""
        return self.snapshots()

    async def close(self) -> None:
        """Stop the producer, release the cursor and wake the consumer."""
        if self._closed:
            return
        self._closed = True

        producer = self._producer
        if producer is not None and not producer.done():
            producer.cancel()
            try:
                await producer
            except asyncio.CancelledError:
                pass

        self.bridge.close()
        await self.reader.close()
        self.logger.info(
            f"Tail subscription closed (published {self.bridge.published}, "
            f"overwritten {self.bridge.overwritten})"
        )

    async def __aenter__(self) -> "TailSubscription":
        """Start producing on entry."""
        self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        """Close on exit."""
        await self.close()
