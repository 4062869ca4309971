"""Single-slot rendezvous between the tail producer and one consumer.

The producer publishes whenever a batch completes; the consumer asks for the
next batch when it is ready. At most one batch is held: publishing while the
slot is full replaces the unconsumed batch. A slow consumer therefore always
sees the most recent batch and never a growing backlog.

Closing the bridge wakes a waiting consumer. A batch published before the
close is still handed out; after that the consumer gets ``BridgeTerminated``.
"""

import asyncio
from typing import AsyncIterator, Generic, Optional, TypeVar

from antennawatch.core.logging import ContextualLogger
from antennawatch.core.logging import logger as default_logger
from antennawatch.platform.tail.exceptions import BridgeTerminated

T = TypeVar("T")

_EMPTY = object()


class PushPullBridge(Generic[T]):
    """Latest-value-wins handoff for exactly one consumer."""

    def __init__(self, logger: Optional[ContextualLogger] = None):
        """Initialize an empty, open bridge.

        Args:
            logger: Optional contextual logger
        """
        self.logger = logger or default_logger.with_context(component="push_pull_bridge")
        self._slot: object = _EMPTY
        self._signal = asyncio.Event()
        self._closed = False
        self._cause: Optional[BaseException] = None
        self._consumer_waiting = False

        self.published = 0
        self.overwritten = 0

    @property
    def closed(self) -> bool:
        """Whether the producer side has terminated."""
        return self._closed

    @property
    def has_pending(self) -> bool:
        """Whether a batch is waiting in the slot."""
        return self._slot is not _EMPTY

    def publish(self, item: T) -> None:
        """Store ``item`` as the latest value and wake the consumer.

        Raises:
            BridgeTerminated: If the bridge was already closed
        """
        if self._closed:
            raise BridgeTerminated(self._cause)
        if self._slot is not _EMPTY:
            self.overwritten += 1
            self.logger.debug("Consumer behind, replacing unconsumed batch")
        self._slot = item
        self.published += 1
        self._signal.set()

    def close(self, cause: Optional[BaseException] = None) -> None:
        """Terminate the producer side and wake any waiting consumer.

        Args:
            cause: Error that ended the producer, None for a clean end
        """
        if self._closed:
            return
        self._closed = True
        self._cause = cause
        self._signal.set()

    async def get(self) -> T:
        """Wait for the next batch and take it out of the slot.

        Raises:
            BridgeTerminated: When the producer closed and the slot is empty
            RuntimeError: If a second consumer waits concurrently
        """
        if self._consumer_waiting:
            raise RuntimeError("PushPullBridge supports a single consumer")

        self._consumer_waiting = True
        try:
            while self._slot is _EMPTY:
                if self._closed:
                    raise BridgeTerminated(self._cause)
                self._signal.clear()
                await self._signal.wait()
        finally:
            self._consumer_waiting = False

        item, self._slot = self._slot, _EMPTY
        return item  # type: ignore[return-value]

    async def __aiter__(self) -> AsyncIterator[T]:
        """Yield batches until the producer terminates."""
        while True:
            try:
                yield await self.get()
            except BridgeTerminated:
                return
