"""Live antenna feed.

Owns the lifecycle of tail subscriptions: opens cursor sessions (retrying
the connection with backoff), runs a ``TailSubscription`` over each, and
reopens a new session when one is lost. The reconciler is kept across
sessions, so a reconnect continues from the last published snapshot.
"""

from typing import AsyncIterator, Awaitable, Callable, Optional
from uuid import uuid4

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)
from tenacity.wait import wait_base

from antennawatch.core.config import settings
from antennawatch.core.logging import ContextualLogger
from antennawatch.core.logging import logger as default_logger
from antennawatch.platform.tail.cursor import CursorSource, MaterializeCursorSource
from antennawatch.platform.tail.debounce import TombstoneDebouncePolicy
from antennawatch.platform.tail.exceptions import FetchError
from antennawatch.platform.tail.pipeline import TailSubscription
from antennawatch.platform.tail.reader import CursorReader
from antennawatch.platform.tail.reconciler import (
    EntitySnapshot,
    PerformanceClassifier,
    StateReconciler,
)

SourceFactory = Callable[[ContextualLogger], Awaitable[CursorSource]]


async def open_materialize_source(logger: ContextualLogger) -> CursorSource:
    """Open a tail cursor on the configured view."""
    return await MaterializeCursorSource.open(
        settings.materialize_dsn,
        settings.TAIL_VIEW,
        connect_timeout=settings.CONNECT_TIMEOUT_SECONDS,
        logger=logger,
    )


class AntennaFeedService:
    """Streams reconciled antenna snapshots to one subscriber per call."""

    def __init__(
        self,
        source_factory: Optional[SourceFactory] = None,
        connect_wait: Optional[wait_base] = None,
        logger: Optional[ContextualLogger] = None,
    ):
        """Initialize the feed service.

        Args:
            source_factory: Opens a new cursor source (Materialize by default)
            connect_wait: Backoff between connection attempts
            logger: Optional contextual logger
        """
        self.source_factory = source_factory or open_materialize_source
        self.connect_wait = connect_wait or wait_exponential(multiplier=0.5, max=10)
        self.logger = logger or default_logger.with_context(component="antenna_feed")

    def build_reconciler(self, logger: ContextualLogger) -> StateReconciler:
        """Create a reconciler configured from settings."""
        return StateReconciler(
            classifier=PerformanceClassifier(
                high_threshold=settings.PERFORMANCE_HIGH_THRESHOLD,
                low_threshold=settings.PERFORMANCE_LOW_THRESHOLD,
            ),
            debounce=TombstoneDebouncePolicy(threshold=settings.HELPER_MISS_THRESHOLD),
            logger=logger,
        )

    async def open_source(self, logger: ContextualLogger) -> CursorSource:
        """Open a cursor source, retrying connection failures.

        Raises:
            FetchError: When every attempt failed
        """

        def _log_retry(retry_state: RetryCallState) -> None:
            logger.warning(
                f"Opening tail cursor failed (attempt {retry_state.attempt_number}/"
                f"{settings.TAIL_CONNECT_ATTEMPTS}): {retry_state.outcome.exception()}"
            )

        retrying = AsyncRetrying(
            stop=stop_after_attempt(settings.TAIL_CONNECT_ATTEMPTS),
            wait=self.connect_wait,
            retry=retry_if_exception_type(FetchError),
            before_sleep=_log_retry,
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                return await self.source_factory(logger)

    async def stream_snapshots(self) -> AsyncIterator[EntitySnapshot]:
        """Yield a snapshot after every applied batch.

        Lost sessions are reopened up to ``TAIL_MAX_SESSION_RESTARTS`` times.

        Raises:
            FetchError: If a session cannot be opened or restarts are exhausted
        """
        log = self.logger.with_context(subscription_id=uuid4().hex[:12])
        reconciler = self.build_reconciler(log)
        restarts = 0

        while True:
            source = await self.open_source(log)
            reader = CursorReader(
                source, fetch_timeout=settings.TAIL_FETCH_TIMEOUT_SECONDS, logger=log
            )
            subscription = TailSubscription(
                reader,
                reconciler,
                fetch_size=settings.TAIL_FETCH_SIZE,
                logger=log,
            )
            try:
                async for snapshot in subscription:
                    yield snapshot
            finally:
                await subscription.close()

            error = subscription.error
            if error is None:
                log.info("Tail ended")
                return
            if not isinstance(error, FetchError):
                raise error

            restarts += 1
            if restarts > settings.TAIL_MAX_SESSION_RESTARTS:
                log.error(f"Giving up after {restarts - 1} session restarts")
                raise error
            log.warning(
                f"Reopening tail session ({restarts}/{settings.TAIL_MAX_SESSION_RESTARTS})"
            )


feed_service = AntennaFeedService()
