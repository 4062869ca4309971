"""Authoritative antenna table built from change batches.

The reconciler owns two tables, one per entity role:

- Primary antennas follow full-replace semantics: every batch that mentions
  primary antennas carries the complete set, so the table becomes the
  batch's asserted values. A retraction older than the stored value is
  ignored and the stored value survives.
- Helper antennas are upserted on assertion, and removed through the
  tombstone debounce policy on confirming retractions.

Each application builds new tables and swaps them in one step; consumers
only ever read published, immutable ``EntitySnapshot`` objects.
"""

from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Callable, Dict, List, Mapping, Optional, Tuple

from antennawatch.core.logging import ContextualLogger
from antennawatch.core.logging import logger as default_logger
from antennawatch.core.shared_models import EntityRole, PerformanceClass
from antennawatch.platform.tail.debounce import TombstoneDebouncePolicy
from antennawatch.platform.tail.types import ChangeBatch, RawChangeRow


@dataclass(frozen=True)
class EntityState:
    """Current value of one antenna."""

    key: str
    attributes: Mapping[str, object]
    performance: float
    performance_class: PerformanceClass
    last_update_timestamp: int
    role: EntityRole = EntityRole.PRIMARY


@dataclass(frozen=True)
class HelperEntityState(EntityState):
    """Helper antenna with its debounce counter."""

    role: EntityRole = EntityRole.HELPER
    miss_count: int = 0


def _empty_buckets() -> Mapping[PerformanceClass, Tuple[str, ...]]:
    return MappingProxyType({performance_class: () for performance_class in PerformanceClass})


@dataclass(frozen=True)
class EntitySnapshot:
    """Immutable published view of both tables.

    Attributes:
        version: Number of batches applied so far
        progress_timestamp: Progress time of the last applied batch
        primary: Primary antennas by key
        helpers: Helper antennas by key
        buckets: Primary antenna keys grouped by performance class
    """

    version: int = 0
    progress_timestamp: Optional[int] = None
    primary: Mapping[str, EntityState] = field(default_factory=lambda: MappingProxyType({}))
    helpers: Mapping[str, HelperEntityState] = field(default_factory=lambda: MappingProxyType({}))
    buckets: Mapping[PerformanceClass, Tuple[str, ...]] = field(default_factory=_empty_buckets)

    def in_class(self, performance_class: PerformanceClass) -> List[EntityState]:
        """Primary antennas in one performance bucket."""
        return [self.primary[key] for key in self.buckets[performance_class]]

    def get(self, key: str) -> Optional[EntityState]:
        """Look up an antenna in either table."""
        return self.primary.get(key) or self.helpers.get(key)

    def __len__(self) -> int:
        """Number of antennas currently present."""
        return len(self.primary) + len(self.helpers)


@dataclass(frozen=True)
class PerformanceClassifier:
    """Buckets performance values into high / medium / low.

    Values strictly above ``high_threshold`` are high, strictly below
    ``low_threshold`` are low, anything in between is medium.
    """

    high_threshold: float = 5.0
    low_threshold: float = 4.75

    def classify(self, performance: float) -> PerformanceClass:
        """Classify one performance value."""
        if performance > self.high_threshold:
            return PerformanceClass.HIGH
        if performance < self.low_threshold:
            return PerformanceClass.LOW
        return PerformanceClass.MEDIUM


SnapshotSink = Callable[[EntitySnapshot], None]


class StateReconciler:
    """Applies change batches and publishes snapshots."""

    def __init__(
        self,
        classifier: Optional[PerformanceClassifier] = None,
        debounce: Optional[TombstoneDebouncePolicy] = None,
        sink: Optional[SnapshotSink] = None,
        logger: Optional[ContextualLogger] = None,
    ):
        """Initialize an empty reconciler.

        Args:
            classifier: Performance bucketing rule
            debounce: Eviction policy for helper antennas
            sink: Called with every newly published snapshot
            logger: Optional contextual logger
        """
        self.classifier = classifier or PerformanceClassifier()
        self.debounce = debounce or TombstoneDebouncePolicy()
        self.sink = sink
        self.logger = logger or default_logger.with_context(component="state_reconciler")

        self._snapshot = EntitySnapshot()
        self._last_fingerprint: Optional[str] = None

    @property
    def snapshot(self) -> EntitySnapshot:
        """The last published snapshot."""
        return self._snapshot

    def apply(self, batch: ChangeBatch) -> EntitySnapshot:
        """Apply one batch and publish the resulting snapshot.

        Replays are recognised and skipped: a batch whose progress timestamp
        is not newer than the last applied one, or an unmarked batch identical
        to the last applied one, leaves the snapshot untouched.

        Args:
            batch: Coalesced rows of one progress interval

        Returns:
            The current snapshot after application
        """
        fingerprint = batch.fingerprint()
        if self._is_replay(batch, fingerprint):
            self.logger.debug(f"Skipping replayed batch @ {batch.progress_timestamp}")
            return self._snapshot

        current = self._snapshot
        primary_rows = [row for row in batch if not row.is_helper]
        helper_rows = [row for row in batch if row.is_helper]

        primary = self._apply_primary(current.primary, primary_rows)
        helpers = {key: state for key, state in current.helpers.items() if key not in primary}
        evicted = self._apply_helpers(helpers, primary, helper_rows)

        snapshot = EntitySnapshot(
            version=current.version + 1,
            progress_timestamp=(
                batch.progress_timestamp
                if batch.progress_timestamp is not None
                else current.progress_timestamp
            ),
            primary=MappingProxyType(primary),
            helpers=MappingProxyType(helpers),
            buckets=self._bucket(primary),
        )
        self._snapshot = snapshot
        self._last_fingerprint = fingerprint

        self.logger.debug(
            f"Applied batch v{snapshot.version}: {len(primary)} primary, "
            f"{len(helpers)} helpers, {len(evicted)} evicted"
        )
        if self.sink is not None:
            self.sink(snapshot)
        return snapshot

    def _is_replay(self, batch: ChangeBatch, fingerprint: str) -> bool:
        last_timestamp = self._snapshot.progress_timestamp
        if batch.progress_timestamp is not None and last_timestamp is not None:
            return batch.progress_timestamp <= last_timestamp
        return batch.progress_timestamp is None and fingerprint == self._last_fingerprint

    def _apply_primary(
        self, current: Mapping[str, EntityState], rows: List[RawChangeRow]
    ) -> Dict[str, EntityState]:
        if not rows:
            return dict(current)

        table: Dict[str, EntityState] = {}
        for row in rows:
            if not row.is_retraction:
                table[row.entity_key] = self._to_state(row)

        for row in rows:
            if not row.is_retraction or row.entity_key in table:
                continue
            stored = current.get(row.entity_key)
            if stored is not None and row.logical_timestamp < stored.last_update_timestamp:
                # Stale retraction of an already superseded value
                table[row.entity_key] = stored

        return table

    def _apply_helpers(
        self,
        helpers: Dict[str, HelperEntityState],
        primary: Dict[str, EntityState],
        rows: List[RawChangeRow],
    ) -> List[str]:
        evicted: List[str] = []
        for row in rows:
            key = row.entity_key
            if not row.is_retraction:
                # Role changed from primary to helper
                primary.pop(key, None)
                helpers[key] = self._to_helper_state(row)
                continue

            stored = helpers.get(key)
            if stored is None or not self.debounce.confirms(stored, row):
                continue

            miss_count, evict = self.debounce.register_miss(stored.miss_count)
            if evict:
                del helpers[key]
                evicted.append(key)
                self.logger.debug(f"Evicted helper antenna {key} after {miss_count} misses")
            else:
                helpers[key] = replace(stored, miss_count=miss_count)
        return evicted

    def _bucket(
        self, primary: Mapping[str, EntityState]
    ) -> Mapping[PerformanceClass, Tuple[str, ...]]:
        buckets: Dict[PerformanceClass, List[str]] = {bucket: [] for bucket in PerformanceClass}
        for key, state in primary.items():
            buckets[state.performance_class].append(key)
        return MappingProxyType({bucket: tuple(keys) for bucket, keys in buckets.items()})

    def _to_state(self, row: RawChangeRow) -> EntityState:
        return EntityState(
            key=row.entity_key,
            attributes=row.payload,
            performance=row.performance,
            performance_class=self.classifier.classify(row.performance),
            last_update_timestamp=row.logical_timestamp,
        )

    def _to_helper_state(self, row: RawChangeRow) -> HelperEntityState:
        return HelperEntityState(
            key=row.entity_key,
            attributes=row.payload,
            performance=row.performance,
            performance_class=self.classifier.classify(row.performance),
            last_update_timestamp=row.logical_timestamp,
            miss_count=self.debounce.reset(),
        )
