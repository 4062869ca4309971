"""Tombstone debounce for helper antennas.

Helper antennas flap: a value is retracted and re-asserted a moment later.
Instead of removing a helper on its first retraction, each retraction that
confirms the stored value counts as a miss, and the helper is evicted only
once ``threshold`` misses accumulate without an assertion in between.
"""

from dataclasses import dataclass
from typing import TYPE_CHECKING, Tuple

if TYPE_CHECKING:
    from antennawatch.platform.tail.reconciler import EntityState
    from antennawatch.platform.tail.types import RawChangeRow


@dataclass(frozen=True)
class TombstoneDebouncePolicy:
    """Decides when repeated retractions evict an entity.

    Attributes:
        threshold: Confirming misses needed before eviction
    """

    threshold: int = 3

    def __post_init__(self) -> None:
        """Validate the threshold."""
        if self.threshold < 1:
            raise ValueError("Debounce threshold must be at least 1")

    def confirms(self, stored: "EntityState", retraction: "RawChangeRow") -> bool:
        """Whether ``retraction`` removes the value currently stored.

        The retraction must carry the stored performance and must not be
        older than the stored value; an older retraction refers to a value
        that has already been superseded.
        """
        return (
            retraction.is_retraction
            and retraction.performance == stored.performance
            and retraction.logical_timestamp >= stored.last_update_timestamp
        )

    def register_miss(self, miss_count: int) -> Tuple[int, bool]:
        """Count one confirming miss.

        Args:
            miss_count: Misses accumulated so far

        Returns:
            Tuple of (new miss count, whether to evict)
        """
        misses = miss_count + 1
        return misses, misses >= self.threshold

    def reset(self) -> int:
        """Miss count after a fresh assertion."""
        return 0
