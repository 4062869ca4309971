"""Change-feed tail for the antenna views.

Provides:
- CursorReader: Pull-based, backpressure-aware reader over a streaming cursor
- BatchCoalescer: Groups rows into one batch per progress interval
- PushPullBridge: Latest-value-wins handoff between producer and consumer
- StateReconciler: Applies batches and publishes immutable snapshots
- TailSubscription: Wires the stages together for one subscriber
"""

from .bridge import PushPullBridge
from .coalescer import BatchCoalescer
from .cursor import CursorSource, MaterializeCursorSource
from .debounce import TombstoneDebouncePolicy
from .exceptions import BridgeTerminated, FetchError, ParseError, TailError
from .pipeline import TailSubscription
from .reader import CursorReader
from .reconciler import (
    EntitySnapshot,
    EntityState,
    HelperEntityState,
    PerformanceClassifier,
    StateReconciler,
)
from .types import ChangeBatch, RawChangeRow, parse_row

__all__ = [
    "BatchCoalescer",
    "BridgeTerminated",
    "ChangeBatch",
    "CursorReader",
    "CursorSource",
    "EntitySnapshot",
    "EntityState",
    "FetchError",
    "HelperEntityState",
    "MaterializeCursorSource",
    "ParseError",
    "PerformanceClassifier",
    "PushPullBridge",
    "RawChangeRow",
    "StateReconciler",
    "TailError",
    "TailSubscription",
    "TombstoneDebouncePolicy",
    "parse_row",
]
