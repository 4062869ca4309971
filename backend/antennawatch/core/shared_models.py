"""Enums shared between the pipeline, services and API."""

from enum import Enum


class PerformanceClass(str, Enum):
    """Health bucket derived from an antenna's average performance."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class EntityRole(str, Enum):
    """Which reconciliation rule an entity follows."""

    PRIMARY = "primary"
    HELPER = "helper"


class TailStatus(str, Enum):
    """Lifecycle of a cursor reader."""

    OPEN = "open"
    FAILED = "failed"
    CLOSED = "closed"
