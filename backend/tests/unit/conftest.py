"""Unit test conftest for setting up test environment and shared tail fakes."""

import asyncio
import json
import os
from typing import Any, Dict, List, Optional, Union

import pytest

# Set minimal environment variables before importing any antennawatch modules
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("LOCAL_DEVELOPMENT", "false")
os.environ.setdefault("LOG_LEVEL", "DEBUG")
os.environ.setdefault("MATERIALIZE_HOST", "localhost")
os.environ.setdefault("POSTGRES_HOST", "localhost")
os.environ.setdefault("SSE_HEARTBEAT_SECONDS", "0.05")

from antennawatch.platform.tail.types import RawChangeRow, parse_row  # noqa: E402

FetchStep = Union[List[Dict[str, Any]], BaseException]


def record(
    antenna_id: Any,
    performance: float,
    ts: int,
    diff: int = 1,
    helper: bool = False,
    lng: float = -122.4,
) -> Dict[str, Any]:
    """A raw TAIL record as the cursor would return it."""
    return {
        "mz_timestamp": ts,
        "mz_progressed": False,
        "mz_diff": diff,
        "antenna_id": antenna_id,
        "geojson": json.dumps(
            {
                "type": "Feature",
                "geometry": {"type": "Point", "coordinates": [lng, 37.7]},
                "properties": {"name": f"antenna-{antenna_id}"},
            }
        ),
        "performance": performance,
        "helper": helper,
    }


def progress(ts: int) -> Dict[str, Any]:
    """A raw TAIL progress record."""
    return {
        "mz_timestamp": ts,
        "mz_progressed": True,
        "mz_diff": None,
        "antenna_id": None,
        "geojson": None,
        "performance": None,
        "helper": None,
    }


def row(*args: Any, **kwargs: Any) -> RawChangeRow:
    """A decoded change row."""
    return parse_row(record(*args, **kwargs))


class FakeCursorSource:
    """Scripted cursor source.

    Each ``fetch`` consumes one step: a list of records to return or an
    exception to raise. Once the script is exhausted it behaves like an idle
    tail and returns no rows after a short wait.
    """

    def __init__(self, steps: Optional[List[FetchStep]] = None, idle_wait: float = 0.01):
        self.steps = list(steps or [])
        self.idle_wait = idle_wait
        self.fetch_calls: List[int] = []
        self.closed = False
        self.close_calls = 0

    async def fetch(self, count: int, timeout: float) -> List[Dict[str, Any]]:
        self.fetch_calls.append(count)
        if not self.steps:
            await asyncio.sleep(self.idle_wait)
            return []
        await asyncio.sleep(0)
        step = self.steps.pop(0)
        if isinstance(step, BaseException):
            raise step
        return step

    async def close(self) -> None:
        self.close_calls += 1
        self.closed = True


@pytest.fixture
def make_record():
    """Build raw TAIL records."""
    return record


@pytest.fixture
def make_progress():
    """Build raw TAIL progress records."""
    return progress


@pytest.fixture
def make_row():
    """Build decoded change rows."""
    return row


@pytest.fixture
def fake_source_factory():
    """Build scripted cursor sources."""
    return FakeCursorSource
