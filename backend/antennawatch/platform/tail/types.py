"""Row and batch types flowing through the tail pipeline.

Rows are decoded from Materialize ``TAIL ... WITH (PROGRESS)`` output, which
prefixes every row with ``mz_timestamp``, ``mz_progressed`` and ``mz_diff``.
Progress rows carry only the timestamp and mark that everything before them
is consistent as of that time.
"""

import hashlib
import json
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from types import MappingProxyType
from typing import Any, Dict, Iterator, Mapping, Optional, Tuple

from antennawatch.platform.tail.exceptions import ParseError

MZ_TIMESTAMP = "mz_timestamp"
MZ_PROGRESSED = "mz_progressed"
MZ_DIFF = "mz_diff"

_EMPTY_PAYLOAD: Mapping[str, Any] = MappingProxyType({})


@dataclass(frozen=True)
class RawChangeRow:
    """One delivered change row.

    Attributes:
        entity_key: Antenna identifier the change applies to ("" for markers)
        payload: Decoded column values (antenna_id, geojson, performance, helper)
        diff_sign: +1 for an asserted value, -1 for a retraction (0 for markers)
        logical_timestamp: Store logical time of the change
        is_progress_marker: Whether this row is a progress boundary
    """

    entity_key: str
    payload: Mapping[str, Any]
    diff_sign: int
    logical_timestamp: int
    is_progress_marker: bool = False

    @classmethod
    def progress_marker(cls, logical_timestamp: int) -> "RawChangeRow":
        """Build a progress boundary row."""
        return cls(
            entity_key="",
            payload=_EMPTY_PAYLOAD,
            diff_sign=0,
            logical_timestamp=logical_timestamp,
            is_progress_marker=True,
        )

    @property
    def is_helper(self) -> bool:
        """Whether the row describes a helper antenna."""
        return bool(self.payload.get("helper", False))

    @property
    def performance(self) -> float:
        """Average performance reported for the antenna."""
        return float(self.payload["performance"])

    @property
    def is_retraction(self) -> bool:
        """Whether the row retracts a previously asserted value."""
        return self.diff_sign < 0


@dataclass(frozen=True)
class ChangeBatch:
    """Rows of one progress interval, marker excluded.

    Attributes:
        rows: Coalesced rows, at most one per entity key
        progress_timestamp: Timestamp of the closing progress marker, or None
            for the remainder flushed when the stream ends
    """

    rows: Tuple[RawChangeRow, ...] = field(default_factory=tuple)
    progress_timestamp: Optional[int] = None

    def __len__(self) -> int:
        """Number of rows in the batch."""
        return len(self.rows)

    def __iter__(self) -> Iterator[RawChangeRow]:
        """Iterate rows in emission order."""
        return iter(self.rows)

    def fingerprint(self) -> str:
        """Stable digest of the batch content, used to recognise replays."""
        digest = hashlib.sha256()
        for row in self.rows:
            digest.update(
                json.dumps(
                    [row.entity_key, row.diff_sign, row.logical_timestamp, dict(row.payload)],
                    sort_keys=True,
                    default=str,
                ).encode()
            )
        return digest.hexdigest()

    def summary(self) -> str:
        """Get a summary string of the batch."""
        retractions = sum(1 for row in self.rows if row.is_retraction)
        return (
            f"{len(self.rows)} rows ({len(self.rows) - retractions} upserts, "
            f"{retractions} retractions) @ {self.progress_timestamp}"
        )


def _to_timestamp(value: Any, record: Mapping[str, Any]) -> int:
    try:
        return int(Decimal(str(value)))
    except (InvalidOperation, TypeError, ValueError) as e:
        raise ParseError(f"Invalid {MZ_TIMESTAMP}: {value!r}", record) from e


def _decode_geojson(value: Any, record: Mapping[str, Any]) -> Any:
    if isinstance(value, (bytes, bytearray)):
        value = value.decode()
    if isinstance(value, str):
        try:
            return json.loads(value)
        except json.JSONDecodeError as e:
            raise ParseError(f"Invalid geojson: {e}", record) from e
    return value


def parse_row(record: Mapping[str, Any]) -> RawChangeRow:
    """Decode one fetched record into a change row.

    Args:
        record: Column name to value mapping (asyncpg Record or dict)

    Returns:
        The decoded RawChangeRow

    Raises:
        ParseError: If the record is missing columns or has undecodable values
    """
    if MZ_TIMESTAMP not in record:
        raise ParseError(f"Row has no {MZ_TIMESTAMP} column", record)
    timestamp = _to_timestamp(record[MZ_TIMESTAMP], record)

    if record.get(MZ_PROGRESSED):
        return RawChangeRow.progress_marker(timestamp)

    try:
        diff = int(record[MZ_DIFF])
    except (KeyError, TypeError, ValueError) as e:
        raise ParseError(f"Invalid {MZ_DIFF}: {record.get(MZ_DIFF)!r}", record) from e
    if diff == 0:
        raise ParseError(f"{MZ_DIFF} of zero carries no change", record)

    antenna_id = record.get("antenna_id")
    if antenna_id is None:
        raise ParseError("Row has no antenna_id", record)

    try:
        performance = float(record["performance"])
    except (KeyError, TypeError, ValueError) as e:
        raise ParseError(f"Invalid performance: {record.get('performance')!r}", record) from e

    payload: Dict[str, Any] = {
        key: value
        for key, value in record.items()
        if key not in (MZ_TIMESTAMP, MZ_PROGRESSED, MZ_DIFF)
    }
    payload["antenna_id"] = str(antenna_id)
    payload["performance"] = performance
    payload["geojson"] = _decode_geojson(record.get("geojson"), record)
    payload["helper"] = bool(record.get("helper") or False)

    return RawChangeRow(
        entity_key=str(antenna_id),
        payload=MappingProxyType(payload),
        diff_sign=1 if diff > 0 else -1,
        logical_timestamp=timestamp,
    )
