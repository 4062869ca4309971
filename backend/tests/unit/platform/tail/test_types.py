"""Tests for decoding TAIL records into change rows."""

from decimal import Decimal

import pytest

from antennawatch.platform.tail.exceptions import ParseError
from antennawatch.platform.tail.types import ChangeBatch, parse_row


def test_parse_progress_marker(make_progress):
    """Progress rows only carry their timestamp."""
    row = parse_row(make_progress(1650000000000))

    assert row.is_progress_marker is True
    assert row.logical_timestamp == 1650000000000
    assert row.entity_key == ""
    assert row.diff_sign == 0


def test_parse_data_row_decodes_geojson(make_record):
    """Data rows decode geojson text and normalize the key."""
    row = parse_row(make_record(7, 4.8, ts=100))

    assert row.is_progress_marker is False
    assert row.entity_key == "7"
    assert row.diff_sign == 1
    assert row.performance == 4.8
    assert row.payload["geojson"]["geometry"]["type"] == "Point"
    assert row.is_helper is False
    assert "mz_diff" not in row.payload


def test_parse_normalizes_diff_multiplicity(make_record):
    """Multiplicities collapse to a +1/-1 sign."""
    assert parse_row(make_record(1, 5.0, ts=1, diff=3)).diff_sign == 1
    assert parse_row(make_record(1, 5.0, ts=1, diff=-2)).diff_sign == -1


def test_parse_accepts_numeric_timestamp_types(make_record):
    """Materialize returns mz_timestamp as numeric."""
    record = make_record(1, 5.0, ts=0)
    record["mz_timestamp"] = Decimal("1650000000123")

    assert parse_row(record).logical_timestamp == 1650000000123


def test_parse_helper_flag(make_record):
    """The helper column selects the helper role."""
    assert parse_row(make_record(9, 5.0, ts=1, helper=True)).is_helper is True


@pytest.mark.parametrize(
    "column, value",
    [
        ("geojson", "{not json"),
        ("performance", None),
        ("performance", "fast"),
        ("mz_diff", 0),
        ("mz_diff", None),
        ("antenna_id", None),
        ("mz_timestamp", "yesterday"),
    ],
)
def test_parse_rejects_bad_rows(make_record, column, value):
    """Undecodable rows raise ParseError."""
    record = make_record(1, 5.0, ts=1)
    record[column] = value

    with pytest.raises(ParseError):
        parse_row(record)


def test_parse_rejects_row_without_timestamp(make_record):
    """A row without mz_timestamp is not a TAIL row."""
    record = make_record(1, 5.0, ts=1)
    del record["mz_timestamp"]

    with pytest.raises(ParseError) as exc_info:
        parse_row(record)
    assert exc_info.value.record is record


def test_payload_is_read_only(make_row):
    """Rows are immutable once produced."""
    row = make_row(1, 5.0, ts=1)

    with pytest.raises(TypeError):
        row.payload["performance"] = 0.0


def test_batch_fingerprint_tracks_content(make_row):
    """Identical batches share a fingerprint, different ones do not."""
    first = ChangeBatch(rows=(make_row(1, 5.0, ts=1), make_row(2, 4.0, ts=1)))
    same = ChangeBatch(rows=(make_row(1, 5.0, ts=1), make_row(2, 4.0, ts=1)))
    other = ChangeBatch(rows=(make_row(1, 5.5, ts=1), make_row(2, 4.0, ts=1)))

    assert first.fingerprint() == same.fingerprint()
    assert first.fingerprint() != other.fingerprint()
    assert len(first) == 2
