"""Tests for datetime helpers and UTC serialization of API schemas."""
from datetime import UTC, datetime, timedelta, timezone
import uuid

from partycards.schemas.base import serialize_datetime_utc
from partycards.schemas.room import RoomPlayerResponse
from partycards.utils.datetime_helpers import ensure_utc


def test_ensure_utc_passes_none_through():
    assert ensure_utc(None) is None


def test_ensure_utc_marks_naive_values_as_utc():
    """SQLite returns naive datetimes; the clock value must not move."""
    naive = datetime(2025, 3, 9, 23, 15, 0)

    result = ensure_utc(naive)

    assert result.tzinfo is UTC
    assert (result.hour, result.minute) == (23, 15)


def test_ensure_utc_converts_other_zones():
    plus_two = timezone(timedelta(hours=2))

    result = ensure_utc(datetime(2025, 3, 10, 1, 0, tzinfo=plus_two))

    assert result == datetime(2025, 3, 9, 23, 0, tzinfo=UTC)
    assert result.tzinfo is UTC


def test_serialize_datetime_uses_z_suffix():
    assert serialize_datetime_utc(datetime(2025, 3, 9, 12, 0)) == "2025-03-09T12:00:00Z"


def test_schema_dump_renders_naive_datetimes_as_utc():
    player = RoomPlayerResponse(
        player_id=uuid.uuid4(),
        username="alice",
        join_order=0,
        score=2,
        joined_at=datetime(2025, 3, 9, 12, 0, 5),
    )

    data = player.model_dump()

    assert data['joined_at'] == "2025-03-09T12:00:05Z"
    assert data['score'] == 2
