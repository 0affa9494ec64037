"""Tests for timestamp parsing and normalization."""
import math
import pytest
from datetime import date, datetime, timedelta, timezone

from finguard.utils.timestamp import (
    EpochMillis,
    IsoText,
    NativeInstant,
    NormalizationFailure,
    ProviderTimestampLike,
    SecondsNanos,
    classify_timestamp,
    normalize_timestamp,
    normalize_timestamp_or_now,
    parse_timestamp,
)

INSTANT = datetime(2024, 1, 2, 9, 10, 0, 250000, tzinfo=timezone.utc)
INSTANT_MS = int(INSTANT.timestamp() * 1000)


class ProtoTimestamp:
    def __init__(self, dt):
        self._dt = dt

    def ToDatetime(self):
        return self._dt


class StoreTimestamp:
    def __init__(self, seconds, nanoseconds=0):
        self.seconds = seconds
        self.nanoseconds = nanoseconds


def test_parse_timestamp_formats():
    """Test parsing various timestamp formats."""
    expected = datetime(2024, 1, 2, 9, 10, tzinfo=timezone.utc)
    assert parse_timestamp("2024-01-02T09:10:00Z") == expected
    assert parse_timestamp("2024-01-02T09:10:00+00:00") == expected
    assert parse_timestamp("2024-01-02T09:10:00") == expected
    assert parse_timestamp("2024-01-02 09:10:00") == expected
    assert parse_timestamp("Jan 2 2024 9:10") == expected


def test_parse_timestamp_invalid():
    with pytest.raises(ValueError):
        parse_timestamp("")
    with pytest.raises(ValueError):
        parse_timestamp("definitely not a date")


def test_classify_priority():
    assert isinstance(classify_timestamp(INSTANT), NativeInstant)
    assert isinstance(classify_timestamp(date(2024, 1, 2)), NativeInstant)
    assert isinstance(classify_timestamp("2024-01-02"), IsoText)
    assert isinstance(classify_timestamp(ProtoTimestamp(INSTANT)), ProviderTimestampLike)
    assert isinstance(classify_timestamp(INSTANT_MS), EpochMillis)
    assert isinstance(classify_timestamp({"seconds": 10, "nanoseconds": 5}), SecondsNanos)
    assert classify_timestamp(True) is None
    assert classify_timestamp([1, 2]) is None


@pytest.mark.parametrize("value", [
    INSTANT,
    INSTANT.isoformat(),
    "2024-01-02T09:10:00.250Z",
    INSTANT_MS,
    float(INSTANT_MS),
    ProtoTimestamp(INSTANT),
    ProtoTimestamp(INSTANT.replace(tzinfo=None)),
    INSTANT.astimezone(timezone(timedelta(hours=5))),
])
def test_representations_agree(value):
    assert normalize_timestamp(value) == INSTANT


def test_seconds_nanos_ignores_nanoseconds():
    expected = datetime(2024, 1, 2, 9, 10, tzinfo=timezone.utc)
    seconds = int(expected.timestamp())
    assert normalize_timestamp({"seconds": seconds, "nanoseconds": 999_000_000}) == expected
    assert normalize_timestamp(StoreTimestamp(seconds, 123)) == expected


def test_canonical_form_is_utc_millis():
    result = normalize_timestamp(datetime(2024, 1, 2, 9, 10, 0, 987654))
    assert result.tzinfo == timezone.utc
    assert result.microsecond == 987000


def test_round_trip_through_epoch_millis():
    result = normalize_timestamp(INSTANT_MS)
    assert normalize_timestamp(int(result.timestamp() * 1000)) == result
    assert normalize_timestamp(result.isoformat()) == result


@pytest.mark.parametrize("value", [
    "garbage",
    math.nan,
    math.inf,
    1e20,
    {"seconds": "soon"},
    object(),
    ProtoTimestamp("2024-01-02"),
])
def test_invalid_inputs_fail(value):
    assert isinstance(normalize_timestamp(value), NormalizationFailure)


def test_normalize_or_now_falls_back():
    now = datetime(2024, 6, 15, tzinfo=timezone.utc)
    assert normalize_timestamp_or_now("garbage", now=lambda: now) == now
    assert normalize_timestamp_or_now(INSTANT_MS, now=lambda: now) == INSTANT
