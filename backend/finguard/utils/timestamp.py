"""Timestamp parsing and normalization utilities.

Financial records reach the gateway with dates in several encodings: native
datetimes from manual entry, ISO strings from imported statements, epoch
milliseconds, provider timestamp objects and ``{seconds, nanoseconds}``
mappings from document stores. Every representation is classified into one
variant of a tagged union and then converted to a single canonical form: an
aware UTC ``datetime`` truncated to millisecond precision.
"""
import logging
import math
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Any, Callable, Mapping, Optional, Union

from dateutil import parser as date_parser

logger = logging.getLogger(__name__)

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def parse_timestamp(s: str) -> datetime:
    """
    Parse a timestamp string into a datetime object.

    Supports multiple formats:
    - ISO format with "Z" suffix: "2024-01-02T09:10:00Z"
    - ISO format with timezone: "2024-01-02T09:10:00+00:00"
    - ISO format without timezone: "2024-01-02T09:10:00"
    - Space-separated: "2024-01-02 09:10:00"
    - Anything else python-dateutil can read ("Jan 2 2024 9:10")

    Args:
        s: Timestamp string

    Returns:
        datetime object (naive input is assumed to be UTC)

    Raises:
        ValueError: If timestamp cannot be parsed
    """
    if not s or not s.strip():
        raise ValueError("Empty timestamp string")

    s = s.strip()

    # Convert trailing "Z" to "+00:00" for ISO format compatibility
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"

    try:
        dt = datetime.fromisoformat(s)
    except ValueError:
        try:
            dt = date_parser.parse(s)
        except (ValueError, OverflowError) as e:
            raise ValueError(f"Unable to parse timestamp: {s}") from e

    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


# ---------------------------------------------------------------------------
# Tagged union of accepted input representations
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class NativeInstant:
    value: datetime


@dataclass(frozen=True)
class IsoText:
    value: str


@dataclass(frozen=True)
class ProviderTimestampLike:
    """An object exposing ``to_datetime()`` (or protobuf-style ``ToDatetime()``)."""

    value: Any
    convert: Callable[[], Any]


@dataclass(frozen=True)
class EpochMillis:
    value: float


@dataclass(frozen=True)
class SecondsNanos:
    seconds: float
    nanoseconds: float = 0


TimestampInput = Union[NativeInstant, IsoText, ProviderTimestampLike, EpochMillis, SecondsNanos]


@dataclass(frozen=True)
class NormalizationFailure:
    """The input did not resolve to a finite, valid instant."""

    reason: str
    value: Any = None


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _seconds_field(value: Any) -> Optional[SecondsNanos]:
    if isinstance(value, Mapping):
        seconds = value.get("seconds")
        nanos = value.get("nanoseconds", 0)
    else:
        seconds = getattr(value, "seconds", None)
        nanos = getattr(value, "nanoseconds", 0)
    if not _is_number(seconds):
        return None
    return SecondsNanos(seconds=seconds, nanoseconds=nanos if _is_number(nanos) else 0)


def classify_timestamp(value: Any) -> Optional[TimestampInput]:
    """Map a raw value onto its variant, in priority order. None if unsupported."""
    if isinstance(value, datetime):
        return NativeInstant(value)
    if isinstance(value, date):
        return NativeInstant(datetime(value.year, value.month, value.day))
    if isinstance(value, str):
        return IsoText(value)
    for attr in ("to_datetime", "ToDatetime"):
        convert = getattr(value, attr, None)
        if callable(convert):
            return ProviderTimestampLike(value, convert)
    if _is_number(value):
        return EpochMillis(value)
    return _seconds_field(value)


def _canonical(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    dt = dt.astimezone(timezone.utc)
    return dt.replace(microsecond=(dt.microsecond // 1000) * 1000)


def _from_millis(ms: float) -> datetime:
    if not math.isfinite(ms):
        raise ValueError("non-finite epoch value")
    return EPOCH + timedelta(milliseconds=ms)


def normalize_timestamp(value: Any) -> Union[datetime, NormalizationFailure]:
    """
    Normalize any supported timestamp representation.

    Args:
        value: datetime/date, date string, provider timestamp object,
            epoch milliseconds, or a ``{seconds, nanoseconds}`` mapping/object

    Returns:
        Canonical aware UTC datetime, or a NormalizationFailure
    """
    variant = classify_timestamp(value)
    if variant is None:
        return NormalizationFailure("unsupported timestamp representation", value)

    try:
        if isinstance(variant, NativeInstant):
            dt = variant.value
        elif isinstance(variant, IsoText):
            dt = parse_timestamp(variant.value)
        elif isinstance(variant, ProviderTimestampLike):
            dt = variant.convert()
            if not isinstance(dt, datetime):
                return NormalizationFailure("provider timestamp did not convert to a datetime", value)
        elif isinstance(variant, EpochMillis):
            dt = _from_millis(variant.value)
        elif isinstance(variant, SecondsNanos):
            # Nanoseconds are ignored
            dt = _from_millis(variant.seconds * 1000)
        else:
            return NormalizationFailure("unsupported timestamp representation", value)
        return _canonical(dt)
    except (ValueError, OverflowError, TypeError, OSError) as e:
        return NormalizationFailure(str(e), value)


def utc_now() -> datetime:
    return _canonical(datetime.now(timezone.utc))


def normalize_timestamp_or_now(value: Any, now: Optional[Callable[[], datetime]] = None) -> datetime:
    """Sanitize-time normalization: fall back to the current instant on failure."""
    result = normalize_timestamp(value)
    if isinstance(result, NormalizationFailure):
        logger.warning("Unparseable timestamp %r (%s), falling back to now", value, result.reason)
        return (now or utc_now)()
    return result
