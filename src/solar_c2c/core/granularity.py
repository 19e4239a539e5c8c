"""
Granularity Selection

Maps a query time span to the sampling resolution a provider should be asked
for, and aligns timestamps to resolution boundaries.

Each provider resolution is an Enum ordered finest to coarsest. Members that
carry a ``max_span`` can be chosen automatically with ``select_granularity``;
the rest are picked from a stream setting with ``from_key``.

Usage:
    g = EnphaseGranularity.for_query_date_range(start, end)
    params["granularity"] = g.key
"""

from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Iterable, Optional, TypeVar

G = TypeVar("G")

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def select_granularity(table: Iterable[G], start: datetime, end: datetime) -> G:
    """
    Pick the finest granularity whose maximum span covers the range

    Args:
        table: Granularities ordered finest to coarsest, each with max_span
        start: Range start
        end: Range end

    Returns:
        The first entry with max_span >= end - start, or the coarsest entry
        when none qualifies
    """
    span = end - start
    selected = None
    for g in table:
        selected = g
        if g.max_span >= span:
            return g
    if selected is None:
        raise ValueError("Granularity table is empty")
    return selected


def floor_time(ts: datetime, step: timedelta) -> datetime:
    """Floor a timestamp to a multiple of step, counted from the Unix epoch"""
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    offset = (ts - EPOCH) % step
    return ts - offset


class _KeyedGranularity(Enum):
    """Shared behaviour for resolution enums with a wire key and tick size"""

    def tick_start(self, ts: datetime) -> datetime:
        return floor_time(ts, self.tick)

    @classmethod
    def from_key(cls, value: Optional[str], default=None):
        """Look up a member by wire key or name, case-insensitively"""
        if value is None or str(value).strip() == "":
            return default
        text = str(value).strip().lower()
        for g in cls:
            if g.key.lower() == text or g.name.lower() == text:
                return g
        return default


class EnphaseGranularity(_KeyedGranularity):
    """Enphase telemetry granularity"""
    FIFTEEN_MINUTE = ("15mins", timedelta(minutes=15), timedelta(minutes=15))
    DAY = ("day", timedelta(days=1), timedelta(minutes=15))
    WEEK = ("week", timedelta(days=7), timedelta(minutes=15))

    def __init__(self, key: str, max_span: timedelta, tick: timedelta):
        self.key = key
        self.max_span = max_span
        self.tick = tick

    @classmethod
    def for_query_date_range(cls, start: datetime, end: datetime) -> "EnphaseGranularity":
        return select_granularity(list(cls), start, end)


class MockGranularity(_KeyedGranularity):
    """Sampling resolution of the simulated provider"""
    ONE_MINUTE = ("1min", timedelta(minutes=15), timedelta(minutes=1))
    FIFTEEN_MINUTE = ("15min", timedelta(days=1), timedelta(minutes=15))
    HOUR = ("1h", timedelta(days=7), timedelta(hours=1))

    def __init__(self, key: str, max_span: timedelta, tick: timedelta):
        self.key = key
        self.max_span = max_span
        self.tick = tick

    @classmethod
    def for_query_date_range(cls, start: datetime, end: datetime) -> "MockGranularity":
        return select_granularity(list(cls), start, end)


class SolarEdgeResolution(_KeyedGranularity):
    """SolarEdge time unit, chosen by stream setting"""
    FIFTEEN_MINUTE = ("QUARTER_OF_AN_HOUR", timedelta(minutes=15))
    HOUR = ("HOUR", timedelta(hours=1))

    def __init__(self, key: str, tick: timedelta):
        self.key = key
        self.tick = tick


class AlsoEnergyGranularity(_KeyedGranularity):
    """AlsoEnergy bin size, chosen by stream setting"""
    RAW = ("BinRaw", timedelta(minutes=1))
    FIVE_MINUTE = ("Bin5Min", timedelta(minutes=5))
    FIFTEEN_MINUTE = ("Bin15Min", timedelta(minutes=15))
    HOUR = ("Bin1Hour", timedelta(hours=1))
    DAY = ("BinDay", timedelta(days=1))

    def __init__(self, key: str, tick: timedelta):
        self.key = key
        self.tick = tick
