import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional, Sequence, TypeVar

T = TypeVar("T")

TICK = timedelta(microseconds=1)


def new_id() -> str:
    return uuid.uuid4().hex


def now_utc() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC; convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class MonotonicClock:
    """Issues UTC timestamps that never repeat and never go backwards.

    ``observe`` lets callers seed the clock with stamps loaded from storage,
    so freshly issued stamps stay strictly greater than anything on disk.
    """

    def __init__(self) -> None:
        self._last: Optional[datetime] = None

    def observe(self, value: datetime) -> None:
        value = as_utc(value)
        if self._last is None or value > self._last:
            self._last = value

    def now(self) -> datetime:
        stamp = now_utc()
        if self._last is not None and stamp <= self._last:
            stamp = self._last + TICK
        self._last = stamp
        return stamp


def reorder(items: Sequence[T], from_index: int, to_index: int) -> tuple[T, ...]:
    """Return a copy of ``items`` with one element moved."""
    result = list(items)
    removed = result.pop(from_index)
    result.insert(to_index, removed)
    return tuple(result)


def move_between(
    source: Sequence[T],
    destination: Sequence[T],
    source_index: int,
    destination_index: int,
) -> tuple[tuple[T, ...], tuple[T, ...]]:
    src = list(source)
    dst = list(destination)
    removed = src.pop(source_index)
    dst.insert(destination_index, removed)
    return tuple(src), tuple(dst)


def clamp(value: int, low: int, high: int) -> int:
    return max(low, min(high, value))
