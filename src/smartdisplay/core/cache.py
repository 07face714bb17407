"""Timestamped cache holder for app data."""

from datetime import datetime
from typing import Callable, Generic, TypeVar

from .threading import LockedValue

T = TypeVar("T")


class CachedValue(Generic[T]):
    """A value plus the moment it was last stored.

    Value and timestamp live in one locked tuple, so a reader never sees one
    without the other.

    Usage:
        data: CachedValue[WeatherData] = CachedValue()
        data.set(weather)
        data.age_in_minutes()  # 0
    """

    def __init__(self, clock: Callable[[], datetime] = datetime.now) -> None:
        self._clock = clock
        self._entry: LockedValue[tuple[T, datetime] | None] = LockedValue(None)

    @property
    def value(self) -> T | None:
        """Last stored payload, or None if never set."""
        entry = self._entry.get()
        return entry[0] if entry else None

    @property
    def last_updated(self) -> datetime | None:
        """When the payload was stored, or None if never set."""
        entry = self._entry.get()
        return entry[1] if entry else None

    @property
    def is_set(self) -> bool:
        return self._entry.get() is not None

    def now(self) -> datetime:
        """Current time according to this cache's clock."""
        return self._clock()

    def set(self, payload: T) -> None:
        """Store payload together with the current timestamp."""
        self._entry.set((payload, self._clock()))

    def age_in_minutes(self) -> int | None:
        """Whole minutes since the last set(), truncated toward zero.

        Returns:
            Minutes elapsed, or None if the value was never set
        """
        last_updated = self.last_updated
        if last_updated is None:
            return None

        elapsed = (self._clock() - last_updated).total_seconds()
        return int(elapsed / 60)
