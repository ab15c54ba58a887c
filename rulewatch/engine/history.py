"""BoundedHistory — size-capped, age-prunable ordered store."""

from __future__ import annotations

import logging
import threading
from collections import deque
from collections.abc import Callable, Iterator
from datetime import datetime, timedelta
from typing import Generic, TypeVar

T = TypeVar("T")

log = logging.getLogger(__name__)


class BoundedHistory(Generic[T]):
    """Append-only history holding at most ``capacity`` items.

    Oldest items are evicted first when the cap is reached.  ``timestamp_of``
    extracts the instant used by :meth:`prune_older_than`.
    """

    def __init__(
        self,
        capacity: int,
        timestamp_of: Callable[[T], datetime],
        name: str = "history",
    ) -> None:
        if capacity < 1:
            raise ValueError("capacity must be >= 1")
        self._items: deque[T] = deque(maxlen=capacity)
        self._timestamp_of = timestamp_of
        self._lock = threading.Lock()
        self.name = name

    @property
    def capacity(self) -> int:
        return self._items.maxlen or 0

    def append(self, item: T) -> None:
        with self._lock:
            self._items.append(item)

    def snapshot(self) -> list[T]:
        """Oldest-first copy of the current contents."""
        with self._lock:
            return list(self._items)

    def find(self, predicate: Callable[[T], bool]) -> T | None:
        with self._lock:
            for item in self._items:
                if predicate(item):
                    return item
        return None

    def prune_older_than(self, cutoff: datetime) -> int:
        """Drop items stamped strictly before *cutoff*; return how many went."""
        with self._lock:
            kept = [i for i in self._items if self._timestamp_of(i) >= cutoff]
            removed = len(self._items) - len(kept)
            self._items.clear()
            self._items.extend(kept)
        if removed:
            log.debug("Pruned %d entries from %s", removed, self.name)
        return removed

    def prune_by_age(self, now: datetime, max_age_sec: float) -> int:
        return self.prune_older_than(now - timedelta(seconds=max_age_sec))

    def prune_to(self, max_items: int) -> int:
        """Keep only the newest *max_items* entries."""
        with self._lock:
            excess = max(len(self._items) - max(max_items, 0), 0)
            for _ in range(excess):
                self._items.popleft()
        return excess

    def clear(self) -> None:
        with self._lock:
            self._items.clear()

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[T]:
        return iter(self.snapshot())
