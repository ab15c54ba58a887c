"""Correlator — per-source event buckets and sliding-window counting.

Events are grouped by correlation key (the source IP address).  Each
bucket keeps the most recent ``capacity`` events so sustained attack
traffic cannot grow memory without bound.
"""

from __future__ import annotations

import logging
import threading
from collections import defaultdict, deque
from datetime import datetime, timedelta

from rulewatch.contracts.event import SecurityEvent
from rulewatch.shared.clock import parse_ts

log = logging.getLogger(__name__)

DEFAULT_BUCKET_CAPACITY = 1000


def correlation_key(event: SecurityEvent) -> str:
    return event.ip_address


class EventCorrelator:
    def __init__(self, capacity: int = DEFAULT_BUCKET_CAPACITY) -> None:
        if capacity < 1:
            raise ValueError("capacity must be >= 1")
        self._capacity = capacity
        # (parsed timestamp, event) pairs, oldest first
        self._buckets: dict[str, deque[tuple[datetime, SecurityEvent]]] = defaultdict(
            lambda: deque(maxlen=self._capacity)
        )
        self._lock = threading.Lock()

    @property
    def capacity(self) -> int:
        return self._capacity

    def record(self, event: SecurityEvent) -> None:
        """Append *event* to its bucket, evicting the oldest entry on overflow.

        Raises:
            ValueError: If the event timestamp is not ISO-8601.
        """
        ts = parse_ts(event.timestamp)
        with self._lock:
            self._buckets[correlation_key(event)].append((ts, event))

    def count_in_window(self, event: SecurityEvent, minutes: float) -> int:
        """Count recorded events for the same key at or after ``event.timestamp - minutes``.

        The event itself is included when it was recorded first.
        """
        cutoff = parse_ts(event.timestamp) - timedelta(minutes=minutes)
        with self._lock:
            bucket = self._buckets.get(correlation_key(event))
            if not bucket:
                return 0
            return sum(1 for ts, _ in bucket if ts >= cutoff)

    def events_for(self, key: str) -> list[SecurityEvent]:
        with self._lock:
            bucket = self._buckets.get(key)
            return [e for _, e in bucket] if bucket else []

    def bucket_size(self, key: str) -> int:
        with self._lock:
            bucket = self._buckets.get(key)
            return len(bucket) if bucket else 0

    def keys(self) -> list[str]:
        with self._lock:
            return list(self._buckets)

    def prune_older_than(self, cutoff: datetime) -> int:
        """Drop entries stamped before *cutoff*; buckets left empty are removed.

        Returns the number of buckets removed.
        """
        removed = 0
        with self._lock:
            for key in list(self._buckets):
                bucket = self._buckets[key]
                kept = [(ts, e) for ts, e in bucket if ts >= cutoff]
                if kept:
                    if len(kept) < len(bucket):
                        bucket.clear()
                        bucket.extend(kept)
                else:
                    del self._buckets[key]
                    removed += 1
        if removed:
            log.debug("Correlator pruned %d idle buckets", removed)
        return removed

    def clear(self) -> None:
        with self._lock:
            self._buckets.clear()
        log.debug("Correlator buckets cleared")
