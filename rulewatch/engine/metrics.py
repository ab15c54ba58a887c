"""Metrics provider — the snapshot alert conditions read from.

The engine never computes business metrics itself; it is handed a
:class:`MetricsProvider` and passes it to every condition.  The in-memory
implementation backs tests, the replay CLI and any host that pushes
gauges/counters in directly.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

from rulewatch.shared.clock import parse_ts
from rulewatch.shared.config_loader import load_yaml

log = logging.getLogger(__name__)


@dataclass(slots=True)
class MetricSample:
    value: float
    labels: dict[str, str] = field(default_factory=dict)
    timestamp: datetime | None = None

    def matches(self, labels: dict[str, str] | None) -> bool:
        if not labels:
            return True
        return all(self.labels.get(k) == v for k, v in labels.items())


@dataclass(slots=True)
class MetricSeries:
    name: str
    samples: list[MetricSample] = field(default_factory=list)

    def values(self, labels: dict[str, str] | None = None) -> list[float]:
        return [s.value for s in self.samples if s.matches(labels)]

    def recent(
        self,
        now: datetime,
        window_sec: float,
        labels: dict[str, str] | None = None,
    ) -> list[MetricSample]:
        """Samples stamped within the last *window_sec*; unstamped samples are skipped."""
        cutoff = now - timedelta(seconds=window_sec)
        return [
            s for s in self.samples
            if s.timestamp is not None and s.timestamp >= cutoff and s.matches(labels)
        ]


@runtime_checkable
class MetricsProvider(Protocol):
    async def get_series(self, name: str) -> MetricSeries | None: ...


class InMemoryMetricsProvider:
    """Thread-safe in-process metrics snapshot."""

    def __init__(self) -> None:
        self._series: dict[str, MetricSeries] = {}
        self._lock = threading.Lock()

    async def get_series(self, name: str) -> MetricSeries | None:
        with self._lock:
            series = self._series.get(name)
            if series is None:
                return None
            return MetricSeries(name=series.name, samples=list(series.samples))

    def record(
        self,
        name: str,
        value: float,
        labels: dict[str, str] | None = None,
        timestamp: datetime | None = None,
    ) -> None:
        sample = MetricSample(value=float(value), labels=dict(labels or {}), timestamp=timestamp)
        with self._lock:
            self._series.setdefault(name, MetricSeries(name=name)).samples.append(sample)

    def set_gauge(self, name: str, value: float, labels: dict[str, str] | None = None) -> None:
        """Replace every sample of *name* carrying *labels* with a single value."""
        with self._lock:
            series = self._series.setdefault(name, MetricSeries(name=name))
            series.samples = [s for s in series.samples if not s.matches(labels)]
            series.samples.append(MetricSample(value=float(value), labels=dict(labels or {})))

    def clear(self, name: str | None = None) -> None:
        with self._lock:
            if name is None:
                self._series.clear()
            else:
                self._series.pop(name, None)

    def names(self) -> list[str]:
        with self._lock:
            return sorted(self._series)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> InMemoryMetricsProvider:
        """Build a snapshot from ``{name: [{value, labels?, timestamp?}, ...]}``."""
        provider = cls()
        for name, samples in (data or {}).items():
            for raw in samples or []:
                ts = raw.get("timestamp")
                provider.record(
                    name,
                    raw["value"],
                    labels={str(k): str(v) for k, v in (raw.get("labels") or {}).items()},
                    timestamp=parse_ts(str(ts)) if ts is not None else None,
                )
        log.debug("Metrics snapshot built with %d series", len(provider.names()))
        return provider

    @classmethod
    def from_yaml(cls, path: str | Path) -> InMemoryMetricsProvider:
        return cls.from_dict(load_yaml(path).get("metrics", {}))
