"""History ledger — bounded alert and anomaly histories plus queries.

Both histories are in memory and capped; callers prune by age
periodically (the ledger never schedules itself).
"""

from __future__ import annotations

import logging
from collections import Counter
from datetime import timedelta
from typing import Any

from rulewatch.contracts.alert import Alert
from rulewatch.contracts.pattern import AnomalyDetectionResult
from rulewatch.engine.history import BoundedHistory
from rulewatch.shared.clock import Clock, utcnow

log = logging.getLogger(__name__)

DEFAULT_MAX_AGE_SEC = 24 * 60 * 60


class AlertLedger:
    def __init__(self, capacity: int = 10_000, clock: Clock = utcnow) -> None:
        self._history: BoundedHistory[Alert] = BoundedHistory(
            capacity, timestamp_of=lambda a: a.timestamp, name="alerts"
        )
        self._clock = clock

    def append(self, alert: Alert) -> None:
        self._history.append(alert)

    def get(self, alert_id: str) -> Alert | None:
        return self._history.find(lambda a: a.id == alert_id)

    def get_all(self) -> list[Alert]:
        return self._history.snapshot()

    def get_active(self) -> list[Alert]:
        return [a for a in self._history.snapshot() if not a.resolved]

    def get_by_severity(self, severity: str) -> list[Alert]:
        return [a for a in self._history.snapshot() if a.severity == severity]

    def resolve(self, alert_id: str) -> bool:
        """Mark an alert resolved.  Unknown or already-resolved ids are a no-op."""
        alert = self.get(alert_id)
        if alert is None or alert.resolved:
            return False
        alert.resolved = True
        alert.resolved_at = self._clock()
        log.info("Alert resolved: %s (%s)", alert.id, alert.message)
        return True

    def acknowledge(self, alert_id: str, by: str) -> bool:
        """Record who acknowledged a firing alert; the first acknowledgement wins."""
        alert = self.get(alert_id)
        if alert is None or alert.resolved:
            return False
        if alert.acknowledged_at is None:
            alert.acknowledged_by = by
            alert.acknowledged_at = self._clock()
            log.info("Alert acknowledged: %s by %s", alert.id, by)
        return True

    def prune_older_than(self, max_age_sec: float = DEFAULT_MAX_AGE_SEC) -> int:
        return self._history.prune_by_age(self._clock(), max_age_sec)

    def get_stats(self) -> dict[str, Any]:
        alerts = self._history.snapshot()
        by_status = Counter(a.status.value for a in alerts)
        return {
            "total": len(alerts),
            "active": sum(1 for a in alerts if not a.resolved),
            "by_status": dict(by_status),
            "by_severity": dict(Counter(a.severity for a in alerts)),
            "by_rule": dict(Counter(a.rule_id for a in alerts)),
        }

    def __len__(self) -> int:
        return len(self._history)


class AnomalyLedger:
    def __init__(
        self,
        capacity: int = 10_000,
        clock: Clock = utcnow,
        recent_window_sec: float = DEFAULT_MAX_AGE_SEC,
    ) -> None:
        self._history: BoundedHistory[AnomalyDetectionResult] = BoundedHistory(
            capacity, timestamp_of=lambda r: r.details.detected_at, name="anomalies"
        )
        self._clock = clock
        self.recent_window_sec = recent_window_sec

    def append(self, result: AnomalyDetectionResult) -> None:
        self._history.append(result)

    def get_history(self, limit: int = 100) -> list[AnomalyDetectionResult]:
        """Newest first, at most *limit* entries."""
        items = self._history.snapshot()
        items.sort(key=lambda r: r.details.detected_at, reverse=True)
        return items[: max(limit, 0)]

    def get_stats(self) -> dict[str, Any]:
        """Totals by severity and pattern plus the count inside the recent window."""
        cutoff = self._clock() - timedelta(seconds=self.recent_window_sec)
        by_severity: dict[str, int] = {}
        by_pattern: dict[str, int] = {}
        recent = 0
        items = self._history.snapshot()
        for r in items:
            sev = r.pattern.severity
            by_severity[sev] = by_severity.get(sev, 0) + 1
            by_pattern[r.pattern.id] = by_pattern.get(r.pattern.id, 0) + 1
            if r.details.detected_at >= cutoff:
                recent += 1
        return {
            "total_anomalies": len(items),
            "anomalies_by_severity": by_severity,
            "anomalies_by_pattern": by_pattern,
            "recent_anomalies": recent,
        }

    def prune_older_than(self, max_age_sec: float = DEFAULT_MAX_AGE_SEC) -> int:
        return self._history.prune_by_age(self._clock(), max_age_sec)

    def __len__(self) -> int:
        return len(self._history)


class HistoryLedger:
    """Both histories behind one handle."""

    def __init__(
        self,
        alert_capacity: int = 10_000,
        anomaly_capacity: int = 10_000,
        clock: Clock = utcnow,
        recent_window_sec: float = DEFAULT_MAX_AGE_SEC,
    ) -> None:
        self.alerts = AlertLedger(alert_capacity, clock=clock)
        self.anomalies = AnomalyLedger(
            anomaly_capacity, clock=clock, recent_window_sec=recent_window_sec
        )

    def prune_older_than(self, max_age_sec: float = DEFAULT_MAX_AGE_SEC) -> dict[str, int]:
        removed = {
            "alerts": self.alerts.prune_older_than(max_age_sec),
            "anomalies": self.anomalies.prune_older_than(max_age_sec),
        }
        if any(removed.values()):
            log.info(
                "Ledger cleanup: %d alerts, %d anomalies removed",
                removed["alerts"], removed["anomalies"],
            )
        return removed
