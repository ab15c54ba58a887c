"""MonitoringEngine — composition root for the detector and the alerting loop.

Build one instance at process start and hand it to whoever needs it:

    engine = MonitoringEngine(metrics=provider, dispatcher=LoggingDispatcher())
    engine.start()                     # inside a running event loop
    anomalies = engine.analyze_event(event)
    ...
    await engine.stop()
"""

from __future__ import annotations

import logging
from datetime import timedelta
from pathlib import Path
from typing import Any

from rulewatch.contracts.alert import Alert, AlertRule
from rulewatch.contracts.event import SecurityEvent
from rulewatch.contracts.pattern import AnomalyDetectionResult, AnomalyPattern
from rulewatch.engine.correlator import EventCorrelator
from rulewatch.engine.detector import AnomalyEvaluator
from rulewatch.engine.dispatcher import NotificationDispatcher, safe_dispatch
from rulewatch.engine.ledger import HistoryLedger
from rulewatch.engine.metrics import InMemoryMetricsProvider, MetricsProvider
from rulewatch.engine.patterns import PatternRuleRegistry
from rulewatch.engine.rules import AlertRuleRegistry
from rulewatch.engine.scheduler import AlertScheduler
from rulewatch.shared.clock import Clock, utcnow
from rulewatch.shared.settings import EngineConfig

log = logging.getLogger(__name__)


class MonitoringEngine:
    def __init__(
        self,
        metrics: MetricsProvider | None = None,
        dispatcher: NotificationDispatcher | None = None,
        patterns: PatternRuleRegistry | None = None,
        alert_rules: AlertRuleRegistry | None = None,
        config: EngineConfig | None = None,
        clock: Clock = utcnow,
    ) -> None:
        self.config = config or EngineConfig()
        self.clock = clock
        self.dispatcher = dispatcher
        self.metrics = metrics if metrics is not None else InMemoryMetricsProvider()

        self.patterns = patterns if patterns is not None else PatternRuleRegistry()
        self.alert_rules = (
            alert_rules if alert_rules is not None else AlertRuleRegistry(clock=clock)
        )
        self.ledger = HistoryLedger(
            alert_capacity=self.config.alert_history_size,
            anomaly_capacity=self.config.anomaly_history_size,
            clock=clock,
            recent_window_sec=self.config.recent_window_sec,
        )
        self.evaluator = AnomalyEvaluator(
            self.patterns,
            EventCorrelator(self.config.bucket_capacity),
            clock=clock,
        )
        self.scheduler = AlertScheduler(
            self.alert_rules,
            self.metrics,
            self.ledger.alerts,
            dispatcher=dispatcher,
            interval_sec=self.config.tick_interval_sec,
            clock=clock,
        )

    @classmethod
    def from_config_dir(
        cls,
        config_dir: str | Path,
        metrics: MetricsProvider | None = None,
        dispatcher: NotificationDispatcher | None = None,
        clock: Clock = utcnow,
    ) -> MonitoringEngine:
        """Build from ``engine.yaml`` / ``patterns.yaml`` / ``alert_rules.yaml``.

        Missing files fall back to the built-in defaults.
        """
        base = Path(config_dir)
        config = (
            EngineConfig.from_yaml(base / "engine.yaml")
            if (base / "engine.yaml").exists() else EngineConfig()
        )
        patterns = (
            PatternRuleRegistry.from_yaml(base / "patterns.yaml")
            if (base / "patterns.yaml").exists() else None
        )
        rules = (
            AlertRuleRegistry.from_yaml(base / "alert_rules.yaml", clock=clock)
            if (base / "alert_rules.yaml").exists() else None
        )
        return cls(
            metrics=metrics,
            dispatcher=dispatcher,
            patterns=patterns,
            alert_rules=rules,
            config=config,
            clock=clock,
        )

    # ── reactive path ─────────────────────────────────────────────────────

    def analyze_event(self, event: SecurityEvent) -> list[AnomalyDetectionResult]:
        """Evaluate *event*, record and dispatch anomalies, return only the anomalies."""
        anomalies = [r for r in self.evaluator.evaluate(event) if r.is_anomaly]
        for result in anomalies:
            self.ledger.anomalies.append(result)
            safe_dispatch(self.dispatcher, result)
        return anomalies

    # ── proactive path ────────────────────────────────────────────────────

    def start(self) -> None:
        self.scheduler.start()

    async def stop(self) -> None:
        await self.scheduler.stop()

    def close(self) -> None:
        self.scheduler.close()

    async def check_alerts(self) -> list[Alert]:
        """Run one alert evaluation pass immediately."""
        return await self.scheduler.tick()

    def cleanup(self, max_age_sec: float | None = None) -> dict[str, int]:
        """Prune both histories and idle correlator buckets.

        *max_age_sec* defaults to ``config.max_age_sec``.
        """
        age = self.config.max_age_sec if max_age_sec is None else max_age_sec
        pruned = self.ledger.prune_older_than(age)
        pruned["sources"] = self.evaluator.correlator.prune_older_than(
            self.clock() - timedelta(seconds=age)
        )
        return pruned

    # ── query surface (read-only) ─────────────────────────────────────────

    def get_active_alerts(self) -> list[Alert]:
        return self.ledger.alerts.get_active()

    def get_all_alerts(self) -> list[Alert]:
        return self.ledger.alerts.get_all()

    def get_alerts_by_severity(self, severity: str) -> list[Alert]:
        return self.ledger.alerts.get_by_severity(severity)

    def get_alert_stats(self) -> dict[str, Any]:
        return self.ledger.alerts.get_stats()

    def get_anomaly_history(self, limit: int = 100) -> list[AnomalyDetectionResult]:
        return self.ledger.anomalies.get_history(limit)

    def get_anomaly_stats(self) -> dict[str, Any]:
        return self.ledger.anomalies.get_stats()

    def get_patterns(self) -> list[AnomalyPattern]:
        return self.patterns.get_all()

    def get_alert_rules(self) -> list[AlertRule]:
        return self.alert_rules.get_all()

    # ── alert lifecycle ───────────────────────────────────────────────────

    def resolve_alert(self, alert_id: str) -> bool:
        return self.ledger.alerts.resolve(alert_id)

    def acknowledge_alert(self, alert_id: str, by: str) -> bool:
        return self.ledger.alerts.acknowledge(alert_id, by)
