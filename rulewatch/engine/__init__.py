"""rulewatch engine — rule-based anomaly detection and health alerting.

Modules
───────
  history     — BoundedHistory: size-capped, age-prunable store
  cooldown    — CooldownGate: per-rule minimum spacing between firings
  correlator  — EventCorrelator: per-IP event buckets, sliding-window counts
  patterns    — PatternRuleRegistry: anomaly patterns (event-triggered)
  scoring     — risk score of a detected anomaly
  detector    — AnomalyEvaluator: SecurityEvent → AnomalyDetectionResult
  metrics     — MetricsProvider protocol + in-memory snapshot
  rules       — AlertRuleRegistry + condition strategies (poll-triggered)
  scheduler   — AlertScheduler: recurring asyncio loop over alert rules
  dispatcher  — NotificationDispatcher boundary
  ledger      — alert / anomaly histories and queries
  monitor     — MonitoringEngine composition root
  pipeline    — replay a recorded event log
  reporter    — write CSV and TXT outputs
  cli         — argparse entry-point
"""

from rulewatch.engine.monitor import MonitoringEngine

__all__ = ["MonitoringEngine"]
