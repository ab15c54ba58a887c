"""Alert rule registry and the condition strategies rules are built from.

A rule's ``condition`` is any object with ``async check(metrics) -> bool``.
Two strategies ship here:

  MetricThresholdCondition — aggregate one metric series and compare it
                             against a threshold (declarative, YAML-friendly)
  FunctionCondition        — wrap an arbitrary async callable under a name
"""

from __future__ import annotations

import logging
import operator
import threading
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Any

from rulewatch.contracts.alert import AlertCondition, AlertRule
from rulewatch.contracts.enums import SEVERITIES
from rulewatch.contracts.errors import RuleConfigError
from rulewatch.engine.metrics import MetricSeries, MetricsProvider
from rulewatch.shared.clock import Clock, utcnow
from rulewatch.shared.config_loader import load_yaml

log = logging.getLogger(__name__)

OPERATORS: dict[str, Callable[[float, float], bool]] = {
    "gt": operator.gt,
    "gte": operator.ge,
    "lt": operator.lt,
    "lte": operator.le,
    "eq": operator.eq,
}

AGGREGATES = ("avg", "last", "max", "sum", "count", "error_rate")


def _error_rate(series: MetricSeries, labels: dict[str, str] | None) -> float:
    """Share of samples whose ``status_code`` label is 400 or above."""
    samples = [s for s in series.samples if s.matches(labels)]
    if not samples:
        return 0.0
    errors = 0
    for s in samples:
        code = s.labels.get("status_code", "")
        if code.isdigit() and int(code) >= 400:
            errors += 1
    return errors / len(samples)


class MetricThresholdCondition:
    """``aggregate(metric) <operator> threshold``.

    When ``window_sec`` is given only samples stamped inside that window
    take part (``count`` over a window = "N events in the last M seconds").
    A missing series never fires.
    """

    def __init__(
        self,
        metric: str,
        threshold: float,
        op: str = "gt",
        aggregate: str = "avg",
        labels: dict[str, str] | None = None,
        window_sec: float | None = None,
        clock: Clock = utcnow,
    ) -> None:
        if op not in OPERATORS:
            raise ValueError(f"unknown operator '{op}'")
        if aggregate not in AGGREGATES:
            raise ValueError(f"unknown aggregate '{aggregate}'")
        self.metric = metric
        self.threshold = float(threshold)
        self.op = op
        self.aggregate = aggregate
        self.labels = labels
        self.window_sec = window_sec
        self._clock = clock

    def value(self, series: MetricSeries) -> float:
        if self.window_sec is not None:
            samples = series.recent(self._clock(), self.window_sec, self.labels)
            series = MetricSeries(name=series.name, samples=samples)
        if self.aggregate == "error_rate":
            return _error_rate(series, self.labels)
        values = series.values(self.labels)
        if self.aggregate == "count":
            return float(len(values))
        if not values:
            return 0.0
        if self.aggregate == "avg":
            return sum(values) / len(values)
        if self.aggregate == "sum":
            return sum(values)
        if self.aggregate == "max":
            return max(values)
        return values[-1]

    async def check(self, metrics: MetricsProvider) -> bool:
        series = await metrics.get_series(self.metric)
        if series is None:
            return False
        return OPERATORS[self.op](self.value(series), self.threshold)

    def __repr__(self) -> str:
        window = f" over {self.window_sec:g}s" if self.window_sec is not None else ""
        return f"{self.aggregate}({self.metric}){window} {self.op} {self.threshold:g}"


class FunctionCondition:
    """Named wrapper around ``async fn(metrics) -> bool``."""

    def __init__(self, name: str, fn: Callable[[MetricsProvider], Awaitable[bool]]) -> None:
        self.name = name
        self._fn = fn

    async def check(self, metrics: MetricsProvider) -> bool:
        return bool(await self._fn(metrics))

    def __repr__(self) -> str:
        return f"FunctionCondition({self.name})"


_MB = 1024 * 1024

DEFAULT_ALERT_RULES: list[dict[str, Any]] = [
    # performance
    {
        "id": "high_response_time",
        "name": "High Response Time",
        "severity": "high",
        "message": "Average response time is above 2 seconds",
        "cooldown_seconds": 300,
        "condition": {"metric": "http_request_duration_seconds", "aggregate": "avg",
                      "operator": "gt", "threshold": 2},
    },
    {
        "id": "high_error_rate",
        "name": "High Error Rate",
        "severity": "critical",
        "message": "Error rate is above 5%",
        "cooldown_seconds": 180,
        "condition": {"metric": "http_requests_total", "aggregate": "error_rate",
                      "operator": "gt", "threshold": 0.05},
    },
    {
        "id": "high_memory_usage",
        "name": "High Memory Usage",
        "severity": "medium",
        "message": "Memory usage is above 500MB",
        "cooldown_seconds": 600,
        "condition": {"metric": "memory_usage_bytes", "aggregate": "last",
                      "labels": {"type": "heapUsed"}, "operator": "gt",
                      "threshold": 500 * _MB},
    },
    {
        "id": "high_cpu_usage",
        "name": "High CPU Usage",
        "severity": "high",
        "message": "CPU usage is above 80%",
        "cooldown_seconds": 300,
        "condition": {"metric": "cpu_usage_percent", "aggregate": "last",
                      "operator": "gt", "threshold": 80},
    },
    # authentication
    {
        "id": "high_auth_failures",
        "name": "High Authentication Failures",
        "severity": "high",
        "message": "High number of authentication failures detected",
        "cooldown_seconds": 300,
        "condition": {"metric": "auth_failures_total", "aggregate": "count",
                      "window_sec": 300, "operator": "gt", "threshold": 10},
    },
    {
        "id": "rate_limit_abuse",
        "name": "Rate Limit Abuse",
        "severity": "medium",
        "message": "High number of rate limit blocks detected",
        "cooldown_seconds": 600,
        "condition": {"metric": "rate_limit_blocks_total", "aggregate": "count",
                      "window_sec": 600, "operator": "gt", "threshold": 50},
    },
    # external API and workers
    {
        "id": "exchange_api_errors",
        "name": "Exchange API Errors",
        "severity": "high",
        "message": "High number of exchange API errors",
        "cooldown_seconds": 300,
        "condition": {"metric": "exchange_api_errors_total", "aggregate": "count",
                      "window_sec": 300, "operator": "gt", "threshold": 5},
    },
    {
        "id": "worker_job_failures",
        "name": "Worker Job Failures",
        "severity": "medium",
        "message": "High number of worker job failures",
        "cooldown_seconds": 600,
        "condition": {"metric": "worker_job_failures_total", "aggregate": "count",
                      "window_sec": 600, "operator": "gt", "threshold": 3},
    },
]


def build_rule(data: dict[str, Any], clock: Clock = utcnow) -> AlertRule:
    """Build an :class:`AlertRule` from a declarative dict.

    Raises:
        RuleConfigError: On a missing id, bad severity, negative cooldown
            or an unusable condition block.
    """
    rule_id = data.get("id")
    if not rule_id:
        raise RuleConfigError("<unnamed>", "missing id")
    severity = data.get("severity", "medium")
    if severity not in SEVERITIES:
        raise RuleConfigError(rule_id, f"unknown severity '{severity}'")
    cooldown = float(data.get("cooldown_seconds", 300))
    if cooldown < 0:
        raise RuleConfigError(rule_id, "cooldown_seconds must be >= 0")

    cond = data.get("condition") or {}
    if "metric" not in cond or "threshold" not in cond:
        raise RuleConfigError(rule_id, "condition needs 'metric' and 'threshold'")
    # snapshot labels are strings; YAML may hand back ints (status_code: 500)
    labels = {str(k): str(v) for k, v in (cond.get("labels") or {}).items()} or None
    try:
        condition = MetricThresholdCondition(
            metric=cond["metric"],
            threshold=cond["threshold"],
            op=cond.get("operator", "gt"),
            aggregate=cond.get("aggregate", "avg"),
            labels=labels,
            window_sec=cond.get("window_sec"),
            clock=clock,
        )
    except (TypeError, ValueError) as exc:
        raise RuleConfigError(rule_id, str(exc)) from exc

    return AlertRule(
        id=rule_id,
        name=data.get("name", rule_id),
        condition=condition,
        severity=severity,
        message=data.get("message", data.get("name", rule_id)),
        cooldown_seconds=cooldown,
        enabled=bool(data.get("enabled", True)),
        description=data.get("description", ""),
    )


class AlertRuleRegistry:
    def __init__(
        self,
        definitions: list[dict[str, Any]] | None = None,
        clock: Clock = utcnow,
    ) -> None:
        self._rules: dict[str, AlertRule] = {}
        self._lock = threading.Lock()
        for data in DEFAULT_ALERT_RULES if definitions is None else definitions:
            self.add(build_rule(data, clock))
        log.info("Alert rules initialised: %d loaded", len(self._rules))

    @classmethod
    def from_yaml(cls, path: str | Path, clock: Clock = utcnow) -> AlertRuleRegistry:
        cfg = load_yaml(path)
        return cls(cfg.get("alert_rules", []), clock=clock)

    def add(self, rule: AlertRule) -> AlertRule:
        if not isinstance(rule.condition, AlertCondition):
            raise RuleConfigError(rule.id, "condition has no async check(metrics)")
        with self._lock:
            if rule.id in self._rules:
                raise RuleConfigError(rule.id, "duplicate rule id")
            self._rules[rule.id] = rule
        return rule

    def remove(self, rule_id: str) -> bool:
        with self._lock:
            return self._rules.pop(rule_id, None) is not None

    def get(self, rule_id: str) -> AlertRule | None:
        with self._lock:
            return self._rules.get(rule_id)

    def get_all(self) -> list[AlertRule]:
        with self._lock:
            return list(self._rules.values())

    def enabled(self) -> list[AlertRule]:
        return [r for r in self.get_all() if r.enabled]

    def enable(self, rule_id: str) -> bool:
        return self._set_enabled(rule_id, True)

    def disable(self, rule_id: str) -> bool:
        return self._set_enabled(rule_id, False)

    def _set_enabled(self, rule_id: str, flag: bool) -> bool:
        with self._lock:
            rule = self._rules.get(rule_id)
            if rule is None:
                return False
            rule.enabled = flag
        log.info("Alert rule %s %s", rule_id, "enabled" if flag else "disabled")
        return True

    def __len__(self) -> int:
        return len(self._rules)
