"""Shared fixtures for rulewatch tests."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any

import pytest

from rulewatch.contracts.alert import Alert, AlertRule
from rulewatch.contracts.event import SecurityEvent
from rulewatch.contracts.pattern import AnomalyPattern, PatternSpec
from rulewatch.engine.metrics import MetricsProvider
from rulewatch.shared.clock import ManualClock, parse_ts

T0 = "2026-02-26T10:00:00Z"

# ── Helper: create objects with sensible defaults ───────────────────────


def make_event(
    *,
    type: str = "login",
    ip_address: str = "1.2.3.4",
    timestamp: str = T0,
    severity: str = "low",
    user_id: str | None = None,
    email: str | None = None,
    user_agent: str | None = None,
    endpoint: str | None = None,
    details: dict[str, Any] | None = None,
    risk_score: float | None = None,
) -> SecurityEvent:
    return SecurityEvent(
        type=type,
        ip_address=ip_address,
        timestamp=timestamp,
        severity=severity,
        user_id=user_id,
        email=email,
        user_agent=user_agent,
        endpoint=endpoint,
        details=details or {},
        risk_score=risk_score,
    )


def make_pattern(
    *,
    id: str = "test_pattern",
    severity: str = "high",
    event_type: str | None = None,
    user_agent: str | None = None,
    endpoint: str | None = None,
    time_window_minutes: float | None = None,
    threshold: int | None = None,
    enabled: bool = True,
) -> AnomalyPattern:
    return AnomalyPattern(
        id=id,
        name=id.replace("_", " ").title(),
        description="test pattern",
        severity=severity,
        enabled=enabled,
        patterns=PatternSpec(
            event_type=event_type,
            user_agent=user_agent,
            endpoint=endpoint,
            time_window_minutes=time_window_minutes,
            threshold=threshold,
        ),
    )


def make_alert(
    *,
    id: str = "high_cpu_usage_1772100000000",
    rule_id: str = "high_cpu_usage",
    severity: str = "high",
    message: str = "CPU usage is above 80%",
    timestamp: datetime | None = None,
) -> Alert:
    return Alert(
        id=id,
        rule_id=rule_id,
        severity=severity,
        message=message,
        timestamp=timestamp or parse_ts(T0),
    )


# ── Condition / dispatcher doubles ───────────────────────────────────────


class StaticCondition:
    """Returns the queued answers in order, then repeats the last one."""

    def __init__(self, *answers: bool) -> None:
        self.answers = list(answers) or [True]
        self.calls = 0

    async def check(self, metrics: MetricsProvider) -> bool:
        idx = min(self.calls, len(self.answers) - 1)
        self.calls += 1
        return self.answers[idx]


class RaisingCondition:
    def __init__(self) -> None:
        self.calls = 0

    async def check(self, metrics: MetricsProvider) -> bool:
        self.calls += 1
        raise RuntimeError("metrics backend unavailable")


class RecordingDispatcher:
    def __init__(self) -> None:
        self.items: list[Any] = []

    def dispatch(self, item: Any) -> None:
        self.items.append(item)


class FailingDispatcher:
    def __init__(self) -> None:
        self.calls = 0

    def dispatch(self, item: Any) -> None:
        self.calls += 1
        raise ConnectionError("webhook down")


def make_rule(
    *,
    id: str = "test_rule",
    condition: Any = None,
    severity: str = "high",
    cooldown_seconds: float = 300,
    enabled: bool = True,
) -> AlertRule:
    return AlertRule(
        id=id,
        name=id.replace("_", " ").title(),
        condition=condition if condition is not None else StaticCondition(True),
        severity=severity,
        message=f"{id} fired",
        cooldown_seconds=cooldown_seconds,
        enabled=enabled,
    )


# ── Timestamp helpers ────────────────────────────────────────────────────


def ts_offset(base: str = T0, seconds: float = 0) -> str:
    """Return an ISO-8601 timestamp offset from *base* by *seconds*."""
    dt = parse_ts(base) + timedelta(seconds=seconds)
    return dt.strftime("%Y-%m-%dT%H:%M:%SZ")


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock(parse_ts(T0))
