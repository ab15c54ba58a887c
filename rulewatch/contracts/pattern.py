"""Anomaly pattern definitions and detection results."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from rulewatch.contracts.enums import SEVERITIES
from rulewatch.contracts.errors import PatternConfigError


@dataclass(slots=True)
class PatternSpec:
    """Match conditions of one anomaly pattern.

    ``time_window_minutes`` and ``threshold`` are a pair: a time-based
    pattern always needs both, an attribute-only pattern has neither.
    """

    event_type: str | None = None
    user_agent: str | None = None   # case-insensitive regex
    endpoint: str | None = None     # case-insensitive regex
    time_window_minutes: float | None = None
    threshold: int | None = None

    @property
    def is_time_based(self) -> bool:
        return self.time_window_minutes is not None and self.threshold is not None


@dataclass(slots=True)
class AnomalyPattern:
    """Event-triggered detection rule.

    Regular expressions are compiled once by :meth:`compile`, which also
    validates the pattern; the registry calls it on load so a bad rule
    fails before the first event arrives.
    """

    id: str
    name: str
    description: str
    severity: str
    patterns: PatternSpec
    enabled: bool = True
    user_agent_re: re.Pattern[str] | None = field(default=None, repr=False, compare=False)
    endpoint_re: re.Pattern[str] | None = field(default=None, repr=False, compare=False)

    def compile(self) -> AnomalyPattern:
        spec = self.patterns
        if self.severity not in SEVERITIES:
            raise PatternConfigError(self.id, f"unknown severity '{self.severity}'")
        if (spec.time_window_minutes is None) != (spec.threshold is None):
            raise PatternConfigError(
                self.id, "time_window_minutes and threshold must be set together"
            )
        if spec.is_time_based and (spec.time_window_minutes <= 0 or spec.threshold < 1):
            raise PatternConfigError(
                self.id, "time_window_minutes must be > 0 and threshold >= 1"
            )
        self.user_agent_re = _compile(self.id, "user_agent", spec.user_agent)
        self.endpoint_re = _compile(self.id, "endpoint", spec.endpoint)
        return self

    def to_dict(self) -> dict[str, Any]:
        spec = self.patterns
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "severity": self.severity,
            "enabled": self.enabled,
            "patterns": {
                "event_type": spec.event_type,
                "user_agent": spec.user_agent,
                "endpoint": spec.endpoint,
                "time_window_minutes": spec.time_window_minutes,
                "threshold": spec.threshold,
            },
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AnomalyPattern:
        pid = data.get("id")
        if not pid:
            raise PatternConfigError("<unnamed>", "missing id")
        raw = data.get("patterns", {}) or {}
        window = raw.get("time_window_minutes")
        threshold = raw.get("threshold")
        return cls(
            id=pid,
            name=data.get("name", pid),
            description=data.get("description", ""),
            severity=data.get("severity", "medium"),
            enabled=bool(data.get("enabled", True)),
            patterns=PatternSpec(
                event_type=raw.get("event_type"),
                user_agent=raw.get("user_agent"),
                endpoint=raw.get("endpoint"),
                time_window_minutes=float(window) if window is not None else None,
                threshold=int(threshold) if threshold is not None else None,
            ),
        )


def _compile(pattern_id: str, name: str, expr: str | None) -> re.Pattern[str] | None:
    if expr is None:
        return None
    try:
        return re.compile(expr, re.IGNORECASE)
    except re.error as exc:
        raise PatternConfigError(pattern_id, f"invalid {name} regex {expr!r}: {exc}") from exc


@dataclass(slots=True)
class AnomalyDetails:
    detected_at: datetime
    occurrences: int = 0
    time_window_minutes: float = 0
    risk_score: float = 0.0


@dataclass(slots=True)
class AnomalyDetectionResult:
    """Outcome of evaluating one event against one pattern."""

    is_anomaly: bool
    confidence: float
    pattern: AnomalyPattern
    details: AnomalyDetails
    ip_address: str = ""

    @property
    def timestamp(self) -> datetime:
        return self.details.detected_at

    @property
    def severity(self) -> str:
        return self.pattern.severity

    def to_dict(self) -> dict[str, Any]:
        return {
            "is_anomaly": self.is_anomaly,
            "confidence": round(self.confidence, 4),
            "pattern_id": self.pattern.id,
            "pattern_name": self.pattern.name,
            "severity": self.pattern.severity,
            "ip_address": self.ip_address,
            "detected_at": self.details.detected_at.isoformat(),
            "occurrences": self.details.occurrences,
            "time_window_minutes": self.details.time_window_minutes,
            "risk_score": round(self.details.risk_score, 4),
        }
