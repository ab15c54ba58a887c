"""Contracts — data structures shared by every rulewatch module."""

from rulewatch.contracts.alert import Alert, AlertCondition, AlertRule
from rulewatch.contracts.enums import AlertStatus, EventType, Severity
from rulewatch.contracts.errors import PatternConfigError, RuleConfigError, RulewatchError
from rulewatch.contracts.event import SecurityEvent
from rulewatch.contracts.pattern import (
    AnomalyDetails,
    AnomalyDetectionResult,
    AnomalyPattern,
    PatternSpec,
)

__all__ = [
    "Alert",
    "AlertCondition",
    "AlertRule",
    "AlertStatus",
    "AnomalyDetails",
    "AnomalyDetectionResult",
    "AnomalyPattern",
    "EventType",
    "PatternConfigError",
    "PatternSpec",
    "RuleConfigError",
    "RulewatchError",
    "SecurityEvent",
    "Severity",
]
