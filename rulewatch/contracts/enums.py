"""Canonical enumerations shared by the detector and the alerting side."""

from __future__ import annotations

from enum import Enum


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class EventType(str, Enum):
    LOGIN = "login"
    LOGIN_SUCCESS = "login-success"
    LOGIN_FAILED = "login-failed"
    LOGOUT = "logout"
    PASSWORD_CHANGE = "password-change"
    PASSWORD_RESET = "password-reset"
    ACCOUNT_LOCKED = "account-locked"
    SUSPICIOUS_ACTIVITY = "suspicious-activity"
    ADMIN_ACTION = "admin-action"
    RATE_LIMIT_EXCEEDED = "rate-limit-exceeded"
    CSRF_VIOLATION = "csrf-violation"
    API_ACCESS = "api_access"


class AlertStatus(str, Enum):
    FIRING = "firing"
    ACKNOWLEDGED = "acknowledged"
    RESOLVED = "resolved"


# Baseline risk of an event when the producer did not attach one.
SEVERITY_BASE_SCORE: dict[str, float] = {
    "low": 0.2,
    "medium": 0.4,
    "high": 0.7,
    "critical": 1.0,
}

SEVERITIES: tuple[str, ...] = tuple(s.value for s in Severity)
