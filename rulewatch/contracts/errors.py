"""Exceptions raised when rule definitions are rejected at load time."""

from __future__ import annotations


class RulewatchError(ValueError):
    """Base class for configuration problems detected by rulewatch."""


class PatternConfigError(RulewatchError):
    """An anomaly pattern is inconsistent or carries a malformed regex."""

    def __init__(self, pattern_id: str, reason: str) -> None:
        super().__init__(f"Pattern '{pattern_id}': {reason}")
        self.pattern_id = pattern_id
        self.reason = reason


class RuleConfigError(RulewatchError):
    """An alert rule definition cannot be built."""

    def __init__(self, rule_id: str, reason: str) -> None:
        super().__init__(f"Alert rule '{rule_id}': {reason}")
        self.rule_id = rule_id
        self.reason = reason
