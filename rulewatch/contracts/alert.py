"""Alert rules (poll-triggered) and the alerts they raise."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from rulewatch.contracts.enums import AlertStatus

if TYPE_CHECKING:
    from rulewatch.engine.metrics import MetricsProvider


@runtime_checkable
class AlertCondition(Protocol):
    """Strategy deciding whether an alert rule should fire right now."""

    async def check(self, metrics: MetricsProvider) -> bool: ...


@dataclass(slots=True)
class AlertRule:
    """Health-condition rule evaluated on every scheduler tick.

    ``last_triggered`` is owned by the scheduler; nothing else writes it.
    """

    id: str
    name: str
    condition: AlertCondition
    severity: str  # low | medium | high | critical
    message: str
    cooldown_seconds: float = 300
    enabled: bool = True
    description: str = ""
    last_triggered: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "severity": self.severity,
            "message": self.message,
            "cooldown_seconds": self.cooldown_seconds,
            "enabled": self.enabled,
            "description": self.description,
            "condition": repr(self.condition),
            "last_triggered": self.last_triggered.isoformat() if self.last_triggered else None,
        }


@dataclass(slots=True)
class Alert:
    """A firing instance of an :class:`AlertRule`."""

    id: str  # "<rule_id>_<epoch_ms>"
    rule_id: str
    severity: str
    message: str
    timestamp: datetime
    resolved: bool = False
    resolved_at: datetime | None = None
    acknowledged_by: str | None = None
    acknowledged_at: datetime | None = None

    @property
    def status(self) -> AlertStatus:
        if self.resolved:
            return AlertStatus.RESOLVED
        if self.acknowledged_at is not None:
            return AlertStatus.ACKNOWLEDGED
        return AlertStatus.FIRING

    @classmethod
    def from_rule(cls, rule: AlertRule, now: datetime) -> Alert:
        return cls(
            id=f"{rule.id}_{int(now.timestamp() * 1000)}",
            rule_id=rule.id,
            severity=rule.severity,
            message=rule.message,
            timestamp=now,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "rule_id": self.rule_id,
            "severity": self.severity,
            "message": self.message,
            "timestamp": self.timestamp.isoformat(),
            "status": self.status.value,
            "resolved": self.resolved,
            "resolved_at": self.resolved_at.isoformat() if self.resolved_at else None,
            "acknowledged_by": self.acknowledged_by,
            "acknowledged_at": self.acknowledged_at.isoformat() if self.acknowledged_at else None,
        }
