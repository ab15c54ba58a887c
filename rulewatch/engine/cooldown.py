"""CooldownGate — per-rule minimum spacing between firings."""

from __future__ import annotations

import threading
from datetime import datetime


class CooldownGate:
    def __init__(self) -> None:
        self._last: dict[str, datetime] = {}
        self._lock = threading.Lock()

    def can_fire(self, rule_id: str, cooldown_seconds: float, now: datetime) -> bool:
        """True when *rule_id* never fired or its cooldown has fully elapsed."""
        with self._lock:
            last = self._last.get(rule_id)
        if last is None:
            return True
        return (now - last).total_seconds() >= cooldown_seconds

    def record(self, rule_id: str, when: datetime) -> None:
        with self._lock:
            self._last[rule_id] = when

    def last_triggered(self, rule_id: str) -> datetime | None:
        with self._lock:
            return self._last.get(rule_id)

    def sync(self, rule_id: str, when: datetime | None) -> None:
        """Mirror the rule's own ``last_triggered``; ``None`` re-arms the rule."""
        with self._lock:
            if when is None:
                self._last.pop(rule_id, None)
            else:
                self._last[rule_id] = when

    def reset(self, rule_id: str | None = None) -> None:
        with self._lock:
            if rule_id is None:
                self._last.clear()
            else:
                self._last.pop(rule_id, None)
