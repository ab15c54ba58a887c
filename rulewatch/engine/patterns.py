"""Pattern registry — the set of anomaly patterns the detector runs.

Patterns come from a built-in list (or a YAML file with the same shape)
and are validated and compiled when loaded.  Mutation is explicit:
``enable`` / ``disable`` / ``add`` / ``remove``.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Any

from rulewatch.contracts.errors import PatternConfigError
from rulewatch.contracts.pattern import AnomalyPattern
from rulewatch.shared.config_loader import load_yaml

log = logging.getLogger(__name__)

DEFAULT_PATTERNS: list[dict[str, Any]] = [
    {
        "id": "multiple_failed_logins",
        "name": "Multiple Failed Login Attempts",
        "description": "Multiple failed login attempts from the same IP",
        "severity": "high",
        "enabled": True,
        "patterns": {"event_type": "login", "time_window_minutes": 15, "threshold": 5},
    },
    {
        "id": "rapid_api_calls",
        "name": "Rapid API Calls",
        "description": "Unusually high number of API calls from single source",
        "severity": "medium",
        "enabled": True,
        "patterns": {"event_type": "api_access", "time_window_minutes": 5, "threshold": 100},
    },
    {
        "id": "suspicious_user_agent",
        "name": "Suspicious User Agent",
        "description": "Requests from known bot or scraper user agents",
        "severity": "medium",
        "enabled": True,
        "patterns": {"user_agent": "bot|crawler|spider|scraper|curl|wget"},
    },
]


class PatternRuleRegistry:
    def __init__(self, definitions: list[dict[str, Any]] | None = None) -> None:
        self._patterns: dict[str, AnomalyPattern] = {}
        self._lock = threading.Lock()
        for data in DEFAULT_PATTERNS if definitions is None else definitions:
            self.add(AnomalyPattern.from_dict(data))
        log.info("Anomaly patterns initialised: %d loaded", len(self._patterns))

    @classmethod
    def from_yaml(cls, path: str | Path) -> PatternRuleRegistry:
        """Load ``patterns:`` from a YAML file instead of the built-ins."""
        cfg = load_yaml(path)
        return cls(cfg.get("patterns", []))

    def add(self, pattern: AnomalyPattern) -> AnomalyPattern:
        pattern.compile()
        with self._lock:
            if pattern.id in self._patterns:
                raise PatternConfigError(pattern.id, "duplicate pattern id")
            self._patterns[pattern.id] = pattern
        return pattern

    def remove(self, pattern_id: str) -> bool:
        with self._lock:
            return self._patterns.pop(pattern_id, None) is not None

    def get(self, pattern_id: str) -> AnomalyPattern | None:
        with self._lock:
            return self._patterns.get(pattern_id)

    def get_all(self) -> list[AnomalyPattern]:
        """Snapshot of every pattern, enabled or not, in load order."""
        with self._lock:
            return list(self._patterns.values())

    def enabled(self) -> list[AnomalyPattern]:
        return [p for p in self.get_all() if p.enabled]

    def enable(self, pattern_id: str) -> bool:
        return self._set_enabled(pattern_id, True)

    def disable(self, pattern_id: str) -> bool:
        return self._set_enabled(pattern_id, False)

    def _set_enabled(self, pattern_id: str, flag: bool) -> bool:
        with self._lock:
            pattern = self._patterns.get(pattern_id)
            if pattern is None:
                return False
            pattern.enabled = flag
        log.info("Pattern %s %s", pattern_id, "enabled" if flag else "disabled")
        return True

    def __len__(self) -> int:
        return len(self._patterns)
