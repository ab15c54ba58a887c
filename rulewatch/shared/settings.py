"""Engine settings loaded from ``config/engine.yaml``."""

from __future__ import annotations

import logging
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any

from rulewatch.shared.config_loader import load_yaml

log = logging.getLogger(__name__)


@dataclass(slots=True)
class EngineConfig:
    tick_interval_sec: float = 30.0      # alert scheduler period
    bucket_capacity: int = 1000          # events kept per correlation key
    alert_history_size: int = 10_000
    anomaly_history_size: int = 10_000
    max_age_sec: float = 86_400.0        # default prune age for both histories
    recent_window_sec: float = 86_400.0  # "recent" bucket of anomaly stats

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> EngineConfig:
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            log.warning("Ignoring unknown engine settings: %s", ", ".join(unknown))
        return cls(**{k: v for k, v in data.items() if k in known})

    @classmethod
    def from_yaml(cls, path: str | Path) -> EngineConfig:
        cfg = load_yaml(path)
        return cls.from_dict(cfg.get("engine", cfg))
