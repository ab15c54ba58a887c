"""Risk scoring for detected anomalies.

Formula
───────
  risk = base × severity_multiplier × (1 + confidence) × frequency_multiplier

  base                 — the event's own risk baseline (0..1)
  severity_multiplier  — low 1.2, medium 1.5, high 2.0, critical 3.0
  frequency_multiplier — min(1 + occurrences / 10, 3) when occurrences > 0, else 1

The result is clamped to [0, 1].
"""

from __future__ import annotations

_SEV_MULTIPLIER = {"low": 1.2, "medium": 1.5, "high": 2.0, "critical": 3.0}


def severity_multiplier(severity: str) -> float:
    return _SEV_MULTIPLIER.get(severity, 1.0)


def frequency_multiplier(occurrences: int) -> float:
    if occurrences <= 0:
        return 1.0
    return min(1.0 + occurrences / 10.0, 3.0)


def risk_score(
    base_score: float,
    pattern_severity: str,
    confidence: float,
    occurrences: int,
) -> float:
    score = (
        base_score
        * severity_multiplier(pattern_severity)
        * (1.0 + confidence)
        * frequency_multiplier(occurrences)
    )
    return min(max(score, 0.0), 1.0)
