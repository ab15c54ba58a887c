"""SecurityEvent — one observed occurrence fed into the anomaly detector."""

from __future__ import annotations

import json
import math
from dataclasses import asdict, dataclass, field
from typing import Any

from rulewatch.contracts.enums import SEVERITY_BASE_SCORE

# Flat column order used by CSV event logs
CSV_COLUMNS: list[str] = [
    "timestamp",
    "type",
    "ip_address",
    "severity",
    "user_id",
    "email",
    "user_agent",
    "endpoint",
    "risk_score",
]


@dataclass(frozen=True, slots=True)
class SecurityEvent:
    """Immutable security event.

    ``ip_address`` is the correlation key used for time-window counting.
    ``risk_score`` is the producer's baseline (0..1) before any pattern
    weighting; when omitted it is derived from ``severity``.
    """

    # ── mandatory ──
    type: str               # login-failed, api_access, …
    ip_address: str
    timestamp: str          # ISO-8601 UTC  e.g. "2026-02-26T10:00:00Z"
    severity: str = "low"   # low | medium | high | critical

    # ── optional ──
    user_id: str | None = None
    email: str | None = None
    user_agent: str | None = None
    endpoint: str | None = None
    details: dict[str, Any] = field(default_factory=dict)
    risk_score: float | None = None

    @property
    def base_score(self) -> float:
        if self.risk_score is not None and math.isfinite(self.risk_score):
            return min(max(float(self.risk_score), 0.0), 1.0)
        return SEVERITY_BASE_SCORE.get(self.severity, 0.2)

    # ── serialisation ─────────────────────────────────────────────────────

    def to_json(self) -> str:
        """Return compact JSON string."""
        return json.dumps(asdict(self), ensure_ascii=False, separators=(",", ":"))

    @classmethod
    def from_dict(cls, row: dict[str, Any]) -> SecurityEvent:
        """Build an event from a CSV row or a decoded JSON object.

        Empty strings (as produced by ``csv.DictReader``) become ``None``.
        A non-finite ``risk_score`` (nan, inf) raises ``ValueError``.
        """

        def _opt(name: str) -> str | None:
            val = row.get(name)
            if val is None or val == "":
                return None
            return str(val)

        raw_score = row.get("risk_score")
        score = float(raw_score) if raw_score not in (None, "") else None
        if score is not None and not math.isfinite(score):
            raise ValueError(f"risk_score must be finite, got {raw_score!r}")
        details = row.get("details") or {}
        if isinstance(details, str):
            details = json.loads(details)

        return cls(
            type=str(row.get("type", "")),
            ip_address=str(row.get("ip_address", "") or "unknown"),
            timestamp=str(row.get("timestamp", "")),
            severity=str(row.get("severity") or "low"),
            user_id=_opt("user_id"),
            email=_opt("email"),
            user_agent=_opt("user_agent"),
            endpoint=_opt("endpoint"),
            details=details,
            risk_score=score,
        )
