"""Reporting: CSV and TXT outputs of a replay run."""

from __future__ import annotations

import csv
import io
import logging
import os
import tempfile
from pathlib import Path
from typing import Any

from rulewatch.contracts.alert import Alert
from rulewatch.contracts.pattern import AnomalyDetectionResult

log = logging.getLogger(__name__)

ANOMALY_CSV_COLUMNS = [
    "detected_at",
    "pattern_id",
    "pattern_name",
    "severity",
    "ip_address",
    "occurrences",
    "time_window_minutes",
    "confidence",
    "risk_score",
]

ALERT_CSV_COLUMNS = [
    "id",
    "rule_id",
    "severity",
    "message",
    "timestamp",
    "status",
    "resolved_at",
]


def _atomic_write(path: str, content: str) -> None:
    """Write *content* to *path* via a temp file and rename."""
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(
        dir=str(target.parent),
        prefix=f".{target.name}.",
        suffix=".tmp",
    )
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            fh.write(content)
            fh.flush()
            os.fsync(fh.fileno())
        os.replace(tmp, path)
    except BaseException:
        try:
            os.unlink(tmp)
        except OSError:
            pass
        raise


def _csv_text(columns: list[str], rows: list[dict[str, Any]]) -> str:
    buf = io.StringIO()
    writer = csv.DictWriter(buf, fieldnames=columns, extrasaction="ignore", lineterminator="\n")
    writer.writeheader()
    writer.writerows(rows)
    return buf.getvalue()


def write_anomalies_csv(anomalies: list[AnomalyDetectionResult], path: str) -> None:
    rows = [a.to_dict() for a in sorted(anomalies, key=lambda a: a.details.detected_at)]
    _atomic_write(path, _csv_text(ANOMALY_CSV_COLUMNS, rows))
    log.info("Wrote anomalies → %s (%d rows)", path, len(rows))


def write_alerts_csv(alerts: list[Alert], path: str) -> None:
    rows = [a.to_dict() for a in alerts]
    _atomic_write(path, _csv_text(ALERT_CSV_COLUMNS, rows))
    log.info("Wrote alerts → %s (%d rows)", path, len(rows))


def render_report(
    events_total: int,
    anomaly_stats: dict[str, Any],
    alert_stats: dict[str, Any],
    top_sources: list[tuple[str, int]],
) -> str:
    lines: list[str] = []
    lines.append("=" * 60)
    lines.append("  rulewatch replay report")
    lines.append("=" * 60)
    lines.append("")
    lines.append(f"  Events replayed:  {events_total}")
    lines.append(f"  Anomalies:        {anomaly_stats['total_anomalies']}")
    sev = anomaly_stats["anomalies_by_severity"]
    lines.append("  By severity:      " + (", ".join(f"{k}={v}" for k, v in sorted(sev.items())) or "-"))
    pat = anomaly_stats["anomalies_by_pattern"]
    lines.append("  By pattern:       " + (", ".join(f"{k}={v}" for k, v in sorted(pat.items())) or "-"))
    lines.append("")
    lines.append(f"  Alerts raised:    {alert_stats['total']}")
    rules = alert_stats["by_rule"]
    lines.append("  By rule:          " + (", ".join(f"{k}={v}" for k, v in sorted(rules.items())) or "-"))
    lines.append("")
    if top_sources:
        lines.append("--- Top anomalous sources ---")
        for ip, count in top_sources:
            lines.append(f"  {ip:<40} {count}")
        lines.append("")
    return "\n".join(lines) + "\n"


def write_report_txt(content: str, path: str) -> None:
    _atomic_write(path, content)
    log.info("Wrote report → %s", path)
