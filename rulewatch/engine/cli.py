"""CLI entry-point for replaying security-event logs.

Usage examples
--------------
# Replay a CSV log with the built-in rules:
rulewatch --input data/security_events.csv

# JSONL log, custom rules and a metrics snapshot for one alert pass:
rulewatch --input data/events.jsonl --config-dir config --metrics data/metrics.yaml
"""

from __future__ import annotations

import argparse

from rulewatch.engine.pipeline import run_replay
from rulewatch.shared.logger import setup_logging


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="rulewatch",
        description="rulewatch — replay security events through anomaly patterns and alert rules",
    )
    p.add_argument(
        "--input",
        required=True,
        help="Input file (CSV or JSONL). Format auto-detected by extension.",
    )
    p.add_argument(
        "--out-dir",
        default="out",
        help="Output directory. Default: out/",
    )
    p.add_argument(
        "--config-dir",
        default="config",
        help="Directory with engine.yaml, patterns.yaml, alert_rules.yaml. Default: config/",
    )
    p.add_argument(
        "--metrics",
        default=None,
        help="YAML metrics snapshot; when given, alert rules are evaluated once.",
    )
    p.add_argument(
        "--top",
        type=int,
        default=10,
        help="Number of top anomalous sources in the report. Default: 10",
    )
    p.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level. Default: INFO",
    )
    return p


def main(argv: list[str] | None = None) -> None:
    args = build_parser().parse_args(argv)
    setup_logging(args.log_level)

    result = run_replay(
        input_path=args.input,
        out_dir=args.out_dir,
        config_dir=args.config_dir,
        metrics_path=args.metrics,
        top_n=args.top,
    )
    print(
        f"Replayed {result['events']} events: "
        f"{len(result['anomalies'])} anomalies, {len(result['alerts'])} alerts → {args.out_dir}/"
    )


if __name__ == "__main__":
    main()
