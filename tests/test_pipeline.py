"""Tests for rulewatch.engine.pipeline / reporter / cli — offline replay."""

from __future__ import annotations

import csv
import json

import pytest

from rulewatch.contracts.event import CSV_COLUMNS
from rulewatch.engine.cli import build_parser, main
from rulewatch.engine.pipeline import load_events, replay, run_replay
from rulewatch.engine.reporter import ANOMALY_CSV_COLUMNS, render_report
from tests.conftest import make_event, ts_offset


def _write_csv(path, events):
    with open(path, "w", encoding="utf-8", newline="") as fh:
        writer = csv.DictWriter(fh, fieldnames=CSV_COLUMNS)
        writer.writeheader()
        for e in events:
            writer.writerow({c: getattr(e, c) if getattr(e, c) is not None else "" for c in CSV_COLUMNS})


def _write_jsonl(path, events, extra_lines=()):
    with open(path, "w", encoding="utf-8") as fh:
        for e in events:
            fh.write(e.to_json() + "\n")
        for line in extra_lines:
            fh.write(line + "\n")


@pytest.fixture
def brute_force_events():
    # deliberately out of order; replay sorts by timestamp
    return [
        make_event(type="login", ip_address="1.2.3.4", timestamp=ts_offset(seconds=60 * i))
        for i in (4, 0, 2, 1, 3)
    ]


class TestLoaders:
    def test_csv(self, tmp_path, brute_force_events):
        path = tmp_path / "events.csv"
        _write_csv(path, brute_force_events)
        events = load_events(str(path))
        assert len(events) == 5
        assert events[0].user_agent is None
        assert events[0].type == "login"

    def test_jsonl_skips_bad_lines(self, tmp_path, brute_force_events):
        path = tmp_path / "events.jsonl"
        _write_jsonl(path, brute_force_events, extra_lines=["{not json", ""])
        assert len(load_events(str(path))) == 5


class TestReplay:
    def test_replay_follows_event_time(self, brute_force_events):
        engine = replay(brute_force_events)
        (anomaly,) = engine.get_anomaly_history()
        assert anomaly.pattern.id == "multiple_failed_logins"
        assert anomaly.details.occurrences == 5
        assert anomaly.details.detected_at.isoformat().startswith("2026-02-26T10:04:00")

    def test_replay_drops_bad_timestamps(self, brute_force_events):
        events = brute_force_events[:4] + [make_event(timestamp="garbage")]
        engine = replay(events)
        assert engine.get_anomaly_history() == []

    def test_replay_empty(self):
        engine = replay([])
        assert engine.get_anomaly_stats()["total_anomalies"] == 0


class TestRunReplay:
    def test_writes_outputs(self, tmp_path, brute_force_events):
        src = tmp_path / "events.csv"
        _write_csv(src, brute_force_events + [make_event(ip_address="9.9.9.9", user_agent="curl/8")])
        out = tmp_path / "out"

        result = run_replay(str(src), out_dir=str(out), config_dir=None)

        assert result["events"] == 6
        assert len(result["anomalies"]) == 2
        assert result["alerts"] == []
        with open(out / "anomalies.csv", encoding="utf-8") as fh:
            rows = list(csv.DictReader(fh))
        assert list(rows[0].keys()) == ANOMALY_CSV_COLUMNS
        assert {r["pattern_id"] for r in rows} == {"multiple_failed_logins", "suspicious_user_agent"}
        report = (out / "report.txt").read_text(encoding="utf-8")
        assert "Events replayed:  6" in report
        assert "1.2.3.4" in report
        assert (out / "alerts.csv").read_text(encoding="utf-8").startswith("id,rule_id")

    def test_metrics_snapshot_runs_alert_pass(self, tmp_path, brute_force_events):
        src = tmp_path / "events.jsonl"
        _write_jsonl(src, brute_force_events)
        snap = tmp_path / "metrics.yaml"
        snap.write_text(
            "metrics:\n"
            "  cpu_usage_percent:\n"
            "    - value: 97\n"
            "  auth_failures_total:\n"
            + "".join(
                f"    - {{value: 1, timestamp: '{ts_offset(seconds=240 - i)}'}}\n" for i in range(11)
            ),
            encoding="utf-8",
        )
        result = run_replay(str(src), out_dir=str(tmp_path / "out"), config_dir=None,
                            metrics_path=str(snap))
        assert sorted(a.rule_id for a in result["alerts"]) == ["high_auth_failures", "high_cpu_usage"]

    def test_missing_config_dir_falls_back(self, tmp_path, brute_force_events):
        src = tmp_path / "events.csv"
        _write_csv(src, brute_force_events)
        result = run_replay(str(src), out_dir=str(tmp_path / "out"),
                            config_dir=str(tmp_path / "nope"))
        assert len(result["anomalies"]) == 1


class TestReport:
    def test_render_empty(self):
        text = render_report(
            0,
            {"total_anomalies": 0, "anomalies_by_severity": {}, "anomalies_by_pattern": {},
             "recent_anomalies": 0},
            {"total": 0, "by_rule": {}},
            [],
        )
        assert "Anomalies:        0" in text
        assert "Top anomalous sources" not in text


class TestCli:
    def test_parser_defaults(self):
        args = build_parser().parse_args(["--input", "x.csv"])
        assert args.out_dir == "out"
        assert args.config_dir == "config"
        assert args.metrics is None
        assert args.log_level == "INFO"

    def test_input_required(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])

    def test_main(self, tmp_path, brute_force_events, capsys):
        src = tmp_path / "events.jsonl"
        _write_jsonl(src, brute_force_events)
        out = tmp_path / "out"
        main(["--input", str(src), "--out-dir", str(out), "--config-dir", str(tmp_path / "none"),
              "--log-level", "WARNING"])
        assert "1 anomalies" in capsys.readouterr().out
        assert json.loads(brute_force_events[0].to_json())["type"] == "login"
        assert (out / "report.txt").exists()
