"""Tests for rulewatch.engine.detector and rulewatch.engine.scoring."""

from __future__ import annotations

import itertools
import logging

import pytest

from rulewatch.engine.correlator import EventCorrelator
from rulewatch.engine.detector import AnomalyEvaluator
from rulewatch.engine.patterns import PatternRuleRegistry
from rulewatch.engine.scoring import frequency_multiplier, risk_score, severity_multiplier
from tests.conftest import make_event, make_pattern, ts_offset


def _by_id(results, pattern_id):
    return next(r for r in results if r.pattern.id == pattern_id)


@pytest.fixture
def evaluator(clock):
    return AnomalyEvaluator(PatternRuleRegistry(), EventCorrelator(), clock=clock)


# ═══════════════════════════════════════════════════════════════════════════
#  Risk scoring
# ═══════════════════════════════════════════════════════════════════════════


class TestScoring:
    def test_severity_multipliers(self):
        assert severity_multiplier("low") == 1.2
        assert severity_multiplier("medium") == 1.5
        assert severity_multiplier("high") == 2.0
        assert severity_multiplier("critical") == 3.0

    def test_frequency_multiplier(self):
        assert frequency_multiplier(0) == 1.0
        assert frequency_multiplier(5) == pytest.approx(1.5)
        assert frequency_multiplier(20) == 3.0
        assert frequency_multiplier(500) == 3.0

    def test_formula(self):
        # 0.2 × 2.0 × 1.5 × 1.5
        assert risk_score(0.2, "high", 0.5, 5) == pytest.approx(0.9)

    def test_clamped_to_one(self):
        assert risk_score(1.0, "critical", 1.3, 100) == 1.0

    def test_always_in_unit_interval(self):
        for base, sev, conf, occ in itertools.product(
            (0.0, 0.1, 0.5, 1.0),
            ("low", "medium", "high", "critical"),
            (0.0, 0.3, 0.8, 1.1),
            (0, 1, 5, 50, 1000),
        ):
            assert 0.0 <= risk_score(base, sev, conf, occ) <= 1.0


# ═══════════════════════════════════════════════════════════════════════════
#  Built-in patterns
# ═══════════════════════════════════════════════════════════════════════════


class TestFailedLogins:
    def test_fifth_event_in_window_is_anomaly(self, evaluator):
        outcomes = []
        for i in range(5):
            results = evaluator.evaluate(
                make_event(type="login", ip_address="1.2.3.4", timestamp=ts_offset(seconds=60 * i))
            )
            outcomes.append(_by_id(results, "multiple_failed_logins"))

        assert [r.is_anomaly for r in outcomes] == [False, False, False, False, True]
        assert outcomes[4].details.occurrences == 5
        assert outcomes[4].details.time_window_minutes == 15
        assert outcomes[4].confidence == pytest.approx(0.5)
        assert outcomes[4].details.risk_score == pytest.approx(0.9)

    def test_threshold_minus_one_is_not_anomaly(self, evaluator):
        for i in range(4):
            results = evaluator.evaluate(make_event(timestamp=ts_offset(seconds=i)))
        last = _by_id(results, "multiple_failed_logins")
        assert last.is_anomaly is False
        assert last.details.occurrences == 4

    def test_events_spread_beyond_window_do_not_fire(self, evaluator):
        for i in range(5):
            results = evaluator.evaluate(make_event(timestamp=ts_offset(seconds=i * 5 * 60)))
        # window of 15 minutes only holds events at 5, 10, 15, 20 minutes
        last = _by_id(results, "multiple_failed_logins")
        assert last.is_anomaly is False
        assert last.details.occurrences == 4

    def test_different_ips_counted_separately(self, evaluator):
        for i in range(5):
            results = evaluator.evaluate(
                make_event(ip_address=f"10.0.0.{i % 2}", timestamp=ts_offset(seconds=i))
            )
        assert not _by_id(results, "multiple_failed_logins").is_anomaly

    def test_other_event_types_still_counted_toward_key(self, evaluator):
        # occurrences count every recorded event from the source, not only logins
        for i in range(4):
            evaluator.evaluate(make_event(type="api_access", timestamp=ts_offset(seconds=i)))
        results = evaluator.evaluate(make_event(type="login", timestamp=ts_offset(seconds=5)))
        assert _by_id(results, "multiple_failed_logins").is_anomaly is True

    def test_type_mismatch_skipped_with_zero_confidence(self, evaluator):
        results = evaluator.evaluate(make_event(type="logout"))
        r = _by_id(results, "multiple_failed_logins")
        assert r.is_anomaly is False
        assert r.confidence == 0.0
        assert r.details.risk_score == 0.0


class TestSuspiciousUserAgent:
    def test_curl_fires_on_first_event(self, evaluator):
        results = evaluator.evaluate(
            make_event(type="login-success", user_agent="python-requests/curl-test")
        )
        r = _by_id(results, "suspicious_user_agent")
        assert r.is_anomaly is True
        assert 0.3 <= r.confidence <= 1.1
        assert r.confidence == pytest.approx(1.1)
        assert r.details.occurrences == 0
        # 0.2 × 1.5 × 2.1 × 1
        assert r.details.risk_score == pytest.approx(0.63)

    def test_nan_risk_score_uses_severity_baseline(self, evaluator):
        results = evaluator.evaluate(make_event(user_agent="curl", risk_score=float("nan")))
        r = _by_id(results, "suspicious_user_agent")
        assert r.details.risk_score == pytest.approx(0.63)

    def test_match_is_case_insensitive(self, evaluator):
        results = evaluator.evaluate(make_event(user_agent="Googlebot/2.1"))
        assert _by_id(results, "suspicious_user_agent").is_anomaly

    def test_missing_user_agent_no_match(self, evaluator):
        results = evaluator.evaluate(make_event(user_agent=None))
        assert not _by_id(results, "suspicious_user_agent").is_anomaly

    def test_browser_user_agent_no_match(self, evaluator):
        results = evaluator.evaluate(make_event(user_agent="Mozilla/5.0 (X11; Linux x86_64)"))
        assert not _by_id(results, "suspicious_user_agent").is_anomaly


# ═══════════════════════════════════════════════════════════════════════════
#  Evaluator mechanics
# ═══════════════════════════════════════════════════════════════════════════


class TestEvaluator:
    def test_one_result_per_enabled_pattern(self, evaluator):
        assert len(evaluator.evaluate(make_event())) == 3
        evaluator.registry.disable("rapid_api_calls")
        results = evaluator.evaluate(make_event())
        assert len(results) == 2
        assert all(r.pattern.id != "rapid_api_calls" for r in results)

    def test_event_recorded_once_per_evaluate(self, evaluator):
        evaluator.evaluate(make_event())
        assert evaluator.correlator.bucket_size("1.2.3.4") == 1

    def test_detected_at_uses_clock(self, evaluator, clock):
        clock.advance(42)
        r = evaluator.evaluate(make_event())[0]
        assert r.details.detected_at == clock()

    def test_endpoint_adds_confidence(self, clock):
        registry = PatternRuleRegistry(definitions=[])
        registry.add(make_pattern(id="admin_bot", user_agent="bot", endpoint="^/admin"))
        ev = AnomalyEvaluator(registry, clock=clock)
        r = ev.evaluate(make_event(user_agent="evilbot", endpoint="/admin/users"))[0]
        assert r.is_anomaly
        assert r.confidence == pytest.approx(0.3 + 0.2 + 0.8)

    def test_endpoint_mismatch_skips(self, clock):
        registry = PatternRuleRegistry(definitions=[])
        registry.add(make_pattern(id="admin", endpoint="^/admin"))
        ev = AnomalyEvaluator(registry, clock=clock)
        assert not ev.evaluate(make_event(endpoint="/public"))[0].is_anomaly
        assert not ev.evaluate(make_event(endpoint=None))[0].is_anomaly

    def test_pattern_failure_isolated(self, clock, caplog):
        registry = PatternRuleRegistry(definitions=[])
        registry.add(make_pattern(id="windowed", time_window_minutes=5, threshold=1))
        registry.add(make_pattern(id="ua", user_agent="curl"))
        ev = AnomalyEvaluator(registry, clock=clock)

        # unparsable timestamp breaks the window count for the first pattern only
        with caplog.at_level(logging.ERROR):
            results = ev.evaluate(make_event(timestamp="not-a-time", user_agent="curl/8"))

        assert _by_id(results, "windowed").is_anomaly is False
        assert _by_id(results, "ua").is_anomaly is True
        assert "windowed" in caplog.text

    def test_threshold_one_fires_immediately(self, clock):
        registry = PatternRuleRegistry(definitions=[])
        registry.add(make_pattern(id="csrf", event_type="csrf-violation",
                                  time_window_minutes=1, threshold=1, severity="critical"))
        ev = AnomalyEvaluator(registry, clock=clock)
        r = ev.evaluate(make_event(type="csrf-violation", severity="high"))[0]
        assert r.is_anomaly
        # 0.7 × 3.0 × 1.5 × 1.1 clamps to 1
        assert r.details.risk_score == 1.0
