"""Detector — evaluate one SecurityEvent against every enabled pattern.

For each incoming event the detector records it with the correlator once,
then walks the enabled patterns in registry order.  Every enabled pattern
yields exactly one result; callers filter on ``is_anomaly``.

Confidence is accumulated per matched sub-condition
────────────────────────────────────────────────────
  user_agent regex match      +0.3
  endpoint regex match        +0.2
  time-window threshold hit   +0.5
  attribute-only pattern hit  +0.8
"""

from __future__ import annotations

import logging

from rulewatch.contracts.event import SecurityEvent
from rulewatch.contracts.pattern import AnomalyDetails, AnomalyDetectionResult, AnomalyPattern
from rulewatch.engine.correlator import EventCorrelator
from rulewatch.engine.patterns import PatternRuleRegistry
from rulewatch.engine.scoring import risk_score
from rulewatch.shared.clock import Clock, utcnow

log = logging.getLogger(__name__)

_UA_WEIGHT = 0.3
_ENDPOINT_WEIGHT = 0.2
_THRESHOLD_WEIGHT = 0.5
_ATTRIBUTE_WEIGHT = 0.8


class AnomalyEvaluator:
    def __init__(
        self,
        registry: PatternRuleRegistry,
        correlator: EventCorrelator | None = None,
        clock: Clock = utcnow,
    ) -> None:
        self.registry = registry
        self.correlator = correlator or EventCorrelator()
        self._clock = clock

    def evaluate(self, event: SecurityEvent) -> list[AnomalyDetectionResult]:
        """Return one result per enabled pattern for *event*."""
        try:
            self.correlator.record(event)
        except ValueError as exc:
            log.error("Could not record event from %s: %s", event.ip_address, exc)

        results: list[AnomalyDetectionResult] = []
        for pattern in self.registry.enabled():
            results.append(self._check_pattern(event, pattern))

        hits = sum(1 for r in results if r.is_anomaly)
        if hits:
            log.info(
                "Event %s from %s matched %d/%d patterns",
                event.type, event.ip_address, hits, len(results),
            )
        return results

    def _check_pattern(
        self,
        event: SecurityEvent,
        pattern: AnomalyPattern,
    ) -> AnomalyDetectionResult:
        spec = pattern.patterns
        result = AnomalyDetectionResult(
            is_anomaly=False,
            confidence=0.0,
            pattern=pattern,
            details=AnomalyDetails(
                detected_at=self._clock(),
                time_window_minutes=spec.time_window_minutes or 0,
            ),
            ip_address=event.ip_address,
        )

        try:
            if spec.event_type is not None and event.type != spec.event_type:
                return result

            if pattern.user_agent_re is not None:
                if not event.user_agent or not pattern.user_agent_re.search(event.user_agent):
                    return result
                result.confidence += _UA_WEIGHT

            if pattern.endpoint_re is not None:
                if not event.endpoint or not pattern.endpoint_re.search(event.endpoint):
                    return result
                result.confidence += _ENDPOINT_WEIGHT

            if spec.is_time_based:
                occurrences = self.correlator.count_in_window(event, spec.time_window_minutes)
                result.details.occurrences = occurrences
                if occurrences >= spec.threshold:
                    result.is_anomaly = True
                    result.confidence += _THRESHOLD_WEIGHT
            else:
                result.is_anomaly = True
                result.confidence += _ATTRIBUTE_WEIGHT

            result.details.risk_score = risk_score(
                event.base_score,
                pattern.severity,
                result.confidence,
                result.details.occurrences,
            )
        except Exception:
            log.exception("Error checking anomaly pattern %s", pattern.id)
            result.is_anomaly = False

        return result
