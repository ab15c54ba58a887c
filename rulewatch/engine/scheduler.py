"""Alert scheduler — periodic evaluation of alert rules.

Per-rule lifecycle on every tick
────────────────────────────────
  Idle → Evaluating → Cooling-down   condition true and cooldown elapsed: alert raised
                    → Idle           condition false, still cooling down, or check failed

Rules are awaited one after another.  A rule whose check raises is logged
under its id and skipped for this tick only; there is no retry until the
next natural tick.  Ticks never overlap.

``rule.last_triggered`` is the cooldown's source of truth; setting it back
to ``None`` re-arms the rule on the next tick.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Awaitable, Callable

from rulewatch.contracts.alert import Alert, AlertRule
from rulewatch.engine.cooldown import CooldownGate
from rulewatch.engine.dispatcher import NotificationDispatcher, safe_dispatch
from rulewatch.engine.ledger import AlertLedger
from rulewatch.engine.metrics import MetricsProvider
from rulewatch.engine.rules import AlertRuleRegistry
from rulewatch.shared.clock import Clock, utcnow

log = logging.getLogger(__name__)

DEFAULT_INTERVAL_SEC = 30.0


class AlertScheduler:
    def __init__(
        self,
        registry: AlertRuleRegistry,
        metrics: MetricsProvider,
        ledger: AlertLedger,
        dispatcher: NotificationDispatcher | None = None,
        cooldown: CooldownGate | None = None,
        interval_sec: float = DEFAULT_INTERVAL_SEC,
        clock: Clock = utcnow,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        if interval_sec <= 0:
            raise ValueError("interval_sec must be > 0")
        self.registry = registry
        self.metrics = metrics
        self.ledger = ledger
        self.dispatcher = dispatcher
        self.cooldown = cooldown or CooldownGate()
        self.interval_sec = interval_sec
        self._clock = clock
        self._sleep = sleep
        self._task: asyncio.Task[None] | None = None
        self._ticking = False
        self.ticks = 0

    # ── lifecycle ─────────────────────────────────────────────────────────

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start the recurring loop on the running event loop.  Idempotent."""
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(
            self._run(), name="rulewatch-alert-scheduler"
        )
        log.info(
            "Alert scheduler started: %d rules, every %.0fs",
            len(self.registry), self.interval_sec,
        )

    async def stop(self) -> None:
        """Cancel the loop and wait for it to finish."""
        task = self._task
        self.close()
        if task is not None:
            with contextlib.suppress(asyncio.CancelledError):
                await task

    def close(self) -> None:
        """Cancel the loop without waiting.  Safe to call more than once."""
        if self._task is not None:
            self._task.cancel()
            self._task = None
            log.info("Alert scheduler stopped after %d ticks", self.ticks)

    async def _run(self) -> None:
        while True:
            try:
                await self.tick()
            except Exception:
                log.exception("Alert scheduler tick failed")
            await self._sleep(self.interval_sec)

    # ── evaluation ────────────────────────────────────────────────────────

    async def tick(self) -> list[Alert]:
        """Evaluate every enabled rule once; return the alerts raised.

        A tick requested while another is still running is skipped.
        """
        if self._ticking:
            log.debug("Previous tick still running — skipped")
            return []
        self._ticking = True
        raised: list[Alert] = []
        try:
            for rule in self.registry.enabled():
                alert = await self._evaluate_rule(rule)
                if alert is not None:
                    raised.append(alert)
        finally:
            self._ticking = False
            self.ticks += 1
        return raised

    async def _evaluate_rule(self, rule: AlertRule) -> Alert | None:
        try:
            should_fire = await rule.condition.check(self.metrics)
        except Exception:
            log.exception("Error checking alert rule %s", rule.id)
            return None
        if not should_fire:
            return None

        now = self._clock()
        self.cooldown.sync(rule.id, rule.last_triggered)
        if not self.cooldown.can_fire(rule.id, rule.cooldown_seconds, now):
            return None

        alert = Alert.from_rule(rule, now)
        if self.ledger.get(alert.id) is not None:
            alert.id = f"{alert.id}-{self.ticks}"
        self.ledger.append(alert)
        self.cooldown.record(rule.id, now)
        rule.last_triggered = now
        log.warning("ALERT [%s] %s: %s", rule.severity.upper(), rule.name, rule.message)
        safe_dispatch(self.dispatcher, alert)
        return alert
