"""Notification dispatch — the boundary to external channels.

Concrete channels (email, chat, webhooks) live outside rulewatch; the
engine only needs something with ``dispatch(item)``.  Dispatch is
fire-and-forget: the caller logs failures and never rolls back the
recorded alert or anomaly.
"""

from __future__ import annotations

import logging
from typing import Protocol, Union, runtime_checkable

from rulewatch.contracts.alert import Alert
from rulewatch.contracts.pattern import AnomalyDetectionResult

log = logging.getLogger(__name__)

Notification = Union[Alert, AnomalyDetectionResult]


@runtime_checkable
class NotificationDispatcher(Protocol):
    def dispatch(self, item: Notification) -> None: ...


def format_message(item: Notification) -> str:
    """One-line human readable summary of an alert or anomaly."""
    if isinstance(item, Alert):
        return f"ALERT [{item.severity.upper()}] {item.rule_id}: {item.message} ({item.status.value})"
    return (
        f"ANOMALY [{item.pattern.severity.upper()}] {item.pattern.name} "
        f"from {item.ip_address or 'unknown'}: risk={item.details.risk_score:.2f} "
        f"confidence={item.confidence:.2f} occurrences={item.details.occurrences}"
    )


class LoggingDispatcher:
    """Writes every notification to a logger at WARNING level."""

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self._log = logger or logging.getLogger("rulewatch.notifications")

    def dispatch(self, item: Notification) -> None:
        self._log.warning("%s", format_message(item))


class CompositeDispatcher:
    """Fans a notification out to several channels.

    A failing channel is logged and skipped; the rest still receive it.
    """

    def __init__(self, channels: list[NotificationDispatcher] | None = None) -> None:
        self.channels: list[NotificationDispatcher] = list(channels or [])

    def add(self, channel: NotificationDispatcher) -> None:
        self.channels.append(channel)

    def dispatch(self, item: Notification) -> None:
        for channel in self.channels:
            try:
                channel.dispatch(item)
            except Exception:
                log.exception("Channel %s failed to deliver notification", type(channel).__name__)


def safe_dispatch(dispatcher: NotificationDispatcher | None, item: Notification) -> bool:
    """Dispatch *item*, logging any failure.  Returns True on success."""
    if dispatcher is None:
        return False
    try:
        dispatcher.dispatch(item)
    except Exception:
        ident = item.id if isinstance(item, Alert) else item.pattern.id
        log.exception("Failed to dispatch notification for %s", ident)
        return False
    return True
