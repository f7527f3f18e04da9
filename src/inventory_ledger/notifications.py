"""Outbound notifications after stock commands.

Delivery is best effort and runs after the stock transaction has committed; a
failure here is logged and never undoes the command that triggered it.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping, Protocol

logger = logging.getLogger(__name__)


class Notifier(Protocol):
    def send(self, event: str, payload: Mapping[str, Any]) -> None: ...


class LoggingNotifier:
    """Default notifier: writes the event to the log."""

    def send(self, event: str, payload: Mapping[str, Any]) -> None:
        logger.info("notification %s %s", event, dict(payload))


_notifier: Notifier = LoggingNotifier()


def get_notifier() -> Notifier:
    return _notifier


def set_notifier(notifier: Notifier) -> None:
    global _notifier
    _notifier = notifier


def notify_safely(notifier: Notifier, event: str, payload: Mapping[str, Any]) -> bool:
    """Send ``event`` and report whether it went through."""

    try:
        notifier.send(event, payload)
    except Exception:
        logger.exception("Notification %s failed", event)
        return False
    return True
