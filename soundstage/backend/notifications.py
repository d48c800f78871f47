"""User-facing notification channels."""

from __future__ import annotations

import logging
from typing import Iterable, Protocol

from soundstage.backend.events import EventBus, Notification


logger = logging.getLogger(__name__)


class Notifier(Protocol):
    def notify(self, message: str, participants: Iterable[str] = ()) -> None:
        """Show a message to the given participants, or to everyone when empty."""


class LoggingNotifier:
    """Fallback used when no notification channel is wired up."""

    def notify(self, message: str, participants: Iterable[str] = ()) -> None:
        targets = list(participants) or ["everyone"]
        for target in targets:
            logger.info("[Notification to %s] %s", target, message)


class BusNotifier:
    def __init__(self, bus: EventBus) -> None:
        self._bus = bus

    def notify(self, message: str, participants: Iterable[str] = ()) -> None:
        targets = tuple(participants)
        logger.debug("[Notification to %s] %s", ", ".join(targets) or "everyone", message)
        self._bus.publish(Notification(message=message, participants=targets))
