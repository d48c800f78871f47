"""Event schemas and the in-process broadcast bus.

Every event crossing a component boundary is one of the models below. Payloads
are validated when the model is built, so subscribers can trust the shape.
"""

from __future__ import annotations

import logging
from collections import defaultdict, deque
from typing import Any, Callable, ClassVar

from pydantic import BaseModel, ConfigDict, Field


logger = logging.getLogger(__name__)


class StageEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: ClassVar[str] = "event"

    def to_message(self) -> dict[str, Any]:
        return {"type": self.name, "payload": self.model_dump()}


ParticipantId = str


class ActivationRequested(StageEvent):
    name: ClassVar[str] = "activation-requested"

    participant: ParticipantId = Field(min_length=1)
    pack_id: str = Field(min_length=1)


class ReleaseRequested(StageEvent):
    name: ClassVar[str] = "release-requested"

    participant: ParticipantId | None = None


class ActivePackChanged(StageEvent):
    name: ClassVar[str] = "active-pack-changed"

    # Empty string means no pack is loaded.
    pack_id: str = ""


class ControllerChanged(StageEvent):
    name: ClassVar[str] = "controller-changed"

    participant: ParticipantId | None = None


class PlayStateChanged(StageEvent):
    name: ClassVar[str] = "play-state-changed"

    is_playing: bool


class BalanceChanged(StageEvent):
    name: ClassVar[str] = "balance-changed"

    participant: ParticipantId
    balance: int = Field(ge=0)


class InventoryChanged(StageEvent):
    name: ClassVar[str] = "inventory-changed"

    participant: ParticipantId


class PurchaseRequested(StageEvent):
    name: ClassVar[str] = "purchase-requested"

    participant: ParticipantId = Field(min_length=1)
    pack_id: str = Field(min_length=1)
    cost: int = Field(ge=0)


class ParticipantJoined(StageEvent):
    name: ClassVar[str] = "participant-joined"

    participant: ParticipantId = Field(min_length=1)


class ParticipantLeft(StageEvent):
    name: ClassVar[str] = "participant-left"

    participant: ParticipantId = Field(min_length=1)


class ParticipantIdle(StageEvent):
    name: ClassVar[str] = "participant-idle"

    participant: ParticipantId = Field(min_length=1)


class ParticipantActive(StageEvent):
    name: ClassVar[str] = "participant-active"

    participant: ParticipantId = Field(min_length=1)


class ParticipantExcluded(StageEvent):
    name: ClassVar[str] = "participant-excluded"

    participant: ParticipantId = Field(min_length=1)
    excluded: bool = True


class CourseCompleted(StageEvent):
    name: ClassVar[str] = "course-completed"

    participant: ParticipantId = Field(min_length=1)


class Notification(StageEvent):
    name: ClassVar[str] = "notification"

    message: str
    participants: tuple[ParticipantId, ...] = ()


Handler = Callable[[Any], Any]


class EventBus:
    """Synchronous broadcast bus.

    Each event is delivered to every subscriber, in subscription order, before
    the next one starts. Events published from inside a handler are queued
    behind the event being delivered. A subscriber that raises is logged and
    skipped so presentation failures never block core state.
    """

    def __init__(self) -> None:
        self._handlers: dict[type[StageEvent], list[Handler]] = defaultdict(list)
        self._catch_all: list[Handler] = []
        self._queue: deque[StageEvent] = deque()
        self._dispatching = False

    def subscribe(self, event_type: type[StageEvent], handler: Handler) -> None:
        self._handlers[event_type].append(handler)

    def subscribe_all(self, handler: Handler) -> None:
        self._catch_all.append(handler)

    def publish(self, event: StageEvent) -> None:
        self._queue.append(event)
        if self._dispatching:
            return
        self._dispatching = True
        try:
            while self._queue:
                self._deliver(self._queue.popleft())
        finally:
            self._dispatching = False

    def _deliver(self, event: StageEvent) -> None:
        handlers = list(self._handlers.get(type(event), [])) + list(self._catch_all)
        for handler in handlers:
            try:
                handler(event)
            except Exception:
                logger.exception("Subscriber %r failed on %s", handler, event.name)
