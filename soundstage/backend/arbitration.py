"""Single-writer lock over the stage machine.

The controller owns who holds the machine, which pack is loaded, the play
signal, and the per-participant AFK release timers. Every mutating handler
re-checks its precondition when it runs, because request, presence and timer
events can arrive in any order.
"""

from __future__ import annotations

import logging

from soundstage.backend.events import (
    ActivePackChanged,
    ControllerChanged,
    EventBus,
    PlayStateChanged,
)
from soundstage.backend.ledgers import UnlockLedger
from soundstage.backend.models import ActivationOutcome, ResourceLock, Scheduler, TimerHandle
from soundstage.backend.presence import PresenceRegistry


logger = logging.getLogger(__name__)

DEFAULT_AFK_TIMEOUT_SECONDS = 90.0


class ArbitrationController:
    def __init__(
        self,
        unlocks: UnlockLedger,
        presence: PresenceRegistry,
        bus: EventBus,
        scheduler: Scheduler,
        afk_timeout_seconds: float = DEFAULT_AFK_TIMEOUT_SECONDS,
    ) -> None:
        self._unlocks = unlocks
        self._presence = presence
        self._bus = bus
        self._scheduler = scheduler
        self._afk_timeout_seconds = afk_timeout_seconds
        self._lock = ResourceLock()
        self._playing = False
        self._afk_timers: dict[str, TimerHandle] = {}

    @property
    def lock(self) -> ResourceLock:
        return self._lock

    @property
    def controller(self) -> str | None:
        return self._lock.controller_id

    @property
    def active_pack_id(self) -> str | None:
        return self._lock.active_pack_id

    @property
    def is_playing(self) -> bool:
        return self._playing

    def has_pending_afk_release(self, participant: str) -> bool:
        return participant in self._afk_timers

    def request_activation(self, participant: str, pack_id: str) -> ActivationOutcome:
        if not self._presence.is_present(participant):
            logger.info("%s is not in the world; activation of %r ignored", participant, pack_id)
            return ActivationOutcome.DENIED_ABSENT

        if not self._unlocks.has_unlocked(participant, pack_id):
            logger.info("%s tried to activate pack %r without owning it", participant, pack_id)
            return ActivationOutcome.DENIED_NOT_OWNED

        holder = self._lock.controller_id
        if holder is not None and holder != participant:
            # A holder who left without releasing must not block the stage.
            self.release_if_absent(holder)
            holder = self._lock.controller_id
        if holder is not None and holder != participant:
            logger.info("Stage already in use by %s; request by %s ignored", holder, participant)
            return ActivationOutcome.DENIED_BUSY

        outcome = ActivationOutcome.SWAPPED if holder == participant else ActivationOutcome.GRANTED
        self._cancel_afk_timer(participant)
        was_playing = self._playing
        self._lock = ResourceLock(active_pack_id=pack_id, controller_id=participant)
        self._playing = True
        logger.info("%s now controls the stage with %s (%s)", participant, pack_id, outcome.value)

        self._bus.publish(ActivePackChanged(pack_id=pack_id))
        self._bus.publish(ControllerChanged(participant=participant))
        if not was_playing:
            self._bus.publish(PlayStateChanged(is_playing=True))
        return outcome

    def release(self, participant: str | None) -> bool:
        """Return the stage to Idle when ``participant`` holds it.

        A lock with a pack but no controller is stale and is cleared for any
        caller, including a system-initiated release (``participant=None``).
        """
        lock = self._lock
        holds_lock = participant is not None and lock.controller_id == participant
        stale_lock = lock.controller_id is None and lock.active_pack_id is not None
        if not (holds_lock or stale_lock):
            return False

        if participant is not None:
            self._cancel_afk_timer(participant)
        self._lock = ResourceLock()
        self._playing = False
        logger.info("Stage released by %s", participant or "system")

        self._bus.publish(ActivePackChanged(pack_id=""))
        self._bus.publish(ControllerChanged(participant=None))
        self._bus.publish(PlayStateChanged(is_playing=False))
        return True

    def release_if_absent(self, participant: str) -> bool:
        if self._presence.is_present(participant):
            return False
        return self.release(participant)

    def on_participant_idle(self, participant: str) -> None:
        if participant != self._lock.controller_id:
            return
        self._cancel_afk_timer(participant)
        self._afk_timers[participant] = self._scheduler.call_later(
            self._afk_timeout_seconds,
            lambda: self._expire_afk(participant),
        )
        logger.info("%s went AFK; releasing in %.0fs unless they return", participant, self._afk_timeout_seconds)

    def on_participant_active(self, participant: str) -> None:
        self._cancel_afk_timer(participant)

    def _expire_afk(self, participant: str) -> None:
        self._afk_timers.pop(participant, None)
        logger.info("%s has been AFK for %.0fs", participant, self._afk_timeout_seconds)
        self.release(participant)

    def _cancel_afk_timer(self, participant: str) -> None:
        handle = self._afk_timers.pop(participant, None)
        if handle is not None:
            handle.cancel()
