"""Wires ledgers, presence, arbitration and accrual into one stage runtime."""

from __future__ import annotations

import asyncio
import logging
from functools import singledispatchmethod
from typing import Any, Awaitable, Callable

from soundstage.backend.accrual import AccrualEngine
from soundstage.backend.arbitration import DEFAULT_AFK_TIMEOUT_SECONDS, ArbitrationController
from soundstage.backend.events import (
    ActivationRequested,
    CourseCompleted,
    EventBus,
    ParticipantActive,
    ParticipantExcluded,
    ParticipantIdle,
    ParticipantJoined,
    ParticipantLeft,
    PurchaseRequested,
    ReleaseRequested,
    StageEvent,
)
from soundstage.backend.ledgers import RewardLedger, UnlockLedger
from soundstage.backend.models import PurchaseResult, Scheduler, TimerHandle
from soundstage.backend.notifications import BusNotifier, Notifier
from soundstage.backend.packs import find_offer, pack_bit
from soundstage.backend.presence import PresenceRegistry
from soundstage.backend.rewards import CourseReward, InMemoryLeaderboard, LeaderboardSync
from soundstage.backend.state import build_stage_state
from soundstage.backend.store import InMemoryPlayerStore, PlayerStore


logger = logging.getLogger(__name__)

INBOUND_EVENTS: tuple[type[StageEvent], ...] = (
    ActivationRequested,
    ReleaseRequested,
    PurchaseRequested,
    ParticipantJoined,
    ParticipantLeft,
    ParticipantIdle,
    ParticipantActive,
    ParticipantExcluded,
    CourseCompleted,
)


class AsyncioScheduler:
    """Runs deferred callbacks on the running asyncio loop.

    ``after_fire`` is awaited after each callback so broadcasts caused by a
    timer reach clients without waiting for the next request.
    """

    def __init__(self, after_fire: Callable[[], Awaitable[None]] | None = None) -> None:
        self.after_fire = after_fire
        self._tasks: set[asyncio.Task[None]] = set()

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        loop = asyncio.get_running_loop()

        def fire() -> None:
            callback()
            if self.after_fire is not None:
                task = loop.create_task(self.after_fire())
                self._tasks.add(task)
                task.add_done_callback(self._tasks.discard)

        return loop.call_later(delay, fire)


class StageRuntime:
    def __init__(
        self,
        store: PlayerStore | None = None,
        scheduler: Scheduler | None = None,
        notifier: Notifier | None = None,
        afk_timeout_seconds: float = DEFAULT_AFK_TIMEOUT_SECONDS,
    ) -> None:
        self.bus = EventBus()
        self.store = store if store is not None else InMemoryPlayerStore()
        self.scheduler = scheduler if scheduler is not None else AsyncioScheduler()
        self.notifier = notifier if notifier is not None else BusNotifier(self.bus)
        self.presence = PresenceRegistry()
        self.unlocks = UnlockLedger(self.store, self.bus)
        self.rewards = RewardLedger(self.store, self.bus)
        self.controller = ArbitrationController(
            unlocks=self.unlocks,
            presence=self.presence,
            bus=self.bus,
            scheduler=self.scheduler,
            afk_timeout_seconds=afk_timeout_seconds,
        )
        self.accrual = AccrualEngine(
            controller=self.controller,
            rewards=self.rewards,
            unlocks=self.unlocks,
            presence=self.presence,
            notifier=self.notifier,
            bus=self.bus,
        )
        self.course_reward = CourseReward(self.unlocks, self.notifier)
        self.leaderboard = InMemoryLeaderboard()
        self.leaderboard_sync = LeaderboardSync(self.leaderboard, self.rewards, self.bus)
        for event_type in INBOUND_EVENTS:
            self.bus.subscribe(event_type, self.handle)

    def snapshot(self) -> dict[str, Any]:
        return build_stage_state(self.controller.lock, self.controller.is_playing, self.presence)

    def purchase_offer(self, participant: str, pack_id: str, cost: int) -> PurchaseResult:
        """Buy a pack at its catalogue price.

        Requests for packs the store does not sell, or quoting a different price,
        are declined before the ledgers are touched.
        """
        if pack_bit(pack_id) is not None:
            offer = find_offer(pack_id)
            if offer is None:
                logger.info("%s tried to buy %s, which is not for sale", participant, pack_id)
                self.notifier.notify(f"{pack_id} is not for sale.", [participant])
                return PurchaseResult(
                    success=False,
                    balance=self.rewards.get_balance(participant),
                    reason="not_for_sale",
                )
            if offer.cost != cost:
                logger.warning("%s quoted %d for %s, catalogue price is %d", participant, cost, pack_id, offer.cost)
                return PurchaseResult(
                    success=False,
                    balance=self.rewards.get_balance(participant),
                    reason="price_mismatch",
                )
        return self.accrual.purchase(participant, pack_id, cost)

    @singledispatchmethod
    def handle(self, event: StageEvent) -> Any:
        logger.debug("No inbound handler for %s", event.name)
        return None

    @handle.register
    def _(self, event: ActivationRequested) -> Any:
        return self.controller.request_activation(event.participant, event.pack_id)

    @handle.register
    def _(self, event: ReleaseRequested) -> Any:
        return self.controller.release(event.participant)

    @handle.register
    def _(self, event: PurchaseRequested) -> Any:
        return self.purchase_offer(event.participant, event.pack_id, event.cost)

    @handle.register
    def _(self, event: ParticipantJoined) -> Any:
        self.presence.join(event.participant)
        self.leaderboard_sync.sync(event.participant)
        logger.info("%s joined", event.participant)

    @handle.register
    def _(self, event: ParticipantLeft) -> Any:
        self.presence.leave(event.participant)
        logger.info("%s left", event.participant)
        return self.controller.release_if_absent(event.participant)

    @handle.register
    def _(self, event: ParticipantIdle) -> Any:
        self.presence.mark_idle(event.participant)
        self.controller.on_participant_idle(event.participant)

    @handle.register
    def _(self, event: ParticipantActive) -> Any:
        self.presence.mark_active(event.participant)
        self.controller.on_participant_active(event.participant)

    @handle.register
    def _(self, event: ParticipantExcluded) -> Any:
        self.presence.set_excluded(event.participant, event.excluded)
        if event.excluded:
            return self.controller.release_if_absent(event.participant)
        return False

    @handle.register
    def _(self, event: CourseCompleted) -> Any:
        return self.course_reward.complete(event.participant)
