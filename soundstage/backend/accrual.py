"""Soundwave accrual while the stage plays, and pack purchases."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

from soundstage.backend.arbitration import ArbitrationController
from soundstage.backend.events import EventBus, PlayStateChanged
from soundstage.backend.ledgers import RewardLedger, UnlockLedger
from soundstage.backend.models import PurchaseResult
from soundstage.backend.notifications import Notifier
from soundstage.backend.packs import pack_bit
from soundstage.backend.presence import PresenceRegistry


logger = logging.getLogger(__name__)

DEFAULT_TICK_SECONDS = 60.0


class AccrualEngine:
    """Pays soundwaves to present, non-AFK participants on every tick.

    The engine only looks at the play signal and the controller's identity,
    never at which pack is loaded.
    """

    def __init__(
        self,
        controller: ArbitrationController,
        rewards: RewardLedger,
        unlocks: UnlockLedger,
        presence: PresenceRegistry,
        notifier: Notifier,
        bus: EventBus,
    ) -> None:
        self._controller = controller
        self._rewards = rewards
        self._unlocks = unlocks
        self._presence = presence
        self._notifier = notifier
        self._listener_notified: set[str] = set()
        self._performer_notified: set[str] = set()
        bus.subscribe(PlayStateChanged, self._on_play_state_changed)

    def tick(self) -> dict[str, int]:
        """Run one accrual round and return the credits paid, by participant."""
        if not self._controller.is_playing:
            return {}

        eligible = self._presence.eligible_participants()
        logger.debug(
            "Accrual tick: %d eligible of %d present",
            len(eligible),
            len(self._presence.present_participants()),
        )

        paid: dict[str, int] = {}
        for participant in eligible:
            balance = self._rewards.credit(participant, 1)
            paid[participant] = 1
            self._notifier.notify(f"+1 soundwave (total {balance})", [participant])
            if participant not in self._listener_notified:
                self._listener_notified.add(participant)
                self._notifier.notify("Earning soundwaves!", [participant])

        performer = self._controller.controller
        if performer is not None and performer in eligible:
            bonus = len(eligible) - 1
            if bonus > 0:
                balance = self._rewards.credit(performer, bonus)
                paid[performer] += bonus
                suffix = "s" if bonus > 1 else ""
                logger.info("%s earned %d bonus soundwave%s (total %d)", performer, bonus, suffix, balance)
                self._notifier.notify(f"+{bonus} soundwave{suffix} (total {balance})", [performer])
            if performer not in self._performer_notified:
                self._performer_notified.add(performer)
                self._notifier.notify("Amplified soundwaves active!", [performer])

        return paid

    def purchase(self, participant: str, pack_id: str, cost: int) -> PurchaseResult:
        if pack_bit(pack_id) is None:
            logger.info("%s tried to buy unknown pack %r", participant, pack_id)
            self._notifier.notify(f"{pack_id} is not available.", [participant])
            return PurchaseResult(success=False, balance=self._rewards.get_balance(participant), reason="unknown_pack")

        if self._unlocks.has_unlocked(participant, pack_id):
            self._notifier.notify(f"You already own {pack_id}.", [participant])
            return PurchaseResult(success=False, balance=self._rewards.get_balance(participant), reason="already_owned")

        if cost > 0 and not self._rewards.debit(participant, cost):
            self._notifier.notify(f"Not enough soundwaves for {pack_id}.", [participant])
            return PurchaseResult(
                success=False,
                balance=self._rewards.get_balance(participant),
                reason="insufficient_balance",
            )

        self._unlocks.unlock(participant, pack_id)
        return PurchaseResult(success=True, balance=self._rewards.get_balance(participant))

    async def run(
        self,
        interval: float = DEFAULT_TICK_SECONDS,
        after_tick: Callable[[], Awaitable[None]] | None = None,
    ) -> None:
        while True:
            await asyncio.sleep(interval)
            try:
                self.tick()
                if after_tick is not None:
                    await after_tick()
            except Exception:
                logger.exception("Accrual tick failed; retrying in %gs", interval)

    def _on_play_state_changed(self, event: PlayStateChanged) -> None:
        if event.is_playing:
            self._notifier.notify("You're now earning Soundwaves!\nKeep jamming!")
            return
        self._listener_notified.clear()
        self._performer_notified.clear()
