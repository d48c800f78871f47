"""Per-participant unlock and reward ledgers over the durable player store."""

from __future__ import annotations

import logging

from soundstage.backend.events import BalanceChanged, EventBus, InventoryChanged
from soundstage.backend.packs import add_default_packs, mask_to_pack_ids, pack_bit
from soundstage.backend.store import REWARD_BALANCE_KEY, UNLOCKED_PACKS_KEY, PlayerStore


logger = logging.getLogger(__name__)


class UnlockLedger:
    def __init__(self, store: PlayerStore, bus: EventBus) -> None:
        self._store = store
        self._bus = bus

    def mask(self, participant: str) -> int:
        """Read the stored mask with the default grant merged in.

        The merge is written back only when it changes the stored value, so
        concurrent read paths converge on the same mask.
        """
        stored = self._store.get_value(participant, UNLOCKED_PACKS_KEY) or 0
        merged = add_default_packs(stored)
        if merged != stored:
            self._store.set_value(participant, UNLOCKED_PACKS_KEY, merged)
        return merged

    def has_unlocked(self, participant: str, pack_id: str) -> bool:
        bit = pack_bit(pack_id)
        if bit is None:
            return False
        return (self.mask(participant) & bit) != 0

    def list_unlocked(self, participant: str) -> set[str]:
        return set(mask_to_pack_ids(self.mask(participant)))

    def unlock(self, participant: str, pack_id: str) -> bool:
        """OR the pack's bit into the mask. Returns True when the bit was newly set."""
        bit = pack_bit(pack_id)
        if bit is None:
            logger.warning("Ignoring unlock of unknown pack %r for %s", pack_id, participant)
            return False

        mask = self.mask(participant)
        if mask & bit:
            return False

        self._store.set_value(participant, UNLOCKED_PACKS_KEY, mask | bit)
        logger.info("%s unlocked %s", participant, pack_id)
        self._bus.publish(InventoryChanged(participant=participant))
        return True


class RewardLedger:
    def __init__(self, store: PlayerStore, bus: EventBus) -> None:
        self._store = store
        self._bus = bus

    def get_balance(self, participant: str) -> int:
        return self._store.get_value(participant, REWARD_BALANCE_KEY) or 0

    def credit(self, participant: str, amount: int) -> int:
        if amount <= 0:
            raise ValueError(f"credit amount must be positive, got {amount}")
        balance = self.get_balance(participant) + amount
        self._set_balance(participant, balance)
        return balance

    def debit(self, participant: str, amount: int) -> bool:
        if amount <= 0:
            raise ValueError(f"debit amount must be positive, got {amount}")
        balance = self.get_balance(participant)
        if amount > balance:
            logger.info("%s lacks funds: balance %d, cost %d", participant, balance, amount)
            return False
        self._set_balance(participant, balance - amount)
        return True

    def _set_balance(self, participant: str, balance: int) -> None:
        self._store.set_value(participant, REWARD_BALANCE_KEY, balance)
        self._bus.publish(BalanceChanged(participant=participant, balance=balance))
