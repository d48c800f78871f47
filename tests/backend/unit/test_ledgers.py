import pytest

from soundstage.backend.events import BalanceChanged, EventBus, InventoryChanged
from soundstage.backend.ledgers import RewardLedger, UnlockLedger
from soundstage.backend.packs import DEFAULT_PACK_MASK, PACK_ID_BITS
from soundstage.backend.store import REWARD_BALANCE_KEY, UNLOCKED_PACKS_KEY, InMemoryPlayerStore


def _unlock_ledger() -> tuple[UnlockLedger, InMemoryPlayerStore, list]:
    bus = EventBus()
    events: list = []
    bus.subscribe_all(events.append)
    store = InMemoryPlayerStore()
    return UnlockLedger(store, bus), store, events


def _reward_ledger() -> tuple[RewardLedger, InMemoryPlayerStore, list]:
    bus = EventBus()
    events: list = []
    bus.subscribe_all(events.append)
    store = InMemoryPlayerStore()
    return RewardLedger(store, bus), store, events


def test_default_grant_is_merged_and_written_back_on_first_read() -> None:
    ledger, store, events = _unlock_ledger()

    assert ledger.list_unlocked("alice") == {"MBC25-SOMETA"}
    assert store.get_value("alice", UNLOCKED_PACKS_KEY) == DEFAULT_PACK_MASK
    assert events == []


def test_default_grant_merge_keeps_previously_stored_bits() -> None:
    ledger, store, _ = _unlock_ledger()
    store.set_value("alice", UNLOCKED_PACKS_KEY, PACK_ID_BITS["MBC25-LUCKY"])

    assert ledger.list_unlocked("alice") == {"MBC25-SOMETA", "MBC25-LUCKY"}
    assert ledger.list_unlocked("alice") == {"MBC25-SOMETA", "MBC25-LUCKY"}


def test_has_unlocked_fails_closed_for_unknown_pack() -> None:
    ledger, _, _ = _unlock_ledger()

    assert ledger.has_unlocked("alice", "MBC25-SOMETA") is True
    assert ledger.has_unlocked("alice", "MBC25-LUCKY") is False
    assert ledger.has_unlocked("alice", "NOT-A-PACK") is False


def test_unlock_is_idempotent_and_broadcasts_once() -> None:
    ledger, _, events = _unlock_ledger()

    first = ledger.unlock("alice", "MBC25-LUCKY")
    second = ledger.unlock("alice", "MBC25-LUCKY")

    assert first is True
    assert second is False
    assert ledger.has_unlocked("alice", "MBC25-LUCKY") is True
    assert events == [InventoryChanged(participant="alice")]


def test_unlock_ignores_unknown_pack() -> None:
    ledger, store, events = _unlock_ledger()

    assert ledger.unlock("alice", "NOT-A-PACK") is False
    assert store.get_value("alice", UNLOCKED_PACKS_KEY) is None
    assert events == []


def test_unlocks_never_shrink() -> None:
    ledger, _, _ = _unlock_ledger()
    seen: list[set[str]] = [ledger.list_unlocked("alice")]

    for pack_id in ("MBC25-LUCKY", "MBC25-LUCKY", "NOT-A-PACK", "MBC25-FLOWSTATE"):
        ledger.unlock("alice", pack_id)
        seen.append(ledger.list_unlocked("alice"))

    assert all(earlier <= later for earlier, later in zip(seen, seen[1:]))


def test_balance_defaults_to_zero() -> None:
    ledger, _, _ = _reward_ledger()

    assert ledger.get_balance("alice") == 0


def test_credit_persists_and_broadcasts_new_balance() -> None:
    ledger, store, events = _reward_ledger()

    assert ledger.credit("alice", 3) == 3
    assert ledger.credit("alice", 2) == 5

    assert store.get_value("alice", REWARD_BALANCE_KEY) == 5
    assert events == [
        BalanceChanged(participant="alice", balance=3),
        BalanceChanged(participant="alice", balance=5),
    ]


def test_debit_refuses_overdraft_without_mutation() -> None:
    ledger, _, events = _reward_ledger()
    ledger.credit("alice", 20)
    events.clear()

    assert ledger.debit("alice", 25) is False
    assert ledger.get_balance("alice") == 20
    assert events == []

    assert ledger.debit("alice", 20) is True
    assert ledger.get_balance("alice") == 0
    assert events == [BalanceChanged(participant="alice", balance=0)]


@pytest.mark.parametrize("amount", [0, -1])
def test_credit_and_debit_reject_non_positive_amounts(amount: int) -> None:
    ledger, _, _ = _reward_ledger()

    with pytest.raises(ValueError):
        ledger.credit("alice", amount)
    with pytest.raises(ValueError):
        ledger.debit("alice", amount)
