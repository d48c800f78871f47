import pytest
from pydantic import ValidationError

from soundstage.backend.events import (
    ActivationRequested,
    BalanceChanged,
    EventBus,
    InventoryChanged,
    PlayStateChanged,
    PurchaseRequested,
)


def test_events_validate_payload_at_construction() -> None:
    with pytest.raises(ValidationError):
        ActivationRequested(participant="", pack_id="MBC25-LUCKY")
    with pytest.raises(ValidationError):
        PurchaseRequested(participant="alice", pack_id="MBC25-LUCKY", cost=-1)
    with pytest.raises(ValidationError):
        BalanceChanged(participant="alice", balance=-3)


def test_events_are_frozen() -> None:
    event = InventoryChanged(participant="alice")

    with pytest.raises(ValidationError):
        event.participant = "bob"


def test_to_message_carries_event_name_and_payload() -> None:
    message = BalanceChanged(participant="alice", balance=4).to_message()

    assert message == {"type": "balance-changed", "payload": {"participant": "alice", "balance": 4}}


def test_bus_delivers_to_typed_then_catch_all_subscribers_in_order() -> None:
    bus = EventBus()
    received: list[str] = []
    bus.subscribe(PlayStateChanged, lambda event: received.append("typed-1"))
    bus.subscribe(PlayStateChanged, lambda event: received.append("typed-2"))
    bus.subscribe(InventoryChanged, lambda event: received.append("other"))
    bus.subscribe_all(lambda event: received.append(f"all:{event.name}"))

    bus.publish(PlayStateChanged(is_playing=True))

    assert received == ["typed-1", "typed-2", "all:play-state-changed"]


def test_failing_subscriber_does_not_block_others(caplog) -> None:
    bus = EventBus()
    received: list = []

    def broken(event) -> None:
        raise RuntimeError("presentation unavailable")

    bus.subscribe(InventoryChanged, broken)
    bus.subscribe(InventoryChanged, received.append)

    bus.publish(InventoryChanged(participant="alice"))

    assert received == [InventoryChanged(participant="alice")]
    assert "inventory-changed" in caplog.text


def test_events_published_by_a_handler_wait_for_the_current_event() -> None:
    bus = EventBus()
    received: list[str] = []

    def on_play_state(event) -> None:
        bus.publish(InventoryChanged(participant="alice"))

    bus.subscribe(PlayStateChanged, on_play_state)
    bus.subscribe_all(lambda event: received.append(event.name))

    bus.publish(PlayStateChanged(is_playing=True))

    assert received == ["play-state-changed", "inventory-changed"]
