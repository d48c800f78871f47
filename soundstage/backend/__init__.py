"""Backend package for the soundstage machine arbitration and soundwave accrual."""

from .accrual import AccrualEngine
from .arbitration import ArbitrationController
from .config import BackendSettings, load_settings
from .events import EventBus
from .ledgers import RewardLedger, UnlockLedger
from .models import ActivationOutcome, PurchaseResult, ResourceLock
from .presence import PresenceRegistry
from .runtime import AsyncioScheduler, StageRuntime
from .store import InMemoryPlayerStore, PlayerStore, PostgresPlayerStore, create_store

__all__ = [
    "AccrualEngine",
    "ActivationOutcome",
    "ArbitrationController",
    "AsyncioScheduler",
    "BackendSettings",
    "create_store",
    "EventBus",
    "InMemoryPlayerStore",
    "load_settings",
    "PlayerStore",
    "PostgresPlayerStore",
    "PresenceRegistry",
    "PurchaseResult",
    "ResourceLock",
    "RewardLedger",
    "StageRuntime",
    "UnlockLedger",
]
