"""Domain models for stage state and request outcomes."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Protocol


class ActivationOutcome(str, Enum):
    GRANTED = "granted"
    SWAPPED = "swapped"
    DENIED_BUSY = "denied_busy"
    DENIED_NOT_OWNED = "denied_not_owned"
    DENIED_ABSENT = "denied_absent"

    @property
    def accepted(self) -> bool:
        return self in (ActivationOutcome.GRANTED, ActivationOutcome.SWAPPED)


@dataclass(frozen=True)
class ResourceLock:
    active_pack_id: str | None = None
    controller_id: str | None = None

    @property
    def is_idle(self) -> bool:
        return self.controller_id is None and self.active_pack_id is None


@dataclass(frozen=True)
class PurchaseResult:
    success: bool
    balance: int
    reason: str | None = None


class TimerHandle(Protocol):
    def cancel(self) -> Any:
        """Cancel the pending callback. Cancelling a fired handle is harmless."""


class Scheduler(Protocol):
    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        """Run ``callback`` once after ``delay`` seconds."""
