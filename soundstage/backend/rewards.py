"""One-time reward fulfillment and leaderboard mirroring."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol

from soundstage.backend.events import BalanceChanged, EventBus
from soundstage.backend.ledgers import RewardLedger, UnlockLedger
from soundstage.backend.notifications import Notifier
from soundstage.backend.packs import COURSE_REWARD_PACK_ID


logger = logging.getLogger(__name__)

LEADERBOARD_NAME = "soundwaves"
LEADERBOARD_SCORE_MAX = 2**53 - 1


class CourseReward:
    """Grants the course pack the first time a participant finishes the course."""

    def __init__(self, unlocks: UnlockLedger, notifier: Notifier, pack_id: str = COURSE_REWARD_PACK_ID) -> None:
        self._unlocks = unlocks
        self._notifier = notifier
        self._pack_id = pack_id
        self._completed: set[str] = set()

    def complete(self, participant: str) -> bool:
        """Return True when this completion unlocked the pack."""
        if self._unlocks.unlock(participant, self._pack_id):
            self._completed.add(participant)
            self._notifier.notify(f"Congratulations! You've just unlocked the {self._pack_id}!", [participant])
            return True

        if participant not in self._completed:
            self._completed.add(participant)
            self._notifier.notify("You've just completed the course!", [participant])
        return False


class Leaderboard(Protocol):
    def set_score(self, board: str, participant: str, score: int) -> None:
        """Replace the participant's score on the named board."""


@dataclass
class InMemoryLeaderboard:
    def __post_init__(self) -> None:
        self._scores: dict[str, dict[str, int]] = {}

    def set_score(self, board: str, participant: str, score: int) -> None:
        self._scores.setdefault(board, {})[participant] = score

    def top(self, board: str = LEADERBOARD_NAME, limit: int = 10) -> list[tuple[str, int]]:
        entries = self._scores.get(board, {}).items()
        return sorted(entries, key=lambda item: (-item[1], item[0]))[:limit]


def sanitize_score(value: float, max_score: int = LEADERBOARD_SCORE_MAX) -> int:
    return max(0, min(int(value // 1), max_score))


class LeaderboardSync:
    def __init__(
        self,
        leaderboard: Leaderboard,
        rewards: RewardLedger,
        bus: EventBus,
        board: str = LEADERBOARD_NAME,
    ) -> None:
        self._leaderboard = leaderboard
        self._rewards = rewards
        self._board = board
        bus.subscribe(BalanceChanged, self._on_balance_changed)

    def sync(self, participant: str) -> None:
        self._push(participant, self._rewards.get_balance(participant))

    def _push(self, participant: str, balance: int) -> None:
        score = sanitize_score(balance)
        self._leaderboard.set_score(self._board, participant, score)
        logger.debug("Set %s score for %s to %d", self._board, participant, score)

    def _on_balance_changed(self, event: BalanceChanged) -> None:
        self._push(event.participant, event.balance)
