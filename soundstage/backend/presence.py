"""Who is in the world, who is AFK, and who is in an excluded mode."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class PresenceRegistry:
    def __post_init__(self) -> None:
        # dict keeps join order for stable iteration
        self._joined: dict[str, None] = {}
        self._afk: set[str] = set()
        self._excluded: set[str] = set()

    def join(self, participant: str) -> None:
        self._joined.setdefault(participant, None)

    def leave(self, participant: str) -> None:
        self._joined.pop(participant, None)
        self._afk.discard(participant)
        self._excluded.discard(participant)

    def mark_idle(self, participant: str) -> None:
        if participant in self._joined:
            self._afk.add(participant)

    def mark_active(self, participant: str) -> None:
        self._afk.discard(participant)

    def set_excluded(self, participant: str, excluded: bool) -> None:
        if excluded and participant in self._joined:
            self._excluded.add(participant)
        else:
            self._excluded.discard(participant)

    def is_present(self, participant: str) -> bool:
        return participant in self._joined and participant not in self._excluded

    def is_afk(self, participant: str) -> bool:
        return participant in self._afk

    def present_participants(self) -> list[str]:
        return [p for p in self._joined if p not in self._excluded]

    def eligible_participants(self) -> list[str]:
        return [p for p in self.present_participants() if p not in self._afk]
