"""Persistence interfaces and implementations for per-participant durable values."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol


UNLOCKED_PACKS_KEY = "unlockedPacksMask"
REWARD_BALANCE_KEY = "rewardBalance"


class PlayerStore(Protocol):
    def get_value(self, participant: str, key: str) -> int | None:
        """Return the stored integer for a participant key, or None when unset."""

    def set_value(self, participant: str, key: str, value: int) -> None:
        """Persist an integer for a participant key."""


@dataclass
class InMemoryPlayerStore:
    def __post_init__(self) -> None:
        self._values: dict[tuple[str, str], int] = {}

    def get_value(self, participant: str, key: str) -> int | None:
        return self._values.get((participant, key))

    def set_value(self, participant: str, key: str, value: int) -> None:
        self._values[(participant, key)] = int(value)


@dataclass
class PostgresPlayerStore:
    database_url: str

    def _connect(self) -> Any:
        import psycopg

        return psycopg.connect(self.database_url)

    def get_value(self, participant: str, key: str) -> int | None:
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    SELECT value
                    FROM player_variables
                    WHERE participant_id = %s AND key = %s
                    """,
                    (participant, key),
                )
                row = cur.fetchone()

        if row is None:
            return None
        return int(row[0])

    def set_value(self, participant: str, key: str, value: int) -> None:
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    INSERT INTO player_variables (participant_id, key, value, updated_at)
                    VALUES (%s, %s, %s, now())
                    ON CONFLICT (participant_id, key)
                    DO UPDATE SET value = EXCLUDED.value, updated_at = EXCLUDED.updated_at
                    """,
                    (participant, key, int(value)),
                )
            conn.commit()


def create_store(database_url: str | None) -> PlayerStore:
    if database_url:
        return PostgresPlayerStore(database_url=database_url)
    return InMemoryPlayerStore()
