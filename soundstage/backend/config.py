"""Configuration helpers for backend runtime."""

from __future__ import annotations

import os
from dataclasses import dataclass


@dataclass(frozen=True)
class BackendSettings:
    database_url: str | None
    host: str
    port: int
    afk_timeout_seconds: float
    tick_seconds: float
    log_level: str


def load_settings() -> BackendSettings:
    port_raw = os.getenv("SOUNDSTAGE_PORT", "8000")
    afk_raw = os.getenv("SOUNDSTAGE_AFK_TIMEOUT_SECONDS", "90")
    tick_raw = os.getenv("SOUNDSTAGE_TICK_SECONDS", "60")
    return BackendSettings(
        database_url=os.getenv("SOUNDSTAGE_DATABASE_URL"),
        host=os.getenv("SOUNDSTAGE_HOST", "127.0.0.1"),
        port=int(port_raw),
        afk_timeout_seconds=float(afk_raw),
        tick_seconds=float(tick_raw),
        log_level=os.getenv("SOUNDSTAGE_LOG_LEVEL", "INFO").upper(),
    )
