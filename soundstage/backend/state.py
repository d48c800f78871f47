"""State builders for stage snapshots."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from soundstage.backend.models import ResourceLock
from soundstage.backend.presence import PresenceRegistry


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def build_stage_state(lock: ResourceLock, is_playing: bool, presence: PresenceRegistry) -> dict[str, Any]:
    """Return the JSON snapshot sent to clients on connect and from ``GET /api/stage``."""
    return {
        "activePackId": lock.active_pack_id,
        "controllerId": lock.controller_id,
        "isPlaying": is_playing,
        "participants": [
            {"id": participant, "afk": presence.is_afk(participant)}
            for participant in presence.present_participants()
        ],
        "updatedAt": _utc_now_iso(),
    }
