"""FastAPI endpoints for stage requests, presence updates and websocket broadcast."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from enum import Enum
from typing import Any, AsyncIterator

from fastapi import FastAPI, HTTPException, Query, WebSocket, WebSocketDisconnect
from pydantic import BaseModel, Field

from .config import BackendSettings, load_settings
from .events import (
    ActivationRequested,
    CourseCompleted,
    ParticipantActive,
    ParticipantExcluded,
    ParticipantIdle,
    ParticipantJoined,
    ParticipantLeft,
    PurchaseRequested,
    ReleaseRequested,
    StageEvent,
)
from .models import ActivationOutcome, PurchaseResult
from .packs import available_offers
from .rewards import LEADERBOARD_NAME
from .runtime import AsyncioScheduler, StageRuntime
from .store import create_store


logger = logging.getLogger(__name__)


class PresenceAction(str, Enum):
    JOIN = "join"
    LEAVE = "leave"
    IDLE = "idle"
    ACTIVE = "active"
    EXCLUDE = "exclude"
    INCLUDE = "include"


class ParticipantEnvelope(BaseModel):
    participant: str = Field(min_length=1, max_length=200)


class ActivationEnvelope(BaseModel):
    participant: str = Field(min_length=1, max_length=200)
    pack_id: str = Field(min_length=1, max_length=100)


class ReleaseEnvelope(BaseModel):
    participant: str | None = Field(default=None, min_length=1, max_length=200)


class PurchaseEnvelope(BaseModel):
    participant: str = Field(min_length=1, max_length=200)
    pack_id: str = Field(min_length=1, max_length=100)
    cost: int = Field(ge=0)


class StageStateResponse(BaseModel):
    state: dict[str, Any]


class ActivationResponse(BaseModel):
    outcome: str
    state: dict[str, Any]


class ParticipantResponse(BaseModel):
    participant: str
    present: bool
    balance: int
    unlocked_packs: list[str]


class OfferModel(BaseModel):
    pack_id: str
    cost: int


class StoreResponse(BaseModel):
    participant: str
    balance: int
    offers: list[OfferModel]


class PurchaseResponse(BaseModel):
    success: bool
    balance: int


class CourseResponse(BaseModel):
    unlocked: bool


class LeaderboardEntry(BaseModel):
    participant: str
    score: int


class LeaderboardResponse(BaseModel):
    board: str
    entries: list[LeaderboardEntry]


class StageWebSocketHub:
    def __init__(self) -> None:
        self._connections: set[WebSocket] = set()
        self._pending: list[dict[str, Any]] = []

    async def connect(self, websocket: WebSocket) -> None:
        await websocket.accept()
        self._connections.add(websocket)

    def disconnect(self, websocket: WebSocket) -> None:
        self._connections.discard(websocket)

    def enqueue(self, event: StageEvent) -> None:
        self._pending.append(event.to_message())

    async def send_state(self, websocket: WebSocket, state: dict[str, Any]) -> None:
        await websocket.send_json({"type": "state.full", "state": state})

    async def flush(self) -> None:
        messages, self._pending = self._pending, []
        stale_connections: list[WebSocket] = []
        for message in messages:
            for websocket in list(self._connections):
                if websocket in stale_connections:
                    continue
                try:
                    await websocket.send_json(message)
                except RuntimeError:
                    stale_connections.append(websocket)
        for websocket in stale_connections:
            self.disconnect(websocket=websocket)


_PRESENCE_EVENTS = {
    PresenceAction.JOIN: lambda participant: ParticipantJoined(participant=participant),
    PresenceAction.LEAVE: lambda participant: ParticipantLeft(participant=participant),
    PresenceAction.IDLE: lambda participant: ParticipantIdle(participant=participant),
    PresenceAction.ACTIVE: lambda participant: ParticipantActive(participant=participant),
    PresenceAction.EXCLUDE: lambda participant: ParticipantExcluded(participant=participant, excluded=True),
    PresenceAction.INCLUDE: lambda participant: ParticipantExcluded(participant=participant, excluded=False),
}


def _default_runtime(settings: BackendSettings) -> StageRuntime:
    return StageRuntime(
        store=create_store(settings.database_url),
        scheduler=AsyncioScheduler(),
        afk_timeout_seconds=settings.afk_timeout_seconds,
    )


def create_app(runtime: StageRuntime | None = None, settings: BackendSettings | None = None) -> FastAPI:
    app_settings = settings if settings is not None else load_settings()
    stage = runtime if runtime is not None else _default_runtime(app_settings)
    websocket_hub = StageWebSocketHub()
    stage.bus.subscribe_all(websocket_hub.enqueue)
    if isinstance(stage.scheduler, AsyncioScheduler):
        stage.scheduler.after_fire = websocket_hub.flush

    @contextlib.asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        ticker = asyncio.create_task(
            stage.accrual.run(interval=app_settings.tick_seconds, after_tick=websocket_hub.flush)
        )
        logger.info("Accrual ticking every %.0fs", app_settings.tick_seconds)
        try:
            yield
        finally:
            ticker.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await ticker

    app = FastAPI(title="Soundstage API", version="0.1.0", lifespan=lifespan)
    app.state.runtime = stage
    app.state.websocket_hub = websocket_hub

    async def dispatch(event: StageEvent) -> Any:
        result = stage.handle(event)
        await websocket_hub.flush()
        return result

    @app.post("/api/presence/{action}", response_model=StageStateResponse)
    async def post_presence(action: PresenceAction, payload: ParticipantEnvelope) -> StageStateResponse:
        await dispatch(_PRESENCE_EVENTS[action](payload.participant))
        return StageStateResponse(state=stage.snapshot())

    @app.get("/api/stage", response_model=StageStateResponse)
    def get_stage() -> StageStateResponse:
        return StageStateResponse(state=stage.snapshot())

    @app.post("/api/stage/activate", response_model=ActivationResponse)
    async def post_activate(payload: ActivationEnvelope) -> ActivationResponse:
        outcome: ActivationOutcome = await dispatch(
            ActivationRequested(participant=payload.participant, pack_id=payload.pack_id)
        )
        if not outcome.accepted:
            raise HTTPException(status_code=409, detail=outcome.value)
        return ActivationResponse(outcome=outcome.value, state=stage.snapshot())

    @app.post("/api/stage/release", response_model=StageStateResponse)
    async def post_release(payload: ReleaseEnvelope) -> StageStateResponse:
        await dispatch(ReleaseRequested(participant=payload.participant))
        return StageStateResponse(state=stage.snapshot())

    @app.get("/api/participants/{participant}", response_model=ParticipantResponse)
    def get_participant(participant: str) -> ParticipantResponse:
        return ParticipantResponse(
            participant=participant,
            present=stage.presence.is_present(participant),
            balance=stage.rewards.get_balance(participant),
            unlocked_packs=sorted(stage.unlocks.list_unlocked(participant)),
        )

    @app.get("/api/store", response_model=StoreResponse)
    def get_store(participant: str = Query(min_length=1)) -> StoreResponse:
        if not stage.presence.is_present(participant):
            raise HTTPException(status_code=404, detail="Participant not in world")
        offers = available_offers(stage.unlocks.list_unlocked(participant))
        return StoreResponse(
            participant=participant,
            balance=stage.rewards.get_balance(participant),
            offers=[OfferModel(pack_id=offer.pack_id, cost=offer.cost) for offer in offers],
        )

    @app.post("/api/store/purchase", response_model=PurchaseResponse)
    async def post_purchase(payload: PurchaseEnvelope) -> PurchaseResponse:
        result: PurchaseResult = await dispatch(
            PurchaseRequested(participant=payload.participant, pack_id=payload.pack_id, cost=payload.cost)
        )
        if not result.success:
            raise HTTPException(status_code=409, detail=result.reason)
        return PurchaseResponse(success=True, balance=result.balance)

    @app.post("/api/course/complete", response_model=CourseResponse)
    async def post_course_complete(payload: ParticipantEnvelope) -> CourseResponse:
        unlocked = await dispatch(CourseCompleted(participant=payload.participant))
        return CourseResponse(unlocked=bool(unlocked))

    @app.get("/api/leaderboard", response_model=LeaderboardResponse)
    def get_leaderboard(limit: int = Query(default=10, ge=1, le=100)) -> LeaderboardResponse:
        entries = stage.leaderboard.top(LEADERBOARD_NAME, limit=limit)
        return LeaderboardResponse(
            board=LEADERBOARD_NAME,
            entries=[LeaderboardEntry(participant=name, score=score) for name, score in entries],
        )

    @app.websocket("/ws/stage")
    async def stage_ws(websocket: WebSocket) -> None:
        await websocket_hub.connect(websocket=websocket)
        await websocket_hub.send_state(websocket=websocket, state=stage.snapshot())

        try:
            while True:
                await websocket.receive_text()
        except WebSocketDisconnect:
            websocket_hub.disconnect(websocket=websocket)

    return app


app = create_app()
