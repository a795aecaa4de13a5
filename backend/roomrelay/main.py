"""
roomrelay API и WebSocket.
"""
import asyncio
import contextlib
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI, HTTPException, Request, WebSocket
from fastapi.middleware.cors import CORSMiddleware

from .config import get_config
from .reaper import Reaper
from .rooms import RoomStore
from .rules import ChessRules
from .schemas import RoomSummaryResponse
from .ws_handlers import SessionRelay, ws_loop
from .ws_manager import WSManager

config = get_config()

logging.basicConfig(
    level=logging.DEBUG if config.debug else logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    store = RoomStore(ChessRules(), id_length=config.room_id_length)
    manager = WSManager()
    app.state.store = store
    app.state.relay = SessionRelay(store, manager)
    reaper = Reaper(
        store,
        manager,
        ttl_seconds=config.room_ttl_seconds,
        interval_seconds=config.reaper_interval_seconds,
        notify=config.reaper_notify,
    )
    task = asyncio.create_task(reaper.run())
    try:
        yield
    finally:
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task


app = FastAPI(title="roomrelay API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health")
def health():
    return {"status": "ok"}


@app.get("/rooms/{room_id}", response_model=RoomSummaryResponse)
def room_details(room_id: str, request: Request):
    room = request.app.state.store.get(room_id)
    if room is None:
        raise HTTPException(status_code=404, detail="Game not found")
    last_move = room.last_move
    return RoomSummaryResponse(
        roomId=room.id,
        participants=len(room.participants),
        isFull=room.is_full,
        position=room.position,
        lastMove=last_move.as_dict() if last_move else None,
        createdAt=datetime.fromtimestamp(room.created_at, tz=timezone.utc).isoformat(),
    )


@app.websocket("/ws")
async def websocket_endpoint(ws: WebSocket):
    logger.info("WS: connection attempt from %s", ws.client)
    await ws_loop(ws, ws.app.state.relay)


def run() -> None:
    import uvicorn

    logger.info("Starting roomrelay on %s:%s", config.host, config.port)
    uvicorn.run("roomrelay.main:app", host=config.host, port=config.port)
