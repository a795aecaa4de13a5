"""
Фоновая очистка комнат старше TTL.
"""
import asyncio
import logging
import time

from .constants import ROOM_EXPIRED
from .rooms import Room, RoomStore
from .ws_manager import Connection, WSManager

logger = logging.getLogger(__name__)


class Reaper:
    def __init__(
        self,
        store: RoomStore,
        manager: WSManager,
        ttl_seconds: float,
        interval_seconds: float,
        notify: bool = False,
    ):
        self.store = store
        self.manager = manager
        self.ttl_seconds = ttl_seconds
        self.interval_seconds = interval_seconds
        self.notify = notify

    async def tick(self, now: float | None = None) -> list[str]:
        now = time.time() if now is None else now
        detached: dict[str, list[Connection]] = {}

        def detach(room: Room) -> None:
            detached[room.id] = self.manager.dissolve_group(room.id)

        evicted = await self.store.sweep_expired(self.ttl_seconds, now, on_evict=detach)
        if self.notify:
            # Рассылка после удаления, без lock комнаты
            for room_id, members in detached.items():
                await self.manager.send_all(members, {"type": ROOM_EXPIRED, "roomId": room_id})
        if evicted:
            logger.info("Reaper: evicted %d rooms, active=%d", len(evicted), len(self.store))
        return evicted

    async def run(self) -> None:
        logger.info("Reaper started: ttl=%ss interval=%ss", self.ttl_seconds, self.interval_seconds)
        while True:
            await asyncio.sleep(self.interval_seconds)
            try:
                await self.tick()
            except Exception:
                logger.exception("Reaper: sweep failed")
