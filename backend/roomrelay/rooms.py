"""
Хранилище комнат (in-memory).
Каждая комната защищена своим asyncio.Lock: операции над одной комнатой
выполняются строго по очереди, разные комнаты друг другу не мешают.
"""
import asyncio
import logging
import secrets
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import AsyncIterator, Callable

from .constants import ROOM_CAPACITY, ROOM_ID_ALPHABET
from .errors import RoomFull, RoomNotFound, StalePosition
from .rules import ChessRules, Move

logger = logging.getLogger(__name__)


@dataclass
class Room:
    id: str
    position: str
    # conn_id -> seat, порядок вставки = порядок входа
    participants: dict[str, int] = field(default_factory=dict)
    moves: list[Move] = field(default_factory=list)
    created_at: float = field(default_factory=time.time)

    @property
    def last_move(self) -> Move | None:
        return self.moves[-1] if self.moves else None

    @property
    def is_full(self) -> bool:
        return len(self.participants) >= ROOM_CAPACITY

    def seat_of(self, conn_id: str) -> int | None:
        return self.participants.get(conn_id)

    def free_seat(self) -> int:
        taken = set(self.participants.values())
        return next(s for s in range(ROOM_CAPACITY) if s not in taken)


@dataclass
class JoinResult:
    room_id: str
    seat: int
    position: str
    last_move: Move | None
    rejoined: bool = False


class RoomStore:
    def __init__(self, rules: ChessRules | None = None, id_length: int = 8):
        self.rules = rules or ChessRules()
        self.id_length = id_length
        self._rooms: dict[str, Room] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    def __len__(self) -> int:
        return len(self._rooms)

    def room_ids(self) -> list[str]:
        return list(self._rooms)

    def get(self, room_id: str) -> Room | None:
        return self._rooms.get(room_id)

    def _fresh_id(self) -> str:
        while True:
            room_id = "".join(secrets.choice(ROOM_ID_ALPHABET) for _ in range(self.id_length))
            if room_id not in self._rooms and room_id not in self._locks:
                return room_id

    @asynccontextmanager
    async def _locked(self, room_id: str) -> AsyncIterator[Room]:
        """Захватить lock комнаты и отдать её; RoomNotFound если комнаты нет."""
        lock = self._locks.get(room_id)
        if lock is None:
            raise RoomNotFound()
        async with lock:
            # Пока ждали lock, комнату могли удалить
            room = self._rooms.get(room_id)
            if room is None:
                raise RoomNotFound()
            yield room

    def _delete(self, room_id: str) -> None:
        """Удалить комнату. Вызывать только под её lock."""
        self._rooms.pop(room_id, None)
        self._locks.pop(room_id, None)

    async def create(self) -> str:
        room_id = self._fresh_id()
        self._locks[room_id] = asyncio.Lock()
        self._rooms[room_id] = Room(id=room_id, position=self.rules.initial_position())
        logger.info("Room created: %s", room_id)
        return room_id

    async def join(self, room_id: str, conn_id: str) -> JoinResult:
        """
        Добавить участника. Повторный вход того же conn_id ничего не меняет
        и возвращает текущую позицию (rejoined=True).
        """
        async with self._locked(room_id) as room:
            seat = room.seat_of(conn_id)
            if seat is not None:
                return JoinResult(room_id, seat, room.position, room.last_move, rejoined=True)
            if room.is_full:
                raise RoomFull()
            seat = room.free_seat()
            room.participants[conn_id] = seat
            return JoinResult(room_id, seat, room.position, room.last_move)

    async def apply_move(
        self,
        room_id: str,
        move: Move,
        resulting_position: str,
        expected_position: str | None = None,
    ) -> Room:
        """
        Записать уже проверенный ход. Легальность здесь не проверяется.
        expected_position — позиция, от которой считался ход: если она
        успела смениться, ход отклоняется (StalePosition).
        """
        async with self._locked(room_id) as room:
            if expected_position is not None and room.position != expected_position:
                raise StalePosition()
            room.moves.append(move)
            room.position = resulting_position
            return room

    async def reset(
        self,
        room_id: str,
        before_delete: Callable[[Room], None] | None = None,
    ) -> None:
        """
        Удалить комнату целиком. before_delete вызывается под lock до удаления;
        он синхронный: под lock ничего не отправляем, только снимаем состояние.
        """
        async with self._locked(room_id) as room:
            if before_delete is not None:
                before_delete(room)
            self._delete(room_id)
        logger.info("Room reset: %s", room_id)

    async def remove_participant(self, room_id: str, conn_id: str) -> int:
        """Убрать участника. Пустая комната удаляется. Возвращает сколько осталось."""
        async with self._locked(room_id) as room:
            room.participants.pop(conn_id, None)
            remaining = len(room.participants)
            if remaining == 0:
                self._delete(room_id)
                logger.info("Room removed: %s", room_id)
            return remaining

    async def sweep_expired(
        self,
        ttl: float,
        now: float,
        on_evict: Callable[[Room], None] | None = None,
    ) -> list[str]:
        """
        Удалить комнаты старше ttl. Сначала без блокировок собираем кандидатов,
        потом каждую удаляем под её lock, перепроверив возраст.
        on_evict синхронный, как before_delete в reset.
        """
        candidates = [r.id for r in list(self._rooms.values()) if now - r.created_at > ttl]
        evicted = []
        for room_id in candidates:
            try:
                async with self._locked(room_id) as room:
                    if now - room.created_at <= ttl:
                        continue
                    if on_evict is not None:
                        on_evict(room)
                    self._delete(room_id)
            except RoomNotFound:
                continue
            evicted.append(room_id)
            logger.info("Removed old room: %s", room_id)
        return evicted
