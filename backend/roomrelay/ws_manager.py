"""
Менеджер WebSocket: подключения по conn_id, группы по room_id,
отправка одному клиенту и рассылка группе.
"""
import logging
import uuid
from typing import Any

from fastapi import WebSocket

from .errors import TransportUnavailable

logger = logging.getLogger(__name__)


class Connection:
    def __init__(self, ws: WebSocket, conn_id: str):
        self.ws = ws
        self.conn_id = conn_id
        # Unbound пока room_id is None
        self.room_id: str | None = None
        self.seat: int | None = None

    def bind(self, room_id: str, seat: int) -> None:
        self.room_id = room_id
        self.seat = seat

    def unbind(self) -> None:
        self.room_id = None
        self.seat = None

    async def send(self, payload: dict[str, Any]) -> None:
        try:
            await self.ws.send_json(payload)
        except Exception as e:
            raise TransportUnavailable(str(e)) from e


class WSManager:
    def __init__(self):
        self._by_id: dict[str, Connection] = {}
        self._groups: dict[str, set[str]] = {}

    def connect(self, ws: WebSocket) -> Connection:
        conn = Connection(ws, uuid.uuid4().hex)
        self._by_id[conn.conn_id] = conn
        return conn

    def disconnect(self, conn_id: str) -> Connection | None:
        conn = self._by_id.pop(conn_id, None)
        if conn and conn.room_id:
            self.leave_group(conn.room_id, conn_id)
        return conn

    def get(self, conn_id: str) -> Connection | None:
        return self._by_id.get(conn_id)

    def join_group(self, group: str, conn_id: str) -> None:
        self._groups.setdefault(group, set()).add(conn_id)

    def leave_group(self, group: str, conn_id: str) -> None:
        members = self._groups.get(group)
        if members is None:
            return
        members.discard(conn_id)
        if not members:
            del self._groups[group]

    def members(self, group: str) -> list[Connection]:
        return [self._by_id[c] for c in self._groups.get(group, ()) if c in self._by_id]

    def dissolve_group(self, group: str) -> list[Connection]:
        """Распустить группу: все участники возвращаются в Unbound."""
        conns = self.members(group)
        self._groups.pop(group, None)
        for conn in conns:
            if conn.room_id == group:
                conn.unbind()
        return conns

    async def send_to(self, conn_id: str, payload: dict[str, Any]) -> bool:
        conn = self._by_id.get(conn_id)
        if not conn:
            return False
        try:
            await conn.send(payload)
            return True
        except TransportUnavailable as e:
            logger.warning("send_to %s: %s", conn_id, e)
            return False

    async def broadcast(self, group: str, payload: dict[str, Any], exclude: str | None = None) -> int:
        """
        Разослать группе. Упавшие соединения только логируем:
        их собственный цикл приёма пройдёт через disconnect.
        """
        conns = [c for c in self.members(group) if c.conn_id != exclude]
        return await self.send_all(conns, payload)

    async def send_all(self, conns: list[Connection], payload: dict[str, Any]) -> int:
        """Отправить заранее снятому списку соединений, например уже распущенной группе."""
        sent = 0
        for conn in conns:
            try:
                await conn.send(payload)
                sent += 1
            except TransportUnavailable as e:
                logger.warning("send_all -> %s: %s", conn.conn_id, e)
        return sent
