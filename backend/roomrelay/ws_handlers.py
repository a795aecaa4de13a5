"""
Обработка сообщений WebSocket: createRoom, joinRoom, submitMove, resetRoom.
Ошибки уходят только отправителю как roomError, рассылки — группе комнаты.
"""
import json
import logging

from fastapi import WebSocket
from pydantic import ValidationError
from starlette.websockets import WebSocketDisconnect

from .constants import (
    CREATE_ROOM,
    JOIN_ROOM,
    MOVE_APPLIED,
    PEER_DISCONNECTED,
    PEER_JOINED,
    RESET_ROOM,
    ROOM_CREATED,
    ROOM_ERROR,
    ROOM_JOINED,
    ROOM_RESET,
    SEATS,
    SUBMIT_MOVE,
)
from .errors import IllegalMove, RelayError, RoomNotFound
from .rooms import Room, RoomStore
from .rules import Move, same_position
from .schemas import JoinRoomRequest, ResetRoomRequest, SubmitMoveRequest
from .ws_manager import Connection, WSManager

logger = logging.getLogger(__name__)


def _last_move(move: Move | None) -> dict | None:
    return move.as_dict() if move else None


class SessionRelay:
    def __init__(self, store: RoomStore, manager: WSManager):
        self.store = store
        self.manager = manager

    @property
    def rules(self):
        return self.store.rules

    async def handle_message(self, conn: Connection, raw: str) -> bool:
        """
        Обрабатывает одно сообщение клиента.
        Возвращает False если соединение нужно закрыть.
        """
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.warning("WS: invalid JSON from %s: %s", conn.conn_id, e)
            await self._error(conn, "Invalid message")
            return True
        if not isinstance(data, dict):
            await self._error(conn, "Invalid message")
            return True
        t = data.get("type")
        logger.info("WS: msg from %s type=%s", conn.conn_id, t)
        try:
            if t == CREATE_ROOM:
                await self.create_room(conn)
            elif t == JOIN_ROOM:
                await self.join_room(conn, JoinRoomRequest.model_validate(data))
            elif t == SUBMIT_MOVE:
                await self.submit_move(conn, SubmitMoveRequest.model_validate(data))
            elif t == RESET_ROOM:
                await self.reset_room(conn, ResetRoomRequest.model_validate(data))
            else:
                logger.warning("WS: unknown message type %s from %s", t, conn.conn_id)
        except ValidationError as e:
            logger.warning("WS: bad payload from %s: %s", conn.conn_id, e.errors())
            await self._error(conn, "Invalid message")
        except RelayError as e:
            logger.info("WS: %s rejected for %s: %s", t, conn.conn_id, e.message)
            await self._error(conn, e.message)
        return True

    async def _error(self, conn: Connection, message: str) -> None:
        await self.manager.send_to(conn.conn_id, {"type": ROOM_ERROR, "message": message})

    def _bound_room(self, conn: Connection) -> str | None:
        """Комната соединения; если её уже удалили, соединение снова Unbound."""
        if conn.room_id and self.store.get(conn.room_id) is None:
            self.manager.leave_group(conn.room_id, conn.conn_id)
            conn.unbind()
        return conn.room_id

    def _bind(self, conn: Connection, room_id: str, seat: int) -> None:
        conn.bind(room_id, seat)
        self.manager.join_group(room_id, conn.conn_id)

    async def create_room(self, conn: Connection) -> None:
        if self._bound_room(conn):
            raise RelayError("Already in a room")
        room_id = await self.store.create()
        result = await self.store.join(room_id, conn.conn_id)
        self._bind(conn, room_id, result.seat)
        await self.manager.send_to(
            conn.conn_id,
            {"type": ROOM_CREATED, "roomId": room_id, "seat": SEATS[result.seat]},
        )
        logger.info("Active rooms: %s", self.store.room_ids())

    async def join_room(self, conn: Connection, req: JoinRoomRequest) -> None:
        logger.info("Connection %s attempting to join room: %s", conn.conn_id, req.roomId)
        bound = self._bound_room(conn)
        if bound and bound != req.roomId:
            raise RelayError("Already in another room")
        result = await self.store.join(req.roomId, conn.conn_id)
        self._bind(conn, req.roomId, result.seat)
        await self.manager.send_to(conn.conn_id, {
            "type": ROOM_JOINED,
            "roomId": req.roomId,
            "seat": SEATS[result.seat],
            "position": result.position,
            "lastMove": _last_move(result.last_move),
        })
        if result.rejoined:
            logger.info("Connection %s rejoined room: %s", conn.conn_id, req.roomId)
            return
        await self.manager.broadcast(
            req.roomId, {"type": PEER_JOINED, "roomId": req.roomId}, exclude=conn.conn_id
        )
        logger.info("Connection %s joined room: %s", conn.conn_id, req.roomId)

    async def submit_move(self, conn: Connection, req: SubmitMoveRequest) -> None:
        """
        Ход проверяется на сервере: очередь хода по месту, легальность через
        правила. Записывается позиция, посчитанная сервером; позиция клиента
        только сверяется с ней.
        """
        room = self.store.get(req.roomId)
        if room is None:
            raise RoomNotFound()
        if conn.room_id != room.id or room.seat_of(conn.conn_id) is None:
            raise IllegalMove("Not a participant")
        predecessor = room.position
        if self.rules.is_terminal(predecessor, room.moves).is_over:
            raise IllegalMove("Game is over")
        if self.rules.side_to_move(predecessor) != SEATS[conn.seat]:
            raise IllegalMove("Not your turn")
        move = Move(req.move.from_, req.move.to, req.move.promotion)
        position = self.rules.apply_move(predecessor, move)
        if req.resultingPosition and not same_position(position, req.resultingPosition):
            raise IllegalMove("Position mismatch")
        room = await self.store.apply_move(room.id, move, position, expected_position=predecessor)
        outcome = self.rules.is_terminal(position, list(room.moves))
        await self.manager.broadcast(room.id, {
            "type": MOVE_APPLIED,
            "roomId": room.id,
            "position": position,
            "lastMove": move.as_dict(),
            "outcome": outcome.as_dict(),
        })
        logger.info("Move made in room %s: %s to %s", room.id, move.from_sq, move.to_sq)
        if outcome.is_over:
            logger.info("Room %s finished: %s", room.id, outcome.as_dict())

    async def reset_room(self, conn: Connection, req: ResetRoomRequest) -> None:
        logger.info("Resetting room: %s", req.roomId)
        if self.store.get(req.roomId) is None:
            raise RoomNotFound()
        if conn.room_id != req.roomId:
            raise RelayError("Not in this room")
        members: list[Connection] = []

        def detach(room: Room) -> None:
            members.extend(self.manager.dissolve_group(room.id))

        # Состав группы снимаем под lock вместе с удалением, рассылаем уже без lock
        await self.store.reset(req.roomId, before_delete=detach)
        await self.manager.send_all(members, {"type": ROOM_RESET, "roomId": req.roomId})
        logger.info("Active rooms after reset: %s", self.store.room_ids())

    async def disconnect(self, conn: Connection) -> None:
        """Соединение закрыто транспортом. Это не ошибка: ответа нет, только уведомление."""
        self.manager.disconnect(conn.conn_id)
        room_id = conn.room_id
        if room_id is None:
            return
        conn.unbind()
        try:
            remaining = await self.store.remove_participant(room_id, conn.conn_id)
        except RoomNotFound:
            return
        if remaining:
            await self.manager.broadcast(room_id, {"type": PEER_DISCONNECTED})
        logger.info("Connection %s left room %s, remaining=%s", conn.conn_id, room_id, remaining)


async def ws_loop(ws: WebSocket, relay: SessionRelay) -> None:
    """Цикл приёма сообщений одного соединения."""
    conn = None
    try:
        await ws.accept()
        conn = relay.manager.connect(ws)
        logger.info("WS: accepted conn_id=%s", conn.conn_id)
        while True:
            msg = await ws.receive_text()
            if not await relay.handle_message(conn, msg):
                break
    except WebSocketDisconnect as e:
        conn_id = conn.conn_id if conn else None
        logger.info("WS: client disconnected code=%s reason=%s conn_id=%s", e.code, e.reason or "", conn_id)
    except Exception as e:
        logger.exception("WS: error conn_id=%s: %s", conn.conn_id if conn else None, e)
    finally:
        if conn:
            await relay.disconnect(conn)
            logger.info("WS: disconnected conn_id=%s", conn.conn_id)

