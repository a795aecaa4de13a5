import asyncio
import json

from roomrelay.reaper import Reaper
from roomrelay.rooms import RoomStore
from roomrelay.ws_handlers import SessionRelay
from roomrelay.ws_manager import WSManager


class FakeWS:
    def __init__(self):
        self.sent = []

    async def send_json(self, payload):
        self.sent.append(payload)


async def _setup(notify: bool):
    store = RoomStore()
    manager = WSManager()
    relay = SessionRelay(store, manager)
    ws = FakeWS()
    conn = manager.connect(ws)
    await relay.handle_message(conn, json.dumps({"type": "createRoom"}))
    old_id = conn.room_id
    store.get(old_id).created_at = 0.0
    fresh_id = await store.create()
    store.get(fresh_id).created_at = 3500.0
    reaper = Reaper(store, manager, ttl_seconds=3600, interval_seconds=3600, notify=notify)
    return reaper, store, manager, conn, ws, old_id, fresh_id


def test_tick_evicts_expired_rooms_silently():
    async def scenario():
        reaper, store, manager, conn, ws, old_id, fresh_id = await _setup(notify=False)
        evicted = await reaper.tick(now=4000.0)
        return evicted, store, manager, conn, ws, old_id, fresh_id

    evicted, store, manager, conn, ws, old_id, fresh_id = asyncio.run(scenario())
    assert evicted == [old_id]
    assert store.get(old_id) is None
    assert store.get(fresh_id) is not None
    assert [m["type"] for m in ws.sent] == ["roomCreated"]
    assert conn.room_id is None
    assert manager.members(old_id) == []


def test_tick_notifies_members_when_enabled():
    async def scenario():
        reaper, store, manager, conn, ws, old_id, _ = await _setup(notify=True)
        await reaper.tick(now=4000.0)
        return ws, old_id

    ws, old_id = asyncio.run(scenario())
    assert ws.sent[-1] == {"type": "roomExpired", "roomId": old_id}


def test_tick_without_expired_rooms_is_noop():
    async def scenario():
        reaper, store, *_ = await _setup(notify=True)
        return await reaper.tick(now=1.0), len(store)

    assert asyncio.run(scenario()) == ([], 2)


def test_run_sweeps_on_interval():
    async def scenario():
        store = RoomStore()
        room_id = await store.create()
        store.get(room_id).created_at = 0.0
        reaper = Reaper(store, WSManager(), ttl_seconds=1, interval_seconds=0.01)
        task = asyncio.create_task(reaper.run())
        for _ in range(100):
            await asyncio.sleep(0.01)
            if store.get(room_id) is None:
                break
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        return store.get(room_id)

    assert asyncio.run(scenario()) is None


def test_expiry_notice_sent_after_room_is_gone():
    seen = []

    class RecordingWS(FakeWS):
        async def send_json(self, payload):
            seen.append(store.get(payload["roomId"]))
            await super().send_json(payload)

    store = RoomStore()

    async def scenario():
        manager = WSManager()
        relay = SessionRelay(store, manager)
        conn = manager.connect(RecordingWS())
        await relay.handle_message(conn, json.dumps({"type": "createRoom"}))
        seen.clear()
        store.get(conn.room_id).created_at = 0.0
        reaper = Reaper(store, manager, ttl_seconds=10, interval_seconds=10, notify=True)
        return await reaper.tick(now=100.0)

    assert len(asyncio.run(scenario())) == 1
    assert seen == [None]
