from fastapi.testclient import TestClient

from roomrelay.main import app


def test_health():
    with TestClient(app) as client:
        assert client.get("/health").json() == {"status": "ok"}


def test_unknown_room_is_404():
    with TestClient(app) as client:
        resp = client.get("/rooms/missing1")
        assert resp.status_code == 404


def test_two_players_over_websocket():
    with TestClient(app) as client:
        with client.websocket_connect("/ws") as ws1:
            ws1.send_json({"type": "createRoom"})
            created = ws1.receive_json()
            assert created["type"] == "roomCreated"
            assert created["seat"] == "white"
            room_id = created["roomId"]

            with client.websocket_connect("/ws") as ws2:
                ws2.send_json({"type": "joinRoom", "roomId": room_id})
                joined = ws2.receive_json()
                assert joined["type"] == "roomJoined"
                assert joined["seat"] == "black"
                assert ws1.receive_json() == {"type": "peerJoined", "roomId": room_id}

                ws1.send_json({
                    "type": "submitMove",
                    "roomId": room_id,
                    "move": {"from": "e2", "to": "e4"},
                })
                applied = ws1.receive_json()
                assert applied["type"] == "moveApplied"
                assert ws2.receive_json() == applied

                summary = client.get(f"/rooms/{room_id}").json()
                assert summary["participants"] == 2
                assert summary["isFull"] is True
                assert summary["lastMove"] == {"from": "e2", "to": "e4"}
                assert summary["position"] == applied["position"]

            assert ws1.receive_json() == {"type": "peerDisconnected"}
            assert client.get(f"/rooms/{room_id}").json()["participants"] == 1

            ws1.send_json({"type": "resetRoom", "roomId": room_id})
            assert ws1.receive_json() == {"type": "roomReset", "roomId": room_id}
            assert client.get(f"/rooms/{room_id}").status_code == 404


def test_join_unknown_room_over_websocket():
    with TestClient(app) as client:
        with client.websocket_connect("/ws") as ws:
            ws.send_json({"type": "joinRoom", "roomId": "missing1"})
            assert ws.receive_json() == {"type": "roomError", "message": "Game not found"}
