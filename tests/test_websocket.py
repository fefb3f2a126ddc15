import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from app import app
from conftest import DIVISAO
from websocket_manager import GLOBAL_ROOM, manager, process_room


def test_anonymous_connection_is_refused():
    with pytest.raises(WebSocketDisconnect):
        with TestClient(app).websocket_connect("/ws") as websocket:
            websocket.receive_json()


def test_connect_ping_and_subscribe(admin_client, create_process):
    process = create_process()
    with admin_client.websocket_connect("/ws") as websocket:
        hello = websocket.receive_json()
        assert hello["type"] == "connection"
        assert manager.get_room_size(GLOBAL_ROOM) == 1

        websocket.send_json({"type": "subscribe", "process_id": process["id"]})
        websocket.send_json({"type": "ping"})
        assert websocket.receive_json() == {"type": "pong"}
        assert manager.get_room_size(process_room(process["id"])) == 1

        websocket.send_json({"type": "subscribe", "process_id": 99999})
        assert websocket.receive_json()["type"] == "error"

        websocket.send_json({"type": "unsubscribe", "process_id": process["id"]})
        websocket.send_json({"type": "ping"})
        websocket.receive_json()
        assert manager.get_room_size(process_room(process["id"])) == 0


def test_malformed_messages_keep_the_socket_open(admin_client):
    with admin_client.websocket_connect("/ws") as websocket:
        websocket.receive_json()

        websocket.send_json({"type": "subscribe", "process_id": "abc"})
        assert websocket.receive_json() == {"type": "error", "message": "Invalid process_id"}

        websocket.send_json({"type": "unsubscribe", "process_id": [1]})
        assert websocket.receive_json()["type"] == "error"

        websocket.send_text("not json")
        assert websocket.receive_json() == {"type": "error", "message": "Invalid message format"}

        websocket.send_json(["ping"])
        assert websocket.receive_json()["type"] == "error"

        websocket.send_json({"type": "ping"})
        assert websocket.receive_json() == {"type": "pong"}
        assert manager.get_room_size(GLOBAL_ROOM) == 1


def test_step_updates_reach_only_process_subscribers(admin_client, create_process):
    process = create_process()
    url = f"/api/processes/{process['id']}"
    step = admin_client.get(f"{url}/steps").json()[0]

    with admin_client.websocket_connect("/ws") as watcher, admin_client.websocket_connect("/ws") as follower:
        watcher.receive_json()
        follower.receive_json()

        follower.send_json({"type": "subscribe", "process_id": process["id"]})
        follower.send_json({"type": "ping"})
        assert follower.receive_json() == {"type": "pong"}

        assert admin_client.patch(f"{url}/steps/{step['id']}", json={"is_completed": True}).status_code == 200
        updated = follower.receive_json()
        assert updated["type"] == "step_updated"
        assert updated["process_id"] == process["id"]
        assert updated["data"]["id"] == step["id"]

        moved = admin_client.post(f"{url}/transfer", json={"department_id": DIVISAO, "force": True})
        assert moved.status_code == 200

        # The watcher never followed the process, so the transfer is the first event it sees
        for websocket in (watcher, follower):
            event = websocket.receive_json()
            assert event["type"] == "process_transferred"
            assert event["process_id"] == process["id"]
            assert event["message"]
            assert event["timestamp"]
            assert event["data"] == {"department_id": DIVISAO}
