import asyncio

from app import ConnectionManager, handle_frame
from events import ROOM_ERROR, USER_LEFT, USERNAME_SET, Delivery


def join(ws, username, room_id):
    ws.send_json({"event": "join room", "data": {"username": username, "roomId": room_id}})


def receive(ws, count):
    return [ws.receive_json() for _ in range(count)]


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok", "rooms": 0}


def test_join_and_chat_over_websocket(client):
    with client.websocket_connect("/ws") as alice:
        join(alice, "Alice", "lobby")
        assert receive(alice, 4) == [
            {"event": "username set", "data": "Alice"},
            {"event": "room set", "data": "lobby"},
            {"event": "user count", "data": 1},
            {"event": "user joined", "data": "Alice"},
        ]

        alice.send_json({"event": "chat message", "data": "  hello  "})
        message = alice.receive_json()
        assert message["event"] == "chat message"
        payload = message["data"]
        assert payload["content"] == "hello"
        assert payload["username"] == "Alice"
        assert payload["id"].startswith(payload["senderId"] + "-")


def test_peers_see_joins_and_messages(client):
    with client.websocket_connect("/ws") as alice:
        join(alice, "Alice", "lobby")
        receive(alice, 4)

        with client.websocket_connect("/ws") as bob:
            join(bob, "Bob", "lobby")
            receive(bob, 4)
            assert receive(alice, 2) == [
                {"event": "user count", "data": 2},
                {"event": "user joined", "data": "Bob"},
            ]

            bob.send_json({"event": "chat message", "data": "hi all"})
            assert alice.receive_json()["data"]["username"] == "Bob"
            assert bob.receive_json()["data"]["content"] == "hi all"

        # Bob has gone; the user left broadcast itself is covered by the coordinator tests
        details = client.get("/rooms/lobby").json()
        assert details["online_users"] == ["Alice"]


def test_taken_username_over_websocket(client):
    with client.websocket_connect("/ws") as alice:
        join(alice, "Alice", "lobby")
        receive(alice, 4)

        with client.websocket_connect("/ws") as impostor:
            join(impostor, "Alice", "lobby")
            assert impostor.receive_json() == {
                "event": "username error",
                "data": "Username is taken in this room",
            }

        details = client.get("/rooms/lobby").json()
        assert details["online_users_count"] == 1
        assert details["online_users"] == ["Alice"]


def test_room_is_removed_after_last_member_leaves(client):
    with client.websocket_connect("/ws") as alice:
        join(alice, "Alice", "lobby")
        receive(alice, 4)
        assert client.get("/rooms/lobby").status_code == 200

    assert client.get("/rooms/lobby").status_code == 404
    assert client.get("/rooms/").json() == {"rooms": []}


def test_malformed_frames_are_ignored(client):
    with client.websocket_connect("/ws") as ws:
        ws.send_text("not json")
        ws.send_text('"just a string"')
        ws.send_json({"event": "mystery", "data": 1})
        ws.send_json({"event": "chat message", "data": "nobody hears this"})
        join(ws, "Alice", "lobby")
        # the first reply is the join ack, nothing was sent for the junk before it
        assert ws.receive_json() == {"event": "username set", "data": "Alice"}


def test_list_rooms(client):
    with client.websocket_connect("/ws") as alice, client.websocket_connect("/ws") as bob:
        join(alice, "Alice", "lobby")
        receive(alice, 4)
        join(bob, "Bob", "games")
        receive(bob, 4)

        rooms = {room["room_id"]: room for room in client.get("/rooms/").json()["rooms"]}
        assert set(rooms) == {"lobby", "games"}
        assert rooms["lobby"] == {
            "room_id": "lobby",
            "online_users_count": 1,
            "max_users": 40,
            "is_full": False,
        }


def test_handle_frame_join_without_payload(coordinator):
    deliveries = handle_frame(coordinator, "c1", '{"event": "join room"}')
    assert [d.event for d in deliveries] == [ROOM_ERROR]


def test_handle_frame_ignores_extra_fields(coordinator):
    raw = '{"event": "join room", "data": {"username": "Alice", "roomId": "lobby", "avatar": "x"}}'
    deliveries = handle_frame(coordinator, "c1", raw)
    assert deliveries[0].event == USERNAME_SET


class FakeWebSocket:
    def __init__(self, fail=False):
        self.fail = fail
        self.sent = []

    async def send_json(self, data):
        if self.fail:
            raise RuntimeError("socket closed")
        self.sent.append(data)


def test_deliver_skips_broken_and_unknown_connections():
    manager = ConnectionManager()
    alice, broken = FakeWebSocket(), FakeWebSocket(fail=True)
    manager.add("alice", alice)
    manager.add("broken", broken)

    deliveries = [
        Delivery(USER_LEFT, "Bob", ("broken", "gone", "alice")),
        Delivery(USER_LEFT, "Carol", ("alice",)),
    ]
    asyncio.run(manager.deliver(deliveries))

    assert alice.sent == [
        {"event": "user left", "data": "Bob"},
        {"event": "user left", "data": "Carol"},
    ]
    assert broken.sent == []


def test_removed_connection_gets_nothing():
    manager = ConnectionManager()
    ws = FakeWebSocket()
    manager.add("alice", ws)
    manager.remove("alice")

    asyncio.run(manager.deliver([Delivery(USER_LEFT, "Bob", ("alice",))]))

    assert ws.sent == []
    assert len(manager) == 0
