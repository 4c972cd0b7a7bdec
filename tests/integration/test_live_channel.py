"""
End-to-end tests for the live channel: handshake, push delivery, and the
reconnect-then-fetch-history path for messages missed while offline.
"""
import uuid

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError
from starlette.websockets import WebSocketDisconnect

from messaging_service.crud import messages as message_crud


@pytest.fixture
def test_client(app):
    with TestClient(app) as c:
        yield c


@pytest.fixture
def alice():
    return uuid.uuid4()


@pytest.fixture
def bob():
    return uuid.uuid4()


@pytest.fixture
def conversation_id(test_client, auth_headers, alice, bob):
    response = test_client.post(
        "/conversations/direct",
        json={"otherUserId": str(bob)},
        headers=auth_headers(alice),
    )
    assert response.status_code == 201
    return response.json()["id"]


def live_connections(client: TestClient) -> int:
    return client.get("/health").json()["liveConnections"]


class TestHandshake:
    def test_valid_token_gets_connected_greeting(self, test_client, token_for, alice):
        with test_client.websocket_connect(f"/ws/live?token={token_for(alice)}") as ws:
            greeting = ws.receive_json()

            assert greeting == {"type": "connected", "userId": str(alice)}
            assert live_connections(test_client) == 1

        assert live_connections(test_client) == 0

    def test_authorization_header_is_accepted(self, test_client, auth_headers, alice):
        with test_client.websocket_connect("/ws/live", headers=auth_headers(alice)) as ws:
            assert ws.receive_json()["type"] == "connected"

    @pytest.mark.parametrize("query", ["", "?token=", "?token=garbage"])
    def test_bad_token_is_refused(self, test_client, query):
        with pytest.raises(WebSocketDisconnect) as exc_info:
            with test_client.websocket_connect(f"/ws/live{query}") as ws:
                ws.receive_json()

        assert exc_info.value.code == 1008
        assert live_connections(test_client) == 0

    def test_ping_pong(self, test_client, token_for, alice):
        with test_client.websocket_connect(f"/ws/live?token={token_for(alice)}") as ws:
            ws.receive_json()
            ws.send_json({"type": "ping"})

            assert ws.receive_json() == {"type": "pong"}

    def test_unknown_and_malformed_frames_get_errors(self, test_client, token_for, alice):
        with test_client.websocket_connect(f"/ws/live?token={token_for(alice)}") as ws:
            ws.receive_json()
            ws.send_text("not json")
            assert ws.receive_json()["type"] == "error"
            ws.send_json({"type": "shout"})
            assert ws.receive_json()["type"] == "error"
            ws.send_json({"type": "sendMessage", "conversationId": "nope"})
            assert ws.receive_json()["type"] == "error"

            # The channel survives bad frames
            ws.send_json({"type": "ping"})
            assert ws.receive_json() == {"type": "pong"}


class TestDelivery:
    def test_offline_recipient_catches_up_from_history(
        self, test_client, token_for, auth_headers, alice, bob, conversation_id
    ):
        messages_url = f"/conversations/{conversation_id}/messages"

        # Bob is online and receives Alice's first message live
        with test_client.websocket_connect(f"/ws/live?token={token_for(bob)}") as ws_bob:
            assert ws_bob.receive_json()["type"] == "connected"

            sent = test_client.post(
                messages_url, data={"content": "hi"}, headers=auth_headers(alice)
            )
            assert sent.status_code == 201

            event = ws_bob.receive_json()
            assert event["type"] == "newMessage"
            assert event["message"]["id"] == sent.json()["id"]
            assert event["message"]["content"] == "hi"
            assert event["message"]["senderId"] == str(alice)

        # Bob drops; the next message is persisted but not pushed anywhere
        assert live_connections(test_client) == 0
        missed = test_client.post(
            messages_url, data={"content": "still there?"}, headers=auth_headers(alice)
        )
        assert missed.status_code == 201

        # Bob reconnects, gets nothing stale on the socket, and recovers via history
        with test_client.websocket_connect(f"/ws/live?token={token_for(bob)}") as ws_bob:
            assert ws_bob.receive_json()["type"] == "connected"
            ws_bob.send_json({"type": "ping"})
            assert ws_bob.receive_json() == {"type": "pong"}

            history = test_client.get(messages_url, headers=auth_headers(bob))

        assert [m["content"] for m in history.json()] == ["hi", "still there?"]

    def test_sender_is_not_echoed(
        self, test_client, token_for, auth_headers, alice, conversation_id
    ):
        with test_client.websocket_connect(f"/ws/live?token={token_for(alice)}") as ws_alice:
            ws_alice.receive_json()
            test_client.post(
                f"/conversations/{conversation_id}/messages",
                data={"content": "note to self"},
                headers=auth_headers(alice),
            )

            ws_alice.send_json({"type": "ping"})
            assert ws_alice.receive_json() == {"type": "pong"}

    def test_every_device_receives(
        self, test_client, token_for, auth_headers, alice, bob, conversation_id
    ):
        url = f"/ws/live?token={token_for(bob)}"
        with test_client.websocket_connect(url) as phone, test_client.websocket_connect(url) as laptop:
            phone.receive_json()
            laptop.receive_json()
            assert live_connections(test_client) == 2

            test_client.post(
                f"/conversations/{conversation_id}/messages",
                data={"content": "both?"},
                headers=auth_headers(alice),
            )

            assert phone.receive_json()["message"]["content"] == "both?"
            assert laptop.receive_json()["message"]["content"] == "both?"


class TestSendOverChannel:
    def test_send_message_frame_is_acked_and_delivered(
        self, test_client, token_for, auth_headers, alice, bob, conversation_id
    ):
        with test_client.websocket_connect(
            f"/ws/live?token={token_for(alice)}"
        ) as ws_alice, test_client.websocket_connect(f"/ws/live?token={token_for(bob)}") as ws_bob:
            ws_alice.receive_json()
            ws_bob.receive_json()

            ws_alice.send_json(
                {"type": "sendMessage", "conversationId": conversation_id, "content": "over ws"}
            )

            ack = ws_alice.receive_json()
            pushed = ws_bob.receive_json()
            assert ack["type"] == "messageAck"
            assert pushed["type"] == "newMessage"
            assert ack["message"]["id"] == pushed["message"]["id"]
            assert pushed["message"]["content"] == "over ws"

        history = test_client.get(
            f"/conversations/{conversation_id}/messages", headers=auth_headers(bob)
        )
        assert [m["content"] for m in history.json()] == ["over ws"]

    def test_outsider_gets_error_frame(self, test_client, token_for, conversation_id):
        with test_client.websocket_connect(f"/ws/live?token={token_for(uuid.uuid4())}") as ws:
            ws.receive_json()
            ws.send_json(
                {"type": "sendMessage", "conversationId": conversation_id, "content": "hi"}
            )

            assert ws.receive_json() == {"type": "error", "detail": "Conversation not found"}

    def test_blank_message_frame_is_rejected(self, test_client, token_for, alice, conversation_id):
        with test_client.websocket_connect(f"/ws/live?token={token_for(alice)}") as ws:
            ws.receive_json()
            ws.send_json({"type": "sendMessage", "conversationId": conversation_id, "content": " "})

            assert ws.receive_json() == {
                "type": "error",
                "detail": "Message must have either content or media.",
            }

    def test_store_failure_keeps_channel_open(
        self, test_client, token_for, alice, conversation_id, monkeypatch
    ):
        async def failing_create_message(*args, **kwargs):
            raise OperationalError("INSERT INTO messages", {}, Exception("database is locked"))

        monkeypatch.setattr(message_crud, "create_message", failing_create_message)

        with test_client.websocket_connect(f"/ws/live?token={token_for(alice)}") as ws:
            ws.receive_json()
            ws.send_json({"type": "sendMessage", "conversationId": conversation_id, "content": "hi"})

            assert ws.receive_json() == {"type": "error", "detail": "Message could not be saved."}

            ws.send_json({"type": "ping"})
            assert ws.receive_json() == {"type": "pong"}
