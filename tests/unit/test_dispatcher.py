"""
Unit tests for live delivery of new messages.
"""
import json
import uuid
from datetime import datetime, timezone

import pytest

from messaging_service.schemas import MessageRead
from messaging_service.services import ConnectionRegistry, DeliveryDispatcher


class FakeConnection:
    def __init__(self, fail: bool = False):
        self.sent = []
        self.fail = fail

    async def send_text(self, data: str) -> None:
        if self.fail:
            raise RuntimeError("socket is gone")
        self.sent.append(data)


def make_message(sender_id: uuid.UUID, content: str = "hi") -> MessageRead:
    return MessageRead(
        id=uuid.uuid4(),
        conversation_id=uuid.uuid4(),
        sender_id=sender_id,
        content=content,
        created_at=datetime.now(timezone.utc),
    )


@pytest.fixture
def registry():
    return ConnectionRegistry()


class TestRecipients:
    def test_sender_is_excluded_by_default(self, registry):
        sender, other = uuid.uuid4(), uuid.uuid4()
        dispatcher = DeliveryDispatcher(registry)

        assert dispatcher.recipients_for(sender, [sender, other, other]) == [other]

    def test_sender_included_when_echo_enabled(self, registry):
        sender, other = uuid.uuid4(), uuid.uuid4()
        dispatcher = DeliveryDispatcher(registry, echo_to_sender=True)

        assert dispatcher.recipients_for(sender, [sender, other]) == [sender, other]


class TestDispatch:
    @pytest.mark.asyncio
    async def test_pushes_new_message_event_to_every_recipient_connection(self, registry):
        sender, bob = uuid.uuid4(), uuid.uuid4()
        phone, laptop = FakeConnection(), FakeConnection()
        await registry.register(bob, phone)
        await registry.register(bob, laptop)
        message = make_message(sender)

        report = await DeliveryDispatcher(registry).dispatch(message, [sender, bob])

        assert report.delivered == 2
        event = json.loads(phone.sent[0])
        assert event["type"] == "newMessage"
        assert event["message"]["id"] == str(message.id)
        assert event["message"]["senderId"] == str(sender)
        assert event["message"]["content"] == "hi"
        assert laptop.sent == phone.sent

    @pytest.mark.asyncio
    async def test_sender_connections_are_not_pushed(self, registry):
        sender, bob = uuid.uuid4(), uuid.uuid4()
        sender_conn = FakeConnection()
        await registry.register(sender, sender_conn)

        await DeliveryDispatcher(registry).dispatch(make_message(sender), [sender, bob])

        assert sender_conn.sent == []

    @pytest.mark.asyncio
    async def test_offline_recipients_are_reported_as_missed(self, registry):
        sender, bob, carol = uuid.uuid4(), uuid.uuid4(), uuid.uuid4()
        await registry.register(carol, FakeConnection())

        report = await DeliveryDispatcher(registry).dispatch(
            make_message(sender), [sender, bob, carol]
        )

        assert report.missed == [bob]
        assert report.delivered == 1

    @pytest.mark.asyncio
    async def test_failing_push_does_not_stop_delivery(self, registry):
        """A broken socket is dropped from the registry and the others still receive."""
        sender, bob, carol = uuid.uuid4(), uuid.uuid4(), uuid.uuid4()
        broken, healthy = FakeConnection(fail=True), FakeConnection()
        await registry.register(bob, broken)
        await registry.register(carol, healthy)

        report = await DeliveryDispatcher(registry).dispatch(
            make_message(sender), [sender, bob, carol]
        )

        assert report.failed == 1
        assert report.delivered == 1
        assert len(healthy.sent) == 1
        assert await registry.connections_for(bob) == ()

    @pytest.mark.asyncio
    async def test_no_recipients_online(self, registry):
        sender = uuid.uuid4()

        report = await DeliveryDispatcher(registry).dispatch(make_message(sender), [sender])

        assert report.delivered == 0
        assert report.missed == []
