import asyncio
import uuid

import pytest

from messaging_service.services import ConversationLocks


async def _record(locks: ConversationLocks, conversation_id, log, name, pause):
    async with locks.hold(conversation_id):
        log.append(f"{name}:start")
        await asyncio.sleep(pause)
        log.append(f"{name}:end")


class TestConversationLocks:
    @pytest.mark.asyncio
    async def test_disabled_locks_let_sends_interleave(self):
        locks = ConversationLocks(enabled=False)
        conversation_id = uuid.uuid4()
        log = []

        await asyncio.gather(
            _record(locks, conversation_id, log, "a", 0.02),
            _record(locks, conversation_id, log, "b", 0.0),
        )

        assert log.index("b:end") < log.index("a:end")
        assert len(locks) == 0

    @pytest.mark.asyncio
    async def test_enabled_locks_serialise_one_conversation(self):
        locks = ConversationLocks(enabled=True)
        conversation_id = uuid.uuid4()
        log = []

        await asyncio.gather(
            _record(locks, conversation_id, log, "a", 0.02),
            _record(locks, conversation_id, log, "b", 0.0),
        )

        assert log == ["a:start", "a:end", "b:start", "b:end"]

    @pytest.mark.asyncio
    async def test_different_conversations_do_not_block_each_other(self):
        locks = ConversationLocks(enabled=True)
        log = []

        await asyncio.gather(
            _record(locks, uuid.uuid4(), log, "a", 0.02),
            _record(locks, uuid.uuid4(), log, "b", 0.0),
        )

        assert log.index("b:end") < log.index("a:end")

    @pytest.mark.asyncio
    async def test_lock_is_released_after_use(self):
        locks = ConversationLocks(enabled=True)
        conversation_id = uuid.uuid4()

        async with locks.hold(conversation_id):
            assert len(locks) == 1

        assert len(locks) == 0

    @pytest.mark.asyncio
    async def test_lock_is_released_when_body_raises(self):
        locks = ConversationLocks(enabled=True)

        with pytest.raises(ValueError):
            async with locks.hold(uuid.uuid4()):
                raise ValueError("boom")

        assert len(locks) == 0
