from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, List
from uuid import UUID

from ..logging_config import logger
from ..schemas.events import NewMessageEvent
from ..schemas.message import MessageRead
from .registry import ConnectionRegistry


@dataclass
class DeliveryReport:
    """Outcome of one dispatch. Misses and failures are informational only."""

    delivered: int = 0
    failed: int = 0
    missed: List[UUID] = field(default_factory=list)


class DeliveryDispatcher:
    """
    Pushes freshly persisted messages to the live connections of conversation members.

    Delivery is best-effort and at most once per connection: recipients with no
    open connection are skipped (they catch up through history), and a failing
    push is logged, its connection dropped, and the loop carries on with the
    remaining recipients.
    """

    def __init__(self, registry: ConnectionRegistry, echo_to_sender: bool = False):
        self.registry = registry
        self.echo_to_sender = echo_to_sender

    def recipients_for(self, sender_id: UUID, member_ids: Iterable[UUID]) -> List[UUID]:
        recipients: List[UUID] = []
        for member_id in member_ids:
            if member_id in recipients:
                continue
            if member_id == sender_id and not self.echo_to_sender:
                continue
            recipients.append(member_id)
        return recipients

    async def dispatch(self, message: MessageRead, member_ids: Iterable[UUID]) -> DeliveryReport:
        report = DeliveryReport()
        payload = NewMessageEvent(message=message).model_dump_json(by_alias=True)

        for user_id in self.recipients_for(message.sender_id, member_ids):
            connections = await self.registry.connections_for(user_id)
            if not connections:
                logger.debug("No live connection for user %s; message %s left for catch-up", user_id, message.id)
                report.missed.append(user_id)
                continue

            for connection in connections:
                try:
                    await connection.send_text(payload)
                    report.delivered += 1
                except Exception as e:
                    report.failed += 1
                    logger.warning(
                        "Live push of message %s to user %s failed: %s", message.id, user_id, e
                    )
                    await self.registry.unregister(user_id, connection)

        logger.info(
            "Dispatched message %s: delivered=%d failed=%d missed=%d",
            message.id,
            report.delivered,
            report.failed,
            len(report.missed),
        )
        return report
