from typing import List, Optional, Sequence
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..logging_config import logger
from ..models import Attachment, Conversation, Message
from ..models.base import utcnow
from ..services.storage import StoredAttachment

EMPTY_MESSAGE_DETAIL = "Message must have either content or media."


def has_text(content: Optional[str]) -> bool:
    return bool(content and content.strip())


async def create_message(
    db: AsyncSession,
    conversation_id: UUID,
    sender_id: UUID,
    content: Optional[str] = None,
    attachments: Sequence[StoredAttachment] = (),
) -> Message:
    """
    Persist a message and its attachments in one transaction.

    Also moves the conversation's last activity to the message timestamp so the
    inbox ordering follows new traffic.

    Args:
        db: Database session
        conversation_id: Conversation the message belongs to
        sender_id: ID of the sending user
        content: Optional text body
        attachments: Already stored media to attach

    Returns:
        The committed message with attachments loaded

    Raises:
        HTTPException: 400 if there is neither text nor media, 404 if the
                       conversation does not exist
    """
    if not has_text(content) and not attachments:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail=EMPTY_MESSAGE_DETAIL
        )

    conversation = await db.get(Conversation, conversation_id)
    if not conversation:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Conversation not found"
        )

    now = utcnow()
    message = Message(
        conversation_id=conversation_id,
        sender_id=sender_id,
        content=content if has_text(content) else None,
        created_at=now,
        attachments=[
            Attachment(
                position=stored.position,
                kind=stored.kind,
                url=stored.url,
                mime_type=stored.mime_type,
                size_bytes=stored.size_bytes,
            )
            for stored in sorted(attachments, key=lambda s: s.position)
        ],
    )
    db.add(message)
    conversation.last_activity_at = now

    await db.commit()
    logger.info(
        f"Stored message {message.id} in conversation {conversation_id} "
        f"({len(attachments)} attachments)"
    )
    return await get_message(db, message.id)


async def get_message(db: AsyncSession, message_id: UUID) -> Message:
    result = await db.execute(select(Message).where(Message.id == message_id))
    message = result.scalar_one_or_none()
    if not message:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Message not found"
        )
    return message


async def list_messages(db: AsyncSession, conversation_id: UUID) -> List[Message]:
    """Full history of a conversation, oldest first. Not paginated."""
    result = await db.execute(
        select(Message)
        .where(Message.conversation_id == conversation_id)
        .order_by(Message.created_at.asc(), Message.id.asc())
    )
    return list(result.scalars().all())
