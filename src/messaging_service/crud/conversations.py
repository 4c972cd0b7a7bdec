from typing import Iterable, List, Optional, Tuple
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ..logging_config import logger
from ..models import Conversation, ConversationMember, Message, direct_pair_key


def _not_found() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND, detail="Conversation not found"
    )


async def get_conversation(db: AsyncSession, conversation_id: UUID) -> Conversation:
    """
    Get a conversation by ID with its members loaded.

    Raises:
        HTTPException: If the conversation is not found
    """
    result = await db.execute(
        select(Conversation)
        .where(Conversation.id == conversation_id)
        .options(selectinload(Conversation.members))
    )
    conversation = result.scalar_one_or_none()
    if not conversation:
        raise _not_found()
    return conversation


async def _get_by_direct_key(db: AsyncSession, key: str) -> Optional[Conversation]:
    result = await db.execute(
        select(Conversation)
        .where(Conversation.direct_key == key)
        .options(selectinload(Conversation.members))
    )
    return result.scalar_one_or_none()


async def find_or_create_direct_conversation(
    db: AsyncSession, user_a: UUID, user_b: UUID
) -> Tuple[Conversation, bool]:
    """
    Return the direct conversation between two users, creating it on first contact.

    The lookup key is order independent, so (A, B) and (B, A) resolve to the same
    row. Two concurrent first-contact requests race on the unique ``direct_key``;
    the loser rolls back and returns the winner's conversation.

    Returns:
        Tuple of the conversation and whether it was created by this call
    """
    if user_a == user_b:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid other user ID."
        )

    key = direct_pair_key(user_a, user_b)
    existing = await _get_by_direct_key(db, key)
    if existing:
        return existing, False

    conversation = Conversation(
        direct_key=key,
        members=[
            ConversationMember(user_id=user_a),
            ConversationMember(user_id=user_b),
        ],
    )
    db.add(conversation)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        logger.info(f"Direct conversation {key} created concurrently; returning existing row")
        existing = await _get_by_direct_key(db, key)
        if existing is None:
            raise
        return existing, False

    logger.info(f"Created direct conversation {conversation.id}")
    return await get_conversation(db, conversation.id), True


async def create_conversation(
    db: AsyncSession,
    creator_id: UUID,
    recipient_ids: Iterable[UUID],
    name: Optional[str] = None,
) -> Conversation:
    """
    Create a conversation between the creator and one or more recipients.

    Recipients are de-duplicated and the creator is always a member.
    """
    member_ids: List[UUID] = [creator_id]
    for recipient_id in recipient_ids:
        if recipient_id not in member_ids:
            member_ids.append(recipient_id)

    if len(member_ids) < 2:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Please provide recipient IDs.",
        )

    conversation = Conversation(
        name=name,
        members=[ConversationMember(user_id=user_id) for user_id in member_ids],
    )
    db.add(conversation)
    await db.commit()

    logger.info(f"Created conversation {conversation.id} with {len(member_ids)} members")
    return await get_conversation(db, conversation.id)


async def get_member_ids(
    db: AsyncSession, conversation_id: UUID, user_id: UUID
) -> List[UUID]:
    """
    Return the member ids of a conversation the user belongs to.

    A missing conversation and a conversation the caller is not part of are
    reported identically.

    Raises:
        HTTPException: 404 if the conversation is missing or the user is not a member
    """
    result = await db.execute(
        select(ConversationMember.user_id).where(
            ConversationMember.conversation_id == conversation_id
        )
    )
    member_ids = list(result.scalars().all())
    if user_id not in member_ids:
        raise _not_found()
    return member_ids


async def list_user_conversations(
    db: AsyncSession, user_id: UUID
) -> List[Tuple[Conversation, Optional[Message]]]:
    """
    List the user's conversations, most recently active first, each paired with
    its latest message (or None for a conversation with no messages yet).
    """
    result = await db.execute(
        select(Conversation)
        .join(ConversationMember, ConversationMember.conversation_id == Conversation.id)
        .where(ConversationMember.user_id == user_id)
        .options(selectinload(Conversation.members))
        .order_by(Conversation.last_activity_at.desc())
    )
    conversations = result.scalars().unique().all()

    inbox: List[Tuple[Conversation, Optional[Message]]] = []
    for conversation in conversations:
        latest = await db.execute(
            select(Message)
            .where(Message.conversation_id == conversation.id)
            .order_by(Message.created_at.desc(), Message.id.desc())
            .limit(1)
        )
        inbox.append((conversation, latest.scalar_one_or_none()))
    return inbox
