from typing import List, Optional
from uuid import UUID

from fastapi import (
    APIRouter,
    Depends,
    File,
    Form,
    HTTPException,
    Request,
    Response,
    UploadFile,
    status,
)
from sqlalchemy.ext.asyncio import AsyncSession

from ..crud import conversations as conversation_crud
from ..crud import messages as message_crud
from ..db import get_db
from ..dependencies import (
    get_attachment_storage,
    get_conversation_locks,
    get_current_user_id,
    get_delivery_dispatcher,
)
from ..logging_config import logger
from ..rate_limiting import SEND_MESSAGE_LIMIT, limiter
from ..schemas import (
    ConversationCreate,
    ConversationRead,
    ConversationSummary,
    DirectConversationCreate,
    MessageRead,
)
from ..services import (
    AttachmentRejected,
    AttachmentStorage,
    ConversationLocks,
    DeliveryDispatcher,
)

conversations_router = APIRouter(prefix="/conversations", tags=["Conversations"])


def _parse_user_id(raw: Optional[str], detail: str) -> UUID:
    """Turn a client-supplied user id into a UUID, or fail with 400."""
    try:
        return UUID(str(raw))
    except ValueError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


@conversations_router.get("", response_model=List[ConversationSummary])
async def list_conversations(
    user_id: UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """
    Inbox view: every conversation the caller belongs to, most recent first,
    with the other participants and a preview of the latest message.
    """
    inbox = await conversation_crud.list_user_conversations(db, user_id)
    return [
        ConversationSummary(
            id=conversation.id,
            name=conversation.name,
            is_direct=conversation.is_direct,
            last_activity_at=conversation.last_activity_at,
            last_message=MessageRead.model_validate(last) if last else None,
            participants=[m.user_id for m in conversation.members if m.user_id != user_id],
        )
        for conversation, last in inbox
    ]


@conversations_router.post(
    "/direct",
    response_model=ConversationRead,
    status_code=status.HTTP_200_OK,
    responses={201: {"model": ConversationRead, "description": "Conversation created"}},
)
async def get_or_create_direct_conversation(
    payload: DirectConversationCreate,
    response: Response,
    user_id: UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """
    Get or create a direct (1-on-1) conversation with another user.

    Returns 200 with the existing conversation, or 201 when it was just created.
    """
    other_user_id = _parse_user_id(payload.other_user_id, "Invalid other user ID.")

    conversation, created = await conversation_crud.find_or_create_direct_conversation(
        db, user_id, other_user_id
    )
    if created:
        response.status_code = status.HTTP_201_CREATED
    return conversation


@conversations_router.post(
    "", response_model=ConversationRead, status_code=status.HTTP_201_CREATED
)
async def create_conversation(
    payload: ConversationCreate,
    user_id: UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    dispatcher: DeliveryDispatcher = Depends(get_delivery_dispatcher),
):
    """Start a group conversation, optionally seeded with a first message."""
    recipient_ids = [
        _parse_user_id(raw, "Invalid recipient ID.") for raw in payload.recipient_ids
    ]
    conversation = await conversation_crud.create_conversation(
        db, user_id, recipient_ids, name=payload.name
    )

    initial = payload.initial_message
    if initial and message_crud.has_text(initial.content):
        msg = await message_crud.create_message(
            db, conversation.id, user_id, initial.content
        )
        await dispatcher.dispatch(
            MessageRead.model_validate(msg), [m.user_id for m in conversation.members]
        )

    return conversation


@conversations_router.get("/{conversation_id}", response_model=ConversationRead)
async def get_conversation(
    conversation_id: UUID,
    user_id: UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    await conversation_crud.get_member_ids(db, conversation_id, user_id)
    return await conversation_crud.get_conversation(db, conversation_id)


@conversations_router.get("/{conversation_id}/messages", response_model=List[MessageRead])
async def list_messages(
    conversation_id: UUID,
    user_id: UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Full message history, oldest first. Clients use this as the catch-up fetch."""
    await conversation_crud.get_member_ids(db, conversation_id, user_id)
    return await message_crud.list_messages(db, conversation_id)


@conversations_router.post(
    "/{conversation_id}/messages",
    response_model=MessageRead,
    status_code=status.HTTP_201_CREATED,
)
@limiter.limit(SEND_MESSAGE_LIMIT)
async def send_message(
    request: Request,
    conversation_id: UUID,
    content: Optional[str] = Form(None),
    media: Optional[List[UploadFile]] = File(None),
    user_id: UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    storage: AttachmentStorage = Depends(get_attachment_storage),
    dispatcher: DeliveryDispatcher = Depends(get_delivery_dispatcher),
    locks: ConversationLocks = Depends(get_conversation_locks),
):
    """
    Send a message (text and/or up to the configured number of media files).

    The message is committed first, then pushed to the other members' live
    connections. The sender always gets the populated message back.
    """
    uploads = [upload for upload in (media or []) if upload.filename]
    if not message_crud.has_text(content) and not uploads:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=message_crud.EMPTY_MESSAGE_DETAIL,
        )

    member_ids = await conversation_crud.get_member_ids(db, conversation_id, user_id)

    try:
        stored = await storage.save_all(uploads)
    except AttachmentRejected as e:
        logger.warning(f"Rejected upload for conversation {conversation_id}: {e.detail}")
        raise HTTPException(status_code=e.status_code, detail=e.detail)

    async with locks.hold(conversation_id):
        try:
            msg = await message_crud.create_message(
                db, conversation_id, user_id, content, stored
            )
        except Exception:
            await storage.discard(stored)
            raise
        message = MessageRead.model_validate(msg)
        await dispatcher.dispatch(message, member_ids)

    return message
