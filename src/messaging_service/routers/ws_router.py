import json
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, WebSocket, WebSocketDisconnect, status
from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError

from ..crud import conversations as conversation_crud
from ..crud import messages as message_crud
from ..db import get_session_factory
from ..dependencies import (
    get_connection_registry,
    get_conversation_locks,
    get_delivery_dispatcher,
)
from ..logging_config import logger
from ..schemas import (
    ConnectedEvent,
    ErrorEvent,
    MessageAckEvent,
    MessageRead,
    PongEvent,
    SendMessageFrame,
)
from ..security import AuthError, decode_user_token, parse_bearer
from ..services import ConnectionRegistry, ConversationLocks, DeliveryDispatcher

ws_router = APIRouter(prefix="/ws", tags=["WebSocket"])


async def _send_event(websocket: WebSocket, event) -> None:
    await websocket.send_text(event.model_dump_json(by_alias=True))


async def _handle_send_message(
    frame: SendMessageFrame,
    user_id: UUID,
    dispatcher: DeliveryDispatcher,
    locks: ConversationLocks,
) -> MessageRead:
    """Persist a text message received over the live channel and fan it out."""
    if not message_crud.has_text(frame.content):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=message_crud.EMPTY_MESSAGE_DETAIL,
        )

    session_factory = get_session_factory()
    async with session_factory() as session:
        member_ids = await conversation_crud.get_member_ids(
            session, frame.conversation_id, user_id
        )
        async with locks.hold(frame.conversation_id):
            msg = await message_crud.create_message(
                session, frame.conversation_id, user_id, frame.content
            )
            message = MessageRead.model_validate(msg)
            await dispatcher.dispatch(message, member_ids)
    return message


async def _handle_frame(
    websocket: WebSocket,
    raw: str,
    user_id: UUID,
    dispatcher: DeliveryDispatcher,
    locks: ConversationLocks,
) -> None:
    try:
        data = json.loads(raw)
    except json.JSONDecodeError:
        await _send_event(websocket, ErrorEvent(detail="Frames must be JSON objects."))
        return

    frame_type = data.get("type") if isinstance(data, dict) else None

    if frame_type == "ping":
        await _send_event(websocket, PongEvent())
    elif frame_type == "sendMessage":
        try:
            frame = SendMessageFrame.model_validate(data)
            message = await _handle_send_message(frame, user_id, dispatcher, locks)
        except ValidationError:
            await _send_event(websocket, ErrorEvent(detail="Invalid sendMessage frame."))
        except HTTPException as e:
            await _send_event(websocket, ErrorEvent(detail=str(e.detail)))
        except SQLAlchemyError:
            logger.exception(f"Failed to store live channel message from user {user_id}")
            await _send_event(websocket, ErrorEvent(detail="Message could not be saved."))
        else:
            await _send_event(websocket, MessageAckEvent(message=message))
    else:
        await _send_event(websocket, ErrorEvent(detail=f"Unsupported frame type: {frame_type!r}"))


@ws_router.websocket("/live")
async def live_channel(
    websocket: WebSocket,
    registry: ConnectionRegistry = Depends(get_connection_registry),
    dispatcher: DeliveryDispatcher = Depends(get_delivery_dispatcher),
    locks: ConversationLocks = Depends(get_conversation_locks),
):
    # Enforce JWT auth before accepting the connection
    token = parse_bearer(websocket.headers, websocket.query_params)
    if not token:
        logger.info("Live channel refused: no token supplied")
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return
    try:
        user_id = decode_user_token(token).user_id
    except AuthError as e:
        logger.info(f"Live channel refused: {e}")
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await websocket.accept()
    await registry.register(user_id, websocket)
    try:
        await _send_event(websocket, ConnectedEvent(user_id=user_id))
        while True:
            raw = await websocket.receive_text()
            await _handle_frame(websocket, raw, user_id, dispatcher, locks)
    except WebSocketDisconnect as e:
        logger.info(f"Live channel for user {user_id} closed (code {e.code})")
    except Exception:
        logger.exception(f"Live channel for user {user_id} failed")
    finally:
        await registry.unregister(user_id, websocket)
