"""
Frames exchanged over the live channel.

Server to client: ``connected``, ``newMessage``, ``messageAck``, ``pong``, ``error``.
Client to server: ``ping``, ``sendMessage``.
"""

from typing import Literal, Optional
from uuid import UUID

from .common import CamelModel
from .message import MessageRead


class ConnectedEvent(CamelModel):
    type: Literal["connected"] = "connected"
    user_id: UUID


class NewMessageEvent(CamelModel):
    type: Literal["newMessage"] = "newMessage"
    message: MessageRead


class MessageAckEvent(CamelModel):
    type: Literal["messageAck"] = "messageAck"
    message: MessageRead


class PongEvent(CamelModel):
    type: Literal["pong"] = "pong"


class ErrorEvent(CamelModel):
    type: Literal["error"] = "error"
    detail: str


class SendMessageFrame(CamelModel):
    type: Literal["sendMessage"]
    conversation_id: UUID
    content: Optional[str] = None
