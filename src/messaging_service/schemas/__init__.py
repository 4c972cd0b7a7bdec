from .conversation import (
    ConversationCreate,
    ConversationMemberRead,
    ConversationRead,
    ConversationSummary,
    DirectConversationCreate,
    InitialMessage,
)
from .events import (
    ConnectedEvent,
    ErrorEvent,
    MessageAckEvent,
    NewMessageEvent,
    PongEvent,
    SendMessageFrame,
)
from .message import AttachmentRead, MessageRead

__all__ = [
    "AttachmentRead",
    "ConnectedEvent",
    "ConversationCreate",
    "ConversationMemberRead",
    "ConversationRead",
    "ConversationSummary",
    "DirectConversationCreate",
    "ErrorEvent",
    "InitialMessage",
    "MessageAckEvent",
    "MessageRead",
    "NewMessageEvent",
    "PongEvent",
    "SendMessageFrame",
]
