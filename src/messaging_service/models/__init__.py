from .base import Base, TimestampMixin, UUIDMixin
from .conversation import Conversation, ConversationMember, direct_pair_key
from .message import Attachment, AttachmentKind, Message

__all__ = [
    "Attachment",
    "AttachmentKind",
    "Base",
    "Conversation",
    "ConversationMember",
    "Message",
    "TimestampMixin",
    "UUIDMixin",
    "direct_pair_key",
]
