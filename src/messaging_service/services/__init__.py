from .dispatcher import DeliveryDispatcher, DeliveryReport
from .registry import ConnectionRegistry, LiveConnection
from .sequencing import ConversationLocks
from .storage import AttachmentRejected, AttachmentStorage, StoredAttachment

__all__ = [
    "AttachmentRejected",
    "AttachmentStorage",
    "ConnectionRegistry",
    "ConversationLocks",
    "DeliveryDispatcher",
    "DeliveryReport",
    "LiveConnection",
    "StoredAttachment",
]
