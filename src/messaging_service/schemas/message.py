from datetime import datetime
from typing import List, Optional
from uuid import UUID

from .common import CamelModel


class AttachmentRead(CamelModel):
    id: UUID
    kind: str
    url: str
    mime_type: str
    size_bytes: int


class MessageRead(CamelModel):
    id: UUID
    conversation_id: UUID
    sender_id: UUID
    content: Optional[str] = None
    created_at: datetime
    attachments: List[AttachmentRead] = []
