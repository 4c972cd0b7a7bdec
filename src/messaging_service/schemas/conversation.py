from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import Field

from .common import CamelModel
from .message import MessageRead


class DirectConversationCreate(CamelModel):
    # Kept as text so a missing or malformed id is reported as 400, not a schema error
    other_user_id: Optional[str] = None


class InitialMessage(CamelModel):
    content: Optional[str] = None


class ConversationCreate(CamelModel):
    recipient_ids: List[str] = Field(default_factory=list)
    name: Optional[str] = Field(None, max_length=255)
    initial_message: Optional[InitialMessage] = None


class ConversationMemberRead(CamelModel):
    user_id: UUID
    created_at: datetime


class ConversationRead(CamelModel):
    id: UUID
    name: Optional[str] = None
    is_direct: bool
    last_activity_at: datetime
    created_at: datetime
    members: List[ConversationMemberRead] = []


class ConversationSummary(CamelModel):
    """Inbox row: one conversation with its latest message."""

    id: UUID
    name: Optional[str] = None
    is_direct: bool
    last_activity_at: datetime
    last_message: Optional[MessageRead] = None
    participants: List[UUID] = []
