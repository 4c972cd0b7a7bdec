from uuid import UUID

from sqlalchemy import Column, DateTime, ForeignKey, String, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship

from .base import Base, TimestampMixin, UUIDMixin, utcnow


def direct_pair_key(user_a: UUID, user_b: UUID) -> str:
    """Order-independent key identifying the direct chat between two users."""
    low, high = sorted([str(user_a), str(user_b)])
    return f"{low}:{high}"


class Conversation(UUIDMixin, TimestampMixin, Base):
    __tablename__ = "conversations"

    # NULL for direct 1:1 chats
    name = Column(String(255), nullable=True)
    # Only set for direct chats; the unique constraint guards first-contact races
    direct_key = Column(String(80), nullable=True, unique=True)
    last_activity_at = Column(
        DateTime(timezone=True), default=utcnow, nullable=False, index=True
    )

    # Relationships
    members = relationship(
        "ConversationMember",
        back_populates="conversation",
        cascade="all, delete-orphan",
    )
    messages = relationship(
        "Message", back_populates="conversation", cascade="all, delete-orphan"
    )

    @property
    def is_direct(self) -> bool:
        return self.direct_key is not None


class ConversationMember(UUIDMixin, TimestampMixin, Base):
    __tablename__ = "conversation_members"
    __table_args__ = (
        UniqueConstraint("conversation_id", "user_id", name="uq_conversation_member"),
    )

    conversation_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("conversations.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )
    # References a user owned by the auth service
    user_id = Column(Uuid(as_uuid=True), nullable=False, index=True)

    conversation = relationship("Conversation", back_populates="members")
