import enum

from sqlalchemy import Column, ForeignKey, Integer, String, Text, Uuid
from sqlalchemy.orm import relationship

from .base import Base, TimestampMixin, UUIDMixin


class AttachmentKind(str, enum.Enum):
    IMAGE = "image"
    VIDEO = "video"


class Message(UUIDMixin, TimestampMixin, Base):
    __tablename__ = "messages"

    conversation_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("conversations.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )
    sender_id = Column(Uuid(as_uuid=True), nullable=False, index=True)
    content = Column(Text, nullable=True)

    # Relationships
    conversation = relationship("Conversation", back_populates="messages")
    attachments = relationship(
        "Attachment",
        back_populates="message",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="Attachment.position",
    )


class Attachment(UUIDMixin, TimestampMixin, Base):
    __tablename__ = "message_attachments"

    message_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("messages.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )
    position = Column(Integer, nullable=False, default=0)
    kind = Column(String(16), nullable=False)  # 'image' | 'video'
    url = Column(String(1024), nullable=False)
    mime_type = Column(String(128), nullable=False)
    size_bytes = Column(Integer, nullable=False, default=0)

    message = relationship("Message", back_populates="attachments")
