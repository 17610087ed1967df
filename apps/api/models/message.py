"""Direct message model."""

import uuid

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, String, Text
from sqlalchemy.sql import func

from database import Base


class Message(Base):
    """Private message between two users, soft-deleted per side."""

    __tablename__ = "messages"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    sender_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    receiver_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    subject = Column(String(200), nullable=True)
    content = Column(Text, nullable=False)
    parent_id = Column(String, ForeignKey("messages.id"), nullable=True)
    conversation_id = Column(String, nullable=True, index=True)
    is_read = Column(Boolean, nullable=False, default=False)
    read_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)
    sender_deleted_at = Column(DateTime(timezone=True), nullable=True)
    receiver_deleted_at = Column(DateTime(timezone=True), nullable=True)
