"""In-app notification model."""

import enum
import uuid

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, String, Text
from sqlalchemy.sql import func

from database import Base


class NotificationType(str, enum.Enum):
    COMMENT = "comment"
    REPLY = "reply"
    MESSAGE = "message"
    SYSTEM = "system"
    LIKE = "like"
    SHARE = "share"


class Notification(Base):
    __tablename__ = "notifications"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    type = Column(String, nullable=False)
    title = Column(String(200), nullable=False)
    content = Column(Text, nullable=True)
    related_entity_type = Column(String, nullable=True)  # snippet, comment, message, share
    related_entity_id = Column(String, nullable=True)
    triggered_by_user_id = Column(String, ForeignKey("users.id"), nullable=True)
    is_read = Column(Boolean, nullable=False, default=False)
    read_at = Column(DateTime(timezone=True), nullable=True)
    is_deleted = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)
