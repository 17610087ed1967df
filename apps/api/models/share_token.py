"""ShareToken model for password/quota/expiry-gated snippet links."""

import enum
import uuid

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from database import Base


class SharePermission(str, enum.Enum):
    READ_ONLY = "read_only"
    EDIT = "edit"
    FULL = "full"


class ShareToken(Base):
    """Public share token for a specific code snippet."""

    __tablename__ = "share_tokens"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    token = Column(String(64), nullable=False, unique=True, index=True)
    code_snippet_id = Column(String, ForeignKey("code_snippets.id"), nullable=False, index=True)
    created_by = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    access_count = Column(Integer, nullable=False, default=0)
    max_access_count = Column(Integer, nullable=False, default=0)  # 0 = unlimited
    permission = Column(String, nullable=False, default=SharePermission.READ_ONLY.value)
    description = Column(String(500), nullable=False, default="")
    password = Column(String, nullable=True)  # bcrypt hash
    allow_download = Column(Boolean, nullable=False, default=True)
    allow_copy = Column(Boolean, nullable=False, default=True)
    last_accessed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    creator = relationship("User", back_populates="share_tokens")
    snippet = relationship("CodeSnippet", back_populates="share_tokens")
    access_logs = relationship(
        "ShareAccessLog",
        back_populates="share_token",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
