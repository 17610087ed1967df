"""CodeSnippet model."""

import uuid

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from database import Base


class CodeSnippet(Base):
    """A piece of source code owned by a user."""

    __tablename__ = "code_snippets"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=False, default="")
    code = Column(Text, nullable=False)
    language = Column(String(50), nullable=False, index=True)
    created_by = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    is_public = Column(Boolean, nullable=False, default=False)
    view_count = Column(Integer, nullable=False, default=0)
    copy_count = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    creator = relationship("User", back_populates="snippets")
    share_tokens = relationship("ShareToken", back_populates="snippet", cascade="all, delete-orphan")
    comments = relationship("Comment", back_populates="snippet", cascade="all, delete-orphan")
