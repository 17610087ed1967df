"""Tag and SnippetTag models."""

import uuid

from sqlalchemy import Column, DateTime, ForeignKey, String, UniqueConstraint
from sqlalchemy.sql import func

from database import Base

DEFAULT_TAG_COLOR = "#007bff"


class Tag(Base):
    __tablename__ = "tags"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String(50), unique=True, nullable=False, index=True)
    color = Column(String(7), nullable=False, default=DEFAULT_TAG_COLOR)
    created_by = Column(String, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class SnippetTag(Base):
    __tablename__ = "snippet_tags"
    __table_args__ = (UniqueConstraint("snippet_id", "tag_id", name="uq_snippet_tag"),)

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    snippet_id = Column(String, ForeignKey("code_snippets.id"), nullable=False, index=True)
    tag_id = Column(String, ForeignKey("tags.id"), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
