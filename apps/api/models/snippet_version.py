"""SnippetVersion model."""

import uuid

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.sql import func

from database import Base


class SnippetVersion(Base):
    """Immutable snapshot of a snippet's content."""

    __tablename__ = "snippet_versions"
    __table_args__ = (UniqueConstraint("snippet_id", "version_number", name="uq_snippet_version_number"),)

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    snippet_id = Column(String, ForeignKey("code_snippets.id"), nullable=False, index=True)
    version_number = Column(Integer, nullable=False)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=False, default="")
    code = Column(Text, nullable=False)
    language = Column(String(50), nullable=False)
    change_description = Column(String(500), nullable=True)
    created_by = Column(String, ForeignKey("users.id"), nullable=True)  # null once the author is deleted
    created_at = Column(DateTime(timezone=True), server_default=func.now())
