"""ClipboardHistory model."""

import uuid

from sqlalchemy import Column, DateTime, ForeignKey, String
from sqlalchemy.sql import func

from database import Base


class ClipboardHistory(Base):
    """One row per snippet copy made by a signed-in user."""

    __tablename__ = "clipboard_history"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    snippet_id = Column(String, ForeignKey("code_snippets.id"), nullable=False, index=True)
    copied_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)
