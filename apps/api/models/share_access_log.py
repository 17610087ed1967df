"""ShareAccessLog model: one row per share access attempt."""

import uuid

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, String
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from database import Base


class ShareAccessLog(Base):
    """Append-only audit entry for a share access attempt."""

    __tablename__ = "share_access_logs"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    # Null when the presented token string matched no share.
    share_token_id = Column(String, ForeignKey("share_tokens.id", ondelete="CASCADE"), nullable=True, index=True)
    code_snippet_id = Column(String, nullable=True, index=True)
    ip_address = Column(String(45), nullable=False, default="unknown")
    user_agent = Column(String(500), nullable=True)
    referer = Column(String(500), nullable=True)
    accept_language = Column(String(50), nullable=True)
    browser = Column(String(50), nullable=True)
    operating_system = Column(String(50), nullable=True)
    device_type = Column(String(50), nullable=True)
    is_success = Column(Boolean, nullable=False)
    failure_reason = Column(String(200), nullable=True)
    accessed_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)

    share_token = relationship("ShareToken", back_populates="access_logs")
