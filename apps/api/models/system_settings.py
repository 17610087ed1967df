"""SystemSettings model: a single row of JSON settings sections."""

import uuid

from sqlalchemy import JSON, Column, DateTime, String
from sqlalchemy.sql import func

from database import Base


class SystemSettings(Base):
    __tablename__ = "system_settings"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    site_json = Column(JSON, nullable=False, default=dict)
    security_json = Column(JSON, nullable=False, default=dict)
    features_json = Column(JSON, nullable=False, default=dict)
    email_json = Column(JSON, nullable=False, default=dict)
    updated_by = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
