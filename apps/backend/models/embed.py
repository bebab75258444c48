"""Embed mappings: публичный embed_id -> ассистент на голосовой платформе."""
from datetime import datetime
from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, Index
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship

from apps.backend.database import Base


class EmbedMapping(Base):
    __tablename__ = "embed_mappings"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(128), nullable=False, index=True)
    embed_id = Column(String(64), unique=True, nullable=False, index=True)
    assistant_id = Column(String(36), ForeignKey("assistants.id"), nullable=True, index=True)
    vapi_assistant_id = Column(String(128), nullable=False)
    name = Column(String(256), nullable=True)
    api_key = Column(String(128), nullable=False)
    domain_whitelist = Column(JSONB, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    assistant = relationship("Assistant", back_populates="embed_mappings")

    __table_args__ = (
        Index("ix_embed_mappings_user_active", "user_id", "is_active"),
    )
