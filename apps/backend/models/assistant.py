"""Модели ассистентов и их файлов базы знаний."""
import uuid
from datetime import datetime
from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, Text, Index
from sqlalchemy.orm import relationship

from apps.backend.database import Base

DEFAULT_WELCOME_MESSAGE = "Hello! How can I help you today?"
DEFAULT_SYSTEM_PROMPT = "You are a helpful voice assistant."
DEFAULT_VOICE_ID = "vapi-elliot"


def _new_id() -> str:
    return str(uuid.uuid4())


class Assistant(Base):
    __tablename__ = "assistants"

    id = Column(String(36), primary_key=True, default=_new_id)
    user_id = Column(String(128), nullable=False, index=True)  # Clerk sub
    vapi_assistant_id = Column(String(128), nullable=True, index=True)
    name = Column(String(256), nullable=False)
    welcome_message = Column(Text, nullable=False, default=DEFAULT_WELCOME_MESSAGE)
    system_prompt = Column(Text, nullable=False, default=DEFAULT_SYSTEM_PROMPT)
    language = Column(String(16), nullable=False, default="en")
    voice_id = Column(String(128), nullable=False, default=DEFAULT_VOICE_ID)
    position = Column(String(16), nullable=False, default="right")  # left|right
    theme = Column(String(16), nullable=False, default="light")  # light|dark
    status = Column(String(32), nullable=False, default="active")
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    embed_mappings = relationship(
        "EmbedMapping",
        back_populates="assistant",
        order_by="EmbedMapping.created_at",
    )
    files = relationship("AssistantFile", back_populates="assistant")

    __table_args__ = (
        Index("ix_assistants_user_created", "user_id", "created_at"),
    )


class AssistantFile(Base):
    __tablename__ = "assistant_files"

    id = Column(Integer, primary_key=True, index=True)
    assistant_id = Column(String(36), ForeignKey("assistants.id"), nullable=False, index=True)
    user_id = Column(String(128), nullable=False, index=True)
    filename = Column(String(256), nullable=False)
    file_type = Column(String(128), nullable=False)
    file_size = Column(Integer, nullable=False, default=0)
    storage_path = Column(String(256), nullable=True)  # id файла на голосовой платформе
    processed = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    assistant = relationship("Assistant", back_populates="files")
