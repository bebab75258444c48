"""Call logs (события звонков с платформы) и дневная аналитика."""
from datetime import datetime
from sqlalchemy import Column, Integer, String, Float, Date, DateTime, ForeignKey, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import JSONB

from apps.backend.database import Base


class CallLog(Base):
    __tablename__ = "call_logs"

    id = Column(Integer, primary_key=True, index=True)
    vapi_call_id = Column(String(128), unique=True, nullable=False, index=True)
    user_id = Column(String(128), nullable=False, index=True)
    assistant_id = Column(String(36), ForeignKey("assistants.id"), nullable=True, index=True)
    vapi_assistant_id = Column(String(128), nullable=True)
    call_type = Column(String(64), nullable=False, default="webCall")
    status = Column(String(32), nullable=False, default="queued")
    started_at = Column(DateTime, nullable=True, index=True)
    ended_at = Column(DateTime, nullable=True)
    duration_seconds = Column(Integer, nullable=True)
    ended_reason = Column(String(128), nullable=True)
    phone_number = Column(String(64), nullable=True)
    recording_url = Column(Text, nullable=True)
    transcript = Column(JSONB, nullable=True)
    messages = Column(JSONB, nullable=True)
    costs = Column(JSONB, nullable=True)
    analysis = Column(JSONB, nullable=True)
    metadata_json = Column(JSONB, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)


class CallAnalytics(Base):
    __tablename__ = "call_analytics"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(128), nullable=False, index=True)
    assistant_id = Column(String(36), ForeignKey("assistants.id"), nullable=True)  # null = все ассистенты
    date = Column(Date, nullable=False)
    total_calls = Column(Integer, nullable=False, default=0)
    successful_calls = Column(Integer, nullable=False, default=0)
    failed_calls = Column(Integer, nullable=False, default=0)
    total_duration_seconds = Column(Integer, nullable=False, default=0)
    total_cost = Column(Float, nullable=False, default=0.0)
    average_duration_seconds = Column(Float, nullable=False, default=0.0)
    success_rate = Column(Float, nullable=False, default=0.0)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("user_id", "assistant_id", "date", name="uq_call_analytics_user_assistant_date"),
    )
