"""Scraped websites: одна строка на задачу краулинга."""
from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Text, Index

from apps.backend.database import Base

SCRAPE_QUEUED = "queued"
SCRAPE_SCRAPING = "scraping"
SCRAPE_COMPLETED = "completed"
SCRAPE_FAILED = "failed"
SCRAPE_TERMINAL_STATUSES = (SCRAPE_COMPLETED, SCRAPE_FAILED)


class ScrapedWebsite(Base):
    __tablename__ = "scraped_websites"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(128), nullable=False, index=True)
    assistant_id = Column(String(36), ForeignKey("assistants.id"), nullable=True, index=True)
    url = Column(Text, nullable=False)
    firecrawl_job_id = Column(String(128), nullable=True, index=True)
    status = Column(String(32), nullable=False, default=SCRAPE_QUEUED)  # queued|scraping|completed|failed
    pages_scraped = Column(Integer, nullable=False, default=0)
    total_size_kb = Column(Integer, nullable=False, default=0)
    content_text = Column(Text, nullable=True)
    vapi_file_id = Column(String(128), nullable=True)
    error_message = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    last_checked_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)

    __table_args__ = (
        Index("ix_scraped_websites_user_status", "user_id", "status"),
    )
