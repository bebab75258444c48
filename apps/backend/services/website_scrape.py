"""Website scrape jobs: DB record lifecycle around the crawl poller."""
from __future__ import annotations

import logging
import time
from datetime import datetime
from typing import Callable
from urllib.parse import urlparse

from sqlalchemy import select
from sqlalchemy.orm import Session

from apps.backend.clients.errors import ExternalServiceError, short_text
from apps.backend.clients.firecrawl import start_crawl, get_crawl_status
from apps.backend.clients.vapi import upload_file
from apps.backend.config import get_settings
from apps.backend.models.scrape import (
    ScrapedWebsite,
    SCRAPE_QUEUED,
    SCRAPE_SCRAPING,
    SCRAPE_COMPLETED,
    SCRAPE_FAILED,
    SCRAPE_TERMINAL_STATUSES,
)
from apps.backend.services.crawl_poller import (
    CRAWL_COMPLETED,
    CRAWL_FAILED,
    ScrapeError,
    pages_to_text,
    poll_crawl_job,
    text_size_kb,
    validate_url,
)

logger = logging.getLogger(__name__)


def _error_message(exc: Exception) -> str:
    if isinstance(exc, ScrapeError):
        return exc.message
    if isinstance(exc, ExternalServiceError):
        return exc.detail
    return short_text(str(exc), 500) or "Unknown error"


def mark_failed(db: Session, rec: ScrapedWebsite, message: str) -> None:
    now = datetime.utcnow()
    rec.status = SCRAPE_FAILED
    rec.error_message = (message or "Unknown error")[:1000]
    rec.completed_at = now
    rec.last_checked_at = now
    db.add(rec)
    db.commit()


def mark_completed(db: Session, rec: ScrapedWebsite, status: dict) -> list:
    pages = status.get("data") or []
    text = pages_to_text(pages)
    now = datetime.utcnow()
    rec.status = SCRAPE_COMPLETED
    rec.pages_scraped = len(pages)
    rec.content_text = text
    rec.total_size_kb = text_size_kb(text)
    rec.error_message = None
    rec.completed_at = now
    rec.last_checked_at = now
    db.add(rec)
    db.commit()
    return pages


def scrape_to_dict(rec: ScrapedWebsite) -> dict:
    return {
        "id": rec.id,
        "url": rec.url,
        "status": rec.status,
        "jobId": rec.firecrawl_job_id,
        "assistantId": rec.assistant_id,
        "pagesScraped": rec.pages_scraped or 0,
        "totalSizeKb": rec.total_size_kb or 0,
        "vapiFileId": rec.vapi_file_id,
        "errorMessage": rec.error_message,
        "createdAt": rec.created_at.isoformat() if rec.created_at else None,
        "completedAt": rec.completed_at.isoformat() if rec.completed_at else None,
    }


def create_scrape_record(
    db: Session,
    user_id: str,
    url: str,
    assistant_id: str | None = None,
) -> ScrapedWebsite:
    url = validate_url(url)
    rec = ScrapedWebsite(
        user_id=user_id,
        assistant_id=assistant_id,
        url=url,
        status=SCRAPE_QUEUED,
    )
    db.add(rec)
    db.commit()
    db.refresh(rec)
    return rec


def begin_crawl(db: Session, rec: ScrapedWebsite) -> str:
    """Submit the crawl job and move the record to `scraping`."""
    try:
        job_id = start_crawl(rec.url)
    except Exception as e:
        logger.exception("scrape_start_failed record_id=%s", rec.id)
        mark_failed(db, rec, _error_message(e))
        raise
    rec.firecrawl_job_id = job_id
    rec.status = SCRAPE_SCRAPING
    rec.last_checked_at = datetime.utcnow()
    db.add(rec)
    db.commit()
    return job_id


def _knowledge_filename(rec: ScrapedWebsite) -> str:
    host = urlparse(rec.url).netloc or "website"
    return f"{host.replace(':', '_')}-knowledge.txt"


def upload_scrape_document(db: Session, rec: ScrapedWebsite) -> str | None:
    """Upload the scraped document to the voice platform as a knowledge file."""
    if not rec.content_text:
        return None
    try:
        data = upload_file(_knowledge_filename(rec), rec.content_text.encode("utf-8"), "text/plain")
    except ExternalServiceError:
        logger.exception("scrape_document_upload_failed record_id=%s", rec.id)
        return None
    file_id = data.get("id")
    if file_id:
        rec.vapi_file_id = str(file_id)
        db.add(rec)
        db.commit()
    return rec.vapi_file_id


def run_scrape(
    db: Session,
    rec: ScrapedWebsite,
    *,
    sleep: Callable[[float], None] = time.sleep,
) -> dict:
    """Poll the record's crawl job to a terminal state and persist the result.

    On any failure the record is marked `failed` and the exception re-raised.
    """
    try:
        status = poll_crawl_job(rec.firecrawl_job_id, sleep=sleep)
        pages = mark_completed(db, rec, status)
    except Exception as e:
        logger.warning("scrape_failed record_id=%s job_id=%s err=%s", rec.id, rec.firecrawl_job_id, _error_message(e))
        db.rollback()
        mark_failed(db, rec, _error_message(e))
        raise
    if rec.assistant_id:
        upload_scrape_document(db, rec)
    logger.info("scrape_completed record_id=%s pages=%s size_kb=%s", rec.id, rec.pages_scraped, rec.total_size_kb)
    return {
        "success": True,
        "recordId": rec.id,
        "jobId": rec.firecrawl_job_id,
        "status": rec.status,
        "websiteUrl": rec.url,
        "pagesScraped": rec.pages_scraped,
        "totalSizeKb": rec.total_size_kb,
        "vapiFileId": rec.vapi_file_id,
        "content": rec.content_text or "",
        "rawPages": pages,
    }


def scrape_website(
    db: Session,
    user_id: str,
    url: str,
    *,
    assistant_id: str | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> dict:
    """Blocking scrape: start the crawl and poll it inside this call."""
    rec = create_scrape_record(db, user_id, url, assistant_id)
    begin_crawl(db, rec)
    return run_scrape(db, rec, sleep=sleep)


def start_scrape(
    db: Session,
    user_id: str,
    url: str,
    *,
    assistant_id: str | None = None,
) -> dict:
    """Two-stage scrape, stage 1: submit the job and return ids for status checks."""
    rec = create_scrape_record(db, user_id, url, assistant_id)
    job_id = begin_crawl(db, rec)
    return {"success": True, "jobId": job_id, "recordId": rec.id, "status": rec.status}


def enqueue_scrape_job(record_id: int) -> str | None:
    """Hand the poll loop to the RQ worker. Returns RQ job id or None if Redis is unavailable."""
    s = get_settings()
    try:
        from redis import Redis
        from rq import Queue

        r = Redis(host=s.redis_host, port=s.redis_port)
        q = Queue(s.rq_scrape_queue_name or "scrape", connection=r)
        job_timeout = max(120, int(s.scrape_job_timeout_seconds or 300))
        job = q.enqueue("apps.worker.jobs.process_scrape_job", record_id, job_timeout=job_timeout)
        return job.id
    except Exception:
        logger.exception("scrape_enqueue_failed record_id=%s", record_id)
        return None


def start_background_scrape(
    db: Session,
    user_id: str,
    url: str,
    *,
    assistant_id: str | None = None,
) -> dict:
    """Submit the crawl and hand polling to the RQ worker.

    If the job cannot be enqueued nothing would ever poll the record, so it is
    marked failed right away.
    """
    rec = create_scrape_record(db, user_id, url, assistant_id)
    job_id = begin_crawl(db, rec)
    rq_job_id = enqueue_scrape_job(rec.id)
    if rq_job_id is None:
        mark_failed(db, rec, "scrape_enqueue_failed")
        raise ScrapeError("scrape_enqueue_failed", "Scrape queue is unavailable, try again later")
    return {
        "success": True,
        "recordId": rec.id,
        "jobId": job_id,
        "status": rec.status,
        "queued": True,
    }


def find_scrape_record(
    db: Session,
    user_id: str,
    job_id: str | None,
    record_id: int | None = None,
) -> ScrapedWebsite | None:
    q = select(ScrapedWebsite).where(ScrapedWebsite.user_id == user_id)
    if record_id is not None:
        q = q.where(ScrapedWebsite.id == record_id)
    elif job_id:
        q = q.where(ScrapedWebsite.firecrawl_job_id == job_id)
    else:
        return None
    return db.execute(q.limit(1)).scalars().first()


def check_scrape_status(
    db: Session,
    user_id: str,
    job_id: str,
    record_id: int | None = None,
) -> dict:
    """Two-stage scrape, stage 2: one status check, record updated accordingly.

    If the provider cannot be reached the last known DB state is returned
    with `degraded=True`, so the caller simply polls again.
    """
    rec = find_scrape_record(db, user_id, job_id, record_id)
    if rec is None:
        raise ScrapeError("scrape_not_found", "Scrape job not found")
    if rec.status in SCRAPE_TERMINAL_STATUSES:
        # терминальная запись не меняется, провайдер не опрашивается
        return {
            "success": True,
            "status": rec.status,
            "completed": rec.pages_scraped or 0,
            "total": rec.pages_scraped or 0,
            "data": None,
            "creditsUsed": 0,
            "expiresAt": None,
            "recordId": rec.id,
            "errorMessage": rec.error_message,
            "degraded": False,
        }
    job_id = rec.firecrawl_job_id or job_id
    try:
        status = get_crawl_status(job_id)
    except ExternalServiceError as e:
        logger.warning("scrape_status_degraded job_id=%s err=%s", job_id, e.code)
        return {
            "success": True,
            "status": rec.status,
            "completed": rec.pages_scraped or 0,
            "total": 0,
            "data": None,
            "creditsUsed": 0,
            "recordId": rec.id,
            "degraded": True,
            "note": "Temporary crawl status issue. Continue polling.",
        }

    state = status.get("status")
    completed = int(status.get("completed") or 0)
    if state == CRAWL_COMPLETED:
        mark_completed(db, rec, status)
        if rec.assistant_id and not rec.vapi_file_id:
            upload_scrape_document(db, rec)
    elif state == CRAWL_FAILED:
        mark_failed(db, rec, "Crawl job failed")
    else:
        rec.pages_scraped = completed
        rec.last_checked_at = datetime.utcnow()
        db.add(rec)
        db.commit()

    return {
        "success": True,
        "status": state,
        "completed": completed,
        "total": int(status.get("total") or 0),
        "data": status.get("data") if state == CRAWL_COMPLETED else None,
        "creditsUsed": status.get("creditsUsed") or 0,
        "expiresAt": status.get("expiresAt"),
        "recordId": rec.id,
        "degraded": False,
    }
