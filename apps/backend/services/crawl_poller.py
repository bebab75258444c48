"""Bounded poller for crawl jobs and page -> plain text conversion.

The poll loop is a fixed-interval, fixed-attempt busy wait: one status request
per attempt, no retry of failed requests, no backoff. It always terminates
after at most `max_attempts` requests.
"""
from __future__ import annotations

import logging
import math
import time
from typing import Callable
from urllib.parse import urlparse

from apps.backend.clients.firecrawl import get_crawl_status
from apps.backend.config import get_settings

logger = logging.getLogger(__name__)

CRAWL_COMPLETED = "completed"
CRAWL_FAILED = "failed"
PAGE_SEPARATOR = "\n\n---\n\n"


class ScrapeError(Exception):
    def __init__(self, code: str, message: str) -> None:
        super().__init__(message)
        self.code = code
        self.message = message


class ScrapeTimeout(ScrapeError):
    pass


def validate_url(url: str | None) -> str:
    """Only absolute http/https URLs are crawled."""
    u = (url or "").strip()
    try:
        parsed = urlparse(u)
    except ValueError:
        raise ScrapeError("invalid_url", "Invalid URL format")
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ScrapeError("invalid_url", "Invalid URL format")
    return u


def poll_crawl_job(
    job_id: str,
    *,
    interval: float | None = None,
    max_attempts: int | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> dict:
    """Poll job status until completed/failed. Returns the final status payload."""
    s = get_settings()
    interval = s.scrape_poll_interval_seconds if interval is None else interval
    max_attempts = s.scrape_max_attempts if max_attempts is None else max_attempts
    interval = max(0.0, float(interval))
    max_attempts = max(1, int(max_attempts))

    for attempt in range(1, max_attempts + 1):
        status = get_crawl_status(job_id)
        state = status.get("status")
        logger.info(
            "crawl_poll job_id=%s attempt=%s/%s status=%s completed=%s total=%s",
            job_id,
            attempt,
            max_attempts,
            state,
            status.get("completed") or 0,
            status.get("total") or 0,
        )
        if state == CRAWL_COMPLETED:
            return status
        if state == CRAWL_FAILED:
            raise ScrapeError("crawl_failed", "Crawl job failed")
        if attempt < max_attempts:
            sleep(interval)

    waited = int(round(interval * max_attempts))
    raise ScrapeTimeout("crawl_timeout", f"Crawl job timed out after {waited} seconds")


def page_url(page: dict) -> str:
    meta = page.get("metadata") or {}
    return (page.get("url") or meta.get("sourceURL") or meta.get("url") or "").strip()


def page_title(page: dict) -> str:
    meta = page.get("metadata") or {}
    return (meta.get("title") or meta.get("ogTitle") or "").strip()


def pages_to_text(pages: list | None) -> str:
    """Concatenate per-page markdown into one document; pages without text are skipped."""
    blocks: list[str] = []
    for page in pages or []:
        if not isinstance(page, dict):
            continue
        text = (page.get("markdown") or "").strip()
        if not text:
            continue
        url = page_url(page)
        title = page_title(page)
        lines = [f"# {title or url or 'Untitled page'}"]
        if url and title:
            lines.append(f"Source: {url}")
        lines.append("")
        lines.append(text)
        blocks.append("\n".join(lines))
    return PAGE_SEPARATOR.join(blocks)


def text_size_kb(text: str | None) -> int:
    size = len((text or "").encode("utf-8"))
    return int(math.ceil(size / 1024)) if size else 0
