"""Crawl provider (Firecrawl) client: start crawl job, read job status."""
from __future__ import annotations

import logging

import httpx

from apps.backend.clients.errors import ExternalServiceError, short_text
from apps.backend.config import get_settings

logger = logging.getLogger(__name__)

FIRECRAWL_ERR_NOT_CONFIGURED = "firecrawl_not_configured"
FIRECRAWL_ERR_HTTP = "firecrawl_http_error"
FIRECRAWL_ERR_UNREACHABLE = "firecrawl_unreachable"
FIRECRAWL_ERR_NO_JOB = "firecrawl_no_job_id"


class FirecrawlError(ExternalServiceError):
    service = "firecrawl"


def _client() -> httpx.Client:
    s = get_settings()
    if not s.firecrawl_api_key:
        raise FirecrawlError(FIRECRAWL_ERR_NOT_CONFIGURED, "FIRECRAWL_API_KEY not configured")
    return httpx.Client(
        base_url=s.firecrawl_api_base.rstrip("/"),
        headers={"Authorization": f"Bearer {s.firecrawl_api_key}"},
        timeout=s.firecrawl_timeout_seconds,
    )


def _request(method: str, path: str, **kwargs) -> httpx.Response:
    try:
        with _client() as c:
            r = c.request(method, path, **kwargs)
    except httpx.RequestError as e:
        logger.warning("firecrawl_request_failed path=%s err=%s", path, short_text(str(e)))
        raise FirecrawlError(
            FIRECRAWL_ERR_UNREACHABLE,
            f"Crawl provider unreachable: {short_text(str(e))}",
            status_code=502,
        )
    if r.status_code >= 400:
        body = short_text(r.text)
        logger.warning("firecrawl_http_error path=%s status=%s body=%s", path, r.status_code, body)
        raise FirecrawlError(
            FIRECRAWL_ERR_HTTP,
            f"Firecrawl error: {r.status_code} - {body}",
            upstream_status=r.status_code,
        )
    return r


def crawl_request_body(url: str, limit: int) -> dict:
    return {
        "url": url,
        "limit": limit,
        "scrapeOptions": {
            # links нужны, чтобы захватить навигацию и выпадающие меню
            "formats": ["markdown", "links"],
            "onlyMainContent": True,
            "includeTags": ["nav", "header", "meta"],
            "waitFor": 3000,
        },
    }


def start_crawl(url: str, limit: int | None = None) -> str:
    """Создать задачу краулинга. Возвращает job id."""
    s = get_settings()
    body = crawl_request_body(url, limit or s.scrape_page_limit)
    r = _request("POST", "/crawl", json=body)
    data = r.json() if r.content else {}
    job_id = data.get("id") if isinstance(data, dict) else None
    if not job_id:
        raise FirecrawlError(FIRECRAWL_ERR_NO_JOB, "No job ID returned from Firecrawl")
    logger.info("firecrawl_crawl_started job_id=%s", job_id)
    return str(job_id)


def get_crawl_status(job_id: str) -> dict:
    """Один запрос статуса задачи. Non-2xx -> FirecrawlError."""
    r = _request("GET", f"/crawl/{job_id}")
    data = r.json() if r.content else {}
    return data if isinstance(data, dict) else {}
