"""Recovery loop for scrape records left in a non-terminal state."""
from __future__ import annotations

import logging
from datetime import datetime, timedelta

from sqlalchemy import select, or_, and_

from apps.backend.config import get_settings
from apps.backend.database import get_session_factory
from apps.backend.models.scrape import ScrapedWebsite, SCRAPE_QUEUED, SCRAPE_SCRAPING, SCRAPE_FAILED

logger = logging.getLogger(__name__)
_WATCHDOG_LOCK_KEY = "scrape_watchdog:lock"
STALE_ERROR = "stale_scraping_timeout"


def fail_stale_scrapes_once(
    stale_seconds: int = 900,
    batch_limit: int = 200,
) -> dict:
    """Mark queued/scraping records older than the cutoff as failed."""
    factory = get_session_factory()
    now = datetime.utcnow()
    cutoff = now - timedelta(seconds=max(60, int(stale_seconds)))
    result = {"stale_scrapes_failed": 0, "record_ids": []}

    with factory() as db:
        stale = db.execute(
            select(ScrapedWebsite).where(
                ScrapedWebsite.status.in_((SCRAPE_QUEUED, SCRAPE_SCRAPING)),
                or_(
                    ScrapedWebsite.last_checked_at < cutoff,
                    and_(ScrapedWebsite.last_checked_at.is_(None), ScrapedWebsite.created_at < cutoff),
                ),
            ).order_by(ScrapedWebsite.created_at.asc()).limit(batch_limit)
        ).scalars().all()
        for rec in stale:
            rec.status = SCRAPE_FAILED
            rec.error_message = STALE_ERROR
            rec.completed_at = now
            rec.last_checked_at = now
            db.add(rec)
            result["record_ids"].append(rec.id)
            result["stale_scrapes_failed"] += 1
        db.commit()

    if result["stale_scrapes_failed"]:
        logger.warning("scrape_watchdog_failed_stale count=%s", result["stale_scrapes_failed"])
    return result


def run_scrape_watchdog_cycle() -> dict:
    """Single guarded watchdog cycle with Redis lock."""
    s = get_settings()
    try:
        from redis import Redis

        r = Redis(host=s.redis_host, port=s.redis_port)
        lock_ttl = max(30, int((s.scrape_watchdog_interval_seconds or 120) * 0.9))
        if not r.set(_WATCHDOG_LOCK_KEY, "1", nx=True, ex=lock_ttl):
            return {"skipped": "lock_not_acquired"}
    except Exception:
        # без Redis всё равно пробуем один проход
        logger.exception("scrape_watchdog_lock_unavailable")
    try:
        return fail_stale_scrapes_once(
            stale_seconds=s.scrape_stale_seconds,
            batch_limit=s.scrape_watchdog_batch_limit,
        )
    except Exception:
        logger.exception("scrape_watchdog_cycle_failed")
        return {"error": "watchdog_failed"}
