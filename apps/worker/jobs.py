"""RQ jobs."""
import logging

logger = logging.getLogger(__name__)


def process_scrape_job(record_id: int) -> bool:
    """Дождаться завершения краулинга для записи scraped_websites (ограниченный поллинг)."""
    from apps.backend.database import get_session_factory
    from apps.backend.models.scrape import ScrapedWebsite, SCRAPE_QUEUED, SCRAPE_SCRAPING
    from apps.backend.services.website_scrape import begin_crawl, run_scrape

    factory = get_session_factory()
    with factory() as db:
        rec = db.get(ScrapedWebsite, record_id)
        if not rec or rec.status not in (SCRAPE_QUEUED, SCRAPE_SCRAPING):
            return False
        try:
            if not rec.firecrawl_job_id:
                begin_crawl(db, rec)
            run_scrape(db, rec)
        except Exception:
            # запись уже помечена failed, задача RQ не перезапускается
            logger.exception("scrape_job_failed record_id=%s", record_id)
            return False
        return True


def run_scrape_watchdog() -> dict:
    """Periodic entry point (rq-scheduler / cron)."""
    from apps.backend.services.scrape_watchdog import run_scrape_watchdog_cycle

    return run_scrape_watchdog_cycle()
