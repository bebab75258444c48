"""Scrape watchdog and worker job tests."""
from datetime import datetime, timedelta

import pytest
from sqlalchemy.orm import sessionmaker

from apps.backend.database import Base, get_test_engine
from apps.backend.models.scrape import ScrapedWebsite
from apps.backend.services import crawl_poller, scrape_watchdog, website_scrape
from apps.worker import jobs


@pytest.fixture
def test_db_session():
    engine = get_test_engine()
    Base.metadata.create_all(engine)
    SessionLocal = sessionmaker(bind=engine)
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.mark.timeout(10)
def test_fail_stale_scrapes(test_db_session, monkeypatch):
    old = datetime.utcnow() - timedelta(minutes=30)
    stale_scraping = ScrapedWebsite(
        user_id="u", url="https://a.test", status="scraping", firecrawl_job_id="j1",
        created_at=old, last_checked_at=old,
    )
    stale_queued = ScrapedWebsite(user_id="u", url="https://b.test", status="queued", created_at=old)
    fresh = ScrapedWebsite(
        user_id="u", url="https://c.test", status="scraping", firecrawl_job_id="j3",
        created_at=old, last_checked_at=datetime.utcnow(),
    )
    done = ScrapedWebsite(user_id="u", url="https://d.test", status="completed", created_at=old)
    test_db_session.add_all([stale_scraping, stale_queued, fresh, done])
    test_db_session.commit()

    SessionLocal = sessionmaker(bind=test_db_session.bind)
    monkeypatch.setattr(scrape_watchdog, "get_session_factory", lambda: SessionLocal)

    result = scrape_watchdog.fail_stale_scrapes_once(stale_seconds=60, batch_limit=50)
    assert result["stale_scrapes_failed"] == 2

    test_db_session.expire_all()
    assert test_db_session.get(ScrapedWebsite, stale_scraping.id).status == "failed"
    assert test_db_session.get(ScrapedWebsite, stale_scraping.id).error_message == "stale_scraping_timeout"
    assert test_db_session.get(ScrapedWebsite, stale_queued.id).status == "failed"
    assert test_db_session.get(ScrapedWebsite, fresh.id).status == "scraping"
    assert test_db_session.get(ScrapedWebsite, done.id).status == "completed"


@pytest.mark.timeout(10)
def test_process_scrape_job_runs_poller(test_db_session, monkeypatch):
    rec = ScrapedWebsite(user_id="u", url="https://a.test", status="scraping", firecrawl_job_id="job-1")
    test_db_session.add(rec)
    test_db_session.commit()

    SessionLocal = sessionmaker(bind=test_db_session.bind)
    monkeypatch.setattr("apps.backend.database.get_session_factory", lambda: SessionLocal)
    monkeypatch.setattr(
        crawl_poller,
        "get_crawl_status",
        lambda job_id: {"status": "completed", "data": [{"markdown": "body", "url": "https://a.test"}]},
    )

    assert jobs.process_scrape_job(rec.id) is True

    test_db_session.expire_all()
    fresh = test_db_session.get(ScrapedWebsite, rec.id)
    assert fresh.status == "completed"
    assert fresh.pages_scraped == 1


@pytest.mark.timeout(10)
def test_process_scrape_job_failure_marks_record(test_db_session, monkeypatch):
    rec = ScrapedWebsite(user_id="u", url="https://a.test", status="queued")
    test_db_session.add(rec)
    test_db_session.commit()

    SessionLocal = sessionmaker(bind=test_db_session.bind)
    monkeypatch.setattr("apps.backend.database.get_session_factory", lambda: SessionLocal)
    monkeypatch.setattr(website_scrape, "start_crawl", lambda url: "job-2")
    monkeypatch.setattr(crawl_poller, "get_crawl_status", lambda job_id: {"status": "failed"})

    assert jobs.process_scrape_job(rec.id) is False

    test_db_session.expire_all()
    fresh = test_db_session.get(ScrapedWebsite, rec.id)
    assert fresh.status == "failed"
    assert fresh.firecrawl_job_id == "job-2"
    assert fresh.error_message == "Crawl job failed"


@pytest.mark.timeout(10)
def test_process_scrape_job_skips_terminal_record(test_db_session, monkeypatch):
    rec = ScrapedWebsite(user_id="u", url="https://a.test", status="completed")
    test_db_session.add(rec)
    test_db_session.commit()

    SessionLocal = sessionmaker(bind=test_db_session.bind)
    monkeypatch.setattr("apps.backend.database.get_session_factory", lambda: SessionLocal)

    assert jobs.process_scrape_job(rec.id) is False
