"""Website scrape API: blocking, background and two-stage (start + status)."""
import logging

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session

from apps.backend.auth import get_current_user_id
from apps.backend.deps import get_db, require_owned_assistant
from apps.backend.services.crawl_poller import ScrapeError
from apps.backend.services.website_scrape import (
    check_scrape_status,
    scrape_website,
    start_background_scrape,
    start_scrape,
)
from apps.backend.utils.api_errors import error_response

router = APIRouter()
logger = logging.getLogger(__name__)


class ScrapeBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    url: str
    assistant_id: str | None = Field(None, alias="assistantId")
    background: bool = False


class ScrapeStatusBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    job_id: str = Field(alias="jobId")
    record_id: int | None = Field(None, alias="recordId")


def _scrape_err(request: Request, e: ScrapeError):
    status = {"invalid_url": 400, "scrape_not_found": 404, "scrape_enqueue_failed": 503}.get(e.code, 500)
    return error_response(request, e.code, e.message, status)


@router.post("")
def scrape(
    request: Request,
    body: ScrapeBody,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    if body.assistant_id:
        require_owned_assistant(db, user_id, body.assistant_id)
    try:
        if body.background:
            return start_background_scrape(db, user_id, body.url, assistant_id=body.assistant_id)
        return scrape_website(db, user_id, body.url, assistant_id=body.assistant_id)
    except ScrapeError as e:
        logger.info("scrape_rejected code=%s user_id=%s", e.code, user_id)
        return _scrape_err(request, e)


@router.post("/start")
def scrape_start(
    request: Request,
    body: ScrapeBody,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    if body.assistant_id:
        require_owned_assistant(db, user_id, body.assistant_id)
    try:
        return start_scrape(db, user_id, body.url, assistant_id=body.assistant_id)
    except ScrapeError as e:
        return _scrape_err(request, e)


@router.post("/status")
def scrape_status(
    request: Request,
    body: ScrapeStatusBody,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    try:
        return check_scrape_status(db, user_id, body.job_id, body.record_id)
    except ScrapeError as e:
        return _scrape_err(request, e)
