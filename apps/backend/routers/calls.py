"""Calls API: старт/стоп web-звонка, webhook событий звонков, аналитика."""
import logging

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session

from apps.backend.auth import get_current_user_id
from apps.backend.deps import get_db
from apps.backend.services.calls import CallError, get_call_analytics, handle_call_action, process_call_webhook
from apps.backend.utils.api_errors import error_response

router = APIRouter()
logger = logging.getLogger(__name__)


class CallActionBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    assistant_id: str | None = Field(None, alias="assistantId")
    action: str | None = None
    call_id: str | None = Field(None, alias="callId")


@router.post("")
def call_action(request: Request, body: CallActionBody):
    try:
        return handle_call_action(body.action, body.assistant_id, body.call_id)
    except CallError as e:
        return error_response(request, e.code, e.message, e.status_code)


@router.post("/webhook")
async def call_webhook(request: Request, db: Session = Depends(get_db)):
    try:
        payload = await request.json()
    except ValueError:
        return error_response(request, "invalid_json", "Invalid JSON body", 400)
    if not isinstance(payload, dict):
        return error_response(request, "invalid_payload", "Payload must be an object", 400)
    try:
        return process_call_webhook(db, payload)
    except CallError as e:
        logger.info("call_webhook_rejected code=%s type=%s", e.code, payload.get("type"))
        return error_response(request, e.code, e.message, e.status_code)


@router.get("/analytics")
def call_analytics(
    timeframe: str = "7d",
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    return get_call_analytics(db, user_id, timeframe)
