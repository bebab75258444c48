"""Assistants API: создание на платформе, сохранение, список, проверка, тулы."""
import logging

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session

from apps.backend.auth import get_current_user_id
from apps.backend.deps import get_db, require_owned_assistant
from apps.backend.services import assistants as svc
from apps.backend.utils.api_errors import error_response

router = APIRouter()
logger = logging.getLogger(__name__)


class InlineFile(BaseModel):
    name: str
    type: str | None = None
    content: str  # base64


class AssistantData(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    bot_name: str | None = Field(None, alias="botName")
    system_prompt: str | None = Field(None, alias="systemPrompt")
    welcome_message: str | None = Field(None, alias="welcomeMessage")
    voice: str | None = None
    system_prompt_template: str | None = Field(None, alias="systemPromptTemplate")


class CreateVapiAssistantBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    assistant_data: AssistantData = Field(alias="assistantData")
    files: list[InlineFile] = []


class SaveAssistantBody(BaseModel):
    vapi_assistant_id: str | None = None
    name: str
    welcome_message: str | None = None
    system_prompt: str | None = None
    language: str | None = None
    voice_id: str | None = None
    position: str | None = None
    theme: str | None = None
    status: str | None = None


class CheckAssistantBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    assistant_id: str = Field(alias="assistantId")


class PageAnalyzerBody(BaseModel):
    description: str | None = None


@router.post("/vapi")
def create_on_platform(
    body: CreateVapiAssistantBody,
    _: str = Depends(get_current_user_id),
):
    d = body.assistant_data
    return svc.create_vapi_assistant(
        d.bot_name,
        d.system_prompt,
        welcome_message=d.welcome_message,
        voice=d.voice,
        template=d.system_prompt_template,
        files=[f.model_dump() for f in body.files],
    )


@router.post("")
def save_assistant(
    body: SaveAssistantBody,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    a = svc.save_assistant(db, user_id, body.model_dump())
    return {"success": True, "assistant": svc.assistant_to_dict(a)}


@router.get("")
def list_assistants(
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    return {"success": True, "assistants": svc.list_assistants(db, user_id)}


@router.get("/{assistant_id}/status")
def assistant_status(request: Request, assistant_id: str, db: Session = Depends(get_db)):
    out = svc.get_assistant_status(db, assistant_id)
    if out is None:
        return error_response(request, "assistant_not_found", "Assistant not found", 404)
    return out


@router.post("/check")
def check_assistant(
    body: CheckAssistantBody,
    _: str = Depends(get_current_user_id),
):
    return svc.check_vapi_assistant(body.assistant_id)


@router.post("/sync")
def sync_assistants(
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    return svc.sync_vapi_assistants(db, user_id)


@router.post("/{assistant_id}/tools/cleanup")
def cleanup_tools(
    request: Request,
    assistant_id: str,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    assistant = require_owned_assistant(db, user_id, assistant_id)
    if not assistant.vapi_assistant_id:
        return error_response(request, "assistant_not_linked", "Assistant has no voice platform id", 400)
    return svc.cleanup_assistant_tools(assistant)


@router.post("/{assistant_id}/tools/page-analyzer")
def add_page_analyzer(
    request: Request,
    assistant_id: str,
    body: PageAnalyzerBody | None = None,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    assistant = require_owned_assistant(db, user_id, assistant_id, status_code=403)
    if not assistant.vapi_assistant_id:
        return error_response(request, "assistant_not_linked", "Assistant has no voice platform id", 400)
    return svc.add_page_analyzer_tool(assistant, (body.description if body else None))
