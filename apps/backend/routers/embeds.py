"""Embed mappings API."""
import logging

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session

from apps.backend.auth import get_current_user_id
from apps.backend.deps import get_db, require_owned_assistant
from apps.backend.services.embeds import create_embed_mapping, embed_to_dict, list_embed_mappings
from apps.backend.utils.api_errors import error_response

router = APIRouter()
logger = logging.getLogger(__name__)


class EmbedCreateBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    assistant_id: str = Field(alias="assistantId")
    name: str | None = None
    domain_whitelist: list[str] | None = Field(None, alias="domainWhitelist")


@router.get("")
def list_embeds(
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    return {"success": True, "embeds": list_embed_mappings(db, user_id)}


@router.post("")
def create_embed(
    request: Request,
    body: EmbedCreateBody,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    assistant = require_owned_assistant(db, user_id, body.assistant_id)
    if not assistant.vapi_assistant_id:
        return error_response(request, "assistant_not_linked", "Assistant has no voice platform id", 400)
    m = create_embed_mapping(db, user_id, assistant, body.name, body.domain_whitelist)
    out = embed_to_dict(m)
    out["api_key"] = m.api_key
    return {"success": True, "embed": out}
